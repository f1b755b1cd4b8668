import os
from typing import Optional

class Settings:
    # Database
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/menu_scanner.sqlite")

    # LLM
    GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    # Development
    USE_MOCK: bool = os.getenv("USE_MOCK", "0").lower() in ("1", "true", "yes")

    # LLM timeouts and retries
    LLM_TIMEOUT_SECONDS: int = int(os.getenv("LLM_TIMEOUT_SECONDS", "50"))
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))

    # Generation limits
    OCR_MAX_TOKENS: int = int(os.getenv("OCR_MAX_TOKENS", "1500"))
    STRUCTURE_MAX_TOKENS: int = int(os.getenv("STRUCTURE_MAX_TOKENS", "3000"))
    STRUCTURE_TEMPERATURE: float = float(os.getenv("STRUCTURE_TEMPERATURE", "0.2"))

    # Extraction pipeline
    MIN_TEXT_LENGTH: int = int(os.getenv("MIN_TEXT_LENGTH", "10"))
    MAX_TEXT_LENGTH: int = int(os.getenv("MAX_TEXT_LENGTH", "2000"))
    MAX_MENU_ITEMS: int = int(os.getenv("MAX_MENU_ITEMS", "25"))

    # Uploads
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

    # Scans
    DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "anonymous")
    USE_AUTO_NAMING: bool = os.getenv("USE_AUTO_NAMING", "0").lower() in ("1", "true", "yes")

settings = Settings()

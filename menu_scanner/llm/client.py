import asyncio
import json
import re
from typing import Any, Dict, List, Optional
from menu_scanner.core.config import settings

OCR_PROMPT = (
    "Extract all text from this menu image. Return only the raw text, preserving the "
    "structure as much as possible. Include all dish names, prices, descriptions, and "
    "ingredients if visible."
)

def build_structuring_prompt(menu_text: str) -> str:
    return (
        "You are a menu processing assistant. Analyze this menu text and extract information into this EXACT JSON format:\n"
        "{\n"
        "  \"restaurant_name\": \"Name if available, otherwise null\",\n"
        "  \"menu_type\": \"Dinner/Lunch/Breakfast if identifiable, otherwise null\",\n"
        "  \"cuisine_type\": \"Type of cuisine if identifiable, otherwise null\",\n"
        "  \"menu_items\": [\n"
        "    {\n"
        "      \"dish_name\": \"Item Name\",\n"
        "      \"description\": \"Full description of the dish\",\n"
        "      \"ingredients\": [\"Ingredient1\", \"Ingredient2\"],\n"
        "      \"allergens\": [\"Allergen1\", \"Allergen2\"],\n"
        "      \"price\": 12.99,\n"
        "      \"category\": \"Appetizer/Entree/Dessert/etc\",\n"
        "      \"dietary_tags\": [\"Vegetarian\", \"Vegan\", \"Gluten-Free\"]\n"
        "    }\n"
        "  ]\n"
        "}\n\n"
        "Rules:\n"
        "1. Return ONLY valid JSON with no additional text or markdown formatting\n"
        "2. Extract ingredients from descriptions if not explicitly listed\n"
        "3. Identify common allergens (dairy, nuts, gluten, shellfish, etc.) even when not stated\n"
        "4. Format prices as numbers without currency symbols\n"
        "5. Use null for unknown values\n"
        f"6. Limit to {settings.MAX_MENU_ITEMS} menu items maximum, prioritizing clearer items\n"
        "7. Extract any dietary information (vegan, gluten-free, etc.)\n"
        "8. Categorize items if categories exist in the menu\n\n"
        "Menu text:\n"
        f"{menu_text}"
    )

def get_gemini_model():
    """Get configured Gemini model"""
    if not settings.GOOGLE_API_KEY:
        raise ValueError("GOOGLE_API_KEY not set")

    import google.generativeai as genai

    genai.configure(api_key=settings.GOOGLE_API_KEY)
    return genai.GenerativeModel(settings.GEMINI_MODEL)

def _is_transient(error: Exception) -> bool:
    msg = str(error).lower()
    return (
        isinstance(error, asyncio.TimeoutError)
        or "timeout" in msg
        or "deadline" in msg
        or "429" in msg
        or "503" in msg
        or "504" in msg
    )

async def _generate(label: str, contents: Any, generation_config: Dict[str, Any]) -> str:
    """Run one model request with the per-call timeout, retrying transient failures"""
    model = get_gemini_model()
    max_attempts = max(1, settings.LLM_MAX_ATTEMPTS)

    last_error: Optional[Exception] = None
    for attempt in range(max_attempts):
        try:
            print(f"LLM {label} ATTEMPT {attempt+1}/{max_attempts}: timeout={settings.LLM_TIMEOUT_SECONDS}s")
            response = await asyncio.wait_for(
                model.generate_content_async(
                    contents,
                    generation_config=generation_config,
                    request_options={"timeout": settings.LLM_TIMEOUT_SECONDS},
                ),
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
            return response.text or ""
        except Exception as e:
            last_error = e
            if attempt < max_attempts - 1 and _is_transient(e):
                backoff = 0.7 * (attempt + 1)
                print(f"LLM TIMEOUT/TRANSIENT ERROR, retrying in {backoff:.1f}s... ({e})")
                await asyncio.sleep(backoff)
                continue
            break

    raise Exception(f"Gemini {label.lower()} call failed: {str(last_error) if last_error else 'Unknown error'}")

async def extract_text(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    """
    OCR call: return the raw text of a menu image, no structuring.
    """
    if settings.USE_MOCK:
        return await _mock_extract_text(image_bytes, mime_type)

    return await _generate(
        "OCR",
        [OCR_PROMPT, {"mime_type": mime_type, "data": image_bytes}],
        {"max_output_tokens": settings.OCR_MAX_TOKENS},
    )

async def structure_menu_text(menu_text: str) -> str:
    """
    Structuring call: ask the model to turn menu text into the menu JSON shape.
    Returns the raw response text, which may be fenced, truncated or malformed.
    """
    if settings.USE_MOCK:
        return await _mock_structure_menu_text(menu_text)

    return await _generate(
        "STRUCTURING",
        build_structuring_prompt(menu_text),
        {
            "max_output_tokens": settings.STRUCTURE_MAX_TOKENS,
            "temperature": settings.STRUCTURE_TEMPERATURE,
        },
    )

_MOCK_MENU_TEXT = (
    "Trattoria Mock\n"
    "Margherita Pizza - $12.50\n"
    "Ingredients: tomato, mozzarella, basil\n"
    "Allergens: dairy, gluten\n"
    "Peanut Noodles - $9\n"
    "Ingredients: noodles, peanuts, scallions\n"
    "Allergens: peanuts, gluten\n"
)

_PRICED_LINE = re.compile(r'^(?P<name>.+?)\s*[-–—:.]+\s*\$?(?P<price>\d+(?:[.,]\d{1,2})?)\s*$')
_LIST_LINE = re.compile(r'^(?P<field>ingredients|allergens|dietary|tags)\s*:\s*(?P<values>.+)$', re.IGNORECASE)

async def _mock_extract_text(image_bytes: bytes, mime_type: str) -> str:
    """Mock implementation for testing without LLM API"""
    return _MOCK_MENU_TEXT

async def _mock_structure_menu_text(menu_text: str) -> str:
    """Mock implementation: read 'Name - $price' lines and the list lines below them"""
    items: List[Dict[str, Any]] = []
    restaurant_name = None

    for line in (line.strip() for line in menu_text.split('\n')):
        if not line:
            continue
        priced = _PRICED_LINE.match(line)
        listed = _LIST_LINE.match(line)
        if listed and items:
            field = listed.group("field").lower()
            key = "dietary_tags" if field in ("dietary", "tags") else field
            items[-1][key] = [v.strip() for v in listed.group("values").split(",") if v.strip()]
        elif priced:
            items.append({
                "dish_name": priced.group("name").strip(),
                "description": None,
                "ingredients": [],
                "allergens": [],
                "price": float(priced.group("price").replace(",", ".")),
                "category": None,
                "dietary_tags": [],
            })
        elif not items and restaurant_name is None:
            restaurant_name = line

    return json.dumps({
        "restaurant_name": restaurant_name,
        "menu_type": None,
        "cuisine_type": None,
        "menu_items": items[:settings.MAX_MENU_ITEMS],
    })

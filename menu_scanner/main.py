from fastapi import FastAPI
from contextlib import asynccontextmanager
from menu_scanner.api.routes import router
from menu_scanner.core.config import settings
from menu_scanner.store.db import ScanStore

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Build the scan store once on startup and share it through app.state.
    """
    # Startup
    print("Initializing Menu Scanner...")
    store = ScanStore(settings.DATABASE_PATH)
    store.init_db()
    app.state.store = store
    print(f"Database initialized at {settings.DATABASE_PATH}")

    yield

    # Shutdown
    print("Shutting down Menu Scanner...")

app = FastAPI(
    title="Menu Scanner",
    description="API for extracting, storing and searching dishes from restaurant menus",
    version="1.0.0",
    lifespan=lifespan
)

# Include API routes
app.include_router(router)

@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "service": "Menu Scanner",
        "version": "1.0.0",
        "endpoints": {
            "classify": "POST /classify",
            "analyze_menu": "POST /analyze-menu",
            "search": "POST /search",
            "search_filters": "GET /search/filters",
            "scans": "GET /scans",
            "scan_detail": "GET /scans/{scan_id}",
            "health": "GET /health"
        }
    }

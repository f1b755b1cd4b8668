from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from menu_scanner.core.config import settings
from menu_scanner.schemas import (
    AnalyzeMenuRequest,
    ExtractionResponse,
    IngredientSearchOptions,
    MenuScan,
    ScanDetailResponse,
    SearchOptions,
    SearchRequest,
    SearchResponse,
)
from menu_scanner.services import extract, search
from menu_scanner.store.db import ScanStore

router = APIRouter()

def get_store(request: Request) -> ScanStore:
    """Scan store created at startup"""
    return request.app.state.store

@router.post("/classify", response_model=ExtractionResponse)
async def classify_menu_image(
    file: Optional[UploadFile] = File(None),
    user_id: Optional[str] = Form(None),
    store: ScanStore = Depends(get_store),
):
    """
    Extract menu items from an uploaded menu image.

    OCR and structuring failures come back as a 200 with an empty
    `menu_items` list and an `error` message.
    """
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File not present in body"
        )

    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is not an image"
        )

    image_bytes = await file.read()
    if not image_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty"
        )

    if len(image_bytes) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Uploaded file exceeds {settings.MAX_UPLOAD_BYTES} bytes"
        )

    result = await extract.classify_image(image_bytes, file.content_type, store, user_id)
    return ExtractionResponse(**result)

@router.post("/analyze-menu", response_model=ExtractionResponse)
async def analyze_menu_text(request: AnalyzeMenuRequest, store: ScanStore = Depends(get_store)):
    """Extract menu items from pasted menu text"""
    if not request.text or not request.text.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Menu text is required"
        )

    result = await extract.analyze_text(request.text, store, request.user_id)
    return ExtractionResponse(**result)

@router.post("/search", response_model=SearchResponse)
async def search_menu(request: SearchRequest, store: ScanStore = Depends(get_store)):
    """
    Search stored menu items.

    `searchType == "ingredients"` searches by ingredient list; anything else
    searches by dish name and attribute filters.
    """
    if request.search_type == "ingredients":
        if not request.ingredients or not any(i and i.strip() for i in request.ingredients):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ingredients array is required and must not be empty"
            )

    try:
        if request.search_type == "ingredients":
            results = search.search_by_ingredients(
                store,
                request.ingredients,
                IngredientSearchOptions(
                    match_all=request.match_all,
                    exclude_allergens=request.exclude_allergens or None,
                    max_price=request.max_price,
                )
            )
        else:
            results = search.search_menu_items(
                store,
                request.query or "",
                SearchOptions(
                    fuzzy=request.fuzzy,
                    allergens=request.allergens or None,
                    dietary_preferences=request.dietary_preferences or None,
                    categories=request.categories or None,
                    max_price=request.max_price,
                    restaurant_name=request.restaurant_name,
                    menu_type=request.menu_type,
                )
            )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        print(f"ERROR in search: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to search menu items: {str(e)}"
        )

    return SearchResponse(results=results)

@router.get("/search/filters")
async def search_filters(store: ScanStore = Depends(get_store)):
    """Distinct categories, dietary tags and allergens for filter pickers"""
    return search.get_filter_options(store)

@router.get("/scans", response_model=list[MenuScan])
async def list_scans(
    user_id: Optional[str] = None,
    limit: Optional[int] = None,
    restaurant: Optional[str] = None,
    store: ScanStore = Depends(get_store),
):
    """
    Scan history for a user, newest first.
    With `restaurant`, scans of that restaurant from any user instead.
    """
    if restaurant is not None:
        try:
            return store.list_scans_by_restaurant(restaurant)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )

    return store.list_scans_by_user(user_id or settings.DEFAULT_USER_ID, limit)

@router.get("/scans/{scan_id}", response_model=ScanDetailResponse)
async def get_scan(scan_id: str, store: ScanStore = Depends(get_store)):
    """A scan with its raw text and items (possibly none)"""
    scan = store.get_scan(scan_id)
    if scan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Scan not found"
        )
    return ScanDetailResponse(scan=scan, items=store.list_items_by_scan(scan_id))

@router.delete("/scans/{scan_id}")
async def delete_scan(scan_id: str, store: ScanStore = Depends(get_store)):
    """Delete a scan and its items"""
    if not store.delete_scan(scan_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Scan not found"
        )
    return {"message": "Scan deleted successfully"}

@router.get("/stats")
async def store_statistics(store: ScanStore = Depends(get_store)):
    """Store statistics for debugging"""
    return store.get_stats()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "Menu Scanner"}

import json
from typing import Any, Dict, Optional
from pydantic import ValidationError
from menu_scanner.core.config import settings
from menu_scanner.llm import client as llm_client
from menu_scanner.llm.json_repair import repair
from menu_scanner.parsing.utils import clean_optional_text, strip_code_fences, truncate_text, utc_now_iso
from menu_scanner.schemas import MenuData, MenuItem
from menu_scanner.store.db import ScanStore

INSUFFICIENT_TEXT_ERROR = "insufficient text extracted from image"
INVALID_JSON_ERROR = "Invalid JSON format returned from AI"
NO_TEXT_EXTRACTED = "No text could be extracted from the image."
PIPELINE_ERROR_TEXT = "Error processing image"

def _degraded(text: str, error: str) -> Dict[str, Any]:
    print(f"DEGRADED RESULT: {error}")
    return {"text": text, "menu_items": [], "error": error}

def truncate_for_structuring(text: str) -> str:
    """Bound the text sent to the structuring call"""
    return truncate_text(text, settings.MAX_TEXT_LENGTH)

def parse_structured_response(content: str) -> Optional[Any]:
    """
    Turn a structuring response into parsed JSON.
    Returns None when the content is not JSON-shaped at all; otherwise
    repairs it as needed, so the result always parses.
    """
    sanitized = strip_code_fences(content or "")
    if not sanitized or sanitized[0] not in "{[":
        return None
    return json.loads(repair(sanitized))

def build_menu_data(parsed: Any, raw_text: str) -> MenuData:
    """
    Build MenuData from parsed model output, taking only the keys that are present.
    Items that do not validate (no usable dish_name) are dropped.
    """
    menu_data = MenuData(raw_text=raw_text, scan_date=utc_now_iso())

    if isinstance(parsed, list):
        parsed = {"menu_items": parsed}
    if not isinstance(parsed, dict):
        return menu_data

    for key in ("restaurant_name", "menu_type", "cuisine_type"):
        if key in parsed:
            setattr(menu_data, key, clean_optional_text(parsed[key]))

    raw_items = parsed.get("menu_items")
    if isinstance(raw_items, list):
        items = []
        for raw_item in raw_items:
            if not isinstance(raw_item, dict):
                print(f"SKIPPING NON-OBJECT MENU ITEM: {raw_item!r}")
                continue
            try:
                items.append(MenuItem(**raw_item))
            except ValidationError as e:
                print(f"SKIPPING INVALID MENU ITEM {raw_item.get('dish_name')!r}: {e.error_count()} errors")
        if len(items) > settings.MAX_MENU_ITEMS:
            print(f"CAPPING MENU ITEMS: {len(items)} -> {settings.MAX_MENU_ITEMS}")
            items = items[:settings.MAX_MENU_ITEMS]
        menu_data.menu_items = items

    return menu_data

def _persist(menu_data: MenuData, store: ScanStore, user_id: str) -> Optional[str]:
    """Store the scan; failures are logged and never reach the caller"""
    try:
        return store.store_menu_data(menu_data, user_id, use_auto_naming=settings.USE_AUTO_NAMING)
    except Exception as e:
        print(f"STORE ERROR: scan not saved ({e})")
        return None

async def structure_menu(raw_text: str, store: ScanStore, user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Shared structuring path: truncate, call the model, repair and parse,
    validate, persist. Upstream failures degrade to an empty item list
    with the raw text preserved.
    """
    user_id = user_id or settings.DEFAULT_USER_ID
    trimmed_text = truncate_for_structuring(raw_text)
    if len(trimmed_text) != len(raw_text):
        print(f"TRUNCATED TEXT: {len(raw_text)} -> {settings.MAX_TEXT_LENGTH} characters")

    try:
        print(f"STRUCTURING {len(trimmed_text)} characters...")
        structured_text = await llm_client.structure_menu_text(trimmed_text)
    except Exception as e:
        return _degraded(raw_text, f"Structuring failed: {str(e)}")

    print(f"STRUCTURED TEXT: {len(structured_text or '')} characters")

    parsed = parse_structured_response(structured_text)
    if parsed is None:
        return _degraded(raw_text, INVALID_JSON_ERROR)

    menu_data = build_menu_data(parsed, raw_text)
    print(f"VALIDATED {len(menu_data.menu_items)} MENU ITEMS")

    scan_id = None
    if menu_data.menu_items:
        scan_id = _persist(menu_data, store, user_id)

    result: Dict[str, Any] = {
        "text": raw_text,
        "menu_items": [item.model_dump() for item in menu_data.menu_items],
        "restaurant_name": menu_data.restaurant_name,
        "menu_type": menu_data.menu_type,
        "cuisine_type": menu_data.cuisine_type,
    }
    if scan_id:
        result["scan_id"] = scan_id
    return result

async def classify_image(
    image_bytes: bytes,
    mime_type: str,
    store: ScanStore,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Image path: OCR call, then the structuring path.
    Never raises; the result always has `text` and `menu_items`.
    """
    try:
        print(f"PROCESSING IMAGE - {len(image_bytes)} bytes ({mime_type})")
        extracted_text = await llm_client.extract_text(image_bytes, mime_type)
        print(f"OCR TEXT: {len(extracted_text or '')} characters")

        if not extracted_text or len(extracted_text.strip()) < settings.MIN_TEXT_LENGTH:
            return _degraded(extracted_text or NO_TEXT_EXTRACTED, INSUFFICIENT_TEXT_ERROR)

        return await structure_menu(extracted_text, store, user_id)
    except Exception as e:
        print(f"ERROR in classify_image: {str(e)}")
        return {"text": PIPELINE_ERROR_TEXT, "menu_items": [], "error": str(e)}

async def analyze_text(text: str, store: ScanStore, user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Text path: pasted menu text goes straight to the structuring path.
    Never raises; the pasted text is kept on failure.
    """
    try:
        print(f"PROCESSING TEXT - {len(text)} characters")
        return await structure_menu(text, store, user_id)
    except Exception as e:
        print(f"ERROR in analyze_text: {str(e)}")
        return {"text": text, "menu_items": [], "error": str(e)}

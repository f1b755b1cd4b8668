from typing import Dict, Iterable, List, Optional, Sequence, Set
from menu_scanner.schemas import IngredientSearchOptions, MenuItem, SearchOptions, StoredMenuItem
from menu_scanner.store.db import ScanStore

def _normalized(values: Optional[Iterable[str]]) -> Set[str]:
    return {value.strip().lower() for value in values or [] if value and value.strip()}

def _has_excluded_allergen(item: MenuItem, allergens: Optional[Sequence[str]]) -> bool:
    excluded = _normalized(allergens)
    if not excluded or not item.allergens:
        return False
    return bool(_normalized(item.allergens) & excluded)

def _within_price(item: MenuItem, max_price: Optional[float]) -> bool:
    if max_price is None:
        return True
    return item.price is not None and item.price <= max_price

def matches_search(item: MenuItem, term: Optional[str] = "", options: Optional[SearchOptions] = None) -> bool:
    """
    Text/attribute filter. All active filters must pass:
    - term: case-insensitive substring of dish_name
    - allergens: reject items carrying any of them
    - dietary_preferences: item must carry every one
    - categories: exact membership
    - max_price: inclusive; items without a price are rejected
    """
    options = options or SearchOptions()

    # `fuzzy` currently matches the same way as a plain substring search
    term = (term or "").strip().lower()
    if term and term not in item.dish_name.lower():
        return False

    if _has_excluded_allergen(item, options.allergens):
        return False

    wanted_tags = _normalized(options.dietary_preferences)
    if wanted_tags and not wanted_tags <= _normalized(item.dietary_tags):
        return False

    if options.categories and item.category not in options.categories:
        return False

    if not _within_price(item, options.max_price):
        return False

    if options.restaurant_name:
        needle = options.restaurant_name.strip().lower()
        haystacks = [
            getattr(item, "restaurant_name", None),
            getattr(item, "scan_raw_text", None),
        ]
        if not any(needle in (text or "").lower() for text in haystacks):
            return False

    if options.menu_type:
        menu_type = getattr(item, "menu_type", None)
        if (menu_type or "").strip().lower() != options.menu_type.strip().lower():
            return False

    return True

def matches_ingredients(
    item: MenuItem,
    ingredients: Sequence[str],
    options: Optional[IngredientSearchOptions] = None,
) -> bool:
    """
    Ingredient filter: any queried ingredient (default) or all of them
    (match_all), case-insensitive; then allergen exclusion and max price.
    """
    options = options or IngredientSearchOptions()
    wanted = _normalized(ingredients)
    present = _normalized(item.ingredients)

    if options.match_all:
        if not wanted <= present:
            return False
    elif not wanted & present:
        return False

    if _has_excluded_allergen(item, options.exclude_allergens):
        return False

    return _within_price(item, options.max_price)

def _require_ingredients(ingredients: Optional[Sequence[str]]) -> List[str]:
    cleaned = [ingredient for ingredient in ingredients or [] if ingredient and ingredient.strip()]
    if not cleaned:
        raise ValueError("Ingredients array is required and must not be empty")
    return cleaned

def filter_menu_items(
    items: Iterable[MenuItem],
    term: Optional[str] = "",
    options: Optional[SearchOptions] = None,
) -> List[MenuItem]:
    return [item for item in items if matches_search(item, term, options)]

def filter_by_ingredients(
    items: Iterable[MenuItem],
    ingredients: Sequence[str],
    options: Optional[IngredientSearchOptions] = None,
) -> List[MenuItem]:
    ingredients = _require_ingredients(ingredients)
    return [item for item in items if matches_ingredients(item, ingredients, options)]

def search_menu_items(
    store: ScanStore,
    term: Optional[str] = "",
    options: Optional[SearchOptions] = None,
) -> List[StoredMenuItem]:
    """Search stored items by dish name and attributes, in store order"""
    results = store.query_items(lambda item: matches_search(item, term, options))
    print(f"SEARCH '{term or ''}' found {len(results)} menu items")
    return results

def search_by_ingredients(
    store: ScanStore,
    ingredients: Sequence[str],
    options: Optional[IngredientSearchOptions] = None,
) -> List[StoredMenuItem]:
    """Search stored items by ingredients. Raises ValueError for an empty ingredient list."""
    ingredients = _require_ingredients(ingredients)
    results = store.query_items(lambda item: matches_ingredients(item, ingredients, options))
    print(f"INGREDIENT SEARCH {ingredients} found {len(results)} menu items")
    return results

def _distinct(values: Iterable[str]) -> List[str]:
    seen: Dict[str, str] = {}
    for value in values:
        key = value.strip().lower()
        if key and key not in seen:
            seen[key] = value.strip()
    return sorted(seen.values(), key=str.lower)

def get_filter_options(store: ScanStore) -> Dict[str, List[str]]:
    """Distinct categories, dietary tags and allergens across stored items"""
    items = store.query_items()
    return {
        "categories": _distinct(item.category for item in items if item.category),
        "dietary_tags": _distinct(tag for item in items for tag in item.dietary_tags or []),
        "allergens": _distinct(allergen for item in items for allergen in item.allergens or []),
    }

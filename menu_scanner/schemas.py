from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional
from menu_scanner.parsing.utils import clean_optional_text, normalize_price, normalize_string_list

class MenuItem(BaseModel):
    dish_name: str = Field(min_length=1, description="Name of the dish")
    description: Optional[str] = None
    ingredients: Optional[List[str]] = None
    allergens: Optional[List[str]] = Field(None, description="Free-text allergen names")
    price: Optional[float] = Field(None, ge=0, description="Price without currency")
    category: Optional[str] = Field(None, description="e.g. Appetizer, Entree, Dessert")
    dietary_tags: Optional[List[str]] = Field(None, description="e.g. Vegan, Gluten-Free")

    @field_validator("dish_name", mode="before")
    @classmethod
    def strip_dish_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("description", "category", mode="before")
    @classmethod
    def clean_text(cls, value: Any) -> Optional[str]:
        return clean_optional_text(value)

    @field_validator("ingredients", "allergens", "dietary_tags", mode="before")
    @classmethod
    def clean_list(cls, value: Any) -> Optional[List[str]]:
        return normalize_string_list(value)

    @field_validator("price", mode="before")
    @classmethod
    def clean_price(cls, value: Any) -> Optional[float]:
        return normalize_price(value)

class StoredMenuItem(MenuItem):
    id: str
    menu_scan_id: str
    created_at: Optional[str] = None
    # Joined from the owning scan
    restaurant_name: Optional[str] = None
    menu_type: Optional[str] = None
    scan_raw_text: Optional[str] = Field(None, exclude=True)

class MenuData(BaseModel):
    menu_items: List[MenuItem] = Field(default_factory=list)
    raw_text: str = ""
    restaurant_name: Optional[str] = None
    menu_type: Optional[str] = None
    cuisine_type: Optional[str] = None
    scan_date: Optional[str] = None

class MenuScan(BaseModel):
    id: str
    raw_text: str
    created_at: str
    user_id: str
    name: Optional[str] = None
    restaurant_name: Optional[str] = None
    menu_type: Optional[str] = None
    cuisine_type: Optional[str] = None
    item_count: Optional[int] = None

class SearchOptions(BaseModel):
    fuzzy: bool = False
    allergens: Optional[List[str]] = Field(None, description="Allergens to exclude")
    dietary_preferences: Optional[List[str]] = Field(None, description="Tags every result must carry")
    categories: Optional[List[str]] = None
    max_price: Optional[float] = None
    restaurant_name: Optional[str] = None
    menu_type: Optional[str] = None

class IngredientSearchOptions(BaseModel):
    match_all: bool = False
    exclude_allergens: Optional[List[str]] = None
    max_price: Optional[float] = None

class ExtractionResponse(BaseModel):
    text: str
    menu_items: List[Dict[str, Any]] = Field(default_factory=list)
    restaurant_name: Optional[str] = None
    menu_type: Optional[str] = None
    cuisine_type: Optional[str] = None
    error: Optional[str] = None
    scan_id: Optional[str] = None

class AnalyzeMenuRequest(BaseModel):
    text: str
    user_id: Optional[str] = None

class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    search_type: Optional[str] = Field(None, alias="searchType")
    # Text/attribute search
    query: Optional[str] = ""
    fuzzy: bool = False
    allergens: List[str] = Field(default_factory=list)
    dietary_preferences: List[str] = Field(default_factory=list, alias="dietaryPreferences")
    categories: List[str] = Field(default_factory=list)
    restaurant_name: Optional[str] = Field(None, alias="restaurantName")
    menu_type: Optional[str] = Field(None, alias="menuType")
    # Ingredient search
    ingredients: Optional[List[str]] = None
    match_all: bool = Field(False, alias="matchAll")
    exclude_allergens: List[str] = Field(default_factory=list, alias="excludeAllergens")
    # Shared
    max_price: Optional[float] = Field(None, alias="maxPrice")

class SearchResponse(BaseModel):
    results: List[StoredMenuItem]

class ScanDetailResponse(BaseModel):
    scan: MenuScan
    items: List[StoredMenuItem]

"""
Pydantic schemas for API request/response models
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from catalog.cache import SearchDescriptor
from catalog.cache.keys import DEFAULT_SORT


# ===== STYLE SCHEMAS =====

class CategorySectionOut(BaseModel):
    """One section of the categorized view"""
    name: str
    items: List[Dict[str, Any]]


class StylesView(BaseModel):
    """Catalog read response"""
    allItems: List[Dict[str, Any]]
    itemsMap: Dict[str, Any]
    categorizedSections: List[CategorySectionOut]


class RefreshResponse(BaseModel):
    """Administrative refresh result"""
    success: bool
    message: str
    count: int


class FavoriteStyles(BaseModel):
    """User favorite style names"""
    favorites: List[str] = Field(default_factory=list)


# ===== CIVITAI SCHEMAS =====

class LoraSearchRequest(BaseModel):
    """LoRA search parameters"""
    query: str = ""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=100, ge=1, le=200)
    baseModelFilters: List[str] = Field(default_factory=list)
    nsfw: bool = False
    sort: str = DEFAULT_SORT
    url: Optional[str] = None  # metadata.nextPage cursor from a previous response

    def to_descriptor(self) -> SearchDescriptor:
        return SearchDescriptor(
            query=self.query,
            page=self.page,
            limit=self.limit,
            base_model_filters=tuple(self.baseModelFilters),
            nsfw=self.nsfw,
            sort=self.sort,
        )


class LoraSearchResponse(BaseModel):
    """LoRA search results"""
    items: List[Dict[str, Any]]
    metadata: Dict[str, Any]
    cached: bool

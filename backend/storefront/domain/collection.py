"""
Collection Domain Model

Merchant-curated groups of products. Slugs are unique per tenant.
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CollectionType = Literal["manual", "automatic"]


class Collection(BaseModel):
    id: str
    tenant_id: str
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0
    type: CollectionType = "manual"
    conditions: Optional[Dict[str, Any]] = None
    product_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0
    type: CollectionType = "manual"
    conditions: Optional[Dict[str, Any]] = None


class CollectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    type: Optional[CollectionType] = None
    conditions: Optional[Dict[str, Any]] = None


class CollectionStats(BaseModel):
    total: int = 0
    active: int = 0
    manual: int = 0
    automatic: int = 0
    empty: int = 0

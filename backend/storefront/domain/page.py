"""
Page Builder Domain Models

A store page is an ordered list of blocks stored as JSONB. Container
blocks (section, columns, column) carry nested children.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PageType = Literal["home", "about", "contact", "custom", "landing"]
PageStatus = Literal["draft", "published", "archived"]


class PageBlock(BaseModel):
    id: str
    type: str
    variant: Optional[str] = None
    order: int = 0
    visible: bool = True
    locked: bool = False
    parent_id: Optional[str] = None
    content: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    children: Optional[List["PageBlock"]] = None

    model_config = ConfigDict(from_attributes=True)


PageBlock.model_rebuild()


def default_page_settings() -> Dict[str, Any]:
    return {"show_header": True, "show_footer": True}


class StorePage(BaseModel):
    id: str
    tenant_id: str
    title: str
    slug: str
    page_type: PageType = "custom"
    status: PageStatus = "draft"
    is_homepage: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    blocks: List[PageBlock] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PageCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    page_type: PageType = "custom"


class PageUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = None
    status: Optional[PageStatus] = None
    is_homepage: Optional[bool] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    blocks: Optional[List[PageBlock]] = None
    settings: Optional[Dict[str, Any]] = None


class PageVersion(BaseModel):
    id: str
    page_id: str
    tenant_id: str
    version_number: int
    blocks: List[PageBlock] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


DEFAULT_THEME_COLORS = {
    "primary": "#000000",
    "secondary": "#ffffff",
    "accent": "#3b82f6",
    "background": "#ffffff",
    "foreground": "#000000",
    "muted": "#f4f4f5",
    "mutedForeground": "#71717a",
}

DEFAULT_THEME_TYPOGRAPHY = {
    "headingFont": "Inter",
    "bodyFont": "Inter",
    "baseFontSize": 16,
}

DEFAULT_THEME_LAYOUT = {
    "maxWidth": "1280px",
    "headerStyle": "default",
    "footerStyle": "default",
}


class StoreTheme(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    theme_name: str = "default"
    colors: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_THEME_COLORS))
    typography: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_THEME_TYPOGRAPHY))
    layout: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_THEME_LAYOUT))
    custom_css: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ThemeUpdate(BaseModel):
    theme_name: Optional[str] = None
    colors: Optional[Dict[str, Any]] = None
    typography: Optional[Dict[str, Any]] = None
    layout: Optional[Dict[str, Any]] = None
    custom_css: Optional[str] = None


class BlockTemplate(BaseModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    block_type: str
    block_data: Dict[str, Any]
    thumbnail_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BlockTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    block: PageBlock

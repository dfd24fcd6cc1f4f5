"""
Dashboard Layout Domain Models

Users arrange dashboard widgets on a grid and may keep several named
layouts. At most one layout per (tenant, user) is the default.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DashboardWidget(BaseModel):
    id: str
    type: str
    title: Optional[str] = None
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    w: int = Field(4, ge=1)
    h: int = Field(2, ge=1)
    settings: Dict[str, Any] = Field(default_factory=dict)


class DashboardLayout(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    layout_name: str
    widgets: List[DashboardWidget] = Field(default_factory=list)
    columns: int = 12
    row_height: int = 100
    gap: int = 16
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class DashboardLayoutCreate(BaseModel):
    layout_name: str = Field(..., min_length=1, max_length=100)
    widgets: List[DashboardWidget] = Field(default_factory=list)
    columns: int = Field(12, ge=1, le=24)
    row_height: int = Field(100, ge=10)
    gap: int = Field(16, ge=0)
    is_default: bool = False


class DashboardLayoutUpdate(BaseModel):
    layout_name: Optional[str] = Field(None, min_length=1, max_length=100)
    widgets: Optional[List[DashboardWidget]] = None
    columns: Optional[int] = Field(None, ge=1, le=24)
    row_height: Optional[int] = Field(None, ge=10)
    gap: Optional[int] = Field(None, ge=0)
    is_default: Optional[bool] = None


class LayoutPreferences(BaseModel):
    widgets: List[DashboardWidget]
    columns: int = Field(12, ge=1, le=24)
    row_height: int = Field(100, ge=10)
    gap: int = Field(16, ge=0)


class DuplicateLayoutRequest(BaseModel):
    new_name: str = Field(..., min_length=1, max_length=100)

"""
Customer Domain Models (storefront shoppers, newsletter and contact forms)
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Customer(BaseModel):
    id: str
    tenant_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    accepts_marketing: bool = False
    status: str = "active"
    orders_count: int = 0
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NewsletterSubscribe(BaseModel):
    email: EmailStr


class ContactMessageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    subject: Optional[str] = Field(None, max_length=255)
    message: str = Field(..., min_length=1, max_length=5000)


class MediaAsset(BaseModel):
    id: str
    tenant_id: str
    file_name: str
    storage_path: str
    url: str
    mime_type: str
    size_bytes: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

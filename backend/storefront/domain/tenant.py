"""
Tenant Domain Model

A tenant is a merchant account. Every other entity is scoped to one.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Tenant(BaseModel):
    id: str
    name: str
    slug: str
    currency: str = "USD"
    stripe_account_id: Optional[str] = None
    stripe_onboarding_complete: bool = False
    is_active: bool = True
    settings: dict = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

    @property
    def can_accept_payments(self) -> bool:
        return bool(self.stripe_account_id) and self.stripe_onboarding_complete

"""
Subscription schemas - validacija podataka za kreiranje i izmenu pretplate.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from ..models.subscription import SubscriptionFrequency


class SubscriptionCreate(BaseModel):
    """Nova pretplata."""
    product_id: int
    address_id: int
    quantity: Decimal = Field(..., gt=0, description="Kolicina po isporuci")
    frequency: SubscriptionFrequency
    custom_days: Optional[List[str]] = Field(None, description="Dani u nedelji za CUSTOM")
    start_date: date
    end_date: Optional[date] = None

    @field_validator('custom_days', mode='before')
    @classmethod
    def normalize_days(cls, v):
        if v is None:
            return None
        return [str(day).strip().lower() for day in v]


class SubscriptionUpdate(BaseModel):
    """Izmena pretplate - sva polja opciona."""
    product_id: Optional[int] = None
    address_id: Optional[int] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    frequency: Optional[SubscriptionFrequency] = None
    custom_days: Optional[List[str]] = None
    end_date: Optional[date] = None

    @field_validator('custom_days', mode='before')
    @classmethod
    def normalize_days(cls, v):
        if v is None:
            return None
        return [str(day).strip().lower() for day in v]

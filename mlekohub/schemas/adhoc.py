"""
Adhoc schemas - validacija adhoc zahteva i odluka admina po stavkama.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class AdhocItemInput(BaseModel):
    """Stavka zahteva: proizvod, datum, kolicina."""
    product_id: int
    requested_date: date
    quantity: Decimal = Field(..., gt=0)


class AdhocRequestCreate(BaseModel):
    """Novi (ili izmenjeni) adhoc zahtev."""
    address_id: int
    items: List[AdhocItemInput] = Field(..., min_length=1, description="Bar jedna stavka")
    notes: Optional[str] = Field(None, max_length=500)


class ItemDecision(BaseModel):
    """Odluka admina za jednu stavku (partial review)."""
    item_id: int
    approved: bool
    rejection_reason: Optional[str] = Field(None, max_length=500)

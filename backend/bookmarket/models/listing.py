from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


CENTS = Decimal("0.01")


class ListingCondition(str, Enum):
    LIKE_NEW = "like_new"
    VERY_GOOD = "very_good"
    GOOD = "good"
    ACCEPTABLE = "acceptable"


class Listing(BaseModel):
    id: int
    title: str
    author: str
    description: str
    price: Decimal
    condition: ListingCondition
    category: str
    image_url: Optional[str] = None
    seller_id: int
    is_available: bool = True
    created_at: datetime

    class Config:
        from_attributes = True


class ListingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    author: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    condition: ListingCondition
    category: str = Field(..., min_length=1, max_length=100)
    image_url: Optional[str] = None

    @validator("title", "author", "category")
    def strip_text(cls, v: str) -> str:
        v_norm = v.strip()
        if not v_norm:
            raise ValueError("must not be blank")
        return v_norm

    @validator("price")
    def price_in_cents(cls, v: Decimal) -> Decimal:
        return v.quantize(CENTS)


class ListingUpdate(BaseModel):
    """Owner-editable fields. Availability is owned by checkout and is not here."""

    title: Optional[str] = Field(None, min_length=1, max_length=300)
    author: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    condition: Optional[ListingCondition] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    image_url: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @validator("title", "author", "category")
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v_norm = v.strip()
        if not v_norm:
            raise ValueError("must not be blank")
        return v_norm

    @validator("price")
    def price_in_cents(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return v.quantize(CENTS) if v is not None else v


class ListingResponse(BaseModel):
    id: int
    title: str
    author: str
    description: str
    price: Decimal
    condition: ListingCondition
    category: str
    image_url: Optional[str] = None
    seller_id: int
    is_available: bool
    created_at: datetime

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional

from bookmarket.models.listing import ListingResponse


class CartEntry(BaseModel):
    id: int
    buyer_id: int
    listing_id: int
    added_at: datetime

    class Config:
        from_attributes = True


class CartAddRequest(BaseModel):
    listing_id: int = Field(..., gt=0)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class CartEntryResponse(BaseModel):
    id: int
    buyer_id: int
    listing_id: int
    added_at: datetime
    listing: Optional[ListingResponse] = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True

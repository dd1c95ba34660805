from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional

from bookmarket.models.listing import ListingResponse


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Order(BaseModel):
    id: int
    buyer_id: int
    total: Decimal
    status: OrderStatus
    created_at: datetime

    class Config:
        from_attributes = True


class OrderLine(BaseModel):
    id: int
    order_id: int
    listing_id: int
    # Captured at checkout; later edits to the listing do not touch it.
    price: Decimal

    class Config:
        from_attributes = True


class CheckoutRequest(BaseModel):
    # Caller-supplied (includes shipping); stored as given, rounded to cents.
    total: Decimal = Field(..., ge=0)

    @validator("total")
    def round_to_cents(cls, v: Decimal) -> Decimal:
        rounded = v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if rounded >= Decimal("100000000"):
            raise ValueError("total is too large")
        return rounded


class UnfulfilledReason(str, Enum):
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


class UnfulfilledEntry(BaseModel):
    listing_id: int
    reason: UnfulfilledReason

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OrderLineResponse(BaseModel):
    id: int
    order_id: int
    listing_id: int
    price: Decimal
    listing: Optional[ListingResponse] = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class OrderResponse(BaseModel):
    id: int
    buyer_id: int
    total: Decimal
    status: OrderStatus
    created_at: datetime
    items: List[OrderLineResponse] = []

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class CheckoutResponse(OrderResponse):
    unfulfilled: List[UnfulfilledEntry] = []

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from bookmarket.models.listing import Listing, ListingResponse
from bookmarket.models.order import (
    CheckoutRequest,
    CheckoutResponse,
    Order,
    OrderLine,
    OrderLineResponse,
    OrderResponse,
)
from bookmarket.models.user import User as UserModel
from bookmarket.services.auth import get_current_user
from bookmarket.services.checkout import CheckoutService, EmptyCartError, NothingToPurchaseError
from bookmarket.services.database import get_database
from bookmarket.services.permissions import Action, authorize
from bookmarket.services.storage import RecordStore

router = APIRouter(prefix="/orders", tags=["orders"])


def _line_response(line: OrderLine, listings: Dict[int, Listing]) -> OrderLineResponse:
    listing = listings.get(line.listing_id)
    return OrderLineResponse(
        id=line.id,
        order_id=line.order_id,
        listing_id=line.listing_id,
        price=line.price,
        listing=ListingResponse.model_validate(listing) if listing else None,
    )


def _order_fields(order: Order) -> dict:
    return dict(
        id=order.id,
        buyer_id=order.buyer_id,
        total=order.total,
        status=order.status,
        created_at=order.created_at,
    )


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: CheckoutRequest,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    authorize(current_user, Action.ORDER_CREATE)

    try:
        result = CheckoutService(store).checkout(current_user.id, payload.total)
    except EmptyCartError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except NothingToPurchaseError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(e),
                "unfulfilled": [u.model_dump(by_alias=True, mode="json") for u in e.unfulfilled],
            },
        )

    listings = {l.id: l for l in store.get_listings_by_ids(line.listing_id for line in result.lines)}
    return CheckoutResponse(
        **_order_fields(result.order),
        items=[_line_response(line, listings) for line in result.lines],
        unfulfilled=result.unfulfilled,
    )


@router.get("", response_model=List[OrderResponse])
async def get_orders(
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    orders = store.get_orders_by_buyer(current_user.id)
    lines_by_order = {order.id: store.get_order_lines(order.id) for order in orders}
    listing_ids = {line.listing_id for lines in lines_by_order.values() for line in lines}
    listings = {l.id: l for l in store.get_listings_by_ids(listing_ids)}

    return [
        OrderResponse(
            **_order_fields(order),
            items=[_line_response(line, listings) for line in lines_by_order[order.id]],
        )
        for order in orders
    ]

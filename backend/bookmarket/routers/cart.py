from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from bookmarket.models.cart import CartAddRequest, CartEntryResponse
from bookmarket.models.listing import ListingResponse
from bookmarket.models.user import User as UserModel
from bookmarket.services.auth import get_current_user
from bookmarket.services.database import get_database
from bookmarket.services.permissions import Action, authorize
from bookmarket.services.storage import RecordStore
from bookmarket.utils.logger import logger

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=List[CartEntryResponse])
async def get_cart(
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    entries = store.get_cart_entries(current_user.id)
    listings = {l.id: l for l in store.get_listings_by_ids(e.listing_id for e in entries)}
    return [
        CartEntryResponse(
            id=entry.id,
            buyer_id=entry.buyer_id,
            listing_id=entry.listing_id,
            added_at=entry.added_at,
            listing=(
                ListingResponse.model_validate(listings[entry.listing_id])
                if entry.listing_id in listings else None
            ),
        )
        for entry in entries
    ]


@router.post("", response_model=CartEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    payload: CartAddRequest,
    response: Response,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    authorize(current_user, Action.CART_MODIFY)

    listing = store.get_listing(payload.listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")

    existing = store.get_cart_entry(current_user.id, listing.id)
    if existing is not None:
        response.status_code = status.HTTP_200_OK
        entry = existing
    else:
        if not listing.is_available:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Listing is no longer available"
            )
        entry = store.add_to_cart(current_user.id, listing.id)
        logger.info(f"Cart: buyer={current_user.id} added listing={listing.id}")

    return CartEntryResponse(
        id=entry.id,
        buyer_id=entry.buyer_id,
        listing_id=entry.listing_id,
        added_at=entry.added_at,
        listing=ListingResponse.model_validate(listing),
    )


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_cart(
    listing_id: int,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    authorize(current_user, Action.CART_MODIFY)
    if store.remove_from_cart(current_user.id, listing_id):
        logger.info(f"Cart: buyer={current_user.id} removed listing={listing_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

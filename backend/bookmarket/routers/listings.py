from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError

from bookmarket.models.listing import ListingCondition, ListingCreate, ListingResponse, ListingUpdate
from bookmarket.models.user import User as UserModel
from bookmarket.services.auth import get_current_user
from bookmarket.services.database import get_database
from bookmarket.services.permissions import Action, authorize
from bookmarket.services.storage import RecordStore
from bookmarket.services.uploads import save_listing_image
from bookmarket.utils.logger import logger

router = APIRouter(prefix="/listings", tags=["listings"])
seller_router = APIRouter(prefix="/seller", tags=["listings"])


def _get_listing_or_404(store: RecordStore, listing_id: int):
    listing = store.get_listing(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


@router.get("", response_model=List[ListingResponse])
async def get_listings(
    category: Optional[str] = None,
    condition: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=200),
    store: RecordStore = Depends(get_database),
):
    return store.get_listings(category=category, condition=condition, search=search)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(listing_id: int, store: RecordStore = Depends(get_database)):
    return _get_listing_or_404(store, listing_id)


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    title: str = Form(...),
    author: str = Form(...),
    description: str = Form(...),
    price: Decimal = Form(...),
    condition: ListingCondition = Form(...),
    category: str = Form(...),
    image: Optional[UploadFile] = File(None),
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    authorize(current_user, Action.LISTING_CREATE)

    try:
        listing_data = ListingCreate(
            title=title,
            author=author,
            description=description,
            price=price,
            condition=condition,
            category=category,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=jsonable_encoder(e.errors(include_url=False, include_context=False)),
        )

    listing_data.image_url = await save_listing_image(image)
    listing = store.create_listing(listing_data, current_user.id)
    logger.info(f"Listing {listing.id} created by seller={current_user.id}")
    return listing


@router.put("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: int,
    payload: ListingUpdate,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    listing = _get_listing_or_404(store, listing_id)
    authorize(current_user, Action.LISTING_UPDATE, owner_id=listing.seller_id)

    # Explicit nulls only make sense for the image; everything else is required.
    updates = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k == "image_url"
    }
    updated = store.update_listing(listing_id, updates)
    if updated is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    logger.info(f"Listing {listing_id} updated fields={sorted(updates)}")
    return updated


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    listing_id: int,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    listing = _get_listing_or_404(store, listing_id)
    authorize(current_user, Action.LISTING_DELETE, owner_id=listing.seller_id)

    store.delete_listing(listing_id)
    logger.info(f"Listing {listing_id} deleted by seller={current_user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@seller_router.get("/listings", response_model=List[ListingResponse])
async def get_my_listings(
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    authorize(current_user, Action.LISTING_LIST_OWN)
    return store.get_listings_by_seller(current_user.id)

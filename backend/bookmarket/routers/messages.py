from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from bookmarket.models.message import ConversationsResponse, MessageCreate, MessageResponse
from bookmarket.models.user import PublicUserResponse, User as UserModel
from bookmarket.services.auth import get_current_user
from bookmarket.services.database import get_database
from bookmarket.services.permissions import Action, authorize
from bookmarket.services.storage import RecordStore
from bookmarket.utils.logger import logger

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=ConversationsResponse)
async def get_conversations(
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    """Users the caller has a thread with, most recently active first."""
    partners = []
    for user_id in store.get_conversation_partners(current_user.id):
        user = store.get_user_by_id(user_id)
        if user is not None:
            partners.append(PublicUserResponse.model_validate(user))
    return ConversationsResponse(items=partners, total=len(partners))


@router.get("/{other_user_id}", response_model=List[MessageResponse])
async def get_thread(
    other_user_id: int,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    # The frontend polls this every few seconds; an unknown id is just an empty thread.
    return store.get_messages_between(current_user.id, other_user_id)


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    authorize(current_user, Action.MESSAGE_SEND)

    if payload.receiver_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot message yourself")
    if store.get_user_by_id(payload.receiver_id) is None:
        raise HTTPException(status_code=404, detail="Recipient not found")
    if payload.listing_id is not None and store.get_listing(payload.listing_id) is None:
        raise HTTPException(status_code=404, detail="Listing not found")

    message = store.create_message(
        sender_id=current_user.id,
        receiver_id=payload.receiver_id,
        content=payload.content,
        listing_id=payload.listing_id,
    )
    logger.info(f"Message {message.id} sent from={current_user.id} to={payload.receiver_id}")
    return message

from fastapi import APIRouter, Depends, HTTPException

from bookmarket.models.user import PublicUserResponse, User as UserModel
from bookmarket.services.auth import get_current_user
from bookmarket.services.database import get_database
from bookmarket.services.storage import RecordStore

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user(
    user_id: int,
    current_user: UserModel = Depends(get_current_user),
    store: RecordStore = Depends(get_database),
):
    user = store.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user

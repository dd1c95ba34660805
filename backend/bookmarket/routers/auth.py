from fastapi import APIRouter, Depends, HTTPException, Request, status
from bookmarket.models.user import UserCreate, UserLogin, UserResponse, AuthResponse, User as UserModel
from bookmarket.services.auth import (
    register_user,
    authenticate_user,
    create_access_token,
    get_current_user,
)
from bookmarket.services.database import get_database
from bookmarket.services.storage import RecordStore
from bookmarket.utils.logger import logger

router = APIRouter(prefix="/auth", tags=["authentication"])


def _auth_response(user: UserModel) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=create_access_token(user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, store: RecordStore = Depends(get_database)):
    logger.info(f"Registration attempt for email: {user_data.email}")
    user = register_user(store, user_data)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    user_credentials: UserLogin,
    request: Request,
    store: RecordStore = Depends(get_database),
):
    rid = getattr(request.state, "rid", "unknown")
    logger.info(f"Login attempt email={user_credentials.email} rid={rid}")

    user = authenticate_user(store, user_credentials.email, user_credentials.password)
    if not user:
        logger.warning(f"Failed login attempt for: {user_credentials.email} rid={rid}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _auth_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserModel = Depends(get_current_user)):
    return current_user

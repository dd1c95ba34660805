from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
import hashlib
import hmac
import os
import binascii
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from bookmarket.config import settings
from bookmarket.models.user import User as UserModel, UserCreate
from bookmarket.services.database import get_database
from bookmarket.services.storage import DuplicateEmailError, RecordStore
from bookmarket.utils.logger import logger

# auto_error=False so a missing header and a bad token get different messages.
security = HTTPBearer(auto_error=False)

# Stored format: "pbkdf2_sha256$<iterations>$<salt_hex>$<hash_hex>".
_PBKDF2_ALGO_PREFIX = "pbkdf2_sha256"
_PBKDF2_ITERATIONS = 100_000
_PBKDF2_SALT_BYTES = 16


def _pbkdf2_hash_password(password: str) -> str:
    """Return a PBKDF2-SHA256 hash string for the given password.

    The raw key is derived using a random salt and a fixed number of iterations.
    """
    if not isinstance(password, str):
        raise TypeError("password must be a string")

    salt = os.urandom(_PBKDF2_SALT_BYTES)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    salt_hex = binascii.hexlify(salt).decode("ascii")
    hash_hex = binascii.hexlify(dk).decode("ascii")
    return f"{_PBKDF2_ALGO_PREFIX}${_PBKDF2_ITERATIONS}${salt_hex}${hash_hex}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a PBKDF2-SHA256 encoded hash.

    Returns False if the hash is missing or malformed.
    """
    if not hashed_password:
        return False
    try:
        prefix, iter_str, salt_hex, hash_hex = hashed_password.split("$", 3)
        if prefix != _PBKDF2_ALGO_PREFIX:
            return False
        iterations = int(iter_str)
        salt = binascii.unhexlify(salt_hex.encode("ascii"))
        expected = binascii.unhexlify(hash_hex.encode("ascii"))
    except (ValueError, binascii.Error):
        return False

    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(dk, expected)


def get_password_hash(password: str) -> str:
    return _pbkdf2_hash_password(password)


def create_access_token(user: UserModel, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.ALGORITHM)


def authenticate_user(store: RecordStore, email: str, password: str) -> Optional[UserModel]:
    user = store.get_user_by_email(email)
    if not user:
        logger.warning(f"Authentication failed: User not found - {email}")
        return None

    if not verify_password(password, user.hashed_password):
        logger.warning(f"Authentication failed: Invalid password - {email}")
        return None

    logger.info(f"User authenticated successfully: {email}")
    return user


def register_user(store: RecordStore, user_data: UserCreate) -> UserModel:
    existing_user = store.get_user_by_email(user_data.email)
    if existing_user:
        logger.warning(f"Registration failed: Email already exists - {user_data.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    hashed_password = get_password_hash(user_data.password)
    try:
        user = store.create_user(user_data, hashed_password)
    except DuplicateEmailError:
        logger.warning(f"Registration failed: Email registered concurrently - {user_data.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )
    logger.info(f"New user registered: {user.email} with role: {user.role.value}")
    return user


def decode_access_token(token: str) -> dict:
    """Return the verified claims; raises JWTError on a bad signature or expiry."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.ALGORITHM])
    if payload.get("sub") is None:
        raise JWTError("token has no subject")
    return payload


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: RecordStore = Depends(get_database),
) -> UserModel:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    invalid_credential = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credential",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(credentials.credentials)
        user_id = int(payload["sub"])
    except (JWTError, ValueError) as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise invalid_credential

    user = store.get_user_by_id(user_id)
    if user is None:
        logger.warning(f"User not found for token: {user_id}")
        raise invalid_credential

    request.state.user = user
    return user

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt

from bookmarket.config import settings
from bookmarket.models.user import User, UserCreate, UserRole
from bookmarket.services.auth import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    register_user,
    verify_password,
)
from bookmarket.services.permissions import Action, authorize, is_allowed


def _user(user_id=1, role=UserRole.BUYER):
    return User(
        id=user_id,
        email=f"user{user_id}@example.com",
        name="User",
        hashed_password="x",
        role=role,
        created_at=datetime.now(timezone.utc),
    )


def test_password_hash_roundtrip_and_salting():
    first = get_password_hash("correct horse")
    second = get_password_hash("correct horse")

    assert first.startswith("pbkdf2_sha256$")
    assert first != second
    assert verify_password("correct horse", first)
    assert not verify_password("wrong", first)


@pytest.mark.parametrize("stored", ["", "plain-sha256-hex", "pbkdf2_sha256$abc$zz$zz", "md5$1$00$00"])
def test_verify_password_rejects_malformed_hashes(stored):
    assert verify_password("anything", stored) is False


def test_token_carries_identity_claims():
    seller = _user(7, UserRole.SELLER)

    claims = decode_access_token(create_access_token(seller))

    assert claims["sub"] == "7"
    assert claims["email"] == "user7@example.com"
    assert claims["role"] == "seller"


def test_expired_token_is_rejected():
    token = create_access_token(_user(), expires_delta=timedelta(seconds=-10))
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"sub": "1"}, "not-the-secret", algorithm=settings.ALGORITHM)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_role_rules():
    buyer = _user(1, UserRole.BUYER)
    seller = _user(2, UserRole.SELLER)

    assert is_allowed(seller, Action.LISTING_CREATE)
    assert not is_allowed(buyer, Action.LISTING_CREATE)
    assert not is_allowed(buyer, Action.LISTING_LIST_OWN)
    assert is_allowed(buyer, Action.CART_MODIFY)
    assert is_allowed(seller, Action.ORDER_CREATE)


def test_ownership_rules():
    seller = _user(2, UserRole.SELLER)

    assert is_allowed(seller, Action.LISTING_UPDATE, owner_id=2)
    assert not is_allowed(seller, Action.LISTING_UPDATE, owner_id=3)
    assert not is_allowed(seller, Action.LISTING_DELETE, owner_id=None)


def test_authorize_raises_403():
    with pytest.raises(HTTPException) as excinfo:
        authorize(_user(1, UserRole.BUYER), Action.LISTING_CREATE)
    assert excinfo.value.status_code == 403
    assert excinfo.value.detail == "Only sellers can create listings"


def test_register_race_on_email_is_400(any_store, monkeypatch):
    data = UserCreate(email="race@example.com", password="secret1", name="Racer")
    register_user(any_store, data)
    # Both requests passed the lookup before either inserted.
    monkeypatch.setattr(any_store, "get_user_by_email", lambda email: None)

    with pytest.raises(HTTPException) as excinfo:
        register_user(any_store, data)

    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == "Email already registered"
    assert any_store.count_users() == 1

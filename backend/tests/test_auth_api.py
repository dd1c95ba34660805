from datetime import timedelta

from conftest import register

from bookmarket.services.auth import create_access_token


def test_register_returns_user_and_token(client):
    resp = client.post(
        "/auth/register",
        json={"email": "ann@example.com", "password": "secret1", "name": "Ann", "role": "seller"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["user"]["email"] == "ann@example.com"
    assert body["user"]["role"] == "seller"
    assert "hashedPassword" not in body["user"]
    assert "hashed_password" not in body["user"]
    assert body["token"]


def test_role_defaults_to_buyer(client):
    resp = client.post(
        "/auth/register",
        json={"email": "bob@example.com", "password": "secret1", "name": "Bob"},
    )
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "buyer"


def test_duplicate_email_is_rejected_and_first_account_survives(client, store):
    first, _ = register(client, "dup@example.com", name="First")

    resp = client.post(
        "/auth/register",
        json={"email": "dup@example.com", "password": "other12", "name": "Second"},
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already registered"
    assert store.count_users() == 1
    assert store.get_user_by_email("dup@example.com").name == "First"
    assert client.post(
        "/auth/login", json={"email": "dup@example.com", "password": "password123"}
    ).status_code == 200


def test_register_validation_errors_are_400(client):
    resp = client.post(
        "/auth/register",
        json={"email": "not-an-email", "password": "123", "name": ""},
    )
    assert resp.status_code == 400
    fields = {err["loc"][-1] for err in resp.json()["detail"]}
    assert {"email", "password", "name"} <= fields


def test_login(client):
    user, _ = register(client, "carol@example.com", password="hunter22")

    resp = client.post("/auth/login", json={"email": "carol@example.com", "password": "hunter22"})

    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {resp.json()['token']}"})
    assert me.json()["email"] == "carol@example.com"


def test_login_failures_are_indistinguishable(client):
    register(client, "dave@example.com")

    wrong_password = client.post("/auth/login", json={"email": "dave@example.com", "password": "nope"})
    unknown_email = client.post("/auth/login", json={"email": "eve@example.com", "password": "nope"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"detail": "Invalid credentials"}


def test_protected_route_without_token(client):
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Authentication required"


def test_protected_route_with_garbage_token(client):
    resp = client.get("/cart", headers={"Authorization": "Bearer not.a.jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credential"


def test_expired_token_is_401(client, store):
    register(client, "old@example.com")
    user = store.get_user_by_email("old@example.com")
    token = create_access_token(user, expires_delta=timedelta(minutes=-1))

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credential"


def test_public_profile_hides_email(client):
    seller, headers = register(client, "shop@example.com", role="seller", name="Shop")

    resp = client.get(f"/users/{seller['id']}", headers=headers)

    assert resp.status_code == 200
    assert resp.json() == {"id": seller["id"], "name": "Shop", "role": "seller"}
    assert client.get("/users/9999", headers=headers).status_code == 404


def test_responses_carry_request_id(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"]


def test_unhandled_error_becomes_500_with_request_id(client):
    from bookmarket.main import app
    from bookmarket.services.database import get_database

    def broken_store():
        raise RuntimeError("store is down")

    app.dependency_overrides[get_database] = broken_store

    resp = client.get("/listings")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "internal_error"
    assert body["rid"] == resp.headers["X-Request-ID"]

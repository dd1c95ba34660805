from conftest import create_listing, register


def test_thread_is_visible_to_both_sides(client):
    seller, seller_headers = register(client, "seller@example.com", role="seller", name="Seller")
    buyer, buyer_headers = register(client, "buyer@example.com", name="Buyer")
    listing = create_listing(client, seller_headers)

    first = client.post(
        "/messages",
        json={"receiverId": seller["id"], "listingId": listing["id"], "content": "Still available?"},
        headers=buyer_headers,
    )
    reply = client.post(
        "/messages",
        json={"receiver_id": buyer["id"], "content": "Yes!"},
        headers=seller_headers,
    )

    assert first.status_code == 201
    assert first.json()["senderId"] == buyer["id"]
    assert first.json()["listingId"] == listing["id"]
    assert reply.json()["listingId"] is None

    buyer_view = client.get(f"/messages/{seller['id']}", headers=buyer_headers).json()
    seller_view = client.get(f"/messages/{buyer['id']}", headers=seller_headers).json()
    assert [m["content"] for m in buyer_view] == ["Still available?", "Yes!"]
    assert seller_view == buyer_view


def test_third_party_sees_nothing(client):
    a, a_headers = register(client, "a@example.com")
    b, _ = register(client, "b@example.com")
    _, c_headers = register(client, "c@example.com")
    client.post("/messages", json={"receiverId": b["id"], "content": "private"}, headers=a_headers)

    assert client.get(f"/messages/{b['id']}", headers=c_headers).json() == []
    assert client.get(f"/messages/{a['id']}", headers=c_headers).json() == []


def test_cannot_message_yourself(client):
    me, headers = register(client, "me@example.com")

    resp = client.post("/messages", json={"receiverId": me["id"], "content": "hello me"}, headers=headers)

    assert resp.status_code == 400


def test_unknown_receiver_or_listing_is_404(client):
    _, headers = register(client, "a@example.com")
    b, _ = register(client, "b@example.com")

    unknown_user = client.post("/messages", json={"receiverId": 9999, "content": "hi"}, headers=headers)
    unknown_listing = client.post(
        "/messages", json={"receiverId": b["id"], "listingId": 9999, "content": "hi"}, headers=headers
    )

    assert unknown_user.status_code == 404
    assert unknown_listing.status_code == 404


def test_blank_message_is_400(client):
    _, headers = register(client, "a@example.com")
    b, _ = register(client, "b@example.com")

    resp = client.post("/messages", json={"receiverId": b["id"], "content": "   "}, headers=headers)

    assert resp.status_code == 400


def test_messages_require_authentication(client):
    assert client.get("/messages").status_code == 401
    assert client.get("/messages/1").status_code == 401
    assert client.post("/messages", json={"receiverId": 1, "content": "hi"}).status_code == 401


def test_conversation_list_most_recent_first(client):
    a, a_headers = register(client, "a@example.com", name="Ann")
    b, _ = register(client, "b@example.com", name="Ben")
    c, c_headers = register(client, "c@example.com", name="Cat")
    client.post("/messages", json={"receiverId": b["id"], "content": "hi Ben"}, headers=a_headers)
    client.post("/messages", json={"receiverId": a["id"], "content": "hi Ann"}, headers=c_headers)

    resp = client.get("/messages", headers=a_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert [p["name"] for p in body["items"]] == ["Cat", "Ben"]
    assert "email" not in body["items"][0]

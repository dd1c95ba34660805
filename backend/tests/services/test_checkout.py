from decimal import Decimal

import pytest

from bookmarket.models.listing import ListingCondition, ListingCreate
from bookmarket.models.order import OrderStatus, UnfulfilledReason
from bookmarket.models.user import UserCreate, UserRole
from bookmarket.services.checkout import CheckoutService, EmptyCartError, NothingToPurchaseError


def _user(store, email, role=UserRole.BUYER):
    return store.create_user(
        UserCreate(email=email, password="password123", name="x", role=role), "hashed"
    )


def _book(store, seller_id, price, title="Book"):
    return store.create_listing(
        ListingCreate(
            title=title,
            author="Author",
            description="Description",
            price=Decimal(price),
            condition=ListingCondition.GOOD,
            category="fiction",
        ),
        seller_id,
    )


@pytest.fixture
def people(any_store):
    seller = _user(any_store, "seller@example.com", UserRole.SELLER)
    buyer = _user(any_store, "buyer@example.com")
    return any_store, seller, buyer


def test_checkout_two_books_with_shipping(people):
    store, seller, buyer = people
    first = _book(store, seller.id, "12.50", "First")
    second = _book(store, seller.id, "8.00", "Second")
    store.add_to_cart(buyer.id, first.id)
    store.add_to_cart(buyer.id, second.id)

    result = CheckoutService(store).checkout(buyer.id, Decimal("24.49"))

    assert result.order.total == Decimal("24.49")
    assert result.order.status == OrderStatus.COMPLETED
    assert result.order.buyer_id == buyer.id
    assert sorted(line.price for line in result.lines) == [Decimal("8.00"), Decimal("12.50")]
    assert result.unfulfilled == []
    assert store.get_listing(first.id).is_available is False
    assert store.get_listing(second.id).is_available is False
    assert store.get_cart_entries(buyer.id) == []
    assert store.get_listings() == []
    assert len(store.get_order_lines(result.order.id)) == 2


def test_total_is_stored_as_supplied(people):
    store, seller, buyer = people
    book = _book(store, seller.id, "30.00")
    store.add_to_cart(buyer.id, book.id)

    result = CheckoutService(store).checkout(buyer.id, Decimal("5.00"))

    assert store.get_orders_by_buyer(buyer.id)[0].total == Decimal("5.00")
    assert result.lines[0].price == Decimal("30.00")


def test_empty_cart_creates_nothing(people):
    store, _, buyer = people

    with pytest.raises(EmptyCartError):
        CheckoutService(store).checkout(buyer.id, Decimal("10.00"))

    assert store.get_orders_by_buyer(buyer.id) == []


def test_captured_price_ignores_later_edits(people):
    store, seller, buyer = people
    book = _book(store, seller.id, "12.50")
    store.add_to_cart(buyer.id, book.id)

    result = CheckoutService(store).checkout(buyer.id, Decimal("12.50"))
    store.update_listing(book.id, {"price": Decimal("99.00")})

    assert store.get_order_lines(result.order.id)[0].price == Decimal("12.50")


def test_vanished_listing_is_reported_not_fatal(people, monkeypatch):
    store, seller, buyer = people
    kept = _book(store, seller.id, "10.00", "Kept")
    store.add_to_cart(buyer.id, kept.id)
    # Simulate a cart row whose listing disappeared without the cart being cleaned.
    gone = _book(store, seller.id, "5.00", "Gone")
    store.add_to_cart(buyer.id, gone.id)
    original_get_listing = store.get_listing
    monkeypatch.setattr(
        store, "get_listing",
        lambda listing_id: None if listing_id == gone.id else original_get_listing(listing_id),
    )

    result = CheckoutService(store).checkout(buyer.id, Decimal("10.00"))

    assert [line.listing_id for line in result.lines] == [kept.id]
    assert [(u.listing_id, u.reason) for u in result.unfulfilled] == [(gone.id, UnfulfilledReason.NOT_FOUND)]
    assert store.get_cart_entries(buyer.id) == []


def test_second_buyer_cannot_buy_a_sold_listing(people):
    store, seller, buyer = people
    rival = _user(store, "rival@example.com")
    contested = _book(store, seller.id, "15.00", "Contested")
    extra = _book(store, seller.id, "3.00", "Extra")
    store.add_to_cart(buyer.id, contested.id)
    store.add_to_cart(rival.id, contested.id)
    store.add_to_cart(rival.id, extra.id)

    CheckoutService(store).checkout(buyer.id, Decimal("15.00"))
    rival_result = CheckoutService(store).checkout(rival.id, Decimal("18.00"))

    assert [line.listing_id for line in rival_result.lines] == [extra.id]
    assert [(u.listing_id, u.reason) for u in rival_result.unfulfilled] == [
        (contested.id, UnfulfilledReason.UNAVAILABLE)
    ]


def test_nothing_claimable_rolls_back(people):
    store, seller, buyer = people
    rival = _user(store, "rival@example.com")
    book = _book(store, seller.id, "15.00")
    store.add_to_cart(buyer.id, book.id)
    store.add_to_cart(rival.id, book.id)
    CheckoutService(store).checkout(buyer.id, Decimal("15.00"))

    with pytest.raises(NothingToPurchaseError) as excinfo:
        CheckoutService(store).checkout(rival.id, Decimal("15.00"))

    assert [u.listing_id for u in excinfo.value.unfulfilled] == [book.id]
    assert store.get_orders_by_buyer(rival.id) == []
    assert len(store.get_cart_entries(rival.id)) == 1


def test_failure_mid_checkout_leaves_no_partial_order(people, monkeypatch):
    store, seller, buyer = people
    book = _book(store, seller.id, "12.50")
    store.add_to_cart(buyer.id, book.id)

    def broken_clear_cart(buyer_id, listing_ids=None):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(store, "clear_cart", broken_clear_cart)

    with pytest.raises(RuntimeError):
        CheckoutService(store).checkout(buyer.id, Decimal("12.50"))

    assert store.get_orders_by_buyer(buyer.id) == []
    assert store.get_listing(book.id).is_available is True
    assert len(store.get_cart_entries(buyer.id)) == 1


def test_entry_carted_during_checkout_is_kept(people, monkeypatch):
    store, seller, buyer = people
    first = _book(store, seller.id, "12.50", "First")
    late = _book(store, seller.id, "4.00", "Late")
    store.add_to_cart(buyer.id, first.id)
    original_get_listing = store.get_listing

    def get_listing_while_buyer_adds_more(listing_id):
        # Another tab adds a book after checkout has read the cart.
        store.add_to_cart(buyer.id, late.id)
        return original_get_listing(listing_id)

    monkeypatch.setattr(store, "get_listing", get_listing_while_buyer_adds_more)

    result = CheckoutService(store).checkout(buyer.id, Decimal("12.50"))

    assert [line.listing_id for line in result.lines] == [first.id]
    assert [entry.listing_id for entry in store.get_cart_entries(buyer.id)] == [late.id]
    assert store.get_listing(late.id).is_available is True

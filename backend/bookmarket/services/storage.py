from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Iterable, List, Optional

from bookmarket.models.cart import CartEntry
from bookmarket.models.listing import Listing, ListingCreate
from bookmarket.models.message import Message
from bookmarket.models.order import Order, OrderLine, OrderStatus
from bookmarket.models.user import User, UserCreate


class DuplicateEmailError(Exception):
    """Raised by ``create_user`` when the email is already registered."""

    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email


class RecordStore(ABC):
    """Storage contract shared by the in-memory and SQL backends.

    Lookups return ``None`` for a missing id rather than raising. Collection
    reads come back in insertion order, except message threads, which are
    ordered by creation time.

    ``transaction()`` groups several calls so they apply together or not at
    all; calls made outside one are individually atomic.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        pass

    # Users

    @abstractmethod
    def create_user(self, user_data: UserCreate, hashed_password: str) -> User:
        """Raises DuplicateEmailError if the email is taken."""

    @abstractmethod
    def get_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def count_users(self) -> int:
        pass

    # Listings

    @abstractmethod
    def get_listings(
        self,
        category: Optional[str] = None,
        condition: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Listing]:
        """Available listings matching every filter that is given."""

    @abstractmethod
    def get_listing(self, listing_id: int) -> Optional[Listing]:
        pass

    @abstractmethod
    def get_listings_by_ids(self, listing_ids: Iterable[int]) -> List[Listing]:
        pass

    @abstractmethod
    def get_listings_by_seller(self, seller_id: int) -> List[Listing]:
        pass

    @abstractmethod
    def create_listing(self, listing_data: ListingCreate, seller_id: int) -> Listing:
        pass

    @abstractmethod
    def update_listing(self, listing_id: int, updates: dict) -> Optional[Listing]:
        pass

    @abstractmethod
    def delete_listing(self, listing_id: int) -> bool:
        pass

    @abstractmethod
    def mark_listing_sold(self, listing_id: int) -> bool:
        """Flip ``is_available`` to False only if it is currently True.

        Returns True when this call made the flip, so of two concurrent
        buyers exactly one wins the listing.
        """

    # Cart

    @abstractmethod
    def get_cart_entries(self, buyer_id: int) -> List[CartEntry]:
        pass

    @abstractmethod
    def get_cart_entry(self, buyer_id: int, listing_id: int) -> Optional[CartEntry]:
        pass

    @abstractmethod
    def add_to_cart(self, buyer_id: int, listing_id: int) -> CartEntry:
        """Return the existing entry if the listing is already in the cart."""

    @abstractmethod
    def remove_from_cart(self, buyer_id: int, listing_id: int) -> bool:
        pass

    @abstractmethod
    def clear_cart(self, buyer_id: int, listing_ids: Optional[Iterable[int]] = None) -> int:
        """Remove the buyer's entries, only those for ``listing_ids`` when given."""

    # Orders

    @abstractmethod
    def create_order(self, buyer_id: int, total: Decimal, status: OrderStatus) -> Order:
        pass

    @abstractmethod
    def get_orders_by_buyer(self, buyer_id: int) -> List[Order]:
        pass

    @abstractmethod
    def create_order_line(self, order_id: int, listing_id: int, price: Decimal) -> OrderLine:
        pass

    @abstractmethod
    def get_order_lines(self, order_id: int) -> List[OrderLine]:
        pass

    # Messages

    @abstractmethod
    def create_message(
        self,
        sender_id: int,
        receiver_id: int,
        content: str,
        listing_id: Optional[int] = None,
    ) -> Message:
        pass

    @abstractmethod
    def get_messages_between(self, user_a: int, user_b: int) -> List[Message]:
        pass

    @abstractmethod
    def get_conversation_partners(self, user_id: int) -> List[int]:
        """Ids of users ``user_id`` has exchanged messages with, most recent first."""


def listing_matches(
    listing: Listing,
    category: Optional[str] = None,
    condition: Optional[str] = None,
    search: Optional[str] = None,
) -> bool:
    if category and listing.category != category:
        return False
    if condition and listing.condition.value != condition:
        return False
    if search:
        term = search.lower()
        haystacks = (listing.title, listing.author, listing.description)
        if not any(term in h.lower() for h in haystacks):
            return False
    return True

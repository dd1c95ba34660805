import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from bookmarket.models.cart import CartEntry
from bookmarket.models.listing import Listing, ListingCreate
from bookmarket.models.message import Message
from bookmarket.models.order import Order, OrderLine, OrderStatus
from bookmarket.models.user import User, UserCreate
from bookmarket.services.storage import DuplicateEmailError, RecordStore, listing_matches
from bookmarket.utils.logger import logger

_TABLES = ("users", "listings", "cart", "orders", "order_lines", "messages")


class MemoryDatabase(RecordStore):
    """Process-local store: one dict per entity kind plus an id counter each.

    Records are replaced, never mutated in place, so a transaction can roll
    back by restoring shallow copies of the tables.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._tables: Dict[str, Dict[int, object]] = {name: {} for name in _TABLES}
        self._counters: Dict[str, int] = {name: 0 for name in _TABLES}
        logger.info("Initialized in-memory record store")

    def _next_id(self, table: str) -> int:
        self._counters[table] += 1
        return self._counters[table]

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    @contextmanager
    def transaction(self):
        with self._lock:
            tables = {name: dict(rows) for name, rows in self._tables.items()}
            counters = dict(self._counters)
            try:
                yield self
            except Exception:
                self._tables = tables
                self._counters = counters
                logger.warning("In-memory transaction rolled back")
                raise

    # Users

    def create_user(self, user_data: UserCreate, hashed_password: str) -> User:
        with self._lock:
            if any(u.email == user_data.email for u in self._tables["users"].values()):
                raise DuplicateEmailError(user_data.email)
            user = User(
                id=self._next_id("users"),
                email=user_data.email,
                name=user_data.name,
                hashed_password=hashed_password,
                role=user_data.role,
                created_at=self._now(),
            )
            self._tables["users"][user.id] = user
        logger.info(f"Created user: {user.email} with role: {user.role.value}")
        return user

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._tables["users"].get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            for user in self._tables["users"].values():
                if user.email == email:
                    return user
        return None

    def count_users(self) -> int:
        with self._lock:
            return len(self._tables["users"])

    # Listings

    def get_listings(
        self,
        category: Optional[str] = None,
        condition: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Listing]:
        with self._lock:
            rows = list(self._tables["listings"].values())
        return [
            listing for listing in rows
            if listing.is_available and listing_matches(listing, category, condition, search)
        ]

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        with self._lock:
            return self._tables["listings"].get(listing_id)

    def get_listings_by_ids(self, listing_ids: Iterable[int]) -> List[Listing]:
        wanted = set(listing_ids)
        with self._lock:
            return [l for l in self._tables["listings"].values() if l.id in wanted]

    def get_listings_by_seller(self, seller_id: int) -> List[Listing]:
        with self._lock:
            return [l for l in self._tables["listings"].values() if l.seller_id == seller_id]

    def create_listing(self, listing_data: ListingCreate, seller_id: int) -> Listing:
        with self._lock:
            listing = Listing(
                id=self._next_id("listings"),
                seller_id=seller_id,
                is_available=True,
                created_at=self._now(),
                **listing_data.model_dump(),
            )
            self._tables["listings"][listing.id] = listing
        return listing

    def update_listing(self, listing_id: int, updates: dict) -> Optional[Listing]:
        with self._lock:
            listing = self._tables["listings"].get(listing_id)
            if listing is None:
                return None
            if not updates:
                return listing
            changes = {k: v for k, v in updates.items() if k in Listing.model_fields and k != "id"}
            updated = listing.model_copy(update=changes)
            self._tables["listings"][listing_id] = updated
            return updated

    def delete_listing(self, listing_id: int) -> bool:
        with self._lock:
            removed = self._tables["listings"].pop(listing_id, None)
            if removed is None:
                return False
            cart = self._tables["cart"]
            for entry_id in [e.id for e in cart.values() if e.listing_id == listing_id]:
                del cart[entry_id]
            return True

    def mark_listing_sold(self, listing_id: int) -> bool:
        with self._lock:
            listing = self._tables["listings"].get(listing_id)
            if listing is None or not listing.is_available:
                return False
            self._tables["listings"][listing_id] = listing.model_copy(update={"is_available": False})
            return True

    # Cart

    def get_cart_entries(self, buyer_id: int) -> List[CartEntry]:
        with self._lock:
            return [e for e in self._tables["cart"].values() if e.buyer_id == buyer_id]

    def get_cart_entry(self, buyer_id: int, listing_id: int) -> Optional[CartEntry]:
        with self._lock:
            for entry in self._tables["cart"].values():
                if entry.buyer_id == buyer_id and entry.listing_id == listing_id:
                    return entry
        return None

    def add_to_cart(self, buyer_id: int, listing_id: int) -> CartEntry:
        with self._lock:
            existing = self.get_cart_entry(buyer_id, listing_id)
            if existing is not None:
                return existing
            entry = CartEntry(
                id=self._next_id("cart"),
                buyer_id=buyer_id,
                listing_id=listing_id,
                added_at=self._now(),
            )
            self._tables["cart"][entry.id] = entry
            return entry

    def remove_from_cart(self, buyer_id: int, listing_id: int) -> bool:
        with self._lock:
            entry = self.get_cart_entry(buyer_id, listing_id)
            if entry is None:
                return False
            del self._tables["cart"][entry.id]
            return True

    def clear_cart(self, buyer_id: int, listing_ids: Optional[Iterable[int]] = None) -> int:
        wanted = set(listing_ids) if listing_ids is not None else None
        with self._lock:
            cart = self._tables["cart"]
            entry_ids = [
                e.id for e in cart.values()
                if e.buyer_id == buyer_id and (wanted is None or e.listing_id in wanted)
            ]
            for entry_id in entry_ids:
                del cart[entry_id]
            return len(entry_ids)

    # Orders

    def create_order(self, buyer_id: int, total: Decimal, status: OrderStatus) -> Order:
        with self._lock:
            order = Order(
                id=self._next_id("orders"),
                buyer_id=buyer_id,
                total=total,
                status=status,
                created_at=self._now(),
            )
            self._tables["orders"][order.id] = order
            return order

    def get_orders_by_buyer(self, buyer_id: int) -> List[Order]:
        with self._lock:
            return [o for o in self._tables["orders"].values() if o.buyer_id == buyer_id]

    def create_order_line(self, order_id: int, listing_id: int, price: Decimal) -> OrderLine:
        with self._lock:
            line = OrderLine(
                id=self._next_id("order_lines"),
                order_id=order_id,
                listing_id=listing_id,
                price=price,
            )
            self._tables["order_lines"][line.id] = line
            return line

    def get_order_lines(self, order_id: int) -> List[OrderLine]:
        with self._lock:
            return [l for l in self._tables["order_lines"].values() if l.order_id == order_id]

    # Messages

    def create_message(
        self,
        sender_id: int,
        receiver_id: int,
        content: str,
        listing_id: Optional[int] = None,
    ) -> Message:
        with self._lock:
            message = Message(
                id=self._next_id("messages"),
                sender_id=sender_id,
                receiver_id=receiver_id,
                listing_id=listing_id,
                content=content,
                created_at=self._now(),
            )
            self._tables["messages"][message.id] = message
            return message

    def get_messages_between(self, user_a: int, user_b: int) -> List[Message]:
        pair = {user_a, user_b}
        with self._lock:
            thread = [
                m for m in self._tables["messages"].values()
                if {m.sender_id, m.receiver_id} == pair
            ]
        return sorted(thread, key=lambda m: (m.created_at, m.id))

    def get_conversation_partners(self, user_id: int) -> List[int]:
        with self._lock:
            messages = list(self._tables["messages"].values())
        partners: List[int] = []
        for m in sorted(messages, key=lambda m: (m.created_at, m.id), reverse=True):
            if m.sender_id == user_id:
                other = m.receiver_id
            elif m.receiver_id == user_id:
                other = m.sender_id
            else:
                continue
            if other not in partners:
                partners.append(other)
        return partners

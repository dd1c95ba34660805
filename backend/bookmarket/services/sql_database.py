import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookmarket.database import Base, create_db_engine, create_session_factory
from bookmarket.db_models import (
    CartEntry as CartEntryDB,
    Listing as ListingDB,
    Message as MessageDB,
    Order as OrderDB,
    OrderLine as OrderLineDB,
    User as UserDB,
)
from bookmarket.models.cart import CartEntry
from bookmarket.models.listing import Listing, ListingCondition, ListingCreate
from bookmarket.models.message import Message
from bookmarket.models.order import Order, OrderLine, OrderStatus
from bookmarket.models.user import User, UserCreate, UserRole
from bookmarket.services.storage import DuplicateEmailError, RecordStore
from bookmarket.utils.logger import logger

_CENTS = Decimal("0.01")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _money(value) -> Decimal:
    return Decimal(value).quantize(_CENTS)


class SQLDatabase(RecordStore):
    """SQLAlchemy-backed store (PostgreSQL in production, SQLite locally).

    Every call opens and commits its own session, unless the calling thread
    is inside ``transaction()``; then calls share that session and are
    committed or rolled back together when the block exits.
    """

    def __init__(self, database_url: str, create_tables: bool = False):
        self.engine = create_db_engine(database_url)
        self.SessionLocal = create_session_factory(self.engine)
        self._local = threading.local()
        if create_tables:
            Base.metadata.create_all(bind=self.engine)
        logger.info(f"Initialized SQL record store ({self.engine.url.get_backend_name()})")

    @contextmanager
    def _session(self):
        active: Optional[Session] = getattr(self._local, "session", None)
        if active is not None:
            yield active
            active.flush()
            return

        db: Session = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def transaction(self):
        if getattr(self._local, "session", None) is not None:
            # Nested blocks join the outer transaction.
            yield self
            return

        db: Session = self.SessionLocal()
        self._local.session = db
        try:
            yield self
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning(f"SQL transaction rolled back: {type(e).__name__}: {e}")
            raise
        finally:
            self._local.session = None
            db.close()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    # Users

    def create_user(self, user_data: UserCreate, hashed_password: str) -> User:
        try:
            with self._session() as db:
                db_user = UserDB(
                    email=user_data.email,
                    name=user_data.name,
                    hashed_password=hashed_password,
                    role=user_data.role.value,
                    created_at=self._now(),
                )
                db.add(db_user)
                db.flush()
                user = self._user_to_model(db_user)
        except IntegrityError as e:
            # users.email is unique; a concurrent registration got there first.
            raise DuplicateEmailError(user_data.email) from e
        logger.info(f"Created user: {user.email} with role: {user.role.value}")
        return user

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._session() as db:
            db_user = db.get(UserDB, user_id)
            return self._user_to_model(db_user) if db_user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._session() as db:
            try:
                db_user = db.query(UserDB).filter(UserDB.email == email).first()
            except Exception as e:
                logger.error(f"Database error in get_user_by_email for {email}: {type(e).__name__}: {str(e)}")
                raise
            return self._user_to_model(db_user) if db_user else None

    def count_users(self) -> int:
        with self._session() as db:
            return db.query(UserDB).count()

    # Listings

    def get_listings(
        self,
        category: Optional[str] = None,
        condition: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Listing]:
        with self._session() as db:
            query = db.query(ListingDB).filter(ListingDB.is_available.is_(True))
            if category:
                query = query.filter(ListingDB.category == category)
            if condition:
                query = query.filter(ListingDB.condition == condition)
            if search:
                query = query.filter(
                    or_(
                        ListingDB.title.icontains(search, autoescape=True),
                        ListingDB.author.icontains(search, autoescape=True),
                        ListingDB.description.icontains(search, autoescape=True),
                    )
                )
            return [self._listing_to_model(row) for row in query.order_by(ListingDB.id).all()]

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        with self._session() as db:
            row = db.get(ListingDB, listing_id)
            return self._listing_to_model(row) if row else None

    def get_listings_by_ids(self, listing_ids: Iterable[int]) -> List[Listing]:
        ids = list(set(listing_ids))
        if not ids:
            return []
        with self._session() as db:
            rows = db.query(ListingDB).filter(ListingDB.id.in_(ids)).order_by(ListingDB.id).all()
            return [self._listing_to_model(row) for row in rows]

    def get_listings_by_seller(self, seller_id: int) -> List[Listing]:
        with self._session() as db:
            rows = (
                db.query(ListingDB)
                .filter(ListingDB.seller_id == seller_id)
                .order_by(ListingDB.id)
                .all()
            )
            return [self._listing_to_model(row) for row in rows]

    def create_listing(self, listing_data: ListingCreate, seller_id: int) -> Listing:
        with self._session() as db:
            row = ListingDB(
                seller_id=seller_id,
                title=listing_data.title,
                author=listing_data.author,
                description=listing_data.description,
                price=listing_data.price,
                condition=listing_data.condition.value,
                category=listing_data.category,
                image_url=listing_data.image_url,
                is_available=True,
                created_at=self._now(),
            )
            db.add(row)
            db.flush()
            return self._listing_to_model(row)

    def update_listing(self, listing_id: int, updates: dict) -> Optional[Listing]:
        with self._session() as db:
            row = db.get(ListingDB, listing_id)
            if row is None:
                return None
            for key, value in updates.items():
                if key == "id" or not hasattr(row, key):
                    continue
                if isinstance(value, ListingCondition):
                    value = value.value
                setattr(row, key, value)
            db.flush()
            return self._listing_to_model(row)

    def delete_listing(self, listing_id: int) -> bool:
        with self._session() as db:
            row = db.get(ListingDB, listing_id)
            if row is None:
                return False
            db.query(CartEntryDB).filter(CartEntryDB.listing_id == listing_id).delete(
                synchronize_session=False
            )
            db.delete(row)
            return True

    def mark_listing_sold(self, listing_id: int) -> bool:
        listings = ListingDB.__table__
        with self._session() as db:
            result = db.execute(
                update(listings)
                .where(listings.c.id == listing_id, listings.c.is_available.is_(True))
                .values(is_available=False)
            )
            # Core statement; drop any cached copy so later reads see the flip.
            db.expire_all()
            return result.rowcount == 1

    # Cart

    def get_cart_entries(self, buyer_id: int) -> List[CartEntry]:
        with self._session() as db:
            rows = (
                db.query(CartEntryDB)
                .filter(CartEntryDB.buyer_id == buyer_id)
                .order_by(CartEntryDB.id)
                .all()
            )
            return [CartEntry(id=r.id, buyer_id=r.buyer_id, listing_id=r.listing_id,
                              added_at=_aware(r.added_at)) for r in rows]

    def get_cart_entry(self, buyer_id: int, listing_id: int) -> Optional[CartEntry]:
        with self._session() as db:
            r = (
                db.query(CartEntryDB)
                .filter(CartEntryDB.buyer_id == buyer_id, CartEntryDB.listing_id == listing_id)
                .first()
            )
            if r is None:
                return None
            return CartEntry(id=r.id, buyer_id=r.buyer_id, listing_id=r.listing_id,
                             added_at=_aware(r.added_at))

    def add_to_cart(self, buyer_id: int, listing_id: int) -> CartEntry:
        try:
            with self.transaction():
                existing = self.get_cart_entry(buyer_id, listing_id)
                if existing is not None:
                    return existing
                with self._session() as db:
                    r = CartEntryDB(buyer_id=buyer_id, listing_id=listing_id, added_at=self._now())
                    db.add(r)
                    db.flush()
                    return CartEntry(id=r.id, buyer_id=r.buyer_id, listing_id=r.listing_id,
                                     added_at=_aware(r.added_at))
        except IntegrityError:
            # Lost a race on (buyer_id, listing_id). Inside an outer transaction
            # the session is unusable, so only recover on our own one.
            if getattr(self._local, "session", None) is not None:
                raise
            existing = self.get_cart_entry(buyer_id, listing_id)
            if existing is None:
                raise
            logger.info(f"Cart: buyer={buyer_id} listing={listing_id} was added concurrently")
            return existing

    def remove_from_cart(self, buyer_id: int, listing_id: int) -> bool:
        with self._session() as db:
            removed = (
                db.query(CartEntryDB)
                .filter(CartEntryDB.buyer_id == buyer_id, CartEntryDB.listing_id == listing_id)
                .delete(synchronize_session=False)
            )
            return removed > 0

    def clear_cart(self, buyer_id: int, listing_ids: Optional[Iterable[int]] = None) -> int:
        with self._session() as db:
            query = db.query(CartEntryDB).filter(CartEntryDB.buyer_id == buyer_id)
            if listing_ids is not None:
                query = query.filter(CartEntryDB.listing_id.in_(list(listing_ids)))
            return query.delete(synchronize_session=False)

    # Orders

    def create_order(self, buyer_id: int, total: Decimal, status: OrderStatus) -> Order:
        with self._session() as db:
            row = OrderDB(buyer_id=buyer_id, total=total, status=status.value, created_at=self._now())
            db.add(row)
            db.flush()
            return self._order_to_model(row)

    def get_orders_by_buyer(self, buyer_id: int) -> List[Order]:
        with self._session() as db:
            rows = db.query(OrderDB).filter(OrderDB.buyer_id == buyer_id).order_by(OrderDB.id).all()
            return [self._order_to_model(row) for row in rows]

    def create_order_line(self, order_id: int, listing_id: int, price: Decimal) -> OrderLine:
        with self._session() as db:
            row = OrderLineDB(order_id=order_id, listing_id=listing_id, price=price)
            db.add(row)
            db.flush()
            return OrderLine(id=row.id, order_id=row.order_id, listing_id=row.listing_id,
                             price=_money(row.price))

    def get_order_lines(self, order_id: int) -> List[OrderLine]:
        with self._session() as db:
            rows = (
                db.query(OrderLineDB)
                .filter(OrderLineDB.order_id == order_id)
                .order_by(OrderLineDB.id)
                .all()
            )
            return [OrderLine(id=r.id, order_id=r.order_id, listing_id=r.listing_id,
                              price=_money(r.price)) for r in rows]

    # Messages

    def create_message(
        self,
        sender_id: int,
        receiver_id: int,
        content: str,
        listing_id: Optional[int] = None,
    ) -> Message:
        with self._session() as db:
            row = MessageDB(
                sender_id=sender_id,
                receiver_id=receiver_id,
                listing_id=listing_id,
                content=content,
                created_at=self._now(),
            )
            db.add(row)
            db.flush()
            return self._message_to_model(row)

    def get_messages_between(self, user_a: int, user_b: int) -> List[Message]:
        with self._session() as db:
            rows = (
                db.query(MessageDB)
                .filter(
                    or_(
                        (MessageDB.sender_id == user_a) & (MessageDB.receiver_id == user_b),
                        (MessageDB.sender_id == user_b) & (MessageDB.receiver_id == user_a),
                    )
                )
                .order_by(MessageDB.created_at.asc(), MessageDB.id.asc())
                .all()
            )
            return [self._message_to_model(row) for row in rows]

    def get_conversation_partners(self, user_id: int) -> List[int]:
        with self._session() as db:
            rows = (
                db.query(MessageDB.sender_id, MessageDB.receiver_id)
                .filter(or_(MessageDB.sender_id == user_id, MessageDB.receiver_id == user_id))
                .order_by(MessageDB.created_at.desc(), MessageDB.id.desc())
                .all()
            )
        partners: List[int] = []
        for sender_id, receiver_id in rows:
            other = receiver_id if sender_id == user_id else sender_id
            if other not in partners:
                partners.append(other)
        return partners

    # Row conversion

    def _user_to_model(self, db_user: UserDB) -> User:
        return User(
            id=db_user.id,
            email=db_user.email,
            name=db_user.name,
            hashed_password=db_user.hashed_password,
            role=UserRole(db_user.role),
            created_at=_aware(db_user.created_at),
        )

    def _listing_to_model(self, row: ListingDB) -> Listing:
        return Listing(
            id=row.id,
            title=row.title,
            author=row.author,
            description=row.description,
            price=_money(row.price),
            condition=ListingCondition(row.condition),
            category=row.category,
            image_url=row.image_url,
            seller_id=row.seller_id,
            is_available=bool(row.is_available),
            created_at=_aware(row.created_at),
        )

    def _order_to_model(self, row: OrderDB) -> Order:
        return Order(
            id=row.id,
            buyer_id=row.buyer_id,
            total=_money(row.total),
            status=OrderStatus(row.status),
            created_at=_aware(row.created_at),
        )

    def _message_to_model(self, row: MessageDB) -> Message:
        return Message(
            id=row.id,
            sender_id=row.sender_id,
            receiver_id=row.receiver_id,
            listing_id=row.listing_id,
            content=row.content,
            created_at=_aware(row.created_at),
        )

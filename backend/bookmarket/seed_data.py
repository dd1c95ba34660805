from decimal import Decimal

from bookmarket.models.listing import ListingCondition, ListingCreate
from bookmarket.models.user import UserCreate, UserRole
from bookmarket.services.auth import get_password_hash
from bookmarket.services.storage import RecordStore
from bookmarket.utils.logger import logger

DEMO_SELLER_EMAIL = "seller@example.com"
DEMO_BUYER_EMAIL = "buyer@example.com"
DEMO_PASSWORD = "demo1234"

DEMO_BOOKS = [
    {
        "title": "The Left Hand of Darkness",
        "author": "Ursula K. Le Guin",
        "description": "Paperback, light shelf wear, no markings inside.",
        "price": Decimal("12.50"),
        "condition": ListingCondition.VERY_GOOD,
        "category": "fiction",
    },
    {
        "title": "Introduction to Algorithms",
        "author": "Cormen, Leiserson, Rivest, Stein",
        "description": "Third edition hardcover. Some highlighting in chapters 2-4.",
        "price": Decimal("38.00"),
        "condition": ListingCondition.GOOD,
        "category": "academic",
    },
    {
        "title": "Where the Wild Things Are",
        "author": "Maurice Sendak",
        "description": "Hardcover picture book, dust jacket included.",
        "price": Decimal("8.00"),
        "condition": ListingCondition.LIKE_NEW,
        "category": "children",
    },
    {
        "title": "A Brief History of Time",
        "author": "Stephen Hawking",
        "description": "Mass-market paperback, cracked spine, all pages intact.",
        "price": Decimal("4.25"),
        "condition": ListingCondition.ACCEPTABLE,
        "category": "non_fiction",
    },
]


def seed_data(store: RecordStore) -> bool:
    """Create a demo seller, a demo buyer and a few books in an empty store.

    Returns False without touching anything if the store already has users.
    """
    if store.count_users() > 0:
        logger.info("Seed skipped: store already has users")
        return False

    logger.info("Seeding store with demo data...")
    hashed = get_password_hash(DEMO_PASSWORD)
    with store.transaction():
        seller = store.create_user(
            UserCreate(email=DEMO_SELLER_EMAIL, password=DEMO_PASSWORD, name="Demo Seller", role=UserRole.SELLER),
            hashed,
        )
        store.create_user(
            UserCreate(email=DEMO_BUYER_EMAIL, password=DEMO_PASSWORD, name="Demo Buyer", role=UserRole.BUYER),
            hashed,
        )
        for book in DEMO_BOOKS:
            store.create_listing(ListingCreate(**book), seller.id)

    logger.info(f"Seeded {len(DEMO_BOOKS)} listings for {DEMO_SELLER_EMAIL}")
    return True


if __name__ == "__main__":
    from bookmarket.services.database import db

    seed_data(db)

from bookmarket.config import settings
from bookmarket.database import Base, create_db_engine
from bookmarket.db_models import (  # noqa: F401  (registers the tables on Base)
    User, Listing, CartEntry, Order, OrderLine, Message
)


def init_db(database_url: str = None):
    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set; nothing to initialize.")
    print("Creating database tables...")
    engine = create_db_engine(database_url)
    Base.metadata.create_all(bind=engine)
    print("Database tables created successfully!")


if __name__ == "__main__":
    init_db()

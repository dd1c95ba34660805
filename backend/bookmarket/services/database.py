from bookmarket.config import settings
from bookmarket.services.storage import RecordStore


def build_database() -> RecordStore:
    if settings.use_sql_storage:
        from bookmarket.services.sql_database import SQLDatabase
        # Local SQLite files get their tables on the spot; Postgres goes through Alembic.
        return SQLDatabase(settings.DATABASE_URL, create_tables=settings.DATABASE_URL.startswith("sqlite"))
    from bookmarket.services.memory_database import MemoryDatabase
    return MemoryDatabase()


db = build_database()


def get_database() -> RecordStore:
    """FastAPI dependency; tests override it with a fresh store."""
    return db

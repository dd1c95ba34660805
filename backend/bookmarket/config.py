from pydantic_settings import BaseSettings
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    # Default token lifetime (in minutes). Adjust via ACCESS_TOKEN_EXPIRE_MINUTES env var.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    DEBUG: bool = False

    @property
    def secret_key(self) -> str:
        return self.JWT_SECRET or self.SECRET_KEY

    # Record store backend: "memory" keeps everything in process (tests, demos),
    # "sql" goes through SQLAlchemy to DATABASE_URL. The two are never mixed.
    STORAGE_BACKEND: str = "memory"
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Listing images are written here and served under /uploads.
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # When True, a demo seller with a handful of books is created at startup
    # if the store has no users yet.
    SEED_DEMO_DATA: bool = False

    class Config:
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def use_sql_storage(self) -> bool:
        return self.STORAGE_BACKEND.strip().lower() == "sql"


settings = Settings()

if settings.use_sql_storage and not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL is required when STORAGE_BACKEND=sql.")

from collections.abc import Generator
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker


class DatabaseSettings(BaseSettings):
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "fleetpay"
    db_host: str = "db"
    db_port: int = 5432
    database_url: str | None = None
    db_echo: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("database_url", mode="before")
    @classmethod
    def _psycopg2_scheme(cls, v: str | None) -> str | None:
        # Hosted Postgres hands out postgres:// URLs, which SQLAlchemy rejects
        if isinstance(v, str):
            for prefix in ("postgres://", "postgresql://"):
                if v.startswith(prefix):
                    return "postgresql+psycopg2://" + v[len(prefix):]
        return v or None

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            "postgresql+psycopg2://"
            f"{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )


def engine_options(url: str, echo: bool = False) -> dict[str, Any]:
    """create_engine kwargs for the payout store. SQLite is for local runs only."""
    if url.startswith("sqlite"):
        return {"echo": echo, "connect_args": {"check_same_thread": False}}
    return {"echo": echo, "pool_pre_ping": True}


db_settings = DatabaseSettings()
DATABASE_URL = db_settings.resolved_database_url

engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL, db_settings.db_echo))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database_connection() -> bool:
    """Round-trip a trivial query; raises if the payout store is unreachable."""
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    return True

import os
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from errors import InternalError

logger = structlog.get_logger(__name__)

Base = declarative_base()


def build_database_url(configured: Optional[str] = None) -> str:
    """Determine the SQLAlchemy DB URL using settings/env vars with sensible fallbacks."""
    if configured:
        return configured

    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url

    host = os.getenv("DB_HOST")
    if host:
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "")
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "postgres")
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"

    # Default to local SQLite file for simple local development
    return "sqlite:///./jobtrail.db"


class Database:
    """Owns one engine and its session factory.

    Constructed explicitly at startup (or per test) and handed to whatever
    needs a session, so nothing reaches for a process-wide connection.
    """

    def __init__(self, url: Optional[str] = None) -> None:
        self.url = build_database_url(url)
        self.is_sqlite = self.url.startswith("sqlite")

        # Extra connect args only relevant for SQLite
        if self.is_sqlite:
            self.engine = create_engine(
                self.url,
                connect_args={
                    "check_same_thread": False,
                    "timeout": 15,
                },
                pool_pre_ping=True,
            )
            event.listen(self.engine, "connect", _set_sqlite_pragma)
        else:
            self.engine = create_engine(self.url, pool_pre_ping=True)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_all(self) -> None:
        # Import for side effect: registers the tables on Base.metadata
        import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA busy_timeout = 5000")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        # ON DELETE CASCADE is ignored by SQLite unless enabled per connection
        cursor.execute("PRAGMA foreign_keys=ON;")
    finally:
        cursor.close()


@contextmanager
def transaction(db: Session, failure_message: Optional[str] = None) -> Iterator[Session]:
    """Commit everything written inside the block, or roll all of it back.

    With ``failure_message`` set, store errors are re-raised as
    ``InternalError`` carrying that message instead of the driver's text.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        if failure_message is None:
            raise
        logger.error("Transaction rolled back", failure=failure_message, exc_info=exc)
        raise InternalError(failure_message) from exc
    except Exception:
        db.rollback()
        raise


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()

"""Engine/session helpers for the SQL backend."""
from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from accounts.core.config import get_settings
from accounts.core.logger import get_logger

log = get_logger(__name__)

Base = declarative_base()


@lru_cache
def get_engine():
    settings = get_settings()
    url = (settings.database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be configured to use the SQL backend.")
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {"connect_timeout": 10}
    return create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)


@lru_cache
def _get_sessionmaker():
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def get_session() -> Session:
    session: Session = _get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


def init_schema(*, reset: bool = False) -> None:
    """Create every table known to the models; ``reset`` drops them first."""
    from accounts.db import models  # noqa: F401  # registra as tabelas no metadata

    engine = get_engine()
    if reset:
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    log.info("Schema ready on %s", engine.url.render_as_string(hide_password=True))


if __name__ == "__main__":
    try:
        init_schema()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Schema creation failed: {exc}") from exc

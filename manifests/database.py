from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from manifests import config
from manifests.models import Base


def _is_memory_sqlite(url) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_ledger_engine(database_url: str = config.DATABASE_URL):
    """
    Create the SQLAlchemy engine backing the ledger.

    An in-memory SQLite URL ('sqlite://') shares a single connection so every
    session sees the same database.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, pool_pre_ping=True)

    if _is_memory_sqlite(url):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, connect_args={"check_same_thread": False})


def create_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = create_ledger_engine()
SessionLocal = create_session_factory(engine)


def init_db(bind=None):
    bind = bind or engine
    url = bind.url
    if url.get_backend_name() == "sqlite" and not _is_memory_sqlite(url):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=bind)

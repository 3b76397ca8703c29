"""SQL backend engine: the push tables live in DATABASE_URL when STORE_BACKEND=sql."""
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine


def normalized_database_url(raw_url: str) -> str:
    """Postgres URLs are pointed at the psycopg (v3) driver; an empty URL means a local SQLite file."""
    url = (raw_url or "").strip() or "sqlite:///./livepush.db"
    scheme, sep, rest = url.partition("://")
    if scheme in ("postgres", "postgresql"):
        return f"postgresql+psycopg{sep}{rest}"
    return url


def create_db_engine(raw_url: str) -> Engine:
    url = normalized_database_url(raw_url)
    if not url.startswith("sqlite"):
        return create_engine(url)
    if ":memory:" in url:
        # one shared connection, otherwise every session sees an empty database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


def init_db(engine: Engine) -> None:
    from livepush import models  # noqa: F401

    SQLModel.metadata.create_all(engine)

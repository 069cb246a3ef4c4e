from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from retailpos.core.config import settings


def build_engine(database_url: str) -> Engine:
    """SQLite gets a thread-shareable connection; networked databases get a tuned pool."""
    if database_url.lower().startswith("sqlite"):
        options: dict[str, object] = {"connect_args": {"check_same_thread": False}}
        if database_url.rstrip("/") == "sqlite:" or ":memory:" in database_url:
            # One shared connection, otherwise every checkout sees an empty database.
            options["poolclass"] = StaticPool
        return create_engine(database_url, **options)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
        pool_recycle=settings.db_pool_recycle_seconds,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = build_engine(settings.database_url)
SessionLocal = make_session_factory(engine)

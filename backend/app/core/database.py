from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings


def _engine_options(database_url: str) -> dict:
    """Connection options per backend. Connecting, waiting for the pool and running statements are all bounded."""
    if database_url.startswith("sqlite"):
        # timeout bounds the wait on a locked database file
        options = {"connect_args": {"check_same_thread": False, "timeout": settings.DB_CONNECT_TIMEOUT_SECONDS}}
        # In-memory SQLite lives inside a single connection, so every session must share it
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options

    options = {"pool_pre_ping": True, "pool_timeout": settings.DB_POOL_TIMEOUT_SECONDS}
    if database_url.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        }
    return options


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

# autocommit=False: Changes require explicit commit
# autoflush=False: Don't auto-flush before queries
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Dependency for getting database session.

    The session is closed after the request completes, even when the handler raises.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

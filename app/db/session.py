from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from app.config.settings import Settings, settings


def engine_options(config: Settings) -> Dict[str, Any]:
    """Pool and driver options for the configured database URL"""
    options: Dict[str, Any] = {"pool_pre_ping": True, "echo": config.DB_ECHO}

    # SQLite is only used for local runs; it has no server-side pool or timeout
    if make_url(config.DATABASE_URL).get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_recycle=3600,
        connect_args={"connect_timeout": 30},
        isolation_level="READ COMMITTED",
    )
    return options


engine = create_engine(settings.DATABASE_URL, **engine_options(settings))

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_sync_session():
    """Dependency to get a database session, one per request"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

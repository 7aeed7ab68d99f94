"""
Engine, session factory and the declarative base.

Every connection carries a statement timeout, so a stuck query surfaces as
OperationalError and is answered with a 503 (see core/exception_handlers.py)
instead of holding a worker indefinitely.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import settings


def _postgres_connect_args() -> dict:
    return {
        "connect_timeout": settings.database_connect_timeout,
        "options": f"-c statement_timeout={settings.database_timeout_ms}",
    }


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,   # drop dead connections before handing them out
    pool_size=10,
    max_overflow=20,
    pool_recycle=1800,
    connect_args=_postgres_connect_args(),
)

# Commits are explicit in the services; nothing is flushed behind their back.
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase):
    pass


def get_db():
    """
    Request-scoped session. Anything left uncommitted when the endpoint raises
    is rolled back before the session goes back to the pool.
    """
    db: Session = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

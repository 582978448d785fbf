from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from clientdesk.config import settings


class Base(DeclarativeBase):
    pass


def get_engine():
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Database session dependency for FastAPI.

    Yields a session and closes it once the request finishes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

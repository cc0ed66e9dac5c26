"""
Database connection and session management.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
import os

# Database URL - required environment variable
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine)


@contextmanager
def get_db_context(session_factory=None):
    """
    Context manager for a database session that commits on success
    and rolls back on any error.

    Usage:
        with get_db_context() as db:
            db.add(row)
    """
    db: Session = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind=None):
    """
    Initialize the database by creating all tables.
    """
    from orderflow.db_models import Base

    Base.metadata.create_all(bind=bind or engine)

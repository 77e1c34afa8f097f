"""
Database connection management for the Field Service CRM.
Handles SQLAlchemy engine creation, session management, and connection verification.
"""

import os
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# SQLAlchemy Base for model declarations
Base = declarative_base()

# Engine and SessionLocal are created by init_engine() or lazily on first use
engine = None
SessionLocal = None


def _resolve_url(url=None):
    url = url or os.environ.get('DATABASE_URL')
    if not url:
        from config import get_config
        url = get_config().DATABASE_URL
    # Render's postgres:// vs postgresql:// URL format
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


def init_engine(url=None, echo=False):
    """
    Create the engine and session factory for the given URL.

    An in-memory SQLite URL shares one connection across threads so the
    schema survives between sessions.
    """
    global engine, SessionLocal

    url = _resolve_url(url)

    if url.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            kwargs['poolclass'] = StaticPool
    else:
        kwargs = {
            'pool_size': 5,
            'max_overflow': 10,
            'pool_pre_ping': True,  # Verify connections before using
            'pool_recycle': 300,    # Recycle connections after 5 minutes
        }

    try:
        engine = create_engine(url, echo=echo, **kwargs)
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise RuntimeError(f"Failed to connect to database: {e}")

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info(f"Database engine created ({engine.dialect.name})")
    return engine


def get_engine():
    """Get or create the SQLAlchemy engine."""
    if engine is None:
        init_engine()
    return engine


def get_session_factory():
    """Get or create the session factory."""
    if SessionLocal is None:
        init_engine()
    return SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for getting a database session.
    Commits on success, rolls back on any exception.

    Example:
        with get_db_session() as db:
            contacts = db.query(Contact).all()
    """
    session_factory = get_session_factory()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection():
    """
    Verify that the database connection is working.
    Returns True if connection is successful, raises exception otherwise.
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise RuntimeError(f"Cannot connect to database: {e}")


def init_db():
    """
    Create all tables that do not exist yet.
    Production schemas are managed by Alembic instead.
    """
    # Import models to ensure they're registered with Base
    from database import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables created/verified")


def drop_db():
    """Drop every table. Used by the test suite."""
    from database import models  # noqa: F401

    Base.metadata.drop_all(bind=get_engine())

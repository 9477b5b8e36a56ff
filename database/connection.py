"""
Database connection management for the Operations Console.
Handles SQLAlchemy engine creation, session factories and connection verification.

The schema is owned by the data store; the application only binds sessions to it.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# SQLAlchemy Base for model declarations
Base = declarative_base()


def normalize_database_url(database_url):
    """Handle hosted postgres:// vs postgresql:// URL format."""
    if database_url and database_url.startswith('postgres://'):
        return database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


def create_db_engine(database_url, **engine_options):
    """
    Create the SQLAlchemy engine for the configured store.

    Args:
        database_url: SQLAlchemy database URL
        engine_options: Extra keyword arguments for create_engine

    Returns:
        Engine instance

    Raises:
        RuntimeError: If no URL is configured or the engine cannot be created
    """
    database_url = normalize_database_url(database_url)
    if not database_url:
        logger.error("DATABASE_URL is not configured!")
        raise RuntimeError(
            "DATABASE_URL not configured. Cannot connect to the data store. "
            "Please set the DATABASE_URL environment variable."
        )

    options = dict(engine_options)
    if database_url.startswith('sqlite'):
        # pool options do not apply to SQLite
        options.pop('pool_recycle', None)
        options.pop('pool_size', None)
        options.pop('max_overflow', None)
        options.setdefault('connect_args', {'check_same_thread': False})
        if ':memory:' in database_url or database_url in ('sqlite://', 'sqlite:///'):
            options['poolclass'] = StaticPool

    try:
        engine = create_engine(database_url, **options)
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}")
        raise RuntimeError(f"Failed to connect to database: {e}")

    if database_url.startswith('sqlite'):
        @event.listens_for(engine, 'connect')
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

    logger.info("Database engine created successfully")
    return engine


def create_session_factory(engine):
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def get_db_session(session_factory):
    """
    Context manager for getting a database session.
    Use this in non-route code.

    Example:
        with get_db_session(factory) as db:
            customers = db.query(Customer).all()
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection(engine):
    """
    Verify that the database connection is working.
    Returns True if connection is successful, raises exception otherwise.
    """
    try:
        with engine.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            result.fetchone()
        logger.info("Database connection verified successfully")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise RuntimeError(f"Cannot connect to database: {e}")


def init_db(engine):
    """
    Create all tables known to the models.
    Used for local development and tests; hosted stores manage their own schema.
    """
    # Import models to ensure they're registered with Base
    from database import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

"""
PostgreSQL database access

This module centralizes every way of reaching the database:
- psycopg2 direct connections (repositories use raw SQL with RealDictCursor)
- SQLAlchemy engine (schema declaration and creation only)
- Supabase client (storage uploads for the media library)

Engine and Supabase client are built lazily so that importing the
application never requires a configured environment.
"""
import logging
import time
from functools import lru_cache

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from supabase import Client, create_client

from .config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# SQLAlchemy Configuration (schema models)
# ============================================================================

Base = declarative_base()


@lru_cache(maxsize=1)
def get_engine():
    """Build the SQLAlchemy engine on first use"""
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL not configured")

    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def init_schema():
    """
    Create all tables declared in storefront.models

    Idempotent: existing tables are left untouched.
    """
    # Import registers every model on Base.metadata
    from storefront import models  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Schema initialized ({len(Base.metadata.tables)} tables)")


# ============================================================================
# psycopg2 Direct Connections (raw SQL)
# ============================================================================

def _database_url() -> str:
    database_url = settings.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL not configured")
    return database_url


def get_db_connection():
    """
    Get a direct psycopg2 database connection (returns tuples)

    Returns:
        psycopg2 connection object

    Raises:
        RuntimeError if DATABASE_URL is not configured
    """
    return psycopg2.connect(_database_url())


def get_db_connection_dict():
    """
    Get a database connection with RealDictCursor (returns dictionaries)

    This is the connection every repository uses.

    Example:
        conn = get_db_connection_dict()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders WHERE tenant_id = %s", (tenant_id,))
        results = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    return psycopg2.connect(_database_url(), cursor_factory=RealDictCursor)


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0, dict_cursor=False):
    """
    Get a psycopg2 connection with automatic retry on connection failures

    Retries up to max_retries times with exponential backoff between
    attempts. Non-connection errors fail immediately.

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)
        dict_cursor: Use RealDictCursor for the connection

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    database_url = _database_url()
    connect_kwargs = {"cursor_factory": RealDictCursor} if dict_cursor else {}
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(database_url, **connect_kwargs)

            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            error_msg = str(e)

            if "SSL connection has been closed unexpectedly" in error_msg:
                logger.warning(f"SSL connection error on attempt {attempt}/{max_retries}: {error_msg}")
            else:
                logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {error_msg}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise

    raise last_error if last_error else RuntimeError("Connection failed after all retries")


# ============================================================================
# Supabase Client (storage)
# ============================================================================

@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    FastAPI dependency returning the Supabase client

    Usage:
        @router.post("/upload")
        def upload(sb: Client = Depends(get_supabase)):
            ...
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Supabase credentials not configured")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)

"""
PostgreSQL database access

This module centralizes every way the backend reaches the database:
- SQLAlchemy declarative models (schema definition, init_db)
- psycopg2 direct connections (raw SQL in repositories)
"""
import time
import logging

import psycopg2
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)

CONNECTION_TIMEOUT = 10


# ============================================================================
# SQLAlchemy Configuration (schema)
# ============================================================================

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# ============================================================================
# psycopg2 Direct Connections (for raw SQL queries)
# ============================================================================

def get_db_connection_dict():
    """
    Get a database connection with RealDictCursor (returns dictionaries)

    Example:
        conn = get_db_connection_dict()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM orders")
        results = cursor.fetchall()  # Returns list of dicts
        cursor.close()
        conn.close()
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    return psycopg2.connect(
        database_url,
        cursor_factory=RealDictCursor,
        connect_timeout=CONNECTION_TIMEOUT
    )


# ============================================================================
# Database Connection with Retry Logic
# ============================================================================

def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    """
    Get a RealDictCursor connection with automatic retry on connection failures

    OperationalError is retried with exponential backoff; the connection is
    checked with SELECT 1 before it is handed back.

    Args:
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Raises:
        psycopg2.OperationalError: If all retry attempts fail
    """
    database_url = settings.DATABASE_URL
    if not database_url:
        raise Exception("DATABASE_URL not configured")

    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            conn = psycopg2.connect(
                database_url,
                cursor_factory=RealDictCursor,
                connect_timeout=CONNECTION_TIMEOUT
            )

            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()

            logger.debug(f"Database connection successful on attempt {attempt}")
            return conn

        except psycopg2.OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")
                raise

    raise last_error if last_error else Exception("Connection failed after all retries")


# ============================================================================
# Schema bootstrap
# ============================================================================

# Descriptive only; endpoints enforce access through the role hierarchy
DEFAULT_ROLES = [
    ("admin", "Full access, including user management", ["*"]),
    ("manager", "Everything except user management; may delete records", [
        "warehouses.*", "orders.*", "customers.*", "products.*",
        "dashboard.read", "insights.read",
    ]),
    ("staff", "Create and update warehouses, orders, customers and products", [
        "warehouses.read", "warehouses.write", "orders.read", "orders.write",
        "customers.read", "customers.write", "products.read", "products.write",
        "dashboard.read", "insights.read",
    ]),
    ("viewer", "Read-only access", [
        "warehouses.read", "orders.read", "customers.read", "products.read",
        "dashboard.read", "insights.read",
    ]),
]


def init_db():
    """Create every table and seed the default roles."""
    # Models must be imported so they register on Base.metadata
    from app import models  # noqa: F401
    from app.models.user import Role

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        for name, description, permissions in DEFAULT_ROLES:
            if not db.query(Role).filter(Role.name == name).first():
                db.add(Role(name=name, description=description, permissions=permissions))
        db.commit()
        logger.info("Database schema created and roles seeded")
    finally:
        db.close()

#!/usr/bin/env python3
"""
Database Utilities - Unified for Scripts and Backend
Supports both pooled (Flask backend) and non-pooled (scripts) modes

Configuration:
    DATABASE_URL, or DB_HOST / DB_NAME / DB_USER / DB_PASSWORD / DB_PORT
    DB_SSLMODE (default: require)
    Set DB_USE_POOLING=true to enable pooling (for Flask)
    Leave unset or false for simple connections (for scripts)
"""

import os
import logging
import time
import threading
from contextlib import contextmanager
from typing import Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)


class DatabaseNotConfiguredError(RuntimeError):
    """Raised when neither DATABASE_URL nor DB_HOST is set"""


# ============================================================================
# CONFIGURATION
# ============================================================================

def use_pooling() -> bool:
    """Pooling mode is read at call time so entry points can opt in after import"""
    return os.environ.get('DB_USE_POOLING', 'false').lower() == 'true'


def get_connection_string() -> str:
    """
    Build the connection string from the environment

    Raises:
        DatabaseNotConfiguredError: If no database is configured
    """
    database_url = os.environ.get('DATABASE_URL')
    if database_url:
        return database_url

    host = os.environ.get('DB_HOST')
    if not host:
        raise DatabaseNotConfiguredError("Database not configured. Set DATABASE_URL or DB_HOST/DB_USER/DB_PASSWORD.")

    user = os.environ.get('DB_USER', 'postgres')
    password = os.environ.get('DB_PASSWORD', '')
    port = os.environ.get('DB_PORT', '5432')
    dbname = os.environ.get('DB_NAME', 'postgres')
    sslmode = os.environ.get('DB_SSLMODE', 'require')

    return f"postgresql://{user}:{password}@{host}:{port}/{dbname}?sslmode={sslmode}"


# ============================================================================
# POOLING MODE (Backend) - Only active if DB_USE_POOLING=true
# ============================================================================

pool: Optional[ConnectionPool] = None
pool_init_lock = threading.Lock()


def init_connection_pool(max_retries=3, retry_delay=2):
    """
    Initialize the connection pool (only used in pooling mode)

    Returns:
        bool: True if successful, False otherwise
    """
    if not use_pooling():
        logger.debug("Pooling not enabled, skipping pool initialization")
        return True

    global pool

    with pool_init_lock:
        if pool is not None:
            logger.debug("Connection pool already initialized")
            return True

        for attempt in range(max_retries):
            try:
                logger.info(f"Initializing connection pool (attempt {attempt + 1}/{max_retries})...")

                pool = ConnectionPool(
                    get_connection_string(),
                    min_size=1,
                    max_size=4,
                    open=True,
                    timeout=30,
                    max_lifetime=1800,
                    max_idle=600,
                    kwargs={
                        'row_factory': dict_row,
                        'connect_timeout': 10,
                        'autocommit': False,
                        'prepare_threshold': None  # transaction poolers reject prepared statements
                    }
                )

                with pool.connection() as conn:
                    with conn.cursor() as cur:
                        cur.execute("SELECT 1 as test")
                        cur.fetchone()
                logger.info("Connection pool initialized successfully")
                return True

            except DatabaseNotConfiguredError:
                raise
            except Exception as e:
                logger.error(f"Connection pool initialization failed (attempt {attempt + 1}/{max_retries}): {e}")

                if pool is not None:
                    try:
                        pool.close()
                    except Exception as close_error:
                        logger.error(f"Error closing failed pool: {close_error}")
                    pool = None

                if attempt < max_retries - 1:
                    wait_time = retry_delay * (1.5 ** attempt)
                    logger.info(f"Retrying in {wait_time:.1f} seconds...")
                    time.sleep(wait_time)

        logger.error("Failed to initialize connection pool after all retries")
        return False


def close_connection_pool():
    """Close the connection pool (only used in pooling mode)"""
    global pool

    with pool_init_lock:
        if pool:
            logger.info("Closing connection pool...")
            try:
                pool.close()
                logger.info("Connection pool closed")
            except Exception as e:
                logger.error(f"Error closing connection pool: {e}")
            pool = None


def get_pool_stats():
    """Get current connection pool statistics (only used in pooling mode)"""
    if pool is None:
        return None

    stats = pool.get_stats()
    return {
        'pool_size': stats.get('pool_size', 0),
        'pool_available': stats.get('pool_available', 0),
        'requests_waiting': stats.get('requests_waiting', 0)
    }


# ============================================================================
# SIMPLE MODE (Scripts)
# ============================================================================

def _create_connection():
    """Create a simple database connection (only used in simple mode)"""
    try:
        conn = psycopg.connect(
            get_connection_string(),
            row_factory=dict_row,
            autocommit=False,
            prepare_threshold=None
        )
        logger.debug("Simple database connection created")
        return conn
    except psycopg.OperationalError as e:
        logger.error(f"Failed to connect to database: {e}")
        raise


# ============================================================================
# UNIFIED CONNECTION MANAGER
# ============================================================================

@contextmanager
def get_db_connection():
    """
    Get a database connection using the appropriate mode

    Commits when the block exits cleanly, rolls back on error.

    Returns:
        Database connection (context manager)
    """
    if use_pooling():
        if pool is None:
            logger.info("Connection pool not initialized, initializing now...")
            if not init_connection_pool():
                raise RuntimeError("Failed to initialize connection pool")

        try:
            with pool.connection() as conn:
                yield conn
        except psycopg.OperationalError as e:
            logger.error(f"Database operational error: {e}")
            raise

    else:
        conn = None
        try:
            conn = _create_connection()
            yield conn
            conn.commit()
            logger.debug("Transaction committed successfully")

        except Exception:
            if conn:
                try:
                    conn.rollback()
                    logger.debug("Transaction rolled back due to error")
                except Exception as rollback_error:
                    logger.error(f"Error rolling back transaction: {rollback_error}")
            raise

        finally:
            if conn:
                try:
                    conn.close()
                except Exception as close_error:
                    logger.error(f"Error closing connection: {close_error}")


# ============================================================================
# HELPER FUNCTIONS (Used by both modes)
# ============================================================================

def execute_query(query, params=None, fetch_one=False, fetch_all=True):
    """
    Execute a query with proper error handling

    Args:
        query: SQL query string
        params: Query parameters tuple
        fetch_one: If True, return only first result
        fetch_all: If True, return all results (ignored if fetch_one is True)

    Returns:
        Query results or None
    """
    start_time = time.time()

    try:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)

                if fetch_one:
                    result = cur.fetchone()
                elif fetch_all:
                    result = cur.fetchall()
                else:
                    result = None

                logger.debug(f"Query executed in {time.time() - start_time:.3f}s")
                return result

    except psycopg.Error as e:
        logger.error(f"Query error after {time.time() - start_time:.3f}s: {e}")
        raise


def execute_update(query, params=None):
    """
    Execute an INSERT/UPDATE/DELETE query

    Returns:
        Number of affected rows
    """
    try:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.rowcount
    except psycopg.Error as e:
        logger.error(f"Update execution error: {e}")
        raise


def test_connection():
    """
    Test the database connection

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        result = execute_query("SELECT current_database() AS db", fetch_one=True)
        logger.info(f"Connected to database: {result['db']} ({'POOLED' if use_pooling() else 'SIMPLE'} mode)")
        return True
    except Exception as e:
        logger.error(f"Connection test failed: {e}")
        return False

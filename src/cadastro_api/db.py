from contextlib import contextmanager
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from src.cadastro_api.config import get_settings
from src.cadastro_api.exceptions import StorageError
from src.cadastro_api.logging import get_logger
from src.cadastro_api.query_builder import ParamStyle

logger = get_logger(__name__)

# psycopg2 binds positionally with %s.
PARAMSTYLE = ParamStyle.FORMAT

_POOL: Optional[ThreadedConnectionPool] = None


class QueryResult(NamedTuple):
    rows: List[Dict[str, Any]]
    row_count: int


# PUBLIC_INTERFACE
def init_db_pool() -> None:
    """Initialize the global PostgreSQL connection pool."""
    global _POOL
    if _POOL is not None:
        return

    settings = get_settings()
    _POOL = ThreadedConnectionPool(
        minconn=settings.db_pool_min,
        maxconn=settings.db_pool_max,
        dsn=settings.dsn,
    )
    logger.info("db_pool_ready", minconn=settings.db_pool_min, maxconn=settings.db_pool_max)


# PUBLIC_INTERFACE
def close_db_pool() -> None:
    """Close every pooled connection."""
    global _POOL
    if _POOL is None:
        return
    _POOL.closeall()
    _POOL = None
    logger.info("db_pool_closed")


@contextmanager
def _get_conn():
    if _POOL is None:
        init_db_pool()
    assert _POOL is not None
    conn = _POOL.getconn()
    try:
        yield conn
    finally:
        _POOL.putconn(conn)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# PUBLIC_INTERFACE
def execute(query: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
    """
    Run one statement in its own transaction and return its rows and rowcount.

    Any driver failure rolls the transaction back and is raised as
    StorageError; ``unique_violation`` is set for SQLSTATE 23505 (UniqueViolation).
    """
    with _get_conn() as conn:
        try:
            with _dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                rows = [dict(r) for r in cur.fetchall()] if cur.description else []
                affected = cur.rowcount
            conn.commit()
        except psycopg2.Error as exc:
            conn.rollback()
            unique = isinstance(exc, psycopg2.errors.UniqueViolation)
            logger.warning("storage_error", pgcode=exc.pgcode, unique_violation=unique)
            raise StorageError(str(exc).strip() or "database error", unique_violation=unique, code=exc.pgcode) from exc

    logger.debug("query_executed", params=len(params or []), row_count=affected)
    return QueryResult(rows=rows, row_count=affected)


# PUBLIC_INTERFACE
def fetch_all(query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """Fetch all rows as dicts."""
    return execute(query, params).rows


# PUBLIC_INTERFACE
def fetch_one(query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict, or None."""
    rows = execute(query, params).rows
    return rows[0] if rows else None

"""Database utilities and connection management - PostgreSQL only"""

import psycopg2
import psycopg2.extras
from flask import g

from config import DATABASE_URL, DB_TIMEZONE, SCHEMA_PATH
from core import ConfigurationError, get_logger

logger = get_logger(__name__)


class _PgAdapter:
    """
    Thin adapter over a psycopg2 connection so callers can write
    db.execute(...).fetchone()/fetchall() and get dict rows back.
    """

    def __init__(self, conn):
        self._conn = conn

    def _convert_placeholders(self, query: str):
        # Accept qmark-style placeholders (?) as well as psycopg2's %s
        return query.replace("?", "%s")

    def execute(self, query: str, params=()):
        cur = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        cur.execute(self._convert_placeholders(query), params or ())
        return cur

    def cursor(self):
        return self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _connect() -> _PgAdapter:
    if not DATABASE_URL:
        raise ConfigurationError("DATABASE_URL environment variable is required")

    conn = psycopg2.connect(DATABASE_URL)
    # Session timezone in PKT so CURRENT_DATE matches what users see
    try:
        cur = conn.cursor()
        cur.execute("SET TIME ZONE %s", (DB_TIMEZONE,))
        conn.commit()
        cur.close()
    except Exception as tz_err:
        logger.warning("db_timezone_failed", error=str(tz_err))
    return _PgAdapter(conn)


def get_db():
    """Get PostgreSQL database connection from Flask g object"""
    if "db" not in g:
        g.db = _connect()
    return g.db


def close_db(exc=None):
    """Close database connection"""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db(standalone=False):
    """Initialize PostgreSQL database from schema.sql

    Args:
        standalone: If True, creates connection directly without Flask's g object
    """
    db = _connect() if standalone else get_db()

    with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
        schema_sql = f.read()

    cur = db.cursor()
    for statement in schema_sql.split(";"):
        statement = statement.strip()
        if statement:
            cur.execute(statement)
    db.commit()
    cur.close()

    logger.info("schema_initialized", path=str(SCHEMA_PATH))

    if standalone:
        db.close()


if __name__ == "__main__":
    init_db(standalone=True)

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from stackrank.core.config import settings
from stackrank.core.logging import get_logger

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def get_schema_path() -> Path:
    """Location of the bundled schema.sql."""
    return SCHEMA_PATH


def init_database() -> None:
    """Create the store file and apply the schema. Safe to run repeatedly."""
    db_path = Path(settings.db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    schema_sql = get_schema_path().read_text(encoding="utf-8")

    with get_db_connection() as conn:
        conn.executescript(schema_sql)
        conn.commit()

    logger.info(f"Database initialized at {settings.db_path}")


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(settings.db_path)
    conn.row_factory = sqlite3.Row
    # Off by default in SQLite; stories.project_id must reference a project
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_db_connection() -> Iterator[sqlite3.Connection]:
    """One connection per unit of work, closed on exit."""
    conn = _connect()
    try:
        yield conn
    finally:
        conn.close()

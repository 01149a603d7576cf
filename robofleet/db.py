from __future__ import annotations

"""
File: robofleet/db.py
Purpose: MySQL helper functions for fleet snapshots.
Key responsibilities:
- Create the snapshot table.
- Read, upsert and delete JSON documents keyed by name.
"""

from contextlib import contextmanager
import json
from typing import Any, Iterable

import pymysql

from robofleet.settings import mysql_params


def _connect(params: dict[str, Any] | None = None):
    """Open a new MySQL connection with dict cursor."""
    return pymysql.connect(
        **(params or mysql_params()),
        autocommit=True,
        cursorclass=pymysql.cursors.DictCursor,
    )


@contextmanager
def db_cursor(params: dict[str, Any] | None = None):
    """Context manager for a short-lived DB cursor."""
    conn = _connect(params)
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def ensure_schema(params: dict[str, Any] | None = None) -> None:
    """Create the snapshot table if it does not exist."""
    with db_cursor(params) as cur:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS fleet_snapshots (
                name VARCHAR(128) NOT NULL PRIMARY KEY,
                payload LONGTEXT NOT NULL,
                updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
            )
            """
        )


def load_snapshot(name: str, params: dict[str, Any] | None = None) -> Any | None:
    """Return the decoded JSON document stored under name, or None."""
    with db_cursor(params) as cur:
        cur.execute("SELECT payload FROM fleet_snapshots WHERE name=%s", (name,))
        row = cur.fetchone()
    if not row:
        return None
    return json.loads(row["payload"])


def save_snapshot(name: str, payload: Any, params: dict[str, Any] | None = None) -> None:
    """Insert or replace the JSON document stored under name."""
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    with db_cursor(params) as cur:
        cur.execute(
            """
            INSERT INTO fleet_snapshots (name, payload)
            VALUES (%s, %s)
            ON DUPLICATE KEY UPDATE payload=VALUES(payload)
            """,
            (name, body),
        )


def delete_snapshots(names: Iterable[str], params: dict[str, Any] | None = None) -> None:
    """Delete the documents stored under the given names."""
    names = list(names)
    if not names:
        return
    with db_cursor(params) as cur:
        cur.executemany("DELETE FROM fleet_snapshots WHERE name=%s", [(name,) for name in names])

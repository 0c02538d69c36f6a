"""
Repository: key-value access to the `kv_store` table.

This file contains only DB interaction code. Values are opaque text; the
service decides what goes in (a JSON document) and how to read it back.
Keeping the raw text means a corrupt record is still readable as bytes and
can be detected and discarded by the caller.

Important notes:
- One row per key; `write` is an upsert, so the last writer wins. Two
  processes sharing a key will silently overwrite each other.
- Driver errors are wrapped in `PersistenceError` so the service never
  needs to know about psycopg. `ping()` is the exception: it raises raw
  driver errors for the health endpoint.
"""

from typing import Optional

import psycopg

from db import get_conn
from errors import PersistenceError


class StateRepo:
    """DB access only. No business logic here."""

    def read(self, key: str) -> Optional[str]:
        """Return the stored text for `key`, or None when absent."""

        try:
            with get_conn() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT value FROM kv_store WHERE key=%s", (key,))
                    row = cur.fetchone()
                    return row[0] if row else None
        except psycopg.Error as e:
            raise PersistenceError(f"Could not read '{key}': {e}") from e

    def write(self, key: str, value: str) -> None:
        """Upsert `value` under `key` and commit before returning."""

        try:
            with get_conn() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "INSERT INTO kv_store (key, value, updated_at) VALUES (%s, %s, now()) "
                        "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = now()",
                        (key, value),
                    )
                conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Could not save '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            with get_conn() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM kv_store WHERE key=%s", (key,))
                conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(f"Could not delete '{key}': {e}") from e

    def storage_bytes(self) -> int:
        """Approximate space used by all stored values, in bytes."""

        try:
            with get_conn() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT COALESCE(SUM(octet_length(key) + octet_length(value)), 0) FROM kv_store")
                    return int(cur.fetchone()[0])
        except psycopg.Error as e:
            raise PersistenceError(f"Could not measure storage: {e}") from e

    def ping(self) -> None:
        """Lightweight DB health check. Raises on error."""

        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")

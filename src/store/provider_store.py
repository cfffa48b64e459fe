"""
SQLite persistence for synced providers and the sync history log

Two tables:
- providers: one row per (user, country, npi_number | provider_id), upserted
- sync_history: append-only audit of VALIDATE and SYNC actions

Every call opens its own connection, so the store can be used from worker
threads without sharing state.
"""

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.errors import PersistenceError
from src.core.models import AuditEntry, Country

logger = logging.getLogger(__name__)

# Columns written on every save; the key columns (user_id, country) are separate
PROVIDER_COLUMNS = (
    "npi_number",
    "provider_id",
    "name",
    "first_name",
    "last_name",
    "phone",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "specialty",
    "organization_name",
    "taxonomy_code",
    "taxonomy_description",
    "enumeration_type",
    "raw_api_payload",
    "source",
    "correctness_score",
    "needs_review",
    "last_synced_at",
)

_JSON_COLUMNS = {"raw_api_payload", "field_scores", "new_values"}


class ProviderStore:
    """Provider cache and audit log backed by SQLite"""

    def __init__(self, db_path: str = "data/providers.db", busy_timeout: float = 5.0):
        """
        Initialize the store, creating tables if needed

        Args:
            db_path: SQLite database file
            busy_timeout: Seconds to wait on a locked database
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_database(self):
        """Create tables and indexes"""
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS providers (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        country TEXT NOT NULL,
                        npi_number TEXT,
                        provider_id TEXT,
                        name TEXT NOT NULL,
                        first_name TEXT,
                        last_name TEXT,
                        phone TEXT,
                        address_line1 TEXT,
                        address_line2 TEXT,
                        city TEXT,
                        state TEXT,
                        postal_code TEXT,
                        specialty TEXT,
                        organization_name TEXT,
                        taxonomy_code TEXT,
                        taxonomy_description TEXT,
                        enumeration_type TEXT,
                        raw_api_payload TEXT,
                        source TEXT,
                        correctness_score REAL,
                        needs_review INTEGER NOT NULL DEFAULT 0,
                        last_synced_at TEXT,
                        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE(user_id, country, npi_number),
                        UNIQUE(user_id, country, provider_id)
                    )
                ''')
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS sync_history (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        provider_record_id INTEGER,
                        action TEXT NOT NULL,
                        country TEXT NOT NULL,
                        npi_or_provider_id TEXT,
                        correctness_score REAL,
                        field_scores TEXT,
                        new_values TEXT,
                        notes TEXT,
                        created_at TEXT NOT NULL
                    )
                ''')
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sync_history_user ON sync_history (user_id, created_at)"
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize provider store: {e}") from e

        logger.info(f"Initialized provider store at {self.db_path}")

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        record = dict(row)
        for column in record.keys() & _JSON_COLUMNS:
            if record[column]:
                record[column] = json.loads(record[column])
        if "needs_review" in record:
            record["needs_review"] = bool(record["needs_review"])
        return record

    # =========================================================================
    # PROVIDERS
    # =========================================================================

    def upsert_provider(self, user_id: str, country: Country, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or replace the caller's row for this provider

        The whole row is written by one statement, so concurrent saves for
        the same key resolve as last-writer-wins.

        Returns:
            The stored row
        """
        key_column = country.identifier_field
        identifier = values.get(key_column)
        if not identifier:
            raise PersistenceError(f"Cannot save provider without {key_column}")

        row = [values.get(column) for column in PROVIDER_COLUMNS]
        payload_idx = PROVIDER_COLUMNS.index("raw_api_payload")
        if row[payload_idx] is not None:
            row[payload_idx] = json.dumps(row[payload_idx], default=str)
        review_idx = PROVIDER_COLUMNS.index("needs_review")
        row[review_idx] = int(bool(row[review_idx]))

        columns = ", ".join(("user_id", "country") + PROVIDER_COLUMNS)
        placeholders = ", ".join("?" for _ in range(len(PROVIDER_COLUMNS) + 2))
        updates = ", ".join(f"{c} = excluded.{c}" for c in PROVIDER_COLUMNS)

        sql = (
            f"INSERT INTO providers ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT(user_id, country, {key_column}) DO UPDATE SET {updates}"
        )

        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(sql, [user_id, country.value] + row)
                stored = conn.execute(
                    f"SELECT * FROM providers WHERE user_id = ? AND country = ? AND {key_column} = ?",
                    (user_id, country.value, identifier),
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Save error for {country.value} {identifier}: {e}")
            raise PersistenceError(f"Failed to save provider: {e}") from e

        logger.info(f"Saved {country.value} provider {identifier} for user {user_id}")
        return self._row_to_dict(stored)

    def get_provider(self, user_id: str, country: Country, identifier: str) -> Optional[Dict[str, Any]]:
        """Caller's stored row for an NPI / provider id, if any"""
        key_column = country.identifier_field
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    f"SELECT * FROM providers WHERE user_id = ? AND country = ? AND {key_column} = ?",
                    (user_id, country.value, identifier),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read provider: {e}") from e

        return self._row_to_dict(row) if row else None

    def list_providers(self, user_id: str, country: Optional[Country] = None) -> List[Dict[str, Any]]:
        """Caller's stored rows, newest first"""
        sql = "SELECT * FROM providers WHERE user_id = ?"
        args: List[Any] = [user_id]
        if country:
            sql += " AND country = ?"
            args.append(country.value)
        sql += " ORDER BY created_at DESC, id DESC"

        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(sql, args).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list providers: {e}") from e

        return [self._row_to_dict(row) for row in rows]

    # =========================================================================
    # SYNC HISTORY
    # =========================================================================

    def append_audit(self, entry: AuditEntry) -> int:
        """Append one audit entry; returns its row id"""
        try:
            with closing(self._connect()) as conn, conn:
                cursor = conn.execute('''
                    INSERT INTO sync_history
                    (user_id, provider_record_id, action, country, npi_or_provider_id,
                     correctness_score, field_scores, new_values, notes, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', [
                    entry.user_id,
                    entry.provider_record_id,
                    entry.action.value,
                    entry.country.value,
                    entry.identifier,
                    entry.correctness_score,
                    json.dumps(entry.field_scores) if entry.field_scores is not None else None,
                    json.dumps(entry.new_values, default=str) if entry.new_values is not None else None,
                    entry.notes,
                    entry.created_at.isoformat(),
                ])
                audit_id = cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Audit write failed for {entry.action.value} {entry.identifier}: {e}")
            raise PersistenceError(f"Failed to write audit entry: {e}") from e

        logger.debug(f"Audit entry {audit_id}: {entry.action.value} {entry.country.value} {entry.identifier}")
        return audit_id

    def list_audit(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Caller's audit entries, newest first"""
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    "SELECT * FROM sync_history WHERE user_id = ? ORDER BY id DESC LIMIT ?",
                    (user_id, limit),
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read sync history: {e}") from e

        return [self._row_to_dict(row) for row in rows]

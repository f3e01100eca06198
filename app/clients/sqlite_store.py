"""SQLite-backed storage for the installation's single eBay token record."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Protocol

from app.core.errors import EbayAuthError
from app.models.oauth import StoredEbayToken
from app.services.token_cipher import TokenCipherService


class TokenStore(Protocol):
    """Single-entity store for the eBay token record."""

    def get(self) -> Optional[StoredEbayToken]: ...

    def replace(self, token: StoredEbayToken) -> StoredEbayToken: ...

    def delete(self) -> None: ...


class SQLiteTokenStore:
    """
    Keep at most one token row, encrypted at rest.

    The table's primary key is pinned to ``1`` so the schema, not the caller,
    guarantees a single record.
    """

    _ROW_ID = 1

    def __init__(self, db_path: str, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._cipher = cipher
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Commit or roll back on exit, then close the connection."""
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ebay_tokens (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT NOT NULL,
                    access_expires_at TEXT NOT NULL,
                    refresh_expires_at TEXT NOT NULL,
                    scopes TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self) -> Optional[StoredEbayToken]:
        try:
            with self._session() as conn:
                row = conn.execute(
                    "SELECT * FROM ebay_tokens WHERE id = ?", (self._ROW_ID,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise EbayAuthError(f"Failed to retrieve tokens: {exc}") from exc
        if not row:
            return None

        return StoredEbayToken(
            access_token=self._cipher.decrypt(row["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt(row["refresh_token_encrypted"]),
            access_expires_at=datetime.fromisoformat(row["access_expires_at"]),
            refresh_expires_at=datetime.fromisoformat(row["refresh_expires_at"]),
            scopes=tuple(json.loads(row["scopes"])),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def replace(self, token: StoredEbayToken) -> StoredEbayToken:
        """Write the whole record, keeping the original ``created_at``."""
        created_at = token.created_at or token.updated_at
        try:
            with self._session() as conn:
                conn.execute(
                    """
                    INSERT INTO ebay_tokens (
                        id, access_token_encrypted, refresh_token_encrypted,
                        access_expires_at, refresh_expires_at, scopes,
                        created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        access_token_encrypted = excluded.access_token_encrypted,
                        refresh_token_encrypted = excluded.refresh_token_encrypted,
                        access_expires_at = excluded.access_expires_at,
                        refresh_expires_at = excluded.refresh_expires_at,
                        scopes = excluded.scopes,
                        updated_at = excluded.updated_at
                    """,
                    (
                        self._ROW_ID,
                        self._cipher.encrypt(token.access_token),
                        self._cipher.encrypt(token.refresh_token),
                        token.access_expires_at.isoformat(),
                        token.refresh_expires_at.isoformat(),
                        json.dumps(list(token.scopes)),
                        created_at.isoformat(),
                        token.updated_at.isoformat(),
                    ),
                )
        except sqlite3.Error as exc:
            raise EbayAuthError(f"Failed to store tokens: {exc}") from exc

        stored = self.get()
        if stored is None:  # pragma: no cover - the upsert above guarantees a row
            raise EbayAuthError("Failed to store tokens: record missing after write")
        return stored

    def delete(self) -> None:
        try:
            with self._session() as conn:
                conn.execute("DELETE FROM ebay_tokens")
        except sqlite3.Error as exc:
            raise EbayAuthError(f"Failed to delete tokens: {exc}") from exc


__all__ = ["SQLiteTokenStore", "TokenStore"]

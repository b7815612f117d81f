"""Append-only, hash-chained Tx Ledger backed by SQLite.

The ledger is the persistent source of truth for a registry: replaying a
registry's entries in order rebuilds its state exactly.

Design:
- Append-only: only `append()` writes; no update, no delete.
- Hash-chained per registry: each entry includes SHA-256 of the previous one.
- WAL journal mode for concurrent readers.
- entry_hash UNIQUE constraint for tamper detection.
- Amounts stored as TEXT; wei values routinely exceed SQLite's int64.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from nftmarket.core.hasher import compute_entry_hash
from nftmarket.models.ledger import TxEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS tx_ledger (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id             TEXT NOT NULL UNIQUE,
    registry_id          TEXT NOT NULL,
    operation            TEXT NOT NULL,
    caller               TEXT NOT NULL,
    value                TEXT NOT NULL DEFAULT '0',
    args_json            TEXT NOT NULL DEFAULT '{}',
    token_id             INTEGER,
    events_json          TEXT NOT NULL DEFAULT '[]',
    timestamp_utc        TEXT NOT NULL,
    schema_version       TEXT NOT NULL,
    previous_entry_hash  TEXT NOT NULL DEFAULT '',
    entry_hash           TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_REGISTRY = """
CREATE INDEX IF NOT EXISTS idx_registry_id ON tx_ledger(registry_id, id);
"""

_CREATE_IDX_CALLER = """
CREATE INDEX IF NOT EXISTS idx_registry_caller ON tx_ledger(registry_id, caller, id);
"""


class LedgerIntegrityError(RuntimeError):
    """Raised when the hash chain is broken or a replay diverges."""


class TxLedger:
    """Append-only, hash-chained transaction ledger.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_CREATE_LEDGER)
            conn.execute(_CREATE_IDX_REGISTRY)
            conn.execute(_CREATE_IDX_CALLER)
            conn.commit()

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(self, entry: TxEntry) -> TxEntry:
        """Append an entry, computing its hash chain link and seal.

        Returns the entry with `previous_entry_hash` and `entry_hash` set.
        This is the ONLY write method. There is no update or delete.
        """
        previous_hash = self._get_latest_hash(entry.registry_id)

        entry_dict = entry.model_dump(mode="json")
        entry_dict["previous_entry_hash"] = previous_hash
        entry_dict["entry_hash"] = ""

        entry_hash = compute_entry_hash(entry_dict)

        sealed = entry.model_copy(
            update={
                "previous_entry_hash": previous_hash,
                "entry_hash": entry_hash,
            }
        )

        self._insert(sealed)
        logger.debug(
            "Appended %s for %s (hash %s).",
            sealed.operation.value,
            sealed.registry_id,
            entry_hash[:12],
        )
        return sealed

    def _insert(self, entry: TxEntry) -> None:
        """Insert a sealed TxEntry into SQLite."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tx_ledger
                    (entry_id, registry_id, operation, caller, value, args_json,
                     token_id, events_json, timestamp_utc, schema_version,
                     previous_entry_hash, entry_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.entry_id,
                    entry.registry_id,
                    entry.operation.value,
                    entry.caller,
                    str(entry.value),
                    json.dumps(entry.args),
                    entry.token_id,
                    json.dumps(entry.events),
                    entry.timestamp_utc.isoformat()
                    if isinstance(entry.timestamp_utc, datetime)
                    else entry.timestamp_utc,
                    entry.schema_version,
                    entry.previous_entry_hash,
                    entry.entry_hash,
                ),
            )
            conn.commit()

    def _get_latest_hash(self, registry_id: str) -> str:
        """Get the entry_hash of the most recent entry for a registry."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT entry_hash FROM tx_ledger WHERE registry_id = ? ORDER BY id DESC LIMIT 1",
                (registry_id,),
            ).fetchone()
        return row[0] if row else ""

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_latest(self, registry_id: str) -> TxEntry | None:
        """Return the most recent entry for a registry, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tx_ledger WHERE registry_id = ? ORDER BY id DESC LIMIT 1",
                (registry_id,),
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def get_entries(self, registry_id: str) -> list[TxEntry]:
        """Return all entries for a registry, ordered chronologically."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tx_ledger WHERE registry_id = ? ORDER BY id ASC",
                (registry_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_caller_history(self, registry_id: str, caller: str) -> list[TxEntry]:
        """Return all entries submitted by *caller* against a registry."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tx_ledger WHERE registry_id = ? AND caller = ? ORDER BY id ASC",
                (registry_id, caller),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def get_all_registry_ids(self) -> list[str]:
        """Return all distinct registry ids, most recently deployed first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT registry_id FROM tx_ledger WHERE operation = 'deploy' "
                "ORDER BY id DESC"
            ).fetchall()
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self, registry_id: str) -> bool:
        """Recompute every seal of *registry_id* and check each back-link.

        Returns True for a valid (or empty) chain and raises
        ``LedgerIntegrityError`` at the first entry that does not verify.
        """
        expected_previous = ""
        for position, entry in enumerate(self.get_entries(registry_id), 1):
            if entry.previous_entry_hash != expected_previous:
                raise LedgerIntegrityError(
                    f"Entry {position} of {registry_id} ({entry.operation.value}) "
                    f"does not link to entry {position - 1}."
                )
            if compute_entry_hash(entry.model_dump(mode="json")) != entry.entry_hash:
                raise LedgerIntegrityError(
                    f"Entry {position} of {registry_id} ({entry.operation.value}) "
                    "was modified after it was sealed."
                )
            expected_previous = entry.entry_hash
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_entry(row: tuple) -> TxEntry:
        """Convert a SQLite row tuple to a TxEntry."""
        (
            _id,
            entry_id,
            registry_id,
            operation,
            caller,
            value,
            args_json,
            token_id,
            events_json,
            timestamp_utc,
            schema_version,
            previous_entry_hash,
            entry_hash,
        ) = row
        return TxEntry(
            entry_id=entry_id,
            registry_id=registry_id,
            operation=operation,
            caller=caller,
            value=int(value),
            args=json.loads(args_json),
            token_id=token_id,
            events=json.loads(events_json),
            timestamp_utc=timestamp_utc,
            schema_version=schema_version,
            previous_entry_hash=previous_entry_hash,
            entry_hash=entry_hash,
        )

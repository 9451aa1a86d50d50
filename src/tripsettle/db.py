"""SQLite store for settlement confirmations."""

import sqlite3
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

from .models import SettlementRecord, SettlementSummary, TransferStatus


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Current confirmation state, one row per transfer key
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlement_records (
                trip_id TEXT NOT NULL,
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                currency TEXT NOT NULL,
                status TEXT NOT NULL,
                amount TEXT NOT NULL,
                settled_at TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (trip_id, from_id, to_id, currency)
            )
        """
        )

        # Records whose transfer vanished from a later computation
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS archived_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                trip_id TEXT NOT NULL,
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                currency TEXT NOT NULL,
                status TEXT NOT NULL,
                amount TEXT NOT NULL,
                settled_at TIMESTAMP,
                archived_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SettlementRecord:
        return SettlementRecord(
            from_id=row["from_id"],
            to_id=row["to_id"],
            currency=row["currency"],
            status=TransferStatus(row["status"]),
            amount=Decimal(row["amount"]),
            settled_at=(
                datetime.fromisoformat(row["settled_at"]) if row["settled_at"] else None
            ),
        )

    # ========================================================================
    # Settlement records operations
    # ========================================================================

    def get_settlement_records(
        self, trip_id: str, currency: str | None = None
    ) -> list[SettlementRecord]:
        """Get the persisted records for a trip, optionally for one currency."""
        cursor = self.conn.cursor()
        if currency is None:
            cursor.execute(
                """
                SELECT from_id, to_id, currency, status, amount, settled_at
                FROM settlement_records
                WHERE trip_id = ?
                ORDER BY currency, from_id, to_id
                """,
                (trip_id,),
            )
        else:
            cursor.execute(
                """
                SELECT from_id, to_id, currency, status, amount, settled_at
                FROM settlement_records
                WHERE trip_id = ? AND currency = ?
                ORDER BY from_id, to_id
                """,
                (trip_id, currency.upper()),
            )
        return [self._row_to_record(row) for row in cursor.fetchall()]

    def _replace_records(
        self,
        cursor: sqlite3.Cursor,
        trip_id: str,
        currency: str,
        records: list[SettlementRecord],
    ):
        now = datetime.now(UTC).isoformat()
        cursor.execute(
            "DELETE FROM settlement_records WHERE trip_id = ? AND currency = ?",
            (trip_id, currency.upper()),
        )
        cursor.executemany(
            """
            INSERT INTO settlement_records (
                trip_id, from_id, to_id, currency, status, amount,
                settled_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    trip_id,
                    record.from_id,
                    record.to_id,
                    record.currency.upper(),
                    record.status.value,
                    str(record.amount),
                    record.settled_at.isoformat() if record.settled_at else None,
                    now,
                )
                for record in records
            ],
        )

    def _archive_records(
        self, cursor: sqlite3.Cursor, trip_id: str, records: list[SettlementRecord]
    ):
        now = datetime.now(UTC).isoformat()
        cursor.executemany(
            """
            INSERT INTO archived_records (
                trip_id, from_id, to_id, currency, status, amount,
                settled_at, archived_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    trip_id,
                    record.from_id,
                    record.to_id,
                    record.currency.upper(),
                    record.status.value,
                    str(record.amount),
                    record.settled_at.isoformat() if record.settled_at else None,
                    now,
                )
                for record in records
            ],
        )

    def replace_settlement_records(
        self, trip_id: str, currency: str, records: list[SettlementRecord]
    ):
        """Replace every record of a trip/currency with the given records."""
        with self.conn:
            self._replace_records(self.conn.cursor(), trip_id, currency, records)

    def archive_settlement_records(self, trip_id: str, records: list[SettlementRecord]):
        """Keep records whose transfers disappeared, for history."""
        with self.conn:
            self._archive_records(self.conn.cursor(), trip_id, records)

    def save_reconciliation(self, trip_id: str, summary: SettlementSummary):
        """Persist a summary's records and archive its dropped ones atomically."""
        with self.conn:
            cursor = self.conn.cursor()
            self._replace_records(cursor, trip_id, summary.currency, summary.records)
            self._archive_records(cursor, trip_id, summary.archived_records)

    def get_archived_records(self, trip_id: str) -> list[SettlementRecord]:
        """Get archived records for a trip, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT from_id, to_id, currency, status, amount, settled_at
            FROM archived_records
            WHERE trip_id = ?
            ORDER BY id DESC
            """,
            (trip_id,),
        )
        return [self._row_to_record(row) for row in cursor.fetchall()]

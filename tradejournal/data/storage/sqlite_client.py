import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

from loguru import logger

from tradejournal.models import (
    Calculation,
    CalculationCreate,
    Session,
    SessionCreate,
    SessionUpdate,
    Trade,
    TradeCreate,
    TradeUpdate,
)
from tradejournal.utils.exceptions import RecordNotFoundError, StorageError


class JournalDatabase:
    """
    One sqlite connection shared by every request handler.

    Created once at startup and injected. `connect()` may be called from
    any thread; the first caller opens the connection and the rest reuse it.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._init_lock = threading.Lock()
        self.lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn

        with self._init_lock:
            if self._conn is None:
                try:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                    conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                except (sqlite3.Error, OSError) as exc:
                    raise StorageError(
                        f"Unable to open journal database at '{self.db_path}': {exc}",
                        operation="connect",
                    ) from exc
                conn.row_factory = sqlite3.Row
                self._conn = conn
                logger.info(f"Connected to SQLite at {self.db_path}")

        return self._conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self.connect()

    def initialize_schema(self) -> None:
        with self.lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    session_id TEXT,
                    pair_name TEXT NOT NULL,
                    entry_price REAL NOT NULL,
                    exit_price REAL,
                    investment REAL NOT NULL,
                    date TEXT NOT NULL,
                    type TEXT NOT NULL,
                    status TEXT NOT NULL,
                    profit_or_loss REAL NOT NULL DEFAULT 0,
                    profit_or_loss_percentage REAL NOT NULL DEFAULT 0,
                    balance REAL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    capital REAL NOT NULL,
                    total_trades INTEGER NOT NULL,
                    accuracy REAL NOT NULL,
                    risk_reward_ratio REAL NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS calculations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    type TEXT NOT NULL,
                    inputs TEXT NOT NULL,
                    result TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_trades_user ON trades (user_id, session_id, created_at)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions (user_id, created_at)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_calculations_user ON calculations (user_id, created_at)"
            )

            self.conn.commit()
        logger.info("Journal schema initialized")

    def close(self) -> None:
        with self._init_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed SQLite connection")

    def __enter__(self) -> "JournalDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JournalStore:
    """Per-user CRUD for trades, sessions and calculations."""

    def __init__(self, database: JournalDatabase) -> None:
        self.database = database

    # Trades

    def list_trades(self, user_id: str) -> list[Trade]:
        rows = self._fetch(
            "SELECT * FROM trades WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            [user_id],
        )
        return [Trade.model_validate(dict(row)) for row in rows]

    def list_session_trades(self, user_id: str, session_id: str) -> list[Trade]:
        rows = self._fetch(
            """
            SELECT * FROM trades
            WHERE user_id = ? AND session_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            [user_id, session_id],
        )
        return [Trade.model_validate(dict(row)) for row in rows]

    def create_trade(self, user_id: str, payload: TradeCreate) -> Trade:
        return self.create_trades(user_id, [payload])[0]

    def create_trades(self, user_id: str, payloads: Iterable[TradeCreate]) -> list[Trade]:
        trades = [payload.to_trade(user_id) for payload in payloads]
        rows = [trade.to_db_dict() for trade in trades]
        if not rows:
            return []

        columns = list(rows[0])
        sql = (
            f"INSERT INTO trades ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )

        with self.database.lock:
            try:
                with self.database.conn:
                    self.database.conn.executemany(
                        sql, [[row[column] for column in columns] for row in rows]
                    )
            except sqlite3.IntegrityError as exc:
                raise StorageError(f"duplicate trade id ({exc})", operation="create trades") from exc
            except sqlite3.Error as exc:
                raise StorageError(str(exc), operation="create trades") from exc

        logger.debug(f"Inserted {len(trades)} trades for {user_id}")
        return trades

    def update_trade(self, user_id: str, trade_id: str, update: TradeUpdate) -> Trade:
        self._update("trades", "trade", user_id, trade_id, update.changes())
        row = self._fetch_one("SELECT * FROM trades WHERE id = ? AND user_id = ?", [trade_id, user_id])
        return Trade.model_validate(dict(row))

    def delete_trade(self, user_id: str, trade_id: str) -> None:
        self._delete("trades", "trade", user_id, trade_id)

    # Sessions

    def list_sessions(self, user_id: str) -> list[Session]:
        rows = self._fetch(
            "SELECT * FROM sessions WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            [user_id],
        )
        return [Session.model_validate(dict(row)) for row in rows]

    def get_session(self, user_id: str, session_id: str) -> Session:
        row = self._fetch_one(
            "SELECT * FROM sessions WHERE id = ? AND user_id = ?", [session_id, user_id]
        )
        if row is None:
            raise RecordNotFoundError("session", session_id)
        return Session.model_validate(dict(row))

    def create_session(self, user_id: str, payload: SessionCreate) -> Session:
        session = payload.to_session(user_id)
        self._insert("sessions", session.to_db_dict(), "create session")
        logger.debug(f"Inserted session {session.id} for {user_id}")
        return session

    def update_session(self, user_id: str, session_id: str, update: SessionUpdate) -> Session:
        self._update("sessions", "session", user_id, session_id, update.changes())
        return self.get_session(user_id, session_id)

    def delete_session(self, user_id: str, session_id: str) -> None:
        self._delete("sessions", "session", user_id, session_id)

    # Calculations

    def list_calculations(self, user_id: str) -> list[Calculation]:
        rows = self._fetch(
            "SELECT * FROM calculations WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            [user_id],
        )
        calculations = []
        for row in rows:
            record = dict(row)
            record["inputs"] = json.loads(record["inputs"])
            record["result"] = json.loads(record["result"])
            calculations.append(Calculation.model_validate(record))
        return calculations

    def create_calculation(self, user_id: str, payload: CalculationCreate) -> Calculation:
        calculation = payload.to_calculation(user_id)
        self._insert(
            "calculations",
            {
                "id": calculation.id,
                "user_id": calculation.user_id,
                "type": calculation.type,
                "inputs": json.dumps(calculation.inputs),
                "result": json.dumps(calculation.result),
                "created_at": calculation.created_at.isoformat(),
            },
            "create calculation",
        )
        logger.debug(f"Inserted calculation {calculation.id} for {user_id}")
        return calculation

    def delete_calculation(self, user_id: str, calculation_id: str) -> None:
        self._delete("calculations", "calculation", user_id, calculation_id)

    # Helpers

    def _fetch(self, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        with self.database.lock:
            try:
                return self.database.conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(str(exc), operation="query") from exc

    def _fetch_one(self, sql: str, params: Sequence[Any]) -> sqlite3.Row | None:
        rows = self._fetch(sql, params)
        return rows[0] if rows else None

    def _insert(self, table: str, record: dict[str, Any], operation: str) -> None:
        columns = list(record)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        with self.database.lock:
            try:
                with self.database.conn:
                    self.database.conn.execute(sql, [record[column] for column in columns])
            except sqlite3.IntegrityError as exc:
                raise StorageError(f"duplicate id {record.get('id')} ({exc})", operation=operation) from exc
            except sqlite3.Error as exc:
                raise StorageError(str(exc), operation=operation) from exc

    def _update(
        self,
        table: str,
        kind: str,
        user_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> None:
        # Column names come from the typed update models, never from raw input.
        changes = {**changes, "updated_at": _now()}
        assignments = ", ".join(f"{column} = ?" for column in changes)
        sql = f"UPDATE {table} SET {assignments} WHERE id = ? AND user_id = ?"

        with self.database.lock:
            try:
                with self.database.conn:
                    cursor = self.database.conn.execute(
                        sql, [*changes.values(), record_id, user_id]
                    )
            except sqlite3.Error as exc:
                raise StorageError(str(exc), operation=f"update {kind}") from exc

        if cursor.rowcount == 0:
            raise RecordNotFoundError(kind, record_id)
        logger.info(f"Updated {kind} {record_id}")

    def _delete(self, table: str, kind: str, user_id: str, record_id: str) -> None:
        with self.database.lock:
            try:
                with self.database.conn:
                    cursor = self.database.conn.execute(
                        f"DELETE FROM {table} WHERE id = ? AND user_id = ?", [record_id, user_id]
                    )
            except sqlite3.Error as exc:
                raise StorageError(str(exc), operation=f"delete {kind}") from exc

        if cursor.rowcount == 0:
            raise RecordNotFoundError(kind, record_id)
        logger.info(f"Deleted {kind} {record_id}")

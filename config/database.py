"""
ARKAINX Casino — Database Layer

SQLite store for wallets, the transaction ledger, the audit log,
fairness seeds, game sessions and per-game switches.

Every write path goes through Database.transaction(), which opens the
connection in autocommit mode and issues BEGIN IMMEDIATE so the write
lock is taken before the first read. Read-modify-write on a wallet row
therefore never interleaves with another writer.

Usage:
    from config.database import Database

    db = Database("casino.db")
    with db.transaction() as tx:
        row = tx.execute("SELECT balance FROM wallets WHERE user_id=?", [uid]).fetchone()
        tx.execute("UPDATE wallets SET balance=? WHERE user_id=?", [row["balance"] - 10, uid])

    # Compose several components into one atomic unit
    with db.transaction() as tx:
        ledger.place_bet(uid, 10, "dice", conn=tx)
        sessions.create(uid, "mines", 10, state, conn=tx)
"""

import logging
import sqlite3
from contextlib import contextmanager

from config.settings import CasinoConfig

logger = logging.getLogger("arkainx.db")


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS wallets (
    user_id TEXT PRIMARY KEY,
    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
    last_faucet_at TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    amount INTEGER NOT NULL,
    balance_after INTEGER NOT NULL,
    game_type TEXT,
    metadata_json TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (user_id) REFERENCES wallets(user_id)
);

CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    admin_id TEXT NOT NULL,
    action TEXT NOT NULL,
    target_user_id TEXT,
    details_json TEXT DEFAULT '{}',
    ip TEXT,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS fairness_seeds (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    game_type TEXT NOT NULL,
    server_seed TEXT NOT NULL,
    server_seed_hash TEXT NOT NULL,
    client_seed TEXT NOT NULL,
    nonce INTEGER NOT NULL DEFAULT 0,
    revealed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now')),
    revealed_at TEXT
);

CREATE TABLE IF NOT EXISTS game_sessions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    game_type TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'round',
    bet_amount INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'ACTIVE',
    state_json TEXT NOT NULL,
    win_amount INTEGER,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT DEFAULT (datetime('now')),
    completed_at TEXT
);

CREATE TABLE IF NOT EXISTS game_config (
    game_type TEXT PRIMARY KEY,
    is_enabled INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_tx_user ON transactions(user_id, id);
CREATE INDEX IF NOT EXISTS idx_tx_type ON transactions(type);
CREATE INDEX IF NOT EXISTS idx_audit_target ON audit_log(target_user_id);
CREATE INDEX IF NOT EXISTS idx_seeds_user_game ON fairness_seeds(user_id, game_type, revealed);
CREATE INDEX IF NOT EXISTS idx_sessions_user ON game_sessions(user_id, game_type, status);
"""


def _sqlite_dict_factory(cursor, row):
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


# ═══════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════

class DatabaseConnection:
    """Thin wrapper around one sqlite3 connection.

    - Returns dict rows from .fetchone() / .fetchall()
    - As a context manager: commit on success, rollback on exception, close
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._cursor = None

    def execute(self, sql, params=None):
        """Execute a statement. Returns self for chaining."""
        self._cursor = self._conn.execute(sql, params or [])
        return self

    def executescript(self, sql):
        self._conn.executescript(sql)
        return self

    def fetchone(self):
        if self._cursor is None:
            return None
        return self._cursor.fetchone()

    def fetchall(self):
        if self._cursor is None:
            return []
        return self._cursor.fetchall()

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount if self._cursor is not None else 0

    @property
    def lastrowid(self):
        return self._cursor.lastrowid if self._cursor is not None else None

    @property
    def in_transaction(self) -> bool:
        return self._conn.in_transaction

    def begin_immediate(self):
        self._conn.execute("BEGIN IMMEDIATE")

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()


class Database:
    """Owns the SQLite file path and hands out connections/transactions."""

    def __init__(self, path: str = None, timeout: float = None):
        self.path = path or CasinoConfig.DB_PATH
        self.timeout = timeout if timeout is not None else CasinoConfig.DB_TIMEOUT_SECONDS
        self.init_schema()

    def connect(self) -> DatabaseConnection:
        """Open a standalone connection in autocommit mode — caller closes."""
        conn = sqlite3.connect(self.path, timeout=self.timeout,
                               isolation_level=None, check_same_thread=False)
        conn.row_factory = _sqlite_dict_factory
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={int(self.timeout * 1000)}")
        conn.execute("PRAGMA foreign_keys=ON")
        return DatabaseConnection(conn)

    def init_schema(self) -> None:
        db = self.connect()
        try:
            db.executescript(SCHEMA_SQL)
        finally:
            db.close()
        logger.debug(f"Schema ready at {self.path}")

    @contextmanager
    def transaction(self, conn: DatabaseConnection = None):
        """BEGIN IMMEDIATE ... COMMIT, rolled back on any exception.

        If `conn` is an already-open transaction, it is reused as-is and the
        outer owner decides commit/rollback.
        """
        if conn is not None:
            yield conn
            return

        db = self.connect()
        db.begin_immediate()
        try:
            yield db
            db.commit()
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def read(self, conn: DatabaseConnection = None):
        """Plain connection for reads; reuses `conn` when given."""
        if conn is not None:
            yield conn
            return
        db = self.connect()
        try:
            yield db
        finally:
            db.close()

"""
ARKAINX Casino — Game Session Store

Persists one row per multi-step round (or open bonus round):

    ACTIVE ──finalize(win_amount)──▶ COMPLETED   (terminal, immutable)

The state blob belongs to the engine: it arrives as a dict, is stored as
JSON text, and comes back as the same dict. Nothing here reads its keys.

Access rules:
    wrong owner or unknown id             → SessionNotFound (existence not leaked)
    any read or write on a COMPLETED row  → AlreadyFinished
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from casino.errors import AlreadyFinished, SessionNotFound
from casino.locks import UserLocks
from config.database import Database, DatabaseConnection

logger = logging.getLogger("arkainx.sessions")

ACTIVE = "ACTIVE"
COMPLETED = "COMPLETED"

KIND_ROUND = "round"
KIND_BONUS = "bonus"


@dataclass
class GameSession:
    id: str
    user_id: str
    game_type: str
    bet_amount: int
    status: str = ACTIVE
    kind: str = KIND_ROUND
    state: dict = field(default_factory=dict)
    win_amount: Optional[int] = None
    created_at: str = ""
    completed_at: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    @classmethod
    def from_row(cls, row: dict) -> "GameSession":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            game_type=row["game_type"],
            bet_amount=row["bet_amount"],
            status=row["status"],
            kind=row["kind"],
            state=json.loads(row["state_json"]),
            win_amount=row["win_amount"],
            created_at=row.get("created_at") or "",
            completed_at=row.get("completed_at"),
        )


def _game_key(game_type) -> str:
    return getattr(game_type, "value", game_type)


class GameSessionStore:

    def __init__(self, db: Database, locks: UserLocks = None):
        self.db = db
        self.locks = locks or UserLocks()

    def _load(self, tx: DatabaseConnection, session_id: str, user_id: str) -> GameSession:
        row = tx.execute("SELECT * FROM game_sessions WHERE id=?", (session_id,)).fetchone()
        if not row or row["user_id"] != user_id:
            logger.warning(f"Session {session_id} not found for {user_id}")
            raise SessionNotFound("Game not found")
        return GameSession.from_row(row)

    def create(self, user_id: str, game_type, bet_amount: int, state: dict,
               kind: str = KIND_ROUND, conn: DatabaseConnection = None) -> str:
        session_id = str(uuid.uuid4())
        with self.locks.hold(user_id):
            with self.db.transaction(conn) as tx:
                tx.execute(
                    """INSERT INTO game_sessions
                       (id, user_id, game_type, kind, bet_amount, status, state_json)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (session_id, user_id, _game_key(game_type), kind, bet_amount,
                     ACTIVE, json.dumps(state)),
                )
        logger.info(f"Session {session_id[:8]} opened: {user_id}/{_game_key(game_type)} "
                    f"{kind} bet={bet_amount}")
        return session_id

    def get(self, session_id: str, user_id: str, conn: DatabaseConnection = None) -> GameSession:
        """The ACTIVE session. A COMPLETED one raises AlreadyFinished."""
        with self.db.read(conn) as db:
            session = self._load(db, session_id, user_id)
        if not session.is_active:
            raise AlreadyFinished("Game already finished")
        return session

    def find_active(self, user_id: str, game_type, kind: str = KIND_ROUND,
                    conn: DatabaseConnection = None) -> Optional[GameSession]:
        """Most recent ACTIVE session of one kind for (user, game), if any."""
        with self.db.read(conn) as db:
            row = db.execute(
                """SELECT * FROM game_sessions
                   WHERE user_id=? AND game_type=? AND kind=? AND status=?
                   ORDER BY created_at DESC, rowid DESC LIMIT 1""",
                (user_id, _game_key(game_type), kind, ACTIVE),
            ).fetchone()
        return GameSession.from_row(row) if row else None

    def update(self, session_id: str, user_id: str, state: dict,
               conn: DatabaseConnection = None) -> None:
        with self.locks.hold(user_id):
            with self.db.transaction(conn) as tx:
                session = self._load(tx, session_id, user_id)
                if not session.is_active:
                    raise AlreadyFinished("Game already finished")
                tx.execute(
                    """UPDATE game_sessions SET state_json=?, updated_at=datetime('now')
                       WHERE id=? AND status=?""",
                    (json.dumps(state), session_id, ACTIVE),
                )

    def finalize(self, session_id: str, user_id: str, win_amount: int, state: dict,
                 conn: DatabaseConnection = None) -> None:
        """ACTIVE → COMPLETED, exactly once."""
        completed_at = datetime.now(timezone.utc).isoformat()
        with self.locks.hold(user_id):
            with self.db.transaction(conn) as tx:
                session = self._load(tx, session_id, user_id)
                if not session.is_active:
                    raise AlreadyFinished("Game already finished")
                tx.execute(
                    """UPDATE game_sessions
                       SET status=?, win_amount=?, state_json=?, completed_at=?,
                           updated_at=datetime('now')
                       WHERE id=? AND status=?""",
                    (COMPLETED, win_amount, json.dumps(state), completed_at, session_id, ACTIVE),
                )
                if tx.rowcount != 1:
                    raise AlreadyFinished("Game already finished")
        logger.info(f"Session {session_id[:8]} completed: win={win_amount}")

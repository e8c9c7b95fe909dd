"""
ARKAINX Casino — Fairness Seed Manager

Commit-reveal seed state per (user, game):

    serverSeed       32 random bytes, hex. Secret until revealed.
    serverSeedHash   SHA-256(serverSeed). Published before any play.
    clientSeed       16 random bytes hex by default, player may replace.
    nonce            +1 per completed round.
    counter          +1 per float drawn inside a round, starts at 0.

    float(counter) = int(HMAC-SHA256(serverSeed, f"{clientSeed}:{nonce}:{counter}")[:8], 16) / 2^32

Revealing a seed retires it; the next get_or_create() starts a fresh
record with nonce 0. Anyone holding the revealed values can recompute
every float with verify_floats().

Usage:
    from casino.fairness import FairnessSeedManager
    fm = FairnessSeedManager(db)
    seed = fm.get_or_create("u1", "dice")
    stream = fm.open_round(seed.id)
    roll = stream()
    fm.complete_round(seed.id)
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from casino.errors import FairnessRecordMissing, InvalidAction
from casino.rng import FairStream, commitment, derive_float, new_client_seed, new_server_seed
from config.database import Database, DatabaseConnection
from config.settings import CasinoConfig

logger = logging.getLogger("arkainx.fairness")


@dataclass
class FairnessSeed:
    id: str
    user_id: str
    game_type: str
    server_seed_hash: str
    client_seed: str
    nonce: int = 0
    revealed: bool = False
    created_at: str = ""
    revealed_at: Optional[str] = None
    server_seed: str = field(default="", repr=False)

    @classmethod
    def from_row(cls, row: dict) -> "FairnessSeed":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            game_type=row["game_type"],
            server_seed_hash=row["server_seed_hash"],
            client_seed=row["client_seed"],
            nonce=row["nonce"],
            revealed=bool(row["revealed"]),
            created_at=row.get("created_at") or "",
            revealed_at=row.get("revealed_at"),
            server_seed=row["server_seed"],
        )

    def public(self) -> dict:
        """What the player may see. The server seed only after reveal."""
        return {
            "id": self.id,
            "game_type": self.game_type,
            "server_seed_hash": self.server_seed_hash,
            "server_seed": self.server_seed if self.revealed else None,
            "client_seed": self.client_seed,
            "nonce": self.nonce,
            "revealed": self.revealed,
            "created_at": self.created_at,
        }


def _game_key(game_type) -> str:
    return getattr(game_type, "value", game_type)


class FairnessSeedManager:
    """Owns fairness_seeds rows and the in-flight round counters."""

    def __init__(self, db: Database):
        self.db = db
        self._streams: dict[str, FairStream] = {}
        self._guard = threading.Lock()

    # ─── Records ──────────────────────────────────────────────

    def _create(self, tx: DatabaseConnection, user_id: str, game_type: str,
                client_seed: str = None) -> FairnessSeed:
        server_seed = new_server_seed()
        seed = FairnessSeed(
            id=str(uuid.uuid4()),
            user_id=user_id,
            game_type=game_type,
            server_seed=server_seed,
            server_seed_hash=commitment(server_seed),
            client_seed=client_seed or new_client_seed(),
            nonce=0,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        tx.execute(
            """INSERT INTO fairness_seeds
               (id, user_id, game_type, server_seed, server_seed_hash, client_seed, nonce, created_at)
               VALUES (?, ?, ?, ?, ?, ?, 0, ?)""",
            (seed.id, user_id, game_type, seed.server_seed, seed.server_seed_hash,
             seed.client_seed, seed.created_at),
        )
        logger.info(f"New seed {seed.id[:8]} for {user_id}/{game_type} "
                    f"(commitment {seed.server_seed_hash[:16]}…)")
        return seed

    def _active_row(self, tx: DatabaseConnection, user_id: str, game_type: str):
        return tx.execute(
            """SELECT * FROM fairness_seeds
               WHERE user_id=? AND game_type=? AND revealed=0
               ORDER BY created_at DESC, rowid DESC LIMIT 1""",
            (user_id, game_type),
        ).fetchone()

    def get_or_create(self, user_id: str, game_type, conn: DatabaseConnection = None) -> FairnessSeed:
        """Latest unrevealed record for (user, game), created lazily."""
        game_type = _game_key(game_type)
        with self.db.transaction(conn) as tx:
            row = self._active_row(tx, user_id, game_type)
            if row:
                return FairnessSeed.from_row(row)
            return self._create(tx, user_id, game_type)

    def get(self, seed_id: str, conn: DatabaseConnection = None) -> FairnessSeed:
        with self.db.read(conn) as db:
            row = db.execute("SELECT * FROM fairness_seeds WHERE id=?", (seed_id,)).fetchone()
        if not row:
            raise FairnessRecordMissing(f"Fairness record not found: {seed_id}")
        return FairnessSeed.from_row(row)

    # ─── Float stream ─────────────────────────────────────────

    def open_round(self, seed_id: str, conn: DatabaseConnection = None) -> FairStream:
        """Start (or resume) the float stream for the seed's current nonce."""
        seed = self.get(seed_id, conn)
        if seed.revealed:
            raise InvalidAction("Server seed already revealed; rotate to a new seed")
        with self._guard:
            stream = self._streams.get(seed_id)
            if stream is None or stream.nonce != seed.nonce:
                stream = FairStream(seed.server_seed, seed.client_seed, seed.nonce)
                self._streams[seed_id] = stream
            return stream

    def next_float(self, seed_id: str, conn: DatabaseConnection = None) -> float:
        """One float at the current (nonce, counter); counter advances."""
        return self.open_round(seed_id, conn)()

    def complete_round(self, seed_id: str, conn: DatabaseConnection = None) -> int:
        """Close the round: nonce += 1, counter resets. Returns the new nonce."""
        with self._guard:
            stream = self._streams.pop(seed_id, None)
        with self.db.transaction(conn) as tx:
            row = tx.execute("SELECT nonce, revealed FROM fairness_seeds WHERE id=?",
                             (seed_id,)).fetchone()
            if not row:
                raise FairnessRecordMissing(f"Fairness record not found: {seed_id}")
            if stream is not None and stream.nonce != row["nonce"]:
                raise InvalidAction(f"Nonce moved during round on seed {seed_id[:8]}")
            tx.execute("UPDATE fairness_seeds SET nonce = nonce + 1 WHERE id=?", (seed_id,))
        drawn = stream.floats_drawn if stream else 0
        logger.debug(f"Round complete on seed {seed_id[:8]}: nonce {row['nonce']} "
                     f"→ {row['nonce'] + 1} ({drawn} floats)")
        return row["nonce"] + 1

    def abandon_round(self, seed_id: str) -> None:
        """Drop an in-flight stream without consuming the nonce."""
        with self._guard:
            self._streams.pop(seed_id, None)

    # ─── Reveal / rotation ────────────────────────────────────

    def reveal(self, user_id: str, seed_id: str) -> dict:
        """Publish the server seed. The record is retired for play."""
        with self.db.transaction() as tx:
            row = tx.execute("SELECT * FROM fairness_seeds WHERE id=?", (seed_id,)).fetchone()
            if not row or row["user_id"] != user_id:
                raise FairnessRecordMissing(f"Fairness record not found: {seed_id}")
            seed = FairnessSeed.from_row(row)
            if not seed.revealed:
                seed.revealed = True
                seed.revealed_at = datetime.now(timezone.utc).isoformat()
                tx.execute(
                    "UPDATE fairness_seeds SET revealed=1, revealed_at=? WHERE id=?",
                    (seed.revealed_at, seed_id),
                )
                logger.info(f"Seed {seed_id[:8]} revealed for {user_id}/{seed.game_type} "
                            f"after {seed.nonce} rounds")
        self.abandon_round(seed_id)
        return {
            "id": seed.id,
            "game_type": seed.game_type,
            "server_seed": seed.server_seed,
            "server_seed_hash": seed.server_seed_hash,
            "client_seed": seed.client_seed,
            "nonce": seed.nonce,
            "valid": self.verify_commitment(seed.server_seed, seed.server_seed_hash),
        }

    def update_client_seed(self, user_id: str, game_type, client_seed: str) -> FairnessSeed:
        """Rotate onto a new record that uses the player's client seed.

        The previous record is revealed first so rounds already played under
        it stay verifiable with the client seed they actually used.
        """
        lo, hi = CasinoConfig.CLIENT_SEED_MIN_LEN, CasinoConfig.CLIENT_SEED_MAX_LEN
        if not client_seed or not (lo <= len(client_seed) <= hi):
            raise InvalidAction(f"Client seed must be {lo}-{hi} characters")
        game_type = _game_key(game_type)
        with self.db.transaction() as tx:
            row = self._active_row(tx, user_id, game_type)
            if row:
                tx.execute(
                    "UPDATE fairness_seeds SET revealed=1, revealed_at=? WHERE id=?",
                    (datetime.now(timezone.utc).isoformat(), row["id"]),
                )
                self.abandon_round(row["id"])
            return self._create(tx, user_id, game_type, client_seed=client_seed)

    def history(self, user_id: str, game_type=None, page: int = 1,
                page_size: int = None) -> dict:
        page = max(1, page)
        page_size = min(page_size or CasinoConfig.DEFAULT_PAGE_SIZE, CasinoConfig.MAX_PAGE_SIZE)
        where, params = "user_id=?", [user_id]
        if game_type is not None:
            where += " AND game_type=?"
            params.append(_game_key(game_type))
        with self.db.read() as db:
            total = db.execute(f"SELECT COUNT(*) AS n FROM fairness_seeds WHERE {where}",
                               params).fetchone()["n"]
            rows = db.execute(
                f"""SELECT * FROM fairness_seeds WHERE {where}
                    ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?""",
                params + [page_size, (page - 1) * page_size],
            ).fetchall()
        return {
            "records": [FairnessSeed.from_row(r).public() for r in rows],
            "total": total,
            "page": page,
            "pages": math.ceil(total / page_size) if total else 0,
        }

    # ─── Verification (no database needed) ───────────────────

    @staticmethod
    def verify_commitment(server_seed: str, server_seed_hash: str) -> bool:
        return commitment(server_seed) == server_seed_hash

    @staticmethod
    def verify_floats(server_seed: str, client_seed: str, nonce: int, count: int) -> list[float]:
        """Recompute the first `count` floats of a round."""
        return [derive_float(server_seed, client_seed, nonce, c) for c in range(count)]

    @classmethod
    def verify_round(cls, server_seed: str, client_seed: str, nonce: int, count: int,
                     server_seed_hash: str = None) -> dict:
        """Everything a third party needs to re-check one round."""
        return {
            "server_seed_hash": commitment(server_seed),
            "commitment_valid": (cls.verify_commitment(server_seed, server_seed_hash)
                                 if server_seed_hash else None),
            "client_seed": client_seed,
            "nonce": nonce,
            "floats": cls.verify_floats(server_seed, client_seed, nonce, count),
        }

"""
ARKAINX Casino — Game Service

Orchestrates one player action as a single unit under the player's lock
and one SQLite transaction:

    validate → debit bet → open float stream → engine → credit payout
             → persist session / bonus → close the fairness round

Any CasinoError raised inside the unit rolls the transaction back and is
returned as a failed Result, so a rejected bet leaves no transaction, no
session and no consumed nonce behind.

Single-shot and reel games go through play(); mines, chicken road, video
poker and blackjack through start() / act() / cashout(). Stateful engines
draw every float they need at start(), so only start() consumes a nonce.

Usage:
    from casino.service import CasinoService
    svc = CasinoService(Database("casino.db"))
    svc.ledger.claim_faucet("u1")
    res = svc.play("u1", "dice", 100, {"target": 50, "is_over": True})
    res = svc.start("u1", "mines", 50, {"mine_count": 3})
    res = svc.act("u1", res.value["session_id"], {"action": "reveal", "tile": 7})
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from casino.errors import (
    CasinoError, GameDisabled, InvalidAction, InvalidBetAmount, Result,
)
from casino.fairness import FairnessSeedManager
from casino.ledger import WalletLedger
from casino.locks import UserLocks
from casino.rng import AmbientStream
from casino.sessions import KIND_BONUS, KIND_ROUND, GameSessionStore
from config.casino_schema import GAME_INFO, parse_move, parse_params, to_game_type
from config.database import Database, DatabaseConnection
from config.settings import RNG_AMBIENT, CasinoConfig
from sim_engine import get_engine
from sim_engine.base import RoundEngine, StatefulEngine

logger = logging.getLogger("arkainx.service")


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    where = ".".join(str(p) for p in first.get("loc", ()))
    return f"{where}: {first['msg']}" if where else first["msg"]


class CasinoService:
    """Player-facing operations. Every method returns a Result."""

    def __init__(self, db: Database = None):
        self.db = db or Database()
        self.locks = UserLocks()
        self.ledger = WalletLedger(self.db, self.locks)
        self.fairness = FairnessSeedManager(self.db)
        self.sessions = GameSessionStore(self.db, self.locks)

    # ─── Catalog & switches ───────────────────────────────────

    def is_enabled(self, game_type, conn: DatabaseConnection = None) -> bool:
        game_type = to_game_type(game_type)
        if game_type.value in CasinoConfig.disabled_games():
            return False
        with self.db.read(conn) as db:
            row = db.execute("SELECT is_enabled FROM game_config WHERE game_type=?",
                             (game_type.value,)).fetchone()
        return bool(row["is_enabled"]) if row else True

    def set_game_enabled(self, game_type, enabled: bool) -> None:
        game_type = to_game_type(game_type)
        with self.db.transaction() as tx:
            tx.execute(
                """INSERT INTO game_config (game_type, is_enabled) VALUES (?, ?)
                   ON CONFLICT(game_type) DO UPDATE
                   SET is_enabled=excluded.is_enabled, updated_at=datetime('now')""",
                (game_type.value, 1 if enabled else 0),
            )
        logger.info(f"{game_type.value} {'enabled' if enabled else 'disabled'}")

    def game_info(self) -> list[dict]:
        out = []
        for game_type, info in GAME_INFO.items():
            entry = info.model_dump(mode="json")
            entry["enabled"] = self.is_enabled(game_type)
            entry["rng_source"] = CasinoConfig.rng_source(game_type.value)
            out.append(entry)
        return out

    # ─── Validation (outside the lock) ────────────────────────

    def _engine(self, game_type):
        try:
            game_type = to_game_type(game_type)
        except ValueError:
            raise InvalidAction(f"Unknown game type: {game_type}")
        return get_engine(game_type)

    def _require_enabled(self, engine) -> None:
        if not self.is_enabled(engine.game_type):
            logger.warning(f"Rejected play on disabled game {engine.game_type.value}")
            raise GameDisabled(f"{engine.display_name} is currently disabled")

    @staticmethod
    def _check_bet(engine, bet_amount) -> None:
        info = engine.info
        if isinstance(bet_amount, bool) or not isinstance(bet_amount, int) or bet_amount <= 0:
            raise InvalidBetAmount("Bet amount must be a positive whole number of tokens")
        if not info.min_bet <= bet_amount <= info.max_bet:
            raise InvalidBetAmount(
                f"{engine.display_name} bets must be between {info.min_bet} and {info.max_bet}")

    @staticmethod
    def _params(engine, raw):
        try:
            return parse_params(engine.game_type, raw)
        except ValidationError as e:
            raise InvalidAction(_validation_message(e))

    # ─── Round unit ───────────────────────────────────────────

    def _open_stream(self, user_id: str, game_type, tx: DatabaseConnection):
        """(stream, seed) for one round. seed is None for ambient engines."""
        if CasinoConfig.rng_source(game_type.value) == RNG_AMBIENT:
            return AmbientStream(), None
        seed = self.fairness.get_or_create(user_id, game_type, conn=tx)
        return self.fairness.open_round(seed.id, conn=tx), seed

    def _run(self, user_id: str, label: str, body, game_type=None) -> Result:
        """Run body(tx, rng) under the user's lock in one transaction.

        With a game_type the unit is a fairness round: a stream is opened
        and, on success, the nonce advances with the rest of the commit.
        """
        seed = None
        try:
            with self.locks.hold(user_id):
                with self.db.transaction() as tx:
                    rng = None
                    if game_type is not None:
                        rng, seed = self._open_stream(user_id, game_type, tx)
                    response = body(tx, rng)
                    if seed is not None:
                        response["fairness"] = {
                            "seed_id": seed.id,
                            "server_seed_hash": seed.server_seed_hash,
                            "client_seed": seed.client_seed,
                            "nonce": rng.nonce,
                            "floats": rng.floats_drawn,
                        }
                        self.fairness.complete_round(seed.id, conn=tx)
                    elif rng is not None:
                        response["fairness"] = None
            return Result.success(response)
        except CasinoError as e:
            if seed is not None:
                self.fairness.abandon_round(seed.id)
            logger.warning(f"{label} rejected for {user_id}: {e.code}: {e}")
            return Result.failure(e)
        except Exception:
            if seed is not None:
                self.fairness.abandon_round(seed.id)
            raise

    def _credit(self, user_id: str, engine, payout: int, tx, meta: dict) -> int:
        return self.ledger.credit_winnings(user_id, payout, engine.game_type, meta,
                                           conn=tx).unwrap().new_balance

    # ─── Single-shot & reel games ─────────────────────────────

    def play(self, user_id: str, game_type, bet_amount: int, params: dict = None) -> Result:
        """One round of a single-shot or reel game.

        params={"free_spin": True} plays the next spin of the open bonus
        round instead: no bet is taken and the bonus session's stake is used.
        """
        try:
            engine = self._engine(game_type)
            if not isinstance(engine, RoundEngine):
                raise InvalidAction(f"{engine.display_name} is played with start / act")
            self._require_enabled(engine)
            parsed = self._params(engine, params)
            free_spin = bool(getattr(parsed, "free_spin", False))
            if not free_spin:
                self._check_bet(engine, bet_amount)
                err = engine.validate(bet_amount, parsed)
                if err:
                    raise err
        except CasinoError as e:
            logger.warning(f"play rejected for {user_id}: {e.code}: {e}")
            return Result.failure(e)

        if free_spin:
            body = lambda tx, rng: self._free_spin(user_id, engine, parsed, tx, rng)
        else:
            body = lambda tx, rng: self._paid_round(user_id, engine, bet_amount, parsed, tx, rng)
        return self._run(user_id, f"{engine.game_type.value} play", body, engine.game_type)

    def _paid_round(self, user_id, engine, bet_amount, params, tx, rng) -> dict:
        game_type = engine.game_type
        if self.sessions.find_active(user_id, game_type, KIND_BONUS, conn=tx):
            raise InvalidAction("Play your remaining free spins first")
        self.ledger.place_bet(user_id, bet_amount, game_type, conn=tx).unwrap()
        outcome = engine.play(bet_amount, params, rng).unwrap()
        balance = self._credit(user_id, engine, outcome.payout, tx,
                               {"multiplier": str(outcome.multiplier)})

        bonus = None
        if outcome.free_spins_won:
            state = {
                "spins_left": outcome.free_spins_won,
                "spins_played": 0,
                "bonus": outcome.bonus or {},
                "total_win": 0,
            }
            session_id = self.sessions.create(user_id, game_type, bet_amount, state,
                                              kind=KIND_BONUS, conn=tx)
            bonus = {"session_id": session_id, "spins_left": outcome.free_spins_won}
            logger.info(f"{user_id} won {outcome.free_spins_won} free spins on {game_type.value}")

        logger.debug(f"{game_type.value} {user_id} bet={bet_amount} payout={outcome.payout}")
        return {
            "game_type": game_type.value,
            "bet": bet_amount,
            "payout": outcome.payout,
            "multiplier": str(outcome.multiplier),
            "balance": balance,
            "outcome": outcome.to_dict(),
            "free_spins": bonus,
        }

    def _free_spin(self, user_id, engine, params, tx, rng) -> dict:
        game_type = engine.game_type
        session = self.sessions.find_active(user_id, game_type, KIND_BONUS, conn=tx)
        if session is None:
            raise InvalidAction("No free spins available")
        state = session.state
        outcome = engine.play(session.bet_amount, params, rng, bonus=state["bonus"]).unwrap()
        balance = self._credit(user_id, engine, outcome.payout, tx,
                               {"sessionId": session.id, "freeSpin": True})

        spins_left = state["spins_left"] - 1 + outcome.free_spins_won
        new_state = {
            "spins_left": spins_left,
            "spins_played": state["spins_played"] + 1,
            "bonus": outcome.bonus if outcome.bonus is not None else state["bonus"],
            "total_win": state["total_win"] + outcome.payout,
        }
        if spins_left > 0:
            self.sessions.update(session.id, user_id, new_state, conn=tx)
        else:
            self.sessions.finalize(session.id, user_id, new_state["total_win"], new_state, conn=tx)
            logger.info(f"Bonus {session.id[:8]} over for {user_id}: "
                        f"{new_state['spins_played']} spins, won {new_state['total_win']}")

        return {
            "game_type": game_type.value,
            "bet": 0,
            "payout": outcome.payout,
            "multiplier": str(outcome.multiplier),
            "balance": balance,
            "outcome": outcome.to_dict(),
            "free_spins": {
                "session_id": session.id,
                "spins_left": spins_left,
                "retriggered": outcome.free_spins_won,
                "total_win": new_state["total_win"],
                "finished": spins_left <= 0,
            },
        }

    def bonus_status(self, user_id: str, game_type) -> Optional[dict]:
        session = self.sessions.find_active(user_id, to_game_type(game_type), KIND_BONUS)
        if session is None:
            return None
        return {
            "session_id": session.id,
            "bet": session.bet_amount,
            "spins_left": session.state["spins_left"],
            "total_win": session.state["total_win"],
        }

    # ─── Multi-step games ─────────────────────────────────────

    def _finish(self, user_id, engine, session_id, outcome, tx) -> int:
        balance = self._credit(user_id, engine, outcome.payout, tx, {"sessionId": session_id})
        self.sessions.finalize(session_id, user_id, outcome.payout, outcome.state, conn=tx)
        return balance

    def _step_response(self, user_id, engine, session_id, outcome, tx) -> dict:
        if outcome.finished:
            balance = self._finish(user_id, engine, session_id, outcome, tx)
        else:
            self.sessions.update(session_id, user_id, outcome.state, conn=tx)
            balance = self.ledger.get_balance(user_id, conn=tx)
        return {
            "session_id": session_id,
            "game_type": engine.game_type.value,
            "finished": outcome.finished,
            "payout": outcome.payout,
            "multiplier": str(outcome.multiplier),
            "balance": balance,
            "outcome": outcome.to_dict(),
        }

    def start(self, user_id: str, game_type, bet_amount: int, params: dict = None) -> Result:
        """Debit the stake and open a session for a multi-step game."""
        try:
            engine = self._engine(game_type)
            if not isinstance(engine, StatefulEngine):
                raise InvalidAction(f"{engine.display_name} is played with play()")
            self._require_enabled(engine)
            parsed = self._params(engine, params)
            self._check_bet(engine, bet_amount)
            err = engine.validate(bet_amount, parsed)
            if err:
                raise err
        except CasinoError as e:
            logger.warning(f"start rejected for {user_id}: {e.code}: {e}")
            return Result.failure(e)

        def body(tx, rng):
            self.ledger.place_bet(user_id, bet_amount, engine.game_type, conn=tx).unwrap()
            outcome = engine.start(bet_amount, parsed, rng).unwrap()
            session_id = self.sessions.create(user_id, engine.game_type, bet_amount,
                                              outcome.state, conn=tx)
            return self._step_response(user_id, engine, session_id, outcome, tx)

        return self._run(user_id, f"{engine.game_type.value} start", body, engine.game_type)

    def _session_engine(self, session):
        engine = get_engine(session.game_type)
        if session.kind != KIND_ROUND or not isinstance(engine, StatefulEngine):
            raise InvalidAction("Session does not take moves")
        return engine

    def act(self, user_id: str, session_id: str, move) -> Result:
        """Apply one move. Extra stakes (double, split, insurance) are
        debited in the same unit."""

        def body(tx, rng):
            session = self.sessions.get(session_id, user_id, conn=tx)
            engine = self._session_engine(session)
            try:
                parsed = parse_move(engine.game_type, move)
            except ValidationError as e:
                raise InvalidAction(_validation_message(e))
            balance = self.ledger.get_balance(user_id, conn=tx)
            outcome = engine.act(session.state, parsed, balance).unwrap()
            if outcome.extra_bet:
                self.ledger.place_bet(user_id, outcome.extra_bet, engine.game_type,
                                      {"sessionId": session_id, "action": parsed.action},
                                      conn=tx).unwrap()
            return self._step_response(user_id, engine, session_id, outcome, tx)

        return self._run(user_id, "act", body)

    def cashout(self, user_id: str, session_id: str) -> Result:

        def body(tx, rng):
            session = self.sessions.get(session_id, user_id, conn=tx)
            engine = self._session_engine(session)
            outcome = engine.cashout(session.state).unwrap()
            return self._step_response(user_id, engine, session_id, outcome, tx)

        return self._run(user_id, "cashout", body)

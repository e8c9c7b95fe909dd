#!/usr/bin/env python3
"""
ARKAINX Casino — Unit & Integration Test Suite

Run: python tests.py
     python tests.py -v          # verbose
     python tests.py TestLedger  # run specific class

Test categories:
  TestLedger          — bets, credits, admin adjustments, faucet, history
  TestFairness        — commitment, float stream reproducibility, rotation
  TestSessions        — lifecycle, ownership, terminal COMPLETED state
  TestUserLocks       — re-entrant per-user locks, released entries dropped
  TestErrors          — Result tagging and error payloads
"""

import json
import os
import sys
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from casino.errors import (
    AlreadyFinished, FairnessRecordMissing, InsufficientBalance, InvalidAction,
    InvalidBetAmount, Result, SessionNotFound,
)
from casino.fairness import FairnessSeedManager
from casino.ledger import BET, FAUCET, WIN, WalletLedger
from casino.locks import UserLocks
from casino.rng import FairStream, commitment, derive_float, hash_to_float
from casino.sessions import COMPLETED, KIND_BONUS, GameSessionStore
from config.database import Database
from config.settings import CasinoConfig


def _temp_db() -> Database:
    return Database(os.path.join(tempfile.mkdtemp(), "casino.db"))


def _session_row(db: Database, session_id: str) -> dict:
    with db.read() as conn:
        return conn.execute("SELECT * FROM game_sessions WHERE id=?", (session_id,)).fetchone()


# ============================================================
# Wallet Ledger
# ============================================================

class TestLedger(unittest.TestCase):

    def setUp(self):
        self.db = _temp_db()
        self.ledger = WalletLedger(self.db)
        self.ledger.ensure_wallet("alice", 1000)

    def test_opening_balance_is_booked(self):
        """An opening balance is an ADMIN_CREDIT row, so the sum matches from row one."""
        self.assertEqual(self.ledger.get_balance("alice"), 1000)
        self.assertEqual(self.ledger.ledger_sum("alice"), 1000)

    def test_ensure_wallet_is_idempotent(self):
        """A second ensure_wallet does not credit again."""
        self.assertEqual(self.ledger.ensure_wallet("alice", 1000), 1000)
        self.assertEqual(self.ledger.ledger_sum("alice"), 1000)

    def test_bet_and_win(self):
        """BET is negative, WIN positive, balance_after tracks the wallet."""
        res = self.ledger.place_bet("alice", 300, "dice")
        self.assertTrue(res.ok)
        self.assertEqual(res.value.new_balance, 700)
        res = self.ledger.credit_winnings("alice", 450, "dice", {"multiplier": "1.5"})
        self.assertEqual(res.value.new_balance, 1150)

        history = self.ledger.transaction_history("alice")
        latest = history["transactions"][0]
        self.assertEqual(latest["type"], WIN)
        self.assertEqual(latest["amount"], 450)
        self.assertEqual(latest["balance_after"], 1150)
        self.assertEqual(latest["metadata"], {"multiplier": "1.5"})
        self.assertEqual(history["transactions"][1]["amount"], -300)
        self.assertEqual(self.ledger.ledger_sum("alice"), self.ledger.get_balance("alice"))

    def test_insufficient_balance_writes_nothing(self):
        """A failed debit leaves balance and transaction log untouched."""
        before = self.ledger.transaction_history("alice")["total"]
        res = self.ledger.place_bet("alice", 1001, "dice")
        self.assertFalse(res.ok)
        self.assertIsInstance(res.error, InsufficientBalance)
        self.assertEqual(res.error.details["balance"], 1000)
        self.assertEqual(res.error.details["required"], 1001)
        self.assertEqual(self.ledger.get_balance("alice"), 1000)
        self.assertEqual(self.ledger.transaction_history("alice")["total"], before)

    def test_non_positive_bet_rejected(self):
        for amount in (0, -5):
            res = self.ledger.place_bet("alice", amount, "dice")
            self.assertIsInstance(res.error, InvalidBetAmount)

    def test_zero_credit_is_noop(self):
        """Crediting nothing succeeds without writing a row."""
        before = self.ledger.transaction_history("alice")["total"]
        res = self.ledger.credit_winnings("alice", 0, "dice")
        self.assertTrue(res.ok)
        self.assertEqual(res.value.new_balance, 1000)
        self.assertEqual(self.ledger.transaction_history("alice")["total"], before)

    def test_admin_requires_reason_and_audits(self):
        res = self.ledger.admin_credit("alice", 50, "ops", "   ")
        self.assertIsInstance(res.error, InvalidAction)

        res = self.ledger.admin_debit("alice", 200, "ops", "chargeback", ip="10.0.0.1")
        self.assertTrue(res.ok)
        self.assertEqual(res.value.new_balance, 800)
        audit = self.ledger.audit_log("alice")
        self.assertEqual(len(audit), 1)
        self.assertEqual(audit[0]["action"], "ADMIN_DEBIT")
        self.assertEqual(audit[0]["details"]["reason"], "chargeback")
        self.assertEqual(audit[0]["ip"], "10.0.0.1")

    def test_admin_debit_cannot_overdraw(self):
        res = self.ledger.admin_debit("alice", 5000, "ops", "mistake")
        self.assertIsInstance(res.error, InsufficientBalance)
        self.assertEqual(self.ledger.audit_log("alice"), [])

    def test_faucet_cooldown(self):
        """One claim per cooldown window; a claim after the window succeeds."""
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        first = self.ledger.claim_faucet("bob", now=now)
        self.assertTrue(first.ok)
        self.assertEqual(first.value.new_balance, CasinoConfig.FAUCET_AMOUNT)

        early = self.ledger.claim_faucet("bob", now=now + timedelta(hours=1))
        self.assertIsInstance(early.error, InvalidAction)
        self.assertIn("hours", str(early.error))

        later = now + timedelta(hours=CasinoConfig.FAUCET_COOLDOWN_HOURS, minutes=1)
        again = self.ledger.claim_faucet("bob", now=later)
        self.assertTrue(again.ok)
        self.assertEqual(self.ledger.get_balance("bob"), 2 * CasinoConfig.FAUCET_AMOUNT)
        faucet_rows = self.ledger.transaction_history("bob", tx_type=FAUCET)
        self.assertEqual(faucet_rows["total"], 2)

    def test_refund(self):
        self.ledger.place_bet("alice", 100, "blackjack")
        res = self.ledger.refund("alice", 100, "blackjack", "round voided")
        self.assertEqual(res.value.new_balance, 1000)
        self.assertIsInstance(self.ledger.refund("alice", 0, "blackjack", "x").error, InvalidAction)

    def test_history_pagination(self):
        for _ in range(5):
            self.ledger.place_bet("alice", 10, "dice")
        page = self.ledger.transaction_history("alice", page=2, page_size=2, tx_type=BET)
        self.assertEqual(page["total"], 5)
        self.assertEqual(page["pages"], 3)
        self.assertEqual(len(page["transactions"]), 2)
        self.assertEqual(page["transactions"][0]["balance_after"], 970)


# ============================================================
# Fairness Seed Manager
# ============================================================

class TestFairness(unittest.TestCase):

    def setUp(self):
        self.db = _temp_db()
        self.fm = FairnessSeedManager(self.db)

    def test_hash_to_float_prefix(self):
        """Only the first 8 hex chars count, divided by 2^32."""
        self.assertEqual(hash_to_float("00000000" + "f" * 56), 0.0)
        self.assertEqual(hash_to_float("80000000" + "0" * 56), 0.5)
        self.assertLess(hash_to_float("ffffffff"), 1.0)

    def test_get_or_create_is_lazy_and_stable(self):
        seed = self.fm.get_or_create("alice", "dice")
        self.assertEqual(seed.nonce, 0)
        self.assertEqual(self.fm.get_or_create("alice", "dice").id, seed.id)
        self.assertNotEqual(self.fm.get_or_create("alice", "mines").id, seed.id)
        self.assertEqual(commitment(seed.server_seed), seed.server_seed_hash)
        self.assertIsNone(seed.public()["server_seed"])

    def test_stream_reproducible(self):
        """Drawn floats equal the independent recomputation, round after round."""
        seed = self.fm.get_or_create("alice", "dice")
        drawn = [self.fm.next_float(seed.id) for _ in range(4)]
        self.assertEqual(drawn, FairnessSeedManager.verify_floats(
            seed.server_seed, seed.client_seed, 0, 4))
        self.assertTrue(all(0.0 <= f < 1.0 for f in drawn))

        self.assertEqual(self.fm.complete_round(seed.id), 1)
        second = self.fm.open_round(seed.id)
        self.assertEqual(second.nonce, 1)
        self.assertEqual(second(), derive_float(seed.server_seed, seed.client_seed, 1, 0))

    def test_stream_independent_of_timing(self):
        """Same (seed, client, nonce) yields the same sequence from a fresh stream."""
        a = FairStream("server", "client", 7)
        b = FairStream("server", "client", 7)
        first = [a() for _ in range(3)]
        self.assertEqual(first, [b() for _ in range(3)])
        self.assertEqual(a.floats_drawn, 3)

    def test_abandon_keeps_nonce(self):
        seed = self.fm.get_or_create("alice", "dice")
        first = self.fm.next_float(seed.id)
        self.fm.abandon_round(seed.id)
        self.assertEqual(self.fm.get(seed.id).nonce, 0)
        self.assertEqual(self.fm.next_float(seed.id), first)

    def test_reveal_and_rotate(self):
        seed = self.fm.get_or_create("alice", "dice")
        self.fm.complete_round(seed.id)
        revealed = self.fm.reveal("alice", seed.id)
        self.assertTrue(revealed["valid"])
        self.assertEqual(revealed["nonce"], 1)
        self.assertEqual(revealed["server_seed"], seed.server_seed)
        # revealing again returns the same record
        self.assertEqual(self.fm.reveal("alice", seed.id)["server_seed"], seed.server_seed)
        with self.assertRaises(InvalidAction):
            self.fm.open_round(seed.id)
        fresh = self.fm.get_or_create("alice", "dice")
        self.assertNotEqual(fresh.id, seed.id)
        self.assertEqual(fresh.nonce, 0)

    def test_reveal_wrong_owner(self):
        seed = self.fm.get_or_create("alice", "dice")
        with self.assertRaises(FairnessRecordMissing):
            self.fm.reveal("mallory", seed.id)

    def test_missing_record(self):
        with self.assertRaises(FairnessRecordMissing):
            self.fm.next_float("no-such-seed")

    def test_update_client_seed(self):
        old = self.fm.get_or_create("alice", "dice")
        with self.assertRaises(InvalidAction):
            self.fm.update_client_seed("alice", "dice", "short")
        new = self.fm.update_client_seed("alice", "dice", "my-lucky-seed")
        self.assertEqual(new.client_seed, "my-lucky-seed")
        self.assertEqual(new.nonce, 0)
        self.assertTrue(self.fm.get(old.id).revealed)
        self.assertEqual(self.fm.get_or_create("alice", "dice").id, new.id)

        history = self.fm.history("alice", "dice")
        self.assertEqual(history["total"], 2)
        shown = {r["id"]: r["server_seed"] for r in history["records"]}
        self.assertEqual(shown[old.id], old.server_seed)
        self.assertIsNone(shown[new.id])

    def test_verify_round(self):
        check = FairnessSeedManager.verify_round("s3cret", "client", 2, 3,
                                                 server_seed_hash=commitment("s3cret"))
        self.assertTrue(check["commitment_valid"])
        self.assertEqual(len(check["floats"]), 3)
        bad = FairnessSeedManager.verify_round("s3cret", "client", 2, 1, server_seed_hash="00")
        self.assertFalse(bad["commitment_valid"])


# ============================================================
# Game Session Store
# ============================================================

class TestSessions(unittest.TestCase):

    def setUp(self):
        self.db = _temp_db()
        self.store = GameSessionStore(self.db)

    def test_state_round_trip(self):
        """The blob comes back exactly as stored."""
        state = {"_kind": "mines", "_v": 1, "revealed": [3, 9], "nested": {"a": [1, 2]}}
        sid = self.store.create("alice", "mines", 50, state)
        session = self.store.get(sid, "alice")
        self.assertEqual(session.state, state)
        self.assertEqual(session.bet_amount, 50)
        self.assertTrue(session.is_active)

    def test_wrong_owner_is_not_found(self):
        sid = self.store.create("alice", "mines", 50, {})
        with self.assertRaises(SessionNotFound):
            self.store.get(sid, "mallory")
        with self.assertRaises(SessionNotFound):
            self.store.update(sid, "mallory", {"x": 1})
        with self.assertRaises(SessionNotFound):
            self.store.get("missing", "alice")

    def test_finalize_is_terminal(self):
        sid = self.store.create("alice", "mines", 50, {"step": 0})
        self.store.update(sid, "alice", {"step": 1})
        self.store.finalize(sid, "alice", 120, {"step": 2})

        row = _session_row(self.db, sid)
        self.assertEqual(row["status"], COMPLETED)
        self.assertEqual(row["win_amount"], 120)
        self.assertEqual(json.loads(row["state_json"]), {"step": 2})
        self.assertIsNotNone(row["completed_at"])

        with self.assertRaises(AlreadyFinished):
            self.store.update(sid, "alice", {"step": 3})
        with self.assertRaises(AlreadyFinished):
            self.store.finalize(sid, "alice", 999, {})
        self.assertEqual(_session_row(self.db, sid)["win_amount"], 120)

    def test_completed_session_cannot_be_read(self):
        """A finalized session fails reads as well as writes; other owners still see not-found."""
        sid = self.store.create("alice", "mines", 50, {"step": 0})
        self.store.finalize(sid, "alice", 0, {"step": 1})
        with self.assertRaises(AlreadyFinished):
            self.store.get(sid, "alice")
        with self.assertRaises(SessionNotFound):
            self.store.get(sid, "mallory")

    def test_find_active_by_kind(self):
        self.store.create("alice", "slots", 10, {"spins_left": 3}, kind=KIND_BONUS)
        self.assertIsNone(self.store.find_active("alice", "slots"))
        bonus = self.store.find_active("alice", "slots", KIND_BONUS)
        self.assertEqual(bonus.state["spins_left"], 3)
        self.store.finalize(bonus.id, "alice", 0, bonus.state)
        self.assertIsNone(self.store.find_active("alice", "slots", KIND_BONUS))


# ============================================================
# Per-user locks
# ============================================================

class TestUserLocks(unittest.TestCase):

    def test_hold_is_reentrant_and_exclusive(self):
        locks = UserLocks()
        seen = []
        with locks.hold("alice"):
            with locks.hold("alice"):
                t = threading.Thread(target=lambda: seen.append(locks._lock_for("alice").acquire(blocking=False)))
                t.start()
                t.join()
            self.assertIs(locks._lock_for("alice"), locks._lock_for("alice"))
        self.assertEqual(seen, [False])

    def test_released_locks_are_dropped(self):
        """The table holds only users with a live lock."""
        locks = UserLocks()
        for i in range(100):
            with locks.hold(f"user-{i}"):
                self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)

        with locks.hold("alice"):
            with locks.hold("bob"):
                self.assertEqual(len(locks), 2)
        self.assertEqual(len(locks), 0)


# ============================================================
# Errors & Result
# ============================================================

class TestErrors(unittest.TestCase):

    def test_result_tagging(self):
        ok = Result.success(5)
        self.assertTrue(ok.ok)
        self.assertEqual(ok.unwrap(), 5)
        self.assertEqual(ok.to_dict(), {"success": True, "value": 5})

        bad = Result.failure(InsufficientBalance(balance=5, required=10))
        self.assertFalse(bad.ok)
        with self.assertRaises(InsufficientBalance):
            bad.unwrap()
        payload = bad.to_dict()["error"]
        self.assertEqual(payload["code"], "InsufficientBalance")
        self.assertEqual(payload["balance"], 5)
        self.assertEqual(payload["required"], 10)


if __name__ == "__main__":
    unittest.main()

#!/usr/bin/env python3
"""
ARKAINX Casino — Service Integration Tests

Run: python tests_service.py
     python tests_service.py TestStatefulRounds

Test categories:
  TestPlay            — conservation, atomic rejection, limits, switches, nonces
  TestStatefulRounds  — start / act / cashout through the service
  TestBonusRounds     — free spins driven by the bonus session
  TestConcurrency     — parallel players and racing bets keep balance == ledger sum
"""

import os
import sys
import tempfile
import threading
import unittest
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from casino.ledger import BET
from casino.service import CasinoService
from casino.sessions import COMPLETED, KIND_BONUS
from config.database import Database
from sim_engine.rmg.dice import roll_from_float


def _service() -> CasinoService:
    return CasinoService(Database(os.path.join(tempfile.mkdtemp(), "casino.db")))


def _session_row(svc: CasinoService, session_id: str) -> dict:
    with svc.db.read() as conn:
        return conn.execute("SELECT * FROM game_sessions WHERE id=?", (session_id,)).fetchone()


DICE = {"target": 50, "is_over": True}


# ============================================================
# Single-shot play
# ============================================================

class TestPlay(unittest.TestCase):

    def setUp(self):
        self.svc = _service()
        self.svc.ledger.ensure_wallet("alice", 1000)

    def test_conservation(self):
        """balance_after = balance_before − bet + payout, and the ledger agrees."""
        for _ in range(20):
            before = self.svc.ledger.get_balance("alice")
            res = self.svc.play("alice", "dice", 10, DICE)
            self.assertTrue(res.ok, res.error)
            self.assertEqual(res.value["balance"], before - 10 + res.value["payout"])
            self.assertEqual(self.svc.ledger.get_balance("alice"), res.value["balance"])
        self.assertEqual(self.svc.ledger.ledger_sum("alice"), self.svc.ledger.get_balance("alice"))

    def test_insufficient_balance_leaves_nothing_behind(self):
        """A rejected bet writes no transaction and creates no fairness record."""
        self.svc.ledger.ensure_wallet("bob", 5)
        tx_before = self.svc.ledger.transaction_history("bob")["total"]
        res = self.svc.play("bob", "dice", 10, DICE)
        self.assertFalse(res.ok)
        self.assertEqual(res.error.code, "InsufficientBalance")
        self.assertEqual(self.svc.ledger.get_balance("bob"), 5)
        self.assertEqual(self.svc.ledger.transaction_history("bob")["total"], tx_before)
        self.assertEqual(self.svc.fairness.history("bob")["total"], 0)

    def test_bet_limits(self):
        for bad in (0, -5, 10001, 2.5, True, "10"):
            res = self.svc.play("alice", "dice", bad, DICE)
            self.assertFalse(res.ok, bad)
            self.assertEqual(res.error.code, "InvalidBetAmount")
        self.assertEqual(self.svc.ledger.get_balance("alice"), 1000)

    def test_blackjack_spot_below_minimum(self):
        """Each blackjack spot must meet the table minimum, not just the total."""
        res = self.svc.start("alice", "blackjack", 11, {"spots": {"left_up": 1, "center": 10}})
        self.assertFalse(res.ok)
        self.assertEqual(res.error.code, "InvalidBetAmount")
        self.assertEqual(self.svc.ledger.get_balance("alice"), 1000)
        self.assertEqual(self.svc.ledger.transaction_history("alice", tx_type=BET)["total"], 0)

    def test_bad_params_and_unknown_game(self):
        res = self.svc.play("alice", "dice", 10, {"target": 99.5})
        self.assertEqual(res.error.code, "InvalidAction")
        res = self.svc.play("alice", "baccarat", 10)
        self.assertEqual(res.error.code, "InvalidAction")

    def test_disabled_game(self):
        self.svc.set_game_enabled("dice", False)
        res = self.svc.play("alice", "dice", 10, DICE)
        self.assertFalse(res.ok)
        self.assertEqual(res.error.code, "GameDisabled")
        info = {g["game_type"]: g for g in self.svc.game_info()}
        self.assertFalse(info["dice"]["enabled"])
        self.svc.set_game_enabled("dice", True)
        self.assertTrue(self.svc.play("alice", "dice", 10, DICE).ok)

    def test_stateful_game_rejected_by_play(self):
        res = self.svc.play("alice", "mines", 10, {"mine_count": 3})
        self.assertEqual(res.error.code, "InvalidAction")
        res = self.svc.start("alice", "dice", 10, DICE)
        self.assertEqual(res.error.code, "InvalidAction")

    def test_nonce_advances_per_round(self):
        nonces = [self.svc.play("alice", "dice", 10, DICE).value["fairness"]["nonce"]
                  for _ in range(3)]
        self.assertEqual(nonces, [0, 1, 2])

    def test_round_is_reproducible_from_revealed_seed(self):
        res = self.svc.play("alice", "dice", 10, DICE).value
        fairness = res["fairness"]
        revealed = self.svc.fairness.reveal("alice", fairness["seed_id"])
        check = self.svc.fairness.verify_round(
            revealed["server_seed"], fairness["client_seed"], fairness["nonce"],
            fairness["floats"], fairness["server_seed_hash"])
        self.assertTrue(check["commitment_valid"])
        self.assertEqual(res["outcome"]["roll"], str(roll_from_float(check["floats"][0])))

    def test_ambient_source_has_no_fairness(self):
        os.environ["CASINO_RNG_DICE"] = "ambient"
        try:
            res = self.svc.play("alice", "dice", 10, DICE)
        finally:
            del os.environ["CASINO_RNG_DICE"]
        self.assertTrue(res.ok)
        self.assertIsNone(res.value["fairness"])
        self.assertEqual(self.svc.fairness.history("alice")["total"], 0)


# ============================================================
# Stateful rounds
# ============================================================

class TestStatefulRounds(unittest.TestCase):

    def setUp(self):
        self.svc = _service()
        self.svc.ledger.ensure_wallet("alice", 1000)

    def _start_mines(self):
        res = self.svc.start("alice", "mines", 100, {"mine_count": 3})
        self.assertTrue(res.ok, res.error)
        session_id = res.value["session_id"]
        mines = self.svc.sessions.get(session_id, "alice").state["mine_positions"]
        safe = next(t for t in range(25) if t not in mines)
        return session_id, mines, safe

    def test_reveal_then_cashout(self):
        session_id, _, safe = self._start_mines()
        self.assertEqual(self.svc.ledger.get_balance("alice"), 900)

        res = self.svc.act("alice", session_id, {"action": "reveal", "tile": safe})
        self.assertTrue(res.ok, res.error)
        self.assertFalse(res.value["finished"])
        self.assertEqual(res.value["multiplier"], "1.12")
        self.assertNotIn("mine_positions", res.value["outcome"])

        res = self.svc.cashout("alice", session_id)
        self.assertTrue(res.ok, res.error)
        self.assertEqual(res.value["payout"], 112)
        self.assertEqual(res.value["balance"], 1012)
        self.assertEqual(_session_row(self.svc, session_id)["status"], COMPLETED)
        res = self.svc.cashout("alice", session_id)
        self.assertEqual(res.error.code, "AlreadyFinished")

    def test_hit_mine_settles_at_zero(self):
        session_id, mines, _ = self._start_mines()
        res = self.svc.act("alice", session_id, {"action": "reveal", "tile": mines[0]})
        self.assertTrue(res.value["finished"])
        self.assertEqual(res.value["payout"], 0)
        self.assertEqual(res.value["outcome"]["mine_positions"], sorted(mines))
        self.assertEqual(self.svc.ledger.get_balance("alice"), 900)

    def test_finished_and_foreign_sessions(self):
        session_id, mines, safe = self._start_mines()
        self.svc.act("alice", session_id, {"action": "reveal", "tile": mines[0]})
        res = self.svc.act("alice", session_id, {"action": "reveal", "tile": safe})
        self.assertEqual(res.error.code, "AlreadyFinished")
        res = self.svc.cashout("alice", session_id)
        self.assertEqual(res.error.code, "AlreadyFinished")

        other, _, safe = self._start_mines()
        res = self.svc.act("mallory", other, {"action": "reveal", "tile": safe})
        self.assertEqual(res.error.code, "SessionNotFound")

    def test_bad_move_keeps_session(self):
        session_id, _, _ = self._start_mines()
        res = self.svc.act("alice", session_id, {"action": "reveal"})
        self.assertEqual(res.error.code, "InvalidAction")
        res = self.svc.cashout("alice", session_id)
        self.assertEqual(res.error.code, "InvalidAction")
        self.assertEqual(self.svc.sessions.get(session_id, "alice").status, "ACTIVE")

    def test_moves_do_not_consume_nonces(self):
        session_id, _, safe = self._start_mines()
        self.svc.act("alice", session_id, {"action": "reveal", "tile": safe})
        self.svc.cashout("alice", session_id)
        res = self.svc.start("alice", "mines", 100, {"mine_count": 3})
        self.assertEqual(res.value["fairness"]["nonce"], 1)

    def test_video_poker_draw(self):
        res = self.svc.start("alice", "video_poker", 5)
        self.assertTrue(res.ok, res.error)
        self.assertEqual(len(res.value["outcome"]["hand"]), 5)
        res = self.svc.act("alice", res.value["session_id"], {"action": "draw", "holds": [0, 1]})
        self.assertTrue(res.ok, res.error)
        self.assertTrue(res.value["finished"])
        self.assertEqual(self.svc.ledger.ledger_sum("alice"), self.svc.ledger.get_balance("alice"))


# ============================================================
# Bonus rounds
# ============================================================

class TestBonusRounds(unittest.TestCase):

    def setUp(self):
        self.svc = _service()
        self.svc.ledger.ensure_wallet("alice", 1000)
        self.session_id = self.svc.sessions.create(
            "alice", "slots", 10,
            {"spins_left": 3, "spins_played": 0, "bonus": {}, "total_win": 0},
            kind=KIND_BONUS,
        )

    def test_paid_spin_blocked_during_bonus(self):
        res = self.svc.play("alice", "slots", 10)
        self.assertFalse(res.ok)
        self.assertEqual(res.error.code, "InvalidAction")
        self.assertEqual(self.svc.ledger.get_balance("alice"), 1000)

    def test_free_spins_run_to_completion(self):
        status = self.svc.bonus_status("alice", "slots")
        self.assertEqual(status["spins_left"], 3)
        self.assertEqual(status["bet"], 10)

        total = 0
        for _ in range(100):
            res = self.svc.play("alice", "slots", 0, {"free_spin": True})
            self.assertTrue(res.ok, res.error)
            total += res.value["payout"]
            if res.value["free_spins"]["finished"]:
                break
        self.assertEqual(res.value["free_spins"]["total_win"], total)

        row = _session_row(self.svc, self.session_id)
        self.assertEqual(row["status"], COMPLETED)
        self.assertEqual(row["win_amount"], total)
        self.assertIsNone(self.svc.bonus_status("alice", "slots"))
        self.assertEqual(self.svc.ledger.transaction_history("alice", tx_type=BET)["total"], 0)
        self.assertEqual(self.svc.ledger.get_balance("alice"), 1000 + total)

        res = self.svc.play("alice", "slots", 0, {"free_spin": True})
        self.assertEqual(res.error.code, "InvalidAction")


# ============================================================
# Concurrency
# ============================================================

class TestConcurrency(unittest.TestCase):

    def test_parallel_players(self):
        svc = _service()
        users = ["u1", "u2"]
        for u in users:
            svc.ledger.ensure_wallet(u, 10_000)
        errors = []

        def worker(user):
            for _ in range(10):
                res = svc.play(user, "dice", 10, DICE)
                if not res.ok:
                    errors.append(res.error)

        threads = [threading.Thread(target=worker, args=(u,)) for u in users for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        for u in users:
            self.assertEqual(svc.ledger.get_balance(u), svc.ledger.ledger_sum(u))
            self.assertEqual(svc.ledger.transaction_history(u, tx_type=BET)["total"], 30)
            seed = svc.fairness.get_or_create(u, "dice")
            self.assertEqual(seed.nonce, 30)

    def test_no_double_spend_across_services(self):
        """Two services on one database: a wallet worth 5 bets pays exactly 5 bets."""
        path = os.path.join(tempfile.mkdtemp(), "casino.db")
        services = [CasinoService(Database(path)), CasinoService(Database(path))]
        services[0].ledger.ensure_wallet("carol", 50)
        accepted, rejected, crashed = [], [], []

        def worker(svc):
            for _ in range(5):
                try:
                    res = svc.ledger.place_bet("carol", 10, "dice")
                except Exception as e:
                    crashed.append(e)
                    continue
                (accepted if res.ok else rejected).append(res)

        threads = [threading.Thread(target=worker, args=(services[i % 2],)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ledger = services[1].ledger
        self.assertEqual(crashed, [])
        self.assertEqual(len(accepted), 5)
        self.assertEqual(len(rejected), 15)
        self.assertTrue(all(r.error.code == "InsufficientBalance" for r in rejected))
        self.assertEqual(ledger.transaction_history("carol", tx_type=BET)["total"], 5)
        self.assertEqual(ledger.get_balance("carol"), 0)
        self.assertEqual(ledger.ledger_sum("carol"), 0)

    def test_concurrent_play_never_overdraws(self):
        """Rounds racing on a small wallet through two services keep the ledger whole."""
        path = os.path.join(tempfile.mkdtemp(), "casino.db")
        services = [CasinoService(Database(path)), CasinoService(Database(path))]
        services[0].ledger.ensure_wallet("dave", 30)
        codes, crashed = [], []

        def worker(svc):
            for _ in range(5):
                try:
                    res = svc.play("dave", "dice", 10, DICE)
                except Exception as e:
                    crashed.append(e)
                    continue
                if not res.ok:
                    codes.append(res.error.code)

        threads = [threading.Thread(target=worker, args=(services[i % 2],)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ledger = services[0].ledger
        self.assertEqual(crashed, [])
        self.assertTrue(set(codes) <= {"InsufficientBalance"})
        bets = ledger.transaction_history("dave", tx_type=BET)["total"]
        self.assertEqual(bets + len(codes), 20)
        self.assertGreaterEqual(ledger.get_balance("dave"), 0)
        self.assertEqual(ledger.get_balance("dave"), ledger.ledger_sum("dave"))


if __name__ == "__main__":
    unittest.main(verbosity=2)

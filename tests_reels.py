#!/usr/bin/env python3
"""
Tests for the reel games and the shared grid helpers.

Validates:
1. Weight tables, drop-and-refill gravity, cascade multiplier schedules
2. Payline evaluation: wild runs, all-wild lines, both-ways without double pay
3. Hold & win: landing resets respins, full grid ends the feature
4. Cascades stop at the cap even when every refill wins again
5. Per-game features: bombs/free spins, ways wins, stacked wilds, moon
   and coin respins, expanding symbols
6. Every reel engine plays and simulates with a seeded stream
"""

import random
import sys
from decimal import Decimal
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from casino.rng import ReplayStream
from config.casino_schema import GameType, SpinParams
from sim_engine import get_engine
from sim_engine.reels import REEL_ENGINES
from sim_engine.reels.book_of_dead import BookOfDeadEngine, expand
from sim_engine.reels.coin_strike import CoinStrikeEngine, evaluate_lines
from sim_engine.reels.gonzo import (
    find_ways_wins, free_spins_for as gonzo_free_spins, unbreakable_wilds, ways,
)
from sim_engine.reels.grid import (
    MAX_CASCADES, drop_and_refill, evaluate_payline, evaluate_paylines, hold_and_win,
    schedule_multiplier, weight_table,
)
from sim_engine.reels.starburst import StarburstEngine
from sim_engine.reels.sweet_bonanza import (
    SweetBonanzaEngine, cluster_pay, free_spins_for as bonanza_free_spins,
)
from sim_engine.reels.wolf_gold import moon_respin, spin_reels as wolf_spin_reels


# ============================================================
# Grid helpers
# ============================================================

def test_weight_table():
    assert weight_table({"a": 1, "b": 0, "c": 2}) == [("a", 1), ("c", 2)]
    assert weight_table({"a": 1, "b": 3, "c": 2}, exclude=["c"]) == [("a", 1), ("b", 3)]


def test_drop_and_refill_gravity():
    """Survivors fall to the bottom, new symbols fill from the top."""
    grid = [["a", "b", "c"], ["d", "e"]]
    out = drop_and_refill(grid, {(0, 2), (1, 1)}, ReplayStream([0.0, 0.0]), [("x", 1)])
    assert out == [["x", "a", "b"], ["x", "d"]]
    assert grid == [["a", "b", "c"], ["d", "e"]]


def test_schedule_saturates():
    schedule = (1, 2, 3, 5)
    assert [schedule_multiplier(schedule, i) for i in range(6)] == [1, 2, 3, 5, 5, 5]


def test_payline_with_wilds():
    paytable = {"cherry": (1, 2, 3), "lemon": (1, 1, 1)}
    line = ["wild", "wild", "cherry", "cherry", "lemon"]
    assert evaluate_payline(line, paytable, "wild") == ("cherry", 4, 2)
    assert evaluate_payline(["wild"] * 5, paytable, "wild", all_wild_as="cherry") == ("cherry", 5, 3)
    assert evaluate_payline(["wild"] * 5, paytable, "wild") is None
    assert evaluate_payline(["cherry", "lemon", "cherry", "cherry", "cherry"], paytable, "wild") is None


def test_both_ways_pays_full_line_once():
    paytable = {"a": (1, 2, 5)}
    full = [["a"]] * 5
    wins = evaluate_paylines(full, [(0, 0, 0, 0, 0)], paytable, "w", both_ways=True)
    assert len(wins) == 1
    assert wins[0]["line_multiplier"] == 5

    right_only = [["b"], ["c"], ["a"], ["a"], ["a"]]
    wins = evaluate_paylines(right_only, [(0, 0, 0, 0, 0)], paytable, "w", both_ways=True)
    assert [w["direction"] for w in wins] == ["right"]
    assert wins[0]["positions"] == [[4, 0], [3, 0], [2, 0]]


def test_hold_and_win_resets_on_landing():
    cells = [(0, 0), (0, 1), (1, 0), (1, 1)]
    held = {(0, 0): 1}
    floats = [0.9, 0.9, 0.9,      # nothing lands, 2 left
              0.1, 0.9, 0.9,      # (0, 1) lands, back to 3
              0.9, 0.9, 0.9, 0.9, 0.9, 0.9]
    stream = ReplayStream(floats)
    result = hold_and_win(stream, cells, held, 0.5, lambda rng: 2)
    assert result["respins"] == 5
    assert result["held"] == {(0, 0): 1, (0, 1): 2}
    assert result["full"] is False
    assert stream.floats_drawn == len(floats)
    assert held == {(0, 0): 1}


def test_hold_and_win_full_grid():
    result = hold_and_win(ReplayStream([0.1]), [(0, 0), (0, 1)], {(0, 0): 1}, 0.5, lambda rng: 3)
    assert result == {"held": {(0, 0): 1, (0, 1): 3}, "respins": 1, "full": True}


# ============================================================
# Sweet Bonanza
# ============================================================

def test_tumbles_stop_at_cap():
    """A stream that refills the same winning grid forever still ends."""
    engine = SweetBonanzaEngine()
    stream = ReplayStream([0.0] * (30 + MAX_CASCADES * 30))
    outcome = engine.play(1, SpinParams(), stream).unwrap()
    assert len(outcome.data["tumbles"]) == MAX_CASCADES
    assert outcome.payout == 5 * MAX_CASCADES
    assert outcome.free_spins_won == 0
    assert outcome.bonus is None


def test_bonanza_scatter_awards():
    assert bonanza_free_spins(3, False) == 0
    assert bonanza_free_spins(4, False) == 10
    assert bonanza_free_spins(5, False) == 15
    assert bonanza_free_spins(7, False) == 20
    assert bonanza_free_spins(4, True) == 5
    assert cluster_pay("banana", 7) == 0
    assert cluster_pay("red_candy", 12) == Decimal("12")


def test_bonanza_bonus_multiplier_carries():
    engine = SweetBonanzaEngine()
    rng = random.Random(11).random
    bonus = {"multiplier": 1}
    for _ in range(30):
        outcome = engine.play(1, SpinParams(), rng, bonus=bonus).unwrap()
        assert outcome.bonus["multiplier"] >= bonus["multiplier"]
        bonus = outcome.bonus


# ============================================================
# Gonzo's Quest
# ============================================================

GONZO_GRID = [
    ["blue_mask", "frog"],
    ["wild", "blue_mask"],
    ["blue_mask", "frog"],
    ["frog", "frog"],
    ["fish", "fish"],
    ["fish", "fish"],
]


def test_ways_wins():
    wins = {w["symbol"]: w for w in find_ways_wins(GONZO_GRID)}
    assert set(wins) == {"blue_mask", "frog"}
    assert wins["blue_mask"]["reels"] == 3 and wins["blue_mask"]["ways"] == 2
    assert wins["blue_mask"]["pay"] == Decimal(3)
    assert wins["frog"]["reels"] == 4 and wins["frog"]["ways"] == 2
    assert wins["frog"]["pay"] == Decimal("0.6")
    assert ways(GONZO_GRID) == 64


def test_unbreakable_wilds_and_free_falls():
    assert unbreakable_wilds(GONZO_GRID) == {(1, 0)}
    assert gonzo_free_spins(2) == 0
    assert gonzo_free_spins(3) == 9
    assert gonzo_free_spins(5) == 15


# ============================================================
# Starburst, Wolf Gold, Coin Strike, Book of Dead
# ============================================================

def test_starburst_no_wild_single_spin():
    outcome = StarburstEngine().play(10, SpinParams(), ReplayStream([0.0] * 15)).unwrap()
    assert outcome.data["respins"] == 0
    assert len(outcome.data["spins"][0]["winning_lines"]) == 10
    assert outcome.payout == 1250


def test_wolf_gold_stacked_reel():
    floats = [0.01] + [0.5] * 16
    grid, stacked = wolf_spin_reels(ReplayStream(floats), False)
    assert stacked == [0]
    assert grid[0] == ["wolf", "wolf", "wolf"]
    assert len(grid) == 5 and all(len(r) == 3 for r in grid)


def test_moon_respin_without_jackpot():
    moons = {(r, 0): 1 for r in range(5)}
    moons[(0, 1)] = 1
    stream = ReplayStream([0.9] * 27 + [0.99])
    result = moon_respin(stream, moons)
    assert result["respins"] == 3
    assert result["jackpot"] is None
    assert result["multiplier"] == 6


def test_moon_respin_full_grid_mega():
    moons = {(r, row): 1 for r in range(5) for row in range(3)}
    result = moon_respin(ReplayStream([]), moons)
    assert result["jackpot"] == "mega"
    assert result["multiplier"] == 1015


def test_coin_strike_lines():
    grid = [
        ["cherry", "wild", "bell"],
        ["cherry", "cherry", "bell"],
        ["wild", "cherry", "bell"],
    ]
    wins = evaluate_lines(grid)
    assert [(w["line"], w["symbol"], w["multiplier"]) for w in wins] == [
        (1, "cherry", 3), (2, "cherry", 3), (3, "bell", 12),
    ]


def test_coin_strike_grand():
    """Nine coins fill the grid at once: coin values plus GRAND."""
    stream = ReplayStream([0.85] * 9 + [0.0] * 9)
    outcome = CoinStrikeEngine().play(1, SpinParams(), stream).unwrap()
    assert outcome.data["hold_and_win"]["jackpot"] == "grand"
    assert outcome.payout == 1009
    assert outcome.data["winning_lines"] == []


def test_book_expands_only_reels_with_symbol():
    grid = [
        ["ten", "king", "book"],
        ["ace", "queen", "jack"],
        ["king", "book", "ten"],
        ["ace", "ace", "ace"],
        ["jack", "jack", "jack"],
    ]
    out, reels = expand(grid, "king")
    assert reels == [0, 2]
    assert out[0] == ["king", "king", "book"]
    assert out[2] == ["king", "book", "king"]
    assert out[1] == grid[1]


def test_book_free_spin_keeps_symbol():
    engine = BookOfDeadEngine()
    outcome = engine.play(10, SpinParams(), ReplayStream([0.0] * 15),
                          bonus={"expanding_symbol": "pharaoh"}).unwrap()
    assert outcome.bonus == {"expanding_symbol": "pharaoh"}
    assert outcome.data["expanded_reels"] == []
    assert outcome.payout == 1000


# ============================================================
# All reel engines
# ============================================================

def test_reel_engines_play_and_simulate():
    assert set(REEL_ENGINES) == {
        GameType.SWEET_BONANZA, GameType.BOOK_OF_DEAD, GameType.WOLF_GOLD,
        GameType.STARBURST, GameType.GONZOS_QUEST, GameType.COIN_STRIKE,
    }
    for game_type in REEL_ENGINES:
        engine = get_engine(game_type)
        rng = random.Random(5).random
        for _ in range(100):
            outcome = engine.play(10, SpinParams(), rng).unwrap()
            assert outcome.payout >= 0
            assert outcome.finished is True
            if outcome.free_spins_won:
                bonus = engine.play(10, SpinParams(free_spin=True), rng,
                                    bonus=outcome.bonus or {}).unwrap()
                assert bonus.data.get("free_spin", True) is True
        result = engine.simulate(rounds=200, seed=3)
        assert result.total_wagered == 200 * engine.sim_bet


# ============================================================
# Run all tests
# ============================================================

if __name__ == "__main__":
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_") and callable(v)]

    print(f"\n{'='*60}")
    print(f"Reel Tests — {len(tests)} tests")
    print(f"{'='*60}\n")

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            print(f"✅ {test.__name__}")
            passed += 1
        except Exception as e:
            print(f"❌ {test.__name__}: {e}")
            failed += 1

    print(f"\n{'='*60}")
    print(f"Results: {passed} passed, {failed} failed, {passed + failed} total")
    print(f"{'='*60}")

    sys.exit(0 if failed == 0 else 1)

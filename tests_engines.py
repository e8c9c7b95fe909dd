#!/usr/bin/env python3
"""
Tests for the table & instant game engines.

Validates:
1. Dice over/under scenario, multiplier formula, bounds
2. Mines / chicken road survival curve: multiplier(0) = 1, strictly increasing
3. Mines reveal / bust / cash-out against a replayed mine layout
4. Blackjack hand values, dealer draw-to-17, splits, insurance, settlement,
   per-spot minimum bets
5. Roulette multipliers floored to two places on mixed bets
6. Video poker hand ranking and hold hint
7. Persisted state refuses blobs from another engine
8. Every GameType has an engine and a short simulation stays near its RTP
"""

import sys
from decimal import Decimal
from pathlib import Path

# ── Ensure project root is on sys.path ──
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from casino.errors import InsufficientBalance, InvalidAction, InvalidBetAmount
from casino.rng import ReplayStream, float_to_range, shuffle, unique_ints, weighted_pick
from config.casino_schema import (
    BlackjackMove, BlackjackParams, DiceParams, Difficulty, DrawMove, GameType,
    MinesParams, RouletteBet, RouletteParams, TileMove,
)
from sim_engine import ENGINES, get_engine
from sim_engine.base import floor_places, payout_for, survival_multiplier
from sim_engine.rmg.blackjack import (
    DEALER_TURN, PLAYING, SETTLED, BlackjackEngine, BlackjackState, Hand, settle_hand,
)
from sim_engine.rmg.cards import hand_value
from sim_engine.rmg.chicken import ROAD_COLUMNS, chicken_multiplier
from sim_engine.rmg.dice import DiceEngine, multiplier_for, win_chance
from sim_engine.rmg.mines import GRID_SIZE, MinesEngine, mines_multiplier
from sim_engine.rmg.roulette import RouletteEngine
from sim_engine.rmg.video_poker import evaluate_hand, optimal_holds


# ============================================================
# RNG helpers
# ============================================================

def test_float_helpers():
    """Range mapping and threshold walk behave at the edges."""
    assert float_to_range(0.0, 0, 36) == 0
    assert float_to_range(0.999999, 0, 36) == 36
    table = [("a", 1), ("b", 3)]
    assert weighted_pick(ReplayStream([0.0]), table) == "a"
    assert weighted_pick(ReplayStream([0.25]), table) == "b"
    assert weighted_pick(ReplayStream([0.9999]), table) == "b"
    assert unique_ints(ReplayStream([0.0, 0.0, 0.0]), 0, 24, 3) == [0, 1, 2]
    assert sorted(shuffle(ReplayStream([0.5] * 9), list(range(10)))) == list(range(10))


def test_replay_stream_exhausts():
    stream = ReplayStream([0.1])
    stream()
    try:
        stream()
    except IndexError:
        return
    raise AssertionError("ReplayStream should raise once exhausted")


# ============================================================
# Dice
# ============================================================

def test_dice_over_scenario():
    """target 50 over, roll 51.23 → win; chance 49.99; payout from the floored multiplier."""
    engine = DiceEngine()
    params = DiceParams(target=50, is_over=True)
    outcome = engine.play(100, params, ReplayStream([0.51235])).unwrap()
    assert outcome.data["roll"] == "51.23"
    assert outcome.data["won"] is True
    assert Decimal(outcome.data["win_chance"]) == Decimal("49.99")
    assert outcome.multiplier == Decimal("1.9803")
    assert outcome.payout == 198


def test_dice_loss_and_under():
    engine = DiceEngine()
    lost = engine.play(100, DiceParams(target=50, is_over=True), ReplayStream([0.5])).unwrap()
    assert lost.data["roll"] == "50"
    assert lost.payout == 0
    under = engine.play(100, DiceParams(target=25, is_over=False), ReplayStream([0.1])).unwrap()
    assert under.data["won"] is True
    assert Decimal(under.data["win_chance"]) == Decimal(25)
    assert under.multiplier == Decimal("3.96")
    assert under.payout == 396


def test_dice_multiplier_formula():
    assert win_chance(50, True) == Decimal("49.99")
    assert multiplier_for(Decimal(50)) == Decimal("1.98")
    assert multiplier_for(Decimal(0)) == 0


# ============================================================
# Survival multipliers
# ============================================================

def test_mines_scenario_five_reveals():
    """3 mines, 5 safe reveals: floor(0.99 / P × 100) / 100 with exact P."""
    assert mines_multiplier(3, 5) == Decimal("1.99")
    assert mines_multiplier(3, 1) == Decimal("1.12")


def test_multiplier_zero_is_one():
    for mines in range(1, 25):
        assert mines_multiplier(mines, 0) == Decimal(1)
    for difficulty in Difficulty:
        assert chicken_multiplier(difficulty, 0) == Decimal(1)
    assert survival_multiplier(25, 3, 0, "0.99") == Decimal(1)


def test_multipliers_strictly_increasing():
    for mines in range(1, 25):
        curve = [mines_multiplier(mines, k) for k in range(GRID_SIZE - mines + 1)]
        assert all(a < b for a, b in zip(curve, curve[1:])), f"mines={mines}"
    for difficulty in Difficulty:
        curve = [chicken_multiplier(difficulty, k) for k in range(ROAD_COLUMNS + 1)]
        assert all(a < b for a, b in zip(curve, curve[1:])), f"difficulty={difficulty}"


def test_chicken_fixed_column_board():
    """Each column is a fresh 5-tile board: easy step k is 0.98 × (5/4)^k floored."""
    assert chicken_multiplier(Difficulty.EASY, 1) == Decimal("1.22")
    assert chicken_multiplier(Difficulty.EASY, 2) == Decimal("1.53")


# ============================================================
# Mines round
# ============================================================

def _mines_round(mine_count=3):
    # three 0.0 picks put the mines on tiles 0, 1, 2
    engine = MinesEngine()
    start = engine.start(100, MinesParams(mine_count=mine_count),
                         ReplayStream([0.0] * mine_count)).unwrap()
    return engine, start


def test_mines_cashout_after_five():
    engine, outcome = _mines_round()
    assert outcome.finished is False
    assert "mine_positions" not in outcome.data
    state = outcome.state
    for tile in (3, 4, 5, 6, 7):
        outcome = engine.act(state, TileMove(action="reveal", tile=tile), 0).unwrap()
        state = outcome.state
    assert outcome.multiplier == Decimal("1.99")
    paid = engine.cashout(state).unwrap()
    assert paid.finished is True
    assert paid.payout == 199
    assert paid.data["mine_positions"] == [0, 1, 2]


def test_mines_hit_ends_round():
    engine, outcome = _mines_round()
    hit = engine.act(outcome.state, TileMove(action="reveal", tile=1), 0).unwrap()
    assert hit.finished is True
    assert hit.payout == 0
    assert hit.data["is_mine"] is True
    assert hit.data["mine_positions"] == [0, 1, 2]
    again = engine.act(hit.state, TileMove(action="reveal", tile=5), 0)
    assert isinstance(again.error, InvalidAction)


def test_mines_rules():
    engine, outcome = _mines_round()
    assert isinstance(engine.cashout(outcome.state).error, InvalidAction)
    first = engine.act(outcome.state, TileMove(action="reveal", tile=9), 0).unwrap()
    repeat = engine.act(first.state, TileMove(action="reveal", tile=9), 0)
    assert isinstance(repeat.error, InvalidAction)


def test_mines_auto_cashout_when_board_cleared():
    engine, outcome = _mines_round(mine_count=24)
    # 24 picks of 0.0 leave tile 24 as the only safe tile
    last = engine.act(outcome.state, TileMove(action="reveal", tile=24), 0).unwrap()
    assert last.finished is True
    assert last.payout == payout_for(100, mines_multiplier(24, 1))


def test_state_blob_kind_checked():
    """A mines blob cannot drive blackjack."""
    _, outcome = _mines_round()
    try:
        BlackjackEngine().act(outcome.state, BlackjackMove(action="stand"), 0)
    except InvalidAction:
        return
    raise AssertionError("blackjack accepted a mines state blob")


# ============================================================
# Blackjack
# ============================================================

def test_hand_value_soft_aces():
    assert hand_value(["Ah", "Kd"]).is_blackjack
    soft = hand_value(["Ah", "6d"])
    assert soft.value == 17 and soft.is_soft
    hard = hand_value(["Ah", "6d", "9c"])
    assert hard.value == 16 and not hard.is_soft
    assert hand_value(["Ah", "Ad", "9c"]).value == 21
    assert hand_value(["Kh", "Qd", "5c"]).is_busted


def test_blackjack_stand_17_vs_dealer_20():
    """Spot {10,7} vs dealer {9, A}; stand; dealer shows 20 → lose."""
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["10h", "9s", "7d", "Ac"]).unwrap()
    assert dealt.finished is False
    assert len(dealt.data["dealer"]["cards"]) == 1
    assert "insurance" not in dealt.data["actions"]

    settled = engine.act(dealt.state, BlackjackMove(action="stand"), 0).unwrap()
    assert settled.finished is True
    assert settled.payout == 0
    assert settled.data["dealer"]["value"] == 20
    assert settled.data["spots"][0]["hands"][0]["result"] == "lose"


def test_dealer_draws_to_17():
    """Dealer 6+5 draws 2 then 9 and busts; the standing 18 wins double."""
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["10h", "6s", "8d", "5c", "2h", "9d"]).unwrap()
    settled = engine.act(dealt.state, BlackjackMove(action="stand"), 0).unwrap()
    state = BlackjackState.from_blob(settled.state)
    assert state.dealer == ["6s", "5c", "2h", "9d"]
    assert settled.data["dealer"]["is_busted"] is True
    assert settled.payout == 200
    assert settled.multiplier == Decimal("2.00")


def test_dealer_does_not_draw_when_all_busted():
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["10h", "6s", "6d", "5c", "Kh", "9d"]).unwrap()
    busted = engine.act(dealt.state, BlackjackMove(action="hit"), 0).unwrap()
    assert busted.finished is True
    state = BlackjackState.from_blob(busted.state)
    assert state.dealer == ["6s", "5c"]
    assert busted.payout == 0


def test_split_eights():
    """Two 8s split into two hands, each dealt one more card and played in order."""
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["8h", "10s", "8d", "7c", "3h", "2d", "Kc"]).unwrap()
    assert "split" in dealt.data["actions"]

    split = engine.act(dealt.state, BlackjackMove(action="split"), 1000).unwrap()
    assert split.extra_bet == 100
    state = BlackjackState.from_blob(split.state)
    hands = state.spots[0].hands
    assert [h.cards for h in hands] == [["8h", "3h"], ["8d", "2d"]]
    assert all(h.is_split and h.bet == 100 for h in hands)
    assert state.active_hand == 0
    assert "split" not in split.data["actions"]

    after_first = engine.act(split.state, BlackjackMove(action="stand"), 900).unwrap()
    assert BlackjackState.from_blob(after_first.state).active_hand == 1
    hit = engine.act(after_first.state, BlackjackMove(action="hit"), 900).unwrap()
    # 8 + 2 + K = 20 stays open until stood
    assert hit.finished is False
    settled = engine.act(hit.state, BlackjackMove(action="stand"), 900).unwrap()
    results = [h["result"] for h in settled.data["spots"][0]["hands"]]
    assert results == ["lose", "win"]
    assert settled.payout == 200


def test_split_needs_balance():
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["8h", "10s", "8d", "7c", "3h", "2d"]).unwrap()
    res = engine.act(dealt.state, BlackjackMove(action="split"), 50)
    assert isinstance(res.error, InsufficientBalance)


def test_double_is_terminal():
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["6h", "10s", "5d", "7c", "Kh"]).unwrap()
    doubled = engine.act(dealt.state, BlackjackMove(action="double"), 1000).unwrap()
    assert doubled.extra_bet == 100
    assert doubled.finished is True
    hand = doubled.data["spots"][0]["hands"][0]
    assert hand["bet"] == 200 and hand["value"] == 21
    assert doubled.payout == 400


def test_insurance_pays_on_dealer_blackjack():
    engine = BlackjackEngine()
    dealt = engine.deal({"center": 100}, ["10h", "As", "9d", "Kc"]).unwrap()
    assert "insurance" in dealt.data["actions"]
    insured = engine.act(dealt.state, BlackjackMove(action="insurance"), 1000).unwrap()
    assert insured.extra_bet == 50
    assert insured.finished is False
    again = engine.act(insured.state, BlackjackMove(action="insurance"), 1000)
    assert isinstance(again.error, InvalidAction)

    settled = engine.act(insured.state, BlackjackMove(action="stand"), 950).unwrap()
    assert settled.data["dealer"]["is_blackjack"] is True
    assert settled.data["spots"][0]["insurance_payout"] == 150
    assert settled.payout == 150


def test_multi_spot_order_and_natural():
    """Spots play in seat order; a natural is skipped and paid 3:2."""
    engine = BlackjackEngine()
    # left_up: A,K (natural); center: 9,7; dealer: 10,8
    shoe = ["Ah", "9c", "10d", "Ks", "7h", "8c"]
    dealt = engine.deal({"center": 100, "left_up": 100}, shoe).unwrap()
    assert dealt.data["active_spot"] == "center"
    settled = engine.act(dealt.state, BlackjackMove(action="stand"), 0).unwrap()
    spots = {s["spot_id"]: s for s in settled.data["spots"]}
    assert spots["left_up"]["hands"][0]["result"] == "blackjack"
    assert spots["left_up"]["hands"][0]["payout"] == 250
    assert spots["center"]["hands"][0]["result"] == "lose"
    assert settled.payout == 250


def test_settle_hand_table():
    win = Hand(cards=["10h", "9d"], bet=10)
    assert settle_hand(win, 18, False, False) == ("win", 20)
    assert settle_hand(win, 19, False, False) == ("push", 10)
    assert settle_hand(win, 20, False, False) == ("lose", 0)
    assert settle_hand(win, 22, False, True) == ("win", 20)
    assert settle_hand(win, 21, True, False) == ("lose", 0)
    natural = Hand(cards=["Ah", "Kd"], bet=10, is_blackjack=True)
    assert settle_hand(natural, 21, True, False) == ("push", 10)
    assert settle_hand(natural, 20, False, False) == ("blackjack", 25)


def test_blackjack_validation():
    engine = BlackjackEngine()
    assert isinstance(engine.validate(100, BlackjackParams(spots={"center": 50})), InvalidBetAmount)
    assert isinstance(engine.validate(50, BlackjackParams(spots={"nowhere": 50})), InvalidAction)
    assert engine.validate(50, BlackjackParams(spots={"center": 50})) is None


def test_blackjack_every_spot_meets_minimum():
    """A total above the table minimum still fails when one spot is below it."""
    engine = BlackjackEngine()
    params = BlackjackParams(spots={"left_up": 1, "center": 10})
    assert isinstance(engine.validate(11, params), InvalidBetAmount)
    assert engine.start(11, params, ReplayStream([])).error.code == "InvalidBetAmount"
    assert engine.validate(20, BlackjackParams(spots={"left_up": 10, "center": 10})) is None


# ============================================================
# Roulette
# ============================================================

def test_roulette_mixed_bets_multiplier_floored():
    """Straight 7 plus red on a 7: 40 back on a stake of 3 shows as 13.33x."""
    params = RouletteParams(bets=[
        RouletteBet(kind="straight", numbers=[7], amount=1),
        RouletteBet(kind="red", amount=2),
    ])
    outcome = RouletteEngine().play(3, params, ReplayStream([0.2])).unwrap()
    assert outcome.data["result"]["number"] == 7
    assert outcome.payout == 40
    assert outcome.multiplier == Decimal("13.33")
    assert outcome.multiplier == outcome.multiplier.quantize(Decimal("0.01"))


# ============================================================
# Video poker
# ============================================================

def test_video_poker_ranks():
    assert evaluate_hand(["10h", "Jh", "Qh", "Kh", "Ah"]) == "royal_flush"
    assert evaluate_hand(["Ah", "2d", "3c", "4s", "5h"]) == "straight"
    assert evaluate_hand(["Jh", "Jd", "3c", "4s", "9h"]) == "jacks_or_better"
    assert evaluate_hand(["10h", "10d", "3c", "4s", "9h"]) == "nothing"
    assert evaluate_hand(["Kh", "Kd", "Kc", "4s", "4h"]) == "full_house"
    assert optimal_holds(["Jh", "Jd", "3c", "4s", "9h"]) == [0, 1]
    assert optimal_holds(["2h", "7h", "9h", "Kh", "4s"]) == [0, 1, 2, 3]


def test_video_poker_draw():
    engine = get_engine(GameType.VIDEO_POKER)
    opening = engine.start(10, None, ReplayStream([0.0] * 51)).unwrap()
    state = opening.state
    hand = list(state["hand"])
    done = engine.act(state, DrawMove(holds=[0, 1, 2, 3, 4]), 0).unwrap()
    assert done.finished is True
    assert [c["code"] for c in done.data["hand"]] == hand
    again = engine.act(done.state, DrawMove(holds=[]), 0)
    assert isinstance(again.error, InvalidAction)


# ============================================================
# Registry & simulation
# ============================================================

def test_every_game_has_an_engine():
    assert set(ENGINES) == set(GameType)
    for game_type in GameType:
        assert get_engine(game_type).game_type == game_type
    assert get_engine("dice") is get_engine(GameType.DICE)


def test_dice_simulation_near_rtp():
    result = get_engine(GameType.DICE).simulate(rounds=20_000, seed=7)
    assert 0.90 < result.rtp_measured < 1.08
    assert result.rounds == 20_000
    assert floor_places(Decimal("1.239"), 2) == Decimal("1.23")


def test_stateful_simulations_run():
    for game_type in (GameType.MINES, GameType.CHICKEN_ROAD, GameType.VIDEO_POKER,
                      GameType.BLACKJACK):
        result = get_engine(game_type).simulate(rounds=300, seed=1)
        assert result.total_wagered > 0
        assert result.to_dict()["game_type"] == game_type.value


# ============================================================
# Run all tests
# ============================================================

if __name__ == "__main__":
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_") and callable(v)]

    print(f"\n{'='*60}")
    print(f"Engine Tests — {len(tests)} tests")
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

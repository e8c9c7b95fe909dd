"""Coin Strike: Hold & Win — 3×3 classic fruit reels with a coin respin.

Eight lines (3 rows, 3 columns, 2 diagonals) pay when all three cells
show the same fruit, wilds substituting. Pays are × stake. Every coin
carries a value; 6+ coins start Hold & Win, where coins stick and empty
cells respin (3 respins, reset by any new coin). A full grid pays GRAND,
otherwise a single roll may award MAJOR, MINOR or MINI by coin count.
"""
from decimal import Decimal

from casino.errors import Result
from casino.rng import weighted_pick
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, dec, payout_for
from sim_engine.reels.grid import all_positions, fill_grid, hold_and_win, weight_table

SIZE = 3
WILD = "wild"
COIN = "coin"

LINES = [
    ((0, 0), (1, 0), (2, 0)),
    ((0, 1), (1, 1), (2, 1)),
    ((0, 2), (1, 2), (2, 2)),
    ((0, 0), (0, 1), (0, 2)),
    ((1, 0), (1, 1), (1, 2)),
    ((2, 0), (2, 1), (2, 2)),
    ((0, 0), (1, 1), (2, 2)),
    ((0, 2), (1, 1), (2, 0)),
]

SYMBOL_PAYOUTS = {"cherry": 3, "orange": 5, "grapes": 8, "bell": 12, "bar": 25, "seven": 50}

TABLE = weight_table({
    "cherry": 20, "orange": 18, "grapes": 15, "bell": 12, "bar": 8, "seven": 5,
    COIN: 12, WILD: 6,
})

COIN_VALUES = [("1", 30), ("2", 25), ("3", 18), ("5", 12), ("7.5", 7), ("10", 5),
               ("15", 2), ("20", 1)]
COIN_TRIGGER = 6
COIN_LAND_CHANCE = 0.20
JACKPOTS = {"mini": 25, "minor": 50, "major": 150, "grand": 1000}
JACKPOT_ODDS = [(8, "major", 0.10), (7, "minor", 0.20), (6, "mini", 0.35)]


def coin_value(rng) -> Decimal:
    return dec(weighted_pick(rng, COIN_VALUES))


def evaluate_lines(grid) -> list[dict]:
    wins = []
    for number, cells in enumerate(LINES, start=1):
        symbols = [grid[r][row] for r, row in cells]
        base = next((s for s in symbols if s in SYMBOL_PAYOUTS), None)
        if base is None or not all(s == base or s == WILD for s in symbols):
            continue
        wins.append({"line": number, "symbol": base,
                     "positions": [list(c) for c in cells],
                     "multiplier": SYMBOL_PAYOUTS[base]})
    return wins


def coin_respin(rng, coins: dict) -> dict:
    cells = [(r, row) for r in range(SIZE) for row in range(SIZE)]
    result = hold_and_win(rng, cells, coins, COIN_LAND_CHANCE, coin_value)
    held = result["held"]
    jackpot = None
    if result["full"]:
        jackpot = "grand"
    else:
        roll = rng()
        for needed, name, odds in JACKPOT_ODDS:
            if len(held) >= needed and roll < odds:
                jackpot = name
                break
    value = sum(held.values(), Decimal(0)) + (JACKPOTS[jackpot] if jackpot else 0)
    return {
        "coins": [{"position": list(p), "value": str(v)} for p, v in sorted(held.items())],
        "respins": result["respins"],
        "jackpot": jackpot,
        "multiplier": value,
    }


class CoinStrikeEngine(RoundEngine):
    game_type = GameType.COIN_STRIKE

    def play(self, bet, params, rng, bonus=None) -> Result:
        grid = fill_grid(rng, TABLE, SIZE, SIZE)
        coins = {p: coin_value(rng) for p in all_positions(grid) if grid[p[0]][p[1]] == COIN}

        lines = evaluate_lines(grid)
        for w in lines:
            w["win"] = payout_for(bet, w["multiplier"])
        total = Decimal(sum(w["multiplier"] for w in lines))

        respin = None
        if len(coins) >= COIN_TRIGGER:
            respin = coin_respin(rng, coins)
            total += respin["multiplier"]

        return Result.success(Outcome(
            payout=payout_for(bet, total),
            multiplier=self.floor_multiplier(total),
            data={
                "grid": grid,
                "winning_lines": lines,
                "coins": [{"position": list(p), "value": str(v)} for p, v in sorted(coins.items())],
                "hold_and_win": respin and {**respin, "multiplier": str(respin["multiplier"])},
            },
        ))

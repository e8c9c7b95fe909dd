"""Gonzo's Quest Megaways — 6 reels of 2–7 symbols, ways wins, avalanches.

A symbol wins when it (or a wild) appears on 3+ adjacent reels from the
left; the win is pay(reels) × Π(matches per reel) × avalanche multiplier,
× stake. Winning symbols burst and new ones fall in (never scatters);
each successive avalanche steps the multiplier along its schedule:

    base        1× → 2× → 3× → 5×
    free fall   3× → 6× → 9× → 15×

Up to two wilds are unbreakable (the first found on reels 1–3 and the
first on reels 4–6): they survive the avalanche. A base spin may trigger
an earthquake that turns every low symbol into a random mask. 3+
scatters award 9 free falls, +3 per extra scatter.
"""
from decimal import Decimal

from casino.errors import Result
from casino.rng import float_to_range, weighted_pick
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, dec, payout_for
from sim_engine.reels.grid import (
    MAX_CASCADES, copy_grid, drop_and_refill, fill_reel, positions_of,
    schedule_multiplier, weight_table,
)

REELS = 6
WILD = "wild"
SCATTER = "scatter"

SYMBOL_PAYOUTS = {  # 3, 4, 5, 6 reels
    "blue_mask":   ("1.5", "3", "7.5", "15"),
    "green_mask":  ("0.8", "2", "5", "10"),
    "purple_mask": ("0.6", "1.5", "4", "8"),
    "brown_mask":  ("0.4", "1", "2.5", "5"),
    "gray_mask":   ("0.3", "0.8", "2", "4"),
    "bird":        ("0.2", "0.5", "1", "2"),
    "snake":       ("0.2", "0.5", "1", "2"),
    "fish":        ("0.15", "0.4", "0.8", "1.5"),
    "frog":        ("0.1", "0.3", "0.6", "1"),
}
HIGH_PAY = ("blue_mask", "green_mask", "purple_mask", "brown_mask", "gray_mask")
LOW_PAY = ("bird", "snake", "fish", "frog")

BASE_WEIGHTS = {
    "blue_mask": 2, "green_mask": 3, "purple_mask": 4, "brown_mask": 6, "gray_mask": 7,
    "bird": 12, "snake": 12, "fish": 14, "frog": 14, WILD: 2, SCATTER: 2.5,
}
FREE_WEIGHTS = {
    "blue_mask": 3, "green_mask": 4, "purple_mask": 5, "brown_mask": 6, "gray_mask": 7,
    "bird": 10, "snake": 10, "fish": 12, "frog": 12, WILD: 4, SCATTER: 3,
}
REEL_HEIGHTS = [(2, 5), (3, 15), (4, 25), (5, 25), (6, 20), (7, 10)]

BASE_MULTIPLIERS = (1, 2, 3, 5)
FREE_MULTIPLIERS = (3, 6, 9, 15)

EARTHQUAKE_CHANCE = 0.05
FREE_SPINS_BASE = 9
FREE_SPINS_EXTRA = 3


def tables(in_bonus: bool):
    weights = FREE_WEIGHTS if in_bonus else BASE_WEIGHTS
    return weight_table(weights), weight_table(weights, exclude=[SCATTER])


def spin_reels(rng, table) -> list[list[str]]:
    """One height draw then that many symbols, reel by reel."""
    return [fill_reel(rng, table, weighted_pick(rng, REEL_HEIGHTS)) for _ in range(REELS)]


def ways(grid) -> int:
    total = 1
    for reel in grid:
        total *= len(reel)
    return total


def earthquake(rng, grid):
    return [[HIGH_PAY[float_to_range(rng(), 0, len(HIGH_PAY) - 1)] if s in LOW_PAY else s
             for s in reel] for reel in grid]


def unbreakable_wilds(grid) -> set:
    first_half = next(((r, row) for r, row in positions_of(grid, WILD) if r < 3), None)
    second_half = next(((r, row) for r, row in positions_of(grid, WILD) if r >= 3), None)
    return {p for p in (first_half, second_half) if p is not None}


def find_ways_wins(grid) -> list[dict]:
    wins = []
    for symbol, pays in SYMBOL_PAYOUTS.items():
        reels_hit = 0
        combos = 1
        cells = []
        for r, reel in enumerate(grid):
            hits = [(r, row) for row, s in enumerate(reel) if s == symbol or s == WILD]
            if not hits:
                break
            reels_hit += 1
            combos *= len(hits)
            cells.extend(hits)
        if reels_hit >= 3:
            pay = dec(pays[min(reels_hit - 3, len(pays) - 1)])
            wins.append({"symbol": symbol, "reels": reels_hit, "ways": combos,
                         "positions": cells, "pay": pay * combos})
    return wins


def free_spins_for(scatters: int) -> int:
    if scatters < 3:
        return 0
    return FREE_SPINS_BASE + (scatters - 3) * FREE_SPINS_EXTRA


class GonzosQuestEngine(RoundEngine):
    game_type = GameType.GONZOS_QUEST

    def play(self, bet, params, rng, bonus=None) -> Result:
        in_bonus = bonus is not None
        table, refill_table = tables(in_bonus)
        schedule = FREE_MULTIPLIERS if in_bonus else BASE_MULTIPLIERS

        grid = spin_reels(rng, table)
        quake = False
        if not in_bonus and rng() < EARTHQUAKE_CHANCE:
            quake = True
            grid = earthquake(rng, grid)
        opening = copy_grid(grid)
        scatters = len(positions_of(grid, SCATTER))

        total = Decimal(0)
        avalanches = []
        while len(avalanches) < MAX_CASCADES:
            wins = find_ways_wins(grid)
            if not wins:
                break
            mult = schedule_multiplier(schedule, len(avalanches))
            locked = unbreakable_wilds(grid)
            step = sum((w["pay"] for w in wins), Decimal(0)) * mult
            total += step
            avalanches.append({
                "grid": copy_grid(grid),
                "wins": [{**w, "positions": [list(p) for p in w["positions"]],
                          "pay": str(w["pay"])} for w in wins],
                "multiplier": mult,
                "unbreakable_wilds": sorted(list(p) for p in locked),
                "win": payout_for(bet, step),
            })
            remove = {p for w in wins for p in w["positions"]} - locked
            grid = drop_and_refill(grid, remove, rng, refill_table)

        return Result.success(Outcome(
            payout=payout_for(bet, total),
            multiplier=self.floor_multiplier(total),
            data={
                "grid": opening,
                "reel_heights": [len(r) for r in opening],
                "ways": ways(opening),
                "avalanches": avalanches,
                "final_multiplier": schedule_multiplier(schedule, max(len(avalanches) - 1, 0)),
                "earthquake": quake,
                "scatter_count": scatters,
                "free_spin": in_bonus,
            },
            free_spins_won=free_spins_for(scatters),
            bonus={} if free_spins_for(scatters) else None,
        ))

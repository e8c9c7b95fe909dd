"""Wolf Gold — 5×3, 25 lines, stacked wolf wilds, canyon scatters, moon respin.

Each reel may land fully stacked with wolves (8% base, 12% in free
spins). 3+ canyons pay × stake and award 5 free spins. 6+ moons start
the Money Respin inside the same spin: moons hold their values, empty
cells respin, any new moon resets the 3 respins. A full grid pays the
MEGA jackpot; otherwise 12+ moons may award MAJOR and 9+ MINI.
Moon values and jackpots are × stake; line pays × line bet (stake / 25).
"""
from decimal import Decimal

from casino.errors import Result
from casino.rng import weighted_pick
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, payout_for
from sim_engine.reels.grid import (
    all_positions, evaluate_paylines, fill_reel, hold_and_win, positions_of, weight_table,
)

REELS = 5
ROWS = 3
WILD = "wolf"
SCATTER = "canyon"
MOON = "moon"

PAYLINES = [
    (1, 1, 1, 1, 1), (0, 0, 0, 0, 0), (2, 2, 2, 2, 2), (0, 1, 2, 1, 0), (2, 1, 0, 1, 2),
    (0, 0, 1, 0, 0), (2, 2, 1, 2, 2), (1, 0, 0, 0, 1), (1, 2, 2, 2, 1), (0, 1, 1, 1, 0),
    (2, 1, 1, 1, 2), (1, 0, 1, 0, 1), (1, 2, 1, 2, 1), (0, 1, 0, 1, 0), (2, 1, 2, 1, 2),
    (1, 1, 0, 1, 1), (1, 1, 2, 1, 1), (0, 0, 1, 2, 2), (2, 2, 1, 0, 0), (0, 2, 0, 2, 0),
    (2, 0, 2, 0, 2), (1, 0, 2, 0, 1), (1, 2, 0, 2, 1), (0, 2, 2, 2, 0), (2, 0, 0, 0, 2),
]
LINE_COUNT = len(PAYLINES)

SYMBOL_PAYOUTS = {
    "nine": (5, 20, 50),
    "ten": (5, 20, 50),
    "jack": (5, 20, 50),
    "queen": (5, 25, 75),
    "king": (10, 30, 100),
    "ace": (10, 30, 100),
    "horse": (15, 40, 150),
    "puma": (15, 50, 200),
    "eagle": (20, 75, 300),
    "buffalo": (30, 100, 500),
}
SCATTER_PAYS = {3: 3, 4: 15, 5: 60}

BASE_TABLE = weight_table({
    "nine": 18, "ten": 18, "jack": 16, "queen": 14, "king": 12, "ace": 10,
    "horse": 8, "puma": 7, "eagle": 5, "buffalo": 4, WILD: 4, SCATTER: 2.5, MOON: 3,
})
FREE_TABLE = weight_table({
    "nine": 15, "ten": 15, "jack": 14, "queen": 12, "king": 10, "ace": 8,
    "horse": 8, "puma": 7, "eagle": 6, "buffalo": 5, WILD: 6, SCATTER: 3, MOON: 4,
})
STACKED_WILD_CHANCE = {False: 0.08, True: 0.12}

MOON_VALUES = [(1, 25), (2, 20), (3, 15), (5, 12), (8, 10), (10, 8), (15, 5),
               (20, 3), (25, 1.5), (50, 0.5)]
MOON_TRIGGER = 6
MOON_LAND_CHANCE = 0.15
JACKPOTS = {"mini": 30, "major": 100, "mega": 1000}
FREE_SPINS = 5


def moon_value(rng) -> int:
    return weighted_pick(rng, MOON_VALUES)


def spin_reels(rng, in_bonus: bool):
    table = FREE_TABLE if in_bonus else BASE_TABLE
    grid, stacked = [], []
    for reel in range(REELS):
        if rng() < STACKED_WILD_CHANCE[in_bonus]:
            grid.append([WILD] * ROWS)
            stacked.append(reel)
        else:
            grid.append(fill_reel(rng, table, ROWS))
    return grid, stacked


def moon_respin(rng, moons: dict) -> dict:
    """Run the Money Respin from the landed moons (position → value)."""
    cells = [(r, row) for r in range(REELS) for row in range(ROWS)]
    result = hold_and_win(rng, cells, moons, MOON_LAND_CHANCE, moon_value)
    held = result["held"]
    jackpot = None
    if result["full"]:
        jackpot = "mega"
    else:
        roll = rng()
        if len(held) >= 12 and roll < 0.05:
            jackpot = "major"
        elif len(held) >= 9 and roll < 0.15:
            jackpot = "mini"
    value = sum(held.values()) + (JACKPOTS[jackpot] if jackpot else 0)
    return {
        "moons": [{"position": list(p), "value": v} for p, v in sorted(held.items())],
        "respins": result["respins"],
        "jackpot": jackpot,
        "multiplier": value,
    }


class WolfGoldEngine(RoundEngine):
    game_type = GameType.WOLF_GOLD
    sim_bet = 25

    def play(self, bet, params, rng, bonus=None) -> Result:
        in_bonus = bonus is not None
        grid, stacked = spin_reels(rng, in_bonus)
        scatters = len(positions_of(grid, SCATTER))
        scatter_pay = SCATTER_PAYS.get(min(scatters, 5), 0)
        moons = {p: moon_value(rng) for p in all_positions(grid) if grid[p[0]][p[1]] == MOON}

        lines = evaluate_paylines(grid, PAYLINES, SYMBOL_PAYOUTS, WILD, all_wild_as="buffalo")
        for w in lines:
            w["win"] = payout_for(bet, Decimal(w["line_multiplier"]) / LINE_COUNT)
        total = Decimal(sum(w["line_multiplier"] for w in lines)) / LINE_COUNT + scatter_pay

        respin = None
        if len(moons) >= MOON_TRIGGER:
            respin = moon_respin(rng, moons)
            total += respin["multiplier"]

        free_spins = FREE_SPINS if scatters >= 3 else 0
        return Result.success(Outcome(
            payout=payout_for(bet, total),
            multiplier=self.floor_multiplier(total),
            data={
                "grid": grid,
                "stacked_wild_reels": stacked,
                "winning_lines": lines,
                "scatter_count": scatters,
                "scatter_win": bet * scatter_pay,
                "moons": [{"position": list(p), "value": v} for p, v in sorted(moons.items())],
                "moon_respin": respin,
                "free_spin": in_bonus,
            },
            free_spins_won=free_spins,
            bonus={} if free_spins else None,
        ))

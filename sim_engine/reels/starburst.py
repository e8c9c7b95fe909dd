"""Starburst — 5×3, 10 lines paying both ways, expanding wilds with respins.

Wilds land on reels 2–4 only. A wild expands over its whole reel, the
reel is held and the others respin; each respin that lands a new wild
adds another held reel, up to 3 respins. Line pays are × line bet
(stake / 10).
"""
from decimal import Decimal

from casino.errors import Result
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, payout_for
from sim_engine.reels.grid import copy_grid, evaluate_paylines, fill_reel, weight_table

REELS = 5
ROWS = 3
WILD = "wild"
WILD_REELS = (1, 2, 3)
MAX_RESPINS = 3

PAYLINES = [
    (1, 1, 1, 1, 1), (0, 0, 0, 0, 0), (2, 2, 2, 2, 2), (0, 1, 2, 1, 0),
    (2, 1, 0, 1, 2), (1, 0, 0, 0, 1), (1, 2, 2, 2, 1), (0, 0, 1, 2, 2),
    (2, 2, 1, 0, 0), (1, 0, 1, 0, 1),
]
LINE_COUNT = len(PAYLINES)

SYMBOL_PAYOUTS = {
    "bar": (25, 50, 125),
    "seven": (10, 25, 60),
    "yellow_gem": (8, 20, 50),
    "green_gem": (5, 10, 25),
    "orange_gem": (5, 10, 25),
    "blue_gem": (4, 8, 20),
    "purple_gem": (4, 8, 20),
}

OUTER_TABLE = weight_table({
    "bar": 3, "seven": 5, "yellow_gem": 8, "green_gem": 12, "orange_gem": 12,
    "blue_gem": 15, "purple_gem": 15,
})
MIDDLE_TABLE = weight_table({
    "bar": 3, "seven": 5, "yellow_gem": 8, "green_gem": 11, "orange_gem": 11,
    "blue_gem": 14, "purple_gem": 14, WILD: 4,
})


def spin_reels(rng, held: set):
    """Draw every reel not held. Returns (raw grid, expanded grid)."""
    raw = []
    for reel in range(REELS):
        if reel in held:
            raw.append([WILD] * ROWS)
        else:
            raw.append(fill_reel(rng, MIDDLE_TABLE if reel in WILD_REELS else OUTER_TABLE, ROWS))
    expanded = copy_grid(raw)
    for reel in WILD_REELS:
        if WILD in expanded[reel]:
            expanded[reel] = [WILD] * ROWS
    return raw, expanded


class StarburstEngine(RoundEngine):
    game_type = GameType.STARBURST
    sim_bet = 10

    def play(self, bet, params, rng, bonus=None) -> Result:
        held: set = set()
        spins = []
        total = Decimal(0)
        while True:
            raw, expanded = spin_reels(rng, held)
            lines = evaluate_paylines(expanded, PAYLINES, SYMBOL_PAYOUTS, WILD,
                                      all_wild_as="bar", both_ways=True)
            spin_mult = Decimal(sum(w["line_multiplier"] for w in lines)) / LINE_COUNT
            for w in lines:
                w["win"] = payout_for(bet, Decimal(w["line_multiplier"]) / LINE_COUNT)
            total += spin_mult
            wild_reels = {r for r in WILD_REELS if expanded[r][0] == WILD}
            new_wilds = wild_reels - held
            spins.append({
                "reels": raw,
                "display_reels": expanded,
                "winning_lines": lines,
                "expanded_wild_reels": sorted(wild_reels),
                "is_respin": bool(spins),
                "win": payout_for(bet, spin_mult),
            })
            if not new_wilds or len(spins) > MAX_RESPINS:
                break
            held |= wild_reels

        return Result.success(Outcome(
            payout=payout_for(bet, total),
            multiplier=self.floor_multiplier(total),
            data={"spins": spins, "respins": len(spins) - 1},
        ))

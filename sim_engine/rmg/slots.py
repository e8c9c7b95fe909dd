"""Classic slots — 5 reels × 3 rows, 20 paylines, wild and scatter.

The stake covers all 20 lines; each line is worth stake / 20. Line pays
are quoted per line bet, scatter pays per total stake, so the round
multiplier is  Σ line_pays / 20 + scatter_pay.
"""
from decimal import Decimal

from casino.errors import Result
from casino.rng import weighted_pick
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, payout_for

REELS = 5
ROWS = 3

WILD = "wild"
SCATTER = "scatter"

REEL_WEIGHTS = [
    ("cherry", 25), ("lemon", 25), ("orange", 20), ("plum", 20), ("bell", 15),
    ("bar", 10), ("seven", 5), ("diamond", 3), (WILD, 5), (SCATTER, 2),
]

# [3 of a kind, 4 of a kind, 5 of a kind] × line bet
SYMBOL_PAYOUTS = {
    "cherry": (5, 15, 50),
    "lemon": (5, 15, 50),
    "orange": (10, 25, 75),
    "plum": (10, 25, 75),
    "bell": (15, 50, 150),
    "bar": (25, 75, 250),
    "seven": (50, 150, 500),
    "diamond": (100, 300, 1000),
}

# row index per reel
PAYLINES = [
    (1, 1, 1, 1, 1), (0, 0, 0, 0, 0), (2, 2, 2, 2, 2), (0, 1, 2, 1, 0),
    (2, 1, 0, 1, 2), (0, 0, 1, 2, 2), (2, 2, 1, 0, 0), (1, 0, 0, 0, 1),
    (1, 2, 2, 2, 1), (0, 1, 1, 1, 0), (2, 1, 1, 1, 2), (1, 0, 1, 0, 1),
    (1, 2, 1, 2, 1), (0, 1, 0, 1, 0), (2, 1, 2, 1, 2), (1, 1, 0, 1, 1),
    (1, 1, 2, 1, 1), (0, 2, 0, 2, 0), (2, 0, 2, 0, 2), (1, 0, 2, 0, 1),
]
LINE_COUNT = len(PAYLINES)

# scatters → (free spins, × total stake)
SCATTER_AWARDS = {3: (10, 5), 4: (15, 20), 5: (20, 100)}


def spin_matrix(rng) -> list[list[str]]:
    """matrix[reel][row], drawn reel by reel, top to bottom."""
    return [[weighted_pick(rng, REEL_WEIGHTS) for _ in range(ROWS)] for _ in range(REELS)]


def evaluate_line(symbols: list[str]):
    """(symbol, count, pay) for a left-anchored run of 3+, else None.

    The paying symbol is the first one on the line that is neither wild
    nor scatter; wilds extend the run. An all-wild line pays nothing.
    """
    base = next((s for s in symbols if s not in (WILD, SCATTER)), None)
    if base is None:
        return None
    count = 0
    for s in symbols:
        if s == base or s == WILD:
            count += 1
        else:
            break
    if count < 3:
        return None
    return base, count, SYMBOL_PAYOUTS[base][count - 3]


def evaluate_paylines(matrix: list[list[str]]) -> list[dict]:
    wins = []
    for number, rows in enumerate(PAYLINES, start=1):
        symbols = [matrix[reel][row] for reel, row in enumerate(rows)]
        hit = evaluate_line(symbols)
        if hit is None:
            continue
        symbol, count, pay = hit
        wins.append({
            "line": number,
            "symbol": symbol,
            "count": count,
            "positions": [[reel, rows[reel]] for reel in range(count)],
            "line_multiplier": pay,
        })
    return wins


def count_scatters(matrix: list[list[str]]) -> int:
    return sum(1 for reel in matrix for s in reel if s == SCATTER)


class SlotsEngine(RoundEngine):
    game_type = GameType.SLOTS
    sim_bet = 20

    def play(self, bet, params, rng, bonus=None) -> Result:
        matrix = spin_matrix(rng)
        lines = evaluate_paylines(matrix)
        scatters = count_scatters(matrix)
        free_spins, scatter_pay = SCATTER_AWARDS.get(min(scatters, 5), (0, 0))

        line_total = sum(w["line_multiplier"] for w in lines)
        mult = Decimal(line_total) / LINE_COUNT + scatter_pay
        payout = payout_for(bet, mult)
        for w in lines:
            w["win"] = payout_for(bet, Decimal(w["line_multiplier"]) / LINE_COUNT)

        return Result.success(Outcome(
            payout=payout,
            multiplier=self.floor_multiplier(mult),
            data={
                "matrix": matrix,
                "paylines": lines,
                "scatter_count": scatters,
                "scatter_win": bet * scatter_pay,
                "free_spin": bool(bonus is not None),
            },
            free_spins_won=free_spins,
        ))

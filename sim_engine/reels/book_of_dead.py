"""Book of Dead — 5×3, 10 lines, the book is both wild and scatter.

3+ books pay × stake and award 10 free spins. At the trigger one
expanding symbol is drawn for the whole bonus; during free spins every
reel holding it fills with it before lines are evaluated (books stay
as they are). Line pays are × line bet (stake / 10).
"""
from decimal import Decimal

from casino.errors import Result
from casino.rng import weighted_pick
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, payout_for
from sim_engine.reels.grid import copy_grid, evaluate_paylines, fill_grid, positions_of, weight_table

REELS = 5
ROWS = 3
BOOK = "book"

PAYLINES = [
    (1, 1, 1, 1, 1), (0, 0, 0, 0, 0), (2, 2, 2, 2, 2), (0, 1, 2, 1, 0),
    (2, 1, 0, 1, 2), (1, 2, 2, 2, 1), (1, 0, 0, 0, 1), (2, 2, 1, 0, 0),
    (0, 0, 1, 2, 2), (2, 1, 1, 1, 0),
]
LINE_COUNT = len(PAYLINES)

SYMBOL_PAYOUTS = {  # 3, 4, 5 of a kind
    "ten": (5, 25, 100),
    "jack": (5, 25, 100),
    "queen": (5, 25, 100),
    "king": (5, 40, 150),
    "ace": (5, 40, 150),
    "scarab": (5, 40, 200),
    "anubis": (5, 30, 200),
    "horus": (5, 40, 400),
    "pharaoh": (10, 100, 750),
    "rich_wilde": (10, 100, 500),
}
SCATTER_PAYS = {3: 2, 4: 20, 5: 200}

BASE_TABLE = weight_table({
    "ten": 18, "jack": 18, "queen": 16, "king": 14, "ace": 12, "scarab": 10,
    "anubis": 8, "horus": 6, "pharaoh": 4, "rich_wilde": 3, BOOK: 3.5,
})
FREE_TABLE = weight_table({
    "ten": 16, "jack": 16, "queen": 14, "king": 12, "ace": 10, "scarab": 10,
    "anubis": 9, "horus": 7, "pharaoh": 5, "rich_wilde": 4, BOOK: 4,
})
EXPANDING_WEIGHTS = [
    ("ten", 5), ("jack", 5), ("queen", 8), ("king", 10), ("ace", 12),
    ("scarab", 15), ("anubis", 15), ("horus", 15), ("pharaoh", 10), ("rich_wilde", 5),
]
FREE_SPINS = 10


def expand(grid, symbol: str):
    """Fill every reel that shows `symbol` with it. Returns (grid, reels)."""
    out = copy_grid(grid)
    reels = []
    for r, reel in enumerate(out):
        if symbol in reel:
            out[r] = [symbol if s != BOOK else s for s in reel]
            reels.append(r)
    return out, reels


class BookOfDeadEngine(RoundEngine):
    game_type = GameType.BOOK_OF_DEAD
    sim_bet = 10

    def play(self, bet, params, rng, bonus=None) -> Result:
        in_bonus = bonus is not None
        grid = fill_grid(rng, FREE_TABLE if in_bonus else BASE_TABLE, REELS, ROWS)
        books = len(positions_of(grid, BOOK))
        scatter_pay = SCATTER_PAYS.get(min(books, 5), 0)

        expanding = (bonus or {}).get("expanding_symbol")
        display, expanded_reels = grid, []
        if in_bonus and expanding:
            display, expanded_reels = expand(grid, expanding)

        lines = evaluate_paylines(display, PAYLINES, SYMBOL_PAYOUTS, BOOK, all_wild_as="rich_wilde")
        for w in lines:
            w["win"] = payout_for(bet, Decimal(w["line_multiplier"]) / LINE_COUNT)
        total = Decimal(sum(w["line_multiplier"] for w in lines)) / LINE_COUNT + scatter_pay

        free_spins = FREE_SPINS if books >= 3 else 0
        next_bonus = None
        if in_bonus:
            next_bonus = {"expanding_symbol": expanding}
        elif free_spins:
            next_bonus = {"expanding_symbol": weighted_pick(rng, EXPANDING_WEIGHTS)}

        return Result.success(Outcome(
            payout=payout_for(bet, total),
            multiplier=self.floor_multiplier(total),
            data={
                "grid": grid,
                "display_grid": display,
                "winning_lines": lines,
                "book_count": books,
                "scatter_win": bet * scatter_pay,
                "expanding_symbol": (next_bonus or {}).get("expanding_symbol"),
                "expanded_reels": expanded_reels,
                "free_spin": in_bonus,
            },
            free_spins_won=free_spins,
            bonus=next_bonus,
        ))

"""Sweet Bonanza — 6×5 pay-anywhere with tumbles and multiplier bombs.

8+ of a symbol anywhere pays (×stake, tiered at 8/10/12/15/20). Winning
symbols tumble out and the grid refills until nothing pays. 4+ lollipop
scatters award 10 free spins (+5 at 5, +5 at 6); during free spins every
winning tumble may drop multiplier bombs whose values add to the bonus
multiplier, which carries from spin to spin and multiplies tumble wins.
"""
from decimal import Decimal

from casino.errors import Result
from casino.rng import weighted_pick
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, dec, payout_for
from sim_engine.reels.grid import (
    MAX_CASCADES, copy_grid, drop_and_refill, fill_grid, positions_of, weight_table,
)

COLS = 6
ROWS = 5
SCATTER = "scatter"

SYMBOL_WEIGHTS = {
    "banana": 20, "grape": 20, "watermelon": 18, "plum": 18, "apple": 15,
    "blue_candy": 8, "green_candy": 6, "purple_candy": 4, "red_candy": 2,
    SCATTER: 3,
}

COUNT_THRESHOLDS = (8, 10, 12, 15, 20)
SYMBOL_PAYOUTS = {
    "banana":       ("0.25", "0.5", "0.75", "1", "5"),
    "grape":        ("0.25", "0.5", "0.75", "1", "5"),
    "watermelon":   ("0.4", "0.6", "1", "1.5", "8"),
    "plum":         ("0.4", "0.6", "1", "1.5", "8"),
    "apple":        ("0.5", "0.8", "1.5", "2", "10"),
    "blue_candy":   ("1", "2", "4", "6", "15"),
    "green_candy":  ("1.5", "3", "5", "8", "20"),
    "purple_candy": ("2", "4", "6", "10", "25"),
    "red_candy":    ("5", "8", "12", "20", "50"),
}

BOMB_CHANCE = 0.15
BOMB_VALUES = [(2, 30), (3, 25), (4, 20), (5, 15), (6, 12), (8, 10), (10, 8),
               (12, 6), (15, 4), (20, 3), (25, 2), (50, 1), (100, 0.5)]

SCATTERS_FOR_FREE_SPINS = 4
FREE_SPINS = 10
RETRIGGER_SPINS = 5
SCATTER_PAYS = {4: 3, 5: 5, 6: 100}

TABLE = weight_table(SYMBOL_WEIGHTS)


def cluster_pay(symbol: str, count: int) -> Decimal:
    pay = Decimal(0)
    for threshold, value in zip(COUNT_THRESHOLDS, SYMBOL_PAYOUTS[symbol]):
        if count >= threshold:
            pay = dec(value)
    return pay


def find_clusters(grid) -> list[dict]:
    clusters = []
    for symbol in SYMBOL_PAYOUTS:
        cells = positions_of(grid, symbol)
        pay = cluster_pay(symbol, len(cells))
        if pay > 0:
            clusters.append({"symbol": symbol, "count": len(cells),
                             "positions": cells, "multiplier": pay})
    return clusters


def free_spins_for(scatters: int, in_bonus: bool) -> int:
    if scatters < SCATTERS_FOR_FREE_SPINS:
        return 0
    if in_bonus:
        return RETRIGGER_SPINS
    return FREE_SPINS + RETRIGGER_SPINS * min(scatters - SCATTERS_FOR_FREE_SPINS, 2)


def drop_bombs(rng, grid) -> list[dict]:
    bombs = []
    for reel, column in enumerate(grid):
        for row, symbol in enumerate(column):
            if rng() < BOMB_CHANCE and symbol != SCATTER:
                bombs.append({"position": [reel, row], "value": weighted_pick(rng, BOMB_VALUES)})
    return bombs


class SweetBonanzaEngine(RoundEngine):
    game_type = GameType.SWEET_BONANZA

    def play(self, bet, params, rng, bonus=None) -> Result:
        in_bonus = bonus is not None
        bonus_multiplier = int((bonus or {}).get("multiplier", 1))

        grid = fill_grid(rng, TABLE, COLS, ROWS)
        opening = copy_grid(grid)
        scatters = len(positions_of(grid, SCATTER))
        free_spins = free_spins_for(scatters, in_bonus)
        scatter_pay = SCATTER_PAYS[min(scatters, 6)] if scatters >= SCATTERS_FOR_FREE_SPINS else 0

        total = Decimal(scatter_pay)
        tumbles = []
        while len(tumbles) < MAX_CASCADES:
            clusters = find_clusters(grid)
            if not clusters:
                break
            bombs = drop_bombs(rng, grid) if in_bonus else []
            bonus_multiplier += sum(b["value"] for b in bombs)
            tumble_mult = sum((c["multiplier"] for c in clusters), Decimal(0))
            if in_bonus:
                tumble_mult *= bonus_multiplier
            total += tumble_mult
            tumbles.append({
                "grid": copy_grid(grid),
                "clusters": [{**c, "positions": [list(p) for p in c["positions"]],
                              "multiplier": str(c["multiplier"])} for c in clusters],
                "multiplier": bonus_multiplier if in_bonus else 1,
                "bombs": bombs,
                "win": payout_for(bet, tumble_mult),
            })
            remove = {p for c in clusters for p in c["positions"]}
            grid = drop_and_refill(grid, remove, rng, TABLE)

        return Result.success(Outcome(
            payout=payout_for(bet, total),
            multiplier=self.floor_multiplier(total),
            data={
                "grid": opening,
                "final_grid": grid,
                "tumbles": tumbles,
                "scatter_count": scatters,
                "scatter_win": bet * scatter_pay,
                "free_spin": in_bonus,
                "bonus_multiplier": bonus_multiplier if in_bonus else None,
            },
            free_spins_won=free_spins,
            bonus={"multiplier": bonus_multiplier} if (in_bonus or free_spins) else None,
        ))

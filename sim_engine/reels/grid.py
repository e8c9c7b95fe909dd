"""
ARKAINX Casino — Reel Grid Helpers

Shared by every reel engine. A grid is a list of reels, each reel a list
of symbol names, top row first:

    grid[reel][row]          row 0 is the top of the reel

Reels may differ in height (megaways). All randomness comes from the
float stream handed in, one float per symbol drawn.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from casino.rng import FloatStream, weighted_pick

Grid = list[list[str]]
Position = tuple[int, int]

# cascades stop here even if the grid keeps winning
MAX_CASCADES = 50


def weight_table(weights: dict, exclude: Iterable[str] = ()) -> list[tuple]:
    """dict symbol → weight, in declaration order, minus `exclude`."""
    skip = set(exclude)
    return [(s, w) for s, w in weights.items() if s not in skip and w > 0]


def fill_reel(rng: FloatStream, table: list[tuple], height: int) -> list[str]:
    return [weighted_pick(rng, table) for _ in range(height)]


def fill_grid(rng: FloatStream, table: list[tuple], reels: int, rows: int) -> Grid:
    return [fill_reel(rng, table, rows) for _ in range(reels)]


def copy_grid(grid: Grid) -> Grid:
    return [list(reel) for reel in grid]


def positions_of(grid: Grid, symbol: str) -> list[Position]:
    return [(r, row) for r, reel in enumerate(grid) for row, s in enumerate(reel) if s == symbol]


def all_positions(grid: Grid) -> list[Position]:
    return [(r, row) for r, reel in enumerate(grid) for row in range(len(reel))]


def drop_and_refill(grid: Grid, remove: set, rng: FloatStream, table: list[tuple]) -> Grid:
    """Remove cells, let the survivors fall, draw new symbols into the gaps
    at the top of each reel (topmost first). Reel heights are preserved."""
    out = []
    for r, reel in enumerate(grid):
        survivors = [s for row, s in enumerate(reel) if (r, row) not in remove]
        fresh = fill_reel(rng, table, len(reel) - len(survivors))
        out.append(fresh + survivors)
    return out


def schedule_multiplier(schedule, index: int):
    """Cascade multiplier for the index-th win; saturates at the last entry."""
    return schedule[min(index, len(schedule) - 1)]


# ─── Paylines ───────────────────────────────────────────────────

def evaluate_payline(symbols: list[str], paytable: dict, wild: str,
                     all_wild_as: Optional[str] = None):
    """Left-anchored run on one line → (symbol, count, pay) or None.

    The paying symbol is the first symbol on the line that has a pay
    entry; wilds extend the run, anything else ends it. A line with no
    paying symbol pays as `all_wild_as` when it holds a wild, else nothing.
    Pays are indexed by count − 3.
    """
    base = next((s for s in symbols if s != wild and s in paytable), None)
    if base is None:
        if all_wild_as is None or wild not in symbols:
            return None
        base = all_wild_as
    count = 0
    for s in symbols:
        if s == base or s == wild:
            count += 1
        else:
            break
    if count < 3:
        return None
    pays = paytable[base]
    pay = pays[min(count - 3, len(pays) - 1)]
    if pay <= 0:
        return None
    return base, count, pay


def evaluate_paylines(grid: Grid, paylines, paytable: dict, wild: str,
                      all_wild_as: Optional[str] = None,
                      both_ways: bool = False) -> list[dict]:
    """Every winning line. Right-to-left runs are added when `both_ways`;
    a full-length run pays once."""
    wins = []
    for number, rows in enumerate(paylines, start=1):
        cells = [(reel, row) for reel, row in enumerate(rows)]
        symbols = [grid[reel][row] for reel, row in cells]
        directions = [("left", cells, symbols)]
        if both_ways:
            directions.append(("right", cells[::-1], symbols[::-1]))
        for direction, dir_cells, dir_symbols in directions:
            hit = evaluate_payline(dir_symbols, paytable, wild, all_wild_as)
            if hit is None:
                continue
            symbol, count, pay = hit
            if direction == "right" and count == len(dir_symbols):
                continue
            wins.append({
                "line": number,
                "direction": direction,
                "symbol": symbol,
                "count": count,
                "positions": [list(p) for p in dir_cells[:count]],
                "line_multiplier": pay,
            })
    return wins


# ─── Hold & win ─────────────────────────────────────────────────

def hold_and_win(rng: FloatStream, cells: list[Position], held: dict,
                 land_chance: float, pick_value: Callable[[FloatStream], object],
                 respins: int = 3) -> dict:
    """Respin every empty cell until `respins` spins in a row land nothing
    or every cell is held. A landing resets the counter.

    `held` maps position → value and is not modified. Returns the final
    held map, the number of respins played and whether the grid filled.
    """
    held = dict(held)
    remaining = respins
    played = 0
    while remaining > 0 and len(held) < len(cells):
        played += 1
        landed = False
        for cell in cells:
            if cell in held:
                continue
            if rng() < land_chance:
                held[cell] = pick_value(rng)
                landed = True
        remaining = respins if landed else remaining - 1
    return {"held": held, "respins": played, "full": len(held) == len(cells)}

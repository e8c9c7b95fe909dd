"""Plinko — one float per peg row, bucket = number of right bounces (binomial)."""
import math

from casino.errors import Result
from config.casino_schema import GameType, Risk
from sim_engine.base import Outcome, RoundEngine, dec, payout_for

# Bucket multipliers by risk level and row count, left edge to right edge
PLINKO_MULTIPLIERS = {
    Risk.LOW: {
        8:  [5.6, 2.1, 1.1, 1, 0.5, 1, 1.1, 2.1, 5.6],
        12: [10, 3, 1.6, 1.4, 1.1, 1, 0.5, 1, 1.1, 1.4, 1.6, 3, 10],
        16: [16, 9, 2, 1.4, 1.4, 1.2, 1.1, 1, 0.5, 1, 1.1, 1.2, 1.4, 1.4, 2, 9, 16],
    },
    Risk.MEDIUM: {
        8:  [13, 3, 1.3, 0.7, 0.4, 0.7, 1.3, 3, 13],
        12: [25, 8, 3, 2, 1.1, 0.6, 0.3, 0.6, 1.1, 2, 3, 8, 25],
        16: [110, 41, 10, 5, 3, 1.5, 1, 0.5, 0.3, 0.5, 1, 1.5, 3, 5, 10, 41, 110],
    },
    Risk.HIGH: {
        8:  [29, 4, 1.5, 0.3, 0.2, 0.3, 1.5, 4, 29],
        12: [141, 25, 8.1, 4, 2, 0.5, 0.2, 0.5, 2, 4, 8.1, 25, 141],
        16: [1000, 130, 26, 9, 4, 2, 0.2, 0.2, 0.2, 0.2, 0.2, 2, 4, 9, 26, 130, 1000],
    },
}

SUPPORTED_ROWS = (8, 12, 16)


def board_rows(requested: int) -> int:
    """Largest supported row count not above the request."""
    return max(r for r in SUPPORTED_ROWS if r <= max(requested, SUPPORTED_ROWS[0]))


def theoretical_rtp(rows: int, risk: Risk) -> float:
    """Exact RTP from binomial bucket probabilities."""
    mults = PLINKO_MULTIPLIERS[risk][rows]
    return sum(math.comb(rows, k) / (2 ** rows) * mults[k] for k in range(rows + 1))


class PlinkoEngine(RoundEngine):
    game_type = GameType.PLINKO

    def play(self, bet, params, rng, bonus=None) -> Result:
        rows = board_rows(params.rows)
        path = []
        for _ in range(rows):
            path.append("R" if rng() >= 0.5 else "L")
        bucket = path.count("R")
        mult = dec(PLINKO_MULTIPLIERS[params.risk][rows][bucket])
        return Result.success(Outcome(
            payout=payout_for(bet, mult),
            multiplier=mult,
            data={
                "rows": rows,
                "risk": params.risk.value,
                "path": "".join(path),
                "bucket": bucket,
                "bucket_multiplier": str(mult),
            },
        ))

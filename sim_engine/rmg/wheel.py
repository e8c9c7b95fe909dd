"""Wheel — weighted segments per risk level, threshold walk over the weights."""

from casino.errors import Result
from casino.rng import weighted_index
from config.casino_schema import GameType, Risk
from sim_engine.base import Outcome, RoundEngine, dec, payout_for

# (multiplier, weight), in wheel order
WHEEL_SEGMENTS = {
    Risk.LOW: [
        (1.2, 30), (1.5, 25), (0, 15), (1.2, 30),
        (2, 15), (0, 15), (1.5, 25), (3, 5),
    ],
    Risk.MEDIUM: [
        (0, 20), (1.5, 20), (0, 20), (2, 15),
        (0, 20), (3, 10), (1.5, 20), (5, 5),
    ],
    Risk.HIGH: [
        (0, 30), (0, 30), (2, 15), (0, 30), (3, 10),
        (0, 30), (5, 5), (10, 2), (0, 30), (50, 0.5),
    ],
}


def theoretical_rtp(risk: Risk) -> float:
    segs = WHEEL_SEGMENTS[risk]
    total_weight = sum(w for _, w in segs)
    return sum(m * w / total_weight for m, w in segs)


class WheelEngine(RoundEngine):
    game_type = GameType.WHEEL

    def play(self, bet, params, rng, bonus=None) -> Result:
        segments = WHEEL_SEGMENTS[params.risk]
        idx = weighted_index(rng, [w for _, w in segments])
        mult = dec(segments[idx][0])
        return Result.success(Outcome(
            payout=payout_for(bet, mult),
            multiplier=mult,
            data={
                "risk": params.risk.value,
                "segment_index": idx,
                "segment_count": len(segments),
                "segment_multiplier": str(mult),
            },
        ))

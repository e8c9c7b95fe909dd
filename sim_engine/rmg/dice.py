"""Dice — roll 0.00–99.99 over/under a target."""
from decimal import Decimal

from casino.errors import InvalidAction, Result
from config.casino_schema import GameType
from sim_engine.base import Outcome, RoundEngine, dec, floor_places, payout_for

HOUSE_EDGE = Decimal("0.01")
ROLL_STEPS = 10000  # 0.00 .. 99.99


def win_chance(target, is_over: bool) -> Decimal:
    """Percent chance. Over wins on target+0.01 .. 99.99, under on 0.00 .. target-0.01."""
    target = dec(target)
    return (Decimal("99.99") - target) if is_over else target


def multiplier_for(chance_pct: Decimal, places: int = 4) -> Decimal:
    """(100 / chance) × (1 − edge), floored."""
    if chance_pct <= 0 or chance_pct >= 100:
        return Decimal(0)
    return floor_places(Decimal(100) / chance_pct * (1 - HOUSE_EDGE), places)


def roll_from_float(f: float) -> Decimal:
    return Decimal(int(f * ROLL_STEPS)) / 100


class DiceEngine(RoundEngine):
    game_type = GameType.DICE
    multiplier_places = 4

    def validate(self, bet, params):
        chance = win_chance(params.target, params.is_over)
        if chance < 1 or chance > 98:
            return InvalidAction("Win chance must be between 1% and 98%")
        return None

    def play(self, bet, params, rng, bonus=None) -> Result:
        err = self.validate(bet, params)
        if err:
            return Result.failure(err)
        target = dec(params.target)
        roll = roll_from_float(rng())
        chance = win_chance(target, params.is_over)
        mult = multiplier_for(chance, self.multiplier_places)
        won = roll > target if params.is_over else roll < target
        payout = payout_for(bet, mult) if won else 0
        return Result.success(Outcome(
            payout=payout,
            multiplier=mult if won else Decimal(0),
            data={
                "roll": str(roll),
                "target": str(target),
                "is_over": params.is_over,
                "won": won,
                "win_chance": str(chance),
                "payout_multiplier": str(mult),
            },
        ))

"""European roulette — single zero, inside and outside bets, several bets per spin."""
from decimal import Decimal

from casino.errors import InvalidAction, InvalidBetAmount, Result
from casino.rng import float_to_range
from config.casino_schema import GameType, RouletteBet, RouletteParams
from sim_engine.base import Outcome, RoundEngine

RED_NUMBERS = frozenset([1, 3, 5, 7, 9, 12, 14, 16, 18, 19, 21, 23, 25, 27, 30, 32, 34, 36])

# odds paid on top of the returned stake
PAYOUTS = {
    "straight": 35,
    "split": 17,
    "street": 11,
    "corner": 8,
    "line": 5,
    "dozen": 2,
    "column": 2,
    "red": 1,
    "black": 1,
    "even": 1,
    "odd": 1,
    "high": 1,
    "low": 1,
}

INSIDE_SIZES = {"straight": 1, "split": 2, "street": 3, "corner": 4, "line": 6}


def pocket(number: int) -> dict:
    """Colour/dozen/column properties of a winning number."""
    if number == 0:
        color = "green"
    else:
        color = "red" if number in RED_NUMBERS else "black"
    dozen = (number - 1) // 12 + 1 if number else None
    column = {1: 1, 2: 2, 0: 3}[number % 3] if number else None
    return {
        "number": number,
        "color": color,
        "is_even": number != 0 and number % 2 == 0,
        "is_high": 19 <= number <= 36,
        "dozen": dozen,
        "column": column,
    }


def validate_bet(bet: RouletteBet) -> bool:
    nums = bet.numbers
    if any(n < 0 or n > 36 for n in nums) or len(set(nums)) != len(nums):
        return False
    if bet.kind in INSIDE_SIZES:
        return len(nums) == INSIDE_SIZES[bet.kind]
    if bet.kind in ("dozen", "column"):
        return len(nums) == 1 and nums[0] in (1, 2, 3)
    return len(nums) == 0


def bet_wins(bet: RouletteBet, result: dict) -> bool:
    n = result["number"]
    kind = bet.kind
    if kind in INSIDE_SIZES:
        return n in bet.numbers
    if n == 0:
        return False
    if kind == "dozen":
        return result["dozen"] == bet.numbers[0]
    if kind == "column":
        return result["column"] == bet.numbers[0]
    if kind in ("red", "black"):
        return result["color"] == kind
    if kind == "even":
        return result["is_even"]
    if kind == "odd":
        return not result["is_even"]
    if kind == "high":
        return result["is_high"]
    return 1 <= n <= 18  # low


class RouletteEngine(RoundEngine):
    game_type = GameType.ROULETTE

    def default_params(self):
        return RouletteParams(bets=[RouletteBet(kind="red", amount=self.sim_bet)])

    def validate(self, bet, params):
        for b in params.bets:
            if not validate_bet(b):
                return InvalidAction(f"Invalid {b.kind} bet on {b.numbers}")
        if params.total != bet:
            return InvalidBetAmount(f"Bets total {params.total}, stake is {bet}")
        return None

    def play(self, bet, params, rng, bonus=None) -> Result:
        err = self.validate(bet, params)
        if err:
            return Result.failure(err)
        result = pocket(float_to_range(rng(), 0, 36))

        lines = []
        payout = 0
        for b in params.bets:
            won = bet_wins(b, result)
            win = b.amount * (PAYOUTS[b.kind] + 1) if won else 0
            payout += win
            lines.append({"kind": b.kind, "numbers": b.numbers, "amount": b.amount,
                          "won": won, "payout": win})
        return Result.success(Outcome(
            payout=payout,
            multiplier=self.floor_multiplier(Decimal(payout) / Decimal(bet)),
            data={"result": result, "bets": lines, "total_bet": bet},
        ))

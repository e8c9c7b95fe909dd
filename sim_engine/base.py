"""
ARKAINX Casino — Engine Base

Every game is one engine class. Engines are pure: a bet, validated
parameters, optional persisted state and a float stream go in; a tagged
Result carrying an Outcome comes out. No I/O, no balance changes, no
clock. The service decides what to debit, credit and persist.

Two shapes:
    RoundEngine     play(bet, params, rng, bonus=None) → Result[Outcome]
                    single-shot and cascading reel games
    StatefulEngine  start(bet, params, rng) → Result[Outcome(state=...)]
                    act(state, move, balance) → Result[Outcome]
                    cashout(state) → Result[Outcome]

Money rules:
    multipliers are Decimal, floored to `multiplier_places` (2 unless a
    game says otherwise); payout = floor(bet × multiplier), an int.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields
from decimal import ROUND_FLOOR, Decimal
from fractions import Fraction
from typing import ClassVar, Optional

from casino.errors import CasinoError, InvalidAction, Result
from casino.rng import FloatStream
from config.casino_schema import GAME_INFO, GameType, parse_params


# ═══════════════════════════════════════════════════════════════
# Decimal helpers
# ═══════════════════════════════════════════════════════════════

def dec(x) -> Decimal:
    """Decimal from an int/float literal via its shortest repr."""
    return x if isinstance(x, Decimal) else Decimal(str(x))


def floor_places(value: Decimal, places: int = 2) -> Decimal:
    return dec(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_FLOOR)


def floor_int(value) -> int:
    return int(dec(value).to_integral_value(rounding=ROUND_FLOOR))


def payout_for(bet: int, multiplier) -> int:
    """floor(bet × multiplier)."""
    return floor_int(dec(bet) * dec(multiplier))


def survival_multiplier(total: int, bad: int, steps: int, rtp, shrinking: bool = True) -> Decimal:
    """floor(rtp / P(survive `steps` picks) × 100) / 100, exact.

    shrinking=True draws without replacement from one board (mines);
    False re-uses a fresh board of `total` tiles per step (chicken road).
    multiplier(0) is 1.
    """
    if steps <= 0:
        return Decimal(1)
    safe = total - bad
    probability = Fraction(1)
    for i in range(steps):
        if shrinking:
            probability *= Fraction(safe - i, total - i)
        else:
            probability *= Fraction(safe, total)
    if probability <= 0:
        return Decimal(0)
    hundredths = math.floor(Fraction(str(rtp)) / probability * 100)
    return Decimal(hundredths) / 100


# ═══════════════════════════════════════════════════════════════
# Outcome
# ═══════════════════════════════════════════════════════════════

@dataclass
class Outcome:
    """One engine step.

    payout          tokens returned to the player by this step (0 on loss)
    finished        round over (stateful engines settle when True)
    state           new state blob for stateful engines
    extra_bet       additional stake this step requires (double, split, insurance)
    free_spins_won  free spins awarded by this spin (reel games)
    bonus           data the open bonus round must carry to its next spin
    """
    payout: int = 0
    multiplier: Decimal = Decimal(0)
    data: dict = field(default_factory=dict)
    finished: bool = True
    state: Optional[dict] = None
    extra_bet: int = 0
    free_spins_won: int = 0
    bonus: Optional[dict] = None

    def to_dict(self) -> dict:
        out = {
            "payout": self.payout,
            "multiplier": str(self.multiplier),
            "finished": self.finished,
            **self.data,
        }
        if self.free_spins_won:
            out["free_spins_won"] = self.free_spins_won
        return out


# ═══════════════════════════════════════════════════════════════
# Persisted state
# ═══════════════════════════════════════════════════════════════

class EngineState:
    """Base for the dataclass state of one stateful engine.

    to_blob() is what the session store persists; from_blob() refuses a
    blob written by another engine or another state version.
    """

    kind: ClassVar[str] = ""
    version: ClassVar[int] = 1

    def to_blob(self) -> dict:
        blob = asdict(self)
        blob["_kind"] = self.kind
        blob["_v"] = self.version
        return blob

    @classmethod
    def from_blob(cls, blob: dict):
        if not blob or blob.get("_kind") != cls.kind:
            raise InvalidAction(f"Session state is not a {cls.kind} round")
        if blob.get("_v") != cls.version:
            raise InvalidAction(f"Unsupported {cls.kind} state version {blob.get('_v')}")
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in blob.items() if k in names})


# ═══════════════════════════════════════════════════════════════
# Simulation
# ═══════════════════════════════════════════════════════════════

@dataclass
class SimResult:
    """Monte Carlo results for one engine."""
    game_type: str
    rounds: int
    rtp_nominal: float
    rtp_measured: float
    avg_multiplier: float
    max_multiplier_hit: float
    hit_rate: float  # share of rounds that returned > 0
    total_wagered: int
    total_returned: int
    confidence_95: tuple = (0.0, 0.0)
    distribution: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "game_type": self.game_type,
            "rounds": self.rounds,
            "rtp_nominal": round(self.rtp_nominal, 4),
            "rtp_measured": round(self.rtp_measured, 4),
            "avg_multiplier": round(self.avg_multiplier, 4),
            "max_multiplier_hit": round(self.max_multiplier_hit, 2),
            "hit_rate": round(self.hit_rate, 4),
            "total_wagered": self.total_wagered,
            "total_returned": self.total_returned,
            "confidence_95": [round(x, 4) for x in self.confidence_95],
            "distribution": self.distribution,
        }


def _bucket(mult: float) -> str:
    if mult == 0:
        return "0x"
    elif mult < 1:
        return "0-1x"
    elif mult < 2:
        return "1-2x"
    elif mult < 5:
        return "2-5x"
    elif mult < 10:
        return "5-10x"
    elif mult < 50:
        return "10-50x"
    elif mult < 100:
        return "50-100x"
    return "100x+"


# ═══════════════════════════════════════════════════════════════
# Engine bases
# ═══════════════════════════════════════════════════════════════

class BaseEngine(ABC):
    """Shared metadata, validation and the Monte Carlo loop."""

    game_type: GameType
    multiplier_places: int = 2
    sim_bet: int = 100

    @property
    def info(self):
        return GAME_INFO[self.game_type]

    @property
    def display_name(self) -> str:
        return self.info.display_name

    def floor_multiplier(self, value) -> Decimal:
        return floor_places(value, self.multiplier_places)

    def validate(self, bet: int, params) -> Optional[CasinoError]:
        """Game-specific parameter checks beyond the pydantic model."""
        return None

    @abstractmethod
    def simulate_round(self, params, rng: FloatStream, bet: int) -> int:
        """Play one full round with a fixed strategy. Returns total payout."""
        ...

    def default_params(self):
        return parse_params(self.game_type, {})

    def simulate(self, params=None, rounds: int = 100_000, seed: int = 42) -> SimResult:
        """Monte Carlo RTP over a seeded PRNG stream (not the fair stream)."""
        params = params if params is not None else self.default_params()
        bet = self.sim_bet
        rng = random.Random(seed).random

        total_wagered = 0
        total_returned = 0
        wins = 0
        max_mult = 0.0
        sum_sq = 0.0
        buckets = {}

        for _ in range(rounds):
            total_wagered += bet
            payout = self.simulate_round(params, rng, bet)
            total_returned += payout
            mult = payout / bet
            sum_sq += mult * mult
            if payout > 0:
                wins += 1
            if mult > max_mult:
                max_mult = mult
            key = _bucket(mult)
            buckets[key] = buckets.get(key, 0) + 1

        rtp = total_returned / total_wagered if total_wagered else 0.0
        avg_mult = rtp
        variance = max(sum_sq / rounds - avg_mult * avg_mult, 0.0) if rounds else 0.0
        std_err = math.sqrt(variance / rounds) if rounds else 0.0

        return SimResult(
            game_type=self.game_type.value,
            rounds=rounds,
            rtp_nominal=self.info.rtp,
            rtp_measured=rtp,
            avg_multiplier=avg_mult,
            max_multiplier_hit=max_mult,
            hit_rate=wins / rounds if rounds else 0.0,
            total_wagered=total_wagered,
            total_returned=total_returned,
            confidence_95=(rtp - 1.96 * std_err, rtp + 1.96 * std_err),
            distribution={k: round(v / rounds, 4) for k, v in sorted(buckets.items())},
        )

    def get_metadata(self) -> dict:
        info = self.info
        return {
            "game_type": self.game_type.value,
            "display_name": info.display_name,
            "family": info.family.value,
            "rtp": info.rtp,
            "min_bet": info.min_bet,
            "max_bet": info.max_bet,
        }


class RoundEngine(BaseEngine):
    """One call = one complete round (single-shot and reel games)."""

    @abstractmethod
    def play(self, bet: int, params, rng: FloatStream, bonus: dict = None) -> Result:
        """Returns Result[Outcome]. `bonus` is set for a free spin."""
        ...

    def simulate_round(self, params, rng: FloatStream, bet: int) -> int:
        outcome = self.play(bet, params, rng).unwrap()
        total = outcome.payout
        spins_left = outcome.free_spins_won
        bonus = outcome.bonus or {}
        while spins_left > 0:
            spins_left -= 1
            spin = self.play(bet, params, rng, bonus=bonus).unwrap()
            total += spin.payout
            spins_left += spin.free_spins_won
            bonus = spin.bonus or bonus
        return total


class StatefulEngine(BaseEngine):
    """Multi-step round driven by player moves over a persisted state.

    `state` arguments and Outcome.state are blobs from EngineState.to_blob().
    """

    @abstractmethod
    def start(self, bet: int, params, rng: FloatStream) -> Result:
        ...

    @abstractmethod
    def act(self, state: dict, move, balance: int) -> Result:
        ...

    def cashout(self, state: dict) -> Result:
        return Result.failure(InvalidAction(f"{self.display_name} has no cash-out"))

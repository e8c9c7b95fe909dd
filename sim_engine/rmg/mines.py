"""Mines — 5×5 board, 1–24 mines, cash out any time after a safe reveal.

The multiplier after k safe reveals is the survival probability of k
draws without replacement, inverted and scaled by RTP:

    P(k) = Π_{i<k} (safe − i) / (25 − i)
    multiplier(k) = floor(0.99 / P(k) × 100) / 100,   multiplier(0) = 1
"""
from dataclasses import dataclass, field
from decimal import Decimal

from casino.errors import InvalidAction, Result
from casino.rng import float_to_range, unique_ints
from config.casino_schema import GameType, MinesParams, TileMove
from sim_engine.base import (
    EngineState, Outcome, StatefulEngine, payout_for, survival_multiplier,
)

GRID_SIZE = 25
MIN_MINES = 1
MAX_MINES = 24
MINES_RTP = "0.99"


def mines_multiplier(mine_count: int, revealed: int):
    if revealed > GRID_SIZE - mine_count:
        return Decimal(0)
    return survival_multiplier(GRID_SIZE, mine_count, revealed, MINES_RTP)


@dataclass
class MinesState(EngineState):
    kind = "mines"

    bet: int
    mine_count: int
    mine_positions: list = field(default_factory=list)
    revealed: list = field(default_factory=list)
    finished: bool = False
    hit_mine: bool = False
    cashed_out: bool = False

    @property
    def safe_left(self) -> int:
        return GRID_SIZE - self.mine_count - len(self.revealed)

    def public(self) -> dict:
        out = {
            "mine_count": self.mine_count,
            "revealed": list(self.revealed),
            "multiplier": str(mines_multiplier(self.mine_count, len(self.revealed))),
            "next_multiplier": (str(mines_multiplier(self.mine_count, len(self.revealed) + 1))
                                if self.safe_left > 0 else None),
            "finished": self.finished,
        }
        if self.finished:
            out["mine_positions"] = sorted(self.mine_positions)
            out["hit_mine"] = self.hit_mine
        return out


class MinesEngine(StatefulEngine):
    game_type = GameType.MINES

    def validate(self, bet, params):
        if not MIN_MINES <= params.mine_count <= MAX_MINES:
            return InvalidAction(f"Mine count must be between {MIN_MINES} and {MAX_MINES}")
        return None

    def start(self, bet, params: MinesParams, rng) -> Result:
        err = self.validate(bet, params)
        if err:
            return Result.failure(err)
        state = MinesState(
            bet=bet,
            mine_count=params.mine_count,
            mine_positions=sorted(unique_ints(rng, 0, GRID_SIZE - 1, params.mine_count)),
        )
        return Result.success(Outcome(finished=False, state=state.to_blob(),
                                      multiplier=mines_multiplier(params.mine_count, 0),
                                      data=state.public()))

    def act(self, state: dict, move: TileMove, balance: int) -> Result:
        if move.action == "cashout":
            return self.cashout(state)
        if move.action != "reveal":
            return Result.failure(InvalidAction(f"Mines has no '{move.action}' move"))
        s = MinesState.from_blob(state)
        if s.finished:
            return Result.failure(InvalidAction("Game is already over"))
        tile = move.tile
        if tile is None or not 0 <= tile < GRID_SIZE:
            return Result.failure(InvalidAction("Invalid tile index"))
        if tile in s.revealed:
            return Result.failure(InvalidAction("Tile already revealed"))

        s.revealed.append(tile)
        if tile in s.mine_positions:
            s.finished = True
            s.hit_mine = True
            return Result.success(Outcome(
                payout=0, finished=True, state=s.to_blob(),
                data={"tile": tile, "is_mine": True, **s.public()},
            ))

        mult = mines_multiplier(s.mine_count, len(s.revealed))
        payout = 0
        if s.safe_left == 0:
            s.finished = True
            s.cashed_out = True
            payout = payout_for(s.bet, mult)
        return Result.success(Outcome(
            payout=payout, multiplier=mult, finished=s.finished, state=s.to_blob(),
            data={"tile": tile, "is_mine": False, **s.public()},
        ))

    def cashout(self, state: dict) -> Result:
        s = MinesState.from_blob(state)
        if s.finished:
            return Result.failure(InvalidAction("Game is already over"))
        if not s.revealed:
            return Result.failure(InvalidAction("Must reveal at least one tile before cashing out"))
        mult = mines_multiplier(s.mine_count, len(s.revealed))
        s.finished = True
        s.cashed_out = True
        return Result.success(Outcome(
            payout=payout_for(s.bet, mult), multiplier=mult, finished=True,
            state=s.to_blob(), data=s.public(),
        ))

    def simulate_round(self, params, rng, bet) -> int:
        """Reveal a random 1–5 tiles in board order, then cash out."""
        outcome = self.start(bet, params, rng).unwrap()
        target = min(float_to_range(rng(), 1, 5), GRID_SIZE - params.mine_count)
        state = outcome.state
        for tile in range(target):
            outcome = self.act(state, TileMove(action="reveal", tile=tile), 0).unwrap()
            if outcome.finished:
                return outcome.payout
            state = outcome.state
        return self.cashout(state).unwrap().payout

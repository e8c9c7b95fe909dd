"""Chicken Road — cross 10 columns of 5 tiles, each column hides 1–4 bones.

Every column is a fresh 5-tile board, so after k safe steps

    multiplier(k) = floor(0.98 × (5 / safe)^k × 100) / 100

Reaching the last column cashes out automatically.
"""
from dataclasses import dataclass, field

from casino.errors import InvalidAction, Result
from casino.rng import float_to_range, unique_ints
from config.casino_schema import ChickenParams, Difficulty, GameType, TileMove
from sim_engine.base import (
    EngineState, Outcome, StatefulEngine, payout_for, survival_multiplier,
)

ROAD_COLUMNS = 10
TILES_PER_COLUMN = 5
CHICKEN_RTP = "0.98"

BONES_PER_COLUMN = {
    Difficulty.EASY: 1,
    Difficulty.MEDIUM: 2,
    Difficulty.HARD: 3,
    Difficulty.HARDCORE: 4,
}


def chicken_multiplier(difficulty, steps: int):
    bones = BONES_PER_COLUMN[Difficulty(difficulty)]
    return survival_multiplier(TILES_PER_COLUMN, bones, steps, CHICKEN_RTP, shrinking=False)


def multiplier_table(difficulty) -> list[str]:
    return [str(chicken_multiplier(difficulty, k)) for k in range(1, ROAD_COLUMNS + 1)]


@dataclass
class ChickenState(EngineState):
    kind = "chicken_road"

    bet: int
    difficulty: str
    bone_positions: list = field(default_factory=list)  # [column] → sorted rows
    chosen_rows: list = field(default_factory=list)
    finished: bool = False
    hit_bone: bool = False
    cashed_out: bool = False

    @property
    def steps(self) -> int:
        return len(self.chosen_rows)

    def public(self) -> dict:
        out = {
            "difficulty": self.difficulty,
            "column": self.steps - 1,
            "chosen_rows": list(self.chosen_rows),
            "multiplier": str(chicken_multiplier(self.difficulty, self.steps)),
            "next_multiplier": (str(chicken_multiplier(self.difficulty, self.steps + 1))
                                if self.steps < ROAD_COLUMNS else None),
            "finished": self.finished,
        }
        if self.finished:
            out["bone_positions"] = self.bone_positions
            out["hit_bone"] = self.hit_bone
        return out


class ChickenRoadEngine(StatefulEngine):
    game_type = GameType.CHICKEN_ROAD

    def start(self, bet, params: ChickenParams, rng) -> Result:
        bones = BONES_PER_COLUMN[params.difficulty]
        layout = [sorted(unique_ints(rng, 0, TILES_PER_COLUMN - 1, bones))
                  for _ in range(ROAD_COLUMNS)]
        state = ChickenState(bet=bet, difficulty=params.difficulty.value, bone_positions=layout)
        return Result.success(Outcome(finished=False, state=state.to_blob(),
                                      multiplier=chicken_multiplier(params.difficulty, 0),
                                      data={**state.public(),
                                            "multipliers": multiplier_table(params.difficulty)}))

    def act(self, state: dict, move: TileMove, balance: int) -> Result:
        if move.action == "cashout":
            return self.cashout(state)
        if move.action != "step":
            return Result.failure(InvalidAction(f"Chicken Road has no '{move.action}' move"))
        s = ChickenState.from_blob(state)
        if s.finished:
            return Result.failure(InvalidAction("Game is already over"))
        row = move.tile
        if row is None or not 0 <= row < TILES_PER_COLUMN:
            return Result.failure(InvalidAction("Invalid row index"))

        column = s.steps
        s.chosen_rows.append(row)
        if row in s.bone_positions[column]:
            s.finished = True
            s.hit_bone = True
            return Result.success(Outcome(
                payout=0, finished=True, state=s.to_blob(),
                data={"row": row, "is_bone": True, **s.public()},
            ))

        mult = chicken_multiplier(s.difficulty, s.steps)
        payout = 0
        if s.steps == ROAD_COLUMNS:
            s.finished = True
            s.cashed_out = True
            payout = payout_for(s.bet, mult)
        return Result.success(Outcome(
            payout=payout, multiplier=mult, finished=s.finished, state=s.to_blob(),
            data={"row": row, "is_bone": False, **s.public()},
        ))

    def cashout(self, state: dict) -> Result:
        s = ChickenState.from_blob(state)
        if s.finished:
            return Result.failure(InvalidAction("Game is already over"))
        if s.steps == 0:
            return Result.failure(InvalidAction("Must complete at least one step before cashing out"))
        mult = chicken_multiplier(s.difficulty, s.steps)
        s.finished = True
        s.cashed_out = True
        return Result.success(Outcome(
            payout=payout_for(s.bet, mult), multiplier=mult, finished=True,
            state=s.to_blob(), data=s.public(),
        ))

    def simulate_round(self, params, rng, bet) -> int:
        """Pick a random target column, step on random rows, cash out."""
        outcome = self.start(bet, params, rng).unwrap()
        target = float_to_range(rng(), 1, ROAD_COLUMNS)
        state = outcome.state
        for _ in range(target):
            row = float_to_range(rng(), 0, TILES_PER_COLUMN - 1)
            outcome = self.act(state, TileMove(action="step", tile=row), 0).unwrap()
            if outcome.finished:
                return outcome.payout
            state = outcome.state
        return self.cashout(state).unwrap().payout

"""
ARKAINX Casino — Game Catalog & Parameter Schema

Closed set of game types, the catalog entry (bet limits, nominal RTP,
engine family) for each one, and the pydantic models that validate the
player-supplied parameters of every game and move.

Usage:
    from config.casino_schema import GameType, GAME_INFO, parse_params
    info = GAME_INFO[GameType.DICE]
    params = parse_params(GameType.DICE, {"target": 50, "is_over": True})
"""

from __future__ import annotations
from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator, model_validator


# ═══════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════

class GameType(str, Enum):
    ROULETTE = "roulette"
    BLACKJACK = "blackjack"
    SLOTS = "slots"
    DICE = "dice"
    MINES = "mines"
    PLINKO = "plinko"
    WHEEL = "wheel"
    VIDEO_POKER = "video_poker"
    SWEET_BONANZA = "sweet_bonanza"
    BOOK_OF_DEAD = "book_of_dead"
    WOLF_GOLD = "wolf_gold"
    STARBURST = "starburst"
    GONZOS_QUEST = "gonzos_quest"
    CHICKEN_ROAD = "chicken_road"
    COIN_STRIKE = "coin_strike"


class EngineFamily(str, Enum):
    SINGLE_SHOT = "single_shot"
    CASCADE = "cascade"
    STATEFUL = "stateful"


class Risk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    HARDCORE = "hardcore"


# ═══════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════

class GameInfo(BaseModel):
    """Static catalog entry for one game."""
    game_type: GameType
    display_name: str
    family: EngineFamily
    rtp: float
    min_bet: int
    max_bet: int


def _info(gt, name, family, rtp, min_bet, max_bet) -> GameInfo:
    return GameInfo(game_type=gt, display_name=name, family=family,
                    rtp=rtp, min_bet=min_bet, max_bet=max_bet)


GAME_INFO: dict[GameType, GameInfo] = {
    GameType.ROULETTE:      _info(GameType.ROULETTE, "European Roulette", EngineFamily.SINGLE_SHOT, 0.973, 10, 10000),
    GameType.BLACKJACK:     _info(GameType.BLACKJACK, "Blackjack", EngineFamily.STATEFUL, 0.995, 10, 5000),
    GameType.SLOTS:         _info(GameType.SLOTS, "Classic Slots", EngineFamily.SINGLE_SHOT, 0.96, 1, 100),
    GameType.DICE:          _info(GameType.DICE, "Dice", EngineFamily.SINGLE_SHOT, 0.99, 1, 10000),
    GameType.MINES:         _info(GameType.MINES, "Mines", EngineFamily.STATEFUL, 0.99, 10, 5000),
    GameType.PLINKO:        _info(GameType.PLINKO, "Plinko", EngineFamily.SINGLE_SHOT, 0.99, 1, 1000),
    GameType.WHEEL:         _info(GameType.WHEEL, "Wheel", EngineFamily.SINGLE_SHOT, 0.98, 10, 5000),
    GameType.VIDEO_POKER:   _info(GameType.VIDEO_POKER, "Jacks or Better", EngineFamily.STATEFUL, 0.9954, 5, 500),
    GameType.SWEET_BONANZA: _info(GameType.SWEET_BONANZA, "Sweet Bonanza", EngineFamily.CASCADE, 0.965, 1, 500),
    GameType.BOOK_OF_DEAD:  _info(GameType.BOOK_OF_DEAD, "Book of Dead", EngineFamily.CASCADE, 0.9621, 1, 500),
    GameType.WOLF_GOLD:     _info(GameType.WOLF_GOLD, "Wolf Gold", EngineFamily.CASCADE, 0.9601, 1, 500),
    GameType.STARBURST:     _info(GameType.STARBURST, "Starburst", EngineFamily.CASCADE, 0.9609, 1, 500),
    GameType.GONZOS_QUEST:  _info(GameType.GONZOS_QUEST, "Gonzo's Quest Megaways", EngineFamily.CASCADE, 0.96, 1, 500),
    GameType.CHICKEN_ROAD:  _info(GameType.CHICKEN_ROAD, "Chicken Road", EngineFamily.STATEFUL, 0.98, 10, 5000),
    GameType.COIN_STRIKE:   _info(GameType.COIN_STRIKE, "Coin Strike", EngineFamily.CASCADE, 0.965, 1, 500),
}


def to_game_type(value) -> GameType:
    """Coerce a string or GameType. Raises ValueError on unknown names."""
    if isinstance(value, GameType):
        return value
    return GameType(str(value).strip().lower())


# ═══════════════════════════════════════════════════════════════
# Round Parameters (start / play)
# ═══════════════════════════════════════════════════════════════

class DiceParams(BaseModel):
    target: float = Field(50, ge=1, le=98)
    is_over: bool = True


RouletteBetKind = Literal[
    "straight", "split", "street", "corner", "line", "dozen", "column",
    "red", "black", "even", "odd", "low", "high",
]


class RouletteBet(BaseModel):
    kind: RouletteBetKind
    numbers: list[int] = Field(default_factory=list)
    amount: int = Field(gt=0)


class RouletteParams(BaseModel):
    bets: list[RouletteBet] = Field(min_length=1)

    @property
    def total(self) -> int:
        return sum(b.amount for b in self.bets)


class WheelParams(BaseModel):
    risk: Risk = Risk.MEDIUM


class PlinkoParams(BaseModel):
    rows: int = Field(12, ge=8, le=16)
    risk: Risk = Risk.MEDIUM


class SpinParams(BaseModel):
    """Reel games. free_spin consumes one spin of the open bonus round."""
    free_spin: bool = False


class MinesParams(BaseModel):
    mine_count: int = Field(3, ge=1, le=24)


class ChickenParams(BaseModel):
    difficulty: Difficulty = Difficulty.MEDIUM


class BlackjackParams(BaseModel):
    """Multi-spot deal: spot id → bet for that spot."""
    spots: dict[str, int] = Field(min_length=1, max_length=5)

    @field_validator("spots")
    @classmethod
    def _positive_spot_bets(cls, v):
        for spot_id, bet in v.items():
            if bet <= 0:
                raise ValueError(f"spot {spot_id} bet must be positive")
        return v

    @property
    def total(self) -> int:
        return sum(self.spots.values())


class EmptyParams(BaseModel):
    pass


# ═══════════════════════════════════════════════════════════════
# Moves (act)
# ═══════════════════════════════════════════════════════════════

class TileMove(BaseModel):
    """Mines reveal / chicken-road step."""
    action: Literal["reveal", "step", "cashout"]
    tile: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _tile_required(self):
        if self.action != "cashout" and self.tile is None:
            raise ValueError(f"{self.action} needs a tile")
        return self


class DrawMove(BaseModel):
    action: Literal["draw"] = "draw"
    holds: list[int] = Field(default_factory=list, max_length=5)

    @field_validator("holds")
    @classmethod
    def _valid_positions(cls, v):
        if len(set(v)) != len(v) or any(p < 0 or p > 4 for p in v):
            raise ValueError("holds must be distinct positions 0-4")
        return sorted(v)


class BlackjackMove(BaseModel):
    action: Literal["hit", "stand", "double", "split", "insurance"]


PARAM_MODELS: dict[GameType, type[BaseModel]] = {
    GameType.ROULETTE: RouletteParams,
    GameType.BLACKJACK: BlackjackParams,
    GameType.SLOTS: SpinParams,
    GameType.DICE: DiceParams,
    GameType.MINES: MinesParams,
    GameType.PLINKO: PlinkoParams,
    GameType.WHEEL: WheelParams,
    GameType.VIDEO_POKER: EmptyParams,
    GameType.SWEET_BONANZA: SpinParams,
    GameType.BOOK_OF_DEAD: SpinParams,
    GameType.WOLF_GOLD: SpinParams,
    GameType.STARBURST: SpinParams,
    GameType.GONZOS_QUEST: SpinParams,
    GameType.CHICKEN_ROAD: ChickenParams,
    GameType.COIN_STRIKE: SpinParams,
}

MOVE_MODELS: dict[GameType, type[BaseModel]] = {
    GameType.MINES: TileMove,
    GameType.CHICKEN_ROAD: TileMove,
    GameType.VIDEO_POKER: DrawMove,
    GameType.BLACKJACK: BlackjackMove,
}


def parse_params(game_type: GameType, raw: Optional[dict]) -> BaseModel:
    """Validate round parameters. Raises pydantic.ValidationError."""
    return PARAM_MODELS[game_type].model_validate(raw or {})


def parse_move(game_type: GameType, raw) -> BaseModel:
    """Validate a move. A bare string is shorthand for {"action": ...}."""
    if isinstance(raw, str):
        raw = {"action": raw}
    return MOVE_MODELS[game_type].model_validate(raw or {})

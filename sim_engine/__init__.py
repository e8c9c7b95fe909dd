"""
ARKAINX Casino — Engine Registry

One engine class per GameType. The registry is checked at import time so
a game added to the schema without an engine fails loudly.

Usage:
    from sim_engine import get_engine
    engine = get_engine(GameType.MINES)
"""

from config.casino_schema import GameType
from sim_engine.reels import REEL_ENGINES
from sim_engine.rmg import RMG_ENGINES

ENGINES = {**RMG_ENGINES, **REEL_ENGINES}

_missing = [g.value for g in GameType if g not in ENGINES]
if _missing:
    raise RuntimeError(f"No engine registered for: {', '.join(_missing)}")

_instances = {}


def get_engine(game_type):
    """Shared engine instance for a GameType (engines hold no state)."""
    game_type = GameType(game_type)
    if game_type not in _instances:
        _instances[game_type] = ENGINES[game_type]()
    return _instances[game_type]

"""
ARKAINX Casino — Table & Instant Games

Single-shot engines (dice, roulette, wheel, plinko, slots) and the
multi-step state machines (mines, chicken road, video poker, blackjack).

Usage:
    from sim_engine.rmg import RMG_ENGINES
    engine = RMG_ENGINES[GameType.DICE]()
    results = engine.simulate(rounds=100_000)
"""

from config.casino_schema import GameType
from sim_engine.rmg.blackjack import BlackjackEngine
from sim_engine.rmg.chicken import ChickenRoadEngine
from sim_engine.rmg.dice import DiceEngine
from sim_engine.rmg.mines import MinesEngine
from sim_engine.rmg.plinko import PlinkoEngine
from sim_engine.rmg.roulette import RouletteEngine
from sim_engine.rmg.slots import SlotsEngine
from sim_engine.rmg.video_poker import VideoPokerEngine
from sim_engine.rmg.wheel import WheelEngine

RMG_ENGINES = {
    GameType.DICE: DiceEngine,
    GameType.ROULETTE: RouletteEngine,
    GameType.WHEEL: WheelEngine,
    GameType.PLINKO: PlinkoEngine,
    GameType.SLOTS: SlotsEngine,
    GameType.MINES: MinesEngine,
    GameType.CHICKEN_ROAD: ChickenRoadEngine,
    GameType.VIDEO_POKER: VideoPokerEngine,
    GameType.BLACKJACK: BlackjackEngine,
}

"""
ARKAINX Casino — Reel Games

Video slots with cascades, respins and free-spin bonuses. Every engine
here is a RoundEngine; bonus rounds are driven by the service, one
play(..., bonus=...) call per free spin.

Usage:
    from sim_engine.reels import REEL_ENGINES
    engine = REEL_ENGINES[GameType.STARBURST]()
"""

from config.casino_schema import GameType
from sim_engine.reels.book_of_dead import BookOfDeadEngine
from sim_engine.reels.coin_strike import CoinStrikeEngine
from sim_engine.reels.gonzo import GonzosQuestEngine
from sim_engine.reels.starburst import StarburstEngine
from sim_engine.reels.sweet_bonanza import SweetBonanzaEngine
from sim_engine.reels.wolf_gold import WolfGoldEngine

REEL_ENGINES = {
    GameType.SWEET_BONANZA: SweetBonanzaEngine,
    GameType.BOOK_OF_DEAD: BookOfDeadEngine,
    GameType.WOLF_GOLD: WolfGoldEngine,
    GameType.STARBURST: StarburstEngine,
    GameType.GONZOS_QUEST: GonzosQuestEngine,
    GameType.COIN_STRIKE: CoinStrikeEngine,
}

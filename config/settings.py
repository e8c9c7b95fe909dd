"""
ARKAINX Casino — Configuration

Environment-driven settings for the play-money casino core.
Every value has a default so the package imports without a .env file.

Usage:
    from config.settings import CasinoConfig
    CasinoConfig.DB_PATH
    CasinoConfig.rng_source("blackjack")    # "fair" | "ambient"
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent


# ============================================================
# RANDOMNESS SOURCES
#
#   fair    → provably-fair HMAC-SHA256 stream (serverSeed, clientSeed,
#             nonce, counter). Consumes one nonce per completed round and
#             can be re-derived by the player after the seed is revealed.
#   ambient → OS CSPRNG (secrets.SystemRandom). No nonce consumed and no
#             verification data. Only for operators that accept
#             non-verifiable shuffles.
# ============================================================

RNG_FAIR = "fair"
RNG_AMBIENT = "ambient"
RNG_SOURCES = (RNG_FAIR, RNG_AMBIENT)


class CasinoConfig:

    # --- Storage ---
    DB_PATH = os.getenv("CASINO_DB_PATH", "casino.db")
    DB_TIMEOUT_SECONDS = float(os.getenv("CASINO_DB_TIMEOUT", "10"))

    # --- Logging ---
    LOG_LEVEL = os.getenv("CASINO_LOG_LEVEL", "INFO")

    # --- Faucet ---
    FAUCET_AMOUNT = int(os.getenv("CASINO_FAUCET_AMOUNT", "1000"))
    FAUCET_COOLDOWN_HOURS = int(os.getenv("CASINO_FAUCET_COOLDOWN_HOURS", "24"))

    # --- Fairness ---
    CLIENT_SEED_MIN_LEN = 8
    CLIENT_SEED_MAX_LEN = 64

    # --- Pagination ---
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    @classmethod
    def disabled_games(cls) -> set:
        """Game types switched off at boot via CASINO_DISABLED_GAMES."""
        raw = os.getenv("CASINO_DISABLED_GAMES", "")
        return {g.strip().lower() for g in raw.split(",") if g.strip()}

    @classmethod
    def rng_source(cls, game_type: str) -> str:
        """Randomness source for one engine. Read on every call so a
        running process picks up CASINO_RNG_<GAME> overrides."""
        key = f"CASINO_RNG_{game_type.upper()}"
        source = os.getenv(key, RNG_FAIR).strip().lower()
        if source not in RNG_SOURCES:
            logging.getLogger("arkainx.config").warning(
                f"{key}={source!r} is not one of {RNG_SOURCES}, using {RNG_FAIR}")
            return RNG_FAIR
        return source


def configure_logging(level: str = None) -> None:
    """Root logging setup for CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or CasinoConfig.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

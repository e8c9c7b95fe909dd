"""
ARKAINX Casino — Float Streams

Engines never touch a random module directly. They receive a *float
stream*: a zero-argument callable returning floats in [0, 1). Three
implementations exist:

    FairStream     HMAC-SHA256(serverSeed, "clientSeed:nonce:counter"),
                   first 8 hex chars / 2^32. Bit-exact and re-derivable.
    AmbientStream  OS CSPRNG (secrets.SystemRandom). Not verifiable.
    ReplayStream   A fixed list of floats, for replays and tests.

The helpers below turn floats into game decisions the same way for
every stream, so a revealed seed reproduces the exact outcome.

Usage:
    from casino.rng import FairStream, weighted_pick, shuffle
    stream = FairStream(server_seed, client_seed, nonce=4)
    symbol = weighted_pick(stream, [("cherry", 25), ("seven", 5)])
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")

FloatStream = Callable[[], float]

HEX_PREFIX_LEN = 8
HEX_PREFIX_SPACE = 0x100000000  # 2^32


# ═══════════════════════════════════════════════════════════════
# Derivation
# ═══════════════════════════════════════════════════════════════

def derive_hash(server_seed: str, client_seed: str, nonce: int, counter: int) -> str:
    """HMAC-SHA256 keyed with the server seed over `clientSeed:nonce:counter`."""
    message = f"{client_seed}:{nonce}:{counter}"
    return hmac.new(
        server_seed.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def hash_to_float(hex_hash: str) -> float:
    """First 8 hex chars → int → divided by 2^32, so the result is in [0, 1)."""
    return int(hex_hash[:HEX_PREFIX_LEN], 16) / HEX_PREFIX_SPACE


def derive_float(server_seed: str, client_seed: str, nonce: int, counter: int) -> float:
    return hash_to_float(derive_hash(server_seed, client_seed, nonce, counter))


def commitment(server_seed: str) -> str:
    """Public commitment published before play: SHA-256(serverSeed)."""
    return hashlib.sha256(server_seed.encode()).hexdigest()


def new_server_seed() -> str:
    return secrets.token_bytes(32).hex()


def new_client_seed() -> str:
    return secrets.token_bytes(16).hex()


# ═══════════════════════════════════════════════════════════════
# Streams
# ═══════════════════════════════════════════════════════════════

class FairStream:
    """Provably-fair stream for one round (one nonce)."""

    verifiable = True

    def __init__(self, server_seed: str, client_seed: str, nonce: int, counter: int = 0):
        self._server_seed = server_seed
        self.client_seed = client_seed
        self.nonce = nonce
        self.counter = counter

    def __call__(self) -> float:
        value = derive_float(self._server_seed, self.client_seed, self.nonce, self.counter)
        self.counter += 1
        return value

    @property
    def floats_drawn(self) -> int:
        return self.counter


class AmbientStream:
    """OS randomness. Used only for engines configured as `ambient`."""

    verifiable = False

    def __init__(self):
        self._rng = secrets.SystemRandom()
        self.counter = 0

    def __call__(self) -> float:
        self.counter += 1
        return self._rng.random()

    @property
    def floats_drawn(self) -> int:
        return self.counter


class ReplayStream:
    """Plays back a fixed sequence; raises once exhausted."""

    verifiable = False

    def __init__(self, values: Sequence[float]):
        self._values = list(values)
        self.counter = 0

    def __call__(self) -> float:
        if self.counter >= len(self._values):
            raise IndexError(f"ReplayStream exhausted after {self.counter} floats")
        value = self._values[self.counter]
        self.counter += 1
        return value

    @property
    def floats_drawn(self) -> int:
        return self.counter


# ═══════════════════════════════════════════════════════════════
# Float → decision helpers
# ═══════════════════════════════════════════════════════════════

def float_to_range(f: float, lo: int, hi: int) -> int:
    """Map a float onto the inclusive integer range [lo, hi]."""
    return int(f * (hi - lo + 1)) + lo


def randint(stream: FloatStream, lo: int, hi: int) -> int:
    return float_to_range(stream(), lo, hi)


def weighted_pick(stream: FloatStream, table: Sequence[tuple]) -> T:
    """Threshold walk over (item, weight) pairs. Weights may be fractional."""
    total = sum(w for _, w in table)
    threshold = stream() * total
    cumulative = 0.0
    for item, weight in table:
        cumulative += weight
        if threshold < cumulative:
            return item
    return table[-1][0]


def weighted_index(stream: FloatStream, weights: Sequence[float]) -> int:
    return weighted_pick(stream, [(i, w) for i, w in enumerate(weights)])


def shuffle(stream: FloatStream, items: Sequence[T]) -> list[T]:
    """Fisher-Yates, drawing one float per swap from the end of the list."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = float_to_range(stream(), 0, i)
        out[i], out[j] = out[j], out[i]
    return out


def unique_ints(stream: FloatStream, lo: int, hi: int, count: int) -> list[int]:
    """`count` distinct ints from [lo, hi], one float per pick (no rejection)."""
    pool = list(range(lo, hi + 1))
    if count > len(pool):
        raise ValueError(f"Cannot pick {count} distinct values from {len(pool)}")
    picks = []
    for _ in range(count):
        picks.append(pool.pop(float_to_range(stream(), 0, len(pool) - 1)))
    return picks

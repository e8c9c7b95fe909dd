"""Playing cards shared by blackjack and video poker.

Cards persist as compact codes: rank followed by a suit letter,
e.g. "10h", "As", "Qd". Decks are shuffled from the round's float stream.
"""
from dataclasses import dataclass
from typing import NamedTuple

from casino.rng import shuffle

RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
SUITS = ("h", "d", "c", "s")
SUIT_NAMES = {"h": "hearts", "d": "diamonds", "c": "clubs", "s": "spades"}
FACE_RANKS = ("J", "Q", "K")


class Card(NamedTuple):
    rank: str
    suit: str

    @property
    def code(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def order(self) -> int:
        """2 … 14 (ace high)."""
        return RANKS.index(self.rank) + 2

    @property
    def points(self) -> int:
        """Blackjack points; an ace counts 11 here and is demoted by hand_value()."""
        if self.rank == "A":
            return 11
        if self.rank in FACE_RANKS:
            return 10
        return int(self.rank)

    def to_dict(self) -> dict:
        return {"rank": self.rank, "suit": SUIT_NAMES[self.suit], "code": self.code}

    @classmethod
    def parse(cls, code: str) -> "Card":
        rank, suit = code[:-1], code[-1]
        if rank not in RANKS or suit not in SUITS:
            raise ValueError(f"Bad card code: {code!r}")
        return cls(rank, suit)


def new_deck() -> list[str]:
    return [f"{rank}{suit}" for suit in SUITS for rank in RANKS]


def shuffled_deck(rng, decks: int = 1) -> list[str]:
    return shuffle(rng, new_deck() * decks)


def cards_of(codes) -> list[Card]:
    return [Card.parse(c) for c in codes]


# ─── Blackjack hand value ───────────────────────────────────────

@dataclass(frozen=True)
class HandValue:
    value: int
    is_soft: bool
    is_busted: bool
    is_blackjack: bool

    def to_dict(self) -> dict:
        return {"value": self.value, "is_soft": self.is_soft,
                "is_busted": self.is_busted, "is_blackjack": self.is_blackjack}


def hand_value(codes) -> HandValue:
    """Aces count 11, then drop to 1 one at a time while the total is over 21."""
    cards = cards_of(codes)
    total = sum(c.points for c in cards)
    soft_aces = sum(1 for c in cards if c.rank == "A")
    while total > 21 and soft_aces:
        total -= 10
        soft_aces -= 1
    return HandValue(
        value=total,
        is_soft=soft_aces > 0,
        is_busted=total > 21,
        is_blackjack=len(cards) == 2 and total == 21,
    )

"""Video Poker — Jacks or Better, 9/6 full pay, deal → hold → draw."""
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from casino.errors import InvalidAction, Result
from config.casino_schema import DrawMove, GameType
from sim_engine.base import EngineState, Outcome, StatefulEngine, payout_for
from sim_engine.rmg.cards import Card, cards_of, shuffled_deck

HAND_SIZE = 5
HIGH_PAIR_RANKS = ("J", "Q", "K", "A")

# rank → (display name, × bet returned)
PAY_TABLE = {
    "royal_flush": ("Royal Flush", 800),
    "straight_flush": ("Straight Flush", 50),
    "four_of_a_kind": ("Four of a Kind", 25),
    "full_house": ("Full House", 9),
    "flush": ("Flush", 6),
    "straight": ("Straight", 4),
    "three_of_a_kind": ("Three of a Kind", 3),
    "two_pair": ("Two Pair", 2),
    "jacks_or_better": ("Jacks or Better", 1),
    "nothing": ("Nothing", 0),
}


def _is_straight(cards: list[Card]) -> bool:
    values = sorted(c.order for c in cards)
    if len(set(values)) != HAND_SIZE:
        return False
    if values == [2, 3, 4, 5, 14]:
        return True
    return values[-1] - values[0] == 4


def evaluate_hand(codes) -> str:
    cards = cards_of(codes)
    if len(cards) != HAND_SIZE:
        raise ValueError("Hand must have exactly 5 cards")
    flush = len({c.suit for c in cards}) == 1
    straight = _is_straight(cards)
    counts = Counter(c.rank for c in cards)
    shape = sorted(counts.values(), reverse=True)

    if flush and straight:
        values = sorted(c.order for c in cards)
        return "royal_flush" if values[0] == 10 and values[-1] == 14 else "straight_flush"
    if shape[0] == 4:
        return "four_of_a_kind"
    if shape[:2] == [3, 2]:
        return "full_house"
    if flush:
        return "flush"
    if straight:
        return "straight"
    if shape[0] == 3:
        return "three_of_a_kind"
    if shape[:2] == [2, 2]:
        return "two_pair"
    if shape[0] == 2 and any(n == 2 and r in HIGH_PAIR_RANKS for r, n in counts.items()):
        return "jacks_or_better"
    return "nothing"


def optimal_holds(codes) -> list[int]:
    """Hold hint: any pairs or better, else four to a flush, else high cards."""
    cards = cards_of(codes)
    counts = Counter(c.rank for c in cards)
    holds = [i for i, c in enumerate(cards) if counts[c.rank] >= 2]

    by_suit: dict[str, list[int]] = {}
    for i, c in enumerate(cards):
        by_suit.setdefault(c.suit, []).append(i)
    for positions in by_suit.values():
        if len(positions) >= 4:
            return positions

    if not holds:
        holds = [i for i, c in enumerate(cards) if c.rank in HIGH_PAIR_RANKS]
    return sorted(holds)


@dataclass
class VideoPokerState(EngineState):
    kind = "video_poker"

    bet: int
    hand: list = field(default_factory=list)
    deck: list = field(default_factory=list)  # undealt cards, drawn from the front
    phase: str = "deal"


class VideoPokerEngine(StatefulEngine):
    game_type = GameType.VIDEO_POKER

    def start(self, bet, params, rng) -> Result:
        deck = shuffled_deck(rng)
        state = VideoPokerState(bet=bet, hand=deck[:HAND_SIZE], deck=deck[HAND_SIZE:])
        return Result.success(Outcome(
            finished=False,
            state=state.to_blob(),
            data={
                "hand": [Card.parse(c).to_dict() for c in state.hand],
                "hand_rank": evaluate_hand(state.hand),
                "suggested_holds": optimal_holds(state.hand),
                "phase": state.phase,
            },
        ))

    def act(self, state: dict, move: DrawMove, balance: int) -> Result:
        s = VideoPokerState.from_blob(state)
        if s.phase != "deal":
            return Result.failure(InvalidAction("Can only draw in deal phase"))
        holds = set(move.holds)
        if any(p < 0 or p >= HAND_SIZE for p in holds):
            return Result.failure(InvalidAction("Hold positions must be 0-4"))

        hand = list(s.hand)
        drawn = 0
        for i in range(HAND_SIZE):
            if i not in holds:
                hand[i] = s.deck[drawn]
                drawn += 1
        rank = evaluate_hand(hand)
        name, mult = PAY_TABLE[rank]

        s.hand = hand
        s.deck = s.deck[drawn:]
        s.phase = "complete"
        return Result.success(Outcome(
            payout=payout_for(s.bet, mult),
            multiplier=Decimal(mult),
            finished=True,
            state=s.to_blob(),
            data={
                "hand": [Card.parse(c).to_dict() for c in hand],
                "held": sorted(holds),
                "hand_rank": rank,
                "hand_name": name,
                "phase": s.phase,
            },
        ))

    def simulate_round(self, params, rng, bet) -> int:
        """Deal, follow the hold hint, draw."""
        opening = self.start(bet, params, rng).unwrap()
        holds = optimal_holds(opening.state["hand"])
        return self.act(opening.state, DrawMove(holds=holds), 0).unwrap().payout

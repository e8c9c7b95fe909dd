"""
ARKAINX Casino — Multi-Spot Blackjack

Up to five betting spots against one dealer hand, 6-deck shoe,
dealer draws to 17, blackjack pays 3:2, no hole-card peek.

Phases:
    playing ──(every hand standing / busted / blackjack)──▶ dealer_turn ──▶ settled

Hands are played spot by spot in table order; inside a spot, hands are
played in list order and a split inserts the second hand right after
the first. Every move acts on the active hand of the active spot.

    hit        draw one; bust or 21 ends the hand
    stand      end the hand
    double     two cards only, stake doubles, exactly one card, hand ends
    split      two cards of equal rank, never on a split hand; each half
               gets one more card (a half that reaches 21 stands)
    insurance  dealer shows an ace, once per spot, stake = floor(spot bet / 2),
               pays 3× the stake if the dealer holds blackjack

Dealer blackjack is not checked at the deal. The round settles at the
deal only when every spot holds a natural.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from casino.errors import InsufficientBalance, InvalidAction, InvalidBetAmount, Result
from config.casino_schema import BlackjackMove, BlackjackParams, GameType
from sim_engine.base import EngineState, Outcome, StatefulEngine, floor_places
from sim_engine.rmg.cards import Card, hand_value, shuffled_deck

SPOT_IDS = ("left_up", "left_low", "center", "right_up", "right_low")
DECKS = 6
DEALER_STANDS_ON = 17

PLAYING = "playing"
DEALER_TURN = "dealer_turn"
SETTLED = "settled"


# ═══════════════════════════════════════════════════════════════
# State
# ═══════════════════════════════════════════════════════════════

@dataclass
class Hand:
    cards: list
    bet: int
    is_doubled: bool = False
    is_split: bool = False
    is_standing: bool = False
    is_busted: bool = False
    is_blackjack: bool = False
    result: Optional[str] = None
    payout: int = 0

    @property
    def done(self) -> bool:
        return self.is_standing or self.is_busted or self.is_blackjack

    @property
    def value(self) -> int:
        return hand_value(self.cards).value

    def public(self) -> dict:
        hv = hand_value(self.cards)
        out = {
            "cards": [Card.parse(c).to_dict() for c in self.cards],
            "value": hv.value,
            "is_soft": hv.is_soft,
            "bet": self.bet,
            "is_doubled": self.is_doubled,
            "is_split": self.is_split,
            "is_standing": self.is_standing,
            "is_busted": self.is_busted,
            "is_blackjack": self.is_blackjack,
        }
        if self.result:
            out["result"] = self.result
            out["payout"] = self.payout
        return out


@dataclass
class Spot:
    spot_id: str
    bet: int
    hands: list = field(default_factory=list)
    insurance: int = 0
    insurance_taken: bool = False
    insurance_payout: int = 0

    @property
    def done(self) -> bool:
        return all(h.done for h in self.hands)

    @property
    def staked(self) -> int:
        return sum(h.bet for h in self.hands) + self.insurance

    def public(self) -> dict:
        return {
            "spot_id": self.spot_id,
            "bet": self.bet,
            "hands": [h.public() for h in self.hands],
            "insurance": self.insurance,
            "insurance_taken": self.insurance_taken,
            "insurance_payout": self.insurance_payout,
        }


@dataclass
class BlackjackState(EngineState):
    kind = "blackjack"

    spots: list = field(default_factory=list)
    dealer: list = field(default_factory=list)
    shoe: list = field(default_factory=list)
    cursor: int = 0
    phase: str = PLAYING
    active_spot: int = 0
    active_hand: int = 0
    dealer_blackjack: bool = False
    total_payout: int = 0

    @classmethod
    def from_blob(cls, blob: dict) -> "BlackjackState":
        state = super().from_blob(blob)
        state.spots = [
            Spot(**{**s, "hands": [Hand(**h) for h in s["hands"]]}) if isinstance(s, dict) else s
            for s in state.spots
        ]
        return state

    def draw(self) -> str:
        card = self.shoe[self.cursor]
        self.cursor += 1
        return card

    @property
    def spot(self) -> Spot:
        return self.spots[self.active_spot]

    @property
    def hand(self) -> Hand:
        return self.spot.hands[self.active_hand]

    @property
    def total_staked(self) -> int:
        return sum(s.staked for s in self.spots)

    def public(self) -> dict:
        hidden = self.phase == PLAYING
        dealer_cards = self.dealer[:1] if hidden else self.dealer
        out = {
            "phase": self.phase,
            "spots": [s.public() for s in self.spots],
            "dealer": {
                "cards": [Card.parse(c).to_dict() for c in dealer_cards],
                "value": hand_value(dealer_cards).value,
                "hidden": hidden,
            },
        }
        if hidden:
            out["active_spot"] = self.spot.spot_id
            out["active_hand"] = self.active_hand
            out["actions"] = available_actions(self)
        else:
            out["dealer"]["is_blackjack"] = self.dealer_blackjack
            out["dealer"]["is_busted"] = hand_value(self.dealer).is_busted
            out["total_payout"] = self.total_payout
        return out


def available_actions(state: BlackjackState) -> list[str]:
    if state.phase != PLAYING:
        return []
    hand, spot = state.hand, state.spot
    actions = ["hit", "stand"]
    if len(hand.cards) == 2 and not hand.is_doubled:
        actions.append("double")
    if _can_split(hand):
        actions.append("split")
    if Card.parse(state.dealer[0]).rank == "A" and not spot.insurance_taken:
        actions.append("insurance")
    return actions


def _can_split(hand: Hand) -> bool:
    if len(hand.cards) != 2 or hand.is_split:
        return False
    return Card.parse(hand.cards[0]).rank == Card.parse(hand.cards[1]).rank


# ═══════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════

def _close_if_21(hand: Hand) -> None:
    hv = hand_value(hand.cards)
    if hv.is_busted:
        hand.is_busted = True
    elif hv.value == 21:
        hand.is_standing = True


def _advance(state: BlackjackState) -> None:
    """Move to the next open hand; enter the dealer turn when none is left."""
    for s in range(state.active_spot, len(state.spots)):
        start = state.active_hand if s == state.active_spot else 0
        for h in range(start, len(state.spots[s].hands)):
            if not state.spots[s].hands[h].done:
                state.active_spot, state.active_hand = s, h
                return
    state.phase = DEALER_TURN


def _play_dealer(state: BlackjackState) -> None:
    """Draw to 17 when any player hand is still alive."""
    alive = any(not h.is_busted for s in state.spots for h in s.hands)
    if alive:
        while hand_value(state.dealer).value < DEALER_STANDS_ON:
            state.dealer.append(state.draw())


def settle_hand(hand: Hand, dealer_value: int, dealer_blackjack: bool, dealer_busted: bool):
    """(result, payout) for one hand against the final dealer hand."""
    if hand.is_busted:
        return "lose", 0
    if hand.is_blackjack and not dealer_blackjack:
        return "blackjack", hand.bet * 5 // 2
    if hand.is_blackjack:
        return "push", hand.bet
    if dealer_blackjack:
        return "lose", 0
    pv = hand.value
    if dealer_busted or pv > dealer_value:
        return "win", hand.bet * 2
    if pv < dealer_value:
        return "lose", 0
    return "push", hand.bet


def _settle(state: BlackjackState) -> None:
    _play_dealer(state)
    dealer = hand_value(state.dealer)
    state.dealer_blackjack = len(state.dealer) == 2 and dealer.value == 21
    total = 0
    for spot in state.spots:
        for hand in spot.hands:
            hand.result, hand.payout = settle_hand(
                hand, dealer.value, state.dealer_blackjack, dealer.is_busted)
            total += hand.payout
        if spot.insurance_taken and state.dealer_blackjack:
            spot.insurance_payout = spot.insurance * 3
            total += spot.insurance_payout
    state.total_payout = total
    state.phase = SETTLED


# ═══════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════

class BlackjackEngine(StatefulEngine):
    game_type = GameType.BLACKJACK

    def default_params(self):
        return BlackjackParams(spots={"center": self.sim_bet})

    def validate(self, bet, params):
        unknown = [s for s in params.spots if s not in SPOT_IDS]
        if unknown:
            return InvalidAction(f"Unknown spot(s): {', '.join(unknown)}")
        short = [s for s, b in params.spots.items() if b < self.info.min_bet]
        if short:
            return InvalidBetAmount(
                f"Each spot needs at least {self.info.min_bet}: {', '.join(short)} below the minimum")
        if params.total != bet:
            return InvalidBetAmount(f"Spot bets total {params.total}, stake is {bet}")
        return None

    def start(self, bet, params: BlackjackParams, rng) -> Result:
        err = self.validate(bet, params)
        if err:
            return Result.failure(err)
        return self.deal(params.spots, shuffled_deck(rng, DECKS))

    def deal(self, spot_bets: dict, shoe: list) -> Result:
        """Deal from a shoe in the given order: one card per spot, dealer,
        a second card per spot, dealer."""
        order = [s for s in SPOT_IDS if s in spot_bets]
        state = BlackjackState(
            spots=[Spot(spot_id=s, bet=spot_bets[s], hands=[Hand(cards=[], bet=spot_bets[s])])
                   for s in order],
            shoe=list(shoe),
        )
        for _ in range(2):
            for spot in state.spots:
                spot.hands[0].cards.append(state.draw())
            state.dealer.append(state.draw())
        for spot in state.spots:
            spot.hands[0].is_blackjack = hand_value(spot.hands[0].cards).is_blackjack

        _advance(state)
        if state.phase == DEALER_TURN:
            _settle(state)
        return self._outcome(state)

    def act(self, state: dict, move: BlackjackMove, balance: int) -> Result:
        s = BlackjackState.from_blob(state)
        if s.phase != PLAYING:
            return Result.failure(InvalidAction("Round is not in play"))
        handler = {
            "hit": self._hit,
            "stand": self._stand,
            "double": self._double,
            "split": self._split,
            "insurance": self._insurance,
        }[move.action]
        extra_or_error = handler(s, balance)
        if isinstance(extra_or_error, Exception):
            return Result.failure(extra_or_error)
        if s.phase == DEALER_TURN:
            _settle(s)
        return self._outcome(s, extra_bet=extra_or_error)

    # ─── Moves (return the extra stake, or an error) ──────────

    def _hit(self, s: BlackjackState, balance: int):
        hand = s.hand
        hand.cards.append(s.draw())
        _close_if_21(hand)
        if hand.done:
            _advance(s)
        return 0

    def _stand(self, s: BlackjackState, balance: int):
        s.hand.is_standing = True
        _advance(s)
        return 0

    def _double(self, s: BlackjackState, balance: int):
        hand = s.hand
        if len(hand.cards) != 2 or hand.is_doubled:
            return InvalidAction("Can only double on the first two cards")
        if balance < hand.bet:
            return InsufficientBalance("Insufficient balance to double",
                                       balance=balance, required=hand.bet)
        extra = hand.bet
        hand.bet *= 2
        hand.is_doubled = True
        hand.cards.append(s.draw())
        if hand_value(hand.cards).is_busted:
            hand.is_busted = True
        else:
            hand.is_standing = True
        _advance(s)
        return extra

    def _split(self, s: BlackjackState, balance: int):
        hand = s.hand
        if not _can_split(hand):
            return InvalidAction("Cannot split this hand")
        if balance < hand.bet:
            return InsufficientBalance("Insufficient balance to split",
                                       balance=balance, required=hand.bet)
        first = Hand(cards=[hand.cards[0], s.draw()], bet=hand.bet, is_split=True)
        second = Hand(cards=[hand.cards[1], s.draw()], bet=hand.bet, is_split=True)
        _close_if_21(first)
        _close_if_21(second)
        s.spot.hands[s.active_hand:s.active_hand + 1] = [first, second]
        if first.done:
            _advance(s)
        return hand.bet

    def _insurance(self, s: BlackjackState, balance: int):
        spot = s.spot
        if Card.parse(s.dealer[0]).rank != "A":
            return InvalidAction("Insurance is only offered when the dealer shows an ace")
        if spot.insurance_taken:
            return InvalidAction("Insurance already taken for this spot")
        stake = spot.bet // 2
        if stake <= 0:
            return InvalidAction("Spot bet too small for insurance")
        if balance < stake:
            return InsufficientBalance("Insufficient balance for insurance",
                                       balance=balance, required=stake)
        spot.insurance = stake
        spot.insurance_taken = True
        return stake

    # ─── Outcome ──────────────────────────────────────────────

    def _outcome(self, s: BlackjackState, extra_bet: int = 0) -> Result:
        settled = s.phase == SETTLED
        mult = Decimal(0)
        if settled and s.total_staked:
            mult = floor_places(Decimal(s.total_payout) / Decimal(s.total_staked))
        return Result.success(Outcome(
            payout=s.total_payout if settled else 0,
            multiplier=mult,
            finished=settled,
            state=s.to_blob(),
            extra_bet=extra_bet,
            data=s.public(),
        ))

    def simulate_round(self, params, rng, bet) -> int:
        """Hit below 17, otherwise stand. No doubles, splits or insurance."""
        outcome = self.start(bet, params, rng).unwrap()
        while not outcome.finished:
            s = BlackjackState.from_blob(outcome.state)
            action = "hit" if s.hand.value < DEALER_STANDS_ON else "stand"
            outcome = self.act(outcome.state, BlackjackMove(action=action), 0).unwrap()
        return outcome.payout

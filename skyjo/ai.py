"""AI players for Skyjo, at three difficulty tiers."""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from skyjo.config import config
from skyjo.constants import (
    CORNER_SLOTS,
    DISCARD_SWAP_MARGIN,
    EXCELLENT_CARD_MAX,
    EXCELLENT_REPLACE_MIN,
    GOOD_CARD_MAX,
    GOOD_CARD_THRESHOLD,
    GOOD_REPLACE_MARGIN,
    HARDCORE_LAST_REVEAL_LIMIT,
    INITIAL_REVEALS,
    NORMAL_IMPROVEMENT_MARGIN,
    NORMAL_KEEP_THRESHOLD,
    NORMAL_TAKE_THRESHOLD,
    REVEAL_SCORE_EXPLORE,
    REVEAL_SCORE_LOW_SINGLE,
    REVEAL_SCORE_PAIR,
    REVEAL_SCORE_SINGLE,
    TERRIBLE_CARD_MIN,
)
from skyjo.game import (
    Action,
    ActionType,
    Card,
    GamePhase,
    GameState,
    TurnPhase,
    ValidActions,
    column_slots,
    column_of,
    get_default_rng,
    get_valid_actions,
    hidden_slots,
    occupied_slots,
    revealed_slots,
)


# Debug logging configuration
# Set SKYJO_AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = config.AI_DEBUG

# Create a dedicated logger for AI decisions
ai_logger = logging.getLogger("skyjo.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    # Add console handler if not already present
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when SKYJO_AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# Seat names used when a table is filled with bots
AI_NAMES = ("Bot Alpha", "Bot Beta", "Bot Gamma")


class Difficulty(str, Enum):
    """AI strength tier."""

    NORMAL = "normal"
    HARD = "hard"
    HARDCORE = "hardcore"

    @classmethod
    def default(cls) -> "Difficulty":
        return cls(config.DEFAULT_DIFFICULTY)


class DrawSource(str, Enum):
    DRAW_PILE = "draw_pile"
    DISCARD_PILE = "discard_pile"


class CardAction(str, Enum):
    REPLACE = "replace"
    DISCARD_AND_REVEAL = "discard_and_reveal"


@dataclass(frozen=True)
class CardDecision:
    """What to do with the drawn card, and where."""

    action: CardAction
    index: int


# =============================================================================
# Redacted View
# =============================================================================

@dataclass(frozen=True)
class RedactedSlot:
    """
    A hand slot as seen from a seat at the table.

    Hidden slots carry no value, so nothing built on a view can peek at a
    face-down card. Empty slots are None in the surrounding tuple.
    """

    is_revealed: bool
    value: Optional[int] = None

    @classmethod
    def of(cls, card: Optional[Card]) -> Optional["RedactedSlot"]:
        if card is None:
            return None
        if card.is_revealed:
            return cls(True, card.value)
        return HIDDEN


HIDDEN = RedactedSlot(False)

View = tuple[Optional[RedactedSlot], ...]


def redact(hand) -> View:
    return tuple(RedactedSlot.of(card) for card in hand)


@dataclass(frozen=True)
class TableView:
    """
    Everything one seat may know about the table.

    This is the only input the decision heuristics read. Hands are
    redacted (the seat's own hidden cards included), and the drawn card is
    only visible to the player holding it.
    """

    player_index: int
    hand: View
    opponents: dict[int, View]
    discard_top: Optional[int]
    discard_size: int
    draw_pile_size: int
    drawn_value: Optional[int]
    phase: GamePhase
    turn_phase: TurnPhase
    valid: ValidActions = field(default_factory=ValidActions)

    @classmethod
    def for_player(cls, state: GameState, player_index: Optional[int] = None) -> "TableView":
        if player_index is None:
            player_index = state.current_player_index
        if not 0 <= player_index < len(state.players):
            raise ValueError(f"player {player_index} out of range")

        is_current = player_index == state.current_player_index
        top = state.discard_top()
        return cls(
            player_index=player_index,
            hand=redact(state.players[player_index].hand),
            opponents={
                i: redact(p.hand)
                for i, p in enumerate(state.players)
                if i != player_index
            },
            discard_top=top.value if top else None,
            discard_size=len(state.discard_pile),
            draw_pile_size=len(state.draw_pile),
            drawn_value=state.drawn_card.value if is_current and state.drawn_card else None,
            phase=state.phase,
            turn_phase=state.turn_phase,
            valid=get_valid_actions(state),
        )


TableLike = Union[GameState, TableView]


def _as_view(table: TableLike) -> TableView:
    if isinstance(table, TableView):
        return table
    return TableView.for_player(table)


# =============================================================================
# Hand Heuristics
# =============================================================================

def highest_revealed(hand: View) -> Optional[tuple[int, int]]:
    """(index, value) of the highest face-up card; first one wins ties."""
    best = None
    for i in revealed_slots(hand):
        if best is None or hand[i].value > best[1]:
            best = (i, hand[i].value)
    return best


def visible_sum(hand: View) -> int:
    return sum(hand[i].value for i in revealed_slots(hand))


def check_column_potential(hand: View, index: int, value: int) -> bool:
    """
    Would placing value at index complete or build toward a column clear?

    True when the other two slots of the column hold two revealed cards
    equal to value, or one equal card plus at least one hidden card.
    """
    matches = 0
    hidden = 0
    for i in column_slots(column_of(index)):
        if i == index or hand[i] is None:
            continue
        if not hand[i].is_revealed:
            hidden += 1
        elif hand[i].value == value:
            matches += 1
    return matches == 2 or (matches == 1 and hidden >= 1)


def _is_noop_target(hand: View, index: int, value: int) -> bool:
    # Swapping a revealed card for an equal one wastes the turn
    slot = hand[index]
    return slot.is_revealed and slot.value == value


def enables_column_completion(hand: View, value: int) -> bool:
    """Whether some occupied slot has column potential for value."""
    return any(
        not _is_noop_target(hand, i, value) and check_column_potential(hand, i, value)
        for i in occupied_slots(hand)
    )


def find_best_replacement_position(
    hand: View,
    value: int,
    difficulty: Difficulty,
    rng: Optional[random.Random] = None,
) -> Optional[int]:
    """
    Pick the slot a card of this value should replace, or None to keep the hand.

    Column potential is checked first (revealed slots before hidden ones),
    then value bands:
        excellent (v <= 0): the highest revealed card when it is >= 5 or
            worse than v, on every tier
        good (v <= 4): the highest revealed card if it beats v by 4+,
            otherwise a hidden slot (corners first on HARD/HARDCORE)
        mediocre/bad: only a revealed card of 10 or more
    """
    rng = rng or get_default_rng()
    hidden = hidden_slots(hand)

    for i in revealed_slots(hand) + hidden:
        if _is_noop_target(hand, i, value):
            continue
        if check_column_potential(hand, i, value):
            ai_log(f"  {value} has column potential at slot {i}")
            return i

    highest = highest_revealed(hand)

    if value <= EXCELLENT_CARD_MAX and highest is not None:
        index, top = highest
        if top >= EXCELLENT_REPLACE_MIN or value < top:
            return index

    if value <= GOOD_CARD_MAX:
        if highest is not None and highest[1] >= value + GOOD_REPLACE_MARGIN:
            return highest[0]
        if hidden:
            if difficulty in (Difficulty.HARD, Difficulty.HARDCORE):
                corners = [i for i in CORNER_SLOTS if i in hidden]
                if corners:
                    return rng.choice(corners)
            return rng.choice(hidden)

    if highest is not None and value < highest[1] and highest[1] >= TERRIBLE_CARD_MIN:
        return highest[0]

    return None


def hidden_reveal_score(hand: View, index: int, difficulty: Difficulty) -> int:
    """
    How attractive revealing a hidden slot is for building a column.

    HARDCORE scores the very last hidden card 0 once the visible sum is past
    the limit, since revealing it ends the round on a bad hand.
    """
    others = [
        hand[i].value
        for i in column_slots(column_of(index))
        if i != index and hand[i] is not None and hand[i].is_revealed
    ]

    if len(others) == 2 and others[0] == others[1]:
        score = REVEAL_SCORE_PAIR
    elif len(others) == 1:
        if difficulty == Difficulty.HARDCORE and others[0] <= GOOD_CARD_MAX:
            score = REVEAL_SCORE_LOW_SINGLE
        else:
            score = REVEAL_SCORE_SINGLE
    else:
        score = REVEAL_SCORE_EXPLORE

    if (
        difficulty == Difficulty.HARDCORE
        and len(hidden_slots(hand)) == 1
        and visible_sum(hand) > HARDCORE_LAST_REVEAL_LIMIT
    ):
        score = 0

    return score


def best_hidden_to_reveal(
    hand: View, difficulty: Difficulty, rng: Optional[random.Random] = None
) -> Optional[int]:
    """Hidden slot with the highest reveal score; ties broken by the generator."""
    rng = rng or get_default_rng()
    hidden = hidden_slots(hand)
    if not hidden:
        return None

    scores = {i: hidden_reveal_score(hand, i, difficulty) for i in hidden}
    best = max(scores.values())
    candidates = [i for i in hidden if scores[i] == best]
    ai_log(f"  reveal scores {scores}, candidates {candidates}")
    if len(candidates) == 1:
        return candidates[0]
    return rng.choice(candidates)


def _last_resort_slot(hand: View) -> int:
    highest = highest_revealed(hand)
    if highest is not None:
        return highest[0]
    return occupied_slots(hand)[0]


# =============================================================================
# Decisions
# =============================================================================

class SkyjoAI:
    """Decision functions for CPU seats."""

    @staticmethod
    def choose_initial_cards_to_reveal(
        hand: View,
        difficulty: Difficulty = Difficulty.NORMAL,
        rng: Optional[random.Random] = None,
    ) -> list[int]:
        """NORMAL picks two hidden slots at random; stronger tiers prefer corners."""
        rng = rng or get_default_rng()
        hidden = hidden_slots(hand)
        if len(hidden) < INITIAL_REVEALS:
            return hidden

        if difficulty == Difficulty.NORMAL:
            return rng.sample(hidden, INITIAL_REVEALS)

        corners = [i for i in CORNER_SLOTS if i in hidden]
        rng.shuffle(corners)
        picks = corners[:INITIAL_REVEALS]
        if len(picks) < INITIAL_REVEALS:
            rest = [i for i in hidden if i not in picks]
            picks += rng.sample(rest, INITIAL_REVEALS - len(picks))
        return picks

    @staticmethod
    def decide_draw_source(
        table: TableLike, difficulty: Difficulty = Difficulty.NORMAL
    ) -> DrawSource:
        """Take the discard pile top or draw blind."""
        view = _as_view(table)
        value = view.discard_top

        if value is None or not view.valid.draw_from_discard:
            return DrawSource.DRAW_PILE
        if not view.valid.draw_from_pile:
            return DrawSource.DISCARD_PILE

        hand = view.hand

        if difficulty == Difficulty.NORMAL:
            if value <= NORMAL_TAKE_THRESHOLD or enables_column_completion(hand, value):
                return DrawSource.DISCARD_PILE
            return DrawSource.DRAW_PILE

        # Hard / Hardcore
        if value <= EXCELLENT_CARD_MAX:
            ai_log(f"  taking excellent discard {value}")
            return DrawSource.DISCARD_PILE

        threshold = GOOD_CARD_THRESHOLD[difficulty.value]
        highest = highest_revealed(hand)
        if value <= threshold and highest is not None and highest[1] > value + DISCARD_SWAP_MARGIN:
            return DrawSource.DISCARD_PILE

        if enables_column_completion(hand, value):
            ai_log(f"  discard {value} builds a column")
            return DrawSource.DISCARD_PILE

        return DrawSource.DRAW_PILE

    @staticmethod
    def decide_card_action(
        table: TableLike,
        difficulty: Difficulty = Difficulty.NORMAL,
        rng: Optional[random.Random] = None,
    ) -> CardDecision:
        """
        Place or discard the drawn card.

        Raises:
            ValueError: If the seat holds no drawn card.
        """
        rng = rng or get_default_rng()
        view = _as_view(table)
        value = view.drawn_value
        if value is None:
            raise ValueError("decide_card_action called without a drawn card")
        hand = view.hand
        best = find_best_replacement_position(hand, value, difficulty, rng)

        if view.turn_phase == TurnPhase.MUST_REPLACE:
            if best is None:
                best = rng.choice(occupied_slots(hand))
            return CardDecision(CardAction.REPLACE, best)

        hidden = hidden_slots(hand)
        highest = highest_revealed(hand)

        if difficulty == Difficulty.NORMAL:
            if value <= NORMAL_KEEP_THRESHOLD and best is not None:
                return CardDecision(CardAction.REPLACE, best)
            if highest is not None and value <= highest[1] - NORMAL_IMPROVEMENT_MARGIN:
                return CardDecision(CardAction.REPLACE, highest[0])
            if hidden:
                return CardDecision(CardAction.DISCARD_AND_REVEAL, rng.choice(hidden))
            return CardDecision(CardAction.REPLACE, _last_resort_slot(hand))

        # Hard / Hardcore
        if best is not None and check_column_potential(hand, best, value):
            return CardDecision(CardAction.REPLACE, best)

        if value <= GOOD_CARD_THRESHOLD[difficulty.value] and best is not None:
            return CardDecision(CardAction.REPLACE, best)

        if highest is not None and value < highest[1]:
            return CardDecision(CardAction.REPLACE, highest[0])

        if hidden:
            return CardDecision(
                CardAction.DISCARD_AND_REVEAL, best_hidden_to_reveal(hand, difficulty, rng)
            )

        return CardDecision(CardAction.REPLACE, _last_resort_slot(hand))

    @staticmethod
    def choose_reveal_slot(
        table: TableLike,
        difficulty: Difficulty = Difficulty.NORMAL,
        rng: Optional[random.Random] = None,
    ) -> Optional[int]:
        """Hidden slot to reveal after abandoning a drawn card."""
        rng = rng or get_default_rng()
        hand = _as_view(table).hand
        if difficulty == Difficulty.NORMAL:
            hidden = hidden_slots(hand)
            return rng.choice(hidden) if hidden else None
        return best_hidden_to_reveal(hand, difficulty, rng)


def _checked(view: TableView, action: Optional[Action]) -> Optional[Action]:
    """Make sure the planned action is legal, falling back to the first legal one."""
    if action is not None and view.valid.allows(action, view.player_index):
        return action

    legal = [
        a for a in view.valid.actions()
        if a.type != ActionType.REVEAL_INITIAL or a.player_index == view.player_index
    ]
    if not legal:
        return None
    ai_logger.warning(f"Seat {view.player_index} planned illegal {action}, using {legal[0]}")
    return legal[0]


def plan_ai_turn(
    state: GameState,
    difficulty: Optional[Difficulty] = None,
    player_index: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Optional[Action]:
    """
    Plan the next single action for a CPU seat.

    Call again after applying the action; each call looks at the new state.

    Args:
        state: Current round state.
        difficulty: Tier to play at (defaults to DEFAULT_DIFFICULTY).
        player_index: Seat to plan for. Only meaningful during the initial
            reveal, where seats act independently; defaults to the current player.
        rng: Generator for random picks.

    Returns:
        The action to apply, or None if the seat has nothing to do.
    """
    difficulty = Difficulty(difficulty) if difficulty is not None else Difficulty.default()
    rng = rng or get_default_rng()
    view = TableView.for_player(state, player_index)

    if view.phase == GamePhase.INITIAL_REVEAL:
        if view.player_index not in view.valid.initial_reveal:
            return None
        picks = SkyjoAI.choose_initial_cards_to_reveal(view.hand, difficulty, rng)
        ai_log(f"Seat {view.player_index} ({difficulty.value}) reveals {picks}")
        return _checked(view, Action(ActionType.REVEAL_INITIAL, tuple(picks), view.player_index))

    if view.phase not in (GamePhase.PLAYING, GamePhase.FINAL_ROUND):
        return None
    if view.player_index != state.current_player_index:
        return None

    if view.turn_phase == TurnPhase.DRAW:
        source = SkyjoAI.decide_draw_source(view, difficulty)
        ai_log(f"Seat {view.player_index} ({difficulty.value}) draws from {source.value}, "
               f"discard top {view.discard_top}")
        if source == DrawSource.DISCARD_PILE:
            return _checked(view, Action(ActionType.DRAW_FROM_DISCARD))
        return _checked(view, Action(ActionType.DRAW_FROM_PILE))

    if view.turn_phase in (TurnPhase.REPLACE_OR_DISCARD, TurnPhase.MUST_REPLACE):
        decision = SkyjoAI.decide_card_action(view, difficulty, rng)
        ai_log(f"Seat {view.player_index} ({difficulty.value}) holding {view.drawn_value}: "
               f"{decision.action.value} slot {decision.index}")
        if decision.action == CardAction.REPLACE:
            return _checked(view, Action(ActionType.REPLACE, (decision.index,)))
        return _checked(view, Action(ActionType.DISCARD_AND_REVEAL, (decision.index,)))

    if view.turn_phase == TurnPhase.MUST_REVEAL:
        index = SkyjoAI.choose_reveal_slot(view, difficulty, rng)
        action = Action(ActionType.REVEAL_GRID_CARD, (index,)) if index is not None else None
        return _checked(view, action)

    return None

"""
Game logic for Skyjo.

This module implements the core game mechanics for Skyjo: the card deck,
dealing, the turn state machine, the column-clear rule, end-of-round
detection and the query of legal actions.

Skyjo Rules Summary:
    - Each player has 12 cards arranged in 4 columns of 3, all face down
    - Before play, every player reveals 2 cards; lowest revealed sum starts
    - On your turn: draw from the draw pile or take the discard pile top
        - Deck draw: replace any hand card with it, or discard it and
          reveal one of your hidden cards
        - Discard draw: must replace a hand card with it
    - Three equal revealed cards in a column are removed from play
    - When a player has revealed their whole hand, everyone else gets
      one final turn and the round ends

Card Layout:
    [0] [3] [6] [9]
    [1] [4] [7] [10]
    [2] [5] [8] [11]

State values are immutable: every transition takes a GameState and returns
a new one, or None when the action is rejected (the caller keeps the old
state, which is unchanged).
"""

import itertools
import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence

from skyjo.config import config
from skyjo.constants import (
    COLUMN_HEIGHT,
    DECK_COMPOSITION,
    DECK_SIZE,
    HAND_SIZE,
    INITIAL_REVEALS,
    MAX_CARD_VALUE,
    MIN_CARD_VALUE,
    NUM_COLUMNS,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Randomness
# =============================================================================

_default_rng = random.Random(config.SEED)


def get_default_rng() -> random.Random:
    """Return the shared generator used when no generator is injected."""
    return _default_rng


def reseed(seed: Optional[int] = None) -> None:
    """Reseed the shared generator (None reseeds from OS entropy)."""
    _default_rng.seed(seed)


class DeckError(RuntimeError):
    """Raised when the deck or a deal violates the fixed card multiset."""


# =============================================================================
# Cards
# =============================================================================

class CardColor(str, Enum):
    """Color band of a card, derived from its value."""

    DARK_BLUE = "dark_blue"    # -2, -1
    LIGHT_BLUE = "light_blue"  # 0
    GREEN = "green"            # 1..4
    YELLOW = "yellow"          # 5..8
    RED = "red"                # 9..12


def color_for_value(value: int) -> CardColor:
    """Map a card value to its color band."""
    if not MIN_CARD_VALUE <= value <= MAX_CARD_VALUE:
        raise ValueError(f"card value {value} outside [{MIN_CARD_VALUE}, {MAX_CARD_VALUE}]")
    if value < 0:
        return CardColor.DARK_BLUE
    if value == 0:
        return CardColor.LIGHT_BLUE
    if value <= 4:
        return CardColor.GREEN
    if value <= 8:
        return CardColor.YELLOW
    return CardColor.RED


@dataclass(frozen=True)
class Card:
    """
    A Skyjo card.

    Attributes:
        value: Point value, -2 to 12.
        color: Color band of the value.
        is_revealed: Whether the card is visible to all players.
    """

    value: int
    color: CardColor
    is_revealed: bool = False

    @classmethod
    def of(cls, value: int, is_revealed: bool = False) -> "Card":
        """Build a card, deriving its color from the value."""
        return cls(value, color_for_value(value), is_revealed)

    def revealed(self) -> "Card":
        """Return this card face up."""
        if self.is_revealed:
            return self
        return replace(self, is_revealed=True)

    def face_down(self) -> "Card":
        """Return this card face down (used when the discard pile is recycled)."""
        if not self.is_revealed:
            return self
        return replace(self, is_revealed=False)

    def __str__(self) -> str:
        return str(self.value) if self.is_revealed else "?"


# A hand is 12 slots; None marks an Empty slot (cleared column)
Hand = tuple[Optional[Card], ...]


def column_of(index: int) -> int:
    """Column containing a hand slot."""
    return index // COLUMN_HEIGHT


def column_slots(column: int) -> tuple[int, ...]:
    """Slot indices of a column."""
    start = column * COLUMN_HEIGHT
    return tuple(range(start, start + COLUMN_HEIGHT))


def occupied_slots(hand: Hand) -> list[int]:
    """Indices of non-Empty slots."""
    return [i for i, card in enumerate(hand) if card is not None]


def hidden_slots(hand: Hand) -> list[int]:
    """Indices of face-down cards."""
    return [i for i, card in enumerate(hand) if card is not None and not card.is_revealed]


def revealed_slots(hand: Hand) -> list[int]:
    """Indices of face-up cards."""
    return [i for i, card in enumerate(hand) if card is not None and card.is_revealed]


def count_revealed(hand: Hand) -> int:
    """Count face-up cards."""
    return len(revealed_slots(hand))


def is_fully_revealed(hand: Hand) -> bool:
    """True when every non-Empty slot is face up."""
    return all(card is None or card.is_revealed for card in hand)


def validate_hand(hand: Hand) -> Hand:
    """Check the hand shape; a malformed hand is a programmer error."""
    hand = tuple(hand)
    if len(hand) != HAND_SIZE:
        raise ValueError(f"hand must have {HAND_SIZE} slots, got {len(hand)}")
    for card in hand:
        if card is not None and not isinstance(card, Card):
            raise ValueError(f"hand slot holds {card!r}, expected Card or None")
    return hand


def clear_completed_columns(hand: Hand) -> tuple[Hand, tuple[Card, ...]]:
    """
    Remove every column whose three cards are revealed and equal.

    Returns:
        (new_hand, cleared_cards). Cleared slots become Empty (None).
    """
    slots = list(hand)
    cleared: list[Card] = []

    for column in range(NUM_COLUMNS):
        indices = column_slots(column)
        cards = [slots[i] for i in indices]
        if any(card is None or not card.is_revealed for card in cards):
            continue
        if len({card.value for card in cards}) != 1:
            continue
        cleared.extend(cards)
        for i in indices:
            slots[i] = None

    return tuple(slots), tuple(cleared)


# =============================================================================
# Deck Builder & Dealer
# =============================================================================

def build_deck() -> list[Card]:
    """Build the canonical 150-card Skyjo multiset, face down, unshuffled."""
    cards = [
        Card.of(value)
        for value, copies in DECK_COMPOSITION.items()
        for _ in range(copies)
    ]
    if len(cards) != DECK_SIZE:
        raise DeckError(f"deck has {len(cards)} cards, expected {DECK_SIZE}")
    return cards


def shuffle(cards: Sequence[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """
    Return a uniformly shuffled copy of the cards.

    Args:
        cards: Cards to shuffle (not modified).
        rng: Generator to draw from; defaults to the shared generator.
    """
    rng = rng or _default_rng
    shuffled = list(cards)
    # Fisher-Yates, walking down from the end
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


@dataclass(frozen=True)
class Player:
    """
    A player at the Skyjo table.

    Attributes:
        id: Unique identifier for the player.
        name: Display name.
        hand: The 12-slot grid (empty tuple until dealt).
    """

    id: str
    name: str
    hand: Hand = ()

    def all_revealed(self) -> bool:
        """Check if all of the player's remaining cards are revealed."""
        return is_fully_revealed(self.hand)

    def with_hand(self, hand: Hand) -> "Player":
        return replace(self, hand=hand)


class GamePhase(Enum):
    """
    Phases of a Skyjo round.

    Flow: INITIAL_REVEAL -> PLAYING -> FINAL_ROUND -> FINISHED
    """

    INITIAL_REVEAL = "initial_reveal"  # Every player reveals two cards
    PLAYING = "playing"                # Normal turns
    FINAL_ROUND = "final_round"        # Someone revealed everything; one more turn each
    FINISHED = "finished"              # Round over, ready for scoring


class TurnPhase(Enum):
    """Step within the acting player's turn."""

    DRAW = "draw"
    REPLACE_OR_DISCARD = "replace_or_discard"  # Drew from the draw pile
    MUST_REPLACE = "must_replace"              # Took the discard pile top
    MUST_REVEAL = "must_reveal"                # Abandoned a deck draw


@dataclass(frozen=True)
class GameState:
    """
    Complete, immutable state of one Skyjo round.

    Attributes:
        players: Seats in turn order.
        draw_pile: Face-down cards; the top is the last element.
        discard_pile: Face-up cards; the top is the last element.
        current_player_index: Seat whose turn it is.
        drawn_card: Card held between drawing and resolving.
        phase: Round phase.
        turn_phase: Step within the current turn.
        finishing_player_index: Seat that first revealed its whole hand.
        cleared_cards: Cards removed by column clears (out of play).
    """

    players: tuple[Player, ...]
    draw_pile: tuple[Card, ...] = ()
    discard_pile: tuple[Card, ...] = ()
    current_player_index: int = 0
    drawn_card: Optional[Card] = None
    phase: GamePhase = GamePhase.INITIAL_REVEAL
    turn_phase: TurnPhase = TurnPhase.DRAW
    finishing_player_index: Optional[int] = None
    cleared_cards: tuple[Card, ...] = ()

    def __post_init__(self) -> None:
        for player in self.players:
            if player.hand:
                validate_hand(player.hand)

    def current_player(self) -> Player:
        """Get the player whose turn it currently is."""
        return self.players[self.current_player_index]

    def discard_top(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def finisher(self) -> Optional[Player]:
        """The player who ended the round, once known."""
        if self.finishing_player_index is None:
            return None
        return self.players[self.finishing_player_index]

    def card_count(self) -> int:
        """Count every card in play, including cleared ones."""
        in_hands = sum(len(occupied_slots(p.hand)) for p in self.players)
        return (
            len(self.draw_pile)
            + len(self.discard_pile)
            + in_hands
            + (1 if self.drawn_card is not None else 0)
            + len(self.cleared_cards)
        )

    def with_player(self, index: int, player: Player) -> tuple[Player, ...]:
        """Players tuple with one seat replaced."""
        players = list(self.players)
        players[index] = player
        return tuple(players)


def initialize_game(
    players: Sequence[Player],
    rng: Optional[random.Random] = None,
) -> GameState:
    """
    Shuffle, deal and start a new round.

    Every player receives 12 face-down cards and one card is turned face
    up to start the discard pile.

    Args:
        players: Seats in turn order (any existing hands are discarded).
        rng: Generator for the shuffle; defaults to the shared generator.

    Returns:
        A GameState in INITIAL_REVEAL.
    """
    if not config.MIN_PLAYERS <= len(players) <= config.MAX_PLAYERS:
        raise ValueError(
            f"Skyjo needs {config.MIN_PLAYERS}-{config.MAX_PLAYERS} players, got {len(players)}"
        )
    ids = [p.id for p in players]
    if len(set(ids)) != len(ids):
        raise ValueError(f"player ids must be unique: {ids}")

    deck = shuffle(build_deck(), rng)
    needed = len(players) * HAND_SIZE + 1
    if len(deck) < needed:
        raise DeckError(f"cannot deal {needed} cards from a {len(deck)}-card deck")

    dealt: list[Player] = []
    for player in players:
        hand = tuple(deck.pop() for _ in range(HAND_SIZE))
        dealt.append(Player(id=player.id, name=player.name, hand=hand))

    first_discard = deck.pop().revealed()

    state = GameState(
        players=tuple(dealt),
        draw_pile=tuple(deck),
        discard_pile=(first_discard,),
    )
    if state.card_count() != DECK_SIZE:
        raise DeckError(f"deal accounts for {state.card_count()} cards, expected {DECK_SIZE}")

    logger.debug(
        f"Dealt {len(players)} hands, discard starts with {first_discard.value}, "
        f"{len(deck)} cards in draw pile"
    )
    return state


# =============================================================================
# Guards (shared by the transitions and the valid-action query)
# =============================================================================

def _reject(action: str, reason: str) -> None:
    logger.debug(f"Rejected {action}: {reason}")
    return None


def _turn_error(state: GameState, *turn_phases: TurnPhase) -> Optional[str]:
    if state.phase not in (GamePhase.PLAYING, GamePhase.FINAL_ROUND):
        return f"phase is {state.phase.value}"
    if state.turn_phase not in turn_phases:
        return f"turn phase is {state.turn_phase.value}"
    return None


def _slot_error(hand: Hand, index: int, must_be_hidden: bool) -> Optional[str]:
    if not isinstance(index, int) or not 0 <= index < len(hand):
        return f"slot {index!r} out of range"
    card = hand[index]
    if card is None:
        return f"slot {index} is empty"
    if must_be_hidden and card.is_revealed:
        return f"slot {index} is already revealed"
    return None


def _reveal_initial_error(
    state: GameState, player_index: int, indices: Sequence[int]
) -> Optional[str]:
    if state.phase != GamePhase.INITIAL_REVEAL:
        return f"phase is {state.phase.value}"
    if not isinstance(player_index, int) or not 0 <= player_index < len(state.players):
        return f"player {player_index!r} out of range"
    hand = state.players[player_index].hand
    if count_revealed(hand) >= INITIAL_REVEALS:
        return f"player {player_index} already revealed {INITIAL_REVEALS} cards"
    if len(indices) != INITIAL_REVEALS or len(set(indices)) != INITIAL_REVEALS:
        return f"need {INITIAL_REVEALS} distinct slots, got {list(indices)}"
    for index in indices:
        error = _slot_error(hand, index, must_be_hidden=True)
        if error:
            return error
    return None


def _draw_from_pile_error(state: GameState) -> Optional[str]:
    error = _turn_error(state, TurnPhase.DRAW)
    if error:
        return error
    if not state.draw_pile and len(state.discard_pile) <= 1:
        return "no cards left to draw"
    return None


def _draw_from_discard_error(state: GameState) -> Optional[str]:
    error = _turn_error(state, TurnPhase.DRAW)
    if error:
        return error
    if not state.discard_pile:
        return "discard pile is empty"
    return None


def _replace_error(state: GameState, index: int) -> Optional[str]:
    error = _turn_error(state, TurnPhase.REPLACE_OR_DISCARD, TurnPhase.MUST_REPLACE)
    if error:
        return error
    if state.drawn_card is None:
        return "no drawn card"
    return _slot_error(state.current_player().hand, index, must_be_hidden=False)


def _discard_and_reveal_error(state: GameState, index: int) -> Optional[str]:
    error = _turn_error(state, TurnPhase.REPLACE_OR_DISCARD)
    if error:
        return error
    if state.drawn_card is None:
        return "no drawn card"
    return _slot_error(state.current_player().hand, index, must_be_hidden=True)


def _abandon_error(state: GameState) -> Optional[str]:
    error = _turn_error(state, TurnPhase.REPLACE_OR_DISCARD)
    if error:
        return error
    if state.drawn_card is None:
        return "no drawn card"
    if not hidden_slots(state.current_player().hand):
        return "no hidden card left to reveal"
    return None


def _reveal_grid_error(state: GameState, index: int) -> Optional[str]:
    error = _turn_error(state, TurnPhase.MUST_REVEAL)
    if error:
        return error
    return _slot_error(state.current_player().hand, index, must_be_hidden=True)


def _undo_error(state: GameState) -> Optional[str]:
    error = _turn_error(state, TurnPhase.MUST_REPLACE)
    if error:
        return error
    if state.drawn_card is None:
        return "no drawn card"
    return None


def _end_turn_error(state: GameState) -> str:
    if state.phase not in (GamePhase.PLAYING, GamePhase.FINAL_ROUND):
        return f"phase is {state.phase.value}"
    if state.drawn_card is not None:
        return "a drawn card is still held"
    if state.turn_phase == TurnPhase.MUST_REVEAL:
        return "a hidden card must be revealed first"
    return "the current player has not played yet"


# =============================================================================
# Transitions
# =============================================================================

def _starting_player_index(players: Sequence[Player]) -> int:
    """Lowest sum of revealed cards starts; ties go to the lowest seat."""
    sums = [
        sum(card.value for card in p.hand if card is not None and card.is_revealed)
        for p in players
    ]
    return min(range(len(players)), key=lambda i: (sums[i], i))


def reveal_initial_cards(
    state: GameState, player_index: int, indices: Sequence[int]
) -> Optional[GameState]:
    """
    Reveal a player's two opening cards.

    Once every player has revealed two cards the round moves to PLAYING and
    the player with the lowest revealed sum takes the first turn.
    """
    error = _reveal_initial_error(state, player_index, indices)
    if error:
        return _reject("reveal_initial_cards", error)

    player = state.players[player_index]
    hand = list(player.hand)
    for index in indices:
        hand[index] = hand[index].revealed()
    players = state.with_player(player_index, player.with_hand(tuple(hand)))

    if all(count_revealed(p.hand) >= INITIAL_REVEALS for p in players):
        starter = _starting_player_index(players)
        logger.debug(f"Initial reveal complete, seat {starter} starts")
        return replace(
            state,
            players=players,
            phase=GamePhase.PLAYING,
            turn_phase=TurnPhase.DRAW,
            current_player_index=starter,
        )

    return replace(state, players=players)


def _replenish_draw_pile(
    state: GameState, rng: Optional[random.Random]
) -> tuple[tuple[Card, ...], tuple[Card, ...]]:
    """Shuffle all but the top discard back into an empty draw pile."""
    top = state.discard_pile[-1]
    recycled = [card.face_down() for card in state.discard_pile[:-1]]
    logger.debug(f"Draw pile empty, recycling {len(recycled)} discards")
    return tuple(shuffle(recycled, rng)), (top,)


def draw_from_pile(
    state: GameState, rng: Optional[random.Random] = None
) -> Optional[GameState]:
    """
    Draw the top card of the draw pile.

    If the draw pile is exhausted, the discard pile (minus its top card) is
    shuffled back in first.
    """
    error = _draw_from_pile_error(state)
    if error:
        return _reject("draw_from_pile", error)

    draw_pile, discard_pile = state.draw_pile, state.discard_pile
    if not draw_pile:
        draw_pile, discard_pile = _replenish_draw_pile(state, rng)

    return replace(
        state,
        draw_pile=draw_pile[:-1],
        discard_pile=discard_pile,
        drawn_card=draw_pile[-1].revealed(),
        turn_phase=TurnPhase.REPLACE_OR_DISCARD,
    )


def draw_from_discard(state: GameState) -> Optional[GameState]:
    """Take the discard pile top; the card must then replace a hand card."""
    error = _draw_from_discard_error(state)
    if error:
        return _reject("draw_from_discard", error)

    return replace(
        state,
        discard_pile=state.discard_pile[:-1],
        drawn_card=state.discard_pile[-1],
        turn_phase=TurnPhase.MUST_REPLACE,
    )


def _resolve_hand(state: GameState, hand: Hand, discard_pile: tuple[Card, ...]) -> GameState:
    """Install the acting player's new hand, clear columns and end the turn."""
    hand, cleared = clear_completed_columns(hand)
    if cleared:
        logger.debug(
            f"Seat {state.current_player_index} cleared a column of {cleared[0].value}s"
        )
    player = state.current_player().with_hand(hand)
    resolved = replace(
        state,
        players=state.with_player(state.current_player_index, player),
        discard_pile=discard_pile,
        drawn_card=None,
        turn_phase=TurnPhase.DRAW,
        cleared_cards=state.cleared_cards + cleared,
    )
    return _advance_turn(resolved)


def replace_card(state: GameState, index: int) -> Optional[GameState]:
    """
    Put the drawn card into a hand slot.

    The displaced card goes face up onto the discard pile, completed columns
    are cleared and the turn ends.
    """
    error = _replace_error(state, index)
    if error:
        return _reject("replace_card", error)

    hand = list(state.current_player().hand)
    displaced = hand[index]
    hand[index] = state.drawn_card.revealed()

    return _resolve_hand(state, tuple(hand), state.discard_pile + (displaced.revealed(),))


def discard_and_reveal(state: GameState, index: int) -> Optional[GameState]:
    """Discard the drawn card and reveal one of the player's hidden cards."""
    error = _discard_and_reveal_error(state, index)
    if error:
        return _reject("discard_and_reveal", error)

    hand = list(state.current_player().hand)
    hand[index] = hand[index].revealed()

    return _resolve_hand(state, tuple(hand), state.discard_pile + (state.drawn_card.revealed(),))


def abandon_drawn_card(state: GameState) -> Optional[GameState]:
    """
    Discard a deck draw without choosing the slot yet.

    Only a draw-pile draw can be abandoned; the player must then reveal a
    hidden card with reveal_grid_card().
    """
    error = _abandon_error(state)
    if error:
        return _reject("abandon_drawn_card", error)

    return replace(
        state,
        discard_pile=state.discard_pile + (state.drawn_card.revealed(),),
        drawn_card=None,
        turn_phase=TurnPhase.MUST_REVEAL,
    )


def reveal_grid_card(state: GameState, index: int) -> Optional[GameState]:
    """Reveal a hidden card after abandoning the drawn card, then end the turn."""
    error = _reveal_grid_error(state, index)
    if error:
        return _reject("reveal_grid_card", error)

    hand = list(state.current_player().hand)
    hand[index] = hand[index].revealed()

    return _resolve_hand(state, tuple(hand), state.discard_pile)


def undo_draw_from_discard(state: GameState) -> Optional[GameState]:
    """Put a card taken from the discard pile back before it is placed."""
    error = _undo_error(state)
    if error:
        return _reject("undo_draw_from_discard", error)

    return replace(
        state,
        discard_pile=state.discard_pile + (state.drawn_card,),
        drawn_card=None,
        turn_phase=TurnPhase.DRAW,
    )


def end_turn(state: GameState) -> None:
    """
    Ask to end the current turn.

    Turns end inside replace_card, discard_and_reveal and reveal_grid_card,
    so every state they return already belongs to the next seat. A seat
    never passes: this always rejects and logs the reason.
    """
    return _reject("end_turn", _end_turn_error(state))


def _advance_turn(state: GameState) -> GameState:
    """
    Move to the next seat, detecting the finisher and the end of the round.

    The first player to finish a turn with every card revealed becomes the
    finisher and starts the final round. The round is over once the seat just
    before the finisher has taken its turn.
    """
    acting = state.current_player_index
    num_players = len(state.players)
    phase = state.phase
    finishing = state.finishing_player_index

    if finishing is None and state.players[acting].all_revealed():
        finishing = acting
        phase = GamePhase.FINAL_ROUND
        logger.info(f"Seat {acting} revealed every card, final round begins")

    next_index = (acting + 1) % num_players

    if phase == GamePhase.FINAL_ROUND and acting == (finishing - 1) % num_players:
        players = tuple(
            p.with_hand(tuple(c.revealed() if c is not None else None for c in p.hand))
            for p in state.players
        )
        logger.info("Round finished")
        return replace(
            state,
            players=players,
            current_player_index=next_index,
            phase=GamePhase.FINISHED,
            turn_phase=TurnPhase.DRAW,
            finishing_player_index=finishing,
        )

    return replace(
        state,
        current_player_index=next_index,
        phase=phase,
        turn_phase=TurnPhase.DRAW,
        finishing_player_index=finishing,
    )


# =============================================================================
# Actions
# =============================================================================

class ActionType(str, Enum):
    """Player actions understood by apply_action()."""

    REVEAL_INITIAL = "reveal_initial"
    DRAW_FROM_PILE = "draw_from_pile"
    DRAW_FROM_DISCARD = "draw_from_discard"
    REPLACE = "replace"
    DISCARD_AND_REVEAL = "discard_and_reveal"
    ABANDON_DRAWN_CARD = "abandon_drawn_card"
    REVEAL_GRID_CARD = "reveal_grid_card"
    UNDO_DRAW_FROM_DISCARD = "undo_draw_from_discard"


@dataclass(frozen=True)
class Action:
    """
    One atomic player action.

    Attributes:
        type: What to do.
        indices: Target slots (two for REVEAL_INITIAL, one for slot actions).
        player_index: Acting seat for REVEAL_INITIAL; other actions always
            belong to the current player.
    """

    type: ActionType
    indices: tuple[int, ...] = ()
    player_index: Optional[int] = None

    @property
    def index(self) -> Optional[int]:
        return self.indices[0] if self.indices else None


def apply_action(
    state: GameState, action: Action, rng: Optional[random.Random] = None
) -> Optional[GameState]:
    """
    Apply one action.

    Returns:
        The new state, or None if the action was rejected.
    """
    kind = action.type
    if kind == ActionType.REVEAL_INITIAL:
        player_index = action.player_index
        if player_index is None:
            player_index = state.current_player_index
        return reveal_initial_cards(state, player_index, action.indices)
    if kind == ActionType.DRAW_FROM_PILE:
        return draw_from_pile(state, rng)
    if kind == ActionType.DRAW_FROM_DISCARD:
        return draw_from_discard(state)
    if kind == ActionType.ABANDON_DRAWN_CARD:
        return abandon_drawn_card(state)
    if kind == ActionType.UNDO_DRAW_FROM_DISCARD:
        return undo_draw_from_discard(state)

    if len(action.indices) != 1:
        return _reject(kind.value, f"need exactly one slot, got {list(action.indices)}")
    if kind == ActionType.REPLACE:
        return replace_card(state, action.index)
    if kind == ActionType.DISCARD_AND_REVEAL:
        return discard_and_reveal(state, action.index)
    if kind == ActionType.REVEAL_GRID_CARD:
        return reveal_grid_card(state, action.index)

    return _reject(str(kind), "unknown action")


# =============================================================================
# Valid-Action Query
# =============================================================================

@dataclass(frozen=True)
class ValidActions:
    """
    Legal actions for a state.

    Attributes:
        initial_reveal: Seat -> hidden slots, for seats that still owe
            their opening reveal (any two distinct listed slots are legal).
        draw_from_pile / draw_from_discard: Whether each draw is legal.
        replace_targets: Slots the drawn card may replace.
        discard_and_reveal_targets: Hidden slots revealable after discarding.
        reveal_targets: Hidden slots revealable in MUST_REVEAL.
        abandon_drawn_card / undo_draw_from_discard: Compensating paths.
    """

    initial_reveal: dict[int, tuple[int, ...]] = field(default_factory=dict)
    draw_from_pile: bool = False
    draw_from_discard: bool = False
    replace_targets: tuple[int, ...] = ()
    discard_and_reveal_targets: tuple[int, ...] = ()
    reveal_targets: tuple[int, ...] = ()
    abandon_drawn_card: bool = False
    undo_draw_from_discard: bool = False

    def allows(self, action: Action, current_player_index: int = 0) -> bool:
        """Whether the action is in this legal set."""
        kind = action.type
        if kind == ActionType.REVEAL_INITIAL:
            player_index = action.player_index
            if player_index is None:
                player_index = current_player_index
            slots = self.initial_reveal.get(player_index)
            if slots is None:
                return False
            indices = action.indices
            return (
                len(indices) == INITIAL_REVEALS
                and len(set(indices)) == INITIAL_REVEALS
                and all(i in slots for i in indices)
            )
        if kind == ActionType.DRAW_FROM_PILE:
            return self.draw_from_pile
        if kind == ActionType.DRAW_FROM_DISCARD:
            return self.draw_from_discard
        if kind == ActionType.ABANDON_DRAWN_CARD:
            return self.abandon_drawn_card
        if kind == ActionType.UNDO_DRAW_FROM_DISCARD:
            return self.undo_draw_from_discard

        if len(action.indices) != 1:
            return False
        if kind == ActionType.REPLACE:
            return action.index in self.replace_targets
        if kind == ActionType.DISCARD_AND_REVEAL:
            return action.index in self.discard_and_reveal_targets
        if kind == ActionType.REVEAL_GRID_CARD:
            return action.index in self.reveal_targets
        return False

    def actions(self) -> list[Action]:
        """Enumerate every legal action."""
        result: list[Action] = []
        for player_index, slots in self.initial_reveal.items():
            for pair in itertools.combinations(slots, INITIAL_REVEALS):
                result.append(Action(ActionType.REVEAL_INITIAL, pair, player_index))
        if self.draw_from_pile:
            result.append(Action(ActionType.DRAW_FROM_PILE))
        if self.draw_from_discard:
            result.append(Action(ActionType.DRAW_FROM_DISCARD))
        result.extend(Action(ActionType.REPLACE, (i,)) for i in self.replace_targets)
        result.extend(
            Action(ActionType.DISCARD_AND_REVEAL, (i,)) for i in self.discard_and_reveal_targets
        )
        result.extend(Action(ActionType.REVEAL_GRID_CARD, (i,)) for i in self.reveal_targets)
        if self.abandon_drawn_card:
            result.append(Action(ActionType.ABANDON_DRAWN_CARD))
        if self.undo_draw_from_discard:
            result.append(Action(ActionType.UNDO_DRAW_FROM_DISCARD))
        return result

    def is_empty(self) -> bool:
        return not self.actions()


def get_valid_actions(state: GameState) -> ValidActions:
    """
    Derive the legal actions from a state, without modifying it.

    Uses the same guards as the transitions, so an action is listed here
    exactly when its transition would accept it.
    """
    initial_reveal: dict[int, tuple[int, ...]] = {}
    if state.phase == GamePhase.INITIAL_REVEAL:
        for player_index, player in enumerate(state.players):
            if count_revealed(player.hand) < INITIAL_REVEALS:
                slots = hidden_slots(player.hand)
                if len(slots) >= INITIAL_REVEALS:
                    initial_reveal[player_index] = tuple(slots)
        return ValidActions(initial_reveal=initial_reveal)

    if state.phase == GamePhase.FINISHED:
        return ValidActions()

    slots = range(len(state.current_player().hand))
    return ValidActions(
        draw_from_pile=_draw_from_pile_error(state) is None,
        draw_from_discard=_draw_from_discard_error(state) is None,
        replace_targets=tuple(i for i in slots if _replace_error(state, i) is None),
        discard_and_reveal_targets=tuple(
            i for i in slots if _discard_and_reveal_error(state, i) is None
        ),
        reveal_targets=tuple(i for i in slots if _reveal_grid_error(state, i) is None),
        abandon_drawn_card=_abandon_error(state) is None,
        undo_draw_from_discard=_undo_error(state) is None,
    )

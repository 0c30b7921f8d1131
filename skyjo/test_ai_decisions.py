"""
Test suite for the Skyjo AI decision functions.

Covers:
- check_column_potential() / enables_column_completion()
- find_best_replacement_position(): no-op guard and value bands
- hidden_reveal_score(): column scores and the HARDCORE last-card rule
- SkyjoAI.decide_draw_source() per tier
- SkyjoAI.decide_card_action() per tier
- plan_ai_turn(): one legal action per call, in every phase
- TableView: opponents' and own hidden cards are never exposed

Run with: pytest test_ai_decisions.py -v
"""

import random
from dataclasses import replace

import pytest

from skyjo.ai import (
    CardAction,
    Difficulty,
    DrawSource,
    SkyjoAI,
    TableView,
    best_hidden_to_reveal,
    check_column_potential,
    enables_column_completion,
    find_best_replacement_position,
    hidden_reveal_score,
    plan_ai_turn,
    redact,
)
from skyjo.constants import CORNER_SLOTS
from skyjo.game import (
    ActionType,
    Card,
    GamePhase,
    GameState,
    Player,
    TurnPhase,
    apply_action,
    get_valid_actions,
    initialize_game,
)


# =============================================================================
# Helpers
# =============================================================================

H = "?"  # marks a hidden slot in hand layouts


def make_hand(layout, hidden_value=7):
    """
    Build a hand from a layout list.

    Ints are face-up cards, H is a face-down card (holding hidden_value),
    None is an Empty slot.
    """
    hand = []
    for slot in layout:
        if slot is None:
            hand.append(None)
        elif slot == H:
            hand.append(Card.of(hidden_value))
        else:
            hand.append(Card.of(slot, is_revealed=True))
    return tuple(hand)


def view_of(layout):
    return redact(make_hand(layout))


def make_state(
    layout,
    discard=(6,),
    drawn=None,
    turn_phase=TurnPhase.DRAW,
    opponent=None,
    phase=GamePhase.PLAYING,
):
    """Two-seat state with seat 0 to act."""
    opponent = opponent or make_hand([H] * 12, hidden_value=12)
    return GameState(
        players=(
            Player(id="ai", name="Bot", hand=make_hand(layout)),
            Player(id="opp", name="Opponent", hand=opponent),
        ),
        draw_pile=tuple(Card.of(v) for v in (1, 2, 3, 4, 5)),
        discard_pile=tuple(Card.of(v, is_revealed=True) for v in discard),
        drawn_card=Card.of(drawn, is_revealed=True) if drawn is not None else None,
        phase=phase,
        turn_phase=turn_phase,
    )


ALL_HIDDEN = [H] * 12


# =============================================================================
# Column Potential Tests
# =============================================================================

class TestColumnPotential:

    def test_two_matches_complete(self):
        hand = view_of([7, 7, H] + [H] * 9)
        assert check_column_potential(hand, 2, 7)

    def test_one_match_plus_hidden(self):
        hand = view_of([7, H, H] + [H] * 9)
        assert check_column_potential(hand, 1, 7)

    def test_one_match_no_hidden(self):
        hand = view_of([7, 3, 9] + [H] * 9)
        assert not check_column_potential(hand, 2, 7)

    def test_empty_slots_ignored(self):
        hand = view_of([None, None, None, 7, 7, 1] + [H] * 6)
        assert check_column_potential(hand, 5, 7)
        assert not check_column_potential(hand, 0, 7)

    def test_enables_column_completion(self):
        assert enables_column_completion(view_of([9, H, H] + [H] * 9), 9)
        assert not enables_column_completion(view_of(ALL_HIDDEN), 9)


# =============================================================================
# Replacement Heuristic Tests
# =============================================================================

class TestFindBestReplacement:

    def setup_method(self):
        self.rng = random.Random(3)

    def test_never_targets_equal_revealed_card(self):
        hand = view_of([4, 4, 9, 1, 2, 3, 5, 6, 8, 10, 11, 12])
        for difficulty in Difficulty:
            assert find_best_replacement_position(hand, 4, difficulty, self.rng) == 2

    def test_excellent_replaces_high_card(self):
        hand = view_of([8, H, H, 2] + [H] * 8)
        assert find_best_replacement_position(hand, -1, Difficulty.NORMAL, self.rng) == 0

    def test_excellent_replaces_any_worse_card(self):
        hand = view_of([3, H, H] + [H] * 9)
        for difficulty in Difficulty:
            assert find_best_replacement_position(hand, 0, difficulty, self.rng) == 0

    def test_good_replaces_much_worse_card(self):
        hand = view_of([H, 6, H] + [H] * 9)
        assert find_best_replacement_position(hand, 2, Difficulty.HARD, self.rng) == 1

    def test_good_prefers_hidden_corner_on_hard(self):
        hand = view_of([H, 6, H] + [H] * 9)
        for seed in range(20):
            index = find_best_replacement_position(hand, 3, Difficulty.HARD, random.Random(seed))
            assert index in CORNER_SLOTS

    def test_good_picks_any_hidden_on_normal(self):
        hand = view_of([1, 6, 2] + [H] * 9)
        index = find_best_replacement_position(hand, 3, Difficulty.NORMAL, self.rng)
        assert 3 <= index < 12

    def test_bad_card_only_replaces_terrible(self):
        assert find_best_replacement_position(view_of([11] + [H] * 11), 7, Difficulty.HARD, self.rng) == 0
        assert find_best_replacement_position(view_of([9] + [H] * 11), 7, Difficulty.HARD, self.rng) is None

    def test_column_potential_wins_first(self):
        hand = view_of([12, 5, 5] + [H] * 9)
        assert find_best_replacement_position(hand, 5, Difficulty.NORMAL, self.rng) == 0


# =============================================================================
# Reveal Score Tests
# =============================================================================

class TestHiddenRevealScore:

    def test_pair_column_scores_highest(self):
        hand = view_of([5, 5, H, 3, H, H] + [H] * 6)
        assert hidden_reveal_score(hand, 2, Difficulty.HARD) == 20

    def test_single_revealed(self):
        hand = view_of([9, H, H, 2, H, H] + [H] * 6)
        assert hidden_reveal_score(hand, 1, Difficulty.HARD) == 5
        assert hidden_reveal_score(hand, 1, Difficulty.HARDCORE) == 5
        assert hidden_reveal_score(hand, 4, Difficulty.HARD) == 5
        assert hidden_reveal_score(hand, 4, Difficulty.HARDCORE) == 8

    def test_unexplored_column(self):
        hand = view_of(ALL_HIDDEN)
        assert hidden_reveal_score(hand, 0, Difficulty.HARDCORE) == 1

    def test_hardcore_last_card_on_bad_hand(self):
        # Visible sum 60, one hidden card left
        hand = view_of([6] * 10 + [0, H])
        assert hidden_reveal_score(hand, 11, Difficulty.HARDCORE) == 0
        assert hidden_reveal_score(hand, 11, Difficulty.HARD) == 1

    def test_hardcore_last_card_still_chosen_at_sixty(self):
        # Visible sum 60, one hidden card, a drawn 6 has no replacement target
        hand = view_of([7, 5, 5, 7, 5, 5, 6, 5, 5, 5, 5, H])
        assert sum(slot.value for slot in hand[:11]) == 60
        assert find_best_replacement_position(hand, 6, Difficulty.HARDCORE, random.Random(0)) is None
        assert not enables_column_completion(hand, 6)

        assert hidden_reveal_score(hand, 11, Difficulty.HARDCORE) == 0
        assert best_hidden_to_reveal(hand, Difficulty.HARDCORE, random.Random(0)) == 11


# =============================================================================
# Draw Source Tests
# =============================================================================

class TestDecideDrawSource:

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_negative_discard_always_taken(self, difficulty):
        state = make_state(ALL_HIDDEN, discard=(-1,))
        assert SkyjoAI.decide_draw_source(state, difficulty) == DrawSource.DISCARD_PILE

    def test_normal_takes_low_cards(self):
        assert SkyjoAI.decide_draw_source(make_state(ALL_HIDDEN, discard=(4,))) == DrawSource.DISCARD_PILE
        assert SkyjoAI.decide_draw_source(make_state(ALL_HIDDEN, discard=(5,))) == DrawSource.DRAW_PILE

    def test_normal_takes_column_builder(self):
        state = make_state([9] + [H] * 11, discard=(9,))
        assert SkyjoAI.decide_draw_source(state, Difficulty.NORMAL) == DrawSource.DISCARD_PILE

    def test_hard_takes_low_card_with_swap_target(self):
        state = make_state([6] + [H] * 11, discard=(3,))
        assert SkyjoAI.decide_draw_source(state, Difficulty.HARD) == DrawSource.DISCARD_PILE

    def test_hard_skips_low_card_without_target(self):
        state = make_state([5] + [H] * 11, discard=(3,))
        assert SkyjoAI.decide_draw_source(state, Difficulty.HARD) == DrawSource.DRAW_PILE

    def test_threshold_differs_by_tier(self):
        state = make_state([12] + [H] * 11, discard=(4,))
        assert SkyjoAI.decide_draw_source(state, Difficulty.HARD) == DrawSource.DRAW_PILE
        assert SkyjoAI.decide_draw_source(state, Difficulty.HARDCORE) == DrawSource.DISCARD_PILE

    def test_empty_discard_draws(self):
        state = make_state(ALL_HIDDEN, discard=())
        assert SkyjoAI.decide_draw_source(state, Difficulty.HARDCORE) == DrawSource.DRAW_PILE


# =============================================================================
# Card Action Tests
# =============================================================================

class TestDecideCardAction:

    def setup_method(self):
        self.rng = random.Random(5)

    def decide(self, layout, drawn, difficulty, turn_phase=TurnPhase.REPLACE_OR_DISCARD):
        state = make_state(layout, drawn=drawn, turn_phase=turn_phase)
        return SkyjoAI.decide_card_action(state, difficulty, self.rng)

    def test_must_replace_always_replaces(self):
        decision = self.decide([1, 2, 3] + [H] * 9, 9, Difficulty.HARD, TurnPhase.MUST_REPLACE)
        assert decision.action == CardAction.REPLACE
        assert decision.index in range(12)

    def test_normal_keeps_low_card(self):
        decision = self.decide([H, 8, H] + [H] * 9, 2, Difficulty.NORMAL)
        assert decision.action == CardAction.REPLACE

    def test_normal_replaces_much_higher_card(self):
        decision = self.decide([11, H, H] + [H] * 9, 8, Difficulty.NORMAL)
        assert (decision.action, decision.index) == (CardAction.REPLACE, 0)

    def test_normal_discards_mediocre_card(self):
        decision = self.decide([11, H, H] + [H] * 9, 9, Difficulty.NORMAL)
        assert decision.action == CardAction.DISCARD_AND_REVEAL
        assert decision.index != 0

    def test_hard_replaces_higher_card(self):
        decision = self.decide([8, H, H] + [H] * 9, 7, Difficulty.HARD)
        assert (decision.action, decision.index) == (CardAction.REPLACE, 0)

    def test_hard_reveals_toward_pair(self):
        decision = self.decide([5, 5, H] + [H] * 9, 12, Difficulty.HARD)
        assert (decision.action, decision.index) == (CardAction.DISCARD_AND_REVEAL, 2)

    def test_hard_last_resort_replaces_highest(self):
        decision = self.decide(list(range(1, 13)), 12, Difficulty.HARD)
        assert (decision.action, decision.index) == (CardAction.REPLACE, 11)

    def test_hardcore_still_reveals_last_card(self):
        # Visible sum 58 with one hidden card; nothing to replace with a 6
        layout = [6, 5, 5, 6, 5, 5, 6, 5, 5, 5, 5, H]
        decision = self.decide(layout, 6, Difficulty.HARDCORE)
        assert (decision.action, decision.index) == (CardAction.DISCARD_AND_REVEAL, 11)

    def test_needs_drawn_card(self):
        with pytest.raises(ValueError):
            SkyjoAI.decide_card_action(make_state(ALL_HIDDEN), Difficulty.HARD)


# =============================================================================
# Initial Reveal Tests
# =============================================================================

class TestChooseInitialCards:

    def test_normal_two_distinct(self):
        picks = SkyjoAI.choose_initial_cards_to_reveal(view_of(ALL_HIDDEN), Difficulty.NORMAL, random.Random(1))
        assert len(set(picks)) == 2

    @pytest.mark.parametrize("difficulty", [Difficulty.HARD, Difficulty.HARDCORE])
    def test_strong_tiers_pick_corners(self, difficulty):
        for seed in range(10):
            picks = SkyjoAI.choose_initial_cards_to_reveal(view_of(ALL_HIDDEN), difficulty, random.Random(seed))
            assert len(set(picks)) == 2
            assert set(picks) <= set(CORNER_SLOTS)


# =============================================================================
# Planner Tests
# =============================================================================

class TestPlanAITurn:

    def test_initial_reveal_for_any_seat(self):
        state = make_state(ALL_HIDDEN, phase=GamePhase.INITIAL_REVEAL)
        action = plan_ai_turn(state, Difficulty.HARD, player_index=1, rng=random.Random(2))
        assert action.type == ActionType.REVEAL_INITIAL
        assert action.player_index == 1
        assert apply_action(state, action) is not None

    def test_initial_reveal_done(self):
        state = make_state([1, 2] + [H] * 10, phase=GamePhase.INITIAL_REVEAL)
        assert plan_ai_turn(state, Difficulty.NORMAL, player_index=0) is None

    def test_draw_step(self):
        action = plan_ai_turn(make_state(ALL_HIDDEN, discard=(-2,)), Difficulty.NORMAL)
        assert action.type == ActionType.DRAW_FROM_DISCARD

    def test_must_reveal_step(self):
        state = make_state([5, 5, H] + [H] * 9, turn_phase=TurnPhase.MUST_REVEAL)
        action = plan_ai_turn(state, Difficulty.HARDCORE, rng=random.Random(1))
        assert action.type == ActionType.REVEAL_GRID_CARD
        assert action.indices == (2,)

    def test_not_my_turn(self):
        state = make_state(ALL_HIDDEN)
        assert plan_ai_turn(state, Difficulty.NORMAL, player_index=1) is None

    def test_finished_round(self):
        state = make_state(list(range(1, 13)), phase=GamePhase.FINISHED)
        assert plan_ai_turn(state, Difficulty.NORMAL) is None

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_plays_legal_actions_only(self, difficulty):
        rng = random.Random(17)
        players = [Player(id=f"p{i}", name=f"P{i}") for i in range(3)]
        state = initialize_game(players, rng)

        for _ in range(3000):
            if state.phase == GamePhase.FINISHED:
                break
            seat = None
            if state.phase == GamePhase.INITIAL_REVEAL:
                seat = min(get_valid_actions(state).initial_reveal)
            action = plan_ai_turn(state, difficulty, player_index=seat, rng=rng)
            assert get_valid_actions(state).allows(action, state.current_player_index)
            state = apply_action(state, action, rng)
            assert state is not None

        assert state.phase == GamePhase.FINISHED


# =============================================================================
# Information Hiding Tests
# =============================================================================

class TestTableView:

    def test_hidden_slots_carry_no_value(self):
        state = make_state([1, 2] + [H] * 10)
        view = TableView.for_player(state, 0)
        assert all(slot.value is None for slot in view.hand[2:])
        assert all(slot.value is None for slot in view.opponents[1])

    def test_opponent_drawn_card_hidden(self):
        state = make_state(ALL_HIDDEN, drawn=5, turn_phase=TurnPhase.REPLACE_OR_DISCARD)
        assert TableView.for_player(state, 0).drawn_value == 5
        assert TableView.for_player(state, 1).drawn_value is None

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    @pytest.mark.parametrize("drawn,turn_phase", [
        (None, TurnPhase.DRAW),
        (8, TurnPhase.REPLACE_OR_DISCARD),
        (1, TurnPhase.MUST_REPLACE),
    ])
    def test_decisions_ignore_hidden_values(self, difficulty, drawn, turn_phase):
        layout = [4, 9, H, H, 2, H] + [H] * 6
        low = make_state(layout, discard=(3,), drawn=drawn, turn_phase=turn_phase,
                         opponent=make_hand([H] * 12, hidden_value=-2))
        high = make_state(layout, discard=(3,), drawn=drawn, turn_phase=turn_phase,
                          opponent=make_hand([H] * 12, hidden_value=12))
        # Own hidden cards differ too
        high = replace(high, players=(
            replace(high.players[0], hand=make_hand(layout, hidden_value=12)),
            high.players[1],
        ))

        for seed in range(5):
            a = plan_ai_turn(low, difficulty, rng=random.Random(seed))
            b = plan_ai_turn(high, difficulty, rng=random.Random(seed))
            assert a == b

"""
Test suite for SkyjoMatch (multi-round play with CPU seats).

Run with: pytest test_match.py -v
"""

import logging
import random

import pytest

from skyjo.ai import Difficulty
from skyjo.game import Action, ActionType, GamePhase, Player
from skyjo.match import SkyjoMatch


def make_players(count):
    return [Player(id=f"p{i}", name=f"Player {i}") for i in range(count)]


def play_out_round(match, max_steps=5000):
    for _ in range(max_steps):
        if match.is_round_over:
            return
        assert match.play_ai_step() is not None
    pytest.fail("round did not finish")


class TestMatchSetup:

    def test_deals_first_round(self):
        match = SkyjoMatch(make_players(3), ai_seats=(1, 2), rng=random.Random(1))
        assert match.round_num == 1
        assert match.state.phase == GamePhase.INITIAL_REVEAL
        assert match.ai_seats == {1: Difficulty.default(), 2: Difficulty.default()}

    def test_seat_difficulties(self):
        match = SkyjoMatch(
            make_players(3),
            ai_seats=(0,),
            difficulty=Difficulty.HARD,
            seat_difficulties={2: Difficulty.HARDCORE},
            rng=random.Random(1),
        )
        assert match.ai_seats == {0: Difficulty.HARD, 2: Difficulty.HARDCORE}

    def test_bad_ai_seat(self):
        with pytest.raises(ValueError):
            SkyjoMatch(make_players(2), ai_seats=(2,))


class TestRoundFlow:

    def setup_method(self):
        self.match = SkyjoMatch(
            make_players(3),
            ai_seats=(0, 1, 2),
            difficulty=Difficulty.HARD,
            rng=random.Random(8),
        )

    def test_ai_step_logs_seat_context(self, caplog):
        caplog.set_level(logging.DEBUG, logger="skyjo.match")
        self.match.play_ai_step()
        records = [r for r in caplog.records if r.getMessage().startswith("AI plays")]
        assert len(records) == 1
        assert records[0].player_id == "p0"
        assert records[0].difficulty == "hard"
        assert records[0].game_id == self.match.game_id
        assert records[0].round_num == 1

    def test_ai_plays_full_round(self):
        play_out_round(self.match)
        scores = self.match.end_round()
        assert len(scores) == 3
        assert sum(s.is_finisher for s in scores) == 1
        assert len(self.match.score_sheet.rounds) == 1

    def test_end_round_twice_rejected(self):
        play_out_round(self.match)
        self.match.end_round()
        with pytest.raises(ValueError):
            self.match.end_round()

    def test_end_round_before_finish_rejected(self):
        with pytest.raises(ValueError):
            self.match.end_round()

    def test_next_round_needs_scoring(self):
        play_out_round(self.match)
        with pytest.raises(ValueError):
            self.match.start_next_round()

    def test_next_round(self):
        play_out_round(self.match)
        self.match.end_round()
        assert self.match.start_next_round()
        assert self.match.round_num == 2
        assert self.match.state.phase == GamePhase.INITIAL_REVEAL

    def test_game_over_stops_new_rounds(self):
        match = SkyjoMatch(make_players(2), ai_seats=(0, 1), threshold=-1000, rng=random.Random(2))
        play_out_round(match)
        match.end_round()
        assert match.is_game_over
        assert not match.start_next_round()

    def test_rematch(self):
        play_out_round(self.match)
        self.match.end_round()
        self.match.rematch()
        assert self.match.round_num == 1
        assert self.match.score_sheet.rounds == []
        assert self.match.state.phase == GamePhase.INITIAL_REVEAL


class TestHumanSeats:

    def setup_method(self):
        self.match = SkyjoMatch(make_players(2), ai_seats=(1,), rng=random.Random(4))

    def test_ai_reveals_then_waits_for_human(self):
        assert self.match.acting_ai_seat() == 1
        action = self.match.play_ai_step()
        assert action.type == ActionType.REVEAL_INITIAL
        assert not self.match.is_ai_turn()
        assert self.match.play_ai_step() is None

    def test_human_action(self):
        assert self.match.apply(Action(ActionType.REVEAL_INITIAL, (0, 1), 0))
        assert self.match.state.players[0].hand[0].is_revealed

    def test_rejected_human_action(self):
        before = self.match.state
        assert not self.match.apply(Action(ActionType.DRAW_FROM_PILE))
        assert self.match.state is before

    def test_ai_stops_on_human_turn(self):
        self.match.play_ai_until_human()
        self.match.apply(Action(ActionType.REVEAL_INITIAL, (0, 1), 0))
        self.match.play_ai_until_human()
        state = self.match.state
        assert state.phase in (GamePhase.PLAYING, GamePhase.FINAL_ROUND, GamePhase.FINISHED)
        if state.phase != GamePhase.FINISHED:
            assert state.current_player_index == 0

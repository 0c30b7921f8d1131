"""
Multi-round Skyjo match.

A SkyjoMatch owns the current round's GameState, seats CPU players,
records each finished round on a ScoreSheet and deals the next round until
someone crosses the score threshold.
"""

import random
import uuid
from typing import Optional, Sequence

from skyjo.ai import Difficulty, plan_ai_turn
from skyjo.config import config
from skyjo.game import (
    Action,
    GamePhase,
    Player,
    apply_action,
    get_default_rng,
    get_valid_actions,
    initialize_game,
)
from skyjo.logging_config import get_logger
from skyjo.scoring import PlayerScore, ScoreSheet, calculate_final_scores

logger = get_logger(__name__)


class SkyjoMatch:
    """
    A sequence of rounds played by the same table.

    Attributes:
        game_id: Unique id, used as log context.
        players: Seats in turn order.
        ai_seats: Seat index -> Difficulty for CPU seats.
        state: The round in progress.
        score_sheet: Scores of finished rounds.
        round_num: 1-based number of the current round.
    """

    def __init__(
        self,
        players: Sequence[Player],
        ai_seats: Sequence[int] = (),
        difficulty: Optional[Difficulty] = None,
        threshold: Optional[int] = None,
        rng: Optional[random.Random] = None,
        seat_difficulties: Optional[dict[int, Difficulty]] = None,
        game_id: Optional[str] = None,
    ):
        self.game_id = game_id or str(uuid.uuid4())
        self.players = [Player(id=p.id, name=p.name) for p in players]
        self.rng = rng or get_default_rng()

        difficulty = Difficulty(difficulty) if difficulty is not None else Difficulty.default()
        self.ai_seats: dict[int, Difficulty] = {}
        for seat in ai_seats:
            if not 0 <= seat < len(self.players):
                raise ValueError(f"AI seat {seat} out of range")
            self.ai_seats[seat] = difficulty
        for seat, seat_difficulty in (seat_difficulties or {}).items():
            if not 0 <= seat < len(self.players):
                raise ValueError(f"AI seat {seat} out of range")
            self.ai_seats[seat] = Difficulty(seat_difficulty)

        if threshold is None:
            threshold = config.SCORE_THRESHOLD
        self.score_sheet = ScoreSheet(players=list(self.players), threshold=threshold)
        self.round_num = 1
        self.last_round_scores: Optional[list[PlayerScore]] = None
        self.state = initialize_game(self.players, self.rng)
        self._log().debug(f"Match started with {len(self.players)} players, AI seats {sorted(self.ai_seats)}")

    def _log(self):
        return logger.with_context(game_id=self.game_id, round_num=self.round_num)

    # -------------------------------------------------------------------------
    # Round play
    # -------------------------------------------------------------------------

    @property
    def is_round_over(self) -> bool:
        return self.state.phase == GamePhase.FINISHED

    @property
    def is_game_over(self) -> bool:
        return self.score_sheet.is_game_over()

    def apply(self, action: Action) -> bool:
        """
        Apply an action to the current round.

        Returns:
            True if accepted; False if rejected (state unchanged).
        """
        new_state = apply_action(self.state, action, self.rng)
        if new_state is None:
            self._log().debug(f"Action rejected: {action}")
            return False
        self.state = new_state
        return True

    def acting_ai_seat(self) -> Optional[int]:
        """The CPU seat that should act next, if any."""
        state = self.state
        if state.phase == GamePhase.INITIAL_REVEAL:
            pending = get_valid_actions(state).initial_reveal
            for seat in sorted(self.ai_seats):
                if seat in pending:
                    return seat
            return None
        if state.phase in (GamePhase.PLAYING, GamePhase.FINAL_ROUND):
            if state.current_player_index in self.ai_seats:
                return state.current_player_index
        return None

    def is_ai_turn(self) -> bool:
        return self.acting_ai_seat() is not None

    def play_ai_step(self) -> Optional[Action]:
        """
        Let the acting CPU seat take one atomic action.

        Returns:
            The action applied, or None if no CPU seat had anything to do.
        """
        seat = self.acting_ai_seat()
        if seat is None:
            return None

        difficulty = self.ai_seats[seat]
        action = plan_ai_turn(self.state, difficulty, player_index=seat, rng=self.rng)
        if action is None:
            return None
        self._log().with_context(
            player_id=self.state.players[seat].id,
            difficulty=difficulty.value,
        ).debug(f"AI plays {action.type.value}")
        if not self.apply(action):
            # Planner only picks legal actions, so this is a bug
            raise RuntimeError(f"AI seat {seat} produced rejected action {action}")
        return action

    def play_ai_until_human(self, max_steps: int = 10_000) -> int:
        """Run CPU seats until a human must act or the round ends. Returns steps taken."""
        steps = 0
        while steps < max_steps and self.play_ai_step() is not None:
            steps += 1
        return steps

    # -------------------------------------------------------------------------
    # Between rounds
    # -------------------------------------------------------------------------

    def end_round(self) -> list[PlayerScore]:
        """
        Score the finished round and record it.

        Raises:
            ValueError: If the round is not finished.
        """
        if not self.is_round_over:
            raise ValueError(f"round is still in {self.state.phase.value}")
        if self.last_round_scores is not None:
            raise ValueError("round already scored")

        scores = calculate_final_scores(self.state)
        finisher = self.state.finisher()
        self.score_sheet.add_round({s.player_id: s.raw_score for s in scores}, finisher.id)
        self.last_round_scores = scores

        self._log().debug(
            "Round scored: "
            + ", ".join(f"{s.name}={s.final_score}" for s in scores)
        )
        if self.is_game_over:
            self._log().info(f"Game over, winner {self.winner_id()}")
        return scores

    def start_next_round(self) -> bool:
        """
        Deal a new round.

        Returns:
            False if the game is already over.
        """
        if self.is_game_over:
            return False
        if self.last_round_scores is None:
            raise ValueError("current round has not been scored")
        self.round_num += 1
        self.state = initialize_game(self.players, self.rng)
        self.last_round_scores = None
        self._log().debug("Round started")
        return True

    def winner_id(self) -> Optional[str]:
        return self.score_sheet.winner_id()

    def rematch(self) -> None:
        """Start over with the same seats and an empty score sheet."""
        self.score_sheet.reset()
        self.round_num = 1
        self.last_round_scores = None
        self.state = initialize_game(self.players, self.rng)
        self._log().info("Rematch started")

"""
Scoring for Skyjo.

Round scores come from two places that must always agree: a finished
GameState (calculate_final_scores) and the manual score sheet, where
players type in the raw score of each hand (ScoreSheet.add_round). Both go
through calculate_round_score() and check_strictly_lowest().

Doubling rule:
    The finisher's raw score is doubled when it is positive and the
    finisher was NOT strictly the lowest of the table. A tie for lowest
    counts as not strictly lowest.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Optional

from skyjo.config import config
from skyjo.game import GamePhase, GameState, Hand, Player

logger = logging.getLogger(__name__)


def hand_score(hand: Hand) -> int:
    """Sum of every non-Empty card in the hand, face up or not."""
    return sum(card.value for card in hand if card is not None)


def calculate_round_score(raw_score: int, is_finisher: bool, is_strictly_lowest: bool) -> int:
    """
    Apply the finisher penalty to a raw hand score.

    Args:
        raw_score: Sum of the player's hand.
        is_finisher: Whether this player ended the round.
        is_strictly_lowest: Whether the raw score is strictly below everyone else's.

    Returns:
        The score to add to the player's total.
    """
    if is_finisher and not is_strictly_lowest and raw_score > 0:
        return raw_score * 2
    return raw_score


def check_strictly_lowest(finisher_id: Optional[str], scores: Mapping[str, int]) -> bool:
    """
    Whether the finisher's raw score is strictly below every other player's.

    Returns False when there is no finisher or the finisher has no score.
    """
    if finisher_id is None or finisher_id not in scores:
        return False
    finisher_score = scores[finisher_id]
    return all(
        finisher_score < score
        for player_id, score in scores.items()
        if player_id != finisher_id
    )


@dataclass(frozen=True)
class PlayerScore:
    """One player's result for a finished round."""

    player_id: str
    name: str
    raw_score: int
    final_score: int
    is_finisher: bool
    is_strictly_lowest: bool


def calculate_final_scores(state: GameState) -> list[PlayerScore]:
    """
    Score every player of a round, in seat order.

    Without a finisher nobody is doubled. The state is normally FINISHED;
    scoring an unfinished round is allowed (used for abandoned rounds) and
    counts hidden cards at their face value.
    """
    if state.phase != GamePhase.FINISHED:
        logger.debug(f"Scoring a round still in {state.phase.value}")

    raw = {p.id: hand_score(p.hand) for p in state.players}
    finisher = state.finisher()
    finisher_id = finisher.id if finisher else None
    strictly_lowest = check_strictly_lowest(finisher_id, raw)

    results = []
    for player in state.players:
        is_finisher = player.id == finisher_id
        is_lowest = is_finisher and strictly_lowest
        results.append(PlayerScore(
            player_id=player.id,
            name=player.name,
            raw_score=raw[player.id],
            final_score=calculate_round_score(raw[player.id], is_finisher, is_lowest),
            is_finisher=is_finisher,
            is_strictly_lowest=is_lowest,
        ))
    return results


# =============================================================================
# Score Sheet
# =============================================================================

@dataclass
class Round:
    """
    One row of the score sheet.

    Attributes:
        round_id: Unique id of the row (used for deletion).
        raw_scores: Player id -> raw hand score as entered.
        scores: Player id -> score after the finisher rule.
        finisher_id: Player who ended the round.
        is_strictly_lowest: Whether the finisher was strictly lowest.
    """

    round_id: str
    raw_scores: dict[str, int]
    scores: dict[str, int]
    finisher_id: str
    is_strictly_lowest: bool


@dataclass
class ScoreSheet:
    """
    Running totals across the rounds of a match.

    The game ends once any player's total reaches the threshold; the lowest
    total wins.
    """

    players: list[Player]
    threshold: int = field(default_factory=lambda: config.SCORE_THRESHOLD)
    rounds: list[Round] = field(default_factory=list)

    def __post_init__(self) -> None:
        ids = [p.id for p in self.players]
        if len(set(ids)) != len(ids):
            raise ValueError(f"player ids must be unique: {ids}")

    @property
    def player_ids(self) -> list[str]:
        return [p.id for p in self.players]

    def add_round(self, raw_scores: Mapping[str, int], finisher_id: str) -> Round:
        """
        Record a round from raw hand scores.

        Args:
            raw_scores: Raw score for every player on the sheet.
            finisher_id: The player who ended the round.

        Raises:
            KeyError: If the finisher is not on the sheet.
            ValueError: If a player's score is missing or unknown ids are given.
        """
        if finisher_id not in self.player_ids:
            raise KeyError(f"unknown finisher {finisher_id!r}")
        missing = set(self.player_ids) - set(raw_scores)
        unknown = set(raw_scores) - set(self.player_ids)
        if missing or unknown:
            raise ValueError(f"raw scores mismatch: missing={sorted(missing)} unknown={sorted(unknown)}")

        raw = {pid: int(raw_scores[pid]) for pid in self.player_ids}
        strictly_lowest = check_strictly_lowest(finisher_id, raw)
        scores = {
            pid: calculate_round_score(value, pid == finisher_id, strictly_lowest)
            for pid, value in raw.items()
        }

        entry = Round(
            round_id=uuid.uuid4().hex[:8],
            raw_scores=raw,
            scores=scores,
            finisher_id=finisher_id,
            is_strictly_lowest=strictly_lowest,
        )
        self.rounds.append(entry)
        logger.debug(f"Recorded round {len(self.rounds)}: {scores}")
        return entry

    def add_round_from_state(self, state: GameState) -> Round:
        """Record a finished round straight from the engine."""
        finisher = state.finisher()
        if finisher is None:
            raise ValueError("round has no finisher")
        return self.add_round({p.id: hand_score(p.hand) for p in state.players}, finisher.id)

    def delete_round(self, round_id: str) -> Round:
        """Remove a round; totals are recomputed from the remaining rows."""
        for i, entry in enumerate(self.rounds):
            if entry.round_id == round_id:
                return self.rounds.pop(i)
        raise KeyError(f"unknown round {round_id!r}")

    def totals(self) -> dict[str, int]:
        """Player id -> sum of round scores."""
        totals = {pid: 0 for pid in self.player_ids}
        for entry in self.rounds:
            for pid, score in entry.scores.items():
                totals[pid] += score
        return totals

    def is_game_over(self) -> bool:
        return any(total >= self.threshold for total in self.totals().values())

    def leaders(self) -> list[str]:
        """Players sharing the lowest total."""
        totals = self.totals()
        if not totals:
            return []
        best = min(totals.values())
        return [pid for pid, total in totals.items() if total == best]

    def winner_id(self) -> Optional[str]:
        """The winner once the game is over; None while running or when tied."""
        if not self.is_game_over():
            return None
        leaders = self.leaders()
        return leaders[0] if len(leaders) == 1 else None

    def standings(self) -> list[tuple[Player, int]]:
        """Players with their totals, lowest first (seat order breaks ties)."""
        totals = self.totals()
        return sorted(
            ((p, totals[p.id]) for p in self.players),
            key=lambda item: item[1],
        )

    def reset(self) -> None:
        """Clear all rounds, keeping the players."""
        self.rounds.clear()


"""
Skyjo AI Simulation Runner

Runs AI-vs-AI matches straight against the engine to compare the
difficulty tiers and catch rule violations.

Usage:
    python -m skyjo.simulate [num_games] [num_players] [difficulty]
    python -m skyjo.simulate detail [num_players] [difficulty]

Examples:
    python -m skyjo.simulate 10             # 10 games, 4 players, mixed tiers
    python -m skyjo.simulate 50 2 hardcore  # 50 heads-up hardcore games
    python -m skyjo.simulate detail 3       # One game, turn by turn
"""

import random
import sys
from typing import Optional

from skyjo.ai import AI_NAMES, Difficulty
from skyjo.config import config
from skyjo.constants import DECK_SIZE
from skyjo.game import (
    Action,
    ActionType,
    DeckError,
    GamePhase,
    GameState,
    Player,
    hidden_slots,
)
from skyjo.logging_config import setup_logging
from skyjo.match import SkyjoMatch

# Safety limits so a degenerate policy can't loop forever
MAX_STEPS_PER_ROUND = 2000
MAX_ROUNDS_PER_GAME = 60


class SimulationStats:
    """Track simulation statistics."""

    def __init__(self):
        self.games_played = 0
        self.total_rounds = 0
        self.total_turns = 0
        self.stalled_rounds = 0
        self.player_wins: dict[str, int] = {}
        self.player_scores: dict[str, list[int]] = {}
        self.decisions: dict[str, dict] = {}  # player -> {action: count}

        # Questionable move tracking
        self.discarded_excellent = 0
        self.took_bad_discard = 0
        self.columns_cleared = 0
        self.finisher_doubled = 0

    def record_game(self, match: SkyjoMatch, winner_name: Optional[str]):
        self.games_played += 1
        self.total_rounds += match.round_num

        if winner_name is not None:
            self.player_wins[winner_name] = self.player_wins.get(winner_name, 0) + 1

        totals = match.score_sheet.totals()
        for player in match.players:
            self.player_scores.setdefault(player.name, []).append(totals[player.id])

    def record_action(self, player_name: str, action: Action):
        if action.type in (ActionType.DRAW_FROM_PILE, ActionType.DRAW_FROM_DISCARD):
            self.total_turns += 1
        actions = self.decisions.setdefault(player_name, {})
        actions[action.type.value] = actions.get(action.type.value, 0) + 1

    def record_round(self, match: SkyjoMatch):
        for score in match.last_round_scores or []:
            if score.is_finisher and score.final_score != score.raw_score:
                self.finisher_doubled += 1

    def report(self) -> str:
        lines = [
            "=" * 50,
            "SIMULATION RESULTS",
            "=" * 50,
            f"Games played: {self.games_played}",
            f"Total rounds: {self.total_rounds}",
            f"Total turns: {self.total_turns}",
            f"Avg turns/game: {self.total_turns / max(1, self.games_played):.1f}",
            f"Stalled rounds: {self.stalled_rounds}",
            "",
            "WIN RATES:",
        ]

        total_wins = sum(self.player_wins.values())
        for name, wins in sorted(self.player_wins.items(), key=lambda x: -x[1]):
            pct = wins / max(1, total_wins) * 100
            lines.append(f"  {name}: {wins} wins ({pct:.1f}%)")

        lines.append("")
        lines.append("AVERAGE TOTALS (lower is better):")

        for name, scores in sorted(
            self.player_scores.items(),
            key=lambda x: sum(x[1]) / len(x[1]) if x[1] else 999
        ):
            avg = sum(scores) / len(scores) if scores else 0
            lines.append(f"  {name}: {avg:.1f}")

        lines.append("")
        lines.append("DECISION BREAKDOWN:")

        for name, actions in sorted(self.decisions.items()):
            total = sum(actions.values())
            lines.append(f"  {name}:")
            for action, count in sorted(actions.items()):
                pct = count / max(1, total) * 100
                lines.append(f"    {action}: {count} ({pct:.1f}%)")

        lines.append("")
        lines.append("MOVE ANALYSIS:")
        lines.append(f"  Columns cleared: {self.columns_cleared}")
        lines.append(f"  Finisher doubled: {self.finisher_doubled}")
        lines.append(f"  Discarded excellent cards: {self.discarded_excellent}")
        lines.append(f"  Took bad discards: {self.took_bad_discard}")

        return "\n".join(lines)


def create_cpu_players(num_players: int) -> list[Player]:
    """Name CPU seats, numbering bots once the names run out."""
    players = []
    for i in range(num_players):
        name = AI_NAMES[i % len(AI_NAMES)]
        if i >= len(AI_NAMES):
            name = f"{name} {i // len(AI_NAMES) + 1}"
        players.append(Player(id=f"cpu_{i}", name=name))
    return players


def seat_difficulties(num_players: int, difficulty: Optional[Difficulty]) -> dict[int, Difficulty]:
    """One tier for every seat, or the tiers in rotation when none is given."""
    if difficulty is not None:
        return {seat: Difficulty(difficulty) for seat in range(num_players)}
    tiers = list(Difficulty)
    return {seat: tiers[seat % len(tiers)] for seat in range(num_players)}


def check_cardinality(state: GameState) -> None:
    """Every one of the 150 cards must be somewhere."""
    count = state.card_count()
    if count != DECK_SIZE:
        raise DeckError(f"state holds {count} cards, expected {DECK_SIZE}")


def _track_move(stats: SimulationStats, before: GameState, after: GameState, action: Action):
    cleared = len(after.cleared_cards) - len(before.cleared_cards)
    stats.columns_cleared += cleared // 3

    if action.type == ActionType.DISCARD_AND_REVEAL and before.drawn_card.value <= 0:
        stats.discarded_excellent += 1
    if action.type == ActionType.DRAW_FROM_DISCARD and before.discard_top().value >= 9:
        stats.took_bad_discard += 1


def play_round(
    match: SkyjoMatch,
    stats: SimulationStats,
    verbose: bool = False,
) -> bool:
    """Play the current round to the end. Returns False if it stalled."""
    steps = 0
    while not match.is_round_over:
        if steps >= MAX_STEPS_PER_ROUND:
            stats.stalled_rounds += 1
            return False

        before = match.state
        seat = match.acting_ai_seat()
        action = match.play_ai_step()
        if action is None:
            raise RuntimeError(f"no CPU seat could act in {before.phase.value}/{before.turn_phase.value}")

        check_cardinality(match.state)
        stats.record_action(match.players[seat].name, action)
        _track_move(stats, before, match.state, action)

        if verbose:
            _print_step(before, match.state, seat, action)
        steps += 1

    match.end_round()
    stats.record_round(match)
    return True


def run_game(
    num_players: int,
    stats: SimulationStats,
    difficulty: Optional[Difficulty] = None,
    rng: Optional[random.Random] = None,
    verbose: bool = False,
) -> tuple[Optional[str], int]:
    """Run a complete match. Returns (winner_name, winner_total)."""

    players = create_cpu_players(num_players)
    match = SkyjoMatch(
        players,
        seat_difficulties=seat_difficulties(num_players, difficulty),
        rng=rng,
    )

    while True:
        if not play_round(match, stats, verbose=verbose):
            break
        if match.is_game_over or match.round_num >= MAX_ROUNDS_PER_GAME:
            break
        match.start_next_round()

    standings = match.score_sheet.standings()
    winner_id = match.winner_id()
    winner_name = next((p.name for p, _ in standings if p.id == winner_id), None)
    stats.record_game(match, winner_name)

    return winner_name, standings[0][1]


def run_simulation(
    num_games: int = 10,
    num_players: int = 4,
    difficulty: Optional[Difficulty] = None,
    seed: Optional[int] = None,
    verbose: bool = True,
) -> SimulationStats:
    """Run multiple games and report statistics."""

    rng = random.Random(seed)
    stats = SimulationStats()

    if verbose:
        tier = difficulty.value if difficulty else "mixed"
        print(f"\nRunning {num_games} games with {num_players} players each ({tier})...")
        print("=" * 50)

    for i in range(num_games):
        winner, score = run_game(num_players, stats, difficulty, rng)
        if verbose:
            print(f"Game {i + 1}/{num_games}: winner {winner or 'tie'} ({score})")

    if verbose:
        print("\n")
        print(stats.report())

    return stats


def _format_hand(state: GameState, seat: int) -> str:
    return " ".join(
        "--" if card is None else f"{str(card):>2}"
        for card in state.players[seat].hand
    )


def _print_step(before: GameState, after: GameState, seat: int, action: Action):
    name = before.players[seat].name
    if action.type == ActionType.REVEAL_INITIAL:
        print(f"  {name} reveals {list(action.indices)}: {_format_hand(after, seat)}")
        return
    if action.type == ActionType.DRAW_FROM_DISCARD:
        print(f"\n{name} takes {before.discard_top().value} from the discard pile")
        return
    if action.type == ActionType.DRAW_FROM_PILE:
        print(f"\n{name} draws {after.drawn_card.value}")
        return

    print(f"  {action.type.value} slot {action.index}")
    print(f"  Hand: {_format_hand(after, seat)} ({len(hidden_slots(after.players[seat].hand))} hidden)")
    if after.phase == GamePhase.FINAL_ROUND and before.phase == GamePhase.PLAYING:
        print(f"  >>> {name} revealed every card! Final round.")


def run_detailed_game(num_players: int = 4, difficulty: Optional[Difficulty] = None):
    """Run a single round with turn-by-turn output."""

    print(f"\nRunning detailed round with {num_players} players...")
    print("=" * 50)

    stats = SimulationStats()
    players = create_cpu_players(num_players)
    tiers = seat_difficulties(num_players, difficulty)
    match = SkyjoMatch(players, seat_difficulties=tiers, rng=random.Random(config.SEED))

    for seat, player in enumerate(players):
        print(f"  {player.name} ({tiers[seat].value})")
    print(f"\nDiscard pile: {match.state.discard_top().value}")
    print("\n" + "-" * 50)

    if not play_round(match, stats, verbose=True):
        print("\nRound stalled before finishing")
        return

    print("\n" + "=" * 50)
    print("ROUND SCORES")
    print("=" * 50)

    for score in sorted(match.last_round_scores, key=lambda s: s.final_score):
        marker = " (finisher)" if score.is_finisher else ""
        print(f"  {score.name}: {score.final_score} points (raw {score.raw_score}){marker}")


if __name__ == "__main__":
    setup_logging(config.LOG_LEVEL, config.ENVIRONMENT)

    if len(sys.argv) > 1 and sys.argv[1] == "detail":
        # Detailed single round
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        tier = Difficulty(sys.argv[3]) if len(sys.argv) > 3 else None
        run_detailed_game(num_players, tier)
    else:
        # Batch simulation
        num_games = int(sys.argv[1]) if len(sys.argv) > 1 else 10
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        tier = Difficulty(sys.argv[3]) if len(sys.argv) > 3 else None
        run_simulation(num_games, num_players, tier, seed=config.SEED)

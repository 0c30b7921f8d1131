"""
Card and rule constants for Skyjo.

This module is the single source of truth for the deck composition, the
grid geometry and the numeric thresholds used by the AI tiers.

Standard Skyjo deck (150 cards):
    - -2: 5 cards
    - -1: 10 cards
    -  0: 15 cards
    - 1..12: 10 cards each

Card Layout (4 columns of 3):
    [0] [3] [6] [9]
    [1] [4] [7] [10]
    [2] [5] [8] [11]

    Column c holds slots 3c, 3c+1, 3c+2 - three equal revealed cards clear.
"""


# =============================================================================
# Deck
# =============================================================================

MIN_CARD_VALUE = -2
MAX_CARD_VALUE = 12

# value -> number of copies in the deck
DECK_COMPOSITION: dict[int, int] = {
    -2: 5,
    -1: 10,
    0: 15,
    **{value: 10 for value in range(1, 13)},
}

DECK_SIZE = sum(DECK_COMPOSITION.values())  # 150


# =============================================================================
# Grid Geometry
# =============================================================================

HAND_SIZE = 12
NUM_COLUMNS = 4
COLUMN_HEIGHT = 3

# Cards every player reveals before the first turn
INITIAL_REVEALS = 2

# Corner slots favoured by the stronger AI tiers for information
CORNER_SLOTS: tuple[int, ...] = (0, 2, 9, 11)


# =============================================================================
# AI Decision Constants
# =============================================================================

# NORMAL takes the discard at or below this value
NORMAL_TAKE_THRESHOLD = 4

# NORMAL keeps a drawn card at or below this value when a slot qualifies
NORMAL_KEEP_THRESHOLD = 3

# NORMAL replaces its highest revealed card when the drawn card beats it by this much
NORMAL_IMPROVEMENT_MARGIN = 3

# HARD / HARDCORE: take the discard (and keep drawn cards) at or below this value
GOOD_CARD_THRESHOLD = {
    "hard": 3,
    "hardcore": 4,
}

# HARD / HARDCORE take a low discard only if the highest revealed card exceeds v + this
DISCARD_SWAP_MARGIN = 2

# Replacement heuristic value bands
EXCELLENT_CARD_MAX = 0      # v <= 0
GOOD_CARD_MAX = 4           # 1 <= v <= 4
EXCELLENT_REPLACE_MIN = 5   # excellent cards replace a revealed card at least this high
GOOD_REPLACE_MARGIN = 4     # good cards replace a card at least v + this
TERRIBLE_CARD_MIN = 10      # mediocre/bad cards only replace a card at least this high

# Hidden-slot reveal scores (column potential)
REVEAL_SCORE_PAIR = 20          # joins two equal revealed cards
REVEAL_SCORE_LOW_SINGLE = 8     # joins one revealed card <= GOOD_CARD_MAX (HARDCORE)
REVEAL_SCORE_SINGLE = 5         # joins one revealed card
REVEAL_SCORE_EXPLORE = 1        # column has no revealed cards

# HARDCORE: revealing the last hidden card scores 0 once the visible sum is above this
HARDCORE_LAST_REVEAL_LIMIT = 50

"""Derived player statistics: win rate and rank.

Neither value is stored; both are computed from the user row on read.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# (rank, level must be below, win rate must be below). A player who fails a
# tier's win-rate gate falls through to the next tier's check.
RANK_TIERS: list[tuple[str, int, float | None]] = [
    ("Beginner", 5, None),
    ("Novice", 10, 50.0),
    ("Intermediate", 20, 70.0),
    ("Advanced", 50, 80.0),
    ("Expert", 100, 90.0),
]
TOP_RANK = "Master"


def win_rate(games_played: int, games_won: int) -> float:
    """Percentage of games won, 0.0 when no games were played."""
    if games_played <= 0:
        return 0.0
    return games_won / games_played * 100


def rank_for(level: int, rate: float) -> str:
    """
    Map level and win rate to a rank name.

    >>> rank_for(3, 95.0)
    'Beginner'
    >>> rank_for(12, 75.0)
    'Advanced'
    """
    for name, level_below, rate_below in RANK_TIERS:
        if level < level_below and (rate_below is None or rate < rate_below):
            return name
    return TOP_RANK


def round_half_up(value: float, places: int = 1) -> float:
    """
    Round for display the way the clients expect: halves go up.

    Works on the shortest decimal form of the float, so 0.25 becomes 0.3
    rather than the 0.2 that round() gives.

    >>> round_half_up(0.25)
    0.3
    """
    step = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(step, rounding=ROUND_HALF_UP))

"""
Captain selection logic
"""
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from optimization.config import CAPTAIN_MULTIPLIER, DIFFERENTIAL_CAPTAIN_OPTIONS
from optimization.constraint_handler import PoolEntry, Position, rank_entries


@dataclass(frozen=True)
class CaptainPick:
    """Captain pick data class"""
    captain: PoolEntry
    vice_captain: PoolEntry
    captain_points: float  # Points with captain multiplier
    selection_confidence: float  # 0-1 confidence score
    alternatives: List[PoolEntry]  # Next best options after the vice-captain


def lineup_points(player_ids: Sequence[int], captain_id: int,
                  points_by_id: Mapping[int, float],
                  captain_multiplier: float = CAPTAIN_MULTIPLIER) -> float:
    """
    Total lineup points under the captaincy convention

    Every starter scores once and the captain scores (multiplier - 1) extra
    times. Players missing from points_by_id score 0.

    Args:
        player_ids: Starting XI player IDs
        captain_id: Captain player ID (must be a starter)
        points_by_id: Predicted or realized points keyed by player ID
        captain_multiplier: Captain multiplier

    Returns:
        Total points
    """
    total = sum(points_by_id.get(pid, 0.0) for pid in player_ids)
    if captain_id in player_ids:
        total += points_by_id.get(captain_id, 0.0) * (captain_multiplier - 1.0)
    return total


class CaptainSelector:
    """Select optimal captain and vice-captain"""

    def __init__(self, captain_multiplier: float = CAPTAIN_MULTIPLIER):
        self.captain_multiplier = captain_multiplier

    def select(self, starters: Sequence[PoolEntry]) -> CaptainPick:
        """
        Captain is the highest-forecast starter, vice-captain the next one

        Ties fall to the cheaper player, then to lineup order.

        Args:
            starters: Starting XI entries

        Returns:
            CaptainPick with distinct captain and vice-captain
        """
        if len(starters) < 2:
            raise ValueError("Need at least two starters to pick a captain and vice-captain")

        candidates = rank_entries(starters)
        captain, vice_captain = candidates[0], candidates[1]

        # Confidence grows with the gap to the vice-captain
        max_possible_gap = captain.points * 0.5
        if max_possible_gap > 0:
            confidence = min((captain.points - vice_captain.points) / max_possible_gap, 1.0)
        else:
            confidence = 0.0

        return CaptainPick(
            captain=captain,
            vice_captain=vice_captain,
            captain_points=captain.points * self.captain_multiplier,
            selection_confidence=confidence,
            alternatives=candidates[2:5]
        )

    def differential(self, entries: Sequence[PoolEntry],
                     options: int = DIFFERENTIAL_CAPTAIN_OPTIONS) -> Optional[PoolEntry]:
        """
        Captain pick that gains the most on managers who do not own him

        Drawn from the top outfield forecasts; each option is scored by its
        forecast times the share of managers not owning the player.

        Args:
            entries: Candidate entries (squad, lineup or whole pool)
            options: How many of the top forecasts to consider

        Returns:
            The differential captain, or None when there is no outfield forecast
        """
        candidates = rank_entries(
            e for e in entries if e.is_scored and e.position is not Position.GKP
        )[:options]
        if not candidates:
            return None
        # max() keeps the first of equal scores, so ties go to the higher forecast
        return max(candidates, key=differential_score)


def differential_score(entry: PoolEntry) -> float:
    return entry.points * (1 - entry.player.selected_by_percent / 100)

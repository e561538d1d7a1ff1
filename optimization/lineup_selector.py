"""
Starting XI derivation for a selected squad
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from optimization.config import STARTING_XI_SIZE, MAX_TEAM_RATING
from optimization.constraint_handler import FPLConstraintHandler, PoolEntry, Position, rank_entries
from optimization.captain_selector import CaptainSelector, lineup_points
from optimization.exceptions import FormationInfeasibleError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lineup:
    """Starting XI, bench and captaincy for one round"""
    starters: Tuple[PoolEntry, ...]
    bench: Tuple[PoolEntry, ...]
    captain: PoolEntry
    vice_captain: PoolEntry
    formation: str
    predicted_points: float  # captain counted twice
    team_rating: int

    @property
    def starter_ids(self) -> Tuple[int, ...]:
        return tuple(e.player_id for e in self.starters)

    @property
    def bench_ids(self) -> Tuple[int, ...]:
        return tuple(e.player_id for e in self.bench)

    @property
    def captain_id(self) -> int:
        return self.captain.player_id

    @property
    def vice_captain_id(self) -> int:
        return self.vice_captain.player_id


def team_rating(predicted_points: float) -> int:
    """Rating on a 0-100 scale; 100 predicted points or more rates 100"""
    return int(min(MAX_TEAM_RATING, max(0, math.floor(predicted_points + 0.5))))


class LineupSelector:
    """Derive the highest-forecast legal starting XI from a squad"""

    def __init__(self, constraint_handler: FPLConstraintHandler = None,
                 captain_selector: CaptainSelector = None):
        self.constraint_handler = constraint_handler or FPLConstraintHandler()
        self.captain_selector = captain_selector or CaptainSelector()

    def derive(self, squad: Iterable[PoolEntry], exclude_unavailable: bool = True) -> Lineup:
        """
        Derive starting XI, bench, captain and vice-captain

        Takes the best keeper, the minimum formation (3 DEF, 2 MID, 1 FWD) by
        forecast, then fills the remaining outfield slots by forecast
        regardless of position.

        Args:
            squad: Squad or squad entries
            exclude_unavailable: Leave injured, suspended and unavailable players out

        Returns:
            Lineup

        Raises:
            FormationInfeasibleError: the eligible players cannot form a legal XI
        """
        entries = list(squad)
        eligible = [e for e in entries if e.player.is_selectable] if exclude_unavailable else entries

        by_position = {position: [] for position in Position}
        for entry in rank_entries(eligible):
            by_position[entry.position].append(entry)

        errors = []
        if len(by_position[Position.GKP]) < self.constraint_handler.starting_goalkeepers:
            errors.append("no eligible Goalkeeper")
        minimums = self.constraint_handler.formation_minimums
        for position in (Position.DEF, Position.MID, Position.FWD):
            available = len(by_position[position])
            if available < minimums.get(position, 0):
                errors.append(f"need {minimums[position]} {position.label}s, {available} eligible")
        if errors:
            raise FormationInfeasibleError(errors)

        starters: List[PoolEntry] = by_position[Position.GKP][:self.constraint_handler.starting_goalkeepers]
        remaining = []
        for position in (Position.DEF, Position.MID, Position.FWD):
            floor = minimums.get(position, 0)
            starters.extend(by_position[position][:floor])
            remaining.extend(by_position[position][floor:])

        open_slots = STARTING_XI_SIZE - len(starters)
        starters.extend(rank_entries(remaining)[:open_slots])
        if len(starters) < STARTING_XI_SIZE:
            raise FormationInfeasibleError([f"only {len(starters)} eligible players for {STARTING_XI_SIZE} slots"])

        order = {position: i for i, position in enumerate(Position)}
        starters = sorted(rank_entries(starters), key=lambda e: order[e.position])

        lineup_errors = self.constraint_handler.validate_lineup(entries, starters)
        if lineup_errors:
            raise FormationInfeasibleError(lineup_errors)

        pick = self.captain_selector.select(starters)
        starter_ids = [e.player_id for e in starters]
        predicted = lineup_points(
            starter_ids, pick.captain.player_id,
            {e.player_id: e.points for e in starters},
            self.captain_selector.captain_multiplier
        )

        lineup = Lineup(
            starters=tuple(starters),
            bench=tuple(self._bench_order(entries, set(starter_ids))),
            captain=pick.captain,
            vice_captain=pick.vice_captain,
            formation=self.constraint_handler.get_formation(starters),
            predicted_points=predicted,
            team_rating=team_rating(predicted)
        )
        logger.debug("Derived %s lineup, captain %s, %.1f predicted points",
                     lineup.formation, pick.captain.name, predicted)
        return lineup

    def _bench_order(self, entries: List[PoolEntry], starter_ids: set) -> List[PoolEntry]:
        """Substitute keeper first, then outfield by forecast; unavailable players last"""
        bench = [e for e in entries if e.player_id not in starter_ids]
        playable = [e for e in bench if e.player.is_selectable]
        unplayable = [e for e in bench if not e.player.is_selectable]
        keepers = [e for e in rank_entries(playable) if e.position is Position.GKP]
        outfield = [e for e in rank_entries(playable) if e.position is not Position.GKP]
        return keepers + outfield + rank_entries(unplayable)


def derive_lineup(squad: Iterable[PoolEntry], exclude_unavailable: bool = True) -> Lineup:
    return LineupSelector().derive(squad, exclude_unavailable)

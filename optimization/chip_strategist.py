"""
chip_strategist.py - Chip analysis for the coming round
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from optimization.config import (
    CAPTAIN_MULTIPLIER, CHIP_MIN_GAIN, CHIP_PRIORITY, EASY_FIXTURE_BONUS,
    OPTIMIZATION_METHOD, TRIPLE_CAPTAIN_MULTIPLIER
)
from optimization.constraint_handler import FPLConstraintHandler, PoolEntry, format_cost, price_to_tenths
from optimization.exceptions import FormationInfeasibleError, InsufficientCandidatesError
from optimization.lineup_selector import Lineup, LineupSelector
from optimization.team_optimizer import OptimizedTeam, TeamOptimizer

logger = logging.getLogger(__name__)

# FPL API chip names map onto the names used here
_CHIP_ALIASES = {
    'wildcard': 'wildcard',
    'triple_captain': 'triple_captain',
    '3xc': 'triple_captain',
    'bench_boost': 'bench_boost',
    'bboost': 'bench_boost',
    'free_hit': 'free_hit',
    'freehit': 'free_hit',
}

_CHIP_RISKS = {
    'wildcard': ('Price changes', 'Injuries', 'Rotation risk'),
    'triple_captain': ('Rotation risk', 'Unexpected lineup changes'),
    'bench_boost': ('Unexpected rotation', 'Last-minute injuries'),
    'free_hit': ('Unexpected postponements', 'Team selection'),
}


def normalize_chip(name: str) -> str:
    key = str(name).strip().lower().replace(' ', '_').replace('-', '_')
    if key not in _CHIP_ALIASES:
        raise ValueError(f"Unknown chip {name!r}; expected one of {CHIP_PRIORITY}")
    return _CHIP_ALIASES[key]


@dataclass(frozen=True)
class ChipRecommendation:
    """Chip recommendation data class"""
    chip_name: str
    expected_gain: float
    success_percentage: int  # 0-95
    recommendation: str  # 'use' or 'save'
    reason: str
    risks: Tuple[str, ...]

    @property
    def use(self) -> bool:
        return self.recommendation == 'use'


@dataclass(frozen=True)
class ChipReport:
    """Every available chip evaluated, plus the single chip to play (if any)"""
    evaluations: Tuple[ChipRecommendation, ...]
    best: Optional[ChipRecommendation]
    alternatives: Tuple[str, ...]  # other playable chips worth at least half the best gain


class ChipStrategist:
    """Recommends at most ONE chip per round"""

    def __init__(self, constraint_handler: FPLConstraintHandler = None,
                 min_gain_thresholds: Dict[str, float] = None,
                 method: str = OPTIMIZATION_METHOD):
        self.constraint_handler = constraint_handler or FPLConstraintHandler()
        self.lineup_selector = LineupSelector(self.constraint_handler)
        self.optimizer = TeamOptimizer(self.constraint_handler, method)
        self.min_gain_thresholds = dict(CHIP_MIN_GAIN, **(min_gain_thresholds or {}))

    def analyze(self, current_squad: Iterable[PoolEntry],
                pool: Sequence[PoolEntry],
                bank: float,
                available_chips: Iterable[str]) -> ChipReport:
        """
        Evaluate the available chips for the coming round

        Expected gains, in predicted points:
        - triple_captain: the captain's extra score (x1.2 for FDR <= 2)
        - bench_boost: the available bench's forecast
        - free_hit: best XI for the squad value plus bank, minus the current XI
        - wildcard: best full squad for the same money, minus the current squad

        A chip is recommended for use when its gain reaches its threshold.

        Args:
            current_squad: Owned players (forecasts are refreshed from the pool)
            pool: Full player pool for the round
            bank: Money in the bank, in £M
            available_chips: Chips not yet played this season

        Returns:
            ChipReport

        Raises:
            ValueError: an unknown chip name
        """
        chips = []
        for name in available_chips:
            chip = normalize_chip(name)
            if chip not in chips:
                chips.append(chip)
        chips.sort(key=CHIP_PRIORITY.index)

        pool_by_id = {}
        for entry in pool:
            pool_by_id.setdefault(entry.player_id, entry)
        owned = [pool_by_id.get(e.player_id, e) for e in current_squad]

        try:
            lineup = self.lineup_selector.derive(owned)
        except FormationInfeasibleError as e:
            logger.warning("No legal starting XI from the current squad: %s", e)
            lineup = None

        optimal = None
        if 'free_hit' in chips or 'wildcard' in chips:
            optimal = self._optimal_team(owned, pool, bank)

        evaluations = []
        for chip in chips:
            if chip == 'triple_captain':
                gain, reason = self._triple_captain(lineup)
            elif chip == 'bench_boost':
                gain, reason = self._bench_boost(lineup)
            elif chip == 'free_hit':
                gain, reason = self._free_hit(owned, lineup, optimal)
            else:
                gain, reason = self._wildcard(owned, optimal)
            evaluations.append(self._recommendation(chip, gain, reason))
            logger.debug("%s: expected gain %.1f points", chip, gain)

        playable = [r for r in evaluations if r.use]
        best = None
        alternatives = ()
        if playable:
            # Highest gain; equal gains follow the chip priority order
            best = max(playable, key=lambda r: (r.expected_gain, -CHIP_PRIORITY.index(r.chip_name)))
            alternatives = tuple(
                r.chip_name for r in playable
                if r is not best and r.expected_gain >= best.expected_gain * 0.5
            )
            logger.info("Best chip: %s (expected gain: %.1f points)", best.chip_name, best.expected_gain)
        else:
            logger.info("No chips meet minimum gain thresholds")

        return ChipReport(evaluations=tuple(evaluations), best=best, alternatives=alternatives)

    def _recommendation(self, chip: str, gain: float, reason: str) -> ChipRecommendation:
        threshold = self.min_gain_thresholds[chip]
        success = int(min(95, max(0, round(50 * gain / threshold)))) if threshold > 0 else 95
        use = gain >= threshold
        if not use:
            reason = f"{reason}. Consider saving it for a better opportunity"
        return ChipRecommendation(
            chip_name=chip,
            expected_gain=gain,
            success_percentage=success,
            recommendation='use' if use else 'save',
            reason=reason,
            risks=_CHIP_RISKS[chip]
        )

    def _triple_captain(self, lineup: Optional[Lineup]) -> Tuple[float, str]:
        if lineup is None:
            return 0.0, "No legal starting XI to captain"
        captain = lineup.captain
        gain = captain.points * (TRIPLE_CAPTAIN_MULTIPLIER - CAPTAIN_MULTIPLIER)
        reason = f"{captain.name} has high predicted points ({captain.points:.1f})"
        if captain.player.fixture_difficulty <= 2:
            gain *= EASY_FIXTURE_BONUS
            reason += f" and easy fixture (FDR: {captain.player.fixture_difficulty})"
        return gain, reason

    def _bench_boost(self, lineup: Optional[Lineup]) -> Tuple[float, str]:
        if lineup is None:
            return 0.0, "No legal starting XI, so no bench to boost"
        gain = sum(e.points for e in lineup.bench if e.player.is_selectable)
        return gain, f"Bench expected to score {gain:.1f} points"

    def _free_hit(self, owned: List[PoolEntry], lineup: Optional[Lineup],
                  optimal: Optional[OptimizedTeam]) -> Tuple[float, str]:
        if optimal is None:
            return 0.0, "No legal one-week squad for the available money"
        current = lineup.predicted_points if lineup is not None else 0.0
        gain = max(0.0, optimal.lineup.predicted_points - current)
        missing = sum(1 for e in owned if not e.player.is_selectable)
        reason = f"One-week squad expected to score {gain:.1f} more points"
        if missing:
            reason += f"; {missing} players unavailable this gameweek"
        return gain, reason

    def _wildcard(self, owned: List[PoolEntry], optimal: Optional[OptimizedTeam]) -> Tuple[float, str]:
        if optimal is None:
            return 0.0, "No legal rebuilt squad for the available money"
        current = sum(e.points for e in owned if e.player.is_selectable)
        gain = max(0.0, optimal.squad.predicted_points - current)
        return gain, (f"Rebuilt squad for {format_cost(optimal.squad.budget_tenths)} "
                      f"expected to score {gain:.1f} more points")

    def _optimal_team(self, owned: List[PoolEntry], pool: Sequence[PoolEntry],
                      bank: float) -> Optional[OptimizedTeam]:
        """Best team for the squad's value plus bank"""
        budget_tenths = self.constraint_handler.squad_cost(owned) + price_to_tenths(bank)
        try:
            return self.optimizer.optimize(pool, budget_tenths / 10)
        except (InsufficientCandidatesError, FormationInfeasibleError) as e:
            logger.warning("Could not build a replacement squad: %s", e)
            return None

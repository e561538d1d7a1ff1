"""
Transfer planning: swap suggestions, what-if scenarios and gap to the optimum
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from optimization.config import (
    POINTS_PER_TRANSFER, MAX_SUGGESTIONS,
    HIGH_PRIORITY_THRESHOLD, MEDIUM_PRIORITY_THRESHOLD
)
from optimization.constraint_handler import (
    FPLConstraintHandler, ForecastStatus, PoolEntry, format_cost, price_to_tenths, rank_entries
)
from optimization.exceptions import FormationInfeasibleError, InvalidScenarioError
from optimization.lineup_selector import Lineup, LineupSelector

logger = logging.getLogger(__name__)


class Priority(Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


def classify_priority(impact: float,
                      high: float = HIGH_PRIORITY_THRESHOLD,
                      medium: float = MEDIUM_PRIORITY_THRESHOLD) -> Priority:
    """Impact above `high` is HIGH, above `medium` is MEDIUM, anything else LOW"""
    if impact > high:
        return Priority.HIGH
    if impact > medium:
        return Priority.MEDIUM
    return Priority.LOW


@dataclass(frozen=True)
class TransferSuggestion:
    """One-for-one swap that keeps the squad legal"""
    player_out: PoolEntry
    player_in: PoolEntry
    priority: Priority
    points_impact: float
    reason: str
    cost_difference: int  # tenths, positive when the incoming player is dearer


class ReportStatus(Enum):
    TRANSFERS_SUGGESTED = 'transfers_suggested'
    NO_TRANSFERS_NEEDED = 'no_transfers_needed'
    NO_LEGAL_SWAPS = 'no_legal_swaps'


@dataclass(frozen=True)
class TransferReport:
    """Ranked suggestions plus the owned players that produced none"""
    suggestions: Tuple[TransferSuggestion, ...]
    no_improvement: Tuple[PoolEntry, ...]  # best legal swap does not improve
    unavailable: Tuple[PoolEntry, ...]  # no legal swap at all
    caveats: Tuple[str, ...]
    hit_cost: int
    status: ReportStatus

    @property
    def high_priority(self) -> List[TransferSuggestion]:
        return [s for s in self.suggestions if s.priority is Priority.HIGH]


@dataclass(frozen=True)
class ScenarioRound:
    round_id: int
    projected_points: float
    baseline_points: float

    @property
    def delta(self) -> float:
        return self.projected_points - self.baseline_points


@dataclass(frozen=True)
class ScenarioResult:
    """Projected lineup points per round after applying explicit swaps"""
    squad_ids: Tuple[int, ...]
    rounds: Tuple[ScenarioRound, ...]
    total_projected: float
    total_baseline: float
    is_legal: bool
    violations: Tuple[str, ...]

    @property
    def delta(self) -> float:
        return self.total_projected - self.total_baseline


@dataclass(frozen=True)
class TeamComparison:
    """Current squad against the optimal squad for the same round"""
    current_lineup: Lineup
    optimal_lineup: Lineup
    current_points: float
    optimal_points: float
    points_gap: float
    performance_pct: int


class TransferPlanner:
    """Find improving swaps and evaluate explicit transfer scenarios"""

    def __init__(self, constraint_handler: FPLConstraintHandler = None,
                 lineup_selector: LineupSelector = None,
                 high_threshold: float = HIGH_PRIORITY_THRESHOLD,
                 medium_threshold: float = MEDIUM_PRIORITY_THRESHOLD):
        self.constraint_handler = constraint_handler or FPLConstraintHandler()
        self.lineup_selector = lineup_selector or LineupSelector(self.constraint_handler)
        self.high_threshold = high_threshold
        self.medium_threshold = medium_threshold

    def suggest_transfers(self, current_squad: Iterable[PoolEntry],
                          pool: Sequence[PoolEntry],
                          bank: float,
                          free_transfers: int = 1,
                          max_suggestions: int = MAX_SUGGESTIONS) -> TransferReport:
        """
        Suggest the best same-position replacement for each owned player

        Each suggestion is valid on its own: the price rise fits in the bank
        and the incoming player's club stays within the team limit once the
        outgoing player has left. The current squad may already be illegal;
        suggestions are still produced against it.

        Args:
            current_squad: Owned players (forecasts are refreshed from the pool)
            pool: Full player pool for the round
            bank: Money in the bank, in £M
            free_transfers: Free transfers available this round
            max_suggestions: Maximum number of suggestions returned

        Returns:
            TransferReport
        """
        bank_tenths = price_to_tenths(bank)
        pool_by_id = {}
        for entry in pool:
            pool_by_id.setdefault(entry.player_id, entry)

        owned = [pool_by_id.get(e.player_id, e) for e in current_squad]
        owned_ids = {e.player_id for e in owned}
        team_counts = self.constraint_handler.team_counts(owned)
        team_limit = self.constraint_handler.team_limit

        # Full post-swap legality is only meaningful from a legal starting point
        cap = self.constraint_handler.squad_cost(owned) + bank_tenths
        check_squad = self.constraint_handler.is_legal_squad(owned, cap)

        candidates = rank_entries(
            e for e in pool_by_id.values()
            if e.player_id not in owned_ids and e.player.is_selectable
        )

        found = []
        no_improvement = []
        unavailable = []
        for player_out in owned:
            best = None
            for player_in in candidates:
                if player_in.position is not player_out.position:
                    continue
                if player_in.now_cost - player_out.now_cost > bank_tenths:
                    continue
                incoming_count = team_counts[player_in.team_id] - (player_in.team_id == player_out.team_id)
                if incoming_count + 1 > team_limit:
                    continue
                if check_squad:
                    swapped = [player_in if e is player_out else e for e in owned]
                    if not self.constraint_handler.is_legal_squad(swapped, cap):
                        continue
                best = player_in
                break

            if best is None:
                unavailable.append(player_out)
                continue

            impact = best.points - player_out.points
            if impact <= 0:
                no_improvement.append(player_out)
                continue

            found.append(TransferSuggestion(
                player_out=player_out,
                player_in=best,
                priority=classify_priority(impact, self.high_threshold, self.medium_threshold),
                points_impact=impact,
                reason=(f"{best.name} has better predicted points ({best.points:.1f}) "
                        f"vs {player_out.name} ({player_out.points:.1f})"),
                cost_difference=best.now_cost - player_out.now_cost
            ))

        found.sort(key=lambda s: -s.points_impact)
        suggestions = tuple(found[:max_suggestions])

        caveats = []
        high_count = sum(1 for s in suggestions if s.priority is Priority.HIGH)
        extra = max(0, high_count - free_transfers)
        hit_cost = extra * POINTS_PER_TRANSFER
        if extra:
            caveats.append(
                f"{high_count} high priority transfers but only {free_transfers} free "
                f"transfer{'s' if free_transfers != 1 else ''}; "
                f"{extra} extra transfer{'s' if extra != 1 else ''} would cost {hit_cost} points"
            )

        if suggestions:
            status = ReportStatus.TRANSFERS_SUGGESTED
        elif no_improvement:
            status = ReportStatus.NO_TRANSFERS_NEEDED
        else:
            status = ReportStatus.NO_LEGAL_SWAPS

        logger.info("Transfer search: %d suggestions, %d without improvement, %d without a legal swap",
                    len(suggestions), len(no_improvement), len(unavailable))

        return TransferReport(
            suggestions=suggestions,
            no_improvement=tuple(no_improvement),
            unavailable=tuple(unavailable),
            caveats=tuple(caveats),
            hit_cost=hit_cost,
            status=status
        )

    def evaluate_scenario(self, current_squad_ids: Sequence[int],
                          swaps: Sequence[Tuple[int, int]],
                          pools_by_round: Mapping[int, Sequence[PoolEntry]],
                          rounds: Sequence[int] = None,
                          bank: Optional[float] = None) -> ScenarioResult:
        """
        Project lineup points per round for an explicit list of swaps

        Swaps are applied in order. Every round derives its lineup from that
        round's forecasts without availability filtering; the baseline is the
        unchanged squad under the same forecasts.

        Args:
            current_squad_ids: Owned player IDs
            swaps: (out_id, in_id) pairs
            pools_by_round: Pool entries keyed by round
            rounds: Rounds to project (defaults to every round in pools_by_round, ascending)
            bank: Money in the bank in £M; when omitted the cap is the larger of
                the squad value and the configured budget

        Returns:
            ScenarioResult

        Raises:
            InvalidScenarioError: a swap cannot be applied to the squad
        """
        rounds = sorted(pools_by_round) if rounds is None else list(rounds)
        missing_rounds = [r for r in rounds if r not in pools_by_round]
        if missing_rounds:
            raise InvalidScenarioError(f"No forecasts supplied for rounds {missing_rounds}")

        players = {}
        for round_id in rounds:
            for entry in pools_by_round[round_id]:
                players.setdefault(entry.player_id, entry.player)

        unknown = [pid for pid in current_squad_ids if pid not in players]
        if unknown:
            raise InvalidScenarioError(f"Owned players not found in any pool: {unknown}")

        squad_ids = list(current_squad_ids)
        for out_id, in_id in swaps:
            if out_id not in squad_ids:
                raise InvalidScenarioError(f"Player {out_id} is not in the squad")
            if in_id in squad_ids:
                raise InvalidScenarioError(f"Player {in_id} is already in the squad")
            if in_id not in players:
                raise InvalidScenarioError(f"Player {in_id} is not in the player pool")
            if players[in_id].position is not players[out_id].position:
                raise InvalidScenarioError(
                    f"Cannot swap {players[out_id].position.value} {out_id} "
                    f"for {players[in_id].position.value} {in_id}"
                )
            squad_ids[squad_ids.index(out_id)] = in_id

        current_cost = self.constraint_handler.squad_cost(players[pid] for pid in current_squad_ids)
        if bank is None:
            cap = max(current_cost, self.constraint_handler.budget_tenths)
        else:
            cap = current_cost + price_to_tenths(bank)
        violations = self.constraint_handler.validate_squad([players[pid] for pid in squad_ids], cap)

        results = []
        for round_id in rounds:
            forecasts = {e.player_id: e for e in pools_by_round[round_id]}
            baseline = self._round_points(current_squad_ids, players, forecasts)
            projected = self._round_points(squad_ids, players, forecasts)
            results.append(ScenarioRound(round_id, projected, baseline))
            logger.debug("Round %s: %.1f projected vs %.1f baseline", round_id, projected, baseline)

        return ScenarioResult(
            squad_ids=tuple(squad_ids),
            rounds=tuple(results),
            total_projected=sum(r.projected_points for r in results),
            total_baseline=sum(r.baseline_points for r in results),
            is_legal=not violations,
            violations=tuple(violations)
        )

    def _round_points(self, squad_ids: Sequence[int], players: Dict,
                      forecasts: Mapping[int, PoolEntry]) -> float:
        entries = []
        for pid in squad_ids:
            entry = forecasts.get(pid)
            entries.append(entry if entry is not None else PoolEntry(players[pid], None, ForecastStatus.ABSENT))
        return self.lineup_selector.derive(entries, exclude_unavailable=False).predicted_points

    def compare_to_optimal(self, current_squad: Iterable[PoolEntry],
                           optimal_squad: Iterable[PoolEntry]) -> TeamComparison:
        """
        Compare the lineup points of the current squad with the optimal squad

        Args:
            current_squad: Owned players with forecasts
            optimal_squad: Squad chosen by the selector for the same round

        Returns:
            TeamComparison
        """
        current_entries = list(current_squad)
        try:
            current_lineup = self.lineup_selector.derive(current_entries)
        except FormationInfeasibleError as e:
            # Too many absentees to field a legal XI; rate the squad as picked
            logger.warning("Current squad cannot field an available XI (%s); including unavailable players", e)
            current_lineup = self.lineup_selector.derive(current_entries, exclude_unavailable=False)
        optimal_lineup = self.lineup_selector.derive(optimal_squad)

        current_points = current_lineup.predicted_points
        optimal_points = optimal_lineup.predicted_points
        if optimal_points > 0:
            performance = int(current_points / optimal_points * 100 + 0.5)
        else:
            performance = 0

        logger.info("Current lineup %.1f pts vs optimal %.1f pts (%d%%), squad value %s",
                    current_points, optimal_points, performance,
                    format_cost(self.constraint_handler.squad_cost(current_entries)))

        return TeamComparison(
            current_lineup=current_lineup,
            optimal_lineup=optimal_lineup,
            current_points=current_points,
            optimal_points=optimal_points,
            points_gap=optimal_points - current_points,
            performance_pct=performance
        )

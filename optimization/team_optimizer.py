"""
Squad selection engine for FPL

The default selector is a greedy-with-quota heuristic. Exact optimisation under
the team limit is a knapsack variant, so the greedy result is an approximation;
MipSquadSelector solves the same contract exactly with PuLP when an exact
answer is worth the solver time.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pulp

from optimization.config import BUDGET, OPTIMIZATION_METHOD, MAX_SOLUTION_TIME
from optimization.constraint_handler import (
    FPLConstraintHandler, PoolEntry, Position, Squad,
    price_to_tenths, rank_entries, format_cost
)
from optimization.exceptions import InsufficientCandidatesError
from optimization.lineup_selector import Lineup, LineupSelector

logger = logging.getLogger(__name__)

_POINTS_TOLERANCE = 1e-9


@dataclass
class _GreedyPass:
    """Outcome of one greedy pass at a fixed budget"""
    budget_tenths: int
    selected: List[PoolEntry] = field(default_factory=list)
    spent: int = 0
    # Smallest budget at which every pick of this pass is still accepted
    required: int = 0
    starved: Optional[Position] = None
    filled: int = 0

    @property
    def complete(self) -> bool:
        return self.starved is None

    @property
    def points(self) -> float:
        return sum(e.points for e in self.selected)


class SquadSelector:
    """Common candidate handling for squad selectors"""

    def __init__(self, constraint_handler: FPLConstraintHandler = None):
        self.constraint_handler = constraint_handler or FPLConstraintHandler()

    def select(self, pool: Sequence[PoolEntry], budget: float = BUDGET) -> Squad:
        raise NotImplementedError

    def _candidates_by_position(self, pool: Sequence[PoolEntry]) -> Dict[Position, List[PoolEntry]]:
        """
        Partition selectable pool entries by position, ranked for selection

        Raises:
            InsufficientCandidatesError: a position has fewer selectable players than its quota
        """
        seen = set()
        grouped = {position: [] for position in self.constraint_handler.squad_quotas}
        for entry in pool:
            if entry.player_id in seen:
                logger.warning("Duplicate pool entry for player %s ignored", entry.player_id)
                continue
            seen.add(entry.player_id)
            if entry.player.is_selectable and entry.position in grouped:
                grouped[entry.position].append(entry)

        for position, quota in self.constraint_handler.squad_quotas.items():
            available = len(grouped[position])
            if available < quota:
                raise InsufficientCandidatesError(
                    position, quota, available,
                    reason=f"only {available} selectable {position.label.lower()}s in pool"
                )

        return {position: rank_entries(entries) for position, entries in grouped.items()}

    def _ordered(self, entries: Sequence[PoolEntry]) -> List[PoolEntry]:
        """Canonical squad order: by position, then by ranking"""
        order = {position: i for i, position in enumerate(Position)}
        return sorted(rank_entries(entries), key=lambda e: order[e.position])


class GreedySquadSelector(SquadSelector):
    """Greedy-with-quota squad selection with a monotone budget sweep"""

    def select(self, pool: Sequence[PoolEntry], budget: float = BUDGET) -> Squad:
        """
        Select a legal squad maximising total forecast

        Each pass walks positions in canonical order and takes the best-ranked
        players that keep within the team limit and leave enough budget to
        fill every remaining slot at its cheapest. A pass at a budget
        reproduces itself at any budget between the smallest budget its picks
        needed and the budget it was given, so the sweep only revisits budgets
        strictly below that requirement. The best complete pass wins, which
        keeps the result monotone in the budget.

        Args:
            pool: Pool entries (forecast absent counts as zero)
            budget: Budget cap in £M

        Returns:
            Legal Squad

        Raises:
            InsufficientCandidatesError: no pass could fill every quota
        """
        budget_tenths = price_to_tenths(budget)
        if budget_tenths < 0:
            raise ValueError(f"Budget cannot be negative ({budget})")

        ranked = self._candidates_by_position(pool)
        quotas = self.constraint_handler.squad_quotas

        # Cheapest conceivable squad, ignoring the team limit
        floor = sum(
            sum(sorted(e.now_cost for e in ranked[position])[:quota])
            for position, quota in quotas.items()
        )
        # Best conceivable points, ignoring budget and team limit
        ceiling = sum(
            sum(e.points for e in ranked[position][:quota])
            for position, quota in quotas.items()
        )

        reserves = self._slot_reserves(ranked)
        first = self._greedy_pass(ranked, budget_tenths, reserves)
        best = first if first.complete else None
        passes = 1
        current = first.required - 1

        while current >= floor:
            if best is not None and best.points >= ceiling - _POINTS_TOLERANCE:
                break
            result = self._greedy_pass(ranked, current, reserves)
            passes += 1
            if result.complete and (best is None or result.points > best.points + _POINTS_TOLERANCE):
                best = result
            current = result.required - 1

        logger.debug("Greedy sweep finished after %d passes", passes)

        if best is None:
            raise InsufficientCandidatesError(
                first.starved, quotas[first.starved], first.filled,
                reason=f"budget {format_cost(budget_tenths)} or team limit exhausted"
            )

        if best is not first:
            logger.info("Budget sweep improved greedy squad: %.1f -> %.1f points (pass budget %s)",
                        first.points if first.complete else 0.0, best.points,
                        format_cost(best.budget_tenths))

        return Squad(tuple(self._ordered(best.selected)), budget_tenths, self.constraint_handler)

    def _slot_reserves(self, ranked: Dict[Position, List[PoolEntry]]) -> Dict[Position, List[int]]:
        """
        Cheapest cost of filling k slots of each position

        Returns:
            Per position, a list whose k-th item is the sum of the k cheapest
            prices (k = 0 .. quota)
        """
        reserves = {}
        for position, quota in self.constraint_handler.squad_quotas.items():
            costs = sorted(e.now_cost for e in ranked[position])[:quota]
            sums = [0]
            for cost in costs:
                sums.append(sums[-1] + cost)
            reserves[position] = sums
        return reserves

    def _greedy_pass(self, ranked: Dict[Position, List[PoolEntry]], budget_tenths: int,
                     reserves: Dict[Position, List[int]]) -> _GreedyPass:
        result = _GreedyPass(budget_tenths)
        team_counts = Counter()
        team_limit = self.constraint_handler.team_limit
        quotas = self.constraint_handler.squad_quotas

        positions = list(quotas)
        for index, position in enumerate(positions):
            quota = quotas[position]
            later = sum(reserves[p][quotas[p]] for p in positions[index + 1:])
            added = 0
            for entry in ranked[position]:
                if added >= quota:
                    break
                # Keep enough back to fill the open slots with the cheapest players
                needed = result.spent + entry.now_cost + reserves[position][quota - added - 1] + later
                if needed > budget_tenths:
                    continue
                if team_counts[entry.team_id] >= team_limit:
                    continue
                result.selected.append(entry)
                result.spent += entry.now_cost
                result.required = max(result.required, needed)
                team_counts[entry.team_id] += 1
                added += 1

            if added < quota:
                result.starved = position
                result.filled = added
                return result

        return result


class MipSquadSelector(SquadSelector):
    """Exact squad selection using Mixed Integer Programming"""

    def __init__(self, constraint_handler: FPLConstraintHandler = None,
                 time_limit: int = MAX_SOLUTION_TIME):
        super().__init__(constraint_handler)
        self.time_limit = time_limit

    def select(self, pool: Sequence[PoolEntry], budget: float = BUDGET) -> Squad:
        budget_tenths = price_to_tenths(budget)
        ranked = self._candidates_by_position(pool)
        candidates = [e for entries in ranked.values() for e in entries]

        prob = pulp.LpProblem("FPL_Squad_Selection", pulp.LpMaximize)

        # x_i = 1 if player i is selected in squad, 0 otherwise
        x = pulp.LpVariable.dicts("squad", [e.player_id for e in candidates], 0, 1, pulp.LpBinary)

        # OBJECTIVE: maximise total forecast of the squad
        prob += pulp.lpSum([e.points * x[e.player_id] for e in candidates])

        # 1. Position quotas (2-5-5-3)
        for position, quota in self.constraint_handler.squad_quotas.items():
            prob += pulp.lpSum([x[e.player_id] for e in ranked[position]]) == quota

        # 2. Budget constraint, in integer tenths
        prob += pulp.lpSum([e.now_cost * x[e.player_id] for e in candidates]) <= budget_tenths

        # 3. Team limit constraint
        for team_id in sorted({e.team_id for e in candidates}):
            team_players = [e for e in candidates if e.team_id == team_id]
            prob += pulp.lpSum([x[e.player_id] for e in team_players]) <= self.constraint_handler.team_limit

        solver = pulp.PULP_CBC_CMD(msg=False, timeLimit=self.time_limit)
        prob.solve(solver)
        status = pulp.LpStatus[prob.status]

        if status != "Optimal":
            # The greedy pass names the starved position, or recovers a squad
            # if the solver stopped for another reason
            logger.warning("MIP squad selection ended with status %s; using greedy selection", status)
            return GreedySquadSelector(self.constraint_handler).select(pool, budget)

        selected = [e for e in candidates if pulp.value(x[e.player_id]) > 0.5]
        return Squad(tuple(self._ordered(selected)), budget_tenths, self.constraint_handler)


@dataclass(frozen=True)
class OptimizedTeam:
    """Selected squad together with its derived lineup"""
    squad: Squad
    lineup: Lineup
    method: str
    timestamp: str


class TeamOptimizer:
    """Optimize FPL squad selection and derive the matchday lineup"""

    SELECTORS = {
        'greedy': GreedySquadSelector,
        'mip': MipSquadSelector,
    }

    def __init__(self, constraint_handler: FPLConstraintHandler = None,
                 method: str = OPTIMIZATION_METHOD):
        if method not in self.SELECTORS:
            raise ValueError(f"Unknown optimization method {method!r}; expected one of {sorted(self.SELECTORS)}")
        self.constraint_handler = constraint_handler or FPLConstraintHandler()
        self.method = method
        self.selector = self.SELECTORS[method](self.constraint_handler)

    def select_squad(self, pool: Sequence[PoolEntry], budget: float = BUDGET) -> Squad:
        squad = self.selector.select(pool, budget)
        logger.info("Selected squad (%s): %s, %.1f predicted points",
                    self.method, format_cost(squad.total_cost), squad.predicted_points)
        return squad

    def optimize(self, pool: Sequence[PoolEntry], budget: float = BUDGET) -> OptimizedTeam:
        """Select a squad and derive its starting XI and captaincy"""
        squad = self.select_squad(pool, budget)
        lineup = LineupSelector(self.constraint_handler).derive(squad)
        return OptimizedTeam(
            squad=squad,
            lineup=lineup,
            method=self.method,
            timestamp=datetime.now().isoformat()
        )


def select_squad(pool: Sequence[PoolEntry], budget: float = BUDGET,
                 method: str = OPTIMIZATION_METHOD) -> Squad:
    """Select a squad from a pool with the configured selector"""
    return TeamOptimizer(method=method).select_squad(pool, budget)

"""
Team Optimization Module for the FPL gameweek advisor

Key components:
- FPLConstraintHandler: Enforces FPL rules (quotas, budget, team limits, formation)
- TeamOptimizer: Squad selection (greedy-with-quota, or exact MIP with PuLP)
- LineupSelector: Starting XI, bench and captaincy for a squad
- CaptainSelector: Identifies best captain and vice-captain
- TransferPlanner: Suggests improving swaps and evaluates what-if scenarios
- DifferentialAnalyzer: Flags well-forecast, low-ownership players
- ChipStrategist: Evaluates chips and recommends at most one per round
"""

from .config import (
    BUDGET, SQUAD_QUOTAS, TEAM_LIMIT, SQUAD_SIZE,
    STARTING_XI_SIZE, OPTIMIZATION_METHOD
)
from .exceptions import (
    OptimizationError, InsufficientCandidatesError, FormationInfeasibleError,
    InvalidSquadError, InvalidScenarioError
)
from .constraint_handler import (
    FPLConstraintHandler, Player, Position, Availability, Forecast, ForecastStatus,
    PoolEntry, Squad, build_pool, price_to_tenths, is_legal_squad, is_legal_lineup, team_count
)
from .team_optimizer import TeamOptimizer, GreedySquadSelector, MipSquadSelector, select_squad
from .captain_selector import CaptainSelector, CaptainPick, lineup_points
from .lineup_selector import Lineup, LineupSelector, derive_lineup
from .transfer_planner import (
    TransferPlanner, TransferSuggestion, TransferReport, ReportStatus, Priority,
    ScenarioResult, ScenarioRound, TeamComparison, classify_priority
)
from .differentials import DifferentialAnalyzer, DifferentialAlert, AlertType, Hype, find_differentials
from .chip_strategist import ChipStrategist, ChipRecommendation, ChipReport

__all__ = [
    'FPLConstraintHandler',
    'Player',
    'Position',
    'Availability',
    'Forecast',
    'ForecastStatus',
    'PoolEntry',
    'Squad',
    'build_pool',
    'price_to_tenths',
    'is_legal_squad',
    'is_legal_lineup',
    'team_count',
    'TeamOptimizer',
    'GreedySquadSelector',
    'MipSquadSelector',
    'select_squad',
    'CaptainSelector',
    'CaptainPick',
    'lineup_points',
    'Lineup',
    'LineupSelector',
    'derive_lineup',
    'TransferPlanner',
    'TransferSuggestion',
    'TransferReport',
    'ReportStatus',
    'Priority',
    'ScenarioResult',
    'ScenarioRound',
    'TeamComparison',
    'classify_priority',
    'DifferentialAnalyzer',
    'DifferentialAlert',
    'AlertType',
    'Hype',
    'find_differentials',
    'ChipStrategist',
    'ChipRecommendation',
    'ChipReport',
    'OptimizationError',
    'InsufficientCandidatesError',
    'FormationInfeasibleError',
    'InvalidSquadError',
    'InvalidScenarioError',
    'BUDGET',
    'SQUAD_QUOTAS',
    'TEAM_LIMIT',
    'SQUAD_SIZE'
]

__version__ = '1.0.0'

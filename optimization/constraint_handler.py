"""
Handle FPL rules and constraints for squad selection

Prices are held as integer tenths of £1M (the FPL ``now_cost`` unit) so that
budget checks never accumulate floating point drift.
"""
import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from optimization.config import (
    BUDGET, TEAM_LIMIT, SQUAD_QUOTAS, STARTING_XI_SIZE,
    FORMATION_MINIMUMS, STARTING_GOALKEEPERS, MAX_FORECAST_POINTS
)
from optimization.exceptions import InvalidSquadError

logger = logging.getLogger(__name__)


class Position(Enum):
    """Player position, declared in canonical selection order"""
    GKP = 'GKP'
    DEF = 'DEF'
    MID = 'MID'
    FWD = 'FWD'

    @classmethod
    def parse(cls, value) -> 'Position':
        """Parse a position from an enum, code, long name or FPL element_type"""
        if isinstance(value, cls):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            by_element_type = {1: cls.GKP, 2: cls.DEF, 3: cls.MID, 4: cls.FWD}
            if int(value) in by_element_type:
                return by_element_type[int(value)]
            raise ValueError(f"Unknown element_type: {value}")
        key = str(value).strip().upper()
        if key.isdigit():
            return cls.parse(int(key))
        if key in _POSITION_ALIASES:
            return _POSITION_ALIASES[key]
        raise ValueError(f"Unknown position: {value!r}")

    @property
    def label(self) -> str:
        return _POSITION_LABELS[self]


_POSITION_ALIASES = {
    'GKP': Position.GKP, 'GK': Position.GKP, 'GOALKEEPER': Position.GKP,
    'DEF': Position.DEF, 'DEFENDER': Position.DEF,
    'MID': Position.MID, 'MIDFIELDER': Position.MID,
    'FWD': Position.FWD, 'FORWARD': Position.FWD,
}

_POSITION_LABELS = {
    Position.GKP: 'Goalkeeper',
    Position.DEF: 'Defender',
    Position.MID: 'Midfielder',
    Position.FWD: 'Forward',
}


class Availability(Enum):
    """Availability status as published by the roster source"""
    AVAILABLE = 'a'
    DOUBTFUL = 'd'
    INJURED = 'i'
    SUSPENDED = 's'
    UNAVAILABLE = 'u'

    @classmethod
    def parse(cls, value) -> 'Availability':
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.AVAILABLE
        code = str(value).strip().lower()
        for status in cls:
            if code in (status.value, status.name.lower()):
                return status
        # FPL also publishes 'n' (not in squad / on loan); anything unknown is unavailable
        return cls.UNAVAILABLE


SELECTABLE_STATUSES = frozenset({Availability.AVAILABLE, Availability.DOUBTFUL})


class ForecastStatus(Enum):
    """Whether a pool entry carries a usable forecast for the target round"""
    SCORED = 'scored'
    ABSENT = 'absent'
    STALE = 'stale'


def price_to_tenths(price: Union[float, int, str, Decimal]) -> int:
    """Convert a price in £M (one decimal) to integer tenths"""
    tenths = (Decimal(str(price)) * 10).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return int(tenths)


def format_cost(tenths: int) -> str:
    """Render integer tenths as a £M string"""
    sign = '-' if tenths < 0 else ''
    return f"{sign}£{abs(tenths) // 10}.{abs(tenths) % 10}M"


BUDGET_TENTHS = price_to_tenths(BUDGET)


@dataclass(frozen=True)
class Player:
    """Player snapshot for one optimization run"""
    player_id: int
    name: str
    position: Position
    team_id: int
    now_cost: int  # tenths of £1M
    status: Availability = Availability.AVAILABLE
    team_name: str = ''
    fixture_difficulty: int = 3  # 1 = easiest, 5 = hardest
    form: float = 0.0
    total_points: int = 0
    minutes: int = 0
    selected_by_percent: float = 0.0  # share of managers owning the player

    def __post_init__(self):
        object.__setattr__(self, 'position', Position.parse(self.position))
        object.__setattr__(self, 'status', Availability.parse(self.status))
        if isinstance(self.now_cost, bool) or not isinstance(self.now_cost, int):
            raise ValueError(f"now_cost must be integer tenths, got {self.now_cost!r}")
        if self.now_cost < 0:
            raise ValueError(f"now_cost cannot be negative ({self.now_cost})")
        if not 1 <= self.fixture_difficulty <= 5:
            raise ValueError(f"fixture_difficulty must be 1-5, got {self.fixture_difficulty}")

    @property
    def cost(self) -> float:
        return self.now_cost / 10.0

    @property
    def is_selectable(self) -> bool:
        return self.status in SELECTABLE_STATUSES


@dataclass(frozen=True)
class Forecast:
    """Expected points for one player in one round; None means no forecast"""
    player_id: int
    round_id: int
    predicted_points: Optional[float] = None


def clean_forecast(value) -> Optional[float]:
    """
    Normalise a raw forecast value

    Missing, non-numeric and non-finite values become None (unscored). Finite
    values are clamped to [0, MAX_FORECAST_POINTS].
    """
    if value is None:
        return None
    try:
        points = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(points):
        return None
    return min(max(points, 0.0), MAX_FORECAST_POINTS)


@dataclass(frozen=True)
class PoolEntry:
    """A player paired with its forecast for the round being optimized"""
    player: Player
    predicted_points: Optional[float] = None
    forecast_status: Optional[ForecastStatus] = None

    def __post_init__(self):
        if self.forecast_status is None:
            status = ForecastStatus.ABSENT if self.predicted_points is None else ForecastStatus.SCORED
            object.__setattr__(self, 'forecast_status', status)
        if self.forecast_status is not ForecastStatus.SCORED and self.predicted_points is not None:
            object.__setattr__(self, 'predicted_points', None)
        if self.forecast_status is ForecastStatus.SCORED and self.predicted_points is None:
            # A scored entry without a value reads as a missing forecast
            object.__setattr__(self, 'forecast_status', ForecastStatus.ABSENT)

    @property
    def player_id(self) -> int:
        return self.player.player_id

    @property
    def name(self) -> str:
        return self.player.name

    @property
    def position(self) -> Position:
        return self.player.position

    @property
    def team_id(self) -> int:
        return self.player.team_id

    @property
    def now_cost(self) -> int:
        return self.player.now_cost

    @property
    def is_scored(self) -> bool:
        return self.forecast_status is ForecastStatus.SCORED

    @property
    def points(self) -> float:
        """Ranking value: unscored entries count as zero"""
        return self.predicted_points if self.predicted_points is not None else 0.0

    def with_forecast(self, predicted_points: Optional[float]) -> 'PoolEntry':
        return PoolEntry(self.player, clean_forecast(predicted_points))


def ranking_key(entry: PoolEntry) -> Tuple[float, int]:
    """Forecast descending, then cheapest first; sorted() keeps input order for the rest"""
    return (-entry.points, entry.now_cost)


def rank_entries(entries: Iterable[PoolEntry]) -> List[PoolEntry]:
    return sorted(entries, key=ranking_key)


def build_pool(players: Iterable[Player],
               forecasts: Union[Iterable[Forecast], Mapping[int, Forecast]],
               round_id: int) -> List[PoolEntry]:
    """
    Pair players with their forecasts for a round

    Args:
        players: Roster snapshot
        forecasts: Forecast objects (any rounds), or a mapping keyed by player_id
        round_id: Round being optimized

    Returns:
        One PoolEntry per player, in roster order. Players without a forecast
        are ABSENT; players whose only forecast is for another round are STALE.
    """
    if isinstance(forecasts, Mapping):
        forecasts = forecasts.values()

    by_player: Dict[int, Forecast] = {}
    for forecast in forecasts:
        current = by_player.get(forecast.player_id)
        if current is None or (current.round_id != round_id and forecast.round_id == round_id):
            by_player[forecast.player_id] = forecast

    pool = []
    for player in players:
        forecast = by_player.get(player.player_id)
        if forecast is None:
            pool.append(PoolEntry(player, None, ForecastStatus.ABSENT))
        elif forecast.round_id != round_id:
            pool.append(PoolEntry(player, None, ForecastStatus.STALE))
        else:
            pool.append(PoolEntry(player, clean_forecast(forecast.predicted_points)))

    counts = Counter(entry.forecast_status for entry in pool)
    logger.info("Built pool for round %s: %d scored, %d absent, %d stale",
                round_id, counts[ForecastStatus.SCORED], counts[ForecastStatus.ABSENT],
                counts[ForecastStatus.STALE])
    return pool


def _as_player(item) -> Player:
    return item.player if isinstance(item, PoolEntry) else item


class FPLConstraintHandler:
    """Handle all FPL rules and constraints"""

    def __init__(self, budget: float = BUDGET,
                 team_limit: int = TEAM_LIMIT,
                 squad_quotas: Mapping = None,
                 formation_minimums: Mapping = None):
        self.budget_tenths = price_to_tenths(budget)
        self.team_limit = team_limit
        self.squad_quotas = {Position.parse(k): v for k, v in (squad_quotas or SQUAD_QUOTAS).items()}
        self.squad_size = sum(self.squad_quotas.values())
        self.formation_minimums = {
            Position.parse(k): v for k, v in (formation_minimums or FORMATION_MINIMUMS).items()
        }
        self.starting_xi_size = STARTING_XI_SIZE
        self.starting_goalkeepers = STARTING_GOALKEEPERS

    def squad_cost(self, entries: Iterable) -> int:
        """Total cost in tenths"""
        return sum(_as_player(e).now_cost for e in entries)

    def team_counts(self, entries: Iterable) -> Counter:
        return Counter(_as_player(e).team_id for e in entries)

    def team_count(self, entries: Iterable, team_id: int) -> int:
        return sum(1 for e in entries if _as_player(e).team_id == team_id)

    def position_counts(self, entries: Iterable) -> Counter:
        return Counter(_as_player(e).position for e in entries)

    def validate_squad(self, entries: Sequence, budget_tenths: Optional[int] = None) -> List[str]:
        """
        Validate if a squad complies with FPL rules

        Args:
            entries: PoolEntry or Player objects
            budget_tenths: Budget cap in tenths (defaults to the handler budget)

        Returns:
            List of error messages, empty when the squad is legal
        """
        errors = []
        players = [_as_player(e) for e in entries]
        cap = self.budget_tenths if budget_tenths is None else budget_tenths

        # 1. Squad size and distinct players
        if len(players) != self.squad_size:
            errors.append(f"Squad must have exactly {self.squad_size} players, has {len(players)}")
        ids = [p.player_id for p in players]
        if len(set(ids)) != len(ids):
            errors.append("Squad contains the same player more than once")

        # 2. Position quotas
        position_counts = self.position_counts(players)
        for position, quota in self.squad_quotas.items():
            if position_counts[position] != quota:
                errors.append(f"Need {quota} {position.label}s, have {position_counts[position]}")

        # 3. Budget
        total_cost = self.squad_cost(players)
        if total_cost > cap:
            errors.append(f"Total cost {format_cost(total_cost)} exceeds budget {format_cost(cap)}")

        # 4. Team limit
        for team_id, count in sorted(self.team_counts(players).items()):
            if count > self.team_limit:
                errors.append(f"Cannot have more than {self.team_limit} players from team {team_id} (have {count})")

        return errors

    def is_legal_squad(self, entries: Sequence, budget_tenths: Optional[int] = None) -> bool:
        return not self.validate_squad(entries, budget_tenths)

    def validate_lineup(self, squad: Iterable, subset: Sequence) -> List[str]:
        """
        Validate a starting XI drawn from a squad

        Args:
            squad: The 15 squad members
            subset: Proposed starters

        Returns:
            List of error messages, empty when the lineup is legal
        """
        errors = []
        squad_ids = {_as_player(e).player_id for e in squad}
        starters = [_as_player(e) for e in subset]
        starter_ids = [p.player_id for p in starters]

        if len(starters) != self.starting_xi_size:
            errors.append(f"Starting XI must have {self.starting_xi_size} players, has {len(starters)}")
        if len(set(starter_ids)) != len(starter_ids):
            errors.append("Starting XI contains the same player more than once")
        outsiders = [pid for pid in starter_ids if pid not in squad_ids]
        if outsiders:
            errors.append(f"Starting XI players not in squad: {outsiders}")

        counts = self.position_counts(starters)
        if counts[Position.GKP] != self.starting_goalkeepers:
            errors.append(f"Starting XI must have exactly {self.starting_goalkeepers} Goalkeeper, has {counts[Position.GKP]}")
        for position, minimum in self.formation_minimums.items():
            if position is Position.GKP:
                continue
            if counts[position] < minimum:
                errors.append(f"Starting XI must have at least {minimum} {position.label}s")

        return errors

    def is_legal_lineup(self, squad: Iterable, subset: Sequence) -> bool:
        return not self.validate_lineup(squad, subset)

    def get_formation(self, starters: Iterable) -> str:
        """Formation string, e.g. "4-4-2" """
        counts = self.position_counts(starters)
        return f"{counts[Position.DEF]}-{counts[Position.MID]}-{counts[Position.FWD]}"


_DEFAULT_HANDLER = FPLConstraintHandler()


def is_legal_squad(entries: Sequence, budget_tenths: Optional[int] = None) -> bool:
    return _DEFAULT_HANDLER.is_legal_squad(entries, budget_tenths)


def is_legal_lineup(squad: Iterable, subset: Sequence) -> bool:
    return _DEFAULT_HANDLER.is_legal_lineup(squad, subset)


def team_count(entries: Iterable, team_id: int) -> int:
    return _DEFAULT_HANDLER.team_count(entries, team_id)


@dataclass(frozen=True)
class Squad:
    """A legal 15-player squad; construction fails on any rule violation"""
    entries: Tuple[PoolEntry, ...]
    budget_tenths: int = BUDGET_TENTHS
    rules: FPLConstraintHandler = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'entries', tuple(self.entries))
        rules = self.rules or _DEFAULT_HANDLER
        object.__setattr__(self, 'rules', rules)
        errors = rules.validate_squad(self.entries, self.budget_tenths)
        if errors:
            raise InvalidSquadError(errors)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, player_id) -> bool:
        return player_id in self.player_ids

    @property
    def player_ids(self) -> Tuple[int, ...]:
        return tuple(e.player_id for e in self.entries)

    @property
    def total_cost(self) -> int:
        return self.rules.squad_cost(self.entries)

    @property
    def bank(self) -> int:
        return self.budget_tenths - self.total_cost

    @property
    def predicted_points(self) -> float:
        return sum(e.points for e in self.entries)

    def by_position(self) -> Dict[Position, List[PoolEntry]]:
        grouped = {position: [] for position in Position}
        for entry in self.entries:
            grouped[entry.position].append(entry)
        return grouped

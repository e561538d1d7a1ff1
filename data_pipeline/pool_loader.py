"""
Load roster, forecast and result snapshots into typed objects
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd

from optimization.config import CHIP_PRIORITY
from optimization.constraint_handler import (
    Availability, Forecast, Player, Position, price_to_tenths
)
from optimization.differentials import Hype

logger = logging.getLogger(__name__)

# Column aliases as published by the FPL API and common CSV exports
_ID_COLUMNS = ('player_id', 'id', 'element')
_NAME_COLUMNS = ('name', 'web_name')
_TEAM_COLUMNS = ('team_id', 'team')
_ROUND_COLUMNS = ('round_id', 'gameweek', 'gw', 'event')
_REALIZED_COLUMNS = ('actual_points', 'total_points', 'points', 'event_points')


@dataclass(frozen=True)
class CurrentTeam:
    """A user's squad as exported from the game"""
    player_ids: Tuple[int, ...]
    bank: float  # £M
    free_transfers: int = 1
    user_id: str = 'default'
    chips_available: Tuple[str, ...] = tuple(CHIP_PRIORITY)


def _pick_column(df: pd.DataFrame, candidates, required: bool = True) -> Optional[str]:
    for column in candidates:
        if column in df.columns:
            return column
    if required:
        raise ValueError(f"Missing column: expected one of {list(candidates)}, found {list(df.columns)}")
    return None


def _value(row: Dict, key: str, default):
    value = row.get(key, default)
    return default if value is None or pd.isna(value) else value


def _read_csv(filepath: str) -> pd.DataFrame:
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")
    df = pd.read_csv(filepath)
    logger.debug("Loaded %d rows from %s", len(df), filepath)
    return df


def players_from_frame(df: pd.DataFrame) -> List[Player]:
    """
    Build Player snapshots from a roster DataFrame

    Price comes from ``now_cost`` (integer tenths, FPL convention) or ``price``
    (£M). Position comes from ``position`` or ``element_type``.
    """
    id_col = _pick_column(df, _ID_COLUMNS)
    name_col = _pick_column(df, _NAME_COLUMNS, required=False)
    team_col = _pick_column(df, _TEAM_COLUMNS)
    position_col = _pick_column(df, ('position', 'element_type'))

    players = []
    for row in df.to_dict('records'):
        if 'now_cost' in row and not pd.isna(row['now_cost']):
            now_cost = int(round(float(row['now_cost'])))
        elif 'price' in row and not pd.isna(row['price']):
            now_cost = price_to_tenths(row['price'])
        else:
            raise ValueError(f"Player {row[id_col]} has no now_cost or price")

        players.append(Player(
            player_id=int(row[id_col]),
            name=str(row[name_col]) if name_col else f"Player {row[id_col]}",
            position=Position.parse(row[position_col]),
            team_id=int(row[team_col]),
            now_cost=now_cost,
            status=Availability.parse(_value(row, 'status', None)),
            team_name=str(_value(row, 'team_name', '')),
            fixture_difficulty=int(_value(row, 'fixture_difficulty', 3)),
            form=float(_value(row, 'form', 0.0)),
            total_points=int(_value(row, 'total_points', 0)),
            minutes=int(_value(row, 'minutes', 0)),
            selected_by_percent=float(_value(row, 'selected_by_percent', 0.0))
        ))
    return players


def load_players(filepath: str) -> List[Player]:
    """Load the roster snapshot for a round"""
    players = players_from_frame(_read_csv(filepath))
    logger.info("Loaded %d players from %s", len(players), filepath)
    return players


def load_forecasts(filepath: str, round_id: Optional[int] = None) -> List[Forecast]:
    """
    Load forecasts from CSV

    Rows without a round column are assigned to ``round_id``. Rows for every
    round are returned so that stale forecasts can be recognised downstream.
    Empty cells stay None (unscored).
    """
    df = _read_csv(filepath)
    id_col = _pick_column(df, _ID_COLUMNS)
    round_col = _pick_column(df, _ROUND_COLUMNS, required=False)
    if round_col is None and round_id is None:
        raise ValueError(f"{filepath} has no round column; pass round_id")
    points_col = _pick_column(df, ('predicted_points', 'expected_points', 'ep_next'))

    forecasts = []
    for row in df.to_dict('records'):
        value = row[points_col]
        forecasts.append(Forecast(
            player_id=int(row[id_col]),
            round_id=int(row[round_col]) if round_col else int(round_id),
            predicted_points=None if pd.isna(value) else float(value)
        ))
    logger.info("Loaded %d forecasts from %s", len(forecasts), filepath)
    return forecasts


def forecasts_by_round(forecasts: List[Forecast]) -> Dict[int, List[Forecast]]:
    grouped: Dict[int, List[Forecast]] = {}
    for forecast in forecasts:
        grouped.setdefault(forecast.round_id, []).append(forecast)
    return grouped


def load_realized_points(filepath: str) -> Dict[int, float]:
    """Load realized points keyed by player ID; empty cells are left out"""
    df = _read_csv(filepath)
    id_col = _pick_column(df, _ID_COLUMNS)
    points_col = _pick_column(df, _REALIZED_COLUMNS)
    df = df.dropna(subset=[points_col])
    return {int(pid): float(points) for pid, points in zip(df[id_col], df[points_col])}


def load_current_team(filepath: str) -> CurrentTeam:
    """
    Load a user's current team from JSON

    Expected keys: ``players`` (player IDs), ``bank_balance`` (£M),
    ``free_transfers`` and optionally ``user_id`` and ``chips_available``
    (every chip when missing).
    """
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Team file not found: {filepath}")
    with open(filepath, 'r') as f:
        team_data = json.load(f)

    if 'players' not in team_data:
        raise ValueError(f"Team file {filepath} has no 'players' list")
    for field, default in (('bank_balance', 0.0), ('free_transfers', 1)):
        if field not in team_data:
            logger.warning("Missing field '%s' in team file, using %s", field, default)

    return CurrentTeam(
        player_ids=tuple(int(pid) for pid in team_data['players']),
        bank=float(team_data.get('bank_balance', 0.0)),
        free_transfers=int(team_data.get('free_transfers', 1)),
        user_id=str(team_data.get('user_id', 'default')),
        chips_available=tuple(team_data.get('chips_available', CHIP_PRIORITY))
    )


def load_hype(filepath: str) -> Dict[int, Hype]:
    """
    Load news hype per player from CSV

    Expected columns: a player ID, ``hype_score`` and optionally
    ``sentiment`` and ``mentions``.
    """
    df = _read_csv(filepath)
    id_col = _pick_column(df, _ID_COLUMNS)
    _pick_column(df, ('hype_score',))

    hype = {}
    for row in df.to_dict('records'):
        hype[int(row[id_col])] = Hype(
            player_id=int(row[id_col]),
            hype_score=float(_value(row, 'hype_score', 0.0)),
            sentiment=str(_value(row, 'sentiment', 'neutral')).strip().lower(),
            mentions=int(_value(row, 'mentions', 0))
        )
    logger.info("Loaded hype for %d players from %s", len(hype), filepath)
    return hype

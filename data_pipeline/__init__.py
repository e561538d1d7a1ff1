"""
Data layer for the FPL gameweek advisor

- FPLDatabase: SQLite store for predictions, squads, suggestions and accuracy
- collect_forecasts: batched forecast collection with a form/fixture fallback
- pool_loader: roster, forecast and result snapshots from CSV/JSON
"""

from .config import DATABASE_PATH, FORECAST_BATCH_SIZE
from .database import FPLDatabase, SelectedSquad
from .forecasts import (
    ForecastProvider, FormFixtureForecaster, StaticForecastProvider, collect_forecasts
)
from .pool_loader import (
    CurrentTeam, load_players, load_forecasts, forecasts_by_round,
    load_realized_points, load_current_team, load_hype
)

__all__ = [
    'FPLDatabase',
    'SelectedSquad',
    'ForecastProvider',
    'FormFixtureForecaster',
    'StaticForecastProvider',
    'collect_forecasts',
    'CurrentTeam',
    'load_players',
    'load_forecasts',
    'forecasts_by_round',
    'load_realized_points',
    'load_current_team',
    'load_hype',
    'DATABASE_PATH',
    'FORECAST_BATCH_SIZE'
]

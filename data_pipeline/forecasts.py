"""
Forecast provider boundary

Providers are called in batches and may fail per batch. A failed batch is
filled from the fallback provider when one is given; otherwise its players
stay unforecast, which the pool reports as absent rather than zero.
"""
import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from data_pipeline.config import (
    FORECAST_BATCH_SIZE, FORM_WEIGHT, POINTS_PER_90_WEIGHT, FALLBACK_APPEARANCE_POINTS
)
from optimization.constraint_handler import Forecast, Player, clean_forecast

logger = logging.getLogger(__name__)


class ForecastProvider:
    """Anything that can forecast points for a batch of players"""

    name = 'provider'

    def predict(self, players: Sequence[Player], round_id: int) -> Mapping[int, float]:
        """
        Args:
            players: Batch of players
            round_id: Round to forecast

        Returns:
            Expected points keyed by player ID; players may be omitted
        """
        raise NotImplementedError


class FormFixtureForecaster(ForecastProvider):
    """Simple form and fixture-difficulty forecast"""

    name = 'form_fixture'

    def forecast(self, player: Player) -> float:
        points_per_90 = player.total_points / max(1.0, player.minutes / 90.0)
        base = player.form * FORM_WEIGHT + points_per_90 * POINTS_PER_90_WEIGHT
        fixture_factor = (6 - player.fixture_difficulty) / 5.0
        return math.floor((base * fixture_factor + FALLBACK_APPEARANCE_POINTS) * 10 + 0.5) / 10.0

    def predict(self, players: Sequence[Player], round_id: int) -> Mapping[int, float]:
        return {player.player_id: self.forecast(player) for player in players}


class StaticForecastProvider(ForecastProvider):
    """Serves forecasts that were computed elsewhere, e.g. loaded from CSV"""

    name = 'static'

    def __init__(self, points_by_round: Mapping[int, Mapping[int, float]]):
        self.points_by_round = points_by_round

    def predict(self, players: Sequence[Player], round_id: int) -> Mapping[int, float]:
        points = self.points_by_round.get(round_id, {})
        return {p.player_id: points[p.player_id] for p in players if p.player_id in points}


def _batches(players: List[Player], size: int):
    for start in range(0, len(players), size):
        yield players[start:start + size]


def collect_forecasts(provider: ForecastProvider,
                      players: Iterable[Player],
                      round_id: int,
                      batch_size: int = FORECAST_BATCH_SIZE,
                      fallback: Optional[ForecastProvider] = None) -> Dict[int, Forecast]:
    """
    Forecast a roster batch by batch

    Args:
        provider: Primary forecast provider
        players: Roster snapshot
        round_id: Round to forecast
        batch_size: Players per provider call
        fallback: Provider used for failed batches and omitted players

    Returns:
        Forecast per player ID. Players with no usable forecast are absent.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    roster = list(players)
    forecasts: Dict[int, Forecast] = {}
    failed_batches = 0
    fallback_count = 0

    for number, batch in enumerate(_batches(roster, batch_size), start=1):
        try:
            points = dict(provider.predict(batch, round_id))
        except Exception as e:
            failed_batches += 1
            logger.warning("Forecast batch %d (%d players) failed for round %s: %s",
                           number, len(batch), round_id, e)
            points = {}

        missing = [p for p in batch if clean_forecast(points.get(p.player_id)) is None]
        if missing and fallback is not None:
            fallback_points = fallback.predict(missing, round_id)
            for player in missing:
                if player.player_id in fallback_points:
                    points[player.player_id] = fallback_points[player.player_id]
                    fallback_count += 1

        for player in batch:
            value = clean_forecast(points.get(player.player_id))
            if value is not None:
                forecasts[player.player_id] = Forecast(player.player_id, round_id, value)

    logger.info("Collected %d/%d forecasts for round %s (%d failed batches, %d from fallback)",
                len(forecasts), len(roster), round_id, failed_batches, fallback_count)
    return forecasts

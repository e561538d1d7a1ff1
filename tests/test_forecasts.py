from __future__ import annotations

from typing import List, Mapping, Sequence

import pytest

from data_pipeline.forecasts import (
    ForecastProvider,
    FormFixtureForecaster,
    StaticForecastProvider,
    collect_forecasts,
)
from optimization.constraint_handler import Forecast, Player
from tests.helpers import make_player


class RecordingProvider(ForecastProvider):
    """Returns a fixed value per player and remembers batch sizes."""

    def __init__(self, value: float = 5.0, fail_batches: Sequence[int] = (), values: Mapping[int, object] = None) -> None:
        self.value = value
        self.fail_batches = set(fail_batches)
        self.values = values or {}
        self.batch_sizes: List[int] = []

    def predict(self, players: Sequence[Player], round_id: int) -> Mapping[int, float]:
        self.batch_sizes.append(len(players))
        if len(self.batch_sizes) in self.fail_batches:
            raise ConnectionError("provider unavailable")
        return {p.player_id: self.values.get(p.player_id, self.value) for p in players}


@pytest.fixture
def roster() -> List[Player]:
    return [make_player(i) for i in range(1, 46)]


class TestFormFixtureForecaster:
    def test_formula(self) -> None:
        player = make_player(1, form=6.0, total_points=45, minutes=450, fixture_difficulty=2)
        # (6 * 0.5 + 9 * 0.3) * 0.8 + 2
        assert FormFixtureForecaster().forecast(player) == pytest.approx(6.6)

    def test_new_player_gets_appearance_points(self) -> None:
        assert FormFixtureForecaster().forecast(make_player(1)) == pytest.approx(2.0)

    def test_harder_fixture_lowers_forecast(self) -> None:
        forecaster = FormFixtureForecaster()
        easy = make_player(1, form=5.0, fixture_difficulty=1)
        hard = make_player(2, form=5.0, fixture_difficulty=5)
        assert forecaster.forecast(easy) > forecaster.forecast(hard)

    def test_predict_covers_batch(self, roster: List[Player]) -> None:
        assert set(FormFixtureForecaster().predict(roster[:3], 1)) == {1, 2, 3}


class TestStaticForecastProvider:
    def test_serves_only_known_players(self) -> None:
        provider = StaticForecastProvider({4: {1: 6.0, 2: 3.0}})
        assert provider.predict([make_player(1), make_player(3)], 4) == {1: 6.0}
        assert provider.predict([make_player(1)], 5) == {}


class TestCollectForecasts:
    def test_batches(self, roster: List[Player]) -> None:
        provider = RecordingProvider()
        forecasts = collect_forecasts(provider, roster, round_id=7)

        assert provider.batch_sizes == [20, 20, 5]
        assert len(forecasts) == 45
        assert forecasts[1] == Forecast(1, 7, 5.0)

    def test_custom_batch_size(self, roster: List[Player]) -> None:
        provider = RecordingProvider()
        collect_forecasts(provider, roster, round_id=1, batch_size=40)
        assert provider.batch_sizes == [40, 5]

    def test_failed_batch_without_fallback(self, roster: List[Player]) -> None:
        forecasts = collect_forecasts(RecordingProvider(fail_batches=[2]), roster, round_id=1)

        assert len(forecasts) == 25
        assert 21 not in forecasts
        assert 45 in forecasts

    def test_failed_batch_with_fallback(self, roster: List[Player]) -> None:
        forecasts = collect_forecasts(
            RecordingProvider(fail_batches=[2]), roster, round_id=1, fallback=FormFixtureForecaster()
        )
        assert len(forecasts) == 45
        assert forecasts[21].predicted_points == pytest.approx(2.0)
        assert forecasts[1].predicted_points == pytest.approx(5.0)

    def test_unusable_values_are_dropped_or_clamped(self, roster: List[Player]) -> None:
        provider = RecordingProvider(values={1: float("nan"), 2: -3.0, 3: 40.0, 4: None})
        forecasts = collect_forecasts(provider, roster[:5], round_id=1)

        assert 1 not in forecasts
        assert 4 not in forecasts
        assert forecasts[2].predicted_points == 0.0
        assert forecasts[3].predicted_points == 20.0

    def test_fallback_fills_omitted_players(self, roster: List[Player]) -> None:
        provider = StaticForecastProvider({1: {1: 6.0}})
        forecasts = collect_forecasts(provider, roster[:3], round_id=1, fallback=FormFixtureForecaster())
        assert forecasts[1].predicted_points == 6.0
        assert forecasts[2].predicted_points == pytest.approx(2.0)

    def test_batch_size_must_be_positive(self, roster: List[Player]) -> None:
        with pytest.raises(ValueError):
            collect_forecasts(RecordingProvider(), roster, round_id=1, batch_size=0)

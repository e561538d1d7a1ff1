from __future__ import annotations

import pytest

from optimization.constraint_handler import PoolEntry
from optimization.differentials import (
    AlertType,
    DifferentialAnalyzer,
    Hype,
    find_differentials,
    value_per_ownership,
)
from tests.helpers import make_entry, make_player


def _types(alerts, player_id: int) -> list:
    return [a.alert_type for a in alerts if a.player_id == player_id]


class TestValuePerOwnership:
    def test_scales_by_ten_percent(self) -> None:
        assert value_per_ownership(6.0, 5.0) == pytest.approx(12.0)
        assert value_per_ownership(6.0, 30.0) == pytest.approx(2.0)

    def test_unowned_player(self) -> None:
        assert value_per_ownership(4.0, 0.0) == pytest.approx(40.0)


class TestDifferentialAnalyzer:
    def test_value_pick(self) -> None:
        alerts = find_differentials([make_entry(1, points=6.0, selected_by_percent=5.0)])

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type is AlertType.VALUE_PICK
        assert alert.confidence == pytest.approx(90.0)
        assert alert.ownership_percent == pytest.approx(5.0)
        assert alert.predicted_points == pytest.approx(6.0)
        assert "£5.0M" in alert.reason

    def test_value_pick_confidence_below_cap(self) -> None:
        # 4 points at 14% ownership: value 2.86, confidence 50 + 28.6
        alerts = find_differentials([make_entry(1, points=4.0, selected_by_percent=14.0)])
        assert alerts[0].confidence == pytest.approx(50 + 4.0 / 1.4 * 10)

    def test_popular_player_is_not_a_differential(self) -> None:
        assert find_differentials([make_entry(1, points=9.0, selected_by_percent=45.0)]) == []

    def test_form_surge(self) -> None:
        entry = make_entry(1, points=3.0, selected_by_percent=12.0, form=6.0, fixture_difficulty=2)
        alerts = find_differentials([entry])
        assert _types(alerts, 1) == [AlertType.FORM_SURGE]
        assert alerts[0].confidence == pytest.approx(85.0)

    def test_fixture_swing(self) -> None:
        entry = make_entry(1, points=4.0, selected_by_percent=20.0, fixture_difficulty=1)
        alerts = find_differentials([entry])
        assert _types(alerts, 1) == [AlertType.FIXTURE_SWING]
        assert alerts[0].confidence == 70.0

    def test_rising_star_needs_hype(self) -> None:
        entry = make_entry(1, points=5.0, selected_by_percent=5.0)
        without = find_differentials([entry])
        with_hype = find_differentials([entry], {1: Hype(1, hype_score=40.0, mentions=7)})

        assert _types(without, 1) == [AlertType.VALUE_PICK]
        assert _types(with_hype, 1) == [AlertType.VALUE_PICK, AlertType.RISING_STAR]
        rising = with_hype[1]
        assert rising.confidence == pytest.approx(80.0)
        assert "7 recent mentions" in rising.reason

    def test_positive_sentiment_counts_as_hype(self) -> None:
        entry = make_entry(1, points=5.0, selected_by_percent=30.0)
        alerts = find_differentials([entry], {1: Hype(1, hype_score=0.0, sentiment="positive")})
        # Rising stars need under 10% ownership
        assert alerts == []

        entry = make_entry(2, points=5.0, selected_by_percent=9.0)
        alerts = find_differentials([entry], {2: Hype(2, sentiment="positive")})
        assert AlertType.RISING_STAR in _types(alerts, 2)

    def test_injury_doubt(self) -> None:
        entry = make_entry(1, points=2.0, selected_by_percent=40.0)
        alerts = find_differentials([entry], {1: Hype(1, hype_score=30.0, sentiment="negative")})
        assert _types(alerts, 1) == [AlertType.INJURY_DOUBT]
        assert alerts[0].confidence == pytest.approx(55.0)

    @pytest.mark.parametrize("status", ["d", "i", "s", "u"])
    def test_only_available_players(self, status: str) -> None:
        entry = make_entry(1, points=8.0, selected_by_percent=1.0, status=status)
        assert find_differentials([entry]) == []

    def test_players_without_forecast_are_skipped(self) -> None:
        entry = PoolEntry(make_player(1, selected_by_percent=1.0, fixture_difficulty=1, form=9.0))
        assert find_differentials([entry]) == []

    def test_sorted_by_confidence(self) -> None:
        pool = [
            make_entry(1, points=4.0, selected_by_percent=20.0, fixture_difficulty=1),  # 70
            make_entry(2, points=6.0, selected_by_percent=5.0),  # 90
            make_entry(3, points=3.0, selected_by_percent=12.0, form=5.0, fixture_difficulty=2),  # 80
        ]
        alerts = find_differentials(pool)
        assert [a.player_id for a in alerts] == [2, 3, 1]
        assert [a.confidence for a in alerts] == sorted((a.confidence for a in alerts), reverse=True)

    def test_one_alert_per_player_and_type(self) -> None:
        entry = make_entry(1, points=6.0, selected_by_percent=5.0)
        alerts = find_differentials([entry, entry])
        assert len(alerts) == 1

    def test_max_alerts(self) -> None:
        pool = [make_entry(i, points=6.0, selected_by_percent=5.0) for i in range(1, 41)]
        assert len(DifferentialAnalyzer().analyze(pool)) == 30
        assert len(DifferentialAnalyzer(max_alerts=5).analyze(pool)) == 5

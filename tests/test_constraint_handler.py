from __future__ import annotations

import math
from typing import List

import pytest

from optimization.constraint_handler import (
    Availability,
    FPLConstraintHandler,
    Forecast,
    ForecastStatus,
    Player,
    PoolEntry,
    Position,
    Squad,
    build_pool,
    clean_forecast,
    format_cost,
    is_legal_lineup,
    is_legal_squad,
    price_to_tenths,
    rank_entries,
    team_count,
)
from optimization.exceptions import InvalidSquadError
from tests.helpers import make_entry, make_player


class TestPosition:
    @pytest.mark.parametrize("value", ["GKP", "GK", "gk", "Goalkeeper", 1, "1", Position.GKP])
    def test_parse_goalkeeper_aliases(self, value: object) -> None:
        assert Position.parse(value) is Position.GKP

    def test_parse_element_types(self) -> None:
        assert [Position.parse(i) for i in (1, 2, 3, 4)] == list(Position)

    def test_canonical_order(self) -> None:
        assert [p.value for p in Position] == ["GKP", "DEF", "MID", "FWD"]

    def test_unknown_position_raises(self) -> None:
        with pytest.raises(ValueError):
            Position.parse("WINGBACK")
        with pytest.raises(ValueError):
            Position.parse(7)


class TestAvailability:
    def test_missing_status_is_available(self) -> None:
        assert Availability.parse(None) is Availability.AVAILABLE

    def test_unknown_status_is_unavailable(self) -> None:
        assert Availability.parse("n") is Availability.UNAVAILABLE

    def test_doubtful_is_selectable(self) -> None:
        assert make_player(1, status="d").is_selectable
        assert not make_player(2, status="i").is_selectable
        assert not make_player(3, status="s").is_selectable
        assert not make_player(4, status="u").is_selectable


class TestPrices:
    def test_price_to_tenths(self) -> None:
        assert price_to_tenths(5.5) == 55
        assert price_to_tenths(0.1 + 0.2) == 3
        assert price_to_tenths("12.95") == 130

    def test_format_cost(self) -> None:
        assert format_cost(995) == "£99.5M"
        assert format_cost(-15) == "-£1.5M"

    def test_player_requires_integer_tenths(self) -> None:
        with pytest.raises(ValueError):
            Player(1, "x", "MID", 1, 5.5)
        with pytest.raises(ValueError):
            Player(1, "x", "MID", 1, -5)

    def test_player_rejects_bad_fixture_difficulty(self) -> None:
        with pytest.raises(ValueError):
            make_player(1, fixture_difficulty=6)

    def test_budget_is_exact_over_fifteen_players(self, rules: FPLConstraintHandler) -> None:
        # 10 x 6.7 + 5 x 6.6 is exactly 100.0, which float addition overshoots
        prices = [6.7] * 10 + [6.6] * 5
        positions = ["GKP"] * 2 + ["DEF"] * 5 + ["MID"] * 5 + ["FWD"] * 3
        entries = [make_entry(i + 1, pos, price=price) for i, (pos, price) in enumerate(zip(positions, prices))]
        assert rules.squad_cost(entries) == 1000
        assert rules.is_legal_squad(entries)


class TestCleanForecast:
    @pytest.mark.parametrize("value", [None, "abc", float("nan"), float("inf"), -math.inf])
    def test_unusable_values_are_unscored(self, value: object) -> None:
        assert clean_forecast(value) is None

    def test_values_are_clamped(self) -> None:
        assert clean_forecast(-1.5) == 0.0
        assert clean_forecast(25) == 20.0
        assert clean_forecast("4.5") == 4.5


class TestPoolEntry:
    def test_absent_forecast_ranks_as_zero(self) -> None:
        entry = make_entry(1, points=None)
        assert entry.forecast_status is ForecastStatus.ABSENT
        assert not entry.is_scored
        assert entry.points == 0.0

    def test_zero_forecast_is_scored(self) -> None:
        entry = make_entry(1, points=0.0)
        assert entry.is_scored
        assert entry.predicted_points == 0.0

    def test_stale_entry_drops_value(self) -> None:
        entry = PoolEntry(make_player(1), 6.0, ForecastStatus.STALE)
        assert entry.predicted_points is None

    def test_scored_without_value_is_absent(self) -> None:
        entry = PoolEntry(make_player(1), None, ForecastStatus.SCORED)
        assert entry.forecast_status is ForecastStatus.ABSENT
        assert not entry.is_scored
        assert entry.points == 0.0
        assert entry.with_forecast(None).forecast_status is ForecastStatus.ABSENT

    def test_ranking_prefers_points_then_price_then_input_order(self) -> None:
        a = make_entry(1, points=5.0, price=6.0)
        b = make_entry(2, points=5.0, price=5.0)
        c = make_entry(3, points=5.0, price=5.0)
        d = make_entry(4, points=7.0, price=9.0)
        assert [e.player_id for e in rank_entries([a, b, c, d])] == [4, 2, 3, 1]


class TestBuildPool:
    def test_pairs_forecasts_and_flags_missing(self) -> None:
        players = [make_player(1), make_player(2), make_player(3)]
        forecasts = [Forecast(1, 5, 6.5), Forecast(2, 4, 9.0)]
        pool = build_pool(players, forecasts, round_id=5)

        assert [e.forecast_status for e in pool] == [
            ForecastStatus.SCORED, ForecastStatus.STALE, ForecastStatus.ABSENT,
        ]
        assert pool[0].predicted_points == 6.5
        assert pool[1].predicted_points is None

    def test_matching_round_wins_over_stale(self) -> None:
        pool = build_pool([make_player(1)], [Forecast(1, 4, 2.0), Forecast(1, 5, 7.0)], round_id=5)
        assert pool[0].predicted_points == 7.0

    def test_accepts_mapping_and_cleans_values(self) -> None:
        pool = build_pool(
            [make_player(1), make_player(2)],
            {1: Forecast(1, 3, float("nan")), 2: Forecast(2, 3, 31.0)},
            round_id=3,
        )
        assert pool[0].forecast_status is ForecastStatus.ABSENT
        assert pool[1].predicted_points == 20.0

    def test_does_not_mutate_inputs(self) -> None:
        players = [make_player(1)]
        forecasts = [Forecast(1, 1, 3.0)]
        build_pool(players, forecasts, round_id=1)
        assert players == [make_player(1)]
        assert forecasts == [Forecast(1, 1, 3.0)]


class TestValidateSquad:
    def test_legal_squad(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        assert rules.validate_squad(entries) == []
        assert is_legal_squad(entries)

    def test_wrong_size_and_quotas(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        errors = rules.validate_squad(entries[:-1])
        assert any("exactly 15" in e for e in errors)
        assert any("Forward" in e for e in errors)

    def test_duplicate_player(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        duplicated = entries[:-1] + [entries[-2]]
        assert any("more than once" in e for e in rules.validate_squad(duplicated))

    def test_over_budget(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        expensive = entries[:-1] + [make_entry(99, "FWD", price=16.5)]
        errors = rules.validate_squad(expensive)
        assert errors == ["Total cost £100.5M exceeds budget £100.0M"]
        assert rules.is_legal_squad(expensive, budget_tenths=1005)

    def test_team_limit(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        same_team = [
            make_entry(e.player_id, e.position.value, e.points, team_id=1 if i < 4 else e.team_id + 100)
            for i, e in enumerate(entries)
        ]
        errors = rules.validate_squad(same_team)
        assert errors == ["Cannot have more than 3 players from team 1 (have 4)"]

    def test_team_count(self, entries: List[PoolEntry]) -> None:
        assert team_count(entries, entries[0].team_id) == 1
        assert team_count(entries, 999) == 0


class TestValidateLineup:
    def test_legal_lineup(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        starters = [entries[0]] + entries[2:7] + entries[7:11] + [entries[12]]
        assert rules.validate_lineup(entries, starters) == []
        assert is_legal_lineup(entries, starters)
        assert rules.get_formation(starters) == "5-4-1"

    def test_two_keepers(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        starters = entries[0:2] + entries[2:6] + entries[7:11] + [entries[12]]
        assert any("exactly 1 Goalkeeper" in e for e in rules.validate_lineup(entries, starters))

    def test_defender_floor(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        starters = [entries[0]] + entries[2:4] + entries[7:12] + entries[12:15]
        assert any("at least 3 Defenders" in e for e in rules.validate_lineup(entries, starters))

    def test_players_outside_squad(self, rules: FPLConstraintHandler, entries: List[PoolEntry]) -> None:
        starters = [entries[0]] + entries[2:7] + entries[7:11] + [make_entry(99, "FWD")]
        assert any("not in squad" in e for e in rules.validate_lineup(entries, starters))


class TestSquad:
    def test_properties(self, squad: Squad) -> None:
        assert len(squad) == 15
        assert squad.total_cost == 900
        assert squad.bank == 100
        assert squad.predicted_points == pytest.approx(67.0)
        assert 1 in squad
        assert [len(v) for v in squad.by_position().values()] == [2, 5, 5, 3]

    def test_illegal_squad_raises(self, entries: List[PoolEntry]) -> None:
        with pytest.raises(InvalidSquadError) as exc_info:
            Squad(tuple(entries[:14]))
        assert exc_info.value.errors

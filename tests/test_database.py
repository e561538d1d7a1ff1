from __future__ import annotations

from pathlib import Path

import pytest

from data_pipeline.database import FPLDatabase
from evaluation.accuracy_scorer import AccuracyScorer, Prediction
from optimization.chip_strategist import ChipStrategist
from optimization.constraint_handler import Squad
from optimization.differentials import find_differentials
from optimization.lineup_selector import derive_lineup
from optimization.transfer_planner import TransferPlanner
from tests.helpers import make_entry, squad_entries


@pytest.fixture
def db(tmp_path: Path):
    with FPLDatabase(str(tmp_path / "nested" / "advisor.db")) as database:
        yield database


class TestPredictions:
    def test_upsert_keeps_one_row_per_player_and_round(self, db: FPLDatabase) -> None:
        db.save_predictions([Prediction(1, 5, 4.0), Prediction(2, 5, None)])
        db.save_predictions([Prediction(1, 5, 6.5), Prediction(1, 6, 3.0)])

        assert db.get_table_counts()["predictions"] == 3
        assert db.load_predictions(5) == [Prediction(1, 5, 6.5), Prediction(2, 5, None)]
        assert db.load_predictions(6) == [Prediction(1, 6, 3.0)]

    def test_empty_round(self, db: FPLDatabase) -> None:
        assert db.load_predictions(9) == []


class TestSelectedSquads:
    def test_round_trip(self, db: FPLDatabase) -> None:
        squad = Squad(tuple(squad_entries()))
        lineup = derive_lineup(squad)
        db.save_selected_squad(3, squad, lineup, method="mip")

        stored = db.load_selected_squad(3)
        assert stored.squad_ids == squad.player_ids
        assert stored.starter_ids == lineup.starter_ids
        assert stored.bench_ids == lineup.bench_ids
        assert stored.captain_id == 8
        assert stored.vice_captain_id == 9
        assert stored.formation == "3-5-2"
        assert stored.total_cost == 900
        assert stored.predicted_points == pytest.approx(69.0)
        assert stored.method == "mip"
        assert stored.actual_points is None

    def test_saving_again_replaces_the_round(self, db: FPLDatabase) -> None:
        squad = Squad(tuple(squad_entries()))
        db.save_selected_squad(3, squad, derive_lineup(squad))
        db.save_selected_squad(3, squad, derive_lineup(squad))
        assert db.get_table_counts()["selected_squads"] == 1

    def test_unknown_round(self, db: FPLDatabase) -> None:
        assert db.load_selected_squad(1) is None


class TestTransferSuggestions:
    def test_suggestions_are_replaced(self, db: FPLDatabase) -> None:
        entries = squad_entries()
        planner = TransferPlanner()
        first = planner.suggest_transfers(entries, entries + [make_entry(100, "FWD", points=8.0, price=6.0)], 0.0)
        second = planner.suggest_transfers(entries, entries + [make_entry(101, "MID", points=9.5, price=6.0)], 0.0)

        assert db.save_transfer_suggestions("manager", 4, first) == 3
        assert db.save_transfer_suggestions("manager", 4, second) == 5

        stored = db.load_transfer_suggestions("manager", 4)
        assert len(stored) == 5
        assert set(stored["player_in_id"]) == {101}
        assert list(stored["player_out_id"])[0] == 12
        assert len(db.load_transfer_suggestions("someone else", 4)) == 0


class TestDifferentialsAndChips:
    def test_alerts_are_replaced(self, db: FPLDatabase) -> None:
        first = find_differentials([make_entry(i, points=6.0, selected_by_percent=5.0) for i in (1, 2)])
        second = find_differentials([make_entry(3, points=4.0, selected_by_percent=20.0, fixture_difficulty=1)])

        assert db.save_differential_alerts(7, first) == 2
        assert db.save_differential_alerts(7, second) == 1

        stored = db.load_differential_alerts(7)
        assert list(stored["player_id"]) == [3]
        assert list(stored["alert_type"]) == ["fixture_swing"]
        assert stored["confidence"].iloc[0] == pytest.approx(70.0)
        assert len(db.load_differential_alerts(8)) == 0

    def test_chip_analysis_round_trip(self, db: FPLDatabase) -> None:
        entries = squad_entries()
        report = ChipStrategist().analyze(entries, entries, 0.0, ["bench_boost", "triple_captain"])

        assert db.save_chip_analysis("manager", 4, report) == 2
        assert db.save_chip_analysis("manager", 4, report) == 2

        stored = db.load_chip_analysis("manager", 4)
        assert list(stored["chip_name"]) == ["triple_captain", "bench_boost"]
        assert list(stored["recommendation"]) == ["use", "save"]
        assert db.get_table_counts()["chip_analysis"] == 2


class TestRoundScores:
    def _score(self, db: FPLDatabase):
        squad = Squad(tuple(squad_entries()))
        lineup = derive_lineup(squad)
        predictions = [Prediction(e.player_id, 2, e.predicted_points) for e in squad]
        db.save_predictions(predictions)
        db.save_selected_squad(2, squad, lineup)
        realized = {e.player_id: e.predicted_points + 1.0 for e in squad}
        return AccuracyScorer().score_round(2, predictions, realized, lineup=lineup)

    def test_realized_values_are_written(self, db: FPLDatabase) -> None:
        score = self._score(db)
        db.save_round_score(score)

        results = db.load_prediction_results(2).set_index("player_id")
        assert results.loc[8, "actual_points"] == pytest.approx(10.0)
        assert results.loc[8, "prediction_accuracy"] == pytest.approx(100.0 - 1.0 / 9.0 * 100)

        stored = db.load_selected_squad(2)
        # Eleven starters one point up each, plus the captain's extra point
        assert stored.actual_points == pytest.approx(81.0)

    def test_saving_twice_changes_nothing(self, db: FPLDatabase) -> None:
        score = self._score(db)
        db.save_round_score(score)
        counts = db.get_table_counts()
        history = db.load_accuracy_history()

        db.save_round_score(score)
        assert db.get_table_counts() == counts
        assert db.load_accuracy_history()[2] == history[2]

    def test_history_round_trip(self, db: FPLDatabase) -> None:
        score = self._score(db)
        db.save_round_score(score)

        history = db.load_accuracy_history()
        assert list(history) == [2]
        assert history[2].players_analyzed == 15
        assert history[2].correct_predictions == 15
        assert history[2].mean_absolute_error == pytest.approx(1.0)
        assert history.summary().rounds == 1

"""
Score stored forecasts against realized points for a concluded round
"""
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error

from evaluation.config import CORRECT_THRESHOLD, MAX_ACCURACY
from optimization.captain_selector import lineup_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prediction:
    """Stored forecast for one player in one round"""
    player_id: int
    round_id: int
    predicted_points: Optional[float] = None


@dataclass(frozen=True)
class PredictionOutcome:
    player_id: int
    predicted: float
    actual: float
    absolute_error: float
    accuracy: float
    correct: bool


@dataclass(frozen=True)
class AccuracyRecord:
    """Aggregate forecast accuracy for one round"""
    round_id: int
    total_predicted_points: float
    total_actual_points: float
    players_analyzed: int
    correct_predictions: int
    mean_absolute_error: float
    accuracy_percentage: float


@dataclass(frozen=True)
class LineupScore:
    """Realized score of the lineup chosen before the round"""
    round_id: int
    predicted_points: float
    actual_points: float
    accuracy_percentage: float


@dataclass(frozen=True)
class RoundScore:
    record: AccuracyRecord
    outcomes: Tuple[PredictionOutcome, ...]
    unscored_player_ids: Tuple[int, ...]
    stale_player_ids: Tuple[int, ...]
    missing_result_player_ids: Tuple[int, ...]
    lineup_score: Optional[LineupScore] = None


@dataclass(frozen=True)
class HistorySummary:
    rounds: int
    total_predictions: int
    total_correct: int
    average_accuracy: float
    average_error: float
    correct_rate: float


def prediction_accuracy(predicted: float, actual: float) -> float:
    """
    Per-player accuracy percentage

    A zero forecast is fully accurate only when the player also scored zero.
    """
    if predicted > 0:
        return max(0.0, MAX_ACCURACY - abs(predicted - actual) / predicted * 100)
    return MAX_ACCURACY if actual == 0 else 0.0


def aggregate_accuracy(total_predicted: float, total_error: float) -> float:
    """
    Round accuracy from total absolute error over total predicted points

    A round with nothing predicted (no scored players, or only zero
    forecasts) has no evidence of accuracy and scores 0.
    """
    if total_predicted <= 0:
        return 0.0
    return max(0.0, MAX_ACCURACY - total_error / total_predicted * 100)


def is_correct(predicted: float, actual: float, threshold: float = CORRECT_THRESHOLD) -> bool:
    return abs(predicted - actual) <= threshold


def _usable(value) -> bool:
    return value is not None and not isinstance(value, bool) and math.isfinite(value)


class AccuracyScorer:
    """Compare predictions with realized points"""

    def __init__(self, correct_threshold: float = CORRECT_THRESHOLD):
        self.correct_threshold = correct_threshold

    def score_round(self, round_id: int,
                    predictions: Iterable[Prediction],
                    realized_points: Dict[int, float],
                    lineup=None) -> RoundScore:
        """
        Score one concluded round

        Predictions without a value, for another round, or without a realized
        result are left out of the aggregate and listed separately. The result
        depends only on the inputs, so scoring a round again yields an equal
        record.

        Args:
            round_id: Concluded round
            predictions: Stored predictions (one per player; a matching-round
                prediction wins over a stale one)
            realized_points: Actual points keyed by player ID
            lineup: Lineup chosen before the round (anything with starter_ids,
                captain_id and predicted_points), optional

        Returns:
            RoundScore
        """
        by_player: Dict[int, Prediction] = {}
        for prediction in predictions:
            current = by_player.get(prediction.player_id)
            if current is None or (current.round_id != round_id and prediction.round_id == round_id):
                by_player[prediction.player_id] = prediction

        scored: List[Prediction] = []
        unscored, stale, missing = [], [], []
        for player_id, prediction in by_player.items():
            if prediction.round_id != round_id:
                stale.append(player_id)
            elif not _usable(prediction.predicted_points):
                unscored.append(player_id)
            elif not _usable(realized_points.get(player_id)):
                missing.append(player_id)
            else:
                scored.append(prediction)

        predicted = np.array([p.predicted_points for p in scored], dtype=float)
        actual = np.array([realized_points[p.player_id] for p in scored], dtype=float)
        errors = np.abs(predicted - actual)

        outcomes = tuple(
            PredictionOutcome(
                player_id=p.player_id,
                predicted=float(pred),
                actual=float(act),
                absolute_error=float(err),
                accuracy=prediction_accuracy(float(pred), float(act)),
                correct=bool(err <= self.correct_threshold)
            )
            for p, pred, act, err in zip(scored, predicted, actual, errors)
        )

        total_predicted = float(predicted.sum())
        total_error = float(errors.sum())
        mae = float(mean_absolute_error(actual, predicted)) if len(scored) else 0.0

        record = AccuracyRecord(
            round_id=round_id,
            total_predicted_points=total_predicted,
            total_actual_points=float(actual.sum()),
            players_analyzed=len(scored),
            correct_predictions=sum(1 for o in outcomes if o.correct),
            mean_absolute_error=mae,
            accuracy_percentage=aggregate_accuracy(total_predicted, total_error)
        )

        logger.info("Round %s: %d predictions scored, accuracy %.1f%%, MAE %.2f",
                    round_id, record.players_analyzed, record.accuracy_percentage, mae)
        if unscored or stale or missing:
            logger.info("Round %s: %d unscored, %d stale, %d without results",
                        round_id, len(unscored), len(stale), len(missing))

        return RoundScore(
            record=record,
            outcomes=outcomes,
            unscored_player_ids=tuple(unscored),
            stale_player_ids=tuple(stale),
            missing_result_player_ids=tuple(missing),
            lineup_score=self.score_lineup(round_id, lineup, realized_points) if lineup is not None else None
        )

    def score_lineup(self, round_id: int, lineup, realized_points: Dict[int, float]) -> LineupScore:
        """
        Realized points of the lineup picked before the round

        The captain's actual points count twice, exactly as they did in the
        prediction. Starters without a result score 0.
        """
        realized = {pid: pts for pid, pts in realized_points.items() if _usable(pts)}
        actual = lineup_points(lineup.starter_ids, lineup.captain_id, realized)
        predicted = float(lineup.predicted_points)
        return LineupScore(
            round_id=round_id,
            predicted_points=predicted,
            actual_points=float(actual),
            accuracy_percentage=prediction_accuracy(predicted, actual)
        )


class AccuracyHistory(Mapping):
    """Accuracy records keyed by round; updates return a new history"""

    def __init__(self, records: Iterable[AccuracyRecord] = ()):
        self._records = {}
        for record in records:
            self._records[record.round_id] = record

    def __getitem__(self, round_id: int) -> AccuracyRecord:
        return self._records[round_id]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"AccuracyHistory(rounds={list(self)})"

    def with_record(self, record: AccuracyRecord) -> 'AccuracyHistory':
        """Replace (or add) the record for its round"""
        records = dict(self._records)
        records[record.round_id] = record
        return AccuracyHistory(records.values())

    def summary(self) -> HistorySummary:
        records = [self._records[r] for r in self]
        if not records:
            return HistorySummary(0, 0, 0, 0.0, 0.0, 0.0)

        total_predictions = sum(r.players_analyzed for r in records)
        total_correct = sum(r.correct_predictions for r in records)
        return HistorySummary(
            rounds=len(records),
            total_predictions=total_predictions,
            total_correct=total_correct,
            average_accuracy=float(np.mean([r.accuracy_percentage for r in records])),
            average_error=float(np.mean([r.mean_absolute_error for r in records])),
            correct_rate=total_correct / total_predictions * 100 if total_predictions else 0.0
        )

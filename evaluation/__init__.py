"""
Evaluation Module for the FPL gameweek advisor

Scores stored forecasts against realized points once a round has concluded
and keeps a per-round accuracy history.
"""

from .config import CORRECT_THRESHOLD
from .accuracy_scorer import (
    Prediction, PredictionOutcome, AccuracyRecord, LineupScore, RoundScore,
    AccuracyHistory, HistorySummary, AccuracyScorer,
    prediction_accuracy, aggregate_accuracy, is_correct
)

__all__ = [
    'Prediction',
    'PredictionOutcome',
    'AccuracyRecord',
    'LineupScore',
    'RoundScore',
    'AccuracyHistory',
    'HistorySummary',
    'AccuracyScorer',
    'prediction_accuracy',
    'aggregate_accuracy',
    'is_correct',
    'CORRECT_THRESHOLD'
]

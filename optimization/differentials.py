"""
Differential alerts: well-forecast players that few managers own

Every alert type is a fixed rule over the pool entry (forecast, ownership,
form, fixture difficulty) and, when supplied, the player's news hype. Alerts
are ranked by confidence so the strongest differentials come first.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from optimization.config import MAX_DIFFERENTIAL_ALERTS
from optimization.constraint_handler import Availability, PoolEntry, format_cost

logger = logging.getLogger(__name__)


class AlertType(Enum):
    RISING_STAR = 'rising_star'
    VALUE_PICK = 'value_pick'
    FORM_SURGE = 'form_surge'
    FIXTURE_SWING = 'fixture_swing'
    INJURY_DOUBT = 'injury_doubt'


@dataclass(frozen=True)
class Hype:
    """News attention for one player in one round"""
    player_id: int
    hype_score: float = 0.0
    sentiment: str = 'neutral'  # 'positive', 'negative' or 'neutral'
    mentions: int = 0


@dataclass(frozen=True)
class DifferentialAlert:
    """One reason to consider a low-ownership player"""
    entry: PoolEntry
    alert_type: AlertType
    confidence: float  # 0-100
    reason: str

    @property
    def player_id(self) -> int:
        return self.entry.player_id

    @property
    def ownership_percent(self) -> float:
        return self.entry.player.selected_by_percent

    @property
    def predicted_points(self) -> float:
        return self.entry.points


def value_per_ownership(predicted_points: float, ownership: float) -> float:
    """Forecast per 10% ownership; unowned players count as owned by 1%"""
    if ownership > 0:
        return predicted_points / (ownership / 10)
    return predicted_points * 10


class DifferentialAnalyzer:
    """Flag low-ownership players worth a look this round"""

    def __init__(self, max_alerts: int = MAX_DIFFERENTIAL_ALERTS):
        self.max_alerts = max_alerts

    def analyze(self, pool: Sequence[PoolEntry],
                hype: Optional[Mapping[int, Hype]] = None) -> List[DifferentialAlert]:
        """
        Build differential alerts for a round

        Only fully available players with a forecast are considered. A player
        gets at most one alert of each type.

        Args:
            pool: Pool entries for the round
            hype: Optional news hype keyed by player ID

        Returns:
            Alerts by confidence, highest first, at most max_alerts
        """
        hype = hype or {}
        best: Dict[tuple, DifferentialAlert] = {}

        for entry in pool:
            if not entry.is_scored or entry.player.status is not Availability.AVAILABLE:
                continue
            for alert in self._alerts_for(entry, hype.get(entry.player_id)):
                key = (alert.player_id, alert.alert_type)
                if key not in best or best[key].confidence < alert.confidence:
                    best[key] = alert

        alerts = sorted(best.values(), key=lambda a: -a.confidence)[:self.max_alerts]
        logger.info("Generated %d differential alerts", len(alerts))
        return alerts

    def _alerts_for(self, entry: PoolEntry, hype: Optional[Hype]) -> List[DifferentialAlert]:
        player = entry.player
        ownership = player.selected_by_percent
        points = entry.points
        form = player.form
        fdr = player.fixture_difficulty
        hype_score = hype.hype_score if hype else 0.0
        sentiment = hype.sentiment if hype else None
        value = value_per_ownership(points, ownership)

        alerts = []
        if ownership < 10 and points >= 5 and (hype_score > 30 or sentiment == 'positive'):
            mentions = hype.mentions if hype else 0
            alerts.append(DifferentialAlert(
                entry, AlertType.RISING_STAR,
                confidence=min(95.0, 60 + hype_score / 2),
                reason=(f"{player.name} is gaining attention with only {ownership:.1f}% ownership. "
                        f"{mentions} recent mentions in FPL news. Predicted {points:.1f} points.")
            ))

        if ownership < 15 and points >= 4 and value > 2:
            alerts.append(DifferentialAlert(
                entry, AlertType.VALUE_PICK,
                confidence=min(90.0, 50 + value * 10),
                reason=(f"{player.name} at {format_cost(player.now_cost)} offers excellent value. "
                        f"Predicted {points:.1f} points with only {ownership:.1f}% ownership.")
            ))

        if form >= 5 and fdr <= 2 and ownership < 20:
            alerts.append(DifferentialAlert(
                entry, AlertType.FORM_SURGE,
                confidence=min(85.0, 55 + form * 5),
                reason=(f"{player.name} is in excellent form ({form:.1f}) with a favorable fixture "
                        f"(FDR {fdr}). Currently at {ownership:.1f}% ownership.")
            ))

        if fdr == 1 and points >= 4 and ownership < 25:
            alerts.append(DifferentialAlert(
                entry, AlertType.FIXTURE_SWING,
                confidence=70.0,
                reason=(f"{player.name} faces the easiest fixture rating this week. "
                        f"Great differential at {ownership:.1f}% ownership.")
            ))

        if sentiment == 'negative' and hype_score > 20:
            alerts.append(DifferentialAlert(
                entry, AlertType.INJURY_DOUBT,
                confidence=min(80.0, 40 + hype_score / 2),
                reason=f"{player.name} has concerning news coverage. Monitor closely before deadline."
            ))

        return alerts


def find_differentials(pool: Sequence[PoolEntry],
                       hype: Optional[Mapping[int, Hype]] = None) -> List[DifferentialAlert]:
    return DifferentialAnalyzer().analyze(pool, hype)

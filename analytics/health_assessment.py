import logging
from datetime import datetime, timezone

from analytics.prognostics.rul_estimator import RULEstimator
from core.errors import PredictorUnavailable
from health.health_index import compute_health_score
from health.thresholds import DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)


class HealthAssessment:
    """
    On-demand motor assessment:
    formula health score + remote failure prediction + local trend.

    The remote predictor is optional: when it fails the result
    still carries a valid health score and ml_service_status
    "unavailable".
    """

    def __init__(self, predictor, table=DEFAULT_THRESHOLDS):
        self.predictor = predictor
        self.table = table

        vib_rule = table.get("vibration_rms")
        self.trend = RULEstimator(limit_value=vib_rule.warning_bound) if vib_rule else None

    def assess(self, reading, vibration_history: list) -> dict:
        health = compute_health_score(reading, self.table)

        ml_prediction = None
        ml_error = None

        try:
            ml_prediction = self.predictor.predict(vibration_history)
        except PredictorUnavailable as e:
            ml_error = str(e)
            logger.warning(f"[Assessment] Degraded mode, predictor unavailable: {ml_error}")

        return {
            "motor_id": reading.motor_id,
            "health_score": health,
            "ml_prediction": ml_prediction,
            "ml_service_status": "available" if ml_prediction else "unavailable",
            "ml_service_error": ml_error,
            "vibration_trend": self._trend(vibration_history),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def _trend(self, vibration_history):
        if self.trend is None:
            return None
        try:
            return self.trend.estimate(vibration_history)
        except (TypeError, ValueError) as e:
            logger.warning(f"[Assessment] Vibration trend skipped: {e}")
            return None

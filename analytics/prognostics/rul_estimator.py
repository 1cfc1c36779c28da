# analytics/prognostics/rul_estimator.py
import logging
import math

import numpy as np

logger = logging.getLogger(__name__)


def _finite(x):
    if x is None or isinstance(x, bool):
        return None
    try:
        x = float(x)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


class RULEstimator:
    def __init__(self, limit_value: float, min_points: int = 6):
        """
        limit_value: critical bound of the trended value
                     (e.g. vibration RMS 4.5 mm/s)
        """
        self.limit = limit_value
        self.min_points = min_points

    @staticmethod
    def _insufficient(reason):
        return {
            "minutes_to_limit": None,
            "confidence": 0.0,
            "method": "insufficient_data",
            "reason": reason,
        }

    def estimate(self, history: list[dict]) -> dict:
        """
        Local trend estimate, independent of the remote predictor.

        history item:
        {
            "timestamp": float,   # unix seconds, optional
            "vibration_rms": float
        }

        Items without a usable vibration value are skipped. Without a
        timestamp on every remaining item there is no time axis, so no
        fit is attempted.
        """
        points = []
        for h in history:
            v = _finite(h.get("vibration_rms")) if isinstance(h, dict) else None
            if v is None:
                continue
            points.append((_finite(h.get("timestamp")), v))

        if len(points) < self.min_points:
            return self._insufficient("too few readings")

        if any(ts is None for ts, _ in points):
            logger.debug("[Trend] History without timestamps, trend skipped")
            return self._insufficient("missing timestamps")

        t = np.array([ts for ts, _ in points], dtype=float)
        v = np.array([x for _, x in points], dtype=float)

        # normalize time to minutes
        t = (t - t[0]) / 60.0

        if np.ptp(t) == 0:
            return self._insufficient("no time span")

        slope, intercept = np.polyfit(t, v, 1)

        if v[-1] >= self.limit:
            return {
                "minutes_to_limit": 0.0,
                "confidence": 1.0,
                "degradation_rate": round(float(slope), 5),
                "method": "limit_exceeded",
            }

        # stable or improving
        if slope <= 0:
            return {
                "minutes_to_limit": None,
                "confidence": 0.4,
                "degradation_rate": round(float(slope), 5),
                "method": "stable_trend",
            }

        remaining = (self.limit - v[-1]) / slope

        return {
            "minutes_to_limit": max(0.0, round(float(remaining), 1)),
            "confidence": min(1.0, len(points) / 30),
            "degradation_rate": round(float(slope), 5),
            "method": "linear_extrapolation",
        }

# analytics/prognostics/failure_predictor.py

import logging

import requests

from core.errors import PredictorUnavailable

logger = logging.getLogger(__name__)


class FailurePredictorClient:
    """
    Remote bearing-failure predictor (opaque model service).

    POST {url}/predict/both
        {"readings": [{"vibration_rms": float, "timestamp": float?}, ...]}

    Any transport problem, non-2xx status or malformed body is
    raised as PredictorUnavailable. Callers degrade, never crash.
    """

    def __init__(self, url="http://localhost:8001", timeout=10.0, min_readings=1, http=None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.min_readings = min_readings
        self.http = http or requests

    @classmethod
    def from_config(cls, config: dict) -> "FailurePredictorClient":
        p = config.get("predictor", {})
        return cls(
            url=p.get("url", "http://localhost:8001"),
            timeout=float(p.get("timeout_sec", 10)),
            min_readings=int(p.get("min_readings", 1)),
        )

    def predict(self, readings: list) -> dict:
        if len(readings) < self.min_readings:
            raise PredictorUnavailable(
                f"Not enough vibration readings for ML prediction "
                f"(need at least {self.min_readings})"
            )

        endpoint = f"{self.url}/predict/both"
        logger.info(f"[Predictor] Calling {endpoint} with {len(readings)} readings")

        try:
            resp = self.http.post(endpoint, json={"readings": readings}, timeout=self.timeout)
        except requests.RequestException as e:
            raise PredictorUnavailable(f"ML service unavailable: {e}") from e

        if not 200 <= resp.status_code < 300:
            detail = None
            try:
                body = resp.json()
                if isinstance(body, dict):
                    detail = body.get("detail")
            except ValueError:
                pass
            raise PredictorUnavailable(detail or f"ML service error: {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise PredictorUnavailable(f"ML service returned invalid JSON: {e}") from e

        return parse_prediction(body)


def parse_prediction(body) -> dict:
    """Validate the predictor contract and normalize types."""
    try:
        c = body["classification"]
        r = body["regression"]

        probability = float(c["failure_probability"])
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"failure_probability {probability} outside [0, 1]")

        return {
            "classification": {
                "will_fail_soon": bool(c["will_fail_soon"]),
                "failure_probability": probability,
                "confidence": c["confidence"],
                "threshold_minutes": float(c["threshold_minutes"]),
            },
            "regression": {
                "minutes_to_failure": float(r["minutes_to_failure"]),
                "hours_to_failure": float(r["hours_to_failure"]),
                "status": str(r["status"]),
            },
            "readings_used": int(body["readings_used"]),
        }
    except (KeyError, TypeError, ValueError) as e:
        raise PredictorUnavailable(f"Malformed ML service response: {e}") from e

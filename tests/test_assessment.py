"""Remote predictor client, degraded mode, local vibration trend."""
import pytest
import requests

from analytics.health_assessment import HealthAssessment
from analytics.prognostics.failure_predictor import FailurePredictorClient, parse_prediction
from analytics.prognostics.rul_estimator import RULEstimator
from core.errors import PredictorUnavailable
from raw_ingest.reading import SensorReading

GOOD_BODY = {
    "classification": {
        "will_fail_soon": True,
        "failure_probability": 0.82,
        "confidence": "high",
        "threshold_minutes": 60,
    },
    "regression": {"minutes_to_failure": 45.5, "hours_to_failure": 0.76, "status": "warning"},
    "readings_used": 3,
}

HISTORY = [{"vibration_rms": 2.0 + 0.1 * i, "timestamp": 1_700_000_000 + 60 * i} for i in range(10)]


class FakeResponse:
    def __init__(self, status_code=200, body=None, raw=None):
        self.status_code = status_code
        self._body = body
        self._raw = raw

    def json(self):
        if self._raw is not None:
            raise ValueError("not json")
        return self._body


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json, timeout))
        if self.error:
            raise self.error
        return self.response


class TestPredictorClient:
    def test_successful_prediction(self):
        http = FakeHttp(FakeResponse(200, GOOD_BODY))
        client = FailurePredictorClient("http://ml:8001/", timeout=3, http=http)

        result = client.predict(HISTORY[:3])

        url, body, timeout = http.calls[0]
        assert url == "http://ml:8001/predict/both"
        assert body == {"readings": HISTORY[:3]}
        assert timeout == 3
        assert result["classification"]["failure_probability"] == 0.82
        assert result["regression"]["minutes_to_failure"] == 45.5
        assert result["readings_used"] == 3

    def test_connection_error_is_unavailable(self):
        http = FakeHttp(error=requests.ConnectionError("refused"))
        with pytest.raises(PredictorUnavailable, match="unavailable"):
            FailurePredictorClient(http=http).predict(HISTORY)

    def test_error_status_uses_detail(self):
        http = FakeHttp(FakeResponse(503, {"detail": "model not loaded"}))
        with pytest.raises(PredictorUnavailable, match="model not loaded"):
            FailurePredictorClient(http=http).predict(HISTORY)

    def test_invalid_json_is_unavailable(self):
        http = FakeHttp(FakeResponse(200, raw=b"<html>"))
        with pytest.raises(PredictorUnavailable):
            FailurePredictorClient(http=http).predict(HISTORY)

    def test_too_few_readings_skips_call(self):
        http = FakeHttp(FakeResponse(200, GOOD_BODY))
        with pytest.raises(PredictorUnavailable, match="at least 1"):
            FailurePredictorClient(http=http).predict([])
        assert http.calls == []

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {**GOOD_BODY, "classification": {**GOOD_BODY["classification"], "failure_probability": 1.5}},
            {**GOOD_BODY, "regression": None},
            {**GOOD_BODY, "readings_used": "many"},
        ],
    )
    def test_malformed_contract_rejected(self, body):
        with pytest.raises(PredictorUnavailable):
            parse_prediction(body)


class TestHealthAssessment:
    def test_available(self):
        predictor = FailurePredictorClient(http=FakeHttp(FakeResponse(200, GOOD_BODY)))
        result = HealthAssessment(predictor).assess(SensorReading(vibration_rms=3.0), HISTORY)

        assert result["ml_service_status"] == "available"
        assert result["ml_service_error"] is None
        assert result["ml_prediction"]["classification"]["will_fail_soon"] is True
        assert result["health_score"]["score"] == 85.0

    def test_degraded_mode_keeps_health_score(self):
        predictor = FailurePredictorClient(http=FakeHttp(error=requests.Timeout("slow")))
        result = HealthAssessment(predictor).assess(SensorReading(vibration_rms=5.0), HISTORY)

        assert result["ml_service_status"] == "unavailable"
        assert result["ml_prediction"] is None
        assert "slow" in result["ml_service_error"]
        assert result["health_score"]["score"] == 70.0
        assert result["health_score"]["category"] == "At Risk"

    def test_history_without_timestamps(self):
        predictor = FailurePredictorClient(http=FakeHttp(error=requests.ConnectionError("down")))
        history = [{"vibration_rms": 2.0 + 0.1 * i} for i in range(8)]

        result = HealthAssessment(predictor).assess(SensorReading(vibration_rms=3.0), history)

        assert result["ml_service_status"] == "unavailable"
        assert result["health_score"]["score"] == 85.0
        assert result["vibration_trend"]["method"] == "insufficient_data"
        assert result["vibration_trend"]["reason"] == "missing timestamps"

    def test_trend_failure_leaves_trend_empty(self):
        class BrokenTrend:
            def estimate(self, history):
                raise ValueError("bad history")

        predictor = FailurePredictorClient(http=FakeHttp(FakeResponse(200, GOOD_BODY)))
        assessment = HealthAssessment(predictor)
        assessment.trend = BrokenTrend()

        result = assessment.assess(SensorReading(vibration_rms=3.0), HISTORY)

        assert result["vibration_trend"] is None
        assert result["ml_service_status"] == "available"

    def test_empty_history_is_degraded_not_crash(self):
        predictor = FailurePredictorClient(http=FakeHttp(FakeResponse(200, GOOD_BODY)))
        result = HealthAssessment(predictor).assess(SensorReading(), [])

        assert result["ml_service_status"] == "unavailable"
        assert result["health_score"]["score"] == 100.0
        assert result["vibration_trend"]["method"] == "insufficient_data"


class TestVibrationTrend:
    def test_rising_trend_extrapolates(self):
        result = RULEstimator(limit_value=4.5).estimate(HISTORY)

        # 0.1 mm/s per minute, last value 2.9
        assert result["method"] == "linear_extrapolation"
        assert result["minutes_to_limit"] == pytest.approx(16.0, abs=0.1)
        assert result["degradation_rate"] == pytest.approx(0.1)

    def test_improving_trend_is_stable(self):
        falling = [{"vibration_rms": 3.0 - 0.1 * i, "timestamp": 60 * i} for i in range(8)]
        result = RULEstimator(limit_value=4.5).estimate(falling)

        assert result["method"] == "stable_trend"
        assert result["minutes_to_limit"] is None

    def test_already_past_limit(self):
        high = [{"vibration_rms": 5.0, "timestamp": 60 * i} for i in range(8)]
        assert RULEstimator(limit_value=4.5).estimate(high)["minutes_to_limit"] == 0.0

    def test_unusable_items_are_skipped(self):
        history = HISTORY + [{"vibration_rms": "n/a", "timestamp": 0}, {"timestamp": 1}, None]
        assert RULEstimator(limit_value=4.5).estimate(history)["method"] == "linear_extrapolation"

    def test_insufficient_history(self):
        assert RULEstimator(limit_value=4.5).estimate(HISTORY[:3])["method"] == "insufficient_data"

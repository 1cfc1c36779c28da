# health/health_index.py

from health.state_mapping import score_to_category
from health.thresholds import DEFAULT_THRESHOLDS, evaluate_reading


def compute_health_score(reading, table=DEFAULT_THRESHOLDS) -> dict:
    """
    Formula-based motor health index (0–100)
    ----------------------------------------
    100 minus the penalty of every present parameter.
    Deterministic; needs no history and no remote model.
    """

    statuses = evaluate_reading(reading, table)

    total_penalty = sum(s.penalty for s in statuses)
    score = round(max(min(100.0 - total_penalty, 100.0), 0.0), 1)

    factors = [
        {
            "parameter": s.parameter,
            "value": s.value,
            "status": s.level.value,
            "penalty": s.penalty,
        }
        for s in statuses
    ]

    return {
        "score": score,
        "category": score_to_category(score),
        "factors": factors,
        "parameters_evaluated": len(statuses),
    }

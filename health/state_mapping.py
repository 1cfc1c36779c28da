def score_to_category(score) -> str:
    """
    Map health index (0–100) to motor category.
    Higher is healthier.
    """

    if score is None:
        return "Unknown"

    if score >= 80:
        return "Healthy"
    elif score >= 60:
        return "At Risk"
    else:
        return "Critical"

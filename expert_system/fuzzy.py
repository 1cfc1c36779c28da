# expert_system/fuzzy.py

from enum import Enum

from core.errors import InvalidAnswerError


class FuzzyLevel(Enum):
    NO = "No"
    SOMETIMES = "Sometimes"
    YES = "Yes"


FUZZY_VALUE = {
    FuzzyLevel.NO: 0.0,
    FuzzyLevel.SOMETIMES: 0.5,
    FuzzyLevel.YES: 1.0,
}


def fuzzy_value(level: FuzzyLevel) -> float:
    """Operator answer → user CF."""
    return FUZZY_VALUE[level]


def to_fuzzy_level(raw) -> FuzzyLevel:
    if isinstance(raw, FuzzyLevel):
        return raw

    # YAML 1.1 loads unquoted Yes / No as booleans
    if isinstance(raw, bool):
        return FuzzyLevel.YES if raw else FuzzyLevel.NO

    if isinstance(raw, str):
        for level in FuzzyLevel:
            if raw.strip().lower() == level.value.lower():
                return level

    raise InvalidAnswerError(f"Unknown answer level: {raw!r} (expected No / Sometimes / Yes)")

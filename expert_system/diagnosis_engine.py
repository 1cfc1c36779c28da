# expert_system/diagnosis_engine.py

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from expert_system.catalog import SEVERITY_SCORE, Operator, Severity
from core.errors import InvalidAnswerError
from expert_system.fuzzy import fuzzy_value, to_fuzzy_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosisResult:
    rule_id: str
    severity: Severity
    cf: float
    damage: str
    remedy: str


@dataclass(frozen=True)
class Conclusion:
    percent: float
    label: Severity


@dataclass(frozen=True)
class DiagnosisReport:
    results: Tuple[DiagnosisResult, ...]
    conclusion: Optional[Conclusion]


def parse_answers(raw: dict, symptoms=None) -> dict:
    """
    Raw operator answers {symptom_id: "Yes"} → {int: FuzzyLevel}.
    Unknown symptom ids are dropped when a catalog is given.
    """
    known = {s.id for s in symptoms} if symptoms is not None else None
    answers = {}

    for key, level in raw.items():
        try:
            symptom_id = int(key)
        except (TypeError, ValueError) as e:
            raise InvalidAnswerError(f"Symptom id must be an integer, got {key!r}") from e
        if known is not None and symptom_id not in known:
            logger.debug(f"[ExpertSystem] Ignoring answer for unknown symptom {symptom_id}")
            continue
        answers[symptom_id] = to_fuzzy_level(level)

    return answers


def rule_certainty(rule, answers: dict, cf_by_symptom: dict) -> Optional[float]:
    """
    CF of one rule, or None when none of its symptoms was answered.
    Unanswered symptoms are left out, not counted as "No".
    """
    contributions = [
        fuzzy_value(answers[sid]) * cf_by_symptom[sid]
        for sid in rule.symptoms
        if sid in answers and sid in cf_by_symptom
    ]

    if not contributions:
        return None

    if rule.operator is Operator.OR:
        return max(contributions)
    return min(contributions)


def conclude(results) -> Optional[Conclusion]:
    if not results:
        return None

    total = sum(SEVERITY_SCORE[r.severity] for r in results)
    percent = total / len(results)

    if percent <= 40:
        label = Severity.MINOR
    elif percent <= 70:
        label = Severity.MODERATE
    else:
        label = Severity.SEVERE

    return Conclusion(percent=round(percent, 1), label=label)


def diagnose(answers: dict, symptoms, rules) -> DiagnosisReport:
    """
    Certainty-factor diagnosis
    --------------------------
    - per symptom : fuzzy(answer) x expert CF
    - per rule    : OR → max, AND → min
    - emitted     : rule CF > 0, in rule catalog order (unrounded)
    - conclusion  : mean severity score, re-bucketed
    """
    cf_by_symptom = {s.id: s.cf_expert for s in symptoms}
    results = []

    for rule in rules:
        cf = rule_certainty(rule, answers, cf_by_symptom)
        if cf is None or cf <= 0:
            continue

        results.append(
            DiagnosisResult(
                rule_id=rule.id,
                severity=rule.severity,
                cf=cf,
                damage=rule.damage,
                remedy=rule.remedy,
            )
        )

    return DiagnosisReport(results=tuple(results), conclusion=conclude(results))


class DiagnosisEngine:
    """Binds a loaded knowledge base to diagnose()."""

    def __init__(self, knowledge_base):
        self.kb = knowledge_base

    def diagnose(self, raw_answers: dict) -> DiagnosisReport:
        answers = parse_answers(raw_answers, self.kb.symptoms)
        if not answers:
            logger.info("[ExpertSystem] No symptoms answered, nothing to diagnose")
        return diagnose(answers, self.kb.symptoms, self.kb.rules)


def format_report(report: DiagnosisReport) -> str:
    if not report.results:
        return "No fault hypothesis supported by the given answers."

    lines = []
    for r in report.results:
        lines.append(f"[{r.rule_id}] {r.severity.value:<8} CF {r.cf:.2f}  {r.damage}")
        lines.append(f"       → {r.remedy}")

    c = report.conclusion
    lines.append("")
    lines.append(f"Conclusion: {c.label.value} ({c.percent:.1f}%)")
    return "\n".join(lines)

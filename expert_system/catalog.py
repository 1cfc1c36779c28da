# expert_system/catalog.py

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Tuple

from config.config_loader import load_yaml
from core.errors import CatalogError

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE_BASE = Path(__file__).resolve().parent.parent / "config" / "knowledge_base.yaml"


class Operator(Enum):
    AND = "AND"
    OR = "OR"


class Severity(Enum):
    MINOR = "Minor"
    MODERATE = "Moderate"
    SEVERE = "Severe"


SEVERITY_SCORE = {
    Severity.MINOR: 40,
    Severity.MODERATE: 70,
    Severity.SEVERE: 100,
}


@dataclass(frozen=True)
class Symptom:
    id: int
    question: str
    cf_expert: float


@dataclass(frozen=True)
class Rule:
    id: str
    symptoms: Tuple[int, ...]
    operator: Operator
    severity: Severity
    damage: str
    remedy: str


@dataclass(frozen=True)
class KnowledgeBase:
    symptoms: Tuple[Symptom, ...]
    rules: Tuple[Rule, ...]

    def symptom(self, symptom_id):
        for s in self.symptoms:
            if s.id == symptom_id:
                return s
        return None


# =========================================================
# LOADING
# =========================================================
def _parse_symptom(raw: dict) -> Symptom:
    try:
        symptom = Symptom(
            id=int(raw["id"]),
            question=str(raw["question"]),
            cf_expert=float(raw["cf"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"Malformed symptom {raw!r}: {e}") from e

    if not -1.0 <= symptom.cf_expert <= 1.0:
        raise CatalogError(f"Symptom {symptom.id}: cf {symptom.cf_expert} outside [-1, 1]")

    return symptom


def _parse_rule(raw: dict) -> Rule:
    try:
        return Rule(
            id=str(raw["id"]),
            symptoms=tuple(int(s) for s in raw["symptoms"]),
            operator=Operator(str(raw["operator"]).upper()),
            severity=Severity(raw["severity"]),
            damage=str(raw["damage"]),
            remedy=str(raw["remedy"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"Malformed rule {raw!r}: {e}") from e


def build_knowledge_base(data: dict) -> KnowledgeBase:
    symptoms = tuple(_parse_symptom(s) for s in data.get("symptoms") or [])
    rules = tuple(_parse_rule(r) for r in data.get("rules") or [])

    ids = [s.id for s in symptoms]
    if len(ids) != len(set(ids)):
        raise CatalogError("Duplicate symptom id in knowledge base")

    rule_ids = [r.id for r in rules]
    if len(rule_ids) != len(set(rule_ids)):
        raise CatalogError("Duplicate rule id in knowledge base")

    known = set(ids)
    for rule in rules:
        if not rule.symptoms:
            raise CatalogError(f"Rule {rule.id} references no symptoms")
        unknown = [s for s in rule.symptoms if s not in known]
        if unknown:
            raise CatalogError(f"Rule {rule.id} references unknown symptoms {unknown}")

    return KnowledgeBase(symptoms=symptoms, rules=rules)


def load_knowledge_base(path=None) -> KnowledgeBase:
    path = path or DEFAULT_KNOWLEDGE_BASE
    kb = build_knowledge_base(load_yaml(path))
    logger.info(f"[ExpertSystem] Loaded {len(kb.symptoms)} symptoms, {len(kb.rules)} rules from {path}")
    return kb

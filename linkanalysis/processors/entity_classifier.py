"""
Regex-based classification of raw entity values into domain types
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from linkanalysis.core.models import EntityType

_NORMALIZE_RE = re.compile(r"[^\w@.-]")
_DOCUMENT_SHAPED_RE = re.compile(r"^[\d.\-/()\s]+$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PLATE_RE = re.compile(r"^(?:[A-Z]{3}\d[A-Z]\d{2}|[A-Z]{3}\d{4})$")
_ADDRESS_RE = re.compile(
    r"\b(?:rua|avenida|av|alameda|travessa|praça|praca|estrada|rodovia)\b"
    r"|(?<!\w)(?:r|av|al|tr|pr|est|rod)\.",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ClassificationInput:
    """A value seen from the angles the rules need"""
    raw: str
    normalized: str
    digits: str

    @classmethod
    def from_value(cls, value: str) -> "ClassificationInput":
        raw = str(value).strip()
        normalized = _NORMALIZE_RE.sub("", raw)
        # Formatted documents such as 123.456.789-01 are judged on their digits
        digits = re.sub(r"\D", "", raw) if _DOCUMENT_SHAPED_RE.match(raw) else normalized
        return cls(raw=raw, normalized=normalized, digits=digits)


@dataclass(frozen=True)
class EntityRule:
    """Named predicate mapping a value to an entity type"""
    name: str
    entity_type: EntityType
    matches: Callable[[ClassificationInput], bool]


DEFAULT_RULES: List[EntityRule] = [
    EntityRule("cpf", EntityType.CPF, lambda v: bool(re.fullmatch(r"\d{11}", v.digits))),
    EntityRule("cnpj", EntityType.CNPJ, lambda v: bool(re.fullmatch(r"\d{14}", v.digits))),
    EntityRule("telefone", EntityType.TELEFONE, lambda v: bool(re.fullmatch(r"[1-9]\d{9,10}", v.digits))),
    EntityRule("email", EntityType.EMAIL, lambda v: bool(_EMAIL_RE.match(v.raw))),
    EntityRule("placa", EntityType.PLACA,
               lambda v: bool(_PLATE_RE.match(re.sub(r"[^A-Za-z0-9]", "", v.normalized).upper()))),
    EntityRule("endereco", EntityType.ENDERECO, lambda v: bool(_ADDRESS_RE.search(v.raw))),
]


class EntityClassifier:
    """
    Infers the domain type of an entity value. Rules run in order and the
    first match wins; anything unmatched is a generic entity.
    """

    def __init__(self, rules: Optional[List[EntityRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def classify(self, value: str) -> EntityType:
        candidate = ClassificationInput.from_value(value)
        for rule in self.rules:
            if rule.matches(candidate):
                return rule.entity_type
        return EntityType.ENTIDADE

    def explain(self, value: str) -> str:
        """Name of the rule that classified value, or 'default'"""
        candidate = ClassificationInput.from_value(value)
        for rule in self.rules:
            if rule.matches(candidate):
                return rule.name
        return "default"


def classify_entity(value: str) -> EntityType:
    return _default_classifier.classify(value)


_default_classifier = EntityClassifier()

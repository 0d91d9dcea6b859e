"""
Column-role detection: decides which columns hold relationship endpoints, labels and weights
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .coercion import is_empty, parse_number, strip_accents, to_text
from linkanalysis.core.exceptions import InvalidTableError
from linkanalysis.core.models import ColumnMapping, ColumnProfile, ContentType, ProcessingConfig, Row

SOURCE_PATTERN = re.compile(
    r"(origem|source|from|de|pessoa|entidade|remetente|beneficiario|emissor|primeiro|inicio|partida)"
)
TARGET_PATTERN = re.compile(
    r"(destino|target|to|para|relacionado|conectado|nome|receptor|destinatario|segundo|fim|chegada)"
)
IDENTIFIER_PATTERN = re.compile(r"(cpf|cnpj|documento|identificacao|rif|id|codigo|numero|matricula|registro)")
NAME_PATTERN = re.compile(
    r"(nome|beneficiario|remetente|titular|responsavel|pessoa|entidade|empresa|cliente|fornecedor"
    r"|destinatario|emissor|descricao|titulo|rotulo)"
)
RELATIONSHIP_PATTERN = re.compile(
    r"(tipo|relacao|relacionamento|operacao|acao|vinculo|status|categoria|funcao|papel|atividade)"
)
OPERATIONAL_PATTERN = re.compile(r"(remetente|beneficiario|tipo|status|observacoes|categoria|operacao|acao|funcao)")
VALUE_PATTERN = re.compile(
    r"(valor|montante|quantia|preco|custo|peso|forca|intensidade|frequencia|importancia|relevancia)"
)

SOURCE_SYNONYMS = [
    "remetente", "emissor", "origem", "primeiro", "inicio", "partida", "de", "from",
    "cliente", "fornecedor", "vendedor", "comprador", "pagador", "recebedor",
    "pessoa1", "entidade1", "sujeito1", "ator1", "participante1",
]
TARGET_SYNONYMS = [
    "destinatario", "receptor", "destino", "segundo", "fim", "chegada", "para", "to",
    "beneficiario", "recebedor", "cliente", "fornecedor", "vendedor", "comprador",
    "pessoa2", "entidade2", "sujeito2", "ator2", "participante2",
]
FLEXIBLE_SOURCE_TERMS = ["id", "codigo", "numero", "matricula", "registro"]
FLEXIBLE_TARGET_TERMS = ["nome", "descricao", "titulo", "rotulo", "identificacao"]

TAX_ID_RE = re.compile(
    r"^(?:\d{3}\.\d{3}\.\d{3}-\d{2}|\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}|[A-Z]{2}\d{9}|\d{11}|\d{14})$"
)
PHONE_RE = re.compile(r"^\(\d{2}\)\s?\d{4,5}-\d{4}$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

# (content type, minimum share of the sample); earlier entries win ties
CONTENT_THRESHOLDS = [
    (ContentType.TAX_ID, 0.3),
    (ContentType.PHONE, 0.3),
    (ContentType.EMAIL, 0.3),
    (ContentType.NUMERIC, 0.7),
    (ContentType.TEXT, 0.7),
]


def normalize_header(column: str) -> str:
    return strip_accents(column).lower()


@dataclass(frozen=True)
class RoleCandidate:
    """Ranked column proposals for the source and target roles"""
    sources: List[str] = field(default_factory=list)
    targets: List[str] = field(default_factory=list)


class RoleStrategy(ABC):
    """One step of the detection cascade; must be a pure function of its inputs"""
    name = "strategy"

    @abstractmethod
    def propose(self, columns: List[str], profiles: Dict[str, ColumnProfile]) -> RoleCandidate:
        pass


class NamePatternStrategy(RoleStrategy):
    """Headers naming an origin or a destination"""
    name = "name_pattern"

    def propose(self, columns: List[str], profiles: Dict[str, ColumnProfile]) -> RoleCandidate:
        headers = {column: normalize_header(column) for column in columns}
        sources = [c for c in columns if SOURCE_PATTERN.search(headers[c])]
        targets = [c for c in columns if TARGET_PATTERN.search(headers[c])]
        # "destino" also contains "de"; a header matching both sides ranks last
        sources.sort(key=lambda c: bool(TARGET_PATTERN.search(headers[c])))
        targets.sort(key=lambda c: bool(SOURCE_PATTERN.search(headers[c])))
        return RoleCandidate(sources, targets)


class ContentProfileStrategy(RoleStrategy):
    """Columns whose values look like documents, contacts or names"""
    name = "content_profile"

    def propose(self, columns: List[str], profiles: Dict[str, ColumnProfile]) -> RoleCandidate:
        ranked = [profiles[c] for c in columns if c in profiles]

        source_types = (ContentType.TAX_ID, ContentType.PHONE, ContentType.EMAIL)
        sources = [
            p for p in ranked
            if p.content_type in source_types or (p.content_type == ContentType.TEXT and p.unique_values > 10)
        ]
        sources.sort(key=lambda p: p.confidence, reverse=True)

        targets = [
            p for p in ranked
            if p.content_type == ContentType.TEXT
            or (p.unique_values > 5 and p.content_type != ContentType.NUMERIC)
        ]
        targets.sort(key=lambda p: p.unique_values, reverse=True)

        return RoleCandidate([p.column for p in sources], [p.column for p in targets])


class IdentifierKeywordStrategy(RoleStrategy):
    """Document or code columns as source, name or description columns as target"""
    name = "identifier_keyword"

    def propose(self, columns: List[str], profiles: Dict[str, ColumnProfile]) -> RoleCandidate:
        sources = [c for c in columns if IDENTIFIER_PATTERN.search(normalize_header(c))]
        targets = [c for c in columns if NAME_PATTERN.search(normalize_header(c))]
        return RoleCandidate(sources, targets)


class SynonymStrategy(RoleStrategy):
    """Broad vocabulary of counterpart words, then loose id and name terms"""
    name = "synonym"

    def propose(self, columns: List[str], profiles: Dict[str, ColumnProfile]) -> RoleCandidate:
        headers = {column: normalize_header(column) for column in columns}

        def matching(terms: Sequence[str]) -> List[str]:
            return [c for c in columns if any(term in headers[c] for term in terms)]

        sources = matching(SOURCE_SYNONYMS) + matching(FLEXIBLE_SOURCE_TERMS)
        targets = matching(TARGET_SYNONYMS) + matching(FLEXIBLE_TARGET_TERMS)
        return RoleCandidate(list(dict.fromkeys(sources)), list(dict.fromkeys(targets)))


class PositionalStrategy(RoleStrategy):
    """First declared column as source, second as target"""
    name = "positional"

    def propose(self, columns: List[str], profiles: Dict[str, ColumnProfile]) -> RoleCandidate:
        if len(columns) < 2:
            return RoleCandidate(list(columns), list(columns))
        return RoleCandidate(list(columns), [columns[1], columns[0]] + list(columns[2:]))


DEFAULT_STRATEGIES: List[RoleStrategy] = [
    NamePatternStrategy(),
    ContentProfileStrategy(),
    IdentifierKeywordStrategy(),
    SynonymStrategy(),
    PositionalStrategy(),
]


def sample_column(column: str, rows: Sequence[Row], sample_size: int = 50,
                  sparse_threshold: int = 10, sparse_sample_size: int = 20) -> List[Any]:
    """
    Evenly spaced values of a column across the whole table.

    When fewer than sparse_threshold values are collected the leading rows
    are appended as well.
    """
    total = len(rows)
    size = min(sample_size, total)
    step = max(1, total // size) if size else 1

    sample = []
    for i in range(size):
        index = i * step
        if index >= total:
            break
        if column in rows[index]:
            sample.append(rows[index][column])

    if len(sample) < sparse_threshold:
        for row in rows[:min(sparse_sample_size, total)]:
            if column in row:
                sample.append(row[column])
    return sample


def profile_column(column: str, values: Sequence[Any]) -> ColumnProfile:
    """Classify a column sample by majority vote over content patterns"""
    non_empty = [value for value in values if not is_empty(value)]
    if not non_empty:
        return ColumnProfile(column=column)

    texts = [to_text(value).strip() for value in non_empty]
    total = len(non_empty)

    numeric_count = sum(
        1 for value in non_empty
        if not isinstance(value, bool) and (isinstance(value, (int, float)) or parse_number(value) is not None)
    )
    counts = {
        ContentType.TAX_ID: sum(1 for text in texts if TAX_ID_RE.match(text)),
        ContentType.PHONE: sum(1 for text in texts if PHONE_RE.match(text)),
        ContentType.EMAIL: sum(1 for text in texts if EMAIL_RE.match(text)),
        ContentType.NUMERIC: numeric_count,
        ContentType.TEXT: sum(1 for value in non_empty if isinstance(value, str) and 2 < len(value) < 100),
    }

    content_type, confidence = ContentType.UNKNOWN, 0.0
    for candidate, threshold in CONTENT_THRESHOLDS:
        ratio = counts[candidate] / total
        if ratio > threshold and ratio > confidence:
            content_type, confidence = candidate, ratio

    return ColumnProfile(
        column=column,
        content_type=content_type,
        confidence=confidence,
        unique_values=len(set(texts)),
        total_values=total,
        sample_values=texts[:5],
        numeric_ratio=numeric_count / total,
    )


class ColumnDetector:
    """
    Infers column roles for graph construction:
    1. Profile every column from an evenly spaced sample
    2. Run the role strategies in order until source and target are set
    3. Pick the relationship-label column by keyword
    4. Pick the weight column by keyword, then by numeric content
    """

    def __init__(self, config: Optional[ProcessingConfig] = None,
                 strategies: Optional[List[RoleStrategy]] = None):
        self.config = config or ProcessingConfig()
        self.strategies = list(strategies) if strategies is not None else list(DEFAULT_STRATEGIES)

    def analyze_columns(self, columns: List[str], rows: Sequence[Row]) -> Dict[str, ColumnProfile]:
        return {
            column: profile_column(
                column,
                sample_column(
                    column, rows,
                    sample_size=self.config.sample_size,
                    sparse_threshold=self.config.sparse_threshold,
                    sparse_sample_size=self.config.sparse_sample_size,
                ),
            )
            for column in columns
        }

    def detect(self, columns: List[str], rows: Sequence[Row]) -> ColumnMapping:
        """Best-effort column mapping; only an empty column list is an error"""
        if not columns:
            raise InvalidTableError("No columns available for detection")

        logger.info(f"Detecting columns for link analysis among {len(columns)} columns and {len(rows)} rows")
        profiles = self.analyze_columns(columns, rows)

        source: Optional[str] = None
        target: Optional[str] = None
        explanations: Dict[str, str] = {}

        for strategy in self.strategies:
            if source is not None and target is not None:
                break
            candidate = strategy.propose(columns, profiles)

            if source is None:
                source = self._first_other(candidate.sources, target)
                if source is not None:
                    explanations["source"] = strategy.name
                    logger.debug(f"Source column '{source}' resolved by {strategy.name}")

            if target is None:
                target = self._first_other(candidate.targets, source)
                if target is not None:
                    explanations["target"] = strategy.name
                    logger.debug(f"Target column '{target}' resolved by {strategy.name}")

        if source is None:
            source = columns[0]
            explanations["source"] = "positional"
        if target is None:
            target = columns[1] if len(columns) > 1 and columns[1] != source else columns[0]
            explanations["target"] = "positional"

        relationship = self._first_matching(columns, RELATIONSHIP_PATTERN)
        if relationship is not None:
            explanations["relationship"] = "relationship_keyword"
        else:
            relationship = self._first_matching(columns, OPERATIONAL_PATTERN)
            if relationship is not None:
                explanations["relationship"] = "operational_keyword"

        weight = self._first_matching(columns, VALUE_PATTERN)
        if weight is not None:
            explanations["weight"] = "value_keyword"
        else:
            weight = next((c for c in columns if profiles[c].numeric_ratio > 0.5), None)
            if weight is not None:
                explanations["weight"] = "numeric_content"

        mapping = ColumnMapping(
            source_column=source,
            target_column=target,
            relationship_column=relationship,
            weight_column=weight,
            explanations=explanations,
        )
        logger.info(
            f"Column mapping: source={source}, target={target}, "
            f"relationship={relationship}, weight={weight}"
        )
        return mapping

    @staticmethod
    def _first_other(candidates: List[str], taken: Optional[str]) -> Optional[str]:
        for column in candidates:
            if column != taken:
                return column
        return None

    @staticmethod
    def _first_matching(columns: List[str], pattern: "re.Pattern") -> Optional[str]:
        return next((c for c in columns if pattern.search(normalize_header(c))), None)

import pytest

from linkanalysis.core.exceptions import InvalidTableError
from linkanalysis.core.models import ContentType
from linkanalysis.processors.column_detector import (
    ColumnDetector, NamePatternStrategy, PositionalStrategy, profile_column, sample_column,
)


def test_name_patterns_resolve_all_roles():
    rows = [{"origem": "Ana", "destino": "Bia", "tipo": "amigo", "valor": 5}]
    mapping = ColumnDetector().detect(["origem", "destino", "tipo", "valor"], rows)

    assert mapping.source_column == "origem"
    assert mapping.target_column == "destino"
    assert mapping.relationship_column == "tipo"
    assert mapping.weight_column == "valor"
    assert mapping.explanations["source"] == "name_pattern"
    assert mapping.explanations["weight"] == "value_keyword"


def test_header_matching_both_roles_ranks_last():
    candidate = NamePatternStrategy().propose(["destino", "origem"], {})

    assert candidate.sources == ["origem", "destino"]
    assert candidate.targets == ["destino"]


def test_content_profile_prefers_tax_ids_as_source():
    cpfs = [f"123.456.789-0{i}" for i in range(6)]
    names = ["Ana Souza", "Bruno Lima", "Carla Dias", "Davi Reis", "Elisa Melo", "Fabio Rocha"]
    rows = [{"campo1": c, "campo2": n} for c, n in zip(cpfs, names)]

    mapping = ColumnDetector().detect(["campo1", "campo2"], rows)

    assert mapping.source_column == "campo1"
    assert mapping.target_column == "campo2"
    assert mapping.explanations["source"] == "content_profile"


def test_positional_fallback():
    mapping = ColumnDetector().detect(["alfa", "beta"], [])

    assert mapping.source_column == "alfa"
    assert mapping.target_column == "beta"
    assert mapping.explanations == {"source": "positional", "target": "positional"}
    assert mapping.relationship_column is None
    assert mapping.weight_column is None


@pytest.mark.parametrize("columns", [["x"], ["alfa", "beta", "gama"], ["origem"], ["nome", "nome_2"]])
def test_detection_is_total(columns):
    mapping = ColumnDetector().detect(columns, [])

    assert mapping.source_column in columns
    assert mapping.target_column in columns


def test_no_columns_is_an_error():
    with pytest.raises(InvalidTableError):
        ColumnDetector().detect([], [])


def test_operational_keyword_is_secondary_relationship():
    mapping = ColumnDetector().detect(["origem", "destino", "observacoes"], [])

    assert mapping.relationship_column == "observacoes"
    assert mapping.explanations["relationship"] == "operational_keyword"


def test_weight_falls_back_to_numeric_content():
    rows = [{"origem": "Ana", "destino": "Bia", "qtd": n} for n in (1, 2, 3)]
    mapping = ColumnDetector().detect(["origem", "destino", "qtd"], rows)

    assert mapping.weight_column == "qtd"
    assert mapping.explanations["weight"] == "numeric_content"


def test_positional_strategy_swaps_first_two_for_targets():
    candidate = PositionalStrategy().propose(["a", "b", "c"], {})

    assert candidate.sources == ["a", "b", "c"]
    assert candidate.targets == ["b", "a", "c"]


def test_sample_is_evenly_spaced():
    rows = [{"n": i} for i in range(100)]
    sample = sample_column("n", rows, sample_size=50)

    assert sample == list(range(0, 100, 2))


def test_sparse_sample_adds_leading_rows():
    rows = [{"n": i} for i in range(3)]
    sample = sample_column("n", rows, sample_size=50, sparse_threshold=10, sparse_sample_size=20)

    assert sample == [0, 1, 2, 0, 1, 2]


def test_profile_detects_emails():
    profile = profile_column("contato", ["a@x.com", "b@y.com", "c@z.com", "a@x.com"])

    assert profile.content_type == ContentType.EMAIL
    assert profile.confidence == pytest.approx(1.0)
    assert profile.unique_values == 3


def test_profile_of_empty_sample_is_unknown():
    profile = profile_column("vazio", ["", None])

    assert profile.content_type == ContentType.UNKNOWN
    assert profile.total_values == 0

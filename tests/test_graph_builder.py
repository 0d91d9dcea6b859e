import pytest
from loguru import logger

from linkanalysis.core.exceptions import MissingColumnError
from linkanalysis.core.models import EntityType, ParsedTable, ProcessingConfig, SkipReason
from linkanalysis.processors.graph_builder import GraphBuilder
from linkanalysis.processors.table_parser import TableParser


def _table(columns, rows):
    return ParsedTable(columns=columns, rows=rows, row_count=len(rows))


def test_csv_scenario_skips_self_loops_and_placeholders(make_upload):
    upload = make_upload("rede.csv", "origem,destino,tipo,valor\nAA,BB,amigo,5\nAA,AA,amigo,1\n-,CC,x,2\n")
    table = TableParser().parse_file(upload)

    graph = GraphBuilder().build_graph(table.rows, "origem", "destino", "tipo", "valor")

    assert [node.id for node in graph.nodes] == ["AA", "BB"]
    assert len(graph.edges) == 1
    edge = graph.edges[0]
    assert (edge.source, edge.target, edge.type, edge.weight) == ("AA", "BB", "amigo", 5.0)
    assert graph.metadata.density == pytest.approx(0.5)
    assert graph.metadata.average_degree == pytest.approx(1.0)


def test_empty_rows_give_empty_graph():
    graph = GraphBuilder().build_graph([], "origem", "destino")

    assert graph.nodes == []
    assert graph.edges == []
    assert graph.metadata.total_nodes == 0
    assert graph.metadata.total_edges == 0
    assert graph.metadata.density == 0
    assert graph.metadata.average_degree == 0
    assert graph.metadata.node_types == []
    assert graph.metadata.edge_types == []


def test_names_are_not_mistaken_for_addresses():
    rows = [{"de": "joao@x.com", "para": "Maria Silva"}]
    graph = GraphBuilder().build_graph(rows, "de", "para")

    assert graph.get_node("joao@x.com").type == EntityType.EMAIL
    assert graph.get_node("Maria Silva").type == EntityType.ENTIDADE


def test_metrics_match_counts():
    rows = [
        {"s": "Ana", "t": "Bia"},
        {"s": "Ana", "t": "Caio"},
        {"s": "Bia", "t": "Caio"},
        {"s": "Ana", "t": "Bia"},
        {"s": "", "t": "Bia"},
    ]
    graph = GraphBuilder().build_graph(rows, "s", "t")

    assert graph.metadata.total_edges == 4
    assert graph.metadata.total_nodes == 3
    assert graph.metadata.density == pytest.approx(4 / (3 * 2))
    assert graph.metadata.average_degree == pytest.approx(8 / 3)
    assert graph.get_node("Ana").degree == 3
    assert graph.get_node("Ana").centrality == pytest.approx(1.5)


def test_parallel_edges_are_kept_with_distinct_ids():
    rows = [{"s": "Ana", "t": "Bia"}, {"s": "Ana", "t": "Bia"}]
    graph = GraphBuilder().build_graph(rows, "s", "t")

    assert [edge.id for edge in graph.edges] == ["edge-Ana-Bia-0", "edge-Ana-Bia-1"]


def test_edge_defaults_and_properties():
    rows = [{"s": "Ana", "t": "Bia", "r": "", "w": "abc"}, {"s": "Ana", "t": "Caio", "r": "socio", "w": 0}]
    graph = GraphBuilder().build_graph(rows, "s", "t", "r", "w")

    first, second = graph.edges
    assert first.type == "relacionamento"
    assert first.weight == 1.0
    assert first.properties == {"weight": 1.0, "source": "Ana", "target": "Bia", "relationship": "relacionamento"}
    assert second.type == "socio"
    assert second.weight == 0.0
    assert graph.metadata.edge_types == ["relacionamento", "socio"]


def test_node_type_fixed_at_first_sight():
    rows = [{"s": "12345678901", "t": "Ana"}, {"s": "Bia", "t": "12345678901"}]
    graph = GraphBuilder().build_graph(rows, "s", "t")

    assert graph.metadata.node_types == ["cpf", "entidade"]


def test_build_is_idempotent():
    rows = [{"s": "Ana", "t": "Bia"}, {"s": "Bia", "t": "Caio"}]
    builder = GraphBuilder()

    assert builder.build_graph(rows, "s", "t") == builder.build_graph(rows, "s", "t")


@pytest.mark.parametrize(
    "source,target,reason",
    [
        ("", "Bia", SkipReason.EMPTY),
        ("Ana", "Ana", SkipReason.EQUAL),
        ("A", "Bia", SkipReason.LENGTH),
        ("Ana", "x" * 101, SkipReason.LENGTH),
        ("N/A", "Bia", SkipReason.PLACEHOLDER),
        ("Ana", "null", SkipReason.PLACEHOLDER),
        ("Ana", "Bia", None),
    ],
)
def test_validate_pair(source, target, reason):
    assert GraphBuilder().validate_pair(source, target) == reason


def test_length_limits_follow_config():
    builder = GraphBuilder(ProcessingConfig(min_entity_length=1))

    assert builder.validate_pair("A", "B") is None


def test_custom_graph_reports_missing_column():
    table = _table(["origem", "destino"], [{"origem": "Ana", "destino": "Bia"}])

    with pytest.raises(MissingColumnError) as excinfo:
        GraphBuilder().build_custom_graph(table, "origem", "destino", weight_column="valor")

    assert str(excinfo.value) == 'Weight column "valor" not found'


def test_custom_graph_checks_source_first():
    table = _table(["a", "b"], [])

    with pytest.raises(MissingColumnError) as excinfo:
        GraphBuilder().build_custom_graph(table, "x", "y")

    assert excinfo.value.role == "source"


def test_custom_graph_uses_given_columns():
    table = _table(["a", "b", "c"], [{"a": "Ana", "b": "Bia", "c": "Caio"}])
    graph = GraphBuilder().build_custom_graph(table, "c", "a")

    assert (graph.edges[0].source, graph.edges[0].target) == ("Caio", "Ana")


@pytest.fixture
def log_messages():
    messages = []
    sink_id = logger.add(messages.append, level="DEBUG", format="{message}")
    yield messages
    logger.remove(sink_id)


@pytest.mark.parametrize("verbose", [True, False])
def test_skipped_rows_are_logged(log_messages, verbose):
    rows = [
        {"origem": "AA", "destino": "BB"},
        {"origem": "AA", "destino": "AA"},
        {"origem": "", "destino": "BB"},
    ]
    GraphBuilder(ProcessingConfig(verbose=verbose)).build_graph(rows, "origem", "destino")

    per_row = [m for m in log_messages if m.startswith("Row ")]
    if verbose:
        assert per_row[0].startswith("Row 1 skipped (equal)")
        assert per_row[1].startswith("Row 2 skipped (empty)")
    else:
        assert per_row == []
    assert any(m.startswith("Skipped 2 invalid rows (equal=1, empty=1)") for m in log_messages)

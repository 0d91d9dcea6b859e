from linkanalysis.processors.graph_builder import GraphBuilder
from linkanalysis.visualization.graph_figure import HIGHLIGHT_COLOR, NODE_COLORS, create_graph_figure
from linkanalysis.core.models import EntityType, LinkGraph


def build():
    rows = [
        {"origem": "111.222.333-44", "destino": "Ana Lima", "tipo": "titular"},
        {"origem": "111.222.333-44", "destino": "ana@exemplo.com", "tipo": "contato"},
    ]
    return GraphBuilder().build_graph(rows, "origem", "destino", "tipo")


def test_edges_and_nodes_are_drawn():
    fig = create_graph_figure(build())

    edges, nodes = fig.data
    assert len(edges.x) == 6
    assert list(nodes.text) == ["111.222.333-44", "Ana Lima", "ana@exemplo.com"]
    assert nodes.marker.color[0] == NODE_COLORS[EntityType.CPF]
    assert nodes.marker.size[0] == 40
    assert "3 entidades, 2 vínculos" in fig.layout.title.text


def test_search_term_is_highlighted():
    fig = create_graph_figure(build(), highlight="ANA")

    colors = list(fig.data[1].marker.color)
    assert colors == [NODE_COLORS[EntityType.CPF], HIGHLIGHT_COLOR, HIGHLIGHT_COLOR]


def test_type_filters():
    fig = create_graph_figure(build(), node_types=["cpf", "email"])

    assert list(fig.data[1].text) == ["111.222.333-44", "ana@exemplo.com"]


def test_empty_graph():
    fig = create_graph_figure(LinkGraph())

    assert len(fig.data) == 0
    assert fig.layout.annotations[0].text == "Nenhum dado disponível"

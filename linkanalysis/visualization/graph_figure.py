"""
Plotly rendering of link graphs with type filters and search highlighting
"""

from typing import Dict, List, Optional, Sequence

import networkx as nx
import plotly.graph_objects as go

from linkanalysis.core.graph import filter_graph, search_nodes
from linkanalysis.core.models import EntityType, LinkGraph

NODE_COLORS = {
    EntityType.CPF: "#3498db",
    EntityType.CNPJ: "#9b59b6",
    EntityType.TELEFONE: "#2ecc71",
    EntityType.EMAIL: "#e67e22",
    EntityType.PLACA: "#1abc9c",
    EntityType.ENDERECO: "#e74c3c",
    EntityType.ENTIDADE: "#95a5a6",
}
HIGHLIGHT_COLOR = "#f1c40f"
MIN_NODE_SIZE = 10
MAX_NODE_SIZE = 40


def _empty_figure(message: str) -> go.Figure:
    return go.Figure().add_annotation(
        text=message,
        xref="paper", yref="paper",
        x=0.5, y=0.5, xanchor="center", yanchor="middle",
        showarrow=False, font=dict(size=16, color="#6c757d"),
    )


def create_graph_figure(graph: LinkGraph,
                        node_types: Optional[Sequence[str]] = None,
                        edge_types: Optional[Sequence[str]] = None,
                        highlight: Optional[str] = None,
                        seed: int = 42) -> go.Figure:
    """
    Draw the graph with a spring layout.

    Nodes are colored by entity type and sized by degree; nodes matching the
    highlight term are drawn in yellow. Type filters keep only the listed node
    and edge types.
    """
    if node_types is not None or edge_types is not None:
        graph = filter_graph(graph, node_types, edge_types)
    if not graph.nodes:
        return _empty_figure("Nenhum dado disponível")

    layout_graph = nx.Graph()
    layout_graph.add_nodes_from(node.id for node in graph.nodes)
    layout_graph.add_edges_from((edge.source, edge.target) for edge in graph.edges)
    pos = nx.spring_layout(layout_graph, seed=seed)

    edge_x: List[Optional[float]] = []
    edge_y: List[Optional[float]] = []
    for edge in graph.edges:
        x0, y0 = pos[edge.source]
        x1, y1 = pos[edge.target]
        edge_x.extend([x0, x1, None])
        edge_y.extend([y0, y1, None])

    matches = {node.id for node in search_nodes(graph, highlight)} if highlight else set()
    max_degree = max((node.degree for node in graph.nodes), default=0) or 1

    sizes: List[float] = []
    colors: List[str] = []
    for node in graph.nodes:
        sizes.append(MIN_NODE_SIZE + (MAX_NODE_SIZE - MIN_NODE_SIZE) * node.degree / max_degree)
        colors.append(HIGHLIGHT_COLOR if node.id in matches else NODE_COLORS.get(node.type, "#95a5a6"))

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=edge_x, y=edge_y,
        line=dict(width=1, color="rgba(125,125,125,0.4)"),
        hoverinfo="skip",
        mode="lines",
        name="Vínculos",
        showlegend=False,
    ))

    hover: Dict[str, List[str]] = {"text": [], "custom": []}
    for node in graph.nodes:
        hover["text"].append(node.label)
        hover["custom"].append(f"{node.type.value} | grau {node.degree} | centralidade {node.centrality:.3f}")

    fig.add_trace(go.Scatter(
        x=[pos[node.id][0] for node in graph.nodes],
        y=[pos[node.id][1] for node in graph.nodes],
        mode="markers+text",
        marker=dict(size=sizes, color=colors, line=dict(width=1, color="white"), opacity=0.9),
        text=hover["text"],
        textposition="top center",
        textfont=dict(size=8, color="black"),
        customdata=hover["custom"],
        hovertemplate="<b>%{text}</b><br>%{customdata}<extra></extra>",
        name="Entidades",
        showlegend=False,
    ))

    fig.update_layout(
        title=f"Rede de vínculos ({len(graph.nodes)} entidades, {len(graph.edges)} vínculos)",
        showlegend=False,
        hovermode="closest",
        margin=dict(b=20, l=5, r=5, t=40),
        plot_bgcolor="white",
        dragmode="pan",
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
    )
    return fig

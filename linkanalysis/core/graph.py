"""
Entity graph backed by NetworkX, with metrics, querying and JSON export
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import networkx as nx
import numpy as np
from loguru import logger

from .models import GraphMetadata, LinkEdge, LinkGraph, LinkNode


class EntityGraph:
    """
    Mutable graph used while a LinkGraph is being constructed:
    - Nodes keyed by entity value, edges kept in insertion order
    - Parallel edges preserved through a NetworkX MultiDiGraph
    - Degree counters updated as edges are added
    - Metrics computed on demand and frozen into a LinkGraph
    """

    def __init__(self):
        self.graph = nx.MultiDiGraph()
        self.nodes: Dict[str, LinkNode] = {}
        self.edges: List[LinkEdge] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get_node(self, node_id: str) -> Optional[LinkNode]:
        return self.nodes.get(node_id)

    def add_node(self, node: LinkNode) -> LinkNode:
        """Add a node unless one with the same id exists; return the stored node"""
        existing = self.nodes.get(node.id)
        if existing is not None:
            return existing
        self.nodes[node.id] = node
        self.graph.add_node(node.id, type=node.type.value, label=node.label)
        return node

    def add_edge(self, edge: LinkEdge) -> None:
        """Add an edge between two existing nodes and bump both degrees"""
        try:
            if edge.source not in self.nodes or edge.target not in self.nodes:
                raise ValueError(f"Both nodes must exist before adding edge {edge.id}")

            self.edges.append(edge)
            self.graph.add_edge(edge.source, edge.target, key=edge.id, type=edge.type, weight=edge.weight)
            self.nodes[edge.source].degree += 1
            self.nodes[edge.target].degree += 1

        except Exception as e:
            logger.error(f"Error adding edge {edge.id}: {e}")
            raise

    def get_neighbors(self, node_id: str, edge_type: Optional[str] = None) -> List[str]:
        """Entities linked to node_id in either direction"""
        if node_id not in self.graph:
            return []

        neighbors: Dict[str, None] = {}
        for _, other, data in self.graph.out_edges(node_id, data=True):
            if edge_type is None or data.get("type") == edge_type:
                neighbors[other] = None
        for other, _, data in self.graph.in_edges(node_id, data=True):
            if edge_type is None or data.get("type") == edge_type:
                neighbors[other] = None
        return list(neighbors)

    def find_shortest_path(self, source: str, target: str) -> Optional[List[str]]:
        """Shortest chain of entities ignoring edge direction"""
        try:
            return nx.shortest_path(self.graph.to_undirected(as_view=True), source, target)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None

    def get_subgraph(self, node_ids: Iterable[str]) -> "EntityGraph":
        """New graph restricted to the given nodes and the edges between them"""
        keep = set(node_ids)
        subgraph = EntityGraph()
        for node_id, node in self.nodes.items():
            if node_id in keep:
                subgraph.add_node(node.model_copy(update={"degree": 0, "centrality": 0.0}))
        for edge in self.edges:
            if edge.source in keep and edge.target in keep:
                subgraph.add_edge(edge)
        return subgraph

    def compute_metadata(self) -> GraphMetadata:
        """Density, average degree and centrality under the directed convention"""
        total_nodes = len(self.nodes)
        total_edges = len(self.edges)

        density = nx.density(self.graph) if total_nodes > 1 else 0.0
        average_degree = sum(node.degree for node in self.nodes.values()) / total_nodes if total_nodes else 0.0

        for node in self.nodes.values():
            node.centrality = node.degree / (total_nodes - 1) if total_nodes > 1 else 0.0

        return GraphMetadata(
            total_nodes=total_nodes,
            total_edges=total_edges,
            node_types=[node.type.value for node in self.nodes.values()],
            edge_types=[edge.type for edge in self.edges],
            density=float(density),
            average_degree=float(average_degree),
        )

    def to_link_graph(self) -> LinkGraph:
        metadata = self.compute_metadata()
        return LinkGraph(
            nodes=[node.model_copy() for node in self.nodes.values()],
            edges=list(self.edges),
            metadata=metadata,
        )

    @classmethod
    def from_link_graph(cls, link_graph: LinkGraph) -> "EntityGraph":
        """Rebuild a mutable graph; degrees are recounted from the edges"""
        entity_graph = cls()
        for node in link_graph.nodes:
            entity_graph.add_node(node.model_copy(update={"degree": 0, "centrality": 0.0}))
        for edge in link_graph.edges:
            entity_graph.add_edge(edge)
        return entity_graph

    def get_graph_statistics(self) -> Dict[str, Any]:
        """Get comprehensive statistics about the graph"""
        if len(self.nodes) == 0:
            return {"message": "Empty graph"}

        degrees = np.array([node.degree for node in self.nodes.values()])
        stats = {
            "nodes": {
                "total": len(self.nodes),
                "by_type": {}
            },
            "edges": {
                "total": len(self.edges),
                "by_type": {}
            },
            "connectivity": {
                "density": nx.density(self.graph),
                "number_of_components": nx.number_weakly_connected_components(self.graph),
                "is_connected": nx.is_weakly_connected(self.graph)
            },
            "degree": {
                "mean": float(degrees.mean()),
                "std": float(degrees.std()),
                "max": int(degrees.max()),
                "median": float(np.median(degrees))
            }
        }

        for node in self.nodes.values():
            node_type = node.type.value
            stats["nodes"]["by_type"][node_type] = stats["nodes"]["by_type"].get(node_type, 0) + 1

        for edge in self.edges:
            stats["edges"]["by_type"][edge.type] = stats["edges"]["by_type"].get(edge.type, 0) + 1

        return stats


def export_to_json(graph: LinkGraph, filepath: Union[str, Path]) -> None:
    """Serialize the full graph verbatim"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(graph.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    logger.info(f"Graph exported to {filepath}")


def import_from_json(filepath: Union[str, Path]) -> LinkGraph:
    """Load a graph written by export_to_json"""
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        graph = LinkGraph.model_validate(data)
        logger.info(f"Imported graph from {filepath}: {len(graph.nodes)} nodes, {len(graph.edges)} edges")
        return graph

    except Exception as e:
        logger.error(f"Failed to import graph from {filepath}: {e}")
        raise


def filter_graph(graph: LinkGraph,
                 node_types: Optional[Iterable[str]] = None,
                 edge_types: Optional[Iterable[str]] = None) -> LinkGraph:
    """
    Restrict a graph to the selected node and edge types.

    Edges survive only when both endpoints survive; degrees and metrics are
    recomputed over what remains.
    """
    node_filter = set(node_types) if node_types is not None else None
    edge_filter = set(edge_types) if edge_types is not None else None

    filtered = EntityGraph()
    for node in graph.nodes:
        if node_filter is None or node.type.value in node_filter:
            filtered.add_node(node.model_copy(update={"degree": 0, "centrality": 0.0}))

    for edge in graph.edges:
        if edge_filter is not None and edge.type not in edge_filter:
            continue
        if filtered.has_node(edge.source) and filtered.has_node(edge.target):
            filtered.add_edge(edge)

    return filtered.to_link_graph()


def search_nodes(graph: LinkGraph, term: str) -> List[LinkNode]:
    """Nodes whose label contains term, case-insensitively"""
    needle = term.strip().lower()
    if not needle:
        return []
    return [node for node in graph.nodes if needle in node.label.lower()]


def top_nodes(graph: LinkGraph, n: int = 10) -> List[LinkNode]:
    """Highest-degree nodes; ties keep first-seen order"""
    return sorted(graph.nodes, key=lambda node: node.degree, reverse=True)[:n]

"""
Graph builder turning table rows plus column roles into a LinkGraph
"""

from typing import Dict, Optional, Sequence, Tuple

from loguru import logger

from .coercion import is_empty, parse_number, to_text
from .entity_classifier import EntityClassifier
from linkanalysis.core.exceptions import MissingColumnError
from linkanalysis.core.graph import EntityGraph
from linkanalysis.core.models import LinkEdge, LinkGraph, LinkNode, ParsedTable, ProcessingConfig, Row, SkipReason

DEFAULT_RELATIONSHIP = "relacionamento"
PLACEHOLDER_VALUES = {"-", "n/a", "null", "undefined", "nan", "none", ""}


class GraphBuilder:
    """
    Builds a link graph from rows, one edge per valid row:
    1. Read and trim the source and target values
    2. Skip rows failing the validity rules (empty, equal, length, placeholder)
    3. Create nodes on first sight, typed by the entity classifier
    4. Add the edge and bump both endpoint degrees
    5. Compute density, average degree and centrality
    """

    def __init__(self, config: Optional[ProcessingConfig] = None,
                 classifier: Optional[EntityClassifier] = None):
        self.config = config or ProcessingConfig()
        self.classifier = classifier or EntityClassifier()

    def build_graph(self, rows: Sequence[Row], source_column: str, target_column: str,
                    relationship_column: Optional[str] = None,
                    weight_column: Optional[str] = None) -> LinkGraph:
        """Build a graph from rows using the given column roles"""
        logger.info(f"Building link graph from {len(rows)} rows ({source_column} -> {target_column})")

        graph = EntityGraph()
        skipped: Dict[SkipReason, int] = {}

        for index, row in enumerate(rows):
            source = to_text(row.get(source_column, "")).strip()
            target = to_text(row.get(target_column, "")).strip()

            reason = self.validate_pair(source, target)
            if reason is not None:
                skipped[reason] = skipped.get(reason, 0) + 1
                if self.config.verbose:
                    logger.debug(f"Row {index} skipped ({reason.value}): {source!r} -> {target!r}")
                continue

            self._ensure_node(graph, source)
            self._ensure_node(graph, target)

            relationship, weight = self._edge_attributes(row, relationship_column, weight_column)
            graph.add_edge(LinkEdge(
                id=f"edge-{source}-{target}-{index}",
                source=source,
                target=target,
                label=relationship,
                type=relationship,
                weight=weight,
                properties={
                    "weight": weight,
                    "source": source,
                    "target": target,
                    "relationship": relationship,
                },
            ))

        link_graph = graph.to_link_graph()

        total_skipped = sum(skipped.values())
        if total_skipped:
            breakdown = ", ".join(f"{reason.value}={count}" for reason, count in skipped.items())
            logger.info(f"Skipped {total_skipped} invalid rows ({breakdown})")
        logger.info(
            f"Graph built: {link_graph.metadata.total_nodes} nodes, {link_graph.metadata.total_edges} edges, "
            f"density={link_graph.metadata.density:.4f}, average degree={link_graph.metadata.average_degree:.2f}"
        )
        return link_graph

    def build_custom_graph(self, table: ParsedTable, source_column: str, target_column: str,
                           relationship_column: Optional[str] = None,
                           weight_column: Optional[str] = None) -> LinkGraph:
        """Build a graph from caller-chosen columns after checking they exist"""
        required = [("source", source_column), ("target", target_column)]
        optional = [("relationship", relationship_column), ("weight", weight_column)]
        for role, column in required + [(r, c) for r, c in optional if c]:
            if column not in table.columns:
                logger.error(f"{role.capitalize()} column '{column}' not in {table.columns}")
                raise MissingColumnError(column, role)

        return self.build_graph(table.rows, source_column, target_column, relationship_column, weight_column)

    def validate_pair(self, source: str, target: str) -> Optional[SkipReason]:
        """Reason the pair cannot become an edge, or None when it can"""
        if not source or not target:
            return SkipReason.EMPTY
        if source == target:
            return SkipReason.EQUAL
        lower, upper = self.config.min_entity_length, self.config.max_entity_length
        if not (lower <= len(source) <= upper and lower <= len(target) <= upper):
            return SkipReason.LENGTH
        if source.lower() in PLACEHOLDER_VALUES or target.lower() in PLACEHOLDER_VALUES:
            return SkipReason.PLACEHOLDER
        return None

    def _ensure_node(self, graph: EntityGraph, value: str) -> LinkNode:
        node = graph.get_node(value)
        if node is None:
            node = graph.add_node(LinkNode(id=value, label=value, type=self.classifier.classify(value)))
        return node

    @staticmethod
    def _edge_attributes(row: Row, relationship_column: Optional[str],
                         weight_column: Optional[str]) -> Tuple[str, float]:
        relationship = DEFAULT_RELATIONSHIP
        if relationship_column:
            value = row.get(relationship_column, "")
            if not is_empty(value):
                relationship = to_text(value).strip()

        weight = 1.0
        if weight_column:
            parsed = parse_number(row.get(weight_column))
            if parsed is not None:
                weight = parsed
        return relationship, weight

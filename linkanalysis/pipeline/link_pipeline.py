"""
End-to-end link analysis: parse an upload, detect column roles, build the graph and narrate it
"""

import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from linkanalysis.core.config import LLMSettings
from linkanalysis.core.exceptions import InvalidTableError
from linkanalysis.core.models import (
    AnalysisResult, ExtractedDocument, LinkGraph, NarrativeResult,
    ParsedTable, ProcessingConfig, UploadedFile,
)
from linkanalysis.core.report_models import (
    RifSpreadsheetReport, RifTextReport, TransactionRow, ValidationResult,
)
from linkanalysis.core.storage import InMemoryStore, KeyValueStore
from linkanalysis.processors.column_detector import ColumnDetector
from linkanalysis.processors.document_extractor import DocumentTextExtractor
from linkanalysis.processors.entity_classifier import EntityClassifier
from linkanalysis.processors.graph_builder import GraphBuilder
from linkanalysis.processors.narrative import NarrativeAnalyzer
from linkanalysis.processors.rif_spreadsheet_parser import RifSpreadsheetParser
from linkanalysis.processors.rif_text_parser import RifTextParser
from linkanalysis.processors.table_parser import TableParser
from linkanalysis.processors.transaction_parser import TransactionParser

ANALYSIS_KEY_PREFIX = "analysis:"


class LinkAnalysisPipeline:
    """
    Wires the processors together:
    1. TableParser turns the upload into rows
    2. ColumnDetector picks source, target, relationship and weight columns
    3. GraphBuilder produces the LinkGraph
    RIF reports are converted to origem/destino tables and go through the same builder.
    """

    def __init__(self, config: Optional[ProcessingConfig] = None,
                 store: Optional[KeyValueStore] = None,
                 narrative_analyzer: Optional[NarrativeAnalyzer] = None):
        self.config = config or ProcessingConfig()
        self.store = store if store is not None else InMemoryStore()
        self._narrative_analyzer = narrative_analyzer

        self.parser = TableParser(self.config)
        self.detector = ColumnDetector(self.config)
        self.builder = GraphBuilder(self.config, EntityClassifier())
        self.rif_spreadsheet_parser = RifSpreadsheetParser(self.config)
        self.rif_text_parser = RifTextParser()
        self.transaction_parser = TransactionParser(self.config)
        self.extractor = DocumentTextExtractor()

    @property
    def narrative_analyzer(self) -> NarrativeAnalyzer:
        # Created on first use so that settings are only read when a narrative is requested
        if self._narrative_analyzer is None:
            self._narrative_analyzer = NarrativeAnalyzer(LLMSettings.load(self.store))
        return self._narrative_analyzer

    def parse(self, file: UploadedFile) -> ParsedTable:
        return self.parser.parse_file(file)

    def analyze_file(self, file: UploadedFile) -> AnalysisResult:
        """Parse an upload and build its graph from auto-detected columns"""
        start_time = time.time()
        table = self.parse(file)
        result = self.analyze_table(table)
        logger.info(f"Analysis of {file.name} completed in {time.time() - start_time:.2f}s")
        return result

    def analyze_table(self, table: ParsedTable) -> AnalysisResult:
        if not table.rows:
            logger.error("Parsed table has no valid rows")
            raise InvalidTableError("File contains no valid data")
        if len(table.columns) < 2:
            logger.error(f"Parsed table has only {len(table.columns)} column(s)")
            raise InvalidTableError("File must contain at least 2 columns to build relationships")

        mapping = self.detector.detect(table.columns, table.rows)
        logger.info(
            f"Detected columns: source={mapping.source_column}, target={mapping.target_column}, "
            f"relationship={mapping.relationship_column}, weight={mapping.weight_column}"
        )
        graph = self.builder.build_graph(
            table.rows,
            mapping.source_column,
            mapping.target_column,
            mapping.relationship_column,
            mapping.weight_column,
        )
        return AnalysisResult(table=table, mapping=mapping, graph=graph)

    def generate_custom_graph(self, table: ParsedTable, source_column: str, target_column: str,
                              relationship_column: Optional[str] = None,
                              weight_column: Optional[str] = None) -> LinkGraph:
        return self.builder.build_custom_graph(table, source_column, target_column,
                                               relationship_column, weight_column)

    def analyze_rif_spreadsheet(self, file: UploadedFile) -> Tuple[RifSpreadsheetReport, LinkGraph]:
        report = self.rif_spreadsheet_parser.parse(file)
        table = self.rif_spreadsheet_parser.to_table(report)
        graph = self.builder.build_graph(table.rows, "origem", "destino", "tipo", "valor")
        return report, graph

    def analyze_rif_text(self, text: str) -> Tuple[RifTextReport, LinkGraph]:
        report = self.rif_text_parser.parse(text)
        table = self.rif_text_parser.to_table(report)
        graph = self.builder.build_graph(table.rows, "origem", "destino", "tipo", "valor")
        return report, graph

    def analyze_transactions(self, file: UploadedFile) -> Tuple[List[TransactionRow], ValidationResult]:
        """Normalized transactions from a RIF export plus the warnings found in them"""
        rows = self.transaction_parser.parse(file)
        return rows, self.transaction_parser.validate(rows)

    def extract_document_text(self, file: UploadedFile) -> ExtractedDocument:
        return self.extractor.extract(file)

    def narrate(self, graph: LinkGraph) -> NarrativeResult:
        return self.narrative_analyzer.analyze(graph)

    def save_analysis(self, name: str, result: AnalysisResult) -> None:
        """Persist an analysis under a name in the injected store"""
        record: Dict[str, Any] = {
            "saved_at": datetime.now().isoformat(),
            "result": result.model_dump(mode="json"),
        }
        self.store.set(ANALYSIS_KEY_PREFIX + name, record)
        logger.info(f"Saved analysis '{name}' ({result.graph.metadata.total_nodes} nodes)")

    def load_analysis(self, name: str) -> Optional[AnalysisResult]:
        record = self.store.get(ANALYSIS_KEY_PREFIX + name)
        if record is None:
            logger.warning(f"No saved analysis named '{name}'")
            return None
        return AnalysisResult.model_validate(record["result"])

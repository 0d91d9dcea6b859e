"""
Processing components for parsing, column detection, classification and graph building
"""

from .table_parser import TableParser
from .column_detector import ColumnDetector
from .entity_classifier import EntityClassifier, classify_entity
from .graph_builder import GraphBuilder
from .rif_spreadsheet_parser import RifSpreadsheetParser
from .rif_text_parser import RifTextParser
from .transaction_parser import TransactionParser
from .document_extractor import DocumentTextExtractor

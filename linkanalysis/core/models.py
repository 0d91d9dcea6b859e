"""
Core data models for the link-analysis engine using Pydantic for validation
"""

import mimetypes
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

# A single table cell after coercion
Scalar = Union[bool, int, float, str]
Row = Dict[str, Scalar]


class EntityType(str, Enum):
    """Domain type inferred for a graph entity"""
    CPF = "cpf"
    CNPJ = "cnpj"
    TELEFONE = "telefone"
    EMAIL = "email"
    PLACA = "placa"
    ENDERECO = "endereco"
    ENTIDADE = "entidade"


class ContentType(str, Enum):
    """Dominant content of a column as seen by the column-role detector"""
    TAX_ID = "tax_id"
    PHONE = "phone"
    EMAIL = "email"
    NUMERIC = "numeric"
    TEXT = "text"
    UNKNOWN = "unknown"


class SkipReason(str, Enum):
    """Why a row did not produce an edge"""
    EMPTY = "empty"
    EQUAL = "equal"
    LENGTH = "length"
    PLACEHOLDER = "placeholder"


class ProcessingConfig(BaseModel):
    """Configuration for parsing, detection and graph building"""
    sample_size: int = Field(default=50, ge=1, description="Values sampled per column for content analysis")
    sparse_sample_size: int = Field(default=20, ge=0, description="Leading rows added when a sample is sparse")
    sparse_threshold: int = Field(default=10, ge=0, description="Sample size under which leading rows are added")
    min_valid_values: int = Field(default=2, ge=1, description="Non-empty values a row needs to be kept")
    min_entity_length: int = Field(default=2, ge=1)
    max_entity_length: int = Field(default=100, ge=1)
    preview_rows: int = Field(default=5, ge=0, description="Rows exposed as the table preview")
    progress_interval: int = Field(default=100, ge=1, description="Rows between progress reports")
    high_value_threshold: float = Field(default=100000.0, ge=0, description="Single transaction value that raises an alert")
    verbose: bool = Field(default=False, description="Log per-row skip reasons while building graphs")


class FileInfo(BaseModel):
    """Metadata about an uploaded file"""
    name: str
    type: str = ""
    size: int = Field(default=0, ge=0)
    last_modified: Optional[datetime] = None


class UploadedFile(BaseModel):
    """Raw file bytes plus the hints used to pick a parser"""
    name: str
    content: bytes
    mime_type: str = ""
    last_modified: Optional[datetime] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower().lstrip(".")

    @property
    def file_info(self) -> FileInfo:
        return FileInfo(name=self.name, type=self.mime_type, size=self.size, last_modified=self.last_modified)

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "UploadedFile":
        """Load a file from disk, guessing its MIME type from the extension"""
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or ""
        stat = os.stat(path)
        return cls(
            name=path.name,
            content=path.read_bytes(),
            mime_type=mime_type,
            last_modified=datetime.fromtimestamp(stat.st_mtime),
        )


class ParsedTable(BaseModel):
    """Columns plus rows produced by the tabular file parser"""
    columns: List[str] = Field(default_factory=list)
    rows: List[Row] = Field(default_factory=list)
    row_count: int = Field(default=0, ge=0)
    preview: List[Row] = Field(default_factory=list)
    file_info: Optional[FileInfo] = None


class LinkNode(BaseModel):
    """An entity in the link graph"""
    id: str
    label: str
    type: EntityType
    properties: Dict[str, Scalar] = Field(default_factory=dict)
    degree: int = Field(default=0, ge=0)
    centrality: float = Field(default=0.0, ge=0)


class LinkEdge(BaseModel):
    """One directed relationship, derived from one input row"""
    id: str
    source: str
    target: str
    label: str
    type: str
    weight: float = 1.0
    properties: Dict[str, Scalar] = Field(default_factory=dict)


class GraphMetadata(BaseModel):
    """Aggregate metrics of a link graph"""
    total_nodes: int = Field(default=0, ge=0)
    total_edges: int = Field(default=0, ge=0)
    node_types: List[str] = Field(default_factory=list, description="Distinct node types in first-seen order")
    edge_types: List[str] = Field(default_factory=list, description="Distinct edge types in first-seen order")
    density: float = Field(default=0.0, ge=0)
    average_degree: float = Field(default=0.0, ge=0)

    @field_validator("node_types", "edge_types")
    @classmethod
    def dedupe_types(cls, v: List[str]) -> List[str]:
        """Keep the first occurrence of every type tag"""
        return list(dict.fromkeys(v))


class LinkGraph(BaseModel):
    """Nodes, edges and metrics produced by one graph-construction pass"""
    nodes: List[LinkNode] = Field(default_factory=list)
    edges: List[LinkEdge] = Field(default_factory=list)
    metadata: GraphMetadata = Field(default_factory=GraphMetadata)

    def get_node(self, node_id: str) -> Optional[LinkNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class ColumnProfile(BaseModel):
    """Content analysis of a single column sample"""
    column: str
    content_type: ContentType = ContentType.UNKNOWN
    confidence: float = Field(default=0.0, ge=0, le=1)
    unique_values: int = Field(default=0, ge=0)
    total_values: int = Field(default=0, ge=0)
    sample_values: List[str] = Field(default_factory=list)
    numeric_ratio: float = Field(default=0.0, ge=0, le=1)


class ColumnMapping(BaseModel):
    """Column roles used to build a graph"""
    source_column: str
    target_column: str
    relationship_column: Optional[str] = None
    weight_column: Optional[str] = None
    explanations: Dict[str, str] = Field(default_factory=dict, description="Strategy that resolved each role")


class AnalysisResult(BaseModel):
    """Everything produced by analysing one uploaded file"""
    table: ParsedTable
    mapping: ColumnMapping
    graph: LinkGraph


class ExtractedDocument(BaseModel):
    """Plain text pulled out of a free-text case document"""
    name: str
    text: str
    strategy: str
    is_fallback: bool = False


class NarrativeResult(BaseModel):
    """Markdown investigative summary of a graph"""
    text: str
    source: str = Field(default="llm", description="'llm' or 'fallback'")
    payload: Dict[str, Any] = Field(default_factory=dict)


class GeoLocation(BaseModel):
    """Approximate location of an IP address"""
    ip: str
    country: str = ""
    region: str = ""
    city: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    isp: str = ""
    provider: str = ""

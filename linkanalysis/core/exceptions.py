"""
Exception hierarchy for parsing, detection and graph construction failures
"""

from typing import Optional


class LinkAnalysisError(ValueError):
    """Base class for all errors raised by the link-analysis package"""


class UnsupportedFormatError(LinkAnalysisError):
    """Raised when a file is neither CSV, Excel, JSON nor TXT"""

    def __init__(self, file_type: str):
        self.file_type = file_type
        super().__init__(f"Unsupported file format: {file_type}. Use CSV, Excel, JSON or TXT.")


class TableParseError(LinkAnalysisError):
    """Raised when a tabular file cannot be turned into a ParsedTable"""

    def __init__(self, file_format: str, message: str):
        self.file_format = file_format
        super().__init__(f"Failed to parse {file_format} file: {message}")


class InvalidTableError(LinkAnalysisError):
    """Raised when a parsed table has no usable rows or too few columns"""


class MissingColumnError(LinkAnalysisError):
    """Raised when a caller-provided column is absent from the parsed table"""

    def __init__(self, column: str, role: str):
        self.column = column
        self.role = role
        super().__init__(f'{role.capitalize()} column "{column}" not found')


class ReportParseError(LinkAnalysisError):
    """Raised when a financial-intelligence report is structurally invalid"""


class ParseCancelledError(LinkAnalysisError):
    """Raised inside a background parse once its cancellation token fires"""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        suffix = f" ({job_id})" if job_id else ""
        super().__init__(f"Parse cancelled{suffix}")


class NarrativeUnavailableError(LinkAnalysisError):
    """Raised when the language-model narrative cannot be produced"""

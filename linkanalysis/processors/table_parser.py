"""
Tabular file parser turning CSV, Excel, JSON and TXT uploads into ParsedTables
"""

import csv
import io
import json
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd
from loguru import logger

from .base_processor import BaseProcessor
from .coercion import clean_cell, coerce_scalar, count_non_empty, decode_text, to_text
from linkanalysis.core.cancellation import CancellationToken, ProgressCallback
from linkanalysis.core.exceptions import ParseCancelledError, TableParseError, UnsupportedFormatError
from linkanalysis.core.models import ParsedTable, ProcessingConfig, Row, Scalar, UploadedFile, FileInfo

DELIMITERS = [",", ";", "\t", "|"]

MIME_FORMATS = {
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "excel",
    "application/vnd.ms-excel": "excel",
    "application/json": "json",
    "text/json": "json",
    "text/plain": "txt",
}

EXTENSION_FORMATS = {
    "csv": "csv",
    "xlsx": "excel",
    "xls": "excel",
    "json": "json",
    "txt": "txt",
}

FORMAT_LABELS = {"csv": "CSV", "excel": "Excel", "json": "JSON", "txt": "TXT"}


class TableParser(BaseProcessor):
    """
    Parses uploaded tables with lenient, format-specific decoding:
    1. Pick the format from the file extension, then the declared MIME type
    2. Split the content into a header and raw records
    3. Coerce every cell to a scalar (numbers stay numbers)
    4. Drop rows with fewer than two non-empty values
    """

    def __init__(self, config: Optional[ProcessingConfig] = None):
        super().__init__(config or ProcessingConfig())

    def process(self, file: UploadedFile) -> ParsedTable:
        return self.parse_file(file)

    def validate_input(self, file: UploadedFile) -> bool:
        try:
            self.detect_format(file)
            return True
        except UnsupportedFormatError:
            return False

    def detect_format(self, file: UploadedFile) -> str:
        # Browsers on Windows report CSV uploads as application/vnd.ms-excel,
        # so a recognized extension wins over the MIME type
        if file.extension in EXTENSION_FORMATS:
            return EXTENSION_FORMATS[file.extension]
        mime_type = (file.mime_type or "").split(";")[0].strip().lower()
        if mime_type in MIME_FORMATS:
            return MIME_FORMATS[mime_type]
        raise UnsupportedFormatError(file.mime_type or file.extension or file.name)

    def parse_file(self, file: UploadedFile,
                   progress: Optional[ProgressCallback] = None,
                   cancel_token: Optional[CancellationToken] = None) -> ParsedTable:
        """Parse any supported upload into a ParsedTable"""
        file_format = self.detect_format(file)
        logger.info(f"Parsing {file.name} as {FORMAT_LABELS[file_format]} ({file.size} bytes)")

        if file_format == "excel":
            table = self.parse_excel(file.content, file.file_info, progress, cancel_token)
        elif file_format == "json":
            table = self.parse_json(decode_text(file.content), file.file_info, progress, cancel_token)
        elif file_format == "txt":
            table = self.parse_txt(decode_text(file.content), file.file_info, progress, cancel_token)
        else:
            table = self.parse_csv(decode_text(file.content), file.file_info, progress, cancel_token)

        logger.info(f"Parsed {file.name}: {len(table.columns)} columns, {table.row_count} valid rows")
        return table

    def parse_csv(self, text: str, file_info: Optional[FileInfo] = None,
                  progress: Optional[ProgressCallback] = None,
                  cancel_token: Optional[CancellationToken] = None) -> ParsedTable:
        return self._guarded("csv", lambda: self._parse_delimited(text, file_info, progress, cancel_token))

    def parse_excel(self, content: bytes, file_info: Optional[FileInfo] = None,
                    progress: Optional[ProgressCallback] = None,
                    cancel_token: Optional[CancellationToken] = None) -> ParsedTable:
        return self._guarded("excel", lambda: self._parse_excel(content, file_info, progress, cancel_token))

    def parse_json(self, text: str, file_info: Optional[FileInfo] = None,
                   progress: Optional[ProgressCallback] = None,
                   cancel_token: Optional[CancellationToken] = None) -> ParsedTable:
        return self._guarded("json", lambda: self._parse_json(text, file_info, progress, cancel_token))

    def parse_txt(self, text: str, file_info: Optional[FileInfo] = None,
                  progress: Optional[ProgressCallback] = None,
                  cancel_token: Optional[CancellationToken] = None) -> ParsedTable:
        return self._guarded("txt", lambda: self._parse_txt(text, file_info, progress, cancel_token))

    def _guarded(self, file_format: str, parse: Callable[[], ParsedTable]) -> ParsedTable:
        label = FORMAT_LABELS[file_format]
        try:
            return parse()
        except ParseCancelledError:
            logger.warning(f"{label} parsing cancelled")
            raise
        except Exception as e:
            logger.error(f"{label} parsing failed: {e}")
            raise TableParseError(label, str(e)) from e

    @staticmethod
    def detect_delimiter(header_line: str) -> str:
        """Delimiter that splits the header into the most fields; ties keep list order"""
        best, best_count = DELIMITERS[0], 0
        for delimiter in DELIMITERS:
            count = len(header_line.split(delimiter))
            if count > best_count:
                best, best_count = delimiter, count
        return best

    def _parse_delimited(self, text: str, file_info: Optional[FileInfo],
                         progress: Optional[ProgressCallback],
                         cancel_token: Optional[CancellationToken]) -> ParsedTable:
        # Cells are trimmed individually; trimming the line would drop a leading empty tab cell
        lines = [line.rstrip("\r\n") for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            raise ValueError("file must contain a header line and at least one data line")

        delimiter = self.detect_delimiter(lines[0])
        width = max(len(line.split(delimiter)) for line in lines)

        frame = pd.read_csv(
            io.StringIO("\n".join(lines)),
            sep=delimiter,
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            quoting=csv.QUOTE_NONE,
            engine="python",
        ).fillna("")

        records = frame.values.tolist()
        header_width = len(lines[0].split(delimiter))
        headers = [clean_cell(h) for h in records[0][:header_width]]

        rows = self._build_rows(
            headers, records[1:], lambda value: coerce_scalar(clean_cell(value)), progress, cancel_token
        )
        return self._make_table(headers, rows, file_info)

    def _parse_excel(self, content: bytes, file_info: Optional[FileInfo],
                     progress: Optional[ProgressCallback],
                     cancel_token: Optional[CancellationToken]) -> ParsedTable:
        try:
            frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
        except (IndexError, KeyError) as e:
            raise ValueError(f"worksheet not found: {e}") from e

        frame = frame.dropna(how="all")
        if len(frame) < 2:
            raise ValueError("worksheet must contain a header row and at least one data row")

        records = frame.values.tolist()
        header_cells = [to_text(coerce_scalar(h)).strip() for h in records[0]]
        kept = [index for index, header in enumerate(header_cells) if header]
        headers = [header_cells[index] for index in kept]
        body = [[record[index] for index in kept] for record in records[1:]]

        rows = self._build_rows(headers, body, self._excel_cell, progress, cancel_token)
        return self._make_table(headers, rows, file_info)

    @staticmethod
    def _excel_cell(value: Any) -> Scalar:
        if isinstance(value, (datetime, date)):
            if isinstance(value, datetime) and (value.hour or value.minute or value.second):
                return value.strftime("%d/%m/%Y %H:%M:%S")
            return value.strftime("%d/%m/%Y")
        if isinstance(value, str):
            return value.strip()
        return coerce_scalar(value)

    def _parse_json(self, text: str, file_info: Optional[FileInfo],
                    progress: Optional[ProgressCallback],
                    cancel_token: Optional[CancellationToken]) -> ParsedTable:
        data = json.loads(text)

        records = None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            records = data
        elif isinstance(data, dict):
            records = next(
                (value for value in data.values()
                 if isinstance(value, list) and value and isinstance(value[0], dict)),
                None,
            )
        if records is None:
            raise ValueError("JSON must contain an array of objects or an object with an array of objects")

        headers = [str(key) for key in records[0].keys()]
        body = [[record.get(key, "") for key in records[0].keys()] for record in records if isinstance(record, dict)]

        rows = self._build_rows(headers, body, self._json_cell, progress, cancel_token)
        return self._make_table(headers, rows, file_info)

    @staticmethod
    def _json_cell(value: Any) -> Scalar:
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        if isinstance(value, float):
            return coerce_scalar(value)
        return value

    def _parse_txt(self, text: str, file_info: Optional[FileInfo],
                   progress: Optional[ProgressCallback],
                   cancel_token: Optional[CancellationToken]) -> ParsedTable:
        lines = [line.rstrip("\r\n") for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            raise ValueError("file must contain a header line and at least one data line")

        if any(delimiter in lines[0] for delimiter in DELIMITERS):
            return self._parse_delimited(text, file_info, progress, cancel_token)

        headers = lines[0].split()
        body = [tokens for tokens in (line.split() for line in lines[1:]) if len(tokens) >= len(headers)]

        rows = self._build_rows(headers, body, coerce_scalar, progress, cancel_token)
        return self._make_table(headers, rows, file_info)

    def _build_rows(self, headers: List[str], records: Sequence[Sequence[Any]],
                    convert: Callable[[Any], Scalar],
                    progress: Optional[ProgressCallback],
                    cancel_token: Optional[CancellationToken]) -> List[Row]:
        """Zip records with the header, coerce cells and apply the density floor"""
        columns = self._unique_columns(headers)
        total = len(records)
        interval = self.config.progress_interval
        rows: List[Row] = []

        for index, record in enumerate(records):
            if index % interval == 0:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                if progress is not None and total:
                    progress(index / total * 100)

            row: Dict[str, Scalar] = {}
            for position, column in enumerate(columns):
                row[column] = convert(record[position]) if position < len(record) else ""

            if count_non_empty(row.values()) >= self.config.min_valid_values:
                rows.append(row)

        dropped = total - len(rows)
        if dropped:
            logger.info(f"Dropped {dropped} of {total} rows with fewer than {self.config.min_valid_values} values")
        return rows

    @staticmethod
    def _unique_columns(headers: List[str]) -> List[str]:
        """Blank headers get a positional name, repeated ones a numeric suffix"""
        seen: Dict[str, int] = {}
        columns = []
        for index, header in enumerate(headers):
            name = header or f"column_{index + 1}"
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 1
            columns.append(name)
        return columns

    def _make_table(self, headers: List[str], rows: List[Row], file_info: Optional[FileInfo]) -> ParsedTable:
        return ParsedTable(
            columns=self._unique_columns(headers),
            rows=rows,
            row_count=len(rows),
            preview=rows[:self.config.preview_rows],
            file_info=file_info,
        )

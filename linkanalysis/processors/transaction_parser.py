"""
Normalizes RIF transaction exports (TXT, CSV, Excel) into standard transaction rows
"""

import io
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import pandas as pd
from dateutil import parser as date_parser
from loguru import logger

from .base_processor import BaseProcessor
from .coercion import decode_text, digits_only, is_empty, to_text
from linkanalysis.core.exceptions import ReportParseError, UnsupportedFormatError
from linkanalysis.core.models import ProcessingConfig, UploadedFile
from linkanalysis.core.report_models import TransactionKind, TransactionRow, ValidationResult

DATE_FORMATS = [
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%d-%m-%Y",
]

CREDIT_RE = re.compile(r"cr[eé]dito|entrada|recebimento|positivo|\+", re.IGNORECASE)
DEBIT_RE = re.compile(r"d[eé]bito|saida|sa[íi]da|pagamento|negativo|-", re.IGNORECASE)

DATE_COLUMN_RE = re.compile(r"data|date", re.IGNORECASE)
TYPE_COLUMN_RE = re.compile(r"tipo|type|natureza", re.IGNORECASE)
AMOUNT_COLUMN_RE = re.compile(r"valor|amount|quantia", re.IGNORECASE)
COUNTERPARTY_COLUMN_RE = re.compile(r"contraparte|counterparty|benefici[aá]rio", re.IGNORECASE)
UNKNOWN_COUNTERPARTY = "Desconhecido"


def normalize_date(value: Any) -> datetime:
    """Parse Brazilian and ISO dates, falling back to dateutil"""
    if isinstance(value, datetime):
        return value
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime()

    text = to_text(value).strip()
    if not text:
        raise ValueError("Empty date")
    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(text, date_format)
        except ValueError:
            continue
    try:
        return date_parser.parse(text, dayfirst=True)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Invalid date: {text}") from e


def normalize_amount(value: Any) -> Decimal:
    """Absolute amount; the transaction type carries the direction"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return abs(Decimal(str(value)))

    text = to_text(value).strip()
    if not text:
        raise ValueError("Empty amount")
    cleaned = re.sub(r"R\$\s*", "", text, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s", "", cleaned).replace(".", "").replace(",", ".", 1)
    cleaned = re.sub(r"[^\d.-]", "", cleaned)
    if not cleaned or cleaned == "-":
        raise ValueError(f"Invalid amount: {text}")
    try:
        return abs(Decimal(cleaned))
    except InvalidOperation as e:
        raise ValueError(f"Could not convert amount {text!r}") from e


def normalize_type(value: Any) -> TransactionKind:
    text = to_text(value).strip().lower()
    if CREDIT_RE.search(text):
        return TransactionKind.CREDIT
    if DEBIT_RE.search(text):
        return TransactionKind.DEBIT
    raise ValueError(f"Invalid transaction type: {text}")


def _find_column(columns: List[str], pattern: "re.Pattern") -> Optional[str]:
    return next((column for column in columns if pattern.search(column)), None)


class TransactionParser(BaseProcessor):
    """
    Converts any RIF transaction export into TransactionRows:
    - TXT lines as DATA|TIPO|VALOR|CONTRAPARTE|DOC|DESC|METODO
    - CSV and Excel with columns located by name
    Lines that cannot be normalized are skipped with a warning.
    """

    def __init__(self, config: Optional[ProcessingConfig] = None):
        super().__init__(config or ProcessingConfig())

    def process(self, file: UploadedFile) -> List[TransactionRow]:
        return self.parse(file)

    def validate_input(self, file: UploadedFile) -> bool:
        return file.extension in ("txt", "csv", "xlsx", "xls")

    def parse(self, file: UploadedFile) -> List[TransactionRow]:
        extension = file.extension
        if extension == "txt":
            rows = self.parse_txt(decode_text(file.content))
        elif extension == "csv":
            rows = self.parse_csv(decode_text(file.content))
        elif extension in ("xlsx", "xls"):
            rows = self.parse_excel(file.content)
        else:
            raise UnsupportedFormatError(extension or file.name)

        validation = self.validate(rows)
        if not validation.valid:
            logger.warning(f"Transaction validation warnings for {file.name}: {validation.errors}")
        logger.info(f"Normalized {len(rows)} transactions from {file.name}")
        return rows

    def parse_txt(self, text: str) -> List[TransactionRow]:
        rows = []
        for number, line in enumerate((l for l in text.splitlines() if l.strip()), start=1):
            parts = [part.strip() for part in line.split("|")]
            if len(parts) < 4:
                continue
            try:
                rows.append(TransactionRow(
                    date=normalize_date(parts[0]),
                    type=normalize_type(parts[1]),
                    amount=normalize_amount(parts[2]),
                    counterparty=parts[3] or UNKNOWN_COUNTERPARTY,
                    counterparty_document=digits_only(parts[4]) if len(parts) > 4 and parts[4] else None,
                    description=parts[5] if len(parts) > 5 and parts[5] else None,
                    method=parts[6] if len(parts) > 6 and parts[6] else None,
                ))
            except ValueError as e:
                logger.warning(f"Skipping invalid TXT line {number}: {e}")
        return rows

    def parse_csv(self, text: str) -> List[TransactionRow]:
        try:
            frame = pd.read_csv(io.StringIO(text), sep=None, engine="python", dtype=str,
                                keep_default_na=False, skip_blank_lines=True)
        except Exception as e:
            logger.error(f"Failed to read transaction CSV: {e}")
            raise ReportParseError(f"Failed to read transaction CSV: {e}") from e

        frame.columns = [str(column).strip().lower() for column in frame.columns]
        columns = list(frame.columns)
        date_col = _find_column(columns, DATE_COLUMN_RE)
        type_col = _find_column(columns, TYPE_COLUMN_RE)
        amount_col = _find_column(columns, AMOUNT_COLUMN_RE)
        if not (date_col and type_col and amount_col):
            logger.warning("Transaction CSV lacks date, type or amount columns")
            return []
        counterparty_col = _find_column(columns, COUNTERPARTY_COLUMN_RE)

        rows = []
        for number, record in enumerate(frame.to_dict(orient="records"), start=2):
            try:
                rows.append(self._row_from_record(record, date_col, type_col, amount_col, counterparty_col))
            except ValueError as e:
                logger.warning(f"Skipping invalid CSV line {number}: {e}")
        return rows

    def parse_excel(self, content: bytes) -> List[TransactionRow]:
        frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object).dropna(how="all")
        if len(frame) < 2:
            raise ReportParseError("Spreadsheet is empty or has no data rows")

        records = frame.values.tolist()
        headers = [to_text(h).strip().lower() if not is_empty(h) else "" for h in records[0]]
        date_col = _find_column(headers, DATE_COLUMN_RE)
        type_col = _find_column(headers, TYPE_COLUMN_RE)
        amount_col = _find_column(headers, AMOUNT_COLUMN_RE)
        if not (date_col and type_col and amount_col):
            raise ReportParseError("Spreadsheet lacks the required columns (data, tipo, valor)")
        counterparty_col = _find_column(headers, COUNTERPARTY_COLUMN_RE)

        rows = []
        for number, values in enumerate(records[1:], start=2):
            record = dict(zip(headers, values))
            try:
                rows.append(self._row_from_record(record, date_col, type_col, amount_col, counterparty_col))
            except ValueError as e:
                logger.warning(f"Skipping spreadsheet line {number}: {e}")
        return rows

    @staticmethod
    def _row_from_record(record: Dict[str, Any], date_col: str, type_col: str, amount_col: str,
                         counterparty_col: Optional[str]) -> TransactionRow:
        def optional(*keys: str) -> Optional[str]:
            for key in keys:
                value = record.get(key)
                if not is_empty(value):
                    return to_text(value).strip()
            return None

        counterparty = optional(counterparty_col) if counterparty_col else None
        document = optional("documento", "document")
        return TransactionRow(
            date=normalize_date(record.get(date_col)),
            type=normalize_type(record.get(type_col)),
            amount=normalize_amount(record.get(amount_col)),
            counterparty=counterparty or UNKNOWN_COUNTERPARTY,
            counterparty_document=digits_only(document) if document else None,
            description=optional("descricao", "description"),
            method=optional("metodo", "method"),
        )

    @staticmethod
    def validate(rows: List[TransactionRow], now: Optional[datetime] = None) -> ValidationResult:
        """Warnings over a normalized set; never raises"""
        now = now or datetime.now()
        errors = []
        if not rows:
            errors.append("No valid transactions found")

        future = [row for row in rows if row.date.replace(tzinfo=None) > now]
        if future:
            errors.append(f"{len(future)} transactions with future dates detected")

        zero = [row for row in rows if row.amount == 0]
        if zero:
            errors.append(f"{len(zero)} transactions with zero amount detected")

        return ValidationResult(valid=not errors, errors=errors)

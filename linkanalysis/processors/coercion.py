"""
Scalar coercion helpers shared by the parsers, detector and graph builder
"""

import math
import re
import unicodedata
from typing import Any, Iterable, Optional

from linkanalysis.core.models import Scalar

# Leading zeros are significant in documents and phone numbers, so "0123" stays text
_NUMERIC_RE = re.compile(r"^[+-]?(?:0|[1-9]\d*)(?:\.\d+)?$|^[+-]?0?\.\d+$")
_TEXT_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


def clean_cell(raw: Any) -> str:
    """Trim a raw delimited cell and drop quote characters"""
    return str(raw).strip().replace('"', "").strip()


def is_numeric_text(text: str) -> bool:
    return bool(_NUMERIC_RE.match(text.strip()))


def coerce_scalar(value: Any) -> Scalar:
    """
    Turn a raw cell into a table scalar.

    Numeric-looking strings become int or float, NaN and None become the
    empty string, integral floats become ints and everything else is text.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return ""
        return int(value) if value.is_integer() else value
    if hasattr(value, "item") and not isinstance(value, str):
        # numpy scalars coming out of pandas
        return coerce_scalar(value.item())

    text = str(value).strip()
    if text and is_numeric_text(text):
        if "." in text:
            return float(text)
        return int(text)
    return text


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def count_non_empty(values: Iterable[Any]) -> int:
    return sum(1 for value in values if not is_empty(value))


def to_text(value: Any) -> str:
    """Render a scalar the way it appears in a spreadsheet cell"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def digits_only(value: Any) -> str:
    return re.sub(r"\D", "", to_text(value))


def strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def parse_brl_amount(value: Any) -> float:
    """
    Parse a Brazilian-formatted amount such as "R$ 1.234,56".

    Dots are thousands separators and the comma is the decimal mark.
    Raises ValueError when nothing numeric is left.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value}")
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = re.sub(r"R\$\s*", "", str(value), flags=re.IGNORECASE)
    cleaned = re.sub(r"[^\d,.-]", "", cleaned)
    cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    if not cleaned or cleaned in ("-", "."):
        raise ValueError(f"Invalid amount: {value}")
    return float(cleaned)


def parse_number(value: Any) -> Optional[float]:
    """Best-effort numeric reading of a cell; None when it is not a number"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)

    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        pass
    if not re.search(r"\d", text):
        return None
    try:
        return parse_brl_amount(text)
    except ValueError:
        return None


def decode_text(content: bytes) -> str:
    """Decode uploaded bytes, tolerating a BOM and legacy Windows encodings"""
    for encoding in _TEXT_ENCODINGS[:-1]:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 maps every byte
    return content.decode(_TEXT_ENCODINGS[-1])

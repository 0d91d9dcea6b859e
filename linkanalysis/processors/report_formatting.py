"""
Brazilian currency and date formatting for markdown reports
"""

from datetime import datetime
from typing import Optional


def format_brl(value: float) -> str:
    """Format a value as Brazilian reais, e.g. R$ 1.234,56"""
    sign = "-" if value < 0 else ""
    integer, _, cents = f"{abs(value):,.2f}".partition(".")
    return f"{sign}R$ {integer.replace(',', '.')},{cents}"


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else "N/A"


def format_timestamp(value: datetime) -> str:
    return value.strftime("%d/%m/%Y %H:%M:%S")

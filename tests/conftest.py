"""
Shared pytest fixtures for the link-analysis test suite
"""

import io
from typing import Any, List, Union

import pandas as pd
import pytest

from linkanalysis.core.models import ProcessingConfig, UploadedFile


@pytest.fixture
def config() -> ProcessingConfig:
    return ProcessingConfig()


@pytest.fixture
def make_upload():
    """Factory for in-memory uploads; str content is UTF-8 encoded."""

    def _make(name: str, content: Union[str, bytes], mime_type: str = "") -> UploadedFile:
        if isinstance(content, str):
            content = content.encode("utf-8")
        return UploadedFile(name=name, content=content, mime_type=mime_type)

    return _make


@pytest.fixture
def excel_bytes():
    """Factory writing a list of rows (header first) to an xlsx workbook."""

    def _write(records: List[List[Any]]) -> bytes:
        buffer = io.BytesIO()
        pd.DataFrame(records).to_excel(buffer, header=False, index=False, engine="openpyxl")
        return buffer.getvalue()

    return _write

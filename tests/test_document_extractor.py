import io
from datetime import datetime

import docx
import pytest

from linkanalysis.processors.document_extractor import DocumentTextExtractor, readability

REPORT = (
    "Aos cinco dias do mês de março, compareceu a esta delegacia a vítima Maria Lima, "
    "relatando o furto de seu veículo de placa ABC1D23 em frente à sua residência."
)


@pytest.fixture
def extractor():
    return DocumentTextExtractor(clock=lambda: datetime(2024, 3, 5, 14, 30))


def test_readability():
    assert readability("") == 0.0
    assert readability("Texto comum, legível.") == 1.0
    assert readability("\x00\x01\x02a") == 0.25


@pytest.mark.parametrize("name,mime_type,expected", [
    ("bo.pdf", "", "pdf"),
    ("bo", "application/pdf", "pdf"),
    ("bo.docx", "", "docx"),
    ("bo.htm", "", "html"),
    ("bo.txt", "", "txt"),
    ("foto.png", "image/png", None),
])
def test_detect_format(make_upload, name, mime_type, expected):
    assert DocumentTextExtractor.detect_format(make_upload(name, b"", mime_type)) == expected


def test_html_drops_scripts_and_navigation(extractor, make_upload):
    html = (
        "<html><head><script>var segredo = 1;</script><style>p {color: red}</style></head>"
        "<body><nav>Menu principal</nav><h1>Boletim</h1>"
        f"<p>{REPORT}</p><footer>Rodapé institucional</footer></body></html>"
    )

    document = extractor.extract(make_upload("bo.html", html))

    assert document.strategy == "html_dom"
    assert "Maria Lima" in document.text
    assert "segredo" not in document.text
    assert "Menu principal" not in document.text
    assert not document.is_fallback


def test_txt_in_latin1(extractor, make_upload):
    document = extractor.extract(make_upload("bo.txt", REPORT.encode("latin-1")))

    assert document.strategy == "txt_decoded"
    assert "à sua residência" in document.text


def test_docx_paragraphs_and_tables(extractor, make_upload):
    source = docx.Document()
    source.add_paragraph(REPORT)
    table = source.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Vítima"
    table.rows[0].cells[1].text = "Maria Lima"
    buffer = io.BytesIO()
    source.save(buffer)

    document = extractor.extract(make_upload("bo.docx", buffer.getvalue()))

    assert document.strategy == "docx_paragraphs"
    assert "Vítima | Maria Lima" in document.text


def test_unreadable_pdf_gets_placeholder(extractor, make_upload):
    document = extractor.extract(make_upload("bo.pdf", b"%PDF-1.4\n\x00\x01 corrompido"))

    assert document.is_fallback
    assert document.strategy == "placeholder"
    assert document.text.startswith("BOLETIM DE OCORRÊNCIA CIRCUNSTANCIADO")
    assert "Nº 202403051430" in document.text
    assert "DATA DO REGISTRO: 05/03/2024 às 14:30" in document.text
    assert "DOCUMENTO DE ORIGEM: bo.pdf" in document.text


def test_unsupported_format_gets_placeholder(extractor, make_upload):
    document = extractor.extract(make_upload("foto.png", b"\x89PNG", "image/png"))

    assert document.is_fallback
    assert document.name == "foto.png"

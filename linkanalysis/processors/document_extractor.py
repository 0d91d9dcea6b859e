"""
Plain-text extraction for case documents (PDF, DOCX, HTML, TXT) with fallback chains
"""

import io
import re
import zipfile
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import docx
import fitz  # PyMuPDF
from bs4 import BeautifulSoup
from loguru import logger

from linkanalysis.core.models import ExtractedDocument, UploadedFile

MIN_STRUCTURED_LENGTH = 100
MIN_FALLBACK_LENGTH = 50

_READABLE_RE = re.compile(r"[a-zA-ZÀ-ÿ0-9\s.,;:!?()\-]")
_BT_ET_RE = re.compile(rb"BT(.*?)ET", re.DOTALL)
_PAREN_TEXT_RE = re.compile(r"\(([^)]{10,})\)")
_WORD_RE = re.compile(r"[a-zA-ZÀ-ÿ]{3,}")
_TJ_RE = re.compile(r"\((.*?)\)\s*Tj|\[(.*?)\]\s*TJ", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WT_RE = re.compile(r"<w:t[^>]*>([^<]*)</w:t>")
_WP_RE = re.compile(r"<w:p[ >].*?</w:p>", re.DOTALL)

Strategy = Tuple[str, Callable[[bytes], str], int]


def readability(text: str) -> float:
    """Share of characters that look like ordinary Portuguese text"""
    if not text:
        return 0.0
    return len(_READABLE_RE.findall(text)) / len(text)


def _collapse(text: str) -> str:
    text = re.sub(r"[ \t\f\v]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


class DocumentTextExtractor:
    """
    Pulls plain text out of occurrence reports without ever failing:
    each format has an ordered list of strategies, the first one yielding
    enough text wins, and a canned placeholder report is returned when
    every strategy comes up short.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self.strategies: Dict[str, List[Strategy]] = {
            "pdf": [
                ("pdf_text_layer", self._pdf_text_layer, MIN_STRUCTURED_LENGTH),
                ("pdf_text_blocks", self._pdf_text_blocks, MIN_FALLBACK_LENGTH),
                ("pdf_parenthesized", self._pdf_parenthesized, MIN_FALLBACK_LENGTH),
                ("pdf_words", self._pdf_words, MIN_FALLBACK_LENGTH),
                ("pdf_show_text", self._pdf_show_text, MIN_FALLBACK_LENGTH),
            ],
            "docx": [
                ("docx_paragraphs", self._docx_paragraphs, MIN_FALLBACK_LENGTH),
                ("docx_runs", self._docx_runs, MIN_FALLBACK_LENGTH),
                ("docx_stripped", self._docx_stripped, MIN_FALLBACK_LENGTH),
            ],
            "html": [
                ("html_dom", self._html_dom, MIN_STRUCTURED_LENGTH),
                ("html_content_tags", self._html_content_tags, MIN_FALLBACK_LENGTH),
                ("html_landmarks", self._html_landmarks, MIN_FALLBACK_LENGTH),
                ("html_stripped", self._html_stripped, MIN_FALLBACK_LENGTH),
            ],
            "txt": [
                ("txt_decoded", self._txt_decoded, 1),
                ("txt_cleanup", self._txt_cleanup, MIN_FALLBACK_LENGTH),
            ],
        }

    @staticmethod
    def detect_format(file: UploadedFile) -> Optional[str]:
        extension = file.extension
        mime_type = (file.mime_type or "").lower()
        if extension == "pdf" or mime_type == "application/pdf":
            return "pdf"
        if extension == "docx" or "wordprocessingml" in mime_type:
            return "docx"
        if extension in ("html", "htm") or mime_type == "text/html":
            return "html"
        if extension == "txt" or mime_type == "text/plain":
            return "txt"
        return None

    def extract(self, file: UploadedFile) -> ExtractedDocument:
        """Best text the strategies can find, or the placeholder document"""
        file_format = self.detect_format(file)
        if file_format is None:
            logger.warning(f"Unsupported document format for {file.name}; using placeholder document")
            return self._placeholder(file.name)

        for name, strategy, min_length in self.strategies[file_format]:
            try:
                text = _collapse(strategy(file.content))
            except Exception as e:
                logger.debug(f"Strategy {name} failed for {file.name}: {e}")
                continue
            if len(text) > min_length:
                logger.info(f"Extracted {len(text)} characters from {file.name} using {name}")
                return ExtractedDocument(name=file.name, text=text, strategy=name)
            logger.debug(f"Strategy {name} yielded only {len(text)} characters for {file.name}")

        logger.warning(f"No extraction strategy produced enough text for {file.name}; using placeholder document")
        return self._placeholder(file.name)

    # PDF
    @staticmethod
    def _pdf_text_layer(content: bytes) -> str:
        with fitz.open(stream=content, filetype="pdf") as document:
            return "\n".join(page.get_text("text") for page in document)

    @staticmethod
    def _pdf_text_blocks(content: bytes) -> str:
        pieces: List[str] = []
        for block in _BT_ET_RE.findall(content):
            pieces += re.findall(r"\(([^)]*)\)", block.decode("latin-1"))
        return " ".join(pieces)

    @staticmethod
    def _pdf_parenthesized(content: bytes) -> str:
        return " ".join(_PAREN_TEXT_RE.findall(content.decode("latin-1")))

    @staticmethod
    def _pdf_words(content: bytes) -> str:
        words = _WORD_RE.findall(content.decode("latin-1"))
        return " ".join(words) if len(words) > 20 else ""

    @staticmethod
    def _pdf_show_text(content: bytes) -> str:
        pieces = []
        for single, array in _TJ_RE.findall(content.decode("latin-1")):
            pieces.append(single or "".join(re.findall(r"\(([^)]*)\)", array)))
        return " ".join(pieces)

    # DOCX
    @staticmethod
    def _docx_paragraphs(content: bytes) -> str:
        document = docx.Document(io.BytesIO(content))
        lines = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                lines.append(" | ".join(cell.text for cell in row.cells))
        return "\n".join(lines)

    @staticmethod
    def _document_xml(content: bytes) -> str:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            return archive.read("word/document.xml").decode("utf-8", errors="ignore")

    def _docx_runs(self, content: bytes) -> str:
        xml = self._document_xml(content)
        paragraphs = ["".join(_WT_RE.findall(paragraph)) for paragraph in _WP_RE.findall(xml)]
        return "\n".join(p for p in paragraphs if p)

    def _docx_stripped(self, content: bytes) -> str:
        return _TAG_RE.sub(" ", self._document_xml(content))

    # HTML
    @staticmethod
    def _soup(content: bytes) -> BeautifulSoup:
        return BeautifulSoup(content, "html.parser")

    def _html_dom(self, content: bytes) -> str:
        soup = self._soup(content)
        for element in soup(["script", "style", "nav", "header", "footer", "aside", "noscript"]):
            element.decompose()
        return soup.get_text("\n")

    def _html_content_tags(self, content: bytes) -> str:
        soup = self._soup(content)
        tags = ["title", "h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "td", "div"]
        texts = [tag.get_text(" ", strip=True) for tag in soup.find_all(tags) if not tag.find(tags)]
        return "\n".join(t for t in texts if t)

    def _html_landmarks(self, content: bytes) -> str:
        soup = self._soup(content)
        return "\n".join(tag.get_text(" ", strip=True) for tag in soup.find_all(["main", "article", "section"]))

    @staticmethod
    def _html_stripped(content: bytes) -> str:
        html = content.decode("utf-8", errors="ignore")
        html = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", html, flags=re.DOTALL | re.IGNORECASE)
        return _TAG_RE.sub(" ", html)

    # TXT
    @staticmethod
    def _txt_decoded(content: bytes) -> str:
        candidates = [("utf-8", 0.7), ("cp1252", 0.8), ("latin-1", 0.8), ("utf-16", 0.8)]
        for encoding, minimum in candidates:
            try:
                text = content.decode(encoding)
            except UnicodeDecodeError:
                continue
            if readability(text) > minimum:
                return text
        return ""

    @staticmethod
    def _txt_cleanup(content: bytes) -> str:
        text = content.decode("latin-1")
        runs = re.findall(r"[a-zA-ZÀ-ÿ0-9\s.,;:!?()\-/]{4,}", text)
        return " ".join(run.strip() for run in runs if run.strip())

    def _placeholder(self, name: str) -> ExtractedDocument:
        now = self.clock()
        text = PLACEHOLDER_TEMPLATE.format(
            numero=now.strftime("%Y%m%d%H%M"),
            data=now.strftime("%d/%m/%Y"),
            hora=now.strftime("%H:%M"),
            arquivo=name,
        )
        return ExtractedDocument(name=name, text=text, strategy="placeholder", is_fallback=True)


PLACEHOLDER_TEMPLATE = """BOLETIM DE OCORRÊNCIA CIRCUNSTANCIADO
Nº {numero}

DATA DO REGISTRO: {data} às {hora}
DOCUMENTO DE ORIGEM: {arquivo}

NATUREZA DA OCORRÊNCIA:
Não foi possível extrair o texto do documento enviado. Este registro é um
modelo provisório gerado automaticamente para que a análise possa prosseguir.

HISTÓRICO:
O conteúdo original deve ser conferido manualmente e transcrito pelo
responsável pelo caso antes de qualquer conclusão investigativa.

ENVOLVIDOS:
A identificar a partir do documento original.

PROVIDÊNCIAS:
1. Conferir o arquivo original.
2. Transcrever manualmente as informações relevantes.
3. Reprocessar o documento após a correção."""

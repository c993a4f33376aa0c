"""Document materializer: turn a response that reads like a document into a file.

Detection is a strategy (IntentDetector). The default KeywordIntentDetector
looks for trigger phrases, then picks the format:
  tabular terms                                  → XLSX
  document / letter / contract / agreement / proposal → DOCX
  anything else                                  → PDF

The file is returned as a base64 data URI; nothing is written to disk.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from loguru import logger

from docrag.errors import DocumentRenderError
from docrag.generate.renderers import DocxRenderer, PdfRenderer, Renderer, XlsxRenderer


class DocumentFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    XLSX = "xlsx"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]


_MIME_TYPES: dict[DocumentFormat, str] = {
    DocumentFormat.PDF: "application/pdf",
    DocumentFormat.DOCX: (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
    DocumentFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

TRIGGER_PHRASES: tuple[str, ...] = (
    "here is the document",
    "here's the document",
    "generated document",
    "document content",
    "report:",
    "summary:",
    "analysis:",
    "proposal:",
    "contract:",
    "agreement:",
    "letter:",
    "memo:",
    "invoice:",
    "receipt:",
    "table:",
    "spreadsheet",
    "data analysis",
    "financial report",
    "business plan",
)

# Whole words only: "table" must not match "acceptable" or "suitable".
_TABULAR_RE = re.compile(r"\b(?:spreadsheets?|tables?|data analysis|financial reports?)\b")
_RICH_TEXT_RE = re.compile(r"\b(?:documents?|letters?|contracts?|agreements?|proposals?)\b")


class IntentDetector(Protocol):
    def detect(self, response_text: str) -> DocumentFormat | None:
        """Return the format to render, or None if the text is not a document."""
        ...


class KeywordIntentDetector:
    """Trigger-phrase detector (case-insensitive substring match)."""

    def __init__(self, triggers: tuple[str, ...] = TRIGGER_PHRASES) -> None:
        self.triggers = tuple(t.lower() for t in triggers)

    def detect(self, response_text: str) -> DocumentFormat | None:
        lowered = response_text.lower()
        if not any(trigger in lowered for trigger in self.triggers):
            return None
        return choose_format(lowered)


def choose_format(lowered: str) -> DocumentFormat:
    """Pick the file format for already-lowercased response text."""
    if _TABULAR_RE.search(lowered):
        return DocumentFormat.XLSX
    if _RICH_TEXT_RE.search(lowered):
        return DocumentFormat.DOCX
    return DocumentFormat.PDF


@dataclass
class GeneratedDocument:
    name: str
    mime_type: str
    size_bytes: int
    content: str
    encoded_payload: str  # data:<mime>;base64,<bytes>
    generated_at: str

    @property
    def format(self) -> DocumentFormat:
        return DocumentFormat(self.name.rsplit(".", 1)[-1])

    def decode(self) -> bytes:
        """Raw file bytes from the data URI."""
        return base64.b64decode(self.encoded_payload.split(",", 1)[1])

    def to_payload(self) -> dict:
        return {
            "name": self.name,
            "type": self.mime_type,
            "size": self.size_bytes,
            "url": self.encoded_payload,
            "content": self.content,
            "generatedAt": self.generated_at,
        }


class DocumentMaterializer:
    """Render a response into a downloadable file when it reads like a document.

    Args:
        detector: Intent strategy; defaults to KeywordIntentDetector.
        filename: Base file name (extension added per format).
        renderers: Per-format renderer overrides.
        enabled: When False, maybe_generate() always returns None.
    """

    def __init__(
        self,
        detector: IntentDetector | None = None,
        filename: str = "ai-generated-document",
        renderers: dict[DocumentFormat, Renderer] | None = None,
        enabled: bool = True,
    ) -> None:
        self.detector = detector or KeywordIntentDetector()
        self.filename = filename
        self.enabled = enabled
        self._renderers: dict[DocumentFormat, Renderer] = {
            DocumentFormat.PDF: PdfRenderer(),
            DocumentFormat.DOCX: DocxRenderer(),
            DocumentFormat.XLSX: XlsxRenderer(),
        }
        if renderers:
            self._renderers.update(renderers)

    def maybe_generate(self, response_text: str) -> GeneratedDocument | None:
        """Return a GeneratedDocument, or None when no document intent is detected.

        Raises:
            DocumentRenderError: If the chosen renderer fails.
        """
        if not self.enabled or not response_text.strip():
            return None
        fmt = self.detector.detect(response_text)
        if fmt is None:
            return None
        return self.render(response_text, fmt)

    def render(self, content: str, fmt: DocumentFormat) -> GeneratedDocument:
        """Render *content* as *fmt* unconditionally."""
        try:
            data = self._renderers[fmt].render(content)
        except Exception as exc:
            raise DocumentRenderError(f"Failed to render {fmt.value.upper()}: {exc}") from exc

        encoded = base64.b64encode(data).decode("ascii")
        logger.info(f"Generated {fmt.value} document ({len(data)} bytes)")
        return GeneratedDocument(
            name=f"{self.filename}.{fmt.value}",
            mime_type=fmt.mime_type,
            size_bytes=len(data),
            content=content,
            encoded_payload=f"data:{fmt.mime_type};base64,{encoded}",
            generated_at=_utc_now_iso(),
        )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

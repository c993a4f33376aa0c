"""Extract plain text from files handed to ``docrag ingest``.

Supported: .pdf (pypdf), .docx (python-docx), .html/.htm (bs4 + html2text),
anything else is read as UTF-8 text.
"""

from __future__ import annotations

from pathlib import Path

import html2text
import pypdf
from bs4 import BeautifulSoup
from docx import Document

# shared html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0  # no line wrapping


def read_document_text(path: Path) -> str:
    """Return the text content of the document at *path*."""
    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return _pdf_text(path)
    if suffix == ".docx":
        return _docx_text(path)
    if suffix in (".html", ".htm"):
        return html_to_text(path.read_text(encoding="utf-8", errors="replace"))
    return path.read_text(encoding="utf-8", errors="replace")


def html_to_text(html: str) -> str:
    """Strip HTML markup (e.g. editor documents) and return plain text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "head"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


def _pdf_text(path: Path) -> str:
    """Page text joined by blank lines; pages without text are skipped."""
    reader = pypdf.PdfReader(str(path))
    parts: list[str] = []
    for page in reader.pages:
        page_text = (page.extract_text() or "").strip()
        if page_text:
            parts.append(page_text)
    return "\n\n".join(parts)


def _docx_text(path: Path) -> str:
    doc = Document(str(path))
    return "\n\n".join(p.text.strip() for p in doc.paragraphs if p.text.strip())

"""Render plain response text into PDF, DOCX and XLSX bytes.

Renderers are pure: text in, file bytes out, nothing written to disk.
"""

from __future__ import annotations

import io
import re
from typing import Protocol

from docx import Document
from docx.shared import Pt
from fpdf import FPDF
from fpdf.enums import XPos, YPos
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

# XML 1.0 disallows these control characters; python-docx rejects them.
_XML_ILLEGAL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class Renderer(Protocol):
    def render(self, content: str) -> bytes: ...


class PdfRenderer:
    """A4, Helvetica 12pt, 20mm margins, word-wrapped with automatic page breaks.

    Helvetica is a core font: characters outside Latin-1 are replaced with '?'.
    """

    def __init__(self, font_size: int = 12, margin: float = 20, line_height: float = 7) -> None:
        self.font_size = font_size
        self.margin = margin
        self.line_height = line_height

    def render(self, content: str) -> bytes:
        pdf = FPDF(format="A4")
        pdf.set_margins(self.margin, self.margin, self.margin)
        pdf.set_auto_page_break(auto=True, margin=self.margin)
        pdf.add_page()
        pdf.set_font("helvetica", size=self.font_size)
        for line in content.split("\n"):
            text = _to_latin1(line).rstrip()
            if text:
                pdf.multi_cell(0, self.line_height, text, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
            else:
                pdf.ln(self.line_height)
        return bytes(pdf.output())


class DocxRenderer:
    """One Arial 12pt paragraph per non-empty line."""

    def __init__(self, font_name: str = "Arial", font_size: int = 12, space_after: int = 10) -> None:
        self.font_name = font_name
        self.font_size = font_size
        self.space_after = space_after

    def render(self, content: str) -> bytes:
        doc = Document()
        normal = doc.styles["Normal"]
        normal.font.name = self.font_name
        normal.font.size = Pt(self.font_size)
        for line in content.split("\n"):
            text = _XML_ILLEGAL_RE.sub("", line).strip()
            if not text:
                continue
            paragraph = doc.add_paragraph(text)
            paragraph.paragraph_format.space_after = Pt(self.space_after)
        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()


class XlsxRenderer:
    """Single sheet: a ``Content`` header, then one row per non-empty line.

    Lines are split on tabs, else on commas. Cells that look like formulas
    are stored as text.
    """

    def __init__(self, sheet_name: str = "Document", header: str = "Content") -> None:
        self.sheet_name = sheet_name
        self.header = header

    def render(self, content: str) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = self.sheet_name
        ws.append([self.header])
        row_idx = 1
        for line in content.split("\n"):
            if not line.strip():
                continue
            row_idx += 1
            for col_idx, value in enumerate(split_row(line), start=1):
                value = ILLEGAL_CHARACTERS_RE.sub("", value)
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                if value.startswith("="):
                    cell.data_type = "s"
        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()


def split_row(line: str) -> list[str]:
    """Tab-separated if the line has a tab, else comma-separated; cells stripped."""
    separator = "\t" if "\t" in line else ","
    return [cell.strip() for cell in line.split(separator)]


def _to_latin1(text: str) -> str:
    return text.encode("latin-1", errors="replace").decode("latin-1")

"""
DOCX Parser
===========

Microsoft Word document parser using python-docx.
Falls back to reading word/document.xml directly when python-docx
rejects an otherwise readable package.
"""

import io
import os
import logging
import zipfile
from typing import List, Optional, Tuple
from xml.etree import ElementTree as ET

from docx import Document

from ..errors import ExtractionError
from .base import DocumentParser, ParseResult

DOCX_NS = {
    "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
}

OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

logger = logging.getLogger(__name__)
_DOCX_DEBUG = os.environ.get("DOCX_INGEST_DEBUG", "").strip().lower() in ("1", "true", "yes")


def _debug_log(code: str, exc: Exception) -> None:
    if _DOCX_DEBUG:
        logger.debug("docx_ingest_error code=%s exc=%s", code, exc.__class__.__name__)


def _read_document_xml(data: bytes) -> Optional[str]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            if "word/document.xml" not in zf.namelist():
                return None
            xml_bytes = zf.read("word/document.xml")
            return xml_bytes.decode("utf-8", errors="ignore")
    except zipfile.BadZipFile:
        return None


def _extract_text_from_paragraph(node: ET.Element) -> str:
    parts: List[str] = []
    for text_node in node.findall(".//w:t", DOCX_NS):
        if text_node.text:
            parts.append(text_node.text)
    return "".join(parts).strip()


def _extract_lines_from_xml(xml_text: str) -> Tuple[List[str], int]:
    root = ET.fromstring(xml_text)

    body = root.find("w:body", DOCX_NS)
    if body is None:
        return [], 0

    lines: List[str] = []
    table_count = 0

    for child in list(body):
        if child.tag == f"{{{DOCX_NS['w']}}}p":
            text = _extract_text_from_paragraph(child)
            if text:
                lines.append(text)
        elif child.tag == f"{{{DOCX_NS['w']}}}tbl":
            table_count += 1
            for row in child.findall(".//w:tr", DOCX_NS):
                row_cells: List[str] = []
                for cell in row.findall(".//w:tc", DOCX_NS):
                    cell_parts = [
                        _extract_text_from_paragraph(para)
                        for para in cell.findall(".//w:p", DOCX_NS)
                    ]
                    cell_text = " ".join(p for p in cell_parts if p).strip()
                    if cell_text:
                        row_cells.append(cell_text)
                if row_cells:
                    lines.append(" | ".join(row_cells))

    return lines, table_count


class DOCXParser(DocumentParser):
    """
    Microsoft Word parser.

    Paragraphs become lines, table rows become "cell | cell" lines.
    Legacy binary .doc files are recognized and rejected with a clear message.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/msword"  # only when the file is actually OOXML
        ]

    def parse(self, data: bytes, filename: str = None) -> ParseResult:
        """Parse DOCX file"""
        if data[:8] == OLE_SIGNATURE:
            raise ExtractionError(
                f"Legacy binary Word file {filename} cannot be parsed",
                code="legacy_doc_unsupported",
                user_message="Legacy .doc files cannot be read. Save the file as .docx and upload again.",
            )

        try:
            doc = Document(io.BytesIO(data))

            lines: List[str] = []
            for para in doc.paragraphs:
                text = para.text.strip()
                if text:
                    lines.append(text)

            for table in doc.tables:
                for row in table.rows:
                    row_texts = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                    if row_texts:
                        lines.append(" | ".join(row_texts))

            metadata = {
                "paragraph_count": len(doc.paragraphs),
                "table_count": len(doc.tables),
            }
            try:
                core_props = doc.core_properties
                if core_props.author:
                    metadata["author"] = core_props.author
                if core_props.title:
                    metadata["title"] = core_props.title
            except Exception as exc:
                _debug_log("docx_core_properties", exc)

            return ParseResult(text="\n".join(lines), page_count=1, metadata=metadata)

        except Exception as exc:
            _debug_log("docx_parse_failed", exc)
            document_xml = _read_document_xml(data)
            if document_xml:
                try:
                    lines, table_count = _extract_lines_from_xml(document_xml)
                    return ParseResult(
                        text="\n".join(lines),
                        page_count=1,
                        metadata={
                            "table_count": table_count,
                            "parser": "xml_fallback",
                        },
                    )
                except ET.ParseError as inner_exc:
                    _debug_log("docx_xml_parse_failed", inner_exc)

            raise ExtractionError(
                f"Failed to parse DOCX file {filename}: {exc}",
                code="docx_parse_failed",
                user_message="The document could not be processed. Try saving it again as a valid DOCX.",
            )

"""
Document Ingestion Tests
"""

import io
import zipfile
from pathlib import Path

import pytest

from adjudicator.errors import EmptyContent, ExtractionError, UnsupportedMediaType
from adjudicator.ingest import DOCXParser, TextExtractor, normalize_text
from adjudicator.ingest.factory import DOCX_MIME


def _build_docx(tmp_path: Path, paragraphs, rows=None) -> bytes:
    from docx import Document

    doc = Document()
    for para in paragraphs:
        doc.add_paragraph(para)
    if rows:
        table = doc.add_table(rows=len(rows), cols=len(rows[0]))
        for r_idx, row in enumerate(rows):
            for c_idx, value in enumerate(row):
                table.cell(r_idx, c_idx).text = value
    file_path = tmp_path / "brief.docx"
    doc.save(file_path)
    return file_path.read_bytes()


def _build_docx_with_document_xml(xml_text: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("word/document.xml", xml_text)
    return buffer.getvalue()


def _blank_pdf() -> bytes:
    from pypdf import PdfWriter

    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def extractor():
    return TextExtractor()


class TestNormalizeText:

    @pytest.mark.parametrize("raw", [
        "Hello   world\n\n\n\nNext paragraph",
        "  tabs\tand\t\tspaces  \r\n  around  \r\n\r\n\r\n\r\nlines ",
        "\ufeffzero\u200bwidth",
        "\n\n\n",
        "",
        "single line",
    ])
    def test_idempotent(self, raw):
        once = normalize_text(raw)
        assert normalize_text(once) == once

    def test_collapses_whitespace_and_blank_lines(self):
        assert normalize_text("Hello   world\n\n\n\nNext") == "Hello world\n\nNext"

    def test_keeps_paragraph_breaks(self):
        assert normalize_text("First\n\nSecond") == "First\n\nSecond"

    def test_trims_and_strips_invisible_characters(self):
        assert normalize_text("  \ufeffA\u200bB  ") == "AB"


class TestTextExtractor:

    def test_plain_text(self, extractor):
        result = extractor.extract(b"Contract   signed\n\n\n\non 1 March.", "text/plain", "notes.txt")
        assert result.text == "Contract signed\n\non 1 March."
        assert result.media_type == "text/plain"
        assert result.length == len(result.text)

    def test_plain_text_with_charset_parameter(self, extractor):
        result = extractor.extract(b"hello", "text/plain; charset=utf-8", "notes.txt")
        assert result.text == "hello"

    def test_non_utf8_text_is_decoded(self, extractor):
        data = "Café receipt, total due".encode("latin-1")
        result = extractor.extract(data, "text/plain", "receipt.txt")
        assert "receipt, total due" in result.text

    def test_whitespace_only_text_is_empty_content(self, extractor):
        with pytest.raises(EmptyContent):
            extractor.extract(b"   \n\n\t  ", "text/plain", "blank.txt")

    def test_unsupported_media_type(self, extractor):
        with pytest.raises(UnsupportedMediaType):
            extractor.extract(b"\x89PNG\r\n", "image/png", "scan.png")

    def test_docx_paragraphs_and_tables(self, extractor, tmp_path):
        data = _build_docx(
            tmp_path,
            ["Statement of claim", "The goods arrived late."],
            rows=[["Item", "Amount"], ["Widgets", "12,500"]],
        )
        result = extractor.extract(data, DOCX_MIME, "brief.docx")
        assert "Statement of claim" in result.text
        assert "The goods arrived late." in result.text
        assert "Item | Amount" in result.text
        assert result.metadata["table_count"] == 1

    def test_docx_declared_as_msword(self, extractor, tmp_path):
        data = _build_docx(tmp_path, ["Declared as legacy Word"])
        result = extractor.extract(data, "application/msword", "brief.doc")
        assert result.text == "Declared as legacy Word"

    def test_blank_pdf_is_empty_content(self, extractor):
        with pytest.raises(EmptyContent):
            extractor.extract(_blank_pdf(), "application/pdf", "scan.pdf")

    def test_corrupt_pdf_is_extraction_error(self, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract(b"this is not a pdf at all", "application/pdf", "broken.pdf")

    def test_resolve_media_type_from_filename(self, extractor):
        assert extractor.resolve_media_type(None, "brief.pdf") == "application/pdf"
        assert extractor.resolve_media_type("application/octet-stream", "notes.txt") == "text/plain"
        assert extractor.resolve_media_type("TEXT/PLAIN; charset=utf-8", "notes.bin") == "text/plain"
        assert extractor.resolve_media_type("", "brief.docx") == DOCX_MIME


class TestDOCXParser:

    def test_xml_fallback_when_package_is_incomplete(self):
        xml_text = (
            '<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">'
            "<w:body>"
            "<w:p><w:r><w:t>Recovered paragraph</w:t></w:r></w:p>"
            "<w:tbl><w:tr>"
            "<w:tc><w:p><w:r><w:t>A</w:t></w:r></w:p></w:tc>"
            "<w:tc><w:p><w:r><w:t>B</w:t></w:r></w:p></w:tc>"
            "</w:tr></w:tbl>"
            "</w:body></w:document>"
        )
        result = DOCXParser().parse(_build_docx_with_document_xml(xml_text), filename="partial.docx")
        assert result.metadata["parser"] == "xml_fallback"
        assert result.text == "Recovered paragraph\nA | B"

    def test_legacy_binary_doc_is_rejected(self):
        data = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64
        with pytest.raises(ExtractionError) as exc_info:
            DOCXParser().parse(data, filename="old.doc")
        assert exc_info.value.code == "legacy_doc_unsupported"

    def test_garbage_is_extraction_error(self):
        with pytest.raises(ExtractionError) as exc_info:
            DOCXParser().parse(b"not a zip file", filename="broken.docx")
        assert exc_info.value.code == "docx_parse_failed"

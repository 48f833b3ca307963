"""
Text Extractor
==============

Entry point of the ingest pipeline: bytes + declared media type
-> normalized, non-empty text.
"""

import mimetypes
import logging
from typing import Dict, List, Optional

from ..errors import UnsupportedMediaType, EmptyContent
from .base import DocumentParser, ExtractedText, normalize_text
from .txt import TXTParser
from .docx import DOCXParser
from .pdf import PDFTextParser

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

def _clean_mime(mime_type: Optional[str]) -> str:
    """Lowercase and drop parameters ("text/plain; charset=utf-8" -> "text/plain")"""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def detect_mime_type(filename: str, data: bytes = None) -> str:
    """
    Detect MIME type from filename and optionally file content.

    Used when a client sends no type or a generic application/octet-stream.
    """
    ext = filename.lower().rsplit(".", 1)[-1] if "." in filename else ""
    ext_mapping = {
        "txt": "text/plain",
        "pdf": "application/pdf",
        "doc": "application/msword",
        "docx": DOCX_MIME,
    }
    if ext in ext_mapping:
        return ext_mapping[ext]

    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type:
        return mime_type

    if data:
        if data[:4] == b"%PDF":
            return "application/pdf"
        if data[:4] == b"PK\x03\x04" and b"word/" in data[:2000]:
            return DOCX_MIME

    return "application/octet-stream"


class TextExtractor:
    """
    Routes a file to the parser for its media type and normalizes the result.

    Usage:
        extractor = TextExtractor()
        extracted = extractor.extract(data, "application/pdf", "contract.pdf")
    """

    def __init__(self, parsers: Optional[List[DocumentParser]] = None):
        parsers = parsers or [TXTParser(), DOCXParser(), PDFTextParser()]
        self._parsers: Dict[str, DocumentParser] = {}
        for parser in parsers:
            for mime in parser.supported_mimes:
                self._parsers[mime.lower()] = parser

    def is_supported(self, mime_type: str) -> bool:
        return _clean_mime(mime_type) in self._parsers

    def resolve_media_type(self, mime_type: Optional[str], filename: str, data: bytes = None) -> str:
        """Declared type, or a guess from the filename when the client sent none"""
        cleaned = _clean_mime(mime_type)
        if not cleaned or cleaned == "application/octet-stream":
            return detect_mime_type(filename or "", data)
        return cleaned

    def extract(self, data: bytes, mime_type: str, filename: str = None) -> ExtractedText:
        """
        Extract normalized text.

        Raises:
            UnsupportedMediaType: No parser for the type
            ExtractionError: Parser failed on the file
            EmptyContent: File yielded only whitespace
        """
        media_type = _clean_mime(mime_type)
        parser = self._parsers.get(media_type)
        if parser is None:
            raise UnsupportedMediaType(mime_type or "unknown")

        result = parser.parse(data, filename)
        text = normalize_text(result.text)

        if not text:
            raise EmptyContent(
                f"No text content found in {filename or media_type}",
                user_message=f"No text content found in {filename or 'document'}",
            )

        logger.info(f"Extracted {len(text)} chars from {filename} ({media_type})")
        return ExtractedText(
            text=text,
            media_type=media_type,
            page_count=result.page_count,
            metadata=result.metadata,
        )


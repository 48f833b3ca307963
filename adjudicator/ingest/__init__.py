"""
Ingest Pipeline
===============

Document parsing for PDF, Word and plain text.
Produces normalized plain text, no layout.
"""

from .base import ParseResult, ExtractedText, DocumentParser, normalize_text
from .txt import TXTParser
from .docx import DOCXParser
from .pdf import PDFTextParser
from .factory import TextExtractor, detect_mime_type

__all__ = [
    # Base types
    "ParseResult", "ExtractedText", "DocumentParser", "normalize_text",
    # Parsers
    "TXTParser", "DOCXParser", "PDFTextParser",
    # Extractor
    "TextExtractor", "detect_mime_type",
]

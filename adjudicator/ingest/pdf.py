"""
PDF Text Parser
===============

PDF parser for text-based PDFs (not scanned).
Uses pypdf for extraction. No OCR: scanned PDFs come out empty.
"""

import io
import logging
from typing import List

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ..errors import ExtractionError
from .base import DocumentParser, ParseResult

logger = logging.getLogger(__name__)


class PDFTextParser(DocumentParser):
    """
    PDF text parser.

    Pages are joined with a blank line so page breaks survive normalization
    as paragraph breaks.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return [
            "application/pdf",
            "application/x-pdf"
        ]

    def parse(self, data: bytes, filename: str = None) -> ParseResult:
        """Parse PDF file"""
        try:
            reader = PdfReader(io.BytesIO(data))
            page_texts = []
            for page_no, page in enumerate(reader.pages, start=1):
                try:
                    page_texts.append(page.extract_text() or "")
                except Exception as e:
                    # One broken page should not sink the whole document
                    logger.warning(f"PDF page {page_no} of {filename} unreadable: {e}")
                    page_texts.append("")
        except (PyPdfError, ValueError, OSError) as e:
            raise ExtractionError(
                f"Failed to parse PDF file {filename}: {e}",
                user_message="Could not read PDF file",
            )

        metadata = {"page_count": len(page_texts)}
        try:
            if reader.metadata:
                if reader.metadata.title:
                    metadata["title"] = reader.metadata.title
                if reader.metadata.author:
                    metadata["author"] = reader.metadata.author
        except PyPdfError:
            pass

        return ParseResult(
            text="\n\n".join(page_texts),
            page_count=len(page_texts),
            metadata=metadata,
        )

"""
Ingest Base Types
=================

Shared result type, parser interface and text normalization.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Dict, Any
from dataclasses import dataclass, field


@dataclass
class ParseResult:
    """
    Raw result from a parser, before normalization.
    """
    text: str
    page_count: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractedText:
    """
    Normalized text extracted from an uploaded file.

    `text` is never empty - extraction fails with EmptyContent instead.
    """
    text: str
    media_type: str
    page_count: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def length(self) -> int:
        return len(self.text)


class DocumentParser(ABC):
    """
    Abstract base class for document parsers.
    """

    @property
    @abstractmethod
    def supported_mimes(self) -> List[str]:
        """List of supported MIME types"""
        pass

    @abstractmethod
    def parse(self, data: bytes, filename: str = None) -> ParseResult:
        """
        Parse document data.

        Args:
            data: Binary document data
            filename: Optional filename, used in error messages

        Returns:
            ParseResult with the raw extracted text

        Raises:
            ExtractionError: If the file cannot be read
        """
        pass


_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_SPACES_AROUND_NEWLINE = re.compile(r" *\n *")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """
    Normalize extracted text for storage and prompting.

    - Drop zero-width spaces and BOMs
    - Collapse runs of whitespace inside a line to a single space
    - Collapse 3+ consecutive newlines to exactly two
    - Trim leading/trailing whitespace

    normalize_text(normalize_text(x)) == normalize_text(x)
    """
    if not text:
        return ""

    text = text.replace("\u200b", "").replace("\ufeff", "")
    text = text.replace("\r\n", "\n")

    text = _HORIZONTAL_WS.sub(" ", text)
    text = _SPACES_AROUND_NEWLINE.sub("\n", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)

    return text.strip()

"""
TXT Parser
==========

Plain text parser with encoding detection.
"""

from typing import List
import chardet

from .base import DocumentParser, ParseResult


class TXTParser(DocumentParser):
    """
    Plain text file parser.

    Tries UTF-8 first, then whatever chardet detects.
    """

    @property
    def supported_mimes(self) -> List[str]:
        return ["text/plain"]

    def parse(self, data: bytes, filename: str = None) -> ParseResult:
        """Parse plain text file"""
        try:
            text = data.decode("utf-8")
            encoding = "utf-8"
            confidence = 1.0
        except UnicodeDecodeError:
            detected = chardet.detect(data)
            encoding = detected.get("encoding") or "utf-8"
            confidence = detected.get("confidence", 0)
            try:
                text = data.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                text = data.decode("utf-8", errors="replace")

        return ParseResult(
            text=text,
            page_count=1,
            metadata={
                "encoding": encoding,
                "confidence": confidence,
            },
        )

#!/usr/bin/env python3
"""
Inspect document extraction results without printing raw text.
"""

import argparse
import hashlib
import json
import sys
from pathlib import Path

from adjudicator.errors import DocumentError
from adjudicator.ingest import TextExtractor


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect text extraction output.")
    parser.add_argument("path", help="Path to a PDF, Word or text file")
    parser.add_argument("--mime", default=None, help="Override the detected media type")
    args = parser.parse_args()

    path = Path(args.path)
    if not path.exists():
        print(json.dumps({"error": "file_not_found", "path": str(path)}))
        return 1

    data = path.read_bytes()
    extractor = TextExtractor()
    media_type = extractor.resolve_media_type(args.mime, path.name, data)

    try:
        result = extractor.extract(data, media_type, filename=path.name)
    except DocumentError as e:
        print(json.dumps({"error": e.code, "message": e.user_message, "media_type": media_type}))
        return 2

    output = {
        "media_type": result.media_type,
        "size_bytes": len(data),
        "page_count": result.page_count,
        "text_length": result.length,
        "line_count": result.text.count("\n") + 1,
        "text_sha256": hashlib.sha256(result.text.encode("utf-8")).hexdigest()[:16],
        "metadata": result.metadata,
    }
    print(json.dumps(output, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())

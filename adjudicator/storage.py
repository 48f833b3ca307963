"""
Object Storage (local filesystem)
=================================

Keeps the raw bytes of uploaded documents. Keys are relative paths:

    cases/<caseId>/side-a/<epoch ms>-<random hex>-<filename>

Only the extracted text is needed for adjudication, so callers treat a
failed put as non-fatal and record uploadedToCloud=false.
"""

import hashlib
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import StorageError
from .schemas import Side

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w.\-]+")


@dataclass
class ObjectMeta:
    """Result of a put"""
    key: str
    url: str
    path: str
    size_bytes: int
    sha256: str
    content_type: str = "application/octet-stream"


def _safe_filename(filename: str) -> str:
    name = os.path.basename(filename or "").strip()
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "document"


class LocalStorage:
    """
    Filesystem-backed object store.

    Usage:
        storage = LocalStorage("./storage")
        key = storage.generate_key(case_id, Side.A, "contract.pdf")
        meta = storage.put(key, data, "application/pdf")
    """

    def __init__(self, base_path: str, public_base_url: Optional[str] = None):
        self.base_path = Path(base_path).resolve()
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def generate_key(self, case_id: str, side: Side, filename: str) -> str:
        stamp = int(time.time() * 1000)
        return f"cases/{case_id}/{side.slug}/{stamp}-{secrets.token_hex(4)}-{_safe_filename(filename)}"

    def _resolve(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path not in path.parents:
            raise StorageError(f"Storage key escapes base path: {key}")
        return path

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self._resolve(key).as_uri()

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> ObjectMeta:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to store {key}: {e}")
            raise StorageError(f"Failed to store {key}: {e}") from e

        logger.debug(f"Stored {key} ({len(data)} bytes)")
        return ObjectMeta(
            key=key,
            url=self.url_for(key),
            path=key,
            size_bytes=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
            content_type=content_type,
        )

    def get(self, key: str) -> Optional[bytes]:
        path = self._resolve(key)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def delete(self, key: str) -> bool:
        path = self._resolve(key)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        return True

"""
Local Object Storage Tests
"""

import hashlib
import re

import pytest

from adjudicator.errors import StorageError
from adjudicator.schemas import Side
from adjudicator.storage import LocalStorage


@pytest.fixture
def local(tmp_path):
    return LocalStorage(str(tmp_path / "objects"), public_base_url="https://files.example.com/")


def test_generate_key_layout(local):
    key = local.generate_key("case_abc", Side.B, "Reply Brief.pdf")
    assert re.match(r"^cases/case_abc/side-b/\d+-[0-9a-f]{8}-Reply_Brief\.pdf$", key)


def test_same_filename_gets_distinct_keys(local):
    keys = {local.generate_key("case_abc", Side.A, "evidence.txt") for _ in range(20)}
    assert len(keys) == 20


def test_generate_key_strips_directories(local):
    key = local.generate_key("case_abc", Side.A, "../../etc/passwd")
    assert key.startswith("cases/case_abc/side-a/")
    assert key.endswith("-passwd")


def test_put_get_exists_delete(local):
    key = local.generate_key("case_abc", Side.A, "claim.txt")
    meta = local.put(key, b"claim body", "text/plain")

    assert meta.path == key
    assert meta.size_bytes == len(b"claim body")
    assert meta.sha256 == hashlib.sha256(b"claim body").hexdigest()
    assert meta.url == f"https://files.example.com/{key}"

    assert local.exists(key)
    assert local.get(key) == b"claim body"
    assert local.delete(key) is True
    assert not local.exists(key)
    assert local.get(key) is None
    assert local.delete(key) is False


def test_key_outside_base_path_is_rejected(local):
    with pytest.raises(StorageError):
        local.put("../outside.txt", b"x")


def test_file_url_without_public_base(tmp_path):
    storage = LocalStorage(str(tmp_path / "objects"))
    meta = storage.put("cases/c/side-a/1-a.txt", b"a")
    assert meta.url.startswith("file://")

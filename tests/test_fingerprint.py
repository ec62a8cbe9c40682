"""Tests for content fingerprinting."""

import hashlib

from common.types import UploadSource
from engine.fingerprint import UNKNOWN_DIGEST, digest, digest_source


def test_digest_is_sha256_hex():
    data = b"hello relay"

    result = digest(data)

    assert result.hexdigest == hashlib.sha256(data).hexdigest()
    assert result.is_known
    assert result.prefix() == result.hexdigest[:16]


def test_digest_of_empty_content_is_known():
    assert digest(b"").is_known


def test_identical_content_gives_identical_prefix():
    a = UploadSource.from_bytes("a.txt", b"same bytes", last_modified_ms=1)
    b = UploadSource.from_bytes("renamed.txt", b"same bytes", last_modified_ms=99)

    assert digest_source(a).prefix() == digest_source(b).prefix()


def test_digest_source_reads_from_disk(sample_file):
    source = UploadSource.from_path(sample_file)

    assert digest_source(source) == digest(sample_file.read_bytes())


def test_digest_source_unreadable_file_returns_unknown(tmp_path):
    missing = tmp_path / "gone.txt"
    missing.write_text("x")
    source = UploadSource.from_path(missing)
    missing.unlink()

    result = digest_source(source)

    assert result == UNKNOWN_DIGEST
    assert not result.is_known
    assert result.prefix() == ""

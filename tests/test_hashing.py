"""Hash-source tests."""

from __future__ import annotations

import base64
import hashlib

import pytest

from cspbuilder.core.hashing import HashAlgorithm, hash_source
from cspbuilder.errors import CSPError, UnsupportedHashAlgorithm

from tests.conftest import SHA512_DO_SOMETHING


class TestHashSource:
    def test_sha512_known_value(self):
        assert hash_source(512, "doSomething()") == SHA512_DO_SOMETHING

    def test_bytes_and_str_agree(self):
        assert hash_source(HashAlgorithm.SHA512, b"doSomething()") == SHA512_DO_SOMETHING

    def test_sha256_empty(self):
        assert hash_source(256, "") == "'sha256-47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU='"

    @pytest.mark.parametrize("bits,fn", [(256, hashlib.sha256), (384, hashlib.sha384), (512, hashlib.sha512)])
    def test_matches_hashlib(self, bits, fn):
        content = "alert('hi');\n"
        expected = base64.b64encode(fn(content.encode()).digest()).decode()
        assert hash_source(bits, content) == f"'sha{bits}-{expected}'"

    def test_exact_bytes_hashed(self):
        # Whitespace is significant to browsers
        assert hash_source(256, "a") != hash_source(256, "a ")

    def test_unicode_is_utf8_encoded(self):
        assert hash_source(256, "é") == hash_source(256, "é".encode("utf-8"))


class TestUnsupportedAlgorithm:
    @pytest.mark.parametrize("algorithm", [1, 128, 224, 1024, "256", None])
    def test_rejected(self, algorithm):
        with pytest.raises(UnsupportedHashAlgorithm):
            hash_source(algorithm, "x")

    def test_error_hierarchy(self):
        with pytest.raises(CSPError):
            hash_source(0, "x")
        with pytest.raises(ValueError):
            hash_source(0, "x")

    def test_error_carries_algorithm(self):
        with pytest.raises(UnsupportedHashAlgorithm) as exc_info:
            hash_source(128, "x")
        assert exc_info.value.algorithm == 128

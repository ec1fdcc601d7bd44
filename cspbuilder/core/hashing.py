"""Hash-source literals for inline scripts and styles."""

from __future__ import annotations

import base64
import hashlib
from enum import IntEnum

from cspbuilder.errors import UnsupportedHashAlgorithm


class HashAlgorithm(IntEnum):
    SHA256 = 256
    SHA384 = 384
    SHA512 = 512


_DIGESTS = {
    HashAlgorithm.SHA256: hashlib.sha256,
    HashAlgorithm.SHA384: hashlib.sha384,
    HashAlgorithm.SHA512: hashlib.sha512,
}


def hash_source(algorithm: int, content: bytes | str) -> str:
    """Return the CSP hash-source literal for ``content``.

    Strings are UTF-8 encoded before hashing, so the digest matches what a
    browser computes over the inline element's text.

    Example:
        >>> hash_source(256, "")
        "'sha256-47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU='"
    """
    try:
        algo = HashAlgorithm(algorithm)
    except ValueError:
        raise UnsupportedHashAlgorithm(algorithm) from None

    if isinstance(content, str):
        content = content.encode("utf-8")
    digest = _DIGESTS[algo](content).digest()
    return f"'sha{int(algo)}-{base64.b64encode(digest).decode('ascii')}'"

"""Per-response nonce generation and placeholder substitution."""

from __future__ import annotations

import base64
import secrets

import structlog

from cspbuilder.core.directive import DEFAULT_NONCE_PLACEHOLDER
from cspbuilder.errors import NonceUnavailable

logger = structlog.get_logger()

# 128 bits
NONCE_BYTES = 16


def generate_nonce(nbytes: int = NONCE_BYTES) -> str:
    """Return a fresh base64url (unpadded) token from the OS CSPRNG.

    Raises NonceUnavailable if the random source fails. There is no fallback:
    a predictable nonce is worse than a failed response.
    """
    if nbytes < NONCE_BYTES:
        raise ValueError(f"Nonce must carry at least {NONCE_BYTES} bytes of entropy")
    try:
        raw = secrets.token_bytes(nbytes)
    except OSError as exc:
        logger.error("csp_nonce_generation_failed", error=str(exc))
        raise NonceUnavailable("secure random source failed") from exc
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def nonce_source(token: str) -> str:
    """Return the ``'nonce-<token>'`` source literal."""
    return f"'nonce-{token}'"


def apply_nonce(template: str, token: str, placeholder: str = DEFAULT_NONCE_PLACEHOLDER) -> str:
    """Replace every placeholder occurrence in ``template`` with the nonce literal."""
    if not token:
        return template
    return template.replace(placeholder, nonce_source(token))

"""Exceptions raised by the policy compiler."""

from __future__ import annotations


class CSPError(Exception):
    """Base class for cspbuilder errors."""


class UnsupportedHashAlgorithm(CSPError, ValueError):
    """Raised when a hash source is requested for an unknown digest size."""

    def __init__(self, algorithm: object) -> None:
        super().__init__(f"Unsupported hash algorithm: {algorithm!r} (expected 256, 384 or 512)")
        self.algorithm = algorithm


class NonceUnavailable(CSPError, RuntimeError):
    """Raised when the secure random source cannot produce a nonce."""


class PolicyConfigError(CSPError):
    """Raised when a policy file cannot be loaded."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Invalid policy file {path}: {reason}")
        self.path = path
        self.reason = reason

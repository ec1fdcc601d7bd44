"""Content-Security-Policy header builder with nonce and hash support."""

from cspbuilder.core import (
    CSP_HEADER,
    CSP_REPORT_ONLY_HEADER,
    DEFAULT_NONCE_PLACEHOLDER,
    NONE_ONLY,
    SELF_ONLY,
    Directive,
    HashAlgorithm,
    Keyword,
    Policy,
    Scheme,
    apply_nonce,
    generate_nonce,
    hash_source,
    header_name,
)
from cspbuilder.errors import CSPError, NonceUnavailable, PolicyConfigError, UnsupportedHashAlgorithm

__version__ = "0.1.0"

__all__ = [
    "CSPError",
    "CSP_HEADER",
    "CSP_REPORT_ONLY_HEADER",
    "DEFAULT_NONCE_PLACEHOLDER",
    "Directive",
    "HashAlgorithm",
    "Keyword",
    "NONE_ONLY",
    "NonceUnavailable",
    "Policy",
    "PolicyConfigError",
    "SELF_ONLY",
    "Scheme",
    "UnsupportedHashAlgorithm",
    "apply_nonce",
    "generate_nonce",
    "hash_source",
    "header_name",
]

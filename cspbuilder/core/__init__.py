"""Policy compilation engine: directives, hashes, nonces and header composition."""

from cspbuilder.core.directive import (
    DEFAULT_NONCE_PLACEHOLDER,
    NONE_ONLY,
    SELF_ONLY,
    Directive,
    Keyword,
    Scheme,
)
from cspbuilder.core.hashing import HashAlgorithm, hash_source
from cspbuilder.core.nonce import apply_nonce, generate_nonce
from cspbuilder.core.policy import CSP_HEADER, CSP_REPORT_ONLY_HEADER, Policy, header_name

__all__ = [
    "CSP_HEADER",
    "CSP_REPORT_ONLY_HEADER",
    "DEFAULT_NONCE_PLACEHOLDER",
    "Directive",
    "HashAlgorithm",
    "Keyword",
    "NONE_ONLY",
    "Policy",
    "SELF_ONLY",
    "Scheme",
    "apply_nonce",
    "generate_nonce",
    "hash_source",
    "header_name",
]

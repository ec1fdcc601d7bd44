"""Process-wide active policy.

The policy is built once and then only read. Reloading builds a new Policy
and swaps the reference, so requests in flight keep the object they started
with and never see a half-built one.
"""

from __future__ import annotations

import structlog

from cspbuilder.config.loader import CSPSettings, get_settings
from cspbuilder.config.policy_file import load_policy_config
from cspbuilder.core.policy import Policy

logger = structlog.get_logger()

_policy: Policy | None = None


def build_policy(settings: CSPSettings) -> Policy:
    """Load the configured policy file, apply env overrides and compile it."""
    config = load_policy_config(settings.policy_file)
    policy = config.to_policy(nonce_placeholder=settings.nonce_placeholder)
    if settings.report_uri is not None:
        policy.report_uri = settings.report_uri
    if settings.upgrade_insecure_requests is not None:
        policy.upgrade_insecure_requests = settings.upgrade_insecure_requests
    policy.build()
    logger.info(
        "csp_policy_ready",
        directives=policy.names(),
        requires_nonce=policy.requires_nonce,
        report_only=settings.report_only,
    )
    return policy


def get_policy() -> Policy:
    """Return the active policy, loading it from settings on first use."""
    global _policy
    if _policy is None:
        _policy = build_policy(get_settings())
    return _policy


def set_policy(policy: Policy) -> Policy:
    """Install an already configured policy, building it if needed."""
    global _policy
    if not policy.built:
        policy.build()
    _policy = policy
    return policy


def reload_policy(settings: CSPSettings | None = None) -> Policy:
    """Rebuild from settings and swap the active policy."""
    global _policy
    policy = build_policy(settings or get_settings())
    _policy = policy
    logger.info("csp_policy_swapped")
    return policy


def reset_policy() -> None:
    """Forget the active policy (for testing)."""
    global _policy
    _policy = None

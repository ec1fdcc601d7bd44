"""Shared test fixtures."""

from __future__ import annotations

import pytest

from cspbuilder.core.directive import SCRIPT_SRC, Keyword
from cspbuilder.core.policy import Policy

SHA512_DO_SOMETHING = (
    "'sha512-NrS2FABurNzIW2yTKRxF8X+HMhJh29vd9syOLut1MW4Cd1JeGzZqughLzC+LQr0O8XFhCuR4zyjLgrTQct7jAA=='"
)


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Provide default settings for all tests."""
    monkeypatch.setenv("CSP_LOG_JSON", "false")
    monkeypatch.setenv("CSP_LOG_LEVEL", "debug")

    # Reset cached settings and the active policy
    import cspbuilder.config.loader as loader
    import cspbuilder.config.policy_store as policy_store
    loader._settings = None
    policy_store.reset_policy()
    yield
    loader._settings = None
    policy_store.reset_policy()


@pytest.fixture
def nonce_policy() -> Policy:
    """script-src with a nonce, built."""
    policy = Policy()
    policy.new(SCRIPT_SRC, Keyword.SELF, Keyword.NONCE)
    policy.build()
    return policy


@pytest.fixture
def static_policy() -> Policy:
    """Starter policy without nonces, built."""
    policy = Policy.starter()
    policy.build()
    return policy

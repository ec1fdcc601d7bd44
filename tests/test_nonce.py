"""Nonce issuing tests."""

from __future__ import annotations

import base64
from unittest.mock import patch

import pytest

from cspbuilder.core.directive import SCRIPT_SRC, STYLE_SRC, Keyword
from cspbuilder.core.nonce import apply_nonce, generate_nonce, nonce_source
from cspbuilder.core.policy import Policy
from cspbuilder.errors import NonceUnavailable


def _decode(token: str) -> bytes:
    return base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))


class TestGenerateNonce:
    def test_entropy(self):
        token = generate_nonce()
        assert "=" not in token
        assert len(_decode(token)) >= 16

    def test_fresh_every_call(self):
        assert len({generate_nonce() for _ in range(50)}) == 50

    def test_too_short_rejected(self):
        with pytest.raises(ValueError):
            generate_nonce(8)

    def test_random_failure_is_fatal(self):
        with patch("cspbuilder.core.nonce.secrets.token_bytes", side_effect=OSError("no entropy")):
            with pytest.raises(NonceUnavailable):
                generate_nonce()


class TestApplyNonce:
    def test_replaces_every_placeholder(self):
        template = "script-src $NONCE;style-src $NONCE"
        assert apply_nonce(template, "abc") == "script-src 'nonce-abc';style-src 'nonce-abc'"

    def test_empty_token_leaves_template(self):
        assert apply_nonce("script-src $NONCE", "") == "script-src $NONCE"

    def test_custom_placeholder(self):
        assert apply_nonce("script-src {{n}}", "abc", "{{n}}") == "script-src 'nonce-abc'"

    def test_nonce_source(self):
        assert nonce_source("abc") == "'nonce-abc'"


class TestWithNonce:
    def test_not_required_returns_cached(self, static_policy):
        with patch("cspbuilder.core.nonce.secrets.token_bytes") as token_bytes:
            header, token = static_policy.with_nonce()
        token_bytes.assert_not_called()
        assert header == static_policy.compiled
        assert token == ""

    def test_required(self, nonce_policy):
        assert nonce_policy.requires_nonce
        header, token = nonce_policy.with_nonce()
        assert token
        assert f"'nonce-{token}'" in header
        assert header != nonce_policy.compiled
        assert "$NONCE" not in header
        assert header == f"script-src 'nonce-{token}' 'self'"

    def test_cached_template_keeps_placeholder(self, nonce_policy):
        before = nonce_policy.compiled
        nonce_policy.with_nonce()
        assert nonce_policy.compiled == before == "script-src $NONCE 'self'"

    def test_fresh_token_per_call(self, nonce_policy):
        (h1, t1), (h2, t2) = nonce_policy.with_nonce(), nonce_policy.with_nonce()
        assert t1 != t2
        assert h1 != h2
        assert len(_decode(t1)) >= 16
        assert len(_decode(t2)) >= 16

    def test_same_token_in_every_directive(self):
        pol = Policy()
        pol.new(SCRIPT_SRC, Keyword.NONCE)
        pol.new(STYLE_SRC, Keyword.NONCE)
        pol.build()
        header, token = pol.with_nonce()
        assert header.count(f"'nonce-{token}'") == 2

    def test_builds_when_never_built(self):
        pol = Policy()
        pol.new(SCRIPT_SRC, Keyword.NONCE)
        header, token = pol.with_nonce()
        assert pol.requires_nonce
        assert header == f"script-src 'nonce-{token}'"

    def test_placeholder_literal_source(self):
        pol = Policy()
        pol.new(SCRIPT_SRC, "$NONCE", Keyword.SELF)
        pol.build()
        header, token = pol.with_nonce()
        assert pol.requires_nonce
        assert header == f"script-src 'self' 'nonce-{token}'"

    def test_custom_placeholder(self):
        pol = Policy(nonce_placeholder="{{csp_nonce}}")
        pol.new(SCRIPT_SRC, Keyword.NONCE)
        assert pol.build() == "script-src {{csp_nonce}}"
        header, token = pol.with_nonce()
        assert header == f"script-src 'nonce-{token}'"

    def test_random_failure_propagates(self, nonce_policy):
        with patch("cspbuilder.core.nonce.secrets.token_bytes", side_effect=OSError("no entropy")):
            with pytest.raises(NonceUnavailable):
                nonce_policy.with_nonce()

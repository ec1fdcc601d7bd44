"""Policy model and header compilation."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

import structlog

from cspbuilder.core.directive import (
    BASE_URI,
    CONNECT_SRC,
    DEFAULT_NONCE_PLACEHOLDER,
    DEFAULT_SRC,
    FORM_ACTION,
    IMG_SRC,
    NONE_ONLY,
    SCRIPT_SRC,
    SELF_ONLY,
    STYLE_SRC,
    Directive,
    Keyword,
    Scheme,
)
from cspbuilder.core.nonce import apply_nonce, generate_nonce

logger = structlog.get_logger()

CSP_HEADER = "Content-Security-Policy"
CSP_REPORT_ONLY_HEADER = "Content-Security-Policy-Report-Only"

_UPGRADE_INSECURE_REQUESTS = "upgrade-insecure-requests;"
_REPORT_URI = "report-uri "


def header_name(report_only: bool = False) -> str:
    return CSP_REPORT_ONLY_HEADER if report_only else CSP_HEADER


class Policy:
    """A named collection of directives compiled into one header value.

    Configure the policy, call ``build()`` once during startup, then share it
    between requests. ``with_nonce()`` and ``merge_build()`` only read the
    cached template and never mutate the policy, so they are safe to call
    concurrently. ``build()`` is not: rebuilding while requests are in flight
    must happen on a separate Policy that is swapped in afterwards.
    """

    def __init__(
        self,
        directives: Mapping[str, Directive] | None = None,
        *,
        upgrade_insecure_requests: bool = False,
        report_uri: str = "",
        nonce_placeholder: str = DEFAULT_NONCE_PLACEHOLDER,
    ) -> None:
        self.directives: dict[str, Directive] = dict(directives or {})
        self.upgrade_insecure_requests = upgrade_insecure_requests
        self.report_uri = report_uri
        self.nonce_placeholder = nonce_placeholder or DEFAULT_NONCE_PLACEHOLDER

        # Set by build()
        self.compiled = ""
        self.requires_nonce = False
        self._built = False

    @classmethod
    def starter(cls, **kwargs) -> Policy:
        """Policy with sensible defaults.

        default-src 'none'; base-uri, connect-src, form-action, img-src,
        script-src and style-src all 'self'.
        """
        policy = cls(**kwargs)
        policy.set(DEFAULT_SRC, NONE_ONLY)
        for name in (BASE_URI, SCRIPT_SRC, CONNECT_SRC, IMG_SRC, STYLE_SRC, FORM_ACTION):
            policy.set(name, SELF_ONLY)
        return policy

    # ── directive management ────────────────────────────────────────────

    def set(self, name: str, directive: Directive) -> Policy:
        """Add ``directive`` under ``name``, replacing any existing one."""
        self.directives[name] = directive
        return self

    def new(self, name: str, *sources: str | Keyword | Scheme) -> Directive:
        """Create a directive from ``sources``, store it under ``name`` and return it."""
        directive = Directive.of(*sources)
        self.directives[name] = directive
        return directive

    def extend(self, name: str, *sources: str | Keyword | Scheme) -> Directive:
        """Add sources to the directive under ``name``, creating it if missing."""
        directive = self.directives.get(name, Directive()).add(*sources)
        self.directives[name] = directive
        return directive

    def hash(self, name: str, algorithm: int, content: bytes | str) -> Directive:
        """Append the hash source of ``content`` to the directive under ``name``."""
        directive = self.directives.get(name, Directive()).hash(algorithm, content)
        self.directives[name] = directive
        return directive

    def remove(self, name: str) -> None:
        self.directives.pop(name, None)

    def get(self, name: str) -> Directive | None:
        return self.directives.get(name)

    def names(self) -> list[str]:
        """Directive names in output order: default-src first, then sorted."""
        names = sorted(n for n in self.directives if n != DEFAULT_SRC)
        if DEFAULT_SRC in self.directives:
            names.insert(0, DEFAULT_SRC)
        return names

    def __contains__(self, name: object) -> bool:
        return name in self.directives

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.directives)

    def to_map(self) -> dict[str, str]:
        """Rendered source list per directive, with nonce sources left out.

        For collaborators that can only emit static per-directive strings.
        """
        return {
            name: self.directives[name].without_nonce(self.nonce_placeholder).render(self.nonce_placeholder)
            for name in self.names()
        }

    # ── compilation ─────────────────────────────────────────────────────

    def _compose(self, additions: Mapping[str, Directive] | None = None) -> tuple[str, bool]:
        """Compose the header value and report whether it carries a nonce placeholder."""
        placeholder = self.nonce_placeholder
        requires_nonce = False
        parts: list[str] = []

        for name in self.names():
            directive = self.directives[name]
            requires_nonce = requires_nonce or directive.requires_nonce(placeholder)
            part = f"{name} {directive.render(placeholder)}"

            extra = additions.get(name) if additions else None
            if extra is not None and not extra.is_empty():
                part = f"{part} {extra.render(placeholder)}"
                requires_nonce = requires_nonce or extra.requires_nonce(placeholder)

            parts.append(part + ";")

        if self.upgrade_insecure_requests:
            parts.append(_UPGRADE_INSECURE_REQUESTS)
        if self.report_uri:
            parts.append(_REPORT_URI + self.report_uri)

        compiled = "".join(parts)
        if compiled.endswith(";"):
            compiled = compiled[:-1]
        return compiled, requires_nonce

    def build(self) -> str:
        """Compile the policy and cache the result in ``compiled``."""
        self.compiled, self.requires_nonce = self._compose()
        self._built = True
        logger.debug(
            "csp_policy_built",
            directives=len(self.directives),
            requires_nonce=self.requires_nonce,
        )
        return self.compiled

    @property
    def built(self) -> bool:
        return self._built

    def with_nonce(self) -> tuple[str, str]:
        """Return ``(header, token)`` with a freshly generated nonce.

        When no directive asks for a nonce the cached header is returned
        unchanged together with an empty token, and no randomness is drawn.
        """
        if not self._built:
            self.build()
        if not self.requires_nonce:
            return self.compiled, ""
        token = generate_nonce()
        return apply_nonce(self.compiled, token, self.nonce_placeholder), token

    def merge_build(self, additions: Mapping[str, Directive]) -> str:
        """Compile the policy with request-scoped ``additions`` appended.

        Only directives already present in the policy are extended; names
        found only in ``additions`` are ignored. The policy and its cached
        fields are left untouched. Any nonce placeholder in the result is
        the caller's to substitute (see ``apply_nonce``).
        """
        compiled, _ = self._compose(additions)
        return compiled

    def merge_requires_nonce(self, additions: Mapping[str, Directive]) -> bool:
        """Whether ``merge_build(additions)`` would contain a nonce placeholder."""
        _, requires_nonce = self._compose(additions)
        return requires_nonce

    def __repr__(self) -> str:
        return f"Policy(directives={self.names()!r}, requires_nonce={self.requires_nonce})"

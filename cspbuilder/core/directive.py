"""CSP directive model and source-list rendering."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from cspbuilder.core.hashing import hash_source

# CSP level 1
DEFAULT_SRC = "default-src"
CONNECT_SRC = "connect-src"
FONT_SRC = "font-src"
FRAME_SRC = "frame-src"
IMG_SRC = "img-src"
MEDIA_SRC = "media-src"
OBJECT_SRC = "object-src"
SANDBOX = "sandbox"
SCRIPT_SRC = "script-src"
STYLE_SRC = "style-src"

# CSP level 2
BASE_URI = "base-uri"
CHILD_SRC = "child-src"
FRAME_ANCESTORS = "frame-ancestors"
PLUGIN_TYPES = "plugin-types"
FORM_ACTION = "form-action"

# CSP level 3
TRUSTED_TYPES = "trusted-types"
REQUIRE_TRUSTED_TYPES_FOR = "require-trusted-types-for"
STYLE_SRC_ATTR = "style-src-attr"
STYLE_SRC_ELEM = "style-src-elem"
SCRIPT_SRC_ATTR = "script-src-attr"
SCRIPT_SRC_ELEM = "script-src-elem"
WORKER_SRC = "worker-src"
NAVIGATE_TO = "navigate-to"
PREFETCH_SRC = "prefetch-src"
MANIFEST_SRC = "manifest-src"
REPORT_TO = "report-to"

# Predefined names; other names are still accepted verbatim
WELL_KNOWN_DIRECTIVES = frozenset({
    DEFAULT_SRC, CONNECT_SRC, FONT_SRC, FRAME_SRC, IMG_SRC, MEDIA_SRC,
    OBJECT_SRC, SANDBOX, SCRIPT_SRC, STYLE_SRC, BASE_URI, CHILD_SRC,
    FRAME_ANCESTORS, PLUGIN_TYPES, FORM_ACTION, TRUSTED_TYPES,
    REQUIRE_TRUSTED_TYPES_FOR, STYLE_SRC_ATTR, STYLE_SRC_ELEM,
    SCRIPT_SRC_ATTR, SCRIPT_SRC_ELEM, WORKER_SRC, NAVIGATE_TO,
    PREFETCH_SRC, MANIFEST_SRC, REPORT_TO,
})

# Literal tokens with no dedicated flag
ALL = "*"
NONE = "'none'"
REPORT_SAMPLE = "'report-sample'"
TRUSTED_SCRIPT = "'script'"

DEFAULT_NONCE_PLACEHOLDER = "$NONCE"


class Keyword(Enum):
    """Quoted keyword sources. ``NONCE`` renders as the policy's nonce placeholder."""

    NONCE = "nonce"
    STRICT_DYNAMIC = "'strict-dynamic'"
    SELF = "'self'"
    UNSAFE_INLINE = "'unsafe-inline'"
    UNSAFE_EVAL = "'unsafe-eval'"
    UNSAFE_ALLOW_REDIRECTS = "'unsafe-allow-redirects'"
    UNSAFE_HASHES = "'unsafe-hashes'"


class Scheme(Enum):
    BLOB = "blob:"
    DATA = "data:"
    MEDIASTREAM = "mediastream:"
    FILESYSTEM = "filesystem:"


# Rendering order. Output must be byte-stable, so never iterate the sets directly.
_FLAG_ORDER: tuple[Keyword | Scheme, ...] = (
    Keyword.NONCE,
    Keyword.STRICT_DYNAMIC,
    Keyword.SELF,
    Keyword.UNSAFE_INLINE,
    Keyword.UNSAFE_EVAL,
    Keyword.UNSAFE_ALLOW_REDIRECTS,
    Keyword.UNSAFE_HASHES,
    Scheme.BLOB,
    Scheme.DATA,
    Scheme.MEDIASTREAM,
    Scheme.FILESYSTEM,
)


@dataclass(frozen=True)
class Directive:
    """Allowed sources for one CSP directive.

    Directives are immutable values: ``add`` and ``hash`` return a new
    directive and leave the receiver untouched, so the shared ``SELF_ONLY``
    and ``NONE_ONLY`` instances can be handed to any number of policies.
    """

    keywords: frozenset[Keyword] = field(default_factory=frozenset)
    schemes: frozenset[Scheme] = field(default_factory=frozenset)
    sources: tuple[str, ...] = ()
    all: bool = False
    none: bool = False

    @classmethod
    def of(cls, *sources: str | Keyword | Scheme) -> Directive:
        """Build a directive from a mix of flags and literal sources."""
        return cls().add(*sources)

    def add(self, *sources: str | Keyword | Scheme) -> Directive:
        """Return a copy with ``sources`` added.

        ``Keyword`` and ``Scheme`` members set the matching flag. Strings are
        appended verbatim in the order given; the caller is responsible for
        quoting them correctly.
        """
        keywords = set(self.keywords)
        schemes = set(self.schemes)
        literals = list(self.sources)
        for source in sources:
            if isinstance(source, Keyword):
                keywords.add(source)
            elif isinstance(source, Scheme):
                schemes.add(source)
            else:
                literals.append(source)
        return replace(
            self,
            keywords=frozenset(keywords),
            schemes=frozenset(schemes),
            sources=tuple(literals),
        )

    def hash(self, algorithm: int, content: bytes | str) -> Directive:
        """Return a copy with the hash-source literal of ``content`` appended."""
        return replace(self, sources=(*self.sources, hash_source(algorithm, content)))

    def without_nonce(self, nonce_placeholder: str = DEFAULT_NONCE_PLACEHOLDER) -> Directive:
        return replace(
            self,
            keywords=self.keywords - {Keyword.NONCE},
            sources=tuple(s for s in self.sources if s != nonce_placeholder),
        )

    def is_empty(self) -> bool:
        return not (self.all or self.keywords or self.schemes or self.sources)

    def requires_nonce(self, nonce_placeholder: str = DEFAULT_NONCE_PLACEHOLDER) -> bool:
        if self.all:
            return False
        return Keyword.NONCE in self.keywords or nonce_placeholder in self.sources

    def render(self, nonce_placeholder: str = DEFAULT_NONCE_PLACEHOLDER) -> str:
        """Render the source list, without the directive name.

        ``all`` wins over everything else and renders ``*``. A directive with
        no flags and no sources renders ``'none'``; the ``none`` flag is
        ignored once anything else is present.
        """
        if self.all:
            return ALL
        if not (self.keywords or self.schemes or self.sources):
            return NONE

        tokens: list[str] = []
        for flag in _FLAG_ORDER:
            if flag in self.keywords or flag in self.schemes:
                tokens.append(nonce_placeholder if flag is Keyword.NONCE else flag.value)
        tokens.extend(self.sources)
        return " ".join(tokens)

    def __str__(self) -> str:
        return self.render()


SELF_ONLY = Directive(keywords=frozenset({Keyword.SELF}))
NONE_ONLY = Directive(none=True)

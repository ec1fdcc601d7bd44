"""YAML policy documents validated with pydantic."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cspbuilder.core.directive import DEFAULT_NONCE_PLACEHOLDER, Directive, Keyword, Scheme
from cspbuilder.core.hashing import HashAlgorithm
from cspbuilder.core.policy import Policy
from cspbuilder.errors import PolicyConfigError

logger = structlog.get_logger()

_KEYWORDS = {
    "nonce": Keyword.NONCE,
    "strict-dynamic": Keyword.STRICT_DYNAMIC,
    "self": Keyword.SELF,
    "unsafe-inline": Keyword.UNSAFE_INLINE,
    "unsafe-eval": Keyword.UNSAFE_EVAL,
    "unsafe-allow-redirects": Keyword.UNSAFE_ALLOW_REDIRECTS,
    "unsafe-hashes": Keyword.UNSAFE_HASHES,
}

_SCHEMES = {
    "blob": Scheme.BLOB,
    "data": Scheme.DATA,
    "mediastream": Scheme.MEDIASTREAM,
    "filesystem": Scheme.FILESYSTEM,
}


def _normalize_flag(value: str) -> str:
    """'Unsafe_Inline', "'unsafe-inline'" and 'unsafe-inline' all name the same flag."""
    return value.strip().strip("'").rstrip(":").lower().replace("_", "-")


class HashConfig(BaseModel):
    """Inline content to allow by digest."""

    model_config = ConfigDict(extra="forbid")

    algorithm: int = 256
    content: str

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: int) -> int:
        if v not in {a.value for a in HashAlgorithm}:
            raise ValueError(f"Unsupported hash algorithm {v} (expected 256, 384 or 512)")
        return v


class DirectiveConfig(BaseModel):
    """One directive as written in the policy file."""

    model_config = ConfigDict(extra="forbid")

    keywords: list[str] = Field(default_factory=list)
    schemes: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    hashes: list[HashConfig] = Field(default_factory=list)
    all: bool = False
    none: bool = False

    @field_validator("keywords")
    @classmethod
    def validate_keywords(cls, v: list[str]) -> list[str]:
        normalized = [_normalize_flag(k) for k in v]
        unknown = [k for k in normalized if k not in _KEYWORDS]
        if unknown:
            raise ValueError(f"Unknown keyword source(s): {', '.join(unknown)}")
        return normalized

    @field_validator("schemes")
    @classmethod
    def validate_schemes(cls, v: list[str]) -> list[str]:
        normalized = [_normalize_flag(s) for s in v]
        unknown = [s for s in normalized if s not in _SCHEMES]
        if unknown:
            raise ValueError(f"Unknown scheme source(s): {', '.join(unknown)}")
        return normalized

    def to_directive(self) -> Directive:
        directive = Directive(
            keywords=frozenset(_KEYWORDS[k] for k in self.keywords),
            schemes=frozenset(_SCHEMES[s] for s in self.schemes),
            sources=tuple(self.sources),
            all=self.all,
            none=self.none,
        )
        for h in self.hashes:
            directive = directive.hash(h.algorithm, h.content)
        return directive


class PolicyConfig(BaseModel):
    """Top-level policy document."""

    model_config = ConfigDict(extra="forbid")

    starter: bool = False
    upgrade_insecure_requests: bool = False
    report_uri: str = ""
    directives: dict[str, DirectiveConfig] = Field(default_factory=dict)

    @field_validator("directives", mode="before")
    @classmethod
    def empty_directive_means_none(cls, v: Any) -> Any:
        # "frame-ancestors:" with no body renders 'none'
        if isinstance(v, dict):
            return {name: ({} if body is None else body) for name, body in v.items()}
        return v

    def to_policy(self, nonce_placeholder: str = DEFAULT_NONCE_PLACEHOLDER) -> Policy:
        """Create an unbuilt Policy from this document."""
        factory = Policy.starter if self.starter else Policy
        policy = factory(
            upgrade_insecure_requests=self.upgrade_insecure_requests,
            report_uri=self.report_uri,
            nonce_placeholder=nonce_placeholder,
        )
        for name, body in self.directives.items():
            policy.set(name.strip().lower(), body.to_directive())
        return policy


def load_policy_config(path: str | Path) -> PolicyConfig:
    """Read and validate a YAML policy document.

    Raises PolicyConfigError naming the file on any read, parse or schema error.
    """
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise PolicyConfigError(str(path), exc.strerror or str(exc)) from exc
    except yaml.YAMLError as exc:
        raise PolicyConfigError(str(path), f"YAML parse error: {exc}") from exc

    if not isinstance(raw, dict):
        raise PolicyConfigError(str(path), "top level must be a mapping")

    try:
        config = PolicyConfig.model_validate(raw)
    except ValidationError as exc:
        raise PolicyConfigError(str(path), str(exc)) from exc

    logger.info("csp_policy_loaded", path=str(path), directives=len(config.directives))
    return config

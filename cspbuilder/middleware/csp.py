"""Content-Security-Policy header injection middleware."""

from __future__ import annotations

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from cspbuilder.config.loader import get_settings
from cspbuilder.config.policy_store import get_policy
from cspbuilder.core.directive import Directive, Keyword, Scheme
from cspbuilder.core.nonce import apply_nonce, generate_nonce
from cspbuilder.core.policy import Policy, header_name
from cspbuilder.middleware.pipeline import Middleware, MiddlewarePipeline, RequestContext

logger = structlog.get_logger()

_CONTEXT_ATTR = "csp_context"


class ContentSecurityPolicy(Middleware):
    """Set the CSP header on every response.

    - Issues a fresh nonce per request when the policy asks for one and
      exposes it on the context for templates (``get_nonce``)
    - Merges request-scoped additions (``add_hash``, ``add_sources``) into
      the static policy when the response is written
    - Writes Content-Security-Policy-Report-Only in report-only mode

    Without an explicit ``policy`` the active one from the policy store is
    used; it is pinned on the context so a reload mid-request cannot split
    the nonce and the header across two policies.
    """

    def __init__(self, policy: Policy | None = None, report_only: bool | None = None) -> None:
        if policy is not None and not policy.built:
            policy.build()
        self._policy = policy
        self._report_only = report_only

    @property
    def report_only(self) -> bool:
        if self._report_only is None:
            return get_settings().report_only
        return self._report_only

    def _resolve_policy(self, context: RequestContext) -> Policy:
        policy = context.extra.get("csp_policy")
        if policy is None:
            policy = self._policy or get_policy()
            context.extra["csp_policy"] = policy
        return policy

    async def process_request(self, request: Request, context: RequestContext) -> Request | Response | None:
        policy = self._resolve_policy(context)
        if policy.requires_nonce:
            header, context.csp_nonce = policy.with_nonce()
            context.extra["csp_header"] = header
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        policy = self._resolve_policy(context)
        additions = context.csp_directives

        if additions:
            header = policy.merge_build(additions)
            if policy.merge_requires_nonce(additions):
                if not context.csp_nonce:
                    context.csp_nonce = generate_nonce()
                header = apply_nonce(header, context.csp_nonce, policy.nonce_placeholder)
        else:
            header = context.extra.get("csp_header") or policy.compiled

        if header:
            response.headers[header_name(self.report_only)] = header
        logger.debug(
            "csp_header_set",
            request_id=context.request_id,
            merged=bool(additions),
            nonce_issued=bool(context.csp_nonce),
        )
        return response


class CSPMiddleware(BaseHTTPMiddleware):
    """Starlette adapter running a middleware pipeline around each request.

    The RequestContext is attached to ``request.state`` so route handlers can
    read the nonce and register per-request hashes. Headers are written once
    the endpoint returns; sources registered while a streaming body is being
    produced arrive too late to be included.
    """

    def __init__(
        self,
        app: ASGIApp,
        pipeline: MiddlewarePipeline | None = None,
        policy: Policy | None = None,
        report_only: bool | None = None,
    ) -> None:
        super().__init__(app)
        if pipeline is None:
            pipeline = MiddlewarePipeline()
            pipeline.add(ContentSecurityPolicy(policy=policy, report_only=report_only))
        self.pipeline = pipeline

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = RequestContext()
        setattr(request.state, _CONTEXT_ATTR, context)

        short_circuit = await self.pipeline.process_request(request, context)
        if short_circuit is not None:
            response = short_circuit
        else:
            response = await call_next(request)
        return await self.pipeline.process_response(response, context)


# ── request helpers ─────────────────────────────────────────────────────


def get_context(request: Request) -> RequestContext:
    """Return the CSP context of ``request``.

    Raises RuntimeError when CSPMiddleware is not installed.
    """
    context = getattr(request.state, _CONTEXT_ATTR, None)
    if context is None:
        raise RuntimeError("CSPMiddleware is not installed for this application")
    return context


def get_nonce(request: Request) -> str:
    """Nonce issued for this request, or an empty string if none was generated."""
    context = getattr(request.state, _CONTEXT_ATTR, None)
    return context.csp_nonce if context is not None else ""


def get_directive(request: Request, name: str) -> Directive:
    """Request-scoped additions registered so far for ``name``."""
    return get_context(request).csp_directives.get(name, Directive())


def add_sources(request: Request, name: str, *sources: str | Keyword | Scheme) -> Directive:
    """Allow extra sources for ``name`` on this response only."""
    context = get_context(request)
    directive = context.csp_directives.get(name, Directive()).add(*sources)
    context.csp_directives[name] = directive
    return directive


def add_hash(request: Request, name: str, algorithm: int, content: bytes | str) -> Directive:
    """Allow inline ``content`` under ``name`` on this response only, by digest."""
    context = get_context(request)
    directive = context.csp_directives.get(name, Directive()).hash(algorithm, content)
    context.csp_directives[name] = directive
    return directive

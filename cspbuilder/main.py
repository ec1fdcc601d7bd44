"""FastAPI application factory with the CSP middleware installed."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from cspbuilder.api.report_routes import build_router
from cspbuilder.config.loader import CSPSettings, load_settings, register_reload_handler
from cspbuilder.config.policy_store import get_policy, reload_policy, set_policy
from cspbuilder.core.policy import Policy
from cspbuilder.logging_config import setup_logging
from cspbuilder.middleware.csp import CSPMiddleware

logger = structlog.get_logger()


def create_app(settings: CSPSettings | None = None, policy: Policy | None = None) -> FastAPI:
    """Create an app that sends the configured policy on every response.

    The policy is built exactly once, in the lifespan, before the first
    request is served. Passing ``policy`` skips the policy file and the
    SIGHUP reload handler.
    """
    explicit_settings = settings
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.log_level, json_format=settings.log_json)
        if policy is not None:
            # A policy passed in code has no file to reload from
            active = set_policy(policy)
        else:
            active = reload_policy(settings)
            register_reload_handler(explicit_settings)
        logger.info("csp_service_started", header=active.compiled, report_only=settings.report_only)
        yield
        logger.info("csp_service_stopped")

    app = FastAPI(title="cspbuilder", lifespan=lifespan)
    # Reads the active policy per request, so SIGHUP reloads take effect
    app.add_middleware(CSPMiddleware, report_only=settings.report_only)

    if settings.report_endpoint_enabled:
        app.include_router(build_router(settings.report_endpoint_path, settings.report_max_bytes))

    @app.get("/_csp", include_in_schema=False)
    async def current_policy():
        """Compiled policy template and per-directive sources."""
        active = get_policy()
        return {
            "header": active.compiled,
            "requires_nonce": active.requires_nonce,
            "directives": active.to_map(),
        }

    return app

"""Endpoint receiving CSP violation reports from browsers."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger()

# Max characters kept per logged field
_MAX_FIELD_LENGTH = 512
_DEFAULT_MAX_BYTES = 64 * 1024

# Reporting API (report-to) body keys -> legacy report-uri keys
_REPORTING_API_KEYS = {
    "documentURL": "document-uri",
    "referrer": "referrer",
    "blockedURL": "blocked-uri",
    "effectiveDirective": "effective-directive",
    "originalPolicy": "original-policy",
    "disposition": "disposition",
    "sourceFile": "source-file",
    "lineNumber": "line-number",
    "columnNumber": "column-number",
    "sample": "script-sample",
    "statusCode": "status-code",
}


class CSPViolation(BaseModel):
    """One violation, in the legacy ``report-uri`` shape."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    document_uri: str = Field("", alias="document-uri")
    referrer: str = ""
    violated_directive: str = Field("", alias="violated-directive")
    effective_directive: str = Field("", alias="effective-directive")
    original_policy: str = Field("", alias="original-policy")
    blocked_uri: str = Field("", alias="blocked-uri")
    disposition: str = ""
    source_file: str = Field("", alias="source-file")
    line_number: int = Field(0, alias="line-number")
    column_number: int = Field(0, alias="column-number")
    script_sample: str = Field("", alias="script-sample")
    status_code: int = Field(0, alias="status-code")


def _strip_control_chars(s: str) -> str:
    """Strip control characters from a string to prevent ANSI/log injection."""
    return re.sub(r"[\x00-\x1f\x7f-\x9f]", "", s)


def _drop_nulls(report: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in report.items() if v is not None}


def _extract_violations(payload: Any) -> list[dict[str, Any]]:
    """Accept both ``{"csp-report": {...}}`` and Reporting API report lists."""
    if isinstance(payload, dict) and isinstance(payload.get("csp-report"), dict):
        return [_drop_nulls(payload["csp-report"])]
    if isinstance(payload, list):
        violations = []
        for report in payload:
            if not isinstance(report, dict) or report.get("type") != "csp-violation":
                continue
            body = report.get("body")
            if isinstance(body, dict):
                violations.append(_drop_nulls({_REPORTING_API_KEYS.get(k, k): v for k, v in body.items()}))
        return violations
    raise ValueError("expected a csp-report object or a list of reports")


def parse_reports(raw: bytes) -> list[CSPViolation]:
    """Parse a report request body.

    Raises ValueError on malformed JSON or an unrecognised shape.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    try:
        return [CSPViolation.model_validate(v) for v in _extract_violations(payload)]
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


async def receive_report(request: Request, max_bytes: int = _DEFAULT_MAX_BYTES) -> Response:
    """Log CSP violations sent by the browser."""
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            if int(content_length) > max_bytes:
                return Response(status_code=413)
        except (ValueError, OverflowError):
            return Response(status_code=400)
    body = await request.body()
    if len(body) > max_bytes:
        return Response(status_code=413)

    try:
        violations = parse_reports(body)
    except ValueError as exc:
        logger.warning("csp_report_rejected", error=_strip_control_chars(str(exc))[:_MAX_FIELD_LENGTH])
        return Response(status_code=400)

    for v in violations:
        logger.warning(
            "csp_violation_reported",
            document_uri=_strip_control_chars(v.document_uri)[:_MAX_FIELD_LENGTH],
            blocked_uri=_strip_control_chars(v.blocked_uri)[:_MAX_FIELD_LENGTH],
            directive=_strip_control_chars(v.effective_directive or v.violated_directive)[:_MAX_FIELD_LENGTH],
            disposition=_strip_control_chars(v.disposition)[:_MAX_FIELD_LENGTH],
            source_file=_strip_control_chars(v.source_file)[:_MAX_FIELD_LENGTH],
            line_number=v.line_number,
        )
    return Response(status_code=204)


def build_router(path: str = "/_csp-report", max_bytes: int = _DEFAULT_MAX_BYTES) -> APIRouter:
    """Router exposing the report endpoint at ``path`` (the policy's report-uri)."""
    router = APIRouter(tags=["csp"])

    async def endpoint(request: Request) -> Response:
        return await receive_report(request, max_bytes=max_bytes)

    router.add_api_route(path, endpoint, methods=["POST"], status_code=204)
    return router

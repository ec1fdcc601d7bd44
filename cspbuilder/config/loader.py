"""Env var config loading with pydantic-settings."""

from __future__ import annotations

import signal
from pathlib import Path

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

DEFAULT_POLICY_PATH = Path(__file__).parent / "default_policy.yaml"


class CSPSettings(BaseSettings):
    """Service configuration, overridden by ``CSP_*`` env vars."""

    model_config = SettingsConfigDict(
        env_prefix="CSP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    policy_file: str = str(DEFAULT_POLICY_PATH)

    # Send Content-Security-Policy-Report-Only instead of enforcing
    report_only: bool = False

    # Token left in the compiled template wherever a nonce goes
    nonce_placeholder: str = "$NONCE"

    # Override the policy file's global flags when set
    report_uri: str | None = None
    upgrade_insecure_requests: bool | None = None

    # Mount POST /_csp-report
    report_endpoint_enabled: bool = True
    report_endpoint_path: str = "/_csp-report"
    report_max_bytes: int = 64 * 1024

    log_level: str = "info"
    log_json: bool = True


_settings: CSPSettings | None = None


def get_settings() -> CSPSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings() -> CSPSettings:
    """Load settings from env vars (env vars override model defaults)."""
    global _settings
    _settings = CSPSettings()
    logger.info("config_loaded", policy_file=_settings.policy_file, report_only=_settings.report_only)
    return _settings


def register_reload_handler(settings: CSPSettings | None = None) -> None:
    """Register SIGHUP handler that swaps in a policy rebuilt from the policy file.

    With ``settings`` the rebuild uses those settings, otherwise env vars are
    re-read.
    """
    import threading

    if threading.current_thread() is not threading.main_thread():
        logger.debug("skipping_sighup_handler", reason="not main thread")
        return

    def _reload(signum, frame):
        from cspbuilder.config.policy_store import reload_policy

        logger.info("config_reload_triggered")
        try:
            reload_policy(settings or load_settings())
        except Exception:
            # Keep serving the previous policy
            logger.exception("config_reload_failed")

    try:
        signal.signal(signal.SIGHUP, _reload)
    except (ValueError, AttributeError):
        logger.debug("skipping_sighup_handler", reason="signal not supported")

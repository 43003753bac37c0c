from __future__ import annotations

"""Startup configuration for certinspector.

Settings are resolved once per process and passed explicitly to the
orchestrator and HTTP server. Layering is CLI flags > environment (including a
local `.env` file) > built-in defaults.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from .version import user_agent

logger = logging.getLogger("certinspector")

ENV_PREFIX = "CERTINSPECTOR_"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Runtime knobs for one inspector process."""

    host: str = "127.0.0.1"
    port: int = 3000
    tls_timeout: float = 5.0
    hsts_timeout: float = 5.0
    # Certificates are retrieved regardless of trust so their state can be reported.
    verify_trust: bool = False
    # HSTS headers received over an untrusted connection must be ignored.
    hsts_verify_tls: bool = True
    navigation_timeout: float = 30.0
    settle_time: float = 2.0
    workers: int = 1
    user_agent: str = user_agent()
    log_level: str = "INFO"

    def merged(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values) if values else self


def _parse_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected a number)", key, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r", key, raw)
        return default
    return value


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected an integer)", key, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r", key, raw)
        return default
    return value


def _parse_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    text = raw.strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    logger.warning("Ignoring invalid %s=%r (expected true/false)", key, raw)
    return default


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> Settings:
    """Build settings from the environment, then apply explicit overrides.

    When `environ` is omitted the process environment is used after loading a
    `.env` file from the working directory, if one exists.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    defaults = Settings()
    port_key = f"{ENV_PREFIX}PORT" if environ.get(f"{ENV_PREFIX}PORT") else "PORT"
    settings = Settings(
        host=(environ.get(f"{ENV_PREFIX}HOST") or defaults.host).strip(),
        port=_parse_int(environ, port_key, defaults.port),
        tls_timeout=_parse_float(environ, f"{ENV_PREFIX}TLS_TIMEOUT", defaults.tls_timeout),
        hsts_timeout=_parse_float(environ, f"{ENV_PREFIX}HSTS_TIMEOUT", defaults.hsts_timeout),
        verify_trust=_parse_bool(environ, f"{ENV_PREFIX}VERIFY_TRUST", defaults.verify_trust),
        navigation_timeout=_parse_float(environ, f"{ENV_PREFIX}NAV_TIMEOUT", defaults.navigation_timeout),
        settle_time=_parse_float(environ, f"{ENV_PREFIX}SETTLE_TIME", defaults.settle_time),
        workers=_parse_int(environ, f"{ENV_PREFIX}WORKERS", defaults.workers),
        user_agent=(environ.get(f"{ENV_PREFIX}USER_AGENT") or defaults.user_agent).strip(),
        log_level=(environ.get(f"{ENV_PREFIX}LOG_LEVEL") or defaults.log_level).strip().upper(),
    )
    return settings.merged(**overrides)

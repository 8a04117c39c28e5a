"""
forms_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain runtime settings through
    ``get_active_settings()``: shipped ``defaults.yaml``, an optional
    override file, then environment overrides, in that order.

Architecture position:
    Configuration layer.  Sits above ``forms_kernel`` and below
    ``forms_services``.  The kernel MUST NEVER import from
    ``forms_config``.

Invariants enforced:
    - Single entrypoint: services receive settings, they never read files
      or environment variables themselves.
    - Precedence: environment > override file > defaults.

Failure modes:
    - ``FileNotFoundError`` -- override file does not exist.
    - ``ValueError`` -- malformed values, unknown sections.

Audit relevance:
    Every call emits a ``FORMS_CONFIG_TRACE`` log entry naming the source
    files, which environment overrides applied and the effective
    (credential-free) settings.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from sqlalchemy.engine import make_url

from forms_config.loader import (
    load_form_definitions,
    load_yaml_file,
    merge,
    parse_settings,
)
from forms_config.schema import (
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    WorkflowSettings,
)

_logger = logging.getLogger("forms_kernel.config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_FILE = "FORMS_CONFIG"
ENV_DATABASE_URL = "DATABASE_URL"
ENV_LOG_LEVEL = "FORMS_LOG_LEVEL"
ENV_MAX_CONFLICT_RETRIES = "FORMS_MAX_CONFLICT_RETRIES"


def get_active_settings(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> KernelSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_file: Override YAML file.  Defaults to ``$FORMS_CONFIG``
            when set.
        environ: Environment mapping (defaults to ``os.environ``).

    Raises:
        FileNotFoundError: If the override file does not exist.
        ValueError: If a value is malformed.
    """
    env = os.environ if environ is None else environ

    data = load_yaml_file(DEFAULTS_FILE)
    sources = [str(DEFAULTS_FILE)]

    override_path = config_file or (Path(env[ENV_CONFIG_FILE]) if env.get(ENV_CONFIG_FILE) else None)
    if override_path is not None:
        data = merge(data, load_yaml_file(override_path))
        sources.append(str(override_path))

    applied: list[str] = []
    env_overrides: dict = {}
    if env.get(ENV_DATABASE_URL):
        env_overrides.setdefault("database", {})["url"] = env[ENV_DATABASE_URL]
        applied.append(ENV_DATABASE_URL)
    if env.get(ENV_LOG_LEVEL):
        env_overrides.setdefault("logging", {})["level"] = env[ENV_LOG_LEVEL]
        applied.append(ENV_LOG_LEVEL)
    if env.get(ENV_MAX_CONFLICT_RETRIES):
        raw = env[ENV_MAX_CONFLICT_RETRIES]
        try:
            retries = int(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_MAX_CONFLICT_RETRIES} must be an integer, got {raw!r}") from exc
        env_overrides.setdefault("workflow", {})["max_conflict_retries"] = retries
        applied.append(ENV_MAX_CONFLICT_RETRIES)

    settings = parse_settings(merge(data, env_overrides), source_files=tuple(sources))

    _logger.info(
        "FORMS_CONFIG_TRACE",
        extra={
            "trace_type": "FORMS_CONFIG_TRACE",
            "source_files": list(settings.source_files),
            "env_overrides": applied,
            "database_url": make_url(settings.database.url).render_as_string(hide_password=True),
            "max_conflict_retries": settings.workflow.max_conflict_retries,
            "log_level": settings.logging.level,
        },
    )
    return settings


__all__ = [
    "DatabaseSettings",
    "KernelSettings",
    "LoggingSettings",
    "WorkflowSettings",
    "get_active_settings",
    "load_form_definitions",
]

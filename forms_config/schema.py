"""
Runtime settings schema.

The YAML settings file (``defaults.yaml`` plus an optional override file)
is parsed by the loader into these frozen dataclasses.  Environment
overrides are applied on top before the settings reach any caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class WorkflowSettings:
    """Retry budget for operations that lose a concurrent-write race."""

    max_conflict_retries: int = 3


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelSettings:
    database: DatabaseSettings
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source_files: tuple[str, ...] = ()

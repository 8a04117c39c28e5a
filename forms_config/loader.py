"""
Configuration Loader (``forms_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into typed values: runtime settings
(``forms_config.schema``) and form-definition fixtures
(``forms_kernel.domain.forms.FormDefinition``).  Runtime callers go
through ``forms_config.get_active_settings()``; form fixtures are read by
``scripts/seed_forms.py`` and tests.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel's
domain types only.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* Unknown top-level sections in a settings file are rejected.
* Override files are deep-merged over the defaults, key by key.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value types / unknown sections  -> ``ValueError``.
* Malformed form definitions  -> ``InvalidFormDefinitionError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from forms_config.schema import (
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    WorkflowSettings,
)
from forms_kernel.domain.forms import FormDefinition, question_from_json
from forms_kernel.exceptions import InvalidFormDefinitionError

_SETTINGS_SECTIONS = frozenset({"database", "workflow", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` onto ``base`` (new dict, inputs untouched)."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{section}.{key} must be an integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=str(data["url"]),
        echo=bool(data.get("echo", False)),
        pool_size=_int("database", "pool_size", data.get("pool_size", 20)),
        max_overflow=_int("database", "max_overflow", data.get("max_overflow", 10)),
        pool_timeout=_int("database", "pool_timeout", data.get("pool_timeout", 30)),
        pool_recycle=_int("database", "pool_recycle", data.get("pool_recycle", 1800)),
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    retries = _int("workflow", "max_conflict_retries", data.get("max_conflict_retries", 3))
    if retries < 0:
        raise ValueError(f"workflow.max_conflict_retries must be >= 0, got {retries}")
    return WorkflowSettings(max_conflict_retries=retries)


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def parse_settings(data: dict[str, Any], source_files: tuple[str, ...] = ()) -> KernelSettings:
    unknown = set(data) - _SETTINGS_SECTIONS
    if unknown:
        raise ValueError(f"Unknown settings sections: {', '.join(sorted(unknown))}")
    return KernelSettings(
        database=parse_database(data["database"]),
        workflow=parse_workflow(data.get("workflow") or {}),
        logging=parse_logging(data.get("logging") or {}),
        source_files=source_files,
    )


def parse_form_definition(data: dict[str, Any]) -> FormDefinition:
    """Parse one form from a fixture mapping.

    Keys mirror the wire format: ``questions`` use ``id`` / ``type`` /
    ``allowMultiple`` etc.; role lists are ``accessRoleIds``,
    ``reviewerRoleIds`` and ``finalApproverRoleIds``.
    """
    raw_id = data.get("id")
    form_ref = str(raw_id) if raw_id is not None else data.get("title")
    try:
        form_id = UUID(str(raw_id))
    except ValueError as exc:
        raise InvalidFormDefinitionError(form_ref, f"'id' is not a UUID: {raw_id!r}") from exc
    if "title" not in data:
        raise InvalidFormDefinitionError(form_ref, "missing 'title'")

    return FormDefinition(
        form_id=form_id,
        title=str(data["title"]),
        description=data.get("description"),
        questions=tuple(
            question_from_json(q, form_ref) for q in data.get("questions") or ()
        ),
        access_role_ids=frozenset(str(r) for r in data.get("accessRoleIds") or ()),
        reviewer_role_ids=frozenset(str(r) for r in data.get("reviewerRoleIds") or ()),
        final_approver_role_ids=frozenset(
            str(r) for r in data.get("finalApproverRoleIds") or ()
        ),
        required_reviewers=data.get("requiredReviewers", 1),
        requires_final_approval=bool(data.get("requiresFinalApproval", True)),
    )


def load_form_definitions(path: Path) -> list[FormDefinition]:
    """Load every form under the ``forms:`` key of a fixture file."""
    data = load_yaml_file(path)
    return [parse_form_definition(item) for item in data.get("forms") or ()]

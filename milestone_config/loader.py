"""
Configuration Loader (``milestone_config.loader``).

Responsibility
--------------
Loads a configuration set YAML file and parses it into the frozen
``milestone_config.schema`` dataclasses.  Runtime callers go through
``milestone_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* All problems in a file are collected and reported together in one
  ``ConfigValidationError``; nothing is silently defaulted when a value
  is present but wrong.
* ``compute_checksum`` is deterministic for the same source data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or values  -> ``ConfigValidationError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from milestone_config.schema import (
    ConfigValidationError,
    DatabaseSettings,
    LoggingSettings,
    MilestoneConfig,
    RoleAliases,
    WorkflowSettings,
)
from milestone_kernel.domain.identity import Role

_ROLE_VALUES = frozenset(role.value for role in Role)

_KNOWN_SECTIONS = frozenset({"config_id", "version", "database", "workflow", "roles", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, errors: list[str]) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        errors.append(f"{name}: expected a mapping, got {type(value).__name__}")
        return {}
    return value


def _typed(
    section: dict[str, Any],
    prefix: str,
    key: str,
    expected: type,
    default: Any,
    errors: list[str],
) -> Any:
    if key not in section:
        return default
    value = section[key]
    # bool is an int subclass; reject it where an int is expected.
    if expected is int and isinstance(value, bool):
        errors.append(f"{prefix}.{key}: expected int, got bool")
        return default
    if not isinstance(value, expected):
        errors.append(
            f"{prefix}.{key}: expected {expected.__name__}, got {type(value).__name__}"
        )
        return default
    return value


def parse_database(section: dict[str, Any], errors: list[str]) -> DatabaseSettings:
    d = DatabaseSettings()
    settings = DatabaseSettings(
        url=_typed(section, "database", "url", str, d.url, errors),
        echo=_typed(section, "database", "echo", bool, d.echo, errors),
        pool_size=_typed(section, "database", "pool_size", int, d.pool_size, errors),
        max_overflow=_typed(section, "database", "max_overflow", int, d.max_overflow, errors),
        pool_timeout=_typed(section, "database", "pool_timeout", int, d.pool_timeout, errors),
    )
    if not settings.url.strip():
        errors.append("database.url: must not be empty")
    if settings.pool_size < 1:
        errors.append("database.pool_size: must be at least 1")
    return settings


def parse_workflow(section: dict[str, Any], errors: list[str]) -> WorkflowSettings:
    d = WorkflowSettings()
    settings = WorkflowSettings(
        admin_may_sign=_typed(
            section, "workflow", "admin_may_sign", bool, d.admin_may_sign, errors
        ),
        max_write_attempts=_typed(
            section, "workflow", "max_write_attempts", int, d.max_write_attempts, errors
        ),
        certificate_prefix=_typed(
            section, "workflow", "certificate_prefix", str, d.certificate_prefix, errors
        ),
    )
    if settings.max_write_attempts < 1:
        errors.append("workflow.max_write_attempts: must be at least 1")
    if not settings.certificate_prefix.strip():
        errors.append("workflow.certificate_prefix: must not be empty")
    return settings


def parse_roles(section: dict[str, Any], errors: list[str]) -> RoleAliases:
    raw = section.get("aliases") or {}
    if not isinstance(raw, dict):
        errors.append("roles.aliases: expected a mapping")
        return RoleAliases()

    aliases: dict[str, str] = {}
    for alias, target in raw.items():
        if not isinstance(alias, str) or not isinstance(target, str):
            errors.append(f"roles.aliases.{alias}: alias and role must be strings")
            continue
        if target.strip().lower() not in _ROLE_VALUES:
            errors.append(f"roles.aliases.{alias}: unknown role {target!r}")
            continue
        aliases[alias] = target.strip().lower()
    return RoleAliases(aliases=MappingProxyType(aliases))


def parse_logging(section: dict[str, Any], errors: list[str]) -> LoggingSettings:
    level = _typed(section, "logging", "level", str, LoggingSettings().level, errors)
    if not isinstance(logging.getLevelName(level.upper()), int):
        errors.append(f"logging.level: unknown level {level!r}")
    return LoggingSettings(level=level.upper())


def parse_config(data: dict[str, Any], default_id: str = "default") -> MilestoneConfig:
    """
    Parse a configuration set dict into a ``MilestoneConfig``.

    Raises:
        ConfigValidationError: listing every problem found.
    """
    errors: list[str] = []

    config_id = data.get("config_id", default_id)
    if not isinstance(config_id, str) or not config_id:
        errors.append("config_id: must be a non-empty string")
        config_id = default_id

    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        errors.append("version: must be a positive integer")
        version = 1

    for key in sorted(set(data) - _KNOWN_SECTIONS):
        errors.append(f"{key}: unknown section")

    config = MilestoneConfig(
        config_id=config_id,
        version=version,
        checksum=compute_checksum(data),
        database=parse_database(_section(data, "database", errors), errors),
        workflow=parse_workflow(_section(data, "workflow", errors), errors),
        roles=parse_roles(_section(data, "roles", errors), errors),
        logging=parse_logging(_section(data, "logging", errors), errors),
    )

    if errors:
        raise ConfigValidationError(config_id, errors)
    return config


def load_config_set(path: Path) -> MilestoneConfig:
    """Load and parse one configuration set file."""
    return parse_config(load_yaml_file(path), default_id=path.stem)

"""
Milestone configuration schema.

Frozen dataclasses that a configuration set YAML file is parsed into by the
loader.  ``MilestoneConfig`` is the runtime artifact handed out by
``get_active_config()``; nothing downstream reads YAML or environment
variables directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


class ConfigValidationError(ValueError):
    """A configuration set failed schema validation."""

    def __init__(self, config_id: str, errors: list[str]):
        self.config_id = config_id
        self.errors = tuple(errors)
        super().__init__(
            f"Configuration {config_id!r} failed validation:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30


@dataclass(frozen=True)
class WorkflowSettings:
    """Knobs of the sign-off workflow."""

    admin_may_sign: bool = False
    max_write_attempts: int = 3
    certificate_prefix: str = "CERT"


@dataclass(frozen=True)
class RoleAliases:
    """External role strings mapped onto canonical role values."""

    aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MilestoneConfig:
    """
    A validated configuration set.

    ``checksum`` is the SHA-256 of the canonical source data, so two
    processes running the same set can be matched in the logs.
    """

    config_id: str
    version: int
    checksum: str
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    roles: RoleAliases = field(default_factory=RoleAliases)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

"""
milestone_config -- single public entrypoint for sign-off configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``milestone_kernel``.  The kernel MUST
    NEVER import from ``milestone_config``; ``bridges`` turns a
    ``MilestoneConfig`` into kernel objects.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ConfigValidationError`` (a ``ValueError``) -- schema failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``MILESTONE_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying each workflow run to the configuration that governed it.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from milestone_config.loader import load_config_set
from milestone_config.schema import ConfigValidationError, MilestoneConfig

_logger = logging.getLogger("milestone_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "MILESTONE_DATABASE_URL"


def get_active_config(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> MilestoneConfig:
    """The ONLY public configuration entrypoint.

    Loads ``<config_dir>/<set_name>.yaml``, validates it and applies the
    ``MILESTONE_DATABASE_URL`` environment override.

    Raises:
        FileNotFoundError: If the configuration set does not exist.
        ConfigValidationError: If validation fails.
    """
    sets_dir = Path(config_dir) if config_dir else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{set_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_config_set(path)

    url_override = os.environ.get(DATABASE_URL_ENV)
    if url_override:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=url_override),
        )

    _logger.info(
        "MILESTONE_CONFIG_TRACE",
        extra={
            "trace_type": "MILESTONE_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "database_url_overridden": bool(url_override),
            "admin_may_sign": config.workflow.admin_may_sign,
            "role_alias_count": len(config.roles.aliases),
        },
    )
    return config


__all__ = [
    "ConfigValidationError",
    "MilestoneConfig",
    "get_active_config",
]

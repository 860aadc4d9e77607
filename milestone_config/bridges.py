"""
Config -> Kernel Bridges.

Functions that turn a ``MilestoneConfig`` into kernel objects.  They live
here because the kernel must NEVER import milestone_config.

Usage:
    from milestone_config import get_active_config
    from milestone_config.bridges import build_milestone_service, init_engine_from_config

    config = get_active_config()
    init_engine_from_config(config)   # also registers immutability listeners
    create_tables()
    service = build_milestone_service(session, config)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from milestone_config.schema import MilestoneConfig
from milestone_kernel.db.engine import init_engine_from_url
from milestone_kernel.db.immutability import register_immutability_listeners
from milestone_kernel.domain.clock import Clock
from milestone_kernel.domain.identity import RoleResolver
from milestone_kernel.logging_config import configure_logging
from milestone_kernel.services.milestone_service import MilestoneService


def build_role_resolver(config: MilestoneConfig) -> RoleResolver:
    """RoleResolver that also accepts the configured role aliases."""
    return RoleResolver(aliases=dict(config.roles.aliases))


def build_milestone_service(
    session: Session,
    config: MilestoneConfig,
    clock: Clock | None = None,
) -> MilestoneService:
    """MilestoneService with the configured workflow settings."""
    return MilestoneService(
        session,
        clock=clock,
        admin_may_sign=config.workflow.admin_may_sign,
        max_write_attempts=config.workflow.max_write_attempts,
        certificate_prefix=config.workflow.certificate_prefix,
    )


def init_engine_from_config(config: MilestoneConfig) -> Engine:
    """
    Initialize logging, the module-level engine and the immutability
    listeners from ``config``.
    """
    configure_logging(level=config.logging.level)
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )
    register_immutability_listeners()
    return engine

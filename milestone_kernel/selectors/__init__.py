"""Selectors for the milestone kernel (read side)."""

from milestone_kernel.selectors.deliverable_selector import (
    DeliverableReader,
    DeliverableSelector,
)
from milestone_kernel.selectors.milestone_selector import MilestoneSelector

__all__ = [
    "DeliverableReader",
    "DeliverableSelector",
    "MilestoneSelector",
]

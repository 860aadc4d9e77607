"""
Tests for the Status Calculator (``milestone_kernel.domain.status``).

Invariants tested:
- Zero deliverables is never COMPLETED.
- "All delivered" wins over "all not started".
- Progress is the round-half-up mean, missing progress counting as 0.
- Status and progress come from one snapshot.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from milestone_kernel.domain.status import (
    BaselineStatus,
    DeliverableSnapshot,
    DeliverableStatus,
    MilestoneStatus,
    VarianceDirection,
    calculate_variance,
    derive_baseline_status,
    derive_milestone_progress,
    derive_milestone_status,
    derive_rollup,
    is_baseline_breached,
    latest_due_date,
)


def d(status=None, progress=None, due=None) -> DeliverableSnapshot:
    return DeliverableSnapshot(
        deliverable_id=uuid4(),
        name="d",
        status=status,
        progress=progress,
        due_date=due,
    )


# =========================================================================
# derive_milestone_status
# =========================================================================


class TestDeriveMilestoneStatus:

    def test_empty_is_not_started(self):
        assert derive_milestone_status([]) is MilestoneStatus.NOT_STARTED

    @pytest.mark.parametrize("count", [1, 2, 5])
    def test_all_delivered_is_completed(self, count):
        deliverables = [d(DeliverableStatus.DELIVERED, 100) for _ in range(count)]
        assert derive_milestone_status(deliverables) is MilestoneStatus.COMPLETED

    def test_all_not_started_or_unset_is_not_started(self):
        deliverables = [d(DeliverableStatus.NOT_STARTED), d(None)]
        assert derive_milestone_status(deliverables) is MilestoneStatus.NOT_STARTED

    def test_mixed_is_in_progress(self):
        deliverables = [d(DeliverableStatus.DELIVERED, 100), d(DeliverableStatus.NOT_STARTED)]
        assert derive_milestone_status(deliverables) is MilestoneStatus.IN_PROGRESS

    @pytest.mark.parametrize(
        "status",
        [
            DeliverableStatus.IN_PROGRESS,
            DeliverableStatus.SUBMITTED_FOR_REVIEW,
            DeliverableStatus.RETURNED_FOR_MORE_WORK,
            DeliverableStatus.REVIEW_COMPLETE,
        ],
    )
    def test_any_intermediate_status_is_in_progress(self, status):
        assert derive_milestone_status([d(status)]) is MilestoneStatus.IN_PROGRESS

    def test_review_complete_is_not_delivered(self):
        deliverables = [d(DeliverableStatus.REVIEW_COMPLETE, 100)]
        assert derive_milestone_status(deliverables) is not MilestoneStatus.COMPLETED


# =========================================================================
# derive_milestone_progress
# =========================================================================


class TestDeriveMilestoneProgress:

    def test_empty_is_zero(self):
        assert derive_milestone_progress([]) == 0

    def test_mean_rounds_half_up(self):
        assert derive_milestone_progress([d(progress=100), d(progress=50), d(progress=50)]) == 67

    def test_exact_half_rounds_up(self):
        assert derive_milestone_progress([d(progress=0), d(progress=1)]) == 1

    def test_missing_progress_counts_as_zero(self):
        assert derive_milestone_progress([d(progress=100), d(progress=None)]) == 50

    def test_progress_outside_range_rejected(self):
        with pytest.raises(ValueError):
            d(progress=101)


class TestDeriveRollup:

    def test_status_and_progress_from_same_snapshot(self):
        rollup = derive_rollup(
            iter([d(DeliverableStatus.DELIVERED, 100), d(DeliverableStatus.DELIVERED, 100)])
        )
        assert rollup.status is MilestoneStatus.COMPLETED
        assert rollup.progress == 100
        assert rollup.deliverable_count == 2

    def test_deterministic(self):
        snapshot = (d(DeliverableStatus.IN_PROGRESS, 30), d(DeliverableStatus.DELIVERED, 100))
        assert derive_rollup(snapshot) == derive_rollup(snapshot)


# =========================================================================
# Baseline status, variance, breach
# =========================================================================


class TestDeriveBaselineStatus:

    @pytest.mark.parametrize(
        "locked,supplier,customer,expected",
        [
            (False, False, False, BaselineStatus.NOT_COMMITTED),
            (False, True, False, BaselineStatus.AWAITING_CUSTOMER),
            (False, False, True, BaselineStatus.AWAITING_SUPPLIER),
            (False, True, True, BaselineStatus.LOCKED),
            (True, True, True, BaselineStatus.LOCKED),
        ],
    )
    def test_mapping(self, locked, supplier, customer, expected):
        assert derive_baseline_status(locked, supplier, customer) is expected


class TestCalculateVariance:

    def test_over(self):
        v = calculate_variance(Decimal("1100"), Decimal("1000"))
        assert v.amount == Decimal("100")
        assert v.percentage == 10
        assert v.direction is VarianceDirection.OVER

    def test_under_rounds_half_up(self):
        v = calculate_variance(Decimal("0"), Decimal("3"))
        assert v.percentage == -100
        assert v.direction is VarianceDirection.UNDER

    def test_on(self):
        v = calculate_variance(Decimal("500"), Decimal("500"))
        assert v.direction is VarianceDirection.ON
        assert v.percentage == 0

    def test_no_baseline_gives_zero_percentage(self):
        v = calculate_variance(Decimal("250"), None)
        assert v.amount == Decimal("250")
        assert v.percentage == 0


class TestBreach:

    def test_latest_due_date(self):
        assert latest_due_date([d(due=date(2024, 1, 5)), d(due=None), d(due=date(2024, 2, 1))]) == date(2024, 2, 1)
        assert latest_due_date([]) is None

    def test_breached_when_deliverable_due_after_baseline_end(self):
        assert is_baseline_breached(date(2024, 1, 31), [d(due=date(2024, 2, 1))])

    def test_not_breached_without_baseline_end(self):
        assert not is_baseline_breached(None, [d(due=date(2024, 2, 1))])

    def test_not_breached_on_the_day(self):
        assert not is_baseline_breached(date(2024, 2, 1), [d(due=date(2024, 2, 1))])

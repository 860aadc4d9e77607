"""
End-to-end acceptance workflow: baseline commitment, delivery, certificate.

Walks one milestone through the whole life cycle the way a project would:
both parties commit the baseline, deliverables complete, a manager raises
the certificate and both parties sign it.  The read model is checked at
every step.
"""

from datetime import date
from decimal import Decimal

import pytest

from milestone_kernel.domain.approval import SignatoryRole
from milestone_kernel.domain.permissions import Action
from milestone_kernel.domain.status import (
    BaselineStatus,
    CertificateStatus,
    DeliverableStatus,
    MilestoneStatus,
)
from milestone_kernel.exceptions import (
    AlreadySignedError,
    CertificateAlreadyExistsError,
    MilestoneNotCompletedError,
)
from milestone_kernel.models.audit_event import AuditAction
from milestone_kernel.models.deliverable import DeliverableModel
from milestone_kernel.services.auditor_service import (
    CERTIFICATE_ENTITY,
    MILESTONE_ENTITY,
)


class TestAcceptanceLifecycle:

    def test_full_lifecycle(
        self,
        session,
        service,
        auditor,
        create_milestone,
        add_deliverable,
        supplier_pm,
        customer_pm,
        customer_finance,
    ):
        milestone = create_milestone(
            milestone_ref="M-100",
            baseline_billable=Decimal("25000.00"),
            forecast_billable=Decimal("24000.00"),
        )
        design = add_deliverable(
            milestone.id, "Design", DeliverableStatus.IN_PROGRESS, 60, date(2024, 2, 15)
        )
        build = add_deliverable(
            milestone.id, "Build", DeliverableStatus.NOT_STARTED, 0, date(2024, 3, 20)
        )

        # Baseline commitment, customer first.
        service.sign_baseline(milestone.id, SignatoryRole.CUSTOMER, customer_pm)
        view = service.get_milestone_view(milestone.id, actor=supplier_pm)
        assert view.baseline.status is BaselineStatus.AWAITING_SUPPLIER
        assert Action.SIGN_BASELINE_AS_SUPPLIER in view.allowed_actions

        service.sign_baseline(milestone.id, SignatoryRole.SUPPLIER, supplier_pm)
        view = service.get_milestone_view(milestone.id, actor=supplier_pm)
        assert view.baseline.status is BaselineStatus.LOCKED
        assert Action.EDIT_BASELINE not in view.allowed_actions
        assert Action.EDIT_FORECAST in view.allowed_actions
        assert view.status is MilestoneStatus.IN_PROGRESS
        assert view.progress == 30

        # Too early for a certificate.
        with pytest.raises(MilestoneNotCompletedError):
            service.generate_certificate(milestone.id, supplier_pm)

        # Delivery completes.
        for deliverable in (design, build):
            row = session.get(DeliverableModel, deliverable.id)
            row.status = DeliverableStatus.DELIVERED.value
            row.progress = 100
        session.commit()

        view = service.get_milestone_view(milestone.id, actor=customer_pm)
        assert view.status is MilestoneStatus.COMPLETED
        assert view.progress == 100
        assert Action.GENERATE_CERTIFICATE in view.allowed_actions

        certificate = service.generate_certificate(milestone.id, customer_pm)
        assert certificate.status is CertificateStatus.DRAFT
        assert certificate.payment_value == Decimal("24000.00")
        assert [d.name for d in certificate.deliverables_snapshot] == ["Design", "Build"]

        view = service.get_milestone_view(milestone.id, actor=customer_pm)
        assert view.certificate.certificate_id == certificate.certificate_id
        assert Action.GENERATE_CERTIFICATE not in view.allowed_actions

        with pytest.raises(CertificateAlreadyExistsError):
            service.generate_certificate(milestone.id, supplier_pm)

        # Certificate signatures, supplier first.
        signed = service.sign_certificate(
            certificate.certificate_id, SignatoryRole.SUPPLIER, supplier_pm
        )
        assert signed.status is CertificateStatus.PENDING_CUSTOMER

        view = service.get_milestone_view(milestone.id, actor=customer_finance)
        assert view.allowed_actions == frozenset({Action.SIGN_CERTIFICATE_AS_CUSTOMER})

        signed = service.sign_certificate(
            certificate.certificate_id, "customer", customer_finance
        )
        assert signed.status is CertificateStatus.SIGNED
        assert signed.signatures.customer.signer_id == customer_finance.user_id

        with pytest.raises(AlreadySignedError):
            service.sign_certificate(
                certificate.certificate_id, SignatoryRole.CUSTOMER, customer_pm
            )

        # The value stays frozen after the forecast moves.
        service.update_forecast(milestone.id, supplier_pm, billable=Decimal("30000"))
        assert service.get_certificate(certificate.certificate_id).payment_value == (
            Decimal("24000.00")
        )

        # Both audit trails are complete and intact.
        milestone_trace = auditor.get_trace(MILESTONE_ENTITY, milestone.id)
        assert milestone_trace.actions == (
            AuditAction.BASELINE_SIGNED,
            AuditAction.BASELINE_SIGNED,
            AuditAction.BASELINE_LOCKED,
            AuditAction.FORECAST_UPDATED,
        )
        certificate_trace = auditor.get_trace(
            CERTIFICATE_ENTITY, certificate.certificate_id
        )
        assert certificate_trace.actions == (
            AuditAction.CERTIFICATE_GENERATED,
            AuditAction.CERTIFICATE_SIGNED,
            AuditAction.CERTIFICATE_SIGNED,
            AuditAction.CERTIFICATE_FULLY_SIGNED,
        )
        assert auditor.validate_chain(MILESTONE_ENTITY, milestone.id)
        assert auditor.validate_chain(CERTIFICATE_ENTITY, certificate.certificate_id)

    def test_certificate_snapshot_survives_deliverable_changes(
        self, session, service, completed_milestone, admin
    ):
        certificate = service.generate_certificate(completed_milestone.id, admin)

        session.add(
            DeliverableModel(
                milestone_id=completed_milestone.id,
                name="Late addition",
                status=DeliverableStatus.NOT_STARTED.value,
                progress=0,
                created_by_id=admin.user_id,
            )
        )
        session.commit()

        stored = service.get_certificate(certificate.certificate_id)
        assert len(stored.deliverables_snapshot) == 2
        assert service.get_milestone_view(completed_milestone.id).status is (
            MilestoneStatus.IN_PROGRESS
        )

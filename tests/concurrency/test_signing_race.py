"""
Concurrent signing against a real file database.

Two parties signing the same baseline at the same moment must end with the
baseline locked and both signatures recorded, never with each party
"awaiting" the other.  The same holds for the acceptance certificate.
Two managers generating a certificate at the same moment must produce
exactly one certificate.

Each thread owns its session and service, as separate requests would.
The file database gives every session its own connection so the version
check, not a shared connection, decides which write wins.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from milestone_kernel.db.engine import build_engine, create_tables, drop_tables
from milestone_kernel.db.immutability import register_immutability_listeners
from milestone_kernel.domain.approval import SignatoryRole
from milestone_kernel.domain.clock import DeterministicClock
from milestone_kernel.domain.identity import Actor, Role
from milestone_kernel.domain.status import CertificateStatus, DeliverableStatus
from milestone_kernel.exceptions import CertificateAlreadyExistsError
from milestone_kernel.models.audit_event import AuditAction
from milestone_kernel.models.baseline_version import MilestoneBaselineVersionModel
from milestone_kernel.models.certificate import AcceptanceCertificateModel
from milestone_kernel.models.deliverable import DeliverableModel
from milestone_kernel.models.milestone import MilestoneModel
from milestone_kernel.services.auditor_service import (
    CERTIFICATE_ENTITY,
    MILESTONE_ENTITY,
    AuditorService,
)
from milestone_kernel.services.milestone_service import MilestoneService

pytestmark = pytest.mark.concurrency

ROUNDS = 5


@pytest.fixture
def file_session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
    create_tables(engine)
    register_immutability_listeners()
    yield sessionmaker(bind=engine, expire_on_commit=False)
    drop_tables(engine)
    engine.dispose()


def _seed_milestone(factory, ref: str, delivered: bool = False):
    with factory() as session:
        milestone = MilestoneModel(
            project_id=uuid4(),
            milestone_ref=ref,
            name=f"Race {ref}",
            baseline_start_date=date(2024, 1, 1),
            baseline_end_date=date(2024, 6, 30),
            baseline_billable=Decimal("1000.00"),
            forecast_billable=Decimal("1000.00"),
            created_by_id=uuid4(),
        )
        session.add(milestone)
        session.flush()
        if delivered:
            session.add(
                DeliverableModel(
                    milestone_id=milestone.id,
                    name="Only deliverable",
                    status=DeliverableStatus.DELIVERED.value,
                    progress=100,
                    created_by_id=uuid4(),
                )
            )
        session.commit()
        return milestone.id


def _actor(role: Role) -> Actor:
    return Actor(user_id=uuid4(), user_name=role.value, role=role)


class TestConcurrentBaselineSigning:

    @pytest.mark.parametrize("round_no", range(ROUNDS))
    def test_simultaneous_signatures_lock(self, file_session_factory, round_no):
        milestone_id = _seed_milestone(file_session_factory, f"M-RACE-{round_no}")
        barrier = Barrier(2)

        def sign(signatory: SignatoryRole, role: Role):
            with file_session_factory() as session:
                service = MilestoneService(session, clock=DeterministicClock())
                barrier.wait()
                return service.sign_baseline(milestone_id, signatory, _actor(role))

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(sign, SignatoryRole.SUPPLIER, Role.SUPPLIER_PM),
                pool.submit(sign, SignatoryRole.CUSTOMER, Role.CUSTOMER_PM),
            ]
            results = [f.result(timeout=60) for f in futures]

        # Exactly one of the two writes observed the other and locked.
        assert sorted(r.baseline_locked for r in results) == [False, True]

        with file_session_factory() as session:
            milestone = session.get(MilestoneModel, milestone_id)
            assert milestone.baseline_locked is True
            assert milestone.signatures.is_complete

            versions = session.execute(
                select(func.count())
                .select_from(MilestoneBaselineVersionModel)
                .where(MilestoneBaselineVersionModel.milestone_id == milestone_id)
            ).scalar_one()
            assert versions == 1

            auditor = AuditorService(session)
            assert auditor.validate_chain(MILESTONE_ENTITY, milestone_id)
            assert len(auditor.get_trace(MILESTONE_ENTITY, milestone_id).entries) == 3


class TestConcurrentCertificateSigning:

    @pytest.mark.parametrize("round_no", range(ROUNDS))
    def test_simultaneous_signatures_sign(self, file_session_factory, round_no):
        milestone_id = _seed_milestone(
            file_session_factory, f"M-CERT-SIGN-{round_no}", delivered=True
        )
        with file_session_factory() as session:
            certificate_id = MilestoneService(
                session, clock=DeterministicClock()
            ).generate_certificate(milestone_id, _actor(Role.SUPPLIER_PM)).certificate_id
        barrier = Barrier(2)

        def sign(signatory: SignatoryRole, role: Role):
            with file_session_factory() as session:
                service = MilestoneService(session, clock=DeterministicClock())
                barrier.wait()
                return service.sign_certificate(certificate_id, signatory, _actor(role))

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(sign, SignatoryRole.SUPPLIER, Role.SUPPLIER_FINANCE),
                pool.submit(sign, SignatoryRole.CUSTOMER, Role.CUSTOMER_FINANCE),
            ]
            results = [f.result(timeout=60) for f in futures]

        assert sorted(r.status is CertificateStatus.SIGNED for r in results) == [
            False,
            True,
        ]

        with file_session_factory() as session:
            certificate = session.get(AcceptanceCertificateModel, certificate_id)
            assert certificate.status == CertificateStatus.SIGNED.value
            assert certificate.signatures.is_complete

            auditor = AuditorService(session)
            assert auditor.validate_chain(CERTIFICATE_ENTITY, certificate_id)
            assert auditor.get_trace(CERTIFICATE_ENTITY, certificate_id).actions == (
                AuditAction.CERTIFICATE_GENERATED,
                AuditAction.CERTIFICATE_SIGNED,
                AuditAction.CERTIFICATE_SIGNED,
                AuditAction.CERTIFICATE_FULLY_SIGNED,
            )


class TestInterleavedSigning:

    def test_decision_redone_after_lost_race(self, file_session_factory, captured_logs):
        """
        The supplier's first attempt reads the milestone unsigned; the
        customer signs and commits before the supplier writes.  The supplier's
        write loses the version check, is re-decided from fresh state and
        locks the baseline.
        """
        milestone_id = _seed_milestone(file_session_factory, "M-INTERLEAVE")
        customer = _actor(Role.CUSTOMER_PM)

        class InterferingClock(DeterministicClock):
            fired = False

            def now(self):
                if not self.fired:
                    self.fired = True
                    with file_session_factory() as other:
                        MilestoneService(other, clock=DeterministicClock()).sign_baseline(
                            milestone_id, SignatoryRole.CUSTOMER, customer
                        )
                return super().now()

        with file_session_factory() as session:
            service = MilestoneService(session, clock=InterferingClock())
            record = service.sign_baseline(
                milestone_id, SignatoryRole.SUPPLIER, _actor(Role.SUPPLIER_PM)
            )

        assert record.baseline_locked is True
        assert record.baseline_signatures.customer.signer_id == customer.user_id
        assert any(r["message"] == "write_conflict_retry" for r in captured_logs())


class TestConcurrentCertificateGeneration:

    def test_single_certificate(self, file_session_factory):
        milestone_id = _seed_milestone(file_session_factory, "M-CERT", delivered=True)
        barrier = Barrier(2)

        def generate(role: Role):
            with file_session_factory() as session:
                service = MilestoneService(session, clock=DeterministicClock())
                barrier.wait()
                try:
                    return service.generate_certificate(milestone_id, _actor(role))
                except CertificateAlreadyExistsError as exc:
                    return exc

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(generate, Role.SUPPLIER_PM),
                pool.submit(generate, Role.CUSTOMER_PM),
            ]
            results = [f.result(timeout=60) for f in futures]

        errors = [r for r in results if isinstance(r, CertificateAlreadyExistsError)]
        assert len(errors) == 1

        with file_session_factory() as session:
            count = session.execute(
                select(func.count())
                .select_from(AcceptanceCertificateModel)
                .where(AcceptanceCertificateModel.milestone_id == milestone_id)
            ).scalar_one()
            assert count == 1

"""
Tests for case documents and sharing, consents, billing and worksheets.
"""

import uuid
from datetime import date, timedelta

import pytest

from carebridge.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from carebridge.core.types import utcnow
from carebridge.models import (
    BillingStatus, CaseAuditLog, CaseDocumentType, ConsentType, WorksheetAssignmentStatus,
)
from carebridge.services.case_access import resolve_case_access
from carebridge.services.case_billing import CaseBillingService
from carebridge.services.case_consents import CaseConsentService, consent_state
from carebridge.services.case_documents import CaseDocumentService
from carebridge.services.cases import CaseService
from carebridge.services.worksheets import WorksheetService


@pytest.fixture
def edit_access(db, therapist, case):
    return resolve_case_access(db, therapist, case.id, "edit")


@pytest.fixture
def parent_access(db, parent, case):
    return resolve_case_access(db, parent, case.id, "view")


def _document(db, access, title="Progress report"):
    return CaseDocumentService(db).create_document(access, {
        "type": CaseDocumentType.PROGRESS_REPORT,
        "title": title,
        "content": "Steady gains across goals.",
    })


class TestCaseDocuments:
    def test_content_or_file_required(self, db, edit_access) -> None:
        with pytest.raises(BadRequestError):
            CaseDocumentService(db).create_document(edit_access, {
                "type": CaseDocumentType.OTHER, "title": "Empty",
            })

    def test_parent_sees_only_shared_documents(self, db, parent, edit_access, parent_access) -> None:
        service = CaseDocumentService(db)
        shared = _document(db, edit_access, "Shared report")
        private = _document(db, edit_access, "Private report")
        service.share(edit_access, parent.id, shared.id)

        assert [d.id for d in service.list_documents(parent_access)["items"]] == [shared.id]
        assert service.get_document(parent_access, shared.id).id == shared.id
        with pytest.raises(NotFoundError):
            service.get_document(parent_access, private.id)

    def test_case_wide_share_opens_everything(self, db, parent, edit_access, parent_access) -> None:
        service = CaseDocumentService(db)
        _document(db, edit_access, "One")
        _document(db, edit_access, "Two")
        service.share(edit_access, parent.id)

        assert len(service.list_documents(parent_access)["items"]) == 2

    def test_duplicate_share_and_revoke(self, db, parent, edit_access, parent_access) -> None:
        service = CaseDocumentService(db)
        document = _document(db, edit_access)
        share = service.share(edit_access, parent.id, document.id)

        with pytest.raises(BadRequestError):
            service.share(edit_access, parent.id, document.id)

        service.revoke_share(edit_access, share.id)
        assert share.revoked_at is not None
        assert service.list_documents(parent_access)["items"] == []
        assert service.shared_with_me(parent) == []
        assert len(service.list_shares(edit_access, include_revoked=True)) == 1

        with pytest.raises(BadRequestError):
            service.revoke_share(edit_access, share.id)


class TestCaseConsents:
    def test_parent_grants_and_compliance(self, db, parent_access) -> None:
        service = CaseConsentService(db)
        for consent_type in (ConsentType.TREATMENT, ConsentType.SHARING):
            service.create_consent(parent_access, {"type": consent_type})

        report = service.compliance(parent_access)
        assert report["is_compliant"] is False
        assert report["missing_consents"] == ["ASSESSMENT"]

        service.create_consent(parent_access, {
            "type": ConsentType.ASSESSMENT,
            "valid_until": utcnow() + timedelta(days=10),
        })
        report = service.compliance(parent_access)
        assert report["is_compliant"] is True
        assert [e["type"] for e in report["expiring_soon"]] == ["ASSESSMENT"]

    def test_duplicate_active_consent_rejected(self, db, parent_access) -> None:
        service = CaseConsentService(db)
        service.create_consent(parent_access, {"type": ConsentType.TREATMENT})
        with pytest.raises(BadRequestError):
            service.create_consent(parent_access, {"type": ConsentType.TREATMENT})

    def test_past_valid_until_rejected(self, db, parent_access) -> None:
        with pytest.raises(BadRequestError):
            CaseConsentService(db).create_consent(parent_access, {
                "type": ConsentType.RESEARCH,
                "valid_until": utcnow() - timedelta(minutes=1),
            })

    def test_revoke_changes_state(self, db, parent_access) -> None:
        service = CaseConsentService(db)
        consent = service.create_consent(parent_access, {"type": ConsentType.TELEHEALTH})
        assert consent_state(consent) == {"is_active": True, "is_expired": False, "is_revoked": False}

        service.revoke_consent(parent_access, consent.id)
        state = consent_state(consent)
        assert state["is_active"] is False
        assert state["is_revoked"] is True

    def test_read_only_secondary_cannot_record(self, db, therapist, other_therapist, case) -> None:
        manage = resolve_case_access(db, therapist, case.id, "manage")
        CaseService(db).add_therapist(manage, other_therapist.therapist_profile.id)
        viewer = resolve_case_access(db, other_therapist, case.id, "view")

        with pytest.raises(ForbiddenError):
            CaseConsentService(db).create_consent(viewer, {"type": ConsentType.TREATMENT})


class TestCaseBilling:
    def test_summary_and_paid_stamp(self, db, edit_access) -> None:
        service = CaseBillingService(db)
        first = service.create_billing(edit_access, {"amount": 90.0, "service_code": "92507"})
        service.create_billing(edit_access, {"amount": 60.0})

        service.update_billing(edit_access, first.id, {"status": BillingStatus.PAID})
        assert first.paid_at is not None

        page = service.list_billing(edit_access)
        assert page["summary"]["total_billed"] == 150.0
        assert page["summary"]["total_paid"] == 90.0
        assert page["summary"]["total_pending"] == 60.0
        assert page["summary"]["record_count"] == 2

    def test_negative_amount_rejected(self, db, edit_access) -> None:
        with pytest.raises(BadRequestError):
            CaseBillingService(db).create_billing(edit_access, {"amount": -1})

    def test_unknown_session_rejected(self, db, edit_access) -> None:
        with pytest.raises(NotFoundError):
            CaseBillingService(db).create_billing(edit_access, {"amount": 10, "session_id": uuid.uuid4()})

    def test_mark_overdue(self, db, edit_access, case) -> None:
        service = CaseBillingService(db)
        today = date(2026, 3, 2)
        late = service.create_billing(edit_access, {"amount": 90.0, "due_date": today - timedelta(days=1)})
        current = service.create_billing(edit_access, {"amount": 90.0, "due_date": today + timedelta(days=7)})

        assert service.mark_overdue(today) == 1
        assert late.status == BillingStatus.OVERDUE
        assert current.status == BillingStatus.PENDING

        entry = db.query(CaseAuditLog).filter(CaseAuditLog.action == "BILLING_OVERDUE").one()
        assert entry.user_id is None
        assert entry.case_id == case.id


class TestWorksheets:
    @pytest.fixture
    def worksheet(self, db, therapist):
        return WorksheetService(db).create_worksheet(therapist, {
            "title": "Turn-taking at home",
            "content": {"activities": ["Roll the ball"]},
        })

    def test_assign_only_to_parents(self, db, therapist, other_therapist, child, worksheet) -> None:
        with pytest.raises(BadRequestError):
            WorksheetService(db).assign(therapist, {
                "worksheet_id": worksheet.id,
                "assigned_to_id": other_therapist.id,
                "child_id": child.id,
            })

    def test_assignment_lifecycle(self, db, therapist, parent, child, case, worksheet) -> None:
        service = WorksheetService(db)
        assignment = service.assign(therapist, {
            "worksheet_id": worksheet.id,
            "assigned_to_id": parent.id,
            "child_id": child.id,
            "case_id": case.id,
        })
        assert assignment.status == WorksheetAssignmentStatus.ASSIGNED

        service.get_assignment(therapist, assignment.id)
        assert assignment.status == WorksheetAssignmentStatus.ASSIGNED

        service.get_assignment(parent, assignment.id)
        assert assignment.status == WorksheetAssignmentStatus.VIEWED
        assert assignment.viewed_at is not None

        with pytest.raises(ForbiddenError):
            service.update_assignment(therapist, assignment.id, {"status": WorksheetAssignmentStatus.COMPLETED})

        service.update_assignment(parent, assignment.id, {
            "status": WorksheetAssignmentStatus.COMPLETED,
            "parent_notes": "Loved the ball game",
        })
        assert assignment.completed_at is not None
        assert assignment.parent_notes == "Loved the ball game"

        assert service.list_sent(therapist)["total"] == 1
        assert service.list_received(parent, status=WorksheetAssignmentStatus.COMPLETED)["total"] == 1

    def test_stranger_cannot_read_assignment(self, db, therapist, parent, child, make_user, worksheet) -> None:
        service = WorksheetService(db)
        assignment = service.assign(therapist, {
            "worksheet_id": worksheet.id,
            "assigned_to_id": parent.id,
            "child_id": child.id,
        })
        with pytest.raises(ForbiddenError):
            service.get_assignment(make_user(), assignment.id)

"""
Tests for case numbering, access resolution and the case service.
"""

import uuid
from datetime import datetime, timezone

import pytest

from carebridge.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from carebridge.models import CaseInternalNote, CaseStatus, CaseTherapistRole
from carebridge.services.case_access import resolve_case_access
from carebridge.services.case_number import generate_case_number, validate_case_number_format
from carebridge.services.cases import CaseService


class TestCaseNumbers:
    def test_format(self) -> None:
        assert validate_case_number_format("CM-20260115-0001")
        assert not validate_case_number_format("CM-2026-001")

    def test_first_number_of_the_day(self, db) -> None:
        now = datetime(2026, 1, 15, 23, 30, tzinfo=timezone.utc)
        assert generate_case_number(db, now=now) == "CM-20260115-0001"

    def test_sequence_increments(self, db, case) -> None:
        prefix, sequence = case.case_number.rsplit("-", 1)
        assert sequence == "0001"
        assert generate_case_number(db) == f"{prefix}-0002"


class TestCaseAccess:
    def test_primary_therapist_can_manage(self, db, therapist, case) -> None:
        access = resolve_case_access(db, therapist, case.id, "manage")
        assert access.role == "therapist"
        assert access.is_primary
        assert access.can_view_notes

    def test_parent_can_only_view(self, db, parent, case) -> None:
        access = resolve_case_access(db, parent, case.id, "view")
        assert access.is_parent
        assert not access.can_view_notes
        with pytest.raises(ForbiddenError):
            resolve_case_access(db, parent, case.id, "edit")

    def test_unassigned_therapist_is_denied(self, db, other_therapist, case) -> None:
        with pytest.raises(ForbiddenError):
            resolve_case_access(db, other_therapist, case.id, "view")

    def test_admin_sees_everything(self, db, admin, case) -> None:
        assert resolve_case_access(db, admin, case.id, "manage").is_admin

    def test_missing_case(self, db, admin) -> None:
        with pytest.raises(NotFoundError):
            resolve_case_access(db, admin, uuid.uuid4(), "view")

    def test_secondary_without_edit_permission(self, db, therapist, other_therapist, case) -> None:
        access = resolve_case_access(db, therapist, case.id, "manage")
        CaseService(db).add_therapist(access, other_therapist.therapist_profile.id)

        view = resolve_case_access(db, other_therapist, case.id, "view")
        assert not view.can_edit
        assert view.can_view_notes
        with pytest.raises(ForbiddenError):
            resolve_case_access(db, other_therapist, case.id, "edit")
        with pytest.raises(ForbiddenError):
            resolve_case_access(db, other_therapist, case.id, "manage")


class TestCaseService:
    def test_create_case_assigns_primary(self, db, therapist, case) -> None:
        assert case.status == CaseStatus.ACTIVE
        assert case.primary_therapist_id == therapist.therapist_profile.id
        [assignment] = case.active_therapists
        assert assignment.role == CaseTherapistRole.PRIMARY
        assert assignment.has_permission("can_edit")

    def test_create_case_requires_therapist_profile(self, db, parent, child) -> None:
        with pytest.raises(BadRequestError):
            CaseService(db).create_case(parent, child.id)

    def test_list_cases_by_role(self, db, therapist, other_therapist, parent, admin, case) -> None:
        service = CaseService(db)
        assert [c.id for c in service.list_cases(therapist)["items"]] == [case.id]
        assert [c.id for c in service.list_cases(parent)["items"]] == [case.id]
        assert [c.id for c in service.list_cases(admin)["items"]] == [case.id]
        assert service.list_cases(other_therapist)["items"] == []

    def test_search_by_child_name(self, db, therapist, case) -> None:
        service = CaseService(db)
        assert len(service.list_cases(therapist, search="zur")["items"]) == 1
        assert service.list_cases(therapist, search="nobody")["items"] == []

    def test_discharge_and_reactivate(self, db, therapist, case) -> None:
        service = CaseService(db)
        access = resolve_case_access(db, therapist, case.id, "manage")

        service.update_status(access, CaseStatus.DISCHARGED, "Goals met")
        assert case.discharged_at is not None
        assert case.discharge_reason == "Goals met"

        service.update_status(access, CaseStatus.ARCHIVED)
        service.update_status(access, CaseStatus.ACTIVE)
        assert case.discharged_at is None
        assert case.discharge_reason is None

    def test_add_twice_and_remove(self, db, therapist, other_therapist, case) -> None:
        service = CaseService(db)
        access = resolve_case_access(db, therapist, case.id, "manage")
        other_id = other_therapist.therapist_profile.id

        service.add_therapist(access, other_id)
        with pytest.raises(BadRequestError):
            service.add_therapist(access, other_id)

        service.remove_therapist(access, other_id)
        assert len(case.active_therapists) == 1

        readded = service.add_therapist(access, other_id, CaseTherapistRole.CONSULTANT)
        assert readded.removed_at is None
        assert readded.role == CaseTherapistRole.CONSULTANT

    def test_cannot_remove_primary(self, db, therapist, case) -> None:
        access = resolve_case_access(db, therapist, case.id, "manage")
        with pytest.raises(BadRequestError):
            CaseService(db).remove_therapist(access, therapist.therapist_profile.id)

    def test_transfer_requires_assignment(self, db, therapist, other_therapist, case) -> None:
        service = CaseService(db)
        access = resolve_case_access(db, therapist, case.id, "manage")
        other_id = other_therapist.therapist_profile.id

        with pytest.raises(BadRequestError):
            service.transfer_case(access, other_id)

        service.add_therapist(access, other_id)
        service.transfer_case(access, other_id)

        assert case.primary_therapist_id == other_id
        roles = {t.therapist_id: t.role for t in case.active_therapists}
        assert roles[other_id] == CaseTherapistRole.PRIMARY
        assert roles[therapist.therapist_profile.id] == CaseTherapistRole.SECONDARY

    def test_internal_notes_are_encrypted(self, db, therapist, case) -> None:
        service = CaseService(db)
        access = resolve_case_access(db, therapist, case.id, "edit")

        note = service.add_internal_note(access, "Sibling often attends sessions")
        assert note["content"] == "Sibling often attends sessions"

        stored = db.query(CaseInternalNote).filter(CaseInternalNote.id == note["id"]).one()
        assert b"Sibling" not in stored.content_encrypted
        assert service.list_internal_notes(access)[0]["content"] == "Sibling often attends sessions"

    def test_blank_note_rejected(self, db, therapist, case) -> None:
        access = resolve_case_access(db, therapist, case.id, "edit")
        with pytest.raises(BadRequestError):
            CaseService(db).add_internal_note(access, "   ")

    def test_timeline_records_mutations(self, db, therapist, case) -> None:
        service = CaseService(db)
        access = resolve_case_access(db, therapist, case.id, "manage")
        service.update_status(access, CaseStatus.ON_HOLD)

        actions = {entry.action for entry in service.timeline(access)["items"]}
        assert {"CASE_CREATED", "STATUS_CHANGED"} <= actions

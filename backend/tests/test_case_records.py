"""
Tests for case sessions, goal progress, IEPs and milestone plans.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from carebridge.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from carebridge.models import (
    GoalStatus, IEPStatus, MilestonePlanStatus, MilestoneStatus, NoteStatus, SessionNoteFormat,
)
from carebridge.services.case_access import resolve_case_access
from carebridge.services.case_sessions import CaseSessionService, apply_progress_to_goal
from carebridge.services.ieps import IEPService
from carebridge.services.milestone_plans import MilestonePlanService


@pytest.fixture
def edit_access(db, therapist, case):
    return resolve_case_access(db, therapist, case.id, "edit")


@pytest.fixture
def parent_access(db, parent, case):
    return resolve_case_access(db, parent, case.id, "view")


@pytest.fixture
def iep(db, edit_access):
    return IEPService(db).create_iep(edit_access, {
        "goals": [
            {"domain": "communication", "goal_text": "Request items with 3-word phrases"},
            {"domain": "social", "goal_text": "Take turns for 5 minutes"},
        ],
    })


@pytest.fixture
def case_session(db, edit_access):
    return CaseSessionService(db).create(edit_access, {
        "scheduled_at": datetime.now(timezone.utc) - timedelta(days=1),
        "session_type": "Follow-up",
        "actual_duration": 45,
        "raw_notes": "Used picture cards. Requested snack twice with a full phrase.",
        "note_format": SessionNoteFormat.SOAP,
    })


class TestCaseSessions:
    def test_new_session_is_draft(self, case_session, therapist) -> None:
        assert case_session.note_status == NoteStatus.DRAFT
        assert case_session.therapist_id == therapist.id

    def test_signed_session_is_read_only(self, db, edit_access, case_session) -> None:
        service = CaseSessionService(db)
        signed = service.sign(edit_access, case_session.id)
        assert signed.signed_at is not None

        with pytest.raises(ForbiddenError):
            service.update(edit_access, case_session.id, {"location": "Clinic room 2"})
        with pytest.raises(BadRequestError):
            service.sign(edit_access, case_session.id)

    def test_goal_progress_upserts_and_moves_goal(self, db, edit_access, case_session, iep) -> None:
        service = CaseSessionService(db)
        goal = iep.goals[0]

        service.log_goal_progress(edit_access, case_session.id, goal.id, "Good start", 40)
        assert goal.current_progress == 40
        assert goal.status == GoalStatus.IN_PROGRESS

        entry = service.log_goal_progress(edit_access, case_session.id, goal.id, progress_value=100)
        assert entry.progress_note == "Good start"
        assert goal.status == GoalStatus.ACHIEVED
        assert len(service.get(edit_access, case_session.id).goal_progress) == 1

    def test_goal_from_another_case_is_rejected(self, db, edit_access, case_session) -> None:
        with pytest.raises(NotFoundError):
            CaseSessionService(db).log_goal_progress(edit_access, case_session.id, uuid.uuid4(), progress_value=10)

    def test_bulk_progress(self, db, edit_access, case_session, iep) -> None:
        entries = [{"goal_id": g.id, "progress_value": 25} for g in iep.goals]
        results = CaseSessionService(db).log_goal_progress_bulk(edit_access, case_session.id, entries)
        assert len(results) == 2
        assert all(g.status == GoalStatus.IN_PROGRESS for g in iep.goals)

    def test_ai_summary_falls_back_without_key(self, db, edit_access, case_session) -> None:
        result = CaseSessionService(db).generate_ai_summary(edit_access, case_session.id)
        assert result["ai_generated"] is False
        assert result["format"] == "SOAP"
        assert "**Objective**: Session conducted (45 min)." in result["summary"]
        assert case_session.ai_summary == result["summary"]

    def test_apply_progress_ignores_zero_and_none(self, iep) -> None:
        goal = iep.goals[1]
        apply_progress_to_goal(goal, None)
        apply_progress_to_goal(goal, 0)
        assert goal.status == GoalStatus.NOT_STARTED


class TestIEPs:
    def test_create_orders_goals(self, iep) -> None:
        assert iep.version == 1
        assert iep.status == IEPStatus.DRAFT
        assert [g.order for g in iep.goals] == [1, 2]

    def test_dual_approval(self, db, edit_access, parent_access, iep) -> None:
        service = IEPService(db)
        service.approve_iep(edit_access, iep.id, "therapist")
        assert iep.status == IEPStatus.DRAFT

        with pytest.raises(BadRequestError):
            service.approve_iep(edit_access, iep.id, "therapist")

        service.approve_iep(parent_access, iep.id, "parent")
        assert iep.status == IEPStatus.APPROVED

    def test_parent_cannot_approve_as_therapist(self, db, parent_access, iep) -> None:
        with pytest.raises(ForbiddenError):
            IEPService(db).approve_iep(parent_access, iep.id, "therapist")

    def test_therapist_cannot_approve_as_parent(self, db, edit_access, iep) -> None:
        with pytest.raises(ForbiddenError):
            IEPService(db).approve_iep(edit_access, iep.id, "parent")

    def test_new_version_archives_and_copies_goals(self, db, edit_access, iep) -> None:
        new_iep = IEPService(db).create_new_version(edit_access, iep.id)
        assert iep.status == IEPStatus.ARCHIVED
        assert new_iep.version == 2
        assert new_iep.previous_version_id == iep.id
        assert [g.goal_text for g in new_iep.goals] == [g.goal_text for g in iep.goals]
        assert {g.id for g in new_iep.goals}.isdisjoint({g.id for g in iep.goals})

    def test_goal_crud(self, db, edit_access, iep) -> None:
        service = IEPService(db)
        goal = service.add_goal(edit_access, iep.id, {"domain": "motor", "goal_text": "Copy a circle"})
        assert goal.order == 3

        bulk = service.add_goals_bulk(edit_access, iep.id, [
            {"domain": "motor", "goal_text": "Copy a cross"},
            {"domain": "self-care", "goal_text": "Zip a jacket"},
        ])
        assert [g.order for g in bulk] == [4, 5]

        service.update_goal(edit_access, iep.id, goal.id, {"status": GoalStatus.ACHIEVED})
        assert goal.status == GoalStatus.ACHIEVED

        service.delete_goal(edit_access, iep.id, goal.id)
        with pytest.raises(NotFoundError):
            service.update_goal(edit_access, iep.id, goal.id, {"order": 9})

    def test_template_in_use_cannot_be_deleted(self, db, therapist, edit_access) -> None:
        service = IEPService(db)
        template = service.create_template(therapist, {"name": "Early communicator"})
        service.create_iep(edit_access, {"template_id": template.id})

        with pytest.raises(BadRequestError):
            service.delete_template(therapist, template.id)

    def test_goal_bank_search(self, db, therapist) -> None:
        service = IEPService(db)
        service.create_goal_bank_item(therapist, {"domain": "communication", "goal_text": "Answer wh- questions"})
        service.create_goal_bank_item(therapist, {"domain": "motor", "goal_text": "Hop on one foot"})

        results = service.search_goal_bank(domain="communication")
        assert [r.goal_text for r in results] == ["Answer wh- questions"]
        assert [r.goal_text for r in service.search_goal_bank(search="hop")] == ["Hop on one foot"]


class TestMilestonePlans:
    def test_parent_sees_only_shared_plans(self, db, edit_access, parent_access) -> None:
        service = MilestonePlanService(db)
        hidden = service.create_plan(edit_access)
        shared = service.create_plan(edit_access, {"shared_with_parent": True})

        assert [p.id for p in service.list_plans(parent_access)] == [shared.id]
        with pytest.raises(NotFoundError):
            service.get_plan(parent_access, hidden.id)

    def test_versions_increment(self, db, edit_access) -> None:
        service = MilestonePlanService(db)
        first = service.create_plan(edit_access, {
            "milestones": [{"domain": "social", "description": "Plays with a peer"}],
        })
        second = service.create_new_version(edit_access, first.id)

        assert first.status == MilestonePlanStatus.ARCHIVED
        assert second.version == 2
        assert second.milestones[0].description == "Plays with a peer"

    def test_achieved_milestone_is_stamped(self, db, edit_access) -> None:
        service = MilestonePlanService(db)
        plan = service.create_plan(edit_access)
        milestone = service.add_milestone(edit_access, plan.id, {"domain": "motor", "description": "Climbs stairs"})
        assert milestone.achieved_at is None

        service.update_milestone(edit_access, plan.id, milestone.id, {"status": MilestoneStatus.ACHIEVED})
        assert milestone.achieved_at is not None

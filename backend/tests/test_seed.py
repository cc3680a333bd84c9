"""
Tests for the case-management demo seed script.

The script is loaded from ``backend/scripts`` by path and run against the
shared in-memory database.
"""

import importlib.util
from pathlib import Path

import pytest

from carebridge.models import (
    Case, CaseAuditLog, CaseBilling, CaseConsent, CaseDocument, CaseInternalNote, CaseSession,
    Child, DocumentShare, GoalBankItem, IEP, IEPGoal, Milestone, MilestonePlan, SessionGoalProgress,
    SessionType, TherapistAvailability, User, Worksheet, WorksheetAssignment,
)


SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "seed_case_management.py"

EXPECTED_COUNTS = {
    User: 3,
    Child: 2,
    Case: 2,
    CaseInternalNote: 2,
    CaseSession: 6,
    SessionGoalProgress: 18,
    IEP: 2,
    IEPGoal: 6,
    MilestonePlan: 2,
    Milestone: 6,
    CaseDocument: 4,
    DocumentShare: 2,
    CaseConsent: 6,
    CaseBilling: 6,
    Worksheet: 2,
    WorksheetAssignment: 2,
    CaseAuditLog: 18,
    SessionType: 3,
    GoalBankItem: 3,
    TherapistAvailability: 5,
}


@pytest.fixture
def seed_module():
    spec = importlib.util.spec_from_file_location("seed_case_management", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _counts(db) -> dict:
    db.expire_all()
    return {model: db.query(model).count() for model in EXPECTED_COUNTS}


class TestSeedScript:
    def test_seeds_full_dataset(self, db, seed_module) -> None:
        assert seed_module.main([]) == 0
        assert _counts(db) == EXPECTED_COUNTS

        numbers = sorted(c.case_number for c in db.query(Case).all())
        assert all(n.startswith("CM-") for n in numbers)
        assert numbers[0] != numbers[1]

    def test_refuses_to_reseed_without_reset(self, db, seed_module) -> None:
        assert seed_module.main([]) == 0
        assert seed_module.main([]) == 1
        assert _counts(db) == EXPECTED_COUNTS

    def test_reset_recreates_the_dataset(self, db, seed_module) -> None:
        assert seed_module.main([]) == 0
        first_ids = {u.id for u in db.query(User).all()}

        assert seed_module.main(["--reset"]) == 0
        assert _counts(db) == EXPECTED_COUNTS
        assert first_ids.isdisjoint({u.id for u in db.query(User).all()})

    def test_custom_therapist_email(self, db, seed_module) -> None:
        assert seed_module.main(["--therapist-email", "dr.lee@example.com", "--password", "An0ther-Secret!"]) == 0
        therapist = db.query(User).filter(User.email == "dr.lee@example.com").one()
        assert therapist.therapist_profile is not None

"""
Seed Case Management Demo Data
==============================
Creates a therapist, two families and a full set of case records through
the ORM, all in one transaction.

Usage (from project root, after `pip install -e .`):
    python backend/scripts/seed_case_management.py
    python backend/scripts/seed_case_management.py --reset
    python backend/scripts/seed_case_management.py --therapist-email dr.lee@example.com --password 'S3cure!pass'

Flags:
    --reset              Delete previously seeded demo users (and everything they own) first
    --therapist-email    Email for the demo therapist (default: therapist@carebridge.dev)
    --password           Password for every demo account (default: CareBridge123!)
"""

import argparse
import logging
import sys
from datetime import date, timedelta
from typing import Optional

from carebridge.core.database import SessionLocal, init_db
from carebridge.core.security import encrypt_text, hash_password
from carebridge.core.transactions import transaction
from carebridge.core.types import utcnow
from carebridge.models import (
    User, UserRole, UserProfile, Child, ChildCondition,
    Gender, SchoolType, DiagnosisStatus, ConditionType, Severity, TherapyType,
    TherapistProfile, SessionType, TherapistAvailability,
    Case, CaseTherapist, CaseInternalNote, CaseStatus, CaseTherapistRole, FULL_PERMISSIONS,
    CaseSession, SessionGoalProgress, AttendanceStatus, SessionNoteFormat, NoteStatus,
    IEP, IEPGoal, IEPStatus, GoalStatus, GoalBankItem,
    MilestonePlan, Milestone, MilestonePlanStatus, MilestoneStatus,
    CaseDocument, DocumentShare, CaseDocumentType,
    CaseConsent, ConsentType,
    CaseBilling, BillingStatus,
    Worksheet, WorksheetAssignment, WorksheetAssignmentStatus,
    CaseAuditLog,
)
from carebridge.services.case_number import generate_case_number


logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger("seed_case_management")

DEFAULT_THERAPIST_EMAIL = "therapist@carebridge.dev"
DEFAULT_PASSWORD = "CareBridge123!"

FAMILIES = [
    {
        "email": "amina.parent@carebridge.dev",
        "name": "Amina Otieno",
        "relationship": "Mother",
        "child": {
            "first_name": "Zuri",
            "date_of_birth": date(2019, 4, 12),
            "gender": Gender.FEMALE,
            "school_type": SchoolType.MAINSTREAM,
            "grade": "Kindergarten",
        },
        "condition": {
            "condition_type": ConditionType.AUTISM_SPECTRUM,
            "severity": Severity.MODERATE,
            "current_therapies": [TherapyType.SPEECH_THERAPY.value, TherapyType.OCCUPATIONAL_THERAPY.value],
            "primary_challenges": "Expressive language, transitions between activities",
        },
        "diagnosis": "Autism Spectrum Disorder, level 2",
    },
    {
        "email": "daniel.parent@carebridge.dev",
        "name": "Daniel Kim",
        "relationship": "Father",
        "child": {
            "first_name": "Leo",
            "date_of_birth": date(2017, 9, 3),
            "gender": Gender.MALE,
            "school_type": SchoolType.MAINSTREAM,
            "grade": "Grade 2",
        },
        "condition": {
            "condition_type": ConditionType.ADHD,
            "severity": Severity.MILD,
            "current_therapies": [TherapyType.BEHAVIORAL_THERAPY.value],
            "primary_challenges": "Sustained attention during seated work",
        },
        "diagnosis": "ADHD, combined presentation",
    },
]

GOALS = [
    ("communication", "Use 3-word phrases to request preferred items in 4/5 opportunities"),
    ("social", "Take turns in a structured game with a peer for 5 minutes"),
    ("motor", "Copy a circle and a cross with a crayon independently"),
]

MILESTONES = [
    ("communication", "Names 50+ familiar objects", "3-4 years"),
    ("social", "Plays cooperatively with one peer", "4-5 years"),
    ("self-care", "Dresses with minimal help", "4-5 years"),
]


# =============================================================================
# Helpers
# =============================================================================

def demo_emails(therapist_email: str) -> list[str]:
    return [therapist_email] + [f["email"] for f in FAMILIES]


def reset_demo_data(db, therapist_email: str) -> None:
    """Delete demo users; database cascades remove their profiles, children and cases."""
    user_ids = [row.id for row in db.query(User.id).filter(User.email.in_(demo_emails(therapist_email))).all()]
    if not user_ids:
        return
    therapist_ids = [row.id for row in db.query(TherapistProfile.id).filter(TherapistProfile.user_id.in_(user_ids)).all()]
    if therapist_ids:
        db.query(Case).filter(Case.primary_therapist_id.in_(therapist_ids)).delete(synchronize_session=False)
    db.query(Worksheet).filter(Worksheet.created_by_id.in_(user_ids)).delete(synchronize_session=False)
    removed = db.query(User).filter(User.id.in_(user_ids)).delete(synchronize_session=False)
    db.flush()
    logger.info(f"Removed {removed} demo users")


def audit(db, case: Case, user: User, action: str, entity_type: str, entity_id, changes=None) -> None:
    db.add(CaseAuditLog.create_entry(case.id, user.id, action, entity_type, entity_id, changes))


# =============================================================================
# Seeding
# =============================================================================

def seed_therapist(db, email: str, password_hash: str) -> tuple[User, TherapistProfile]:
    user = User(
        email=email,
        password_hash=password_hash,
        name="Dr. Grace Mwangi",
        role=UserRole.THERAPIST,
    )
    db.add(user)
    db.flush()

    profile = TherapistProfile(
        user_id=user.id,
        title="Pediatric Speech-Language Pathologist",
        bio="Twelve years working with early communicators and their families.",
        specialties=["Speech Therapy", "Autism"],
        credentials=["CCC-SLP"],
        years_experience=12,
        default_timezone="Africa/Nairobi",
    )
    db.add(profile)
    db.flush()

    for day in range(1, 6):
        db.add(TherapistAvailability(
            therapist_id=profile.id, day_of_week=day, start_time="09:00", end_time="13:00",
            timezone=profile.default_timezone,
        ))

    if not db.query(SessionType.id).first():
        db.add_all([
            SessionType(name="Initial Consultation", duration=60, default_price=120.0),
            SessionType(name="Follow-up Session", duration=45, default_price=90.0),
            SessionType(name="Parent Coaching", duration=30, default_price=60.0),
        ])

    return user, profile


def seed_family(db, family: dict, password_hash: str) -> tuple[User, Child]:
    parent = User(email=family["email"], password_hash=password_hash, name=family["name"], role=UserRole.PARENT)
    db.add(parent)
    db.flush()

    profile = UserProfile(
        user_id=parent.id,
        full_name=family["name"],
        relationship_to_child=family["relationship"],
        email=family["email"],
        city="Nairobi",
        country="Kenya",
        onboarding_completed=True,
    )
    db.add(profile)
    db.flush()

    child = Child(
        profile_id=profile.id,
        has_condition=True,
        diagnosis_status=DiagnosisStatus.DIAGNOSED,
        **family["child"],
    )
    db.add(child)
    db.flush()

    db.add(ChildCondition(child_id=child.id, diagnosed_at=date.today() - timedelta(days=400), **family["condition"]))
    return parent, child


def seed_case(db, therapist: User, profile: TherapistProfile, parent: User, child: Child, diagnosis: str) -> Case:
    now = utcnow()
    case = Case(
        case_number=generate_case_number(db),
        child_id=child.id,
        primary_therapist_id=profile.id,
        status=CaseStatus.ACTIVE,
        diagnosis=diagnosis,
        referral_source="Pediatrician referral",
        opened_at=now - timedelta(days=90),
    )
    db.add(case)
    db.flush()
    db.add(CaseTherapist(
        case_id=case.id, therapist_id=profile.id, role=CaseTherapistRole.PRIMARY, permissions=dict(FULL_PERMISSIONS),
    ))
    audit(db, case, therapist, "CASE_CREATED", "Case", case.id, {"case_number": case.case_number})

    db.add(CaseInternalNote(
        case_id=case.id,
        author_id=therapist.id,
        content_encrypted=encrypt_text("Family prefers afternoon sessions; sibling often attends."),
    ))

    # IEP with goals
    iep = IEP(
        case_id=case.id,
        version=1,
        status=IEPStatus.ACTIVE,
        created_by_id=therapist.id,
        review_date=date.today() + timedelta(days=90),
        accommodations={"classroom": ["Visual schedule", "Movement breaks"]},
    )
    db.add(iep)
    db.flush()
    goals = []
    for order, (domain, text) in enumerate(GOALS, start=1):
        goal = IEPGoal(
            iep_id=iep.id, domain=domain, goal_text=text, order=order,
            status=GoalStatus.IN_PROGRESS, target_date=date.today() + timedelta(days=180),
        )
        db.add(goal)
        goals.append(goal)
    db.flush()
    audit(db, case, therapist, "IEP_CREATED", "IEP", iep.id, {"version": 1, "goals": len(goals)})

    # Sessions with goal progress and billing
    for week in range(3):
        session = CaseSession(
            case_id=case.id,
            therapist_id=therapist.id,
            scheduled_at=now - timedelta(days=21 - week * 7),
            session_type="Follow-up Session",
            actual_duration=45,
            attendance_status=AttendanceStatus.PRESENT,
            raw_notes="Worked on requesting with picture cards; good engagement.",
            note_format=SessionNoteFormat.SOAP,
            note_status=NoteStatus.SIGNED if week < 2 else NoteStatus.DRAFT,
            signed_at=now - timedelta(days=20 - week * 7) if week < 2 else None,
        )
        db.add(session)
        db.flush()
        for goal in goals:
            db.add(SessionGoalProgress(
                session_id=session.id, goal_id=goal.id,
                progress_value=20.0 + week * 10, progress_note="Steady progress",
            ))
        db.add(CaseBilling(
            case_id=case.id,
            session_id=session.id,
            amount=90.0,
            service_code="92507",
            status=BillingStatus.PAID if week == 0 else BillingStatus.PENDING,
            due_date=date.today() + timedelta(days=week * 7),
            paid_at=now - timedelta(days=14) if week == 0 else None,
        ))
        audit(db, case, therapist, "SESSION_CREATED", "CaseSession", session.id)

    # Milestone plan
    plan = MilestonePlan(
        case_id=case.id, version=1, status=MilestonePlanStatus.ACTIVE,
        shared_with_parent=True, created_by_id=therapist.id,
    )
    db.add(plan)
    db.flush()
    for order, (domain, description, age) in enumerate(MILESTONES, start=1):
        db.add(Milestone(
            plan_id=plan.id, domain=domain, description=description, expected_age=age, order=order,
            status=MilestoneStatus.EMERGING if order == 1 else MilestoneStatus.NOT_STARTED,
        ))

    # Documents and share with the parent
    report = CaseDocument(
        case_id=case.id,
        type=CaseDocumentType.PROGRESS_REPORT,
        title="Quarterly progress report",
        content="Summary of progress across communication, social and motor goals.",
        created_by_id=therapist.id,
    )
    assessment = CaseDocument(
        case_id=case.id,
        type=CaseDocumentType.ASSESSMENT,
        title="Initial assessment",
        file_url="https://files.carebridge.dev/demo/initial-assessment.pdf",
        created_by_id=therapist.id,
    )
    db.add_all([report, assessment])
    db.flush()
    db.add(DocumentShare(case_id=case.id, document_id=report.id, shared_with_id=parent.id, shared_by_id=therapist.id))
    audit(db, case, therapist, "DOCUMENT_SHARED", "CaseDocument", report.id, {"shared_with": str(parent.id)})

    # Consents granted by the parent
    for consent_type in (ConsentType.TREATMENT, ConsentType.SHARING, ConsentType.ASSESSMENT):
        consent = CaseConsent(
            case_id=case.id, type=consent_type, granted_by_id=parent.id,
            granted_at=now - timedelta(days=90), valid_until=now + timedelta(days=275),
        )
        db.add(consent)
        db.flush()
        audit(db, case, parent, "CONSENT_GRANTED", "CaseConsent", consent.id, {"type": consent_type.value})

    return case


def seed_worksheet(db, therapist: User, parent: User, child: Child, case: Case) -> None:
    worksheet = Worksheet(
        title="Turn-taking at home",
        description="Five short games to practise waiting and turn-taking.",
        domain="social",
        content={"activities": ["Roll the ball", "Build a tower together", "Simon says"]},
        created_by_id=therapist.id,
    )
    db.add(worksheet)
    db.flush()
    db.add(WorksheetAssignment(
        worksheet_id=worksheet.id,
        assigned_by_id=therapist.id,
        assigned_to_id=parent.id,
        child_id=child.id,
        case_id=case.id,
        status=WorksheetAssignmentStatus.ASSIGNED,
        due_date=date.today() + timedelta(days=7),
        notes="Try one game per evening.",
    ))


def seed_goal_bank(db) -> None:
    if db.query(GoalBankItem.id).first():
        return
    for domain, text in GOALS:
        db.add(GoalBankItem(domain=domain, condition="Autism Spectrum Disorder", goal_text=text, is_global=True))


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed CareBridge case management demo data")
    parser.add_argument("--reset", action="store_true", help="Remove previously seeded demo users first")
    parser.add_argument("--therapist-email", default=DEFAULT_THERAPIST_EMAIL)
    parser.add_argument("--password", default=DEFAULT_PASSWORD)
    args = parser.parse_args(argv)

    init_db()
    db = SessionLocal()
    try:
        with transaction(db):
            if args.reset:
                reset_demo_data(db, args.therapist_email)
            elif db.query(User.id).filter(User.email.in_(demo_emails(args.therapist_email))).first():
                logger.error("Demo users already exist. Re-run with --reset to recreate them.")
                return 1

            password_hash = hash_password(args.password)
            therapist, profile = seed_therapist(db, args.therapist_email, password_hash)
            seed_goal_bank(db)

            for family in FAMILIES:
                parent, child = seed_family(db, family, password_hash)
                case = seed_case(db, therapist, profile, parent, child, family["diagnosis"])
                seed_worksheet(db, therapist, parent, child, case)
                logger.info(f"Seeded case {case.case_number} for {child.first_name}")
    finally:
        db.close()

    logger.info(f"Done. Log in as {args.therapist_email} with the password you supplied.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

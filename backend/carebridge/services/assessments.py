"""
Developmental screening assessments.

A parent creates an assessment for one of their children and answers the
Tier 1 screen; domains Tier 1 flags get a Tier 2 follow-up. The parent may
share the assessment with a therapist, who can read it and, with ANNOTATE
access, add notes. Only the parent answers, shares, revokes or deletes.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.assessment import (
    AccessLevel,
    AnswerType,
    Assessment,
    AssessmentResponse,
    AssessmentShare,
    AssessmentStatus,
)
from ..models.marketplace import TherapistProfile
from ..models.profile import Child
from ..models.user import User, UserRole
from .assessment_scoring import AssessmentScoringService, domain_name
from .questionnaires import find_question, load_questionnaire


logger = logging.getLogger(__name__)

ASSESSMENT_TTL_DAYS = 14
DAYS_PER_MONTH = 30.44

scoring = AssessmentScoringService


class AssessmentService:
    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Access
    # =========================================================================

    def _get_child(self, child_id: UUID) -> Child:
        child = (
            self.db.query(Child)
            .options(selectinload(Child.profile))
            .filter(Child.id == child_id)
            .first()
        )
        if not child:
            raise NotFoundError("Child not found")
        return child

    @staticmethod
    def _owns(user: User, child: Child) -> bool:
        return child.profile is not None and child.profile.user_id == user.id

    def _load(self, assessment_id: UUID) -> Assessment:
        assessment = (
            self.db.query(Assessment)
            .options(
                selectinload(Assessment.child).selectinload(Child.profile),
                selectinload(Assessment.responses),
                selectinload(Assessment.shares),
            )
            .filter(Assessment.id == assessment_id)
            .first()
        )
        if not assessment:
            raise NotFoundError("Assessment not found")
        return assessment

    def get(self, user: User, assessment_id: UUID) -> Assessment:
        """The child's parent or a therapist holding an active share may read."""
        assessment = self._load(assessment_id)
        if self._owns(user, assessment.child):
            return assessment
        if any(s.is_active and s.shared_with_id == user.id for s in assessment.shares):
            return assessment
        raise ForbiddenError("You do not have access to this assessment")

    def _get_owned(self, user: User, assessment_id: UUID) -> Assessment:
        assessment = self._load(assessment_id)
        if not self._owns(user, assessment.child):
            raise ForbiddenError("Only the child's parent can change this assessment")
        return assessment

    # =========================================================================
    # Assessments
    # =========================================================================

    def create(self, user: User, child_id: UUID, age_group: str, now: Optional[datetime] = None) -> Assessment:
        child = self._get_child(child_id)
        if not self._owns(user, child):
            raise ForbiddenError("You do not have access to this child")

        load_questionnaire(age_group)

        now = now or utcnow()
        assessment = Assessment(
            child_id=child.id,
            age_group=age_group,
            status=AssessmentStatus.IN_PROGRESS,
            flagged_domains=[],
            expires_at=now + timedelta(days=ASSESSMENT_TTL_DAYS),
        )
        with transaction(self.db):
            self.db.add(assessment)

        logger.info(f"Assessment {assessment.id} created for child {child.id} ({age_group})")
        return assessment

    def list_for_child(self, user: User, child_id: UUID) -> list[Assessment]:
        child = self._get_child(child_id)
        if not self._owns(user, child):
            raise ForbiddenError("You do not have access to this child")

        return (
            self.db.query(Assessment)
            .options(selectinload(Assessment.responses), selectinload(Assessment.child))
            .filter(Assessment.child_id == child.id)
            .order_by(Assessment.created_at.desc())
            .all()
        )

    def delete(self, user: User, assessment_id: UUID) -> None:
        assessment = self._get_owned(user, assessment_id)
        with transaction(self.db):
            self.db.delete(assessment)
        logger.info(f"Assessment {assessment_id} deleted by user {user.id}")

    # =========================================================================
    # Questionnaires
    # =========================================================================

    def tier1_questionnaire(self, user: User, assessment_id: UUID) -> dict[str, Any]:
        assessment = self.get(user, assessment_id)
        questionnaire = load_questionnaire(assessment.age_group)
        return {
            "age_group": questionnaire["age_group"],
            "display_name": questionnaire["display_name"],
            "estimated_time": questionnaire["estimated_time"]["tier1"],
            "domains": [
                {
                    "domain_id": d["id"],
                    "domain_name": d["name"],
                    "description": d["description"],
                    "questions": d["tier1"],
                }
                for d in questionnaire["domains"]
            ],
        }

    def tier2_questionnaire(self, user: User, assessment_id: UUID) -> dict[str, Any]:
        """
        Tier 2 questions for the domains Tier 1 flagged.

        Raises:
            BadRequestError: Tier 1 is not complete, or it flagged nothing
        """
        assessment = self.get(user, assessment_id)
        if not assessment.tier1_completed:
            raise BadRequestError("Tier 1 must be completed first")
        flagged = list(assessment.flagged_domains or [])
        if not flagged:
            raise BadRequestError("No domains flagged for Tier 2")

        questionnaire = load_questionnaire(assessment.age_group)
        return {
            "age_group": questionnaire["age_group"],
            "display_name": questionnaire["display_name"],
            "estimated_time": questionnaire["estimated_time"]["tier2_per_domain"],
            "flagged_domains": flagged,
            "domains": [
                {
                    "domain_id": d["id"],
                    "domain_name": d["name"],
                    "description": d["description"],
                    "questions": d["tier2"],
                }
                for d in questionnaire["domains"]
                if d["id"] in flagged
            ],
        }

    # =========================================================================
    # Responses
    # =========================================================================

    def _check_not_expired(self, assessment: Assessment, now: datetime) -> None:
        if assessment.status == AssessmentStatus.EXPIRED:
            raise BadRequestError("Assessment has expired")
        if assessment.expires_at and assessment.expires_at < now:
            with transaction(self.db):
                assessment.status = AssessmentStatus.EXPIRED
            raise BadRequestError("Assessment has expired")

    @staticmethod
    def _latest_answers(responses: list[dict[str, Any]]) -> dict[str, AnswerType]:
        return {r["question_id"]: AnswerType(r["answer"]) for r in responses}

    def submit_tier1(
        self,
        user: User,
        assessment_id: UUID,
        responses: list[dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Score Tier 1 per domain and store the answers.

        Answers to questions outside Tier 1 are ignored. Domains with a
        risk index at the threshold, or a concerning red-flag answer, are
        flagged for Tier 2; without flags the assessment is complete.
        """
        now = now or utcnow()
        assessment = self._get_owned(user, assessment_id)
        if assessment.tier1_completed:
            raise BadRequestError("Tier 1 already completed")
        self._check_not_expired(assessment, now)

        answers = self._latest_answers(responses)
        questionnaire = load_questionnaire(assessment.age_group)

        domain_scores = []
        rows = []
        for domain in questionnaire["domains"]:
            domain_answers = [
                {"question_id": q["id"], "answer": answers[q["id"]]}
                for q in domain["tier1"]
                if q["id"] in answers
            ]
            if not domain_answers:
                continue

            domain_scores.append(scoring.calculate_domain_score(domain_answers, domain["tier1"], domain["id"]))
            questions = {q["id"]: q for q in domain["tier1"]}
            for item in domain_answers:
                question = questions[item["question_id"]]
                rows.append(AssessmentResponse(
                    tier=1,
                    domain=domain["id"],
                    question_id=item["question_id"],
                    answer=item["answer"],
                    score=scoring.calculate_question_score(
                        item["answer"], question["weight"], scoring.is_inverted(domain["id"], question),
                    ),
                ))

        if not domain_scores:
            raise BadRequestError("No Tier 1 answers submitted")

        flagged = [d.domain_id for d in domain_scores if d.tier2_required]
        overall = scoring.calculate_overall_score(domain_scores)

        with transaction(self.db):
            assessment.responses.extend(rows)
            assessment.tier1_completed = True
            assessment.tier1_completed_at = now
            assessment.flagged_domains = flagged
            assessment.domain_scores = {d.domain_id: d.to_stored() for d in domain_scores}
            assessment.overall_score = overall
            if flagged:
                assessment.status = AssessmentStatus.TIER2_REQUIRED
            else:
                assessment.status = AssessmentStatus.COMPLETED
                assessment.completed_at = now
        self.db.refresh(assessment)

        logger.info(f"Assessment {assessment.id} tier 1 scored: {len(flagged)} domains flagged")
        return {
            "tier2_required": bool(flagged),
            "flagged_domains": flagged,
            "domain_scores": [d.to_dict() for d in domain_scores],
            "overall_score": overall,
            "assessment": assessment,
        }

    def submit_tier2(
        self,
        user: User,
        assessment_id: UUID,
        responses: list[dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Store Tier 2 answers for flagged domains and complete the assessment. Other questions are skipped."""
        now = now or utcnow()
        assessment = self._get_owned(user, assessment_id)
        if not assessment.tier1_completed:
            raise BadRequestError("Tier 1 must be completed first")
        if assessment.tier2_completed:
            raise BadRequestError("Tier 2 already completed")
        flagged = set(assessment.flagged_domains or [])
        if not flagged:
            raise BadRequestError("No domains flagged for Tier 2")
        self._check_not_expired(assessment, now)

        questionnaire = load_questionnaire(assessment.age_group)
        rows = []
        for question_id, answer in self._latest_answers(responses).items():
            found = find_question(questionnaire, question_id)
            if found is None or found[2] != 2 or found[0]["id"] not in flagged:
                continue
            domain, question, _ = found
            rows.append(AssessmentResponse(
                tier=2,
                domain=domain["id"],
                question_id=question_id,
                answer=answer,
                score=scoring.calculate_question_score(
                    answer, question["weight"], scoring.is_inverted(domain["id"], question),
                ),
            ))

        with transaction(self.db):
            assessment.responses.extend(rows)
            assessment.tier2_completed = True
            assessment.tier2_completed_at = now
            assessment.status = AssessmentStatus.COMPLETED
            assessment.completed_at = now
        self.db.refresh(assessment)

        logger.info(f"Assessment {assessment.id} completed with {len(rows)} tier 2 answers")
        return {"completed": True, "assessment": assessment}

    # =========================================================================
    # Sharing
    # =========================================================================

    def share(
        self,
        user: User,
        assessment_id: UUID,
        therapist_id: UUID,
        access_level: AccessLevel = AccessLevel.VIEW,
    ) -> AssessmentShare:
        """
        Share with the therapist owning ``therapist_id`` (a therapist profile id).

        A revoked share is reactivated; an active one is a 400.
        """
        assessment = self._get_owned(user, assessment_id)
        therapist = self.db.query(TherapistProfile).filter(TherapistProfile.id == therapist_id).first()
        if not therapist:
            raise NotFoundError("Therapist not found")

        existing = (
            self.db.query(AssessmentShare)
            .filter(
                AssessmentShare.assessment_id == assessment.id,
                AssessmentShare.shared_with_id == therapist.user_id,
            )
            .first()
        )
        if existing and existing.is_active:
            raise BadRequestError("Assessment already shared with this therapist")

        with transaction(self.db):
            if existing:
                existing.is_active = True
                existing.access_level = access_level
                existing.shared_at = utcnow()
                share = existing
            else:
                share = AssessmentShare(
                    shared_by_id=user.id,
                    shared_with_id=therapist.user_id,
                    access_level=access_level,
                )
                assessment.shares.append(share)

        self._notify(
            therapist.user_id,
            "Screening shared with you",
            f"{user.name} shared a developmental screening",
            {"type": "assessment_shared", "assessment_id": str(assessment.id)},
        )
        logger.info(f"Assessment {assessment.id} shared with user {therapist.user_id} ({access_level.value})")
        return share

    def shared_with_me(self, user: User) -> list[AssessmentShare]:
        return (
            self.db.query(AssessmentShare)
            .options(
                selectinload(AssessmentShare.assessment).selectinload(Assessment.child),
                selectinload(AssessmentShare.shared_by),
            )
            .filter(AssessmentShare.shared_with_id == user.id, AssessmentShare.is_active.is_(True))
            .order_by(AssessmentShare.shared_at.desc())
            .all()
        )

    def revoke_share(self, user: User, assessment_id: UUID, therapist_user_id: UUID) -> None:
        assessment = self._get_owned(user, assessment_id)
        share = (
            self.db.query(AssessmentShare)
            .filter(
                AssessmentShare.assessment_id == assessment.id,
                AssessmentShare.shared_with_id == therapist_user_id,
            )
            .first()
        )
        if not share:
            raise NotFoundError("Share not found")

        with transaction(self.db):
            share.is_active = False
        logger.info(f"Assessment {assessment.id} share with user {therapist_user_id} revoked")

    def add_annotation(self, user: User, assessment_id: UUID, data: dict[str, Any]) -> AssessmentShare:
        share = (
            self.db.query(AssessmentShare)
            .filter(
                AssessmentShare.assessment_id == assessment_id,
                AssessmentShare.shared_with_id == user.id,
                AssessmentShare.is_active.is_(True),
            )
            .first()
        )
        if not share:
            raise ForbiddenError("You do not have access to this assessment")
        if share.access_level != AccessLevel.ANNOTATE:
            raise ForbiddenError("You do not have annotation permissions")

        note = {
            "id": str(uuid.uuid4()),
            "notes": data["notes"],
            "domain": data.get("domain"),
            "question_id": data.get("question_id"),
            "section_id": data.get("section_id"),
            "metadata": data.get("metadata"),
            "created_at": utcnow().isoformat(),
            "created_by": str(user.id),
        }
        existing = share.annotations or {}
        with transaction(self.db):
            # reassign so the JSON column registers the change
            share.annotations = {**existing, "notes": [*existing.get("notes", []), note]}
        return share

    # =========================================================================
    # Reports
    # =========================================================================

    def report(self, user: User, assessment_id: UUID, now: Optional[datetime] = None) -> dict[str, Any]:
        """
        Report data for a completed assessment.

        Raises:
            BadRequestError: the assessment is not completed
        """
        assessment = self.get(user, assessment_id)
        if assessment.status != AssessmentStatus.COMPLETED:
            raise BadRequestError("Assessment must be completed to view report")

        questionnaire = load_questionnaire(assessment.age_group)
        child = assessment.child
        today = (now or utcnow()).date()
        age_months = int((today - child.date_of_birth).days / DAYS_PER_MONTH)

        domains = []
        for domain_id, data in (assessment.domain_scores or {}).items():
            risk_index = data["riskIndex"]
            zone = scoring.calculate_zone(risk_index)
            name = domain_name(domain_id)
            domains.append({
                "domain_id": domain_id,
                "domain_name": name,
                "risk_index": risk_index,
                "status": data["status"],
                "zone": zone,
                "tier2_required": data["tier2Required"],
                "tier2_reason": data.get("tier2Reason"),
                "interpretation": scoring.domain_interpretation(name, risk_index, zone),
                "recommendations": scoring.domain_recommendations(domain_id, zone),
            })

        average_risk = sum(d["risk_index"] for d in domains) / len(domains) if domains else 0.0
        development_percentage = (1 - average_risk) * 100
        flagged = sum(1 for d in domains if d["zone"] in ("yellow", "red"))

        responses = []
        for r in assessment.responses:
            found = find_question(questionnaire, r.question_id)
            responses.append({
                "id": r.id,
                "tier": r.tier,
                "domain": r.domain,
                "question_id": r.question_id,
                "answer": r.answer,
                "score": r.score,
                "question": found[1]["question"] if found else None,
            })

        return {
            "assessment": {
                "id": assessment.id,
                "status": assessment.status,
                "completed_at": assessment.completed_at,
                "overall_score": assessment.overall_score,
            },
            "child": {"id": child.id, "first_name": child.first_name, "date_of_birth": child.date_of_birth},
            "age_group": questionnaire["display_name"],
            "domain_scores": domains,
            "recommendations": scoring.get_recommendations([d["status"] for d in domains]),
            "responses": responses,
            "developmental_age_equivalent": scoring.developmental_age(development_percentage, age_months),
            "overall_interpretation": scoring.overall_interpretation(
                development_percentage, flagged, len(domains),
            ),
        }

    def history(self, user: User, child_id: UUID) -> dict[str, Any]:
        """Completed screenings for a trend chart. Parents see their own child; therapists and admins any."""
        child = self._get_child(child_id)
        if not (self._owns(user, child) or user.role in (UserRole.THERAPIST, UserRole.ADMIN)):
            raise ForbiddenError("You do not have access to this child")

        assessments = (
            self.db.query(Assessment)
            .filter(
                Assessment.child_id == child.id,
                Assessment.status == AssessmentStatus.COMPLETED,
                Assessment.completed_at.isnot(None),
            )
            .order_by(Assessment.completed_at.asc())
            .all()
        )

        return {
            "child_id": child.id,
            "child_name": child.first_name,
            "results": [
                {
                    "id": a.id,
                    "completed_at": a.completed_at,
                    "total_score": a.overall_score or 0,
                    "domains": [
                        {
                            "name": domain_name(domain_id),
                            "domain_id": domain_id,
                            "score": round((1 - (data.get("riskIndex") or 0)) * 100),
                            "max_score": 100,
                        }
                        for domain_id, data in a.domain_scores.items()
                    ],
                }
                for a in assessments
                if a.domain_scores
            ],
        }

    # =========================================================================
    # Notifications
    # =========================================================================

    @staticmethod
    def _notify(user_id: UUID, title: str, body: str, data: dict[str, Any]) -> None:
        try:
            from ..tasks.notification_tasks import send_push_notification

            send_push_notification.delay(str(user_id), title, body, data)
        except Exception as e:
            logger.error(f"Failed to queue push notification: {e}")

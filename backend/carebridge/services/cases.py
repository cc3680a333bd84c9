"""
Case management service.

Handles case creation, listing and detail, status changes, therapist
assignment and transfer, and encrypted internal notes. Every mutation
writes a ``CaseAuditLog`` entry in the same transaction.
"""

import logging
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, NotFoundError
from ..core.security import encrypt_text, decrypt_text
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.case import (
    Case, CaseTherapist, CaseInternalNote, CaseStatus, CaseTherapistRole,
    FULL_PERMISSIONS, DEFAULT_PERMISSIONS,
)
from ..models.case_session import CaseSession
from ..models.iep import IEP, IEPStatus
from ..models.marketplace import Booking, BookingStatus, TherapistProfile
from ..models.profile import Child, UserProfile
from ..models.user import User, UserRole
from .audit import AuditService
from .case_access import CaseAccess
from .case_number import generate_case_number
from .pagination import paginate_by_cursor


logger = logging.getLogger(__name__)

CANCELLED_BOOKING_STATUSES = (
    BookingStatus.CANCELLED_BY_PATIENT,
    BookingStatus.CANCELLED_BY_THERAPIST,
)


class CaseService:
    """Case-level operations. Case-scoped methods take a resolved ``CaseAccess``."""

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # =========================================================================
    # Create / List / Detail
    # =========================================================================

    def create_case(
        self,
        user: User,
        child_id: UUID,
        diagnosis: Optional[str] = None,
        referral_source: Optional[str] = None,
        notes: Optional[str] = None,
        organization_id: Optional[UUID] = None,
    ) -> Case:
        therapist = user.therapist_profile
        if therapist is None:
            raise BadRequestError("Therapist profile required to create a case")

        child = self.db.query(Child).filter(Child.id == child_id).first()
        if not child:
            raise NotFoundError("Child not found")

        case = Case(
            case_number=generate_case_number(self.db),
            child_id=child.id,
            primary_therapist_id=therapist.id,
            organization_id=organization_id or therapist.organization_id,
            diagnosis=diagnosis,
            referral_source=referral_source,
            notes=notes,
        )
        case.therapists.append(
            CaseTherapist(
                therapist_id=therapist.id,
                role=CaseTherapistRole.PRIMARY,
                permissions=dict(FULL_PERMISSIONS),
            )
        )

        with transaction(self.db):
            self.db.add(case)
            self.db.flush()
            self.audit.log(case.id, user.id, "CASE_CREATED", "Case", case.id, {"case_number": case.case_number})

        logger.info(f"Case {case.case_number} created by therapist {therapist.id}")
        return case

    def list_cases(
        self,
        user: User,
        status: Optional[CaseStatus] = None,
        child_id: Optional[UUID] = None,
        search: Optional[str] = None,
        cursor: Optional[Union[str, UUID]] = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        """
        Cases visible to ``user``.

        Therapists see cases where they are primary or actively assigned.
        Parents see their children's cases. Admins see every case.
        """
        query = (
            self.db.query(Case)
            .join(Child, Case.child_id == Child.id)
            .options(selectinload(Case.child), selectinload(Case.therapists))
        )

        if user.role == UserRole.ADMIN:
            pass
        elif user.therapist_profile is not None:
            therapist_id = user.therapist_profile.id
            assigned = (
                self.db.query(CaseTherapist.case_id)
                .filter(
                    CaseTherapist.therapist_id == therapist_id,
                    CaseTherapist.removed_at.is_(None),
                )
            )
            query = query.filter(
                or_(Case.primary_therapist_id == therapist_id, Case.id.in_(assigned))
            )
        else:
            own_profiles = self.db.query(UserProfile.id).filter(UserProfile.user_id == user.id)
            query = query.filter(Child.profile_id.in_(own_profiles))

        if status:
            query = query.filter(Case.status == status)
        if child_id:
            query = query.filter(Case.child_id == child_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Case.case_number).like(pattern),
                    func.lower(Child.first_name).like(pattern),
                )
            )

        return paginate_by_cursor(query, Case, cursor, limit)

    def get_case_detail(self, access: CaseAccess) -> dict[str, Any]:
        case = access.case
        now = utcnow()

        latest_iep = (
            self.db.query(IEP)
            .options(selectinload(IEP.goals))
            .filter(IEP.case_id == case.id, IEP.status.in_((IEPStatus.ACTIVE, IEPStatus.DRAFT)))
            .order_by(IEP.version.desc())
            .first()
        )
        next_session = (
            self.db.query(CaseSession)
            .filter(CaseSession.case_id == case.id, CaseSession.scheduled_at > now)
            .order_by(CaseSession.scheduled_at.asc())
            .first()
        )
        recent_sessions = (
            self.db.query(CaseSession)
            .filter(CaseSession.case_id == case.id)
            .order_by(CaseSession.scheduled_at.desc())
            .limit(5)
            .all()
        )

        return {
            "case": case,
            "child": case.child,
            "therapists": case.active_therapists,
            "counts": {
                "sessions": len(case.sessions),
                "ieps": len(case.ieps),
                "milestone_plans": len(case.milestone_plans),
                "documents": len(case.documents),
                "consents": len(case.consents),
                "billing_records": len(case.billing_records),
            },
            "latest_iep": latest_iep,
            "next_session": next_session,
            "recent_sessions": recent_sessions,
            "access": {
                "role": access.role,
                "is_primary": access.is_primary,
                "can_edit": access.can_edit,
                "can_view_notes": access.can_view_notes,
            },
        }

    # =========================================================================
    # Status
    # =========================================================================

    def update_status(
        self,
        access: CaseAccess,
        status: CaseStatus,
        discharge_reason: Optional[str] = None,
    ) -> Case:
        case = access.case
        old_status = case.status

        with transaction(self.db):
            if status == CaseStatus.DISCHARGED:
                case.discharged_at = utcnow()
                case.discharge_reason = discharge_reason
            elif old_status == CaseStatus.ARCHIVED and status == CaseStatus.ACTIVE:
                case.discharged_at = None
                case.discharge_reason = None
            case.status = status
            self.audit.log(
                case.id, access.user.id, "STATUS_CHANGED", "Case", case.id,
                {"from": old_status.value, "to": status.value},
            )

        logger.info(f"Case {case.id} status {old_status.value} -> {status.value}")
        return case

    # =========================================================================
    # Therapists
    # =========================================================================

    def _get_assignment(self, case_id: UUID, therapist_id: UUID) -> Optional[CaseTherapist]:
        return (
            self.db.query(CaseTherapist)
            .filter(CaseTherapist.case_id == case_id, CaseTherapist.therapist_id == therapist_id)
            .first()
        )

    def list_therapists(self, access: CaseAccess) -> list[CaseTherapist]:
        return access.case.active_therapists

    def add_therapist(
        self,
        access: CaseAccess,
        therapist_id: UUID,
        role: CaseTherapistRole = CaseTherapistRole.SECONDARY,
        permissions: Optional[dict[str, bool]] = None,
    ) -> CaseTherapist:
        case = access.case
        therapist = self.db.query(TherapistProfile).filter(TherapistProfile.id == therapist_id).first()
        if not therapist:
            raise NotFoundError("Therapist not found")
        if role == CaseTherapistRole.PRIMARY:
            raise BadRequestError("Use transfer to change the primary therapist")

        merged = dict(DEFAULT_PERMISSIONS)
        merged.update(permissions or {})

        assignment = self._get_assignment(case.id, therapist.id)
        if assignment and assignment.removed_at is None:
            raise BadRequestError("Therapist already assigned to this case")

        with transaction(self.db):
            if assignment:
                assignment.removed_at = None
                assignment.added_at = utcnow()
                assignment.role = role
                assignment.permissions = merged
            else:
                assignment = CaseTherapist(
                    therapist_id=therapist.id,
                    role=role,
                    permissions=merged,
                )
                case.therapists.append(assignment)
                self.db.flush()
            self.audit.log(
                case.id, access.user.id, "THERAPIST_ADDED", "CaseTherapist", assignment.id,
                {"therapist_id": str(therapist.id), "role": role.value},
            )

        return assignment

    def update_therapist(
        self,
        access: CaseAccess,
        therapist_id: UUID,
        role: Optional[CaseTherapistRole] = None,
        permissions: Optional[dict[str, bool]] = None,
    ) -> CaseTherapist:
        case = access.case
        assignment = self._get_assignment(case.id, therapist_id)
        if not assignment or assignment.removed_at is not None:
            raise NotFoundError("Therapist not assigned to this case")
        if role == CaseTherapistRole.PRIMARY and therapist_id != case.primary_therapist_id:
            raise BadRequestError("Use transfer to change the primary therapist")

        changes: dict[str, Any] = {"therapist_id": str(therapist_id)}
        with transaction(self.db):
            if role is not None:
                assignment.role = role
                changes["role"] = role.value
            if permissions is not None:
                merged = dict(assignment.permissions or {})
                merged.update(permissions)
                assignment.permissions = merged
                changes["permissions"] = merged
            self.audit.log(case.id, access.user.id, "THERAPIST_UPDATED", "CaseTherapist", assignment.id, changes)

        return assignment

    def remove_therapist(self, access: CaseAccess, therapist_id: UUID) -> None:
        case = access.case
        if therapist_id == case.primary_therapist_id:
            raise BadRequestError("Cannot remove primary therapist. Transfer case first")

        assignment = self._get_assignment(case.id, therapist_id)
        if not assignment or assignment.removed_at is not None:
            raise NotFoundError("Therapist not assigned to this case")

        with transaction(self.db):
            assignment.removed_at = utcnow()
            self.audit.log(
                case.id, access.user.id, "THERAPIST_REMOVED", "CaseTherapist", assignment.id,
                {"therapist_id": str(therapist_id)},
            )

    def transfer_case(self, access: CaseAccess, new_primary_therapist_id: UUID) -> Case:
        """
        Make an assigned therapist the primary.

        The new primary gets full permissions and the previous primary is
        demoted to SECONDARY in the same transaction.
        """
        case = access.case
        if new_primary_therapist_id == case.primary_therapist_id:
            raise BadRequestError("Therapist is already the primary therapist")

        new_assignment = self._get_assignment(case.id, new_primary_therapist_id)
        if not new_assignment or new_assignment.removed_at is not None:
            raise BadRequestError("New primary therapist must be assigned to the case first")

        old_primary_id = case.primary_therapist_id
        old_assignment = self._get_assignment(case.id, old_primary_id)

        with transaction(self.db):
            case.primary_therapist_id = new_primary_therapist_id
            new_assignment.role = CaseTherapistRole.PRIMARY
            new_assignment.permissions = dict(FULL_PERMISSIONS)
            if old_assignment:
                old_assignment.role = CaseTherapistRole.SECONDARY
            self.audit.log(
                case.id, access.user.id, "CASE_TRANSFERRED", "Case", case.id,
                {"from": str(old_primary_id), "to": str(new_primary_therapist_id)},
            )

        self.db.refresh(case)
        logger.info(f"Case {case.id} transferred to therapist {new_primary_therapist_id}")
        return case

    # =========================================================================
    # Internal Notes
    # =========================================================================

    @staticmethod
    def _note_dict(note: CaseInternalNote) -> dict[str, Any]:
        return {
            "id": note.id,
            "case_id": note.case_id,
            "author_id": note.author_id,
            "author_name": note.author.name if note.author else None,
            "content": decrypt_text(note.content_encrypted),
            "created_at": note.created_at,
        }

    def list_internal_notes(self, access: CaseAccess) -> list[dict[str, Any]]:
        notes = (
            self.db.query(CaseInternalNote)
            .options(selectinload(CaseInternalNote.author))
            .filter(CaseInternalNote.case_id == access.case.id)
            .order_by(CaseInternalNote.created_at.desc())
            .all()
        )
        return [self._note_dict(n) for n in notes]

    def add_internal_note(self, access: CaseAccess, content: str) -> dict[str, Any]:
        content = (content or "").strip()
        if not content:
            raise BadRequestError("Note content is required")

        note = CaseInternalNote(
            case_id=access.case.id,
            author_id=access.user.id,
            content_encrypted=encrypt_text(content),
        )
        with transaction(self.db):
            self.db.add(note)
            self.db.flush()
            self.audit.log(access.case.id, access.user.id, "NOTE_ADDED", "CaseInternalNote", note.id)

        self.db.refresh(note)
        return self._note_dict(note)

    # =========================================================================
    # Timeline / Patients
    # =========================================================================

    def timeline(self, access: CaseAccess, cursor: Optional[str] = None, limit: int = 20) -> dict[str, Any]:
        return self.audit.timeline(access.case.id, cursor, limit)

    def therapist_patients(self, user: User, search: Optional[str] = None) -> list[Child]:
        """
        Children of parents holding a non-cancelled booking with this therapist.

        Used by the therapist app to pick a child when opening a case.
        """
        therapist = user.therapist_profile
        if therapist is None:
            raise BadRequestError("Therapist profile required")

        patient_ids = (
            self.db.query(Booking.patient_id)
            .filter(
                Booking.therapist_id == therapist.id,
                Booking.status.notin_(CANCELLED_BOOKING_STATUSES),
            )
            .distinct()
        )
        query = (
            self.db.query(Child)
            .join(UserProfile, Child.profile_id == UserProfile.id)
            .options(selectinload(Child.conditions), selectinload(Child.profile))
            .filter(UserProfile.user_id.in_(patient_ids))
        )
        if search:
            query = query.filter(func.lower(Child.first_name).like(f"%{search.strip().lower()}%"))

        return query.order_by(Child.first_name.asc()).all()

"""
SQLAlchemy ORM models for CareBridge.

Importing this package registers every table on ``Base.metadata``.
Internal case notes are stored encrypted in the database.
"""

from .user import User, UserRole, UserStatus, ROLE_PERMISSIONS, get_permissions_for_role
from .profile import (
    UserProfile, Child, ChildCondition,
    Gender, SchoolType, DiagnosisStatus, ConditionType, Severity, TherapyType,
)
from .marketplace import (
    Organization, TherapistProfile, SessionType, SessionPricing,
    TherapistAvailability, AvailabilityException, Booking, SessionRating,
    ExceptionType, BookingStatus, RaterType, LIVE_BOOKING_STATUSES,
)
from .case import (
    Case, CaseTherapist, CaseInternalNote,
    CaseStatus, CaseTherapistRole, FULL_PERMISSIONS, DEFAULT_PERMISSIONS,
)
from .audit_log import CaseAuditLog
from .case_session import CaseSession, SessionGoalProgress, AttendanceStatus, SessionNoteFormat, NoteStatus
from .iep import IEP, IEPGoal, IEPTemplate, GoalBankItem, IEPStatus, GoalStatus
from .milestone import MilestonePlan, Milestone, MilestonePlanStatus, MilestoneStatus
from .case_document import CaseDocument, DocumentShare, CaseDocumentType
from .consent import CaseConsent, ConsentType, REQUIRED_CONSENT_TYPES
from .billing import CaseBilling, BillingStatus
from .worksheet import Worksheet, WorksheetAssignment, WorksheetAssignmentStatus
from .community import Post, PostComment, Vote, Bookmark, PostReport, PostType, ReportStatus
from .qa import Question, QuestionFollow, Answer, AnswerVote, QuestionStatus
from .notification import DeviceToken, DevicePlatform
from .assessment import Assessment, AssessmentResponse, AssessmentShare, AssessmentStatus, AnswerType, AccessLevel

__all__ = [
    # Users
    "User",
    "UserRole",
    "UserStatus",
    "ROLE_PERMISSIONS",
    "get_permissions_for_role",
    # Profile
    "UserProfile",
    "Child",
    "ChildCondition",
    "Gender",
    "SchoolType",
    "DiagnosisStatus",
    "ConditionType",
    "Severity",
    "TherapyType",
    # Marketplace
    "Organization",
    "TherapistProfile",
    "SessionType",
    "SessionPricing",
    "TherapistAvailability",
    "AvailabilityException",
    "Booking",
    "SessionRating",
    "ExceptionType",
    "BookingStatus",
    "RaterType",
    "LIVE_BOOKING_STATUSES",
    # Case management
    "Case",
    "CaseTherapist",
    "CaseInternalNote",
    "CaseStatus",
    "CaseTherapistRole",
    "FULL_PERMISSIONS",
    "DEFAULT_PERMISSIONS",
    "CaseAuditLog",
    "CaseSession",
    "SessionGoalProgress",
    "AttendanceStatus",
    "SessionNoteFormat",
    "NoteStatus",
    "IEP",
    "IEPGoal",
    "IEPTemplate",
    "GoalBankItem",
    "IEPStatus",
    "GoalStatus",
    "MilestonePlan",
    "Milestone",
    "MilestonePlanStatus",
    "MilestoneStatus",
    "CaseDocument",
    "DocumentShare",
    "CaseDocumentType",
    "CaseConsent",
    "ConsentType",
    "REQUIRED_CONSENT_TYPES",
    "CaseBilling",
    "BillingStatus",
    "Worksheet",
    "WorksheetAssignment",
    "WorksheetAssignmentStatus",
    # Community
    "Post",
    "PostComment",
    "Vote",
    "Bookmark",
    "PostReport",
    "PostType",
    "ReportStatus",
    "Question",
    "QuestionFollow",
    "Answer",
    "AnswerVote",
    "QuestionStatus",
    # Notifications
    "DeviceToken",
    "DevicePlatform",
    # Screening
    "Assessment",
    "AssessmentResponse",
    "AssessmentShare",
    "AssessmentStatus",
    "AnswerType",
    "AccessLevel",
]

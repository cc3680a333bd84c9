"""
Business logic services for CareBridge.

Contains all business logic separated from the API layer.
Services take a database session, raise ServiceError subclasses on
failure, and never touch HTTP concerns.
"""

from .audit import AuditService
from .profile import ProfileService
from .cases import CaseService
from .case_sessions import CaseSessionService
from .ieps import IEPService
from .milestone_plans import MilestonePlanService
from .case_documents import CaseDocumentService
from .case_consents import CaseConsentService
from .case_billing import CaseBillingService
from .worksheets import WorksheetService
from .assessments import AssessmentService
from .posts import PostService
from .comments import CommentService
from .votes import VoteService
from .bookmarks import BookmarkService
from .questions import QuestionService
from .answers import AnswerService
from .therapists import TherapistService
from .availability import AvailabilityService
from .booking import BookingService
from .ratings import RatingService
from .device_tokens import DeviceTokenService
from .push import PushService
from .ai import AIService, get_ai_service
from .cache import CacheService, get_cache

__all__ = [
    "AuditService",
    "ProfileService",
    "CaseService",
    "CaseSessionService",
    "IEPService",
    "MilestonePlanService",
    "CaseDocumentService",
    "CaseConsentService",
    "CaseBillingService",
    "WorksheetService",
    "AssessmentService",
    "PostService",
    "CommentService",
    "VoteService",
    "BookmarkService",
    "QuestionService",
    "AnswerService",
    "TherapistService",
    "AvailabilityService",
    "BookingService",
    "RatingService",
    "DeviceTokenService",
    "PushService",
    "AIService",
    "get_ai_service",
    "CacheService",
    "get_cache",
]

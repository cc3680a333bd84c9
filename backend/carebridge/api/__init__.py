"""
API route controllers for CareBridge.

Contains FastAPI routers for different endpoints.
Routes handle HTTP requests and delegate to services for business logic.
"""

from .health import router as health_router
from .auth import router as auth_router
from .profile import router as profile_router
from .cases import router as cases_router
from .case_sessions import router as case_sessions_router
from .ieps import router as ieps_router, templates_router as iep_templates_router, goal_bank_router
from .milestone_plans import router as milestone_plans_router
from .case_documents import router as case_documents_router, shared_router as shared_documents_router
from .case_consents import router as case_consents_router
from .case_billing import router as case_billing_router
from .worksheets import router as worksheets_router
from .assessments import router as assessments_router
from .posts import router as posts_router, comments_router, reports_router
from .votes import router as votes_router
from .bookmarks import router as bookmarks_router
from .questions import router as questions_router, answers_router
from .marketplace import router as marketplace_router
from .notifications import router as notifications_router
from .ai import router as ai_router

__all__ = [
    "health_router",
    "auth_router",
    "profile_router",
    "cases_router",
    "case_sessions_router",
    "ieps_router",
    "iep_templates_router",
    "goal_bank_router",
    "milestone_plans_router",
    "case_documents_router",
    "shared_documents_router",
    "case_consents_router",
    "case_billing_router",
    "worksheets_router",
    "assessments_router",
    "posts_router",
    "comments_router",
    "reports_router",
    "votes_router",
    "bookmarks_router",
    "questions_router",
    "answers_router",
    "marketplace_router",
    "notifications_router",
    "ai_router",
]

"""
Profile completeness scoring.

SCORING RULES:
- basic_info:   full_name, relationship_to_child   full=20, one field=10
- contact_info: phone_number, email                full=15, one field=8
- location:     city, state                        full=10, one field=5
- background:   occupation, education_level        full=10, one field=5
- children:     at least one child                 25
- conditions:   any child has at least one condition 20

A field counts when it is truthy. Maximum total is 100.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..models.profile import UserProfile

logger = logging.getLogger(__name__)


# =============================================================================
# Scoring Constants
# =============================================================================

# (section name, fields, full score, partial score)
FIELD_SECTIONS = (
    ("basic_info", ("full_name", "relationship_to_child"), 20, 10),
    ("contact_info", ("phone_number", "email"), 15, 8),
    ("location", ("city", "state"), 10, 5),
    ("background", ("occupation", "education_level"), 10, 5),
)

CHILDREN_SCORE = 25
CONDITIONS_SCORE = 20

MAX_SCORE = sum(s[2] for s in FIELD_SECTIONS) + CHILDREN_SCORE + CONDITIONS_SCORE


# =============================================================================
# Breakdown Dataclasses
# =============================================================================

@dataclass
class SectionScore:
    """Score of a single completeness section."""
    score: int
    max_score: int
    items: Optional[dict[str, bool]] = None
    count: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.score == self.max_score

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "score": self.score,
            "max_score": self.max_score,
            "completed": self.completed,
        }
        if self.items is not None:
            data["items"] = self.items
        if self.count is not None:
            data["count"] = self.count
        return data


@dataclass
class CompletenessBreakdown:
    """Full completeness result with per-section detail."""
    sections: dict[str, SectionScore] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    @property
    def total_score(self) -> int:
        return sum(s.score for s in self.sections.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_score": self.total_score,
            "sections": {name: s.to_dict() for name, s in self.sections.items()},
            "last_updated": self.last_updated,
        }


# =============================================================================
# Scoring Functions
# =============================================================================

def _score_fields(profile: Optional[UserProfile], fields: tuple, full: int, partial: int) -> SectionScore:
    items = {name: bool(profile is not None and getattr(profile, name)) for name in fields}
    present = sum(items.values())
    if present == len(fields):
        score = full
    elif present:
        score = partial
    else:
        score = 0
    return SectionScore(score=score, max_score=full, items=items)


def calculate_breakdown(profile: Optional[UserProfile]) -> CompletenessBreakdown:
    """
    Compute the breakdown for ``profile``.

    A missing profile yields an all-zero breakdown.
    """
    breakdown = CompletenessBreakdown(
        last_updated=profile.last_completed_at if profile is not None else None,
    )

    for name, fields, full, partial in FIELD_SECTIONS:
        breakdown.sections[name] = _score_fields(profile, fields, full, partial)

    children = list(profile.children) if profile is not None else []
    condition_count = sum(len(child.conditions) for child in children)

    breakdown.sections["children"] = SectionScore(
        score=CHILDREN_SCORE if children else 0,
        max_score=CHILDREN_SCORE,
        count=len(children),
    )
    breakdown.sections["conditions"] = SectionScore(
        score=CONDITIONS_SCORE if condition_count else 0,
        max_score=CONDITIONS_SCORE,
        count=condition_count,
    )

    return breakdown


def calculate_score(profile: Optional[UserProfile]) -> int:
    return calculate_breakdown(profile).total_score

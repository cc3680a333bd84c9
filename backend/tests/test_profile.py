"""
Tests for profile completeness scoring and the profile service.
"""

from datetime import date, timedelta

import pytest

from carebridge.core.exceptions import BadRequestError, NotFoundError
from carebridge.models import ChildCondition, ConditionType, Gender, UserProfile
from carebridge.services.completeness import MAX_SCORE, calculate_breakdown, calculate_score
from carebridge.services.profile import ProfileService


class TestCompletenessScoring:
    def test_max_score_is_100(self) -> None:
        assert MAX_SCORE == 100

    def test_missing_profile_scores_zero(self) -> None:
        breakdown = calculate_breakdown(None)
        assert breakdown.total_score == 0
        assert breakdown.sections["children"].count == 0

    def test_partial_sections(self) -> None:
        profile = UserProfile(full_name="Amina", phone_number="+254700000000", city="Nairobi", state="Nairobi")
        profile.children = []
        breakdown = calculate_breakdown(profile)

        assert breakdown.sections["basic_info"].score == 10
        assert breakdown.sections["contact_info"].score == 8
        assert breakdown.sections["location"].score == 10
        assert breakdown.sections["location"].completed
        assert breakdown.sections["background"].score == 0
        assert breakdown.total_score == 28

    def test_children_and_conditions(self, db, parent) -> None:
        profile = parent.profile
        assert calculate_breakdown(profile).sections["children"].score == 25
        assert calculate_breakdown(profile).sections["conditions"].score == 0

        profile.children[0].conditions.append(ChildCondition(condition_type=ConditionType.ADHD))
        db.commit()
        assert calculate_breakdown(profile).sections["conditions"].score == 20

    def test_to_dict_shape(self, parent) -> None:
        data = calculate_breakdown(parent.profile).to_dict()
        assert data["total_score"] == calculate_score(parent.profile)
        assert data["sections"]["children"]["count"] == 1
        assert "items" in data["sections"]["basic_info"]


class TestProfileService:
    def test_get_profile_creates_missing_profile(self, db, make_user) -> None:
        user = make_user(name="Daniel Kim")
        profile = ProfileService(db).get_profile(user)

        assert profile.full_name == "Daniel Kim"
        assert profile.email == user.email
        assert profile.completeness_score == 10 + 8
        assert profile.last_completed_at is not None

    def test_update_profile_persists_score(self, db, parent) -> None:
        service = ProfileService(db)
        before = service.recalculate(parent)["completeness_score"]
        assert before == 10 + 8 + 25
        profile = service.update_profile(parent, {"occupation": "Teacher", "education_level": "Masters"})
        assert profile.completeness_score == before + 10

    def test_add_child_rejects_future_birth_date(self, db, parent) -> None:
        with pytest.raises(BadRequestError):
            ProfileService(db).add_child(parent, {
                "first_name": "Leo",
                "date_of_birth": date.today() + timedelta(days=1),
                "gender": Gender.MALE,
            })

    def test_condition_lifecycle_updates_flags(self, db, parent, child) -> None:
        service = ProfileService(db)
        condition = service.add_condition(parent, child.id, {"condition_type": ConditionType.AUTISM_SPECTRUM})
        assert child.has_condition is True
        assert service.get_profile(parent).completeness_score >= 45

        service.delete_condition(parent, condition.id)
        assert child.has_condition is False

    def test_other_users_child_is_not_found(self, db, parent, child, make_user) -> None:
        stranger = make_user()
        with pytest.raises(NotFoundError):
            ProfileService(db).get_child(stranger, child.id)

    def test_onboarding_status(self, db, parent) -> None:
        service = ProfileService(db)
        assert service.onboarding_status(parent)["needs_onboarding"] is True
        service.complete_onboarding(parent)
        assert service.onboarding_status(parent)["needs_onboarding"] is False

"""
Tests for developmental screening: scoring rules, the two-tier workflow,
sharing with therapists, reports and the HTTP routes.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from carebridge.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from carebridge.models import (
    AccessLevel, AnswerType, AssessmentResponse, AssessmentStatus, UserRole,
)
from carebridge.services.assessment_scoring import AssessmentScoringService
from carebridge.services.assessments import AssessmentService
from carebridge.services.questionnaires import find_question, load_questionnaire


AGE_GROUP = "24-36-months"
BASE = datetime(2021, 10, 12, 9, 0, tzinfo=timezone.utc)

scoring = AssessmentScoringService


def _good(domain_id: str, question: dict) -> AnswerType:
    return AnswerType.NO if scoring.is_inverted(domain_id, question) else AnswerType.YES


def _tier1_answers(overrides: dict = None) -> list:
    """Expected answers for every Tier 1 question, with per-question overrides."""
    overrides = overrides or {}
    answers = []
    for domain in load_questionnaire(AGE_GROUP)["domains"]:
        for question in domain["tier1"]:
            answer = overrides.get(question["id"], _good(domain["id"], question))
            answers.append({"question_id": question["id"], "answer": answer})
    return answers


def _domain_all(domain_id: str, answer: AnswerType) -> dict:
    domain = next(d for d in load_questionnaire(AGE_GROUP)["domains"] if d["id"] == domain_id)
    return {q["id"]: answer for q in domain["tier1"]}


# ── Questionnaires ───────────────────────────────────────────────────────────


class TestQuestionnaires:
    def test_structure(self) -> None:
        questionnaire = load_questionnaire(AGE_GROUP)
        assert questionnaire["display_name"] == "2-3 Years"
        assert len(questionnaire["domains"]) == 8
        for domain in questionnaire["domains"]:
            assert len(domain["tier1"]) == 3
            assert len(domain["tier2"]) == 2

        gross = questionnaire["domains"][0]
        assert gross["tier1"][0]["id"] == "tod-gm-t1-1"
        assert gross["tier1"][0]["red_flag"] is True

    def test_unknown_age_group(self) -> None:
        with pytest.raises(BadRequestError):
            load_questionnaire("50-60-years")

    def test_find_question(self) -> None:
        questionnaire = load_questionnaire("4-5-years")
        domain, question, tier = find_question(questionnaire, "pre-sl-t2-1")
        assert domain["id"] == "speechLanguage"
        assert tier == 2
        assert question["id"] == "pre-sl-t2-1"
        assert find_question(questionnaire, "tod-sl-t2-1") is None


# ── Scoring ──────────────────────────────────────────────────────────────────


class TestScoring:
    @staticmethod
    def domain(domain_id: str) -> list:
        return next(d for d in load_questionnaire(AGE_GROUP)["domains"] if d["id"] == domain_id)["tier1"]

    def score(self, domain_id: str, answers: dict):
        responses = [{"question_id": qid, "answer": a} for qid, a in answers.items()]
        return scoring.calculate_domain_score(responses, self.domain(domain_id), domain_id)

    def test_answer_values(self) -> None:
        assert scoring.answer_value(AnswerType.YES) == 0.0
        assert scoring.answer_value(AnswerType.SOMETIMES) == 0.4
        assert scoring.answer_value(AnswerType.NO) == 1.0
        assert scoring.answer_value(AnswerType.YES, inverted=True) == 1.0
        assert scoring.answer_value(AnswerType.SOMETIMES, inverted=True) == 0.6
        assert scoring.calculate_question_score(AnswerType.NOT_SURE, 2.0) == pytest.approx(1.4)

    def test_status_bands(self) -> None:
        assert scoring.status_for(0.29) == "GREEN"
        assert scoring.status_for(0.3) == "YELLOW"
        assert scoring.status_for(0.45) == "YELLOW"
        assert scoring.status_for(0.46) == "RED"

    def test_all_concerns_flag_by_risk_index(self) -> None:
        result = self.score("grossMotor", _domain_all("grossMotor", AnswerType.NO))
        assert result.risk_index == 1.0
        assert result.status == "RED"
        assert result.tier2_required is True
        assert result.tier2_reason == "RISK_INDEX"

    def test_red_flag_alone_requires_tier2(self) -> None:
        # 0.7 * 2.0 / 4.0
        result = self.score("grossMotor", {
            "tod-gm-t1-1": AnswerType.NOT_SURE,
            "tod-gm-t1-2": AnswerType.YES,
            "tod-gm-t1-3": AnswerType.YES,
        })
        assert result.risk_index == 0.35
        assert result.status == "YELLOW"
        assert result.tier2_reason == "RED_FLAG"
        assert result.red_flag_violations == ["tod-gm-t1-1"]

    def test_sometimes_on_red_flag_is_not_a_concern(self) -> None:
        result = self.score("grossMotor", {
            "tod-gm-t1-1": AnswerType.SOMETIMES,
            "tod-gm-t1-2": AnswerType.YES,
            "tod-gm-t1-3": AnswerType.YES,
        })
        assert result.risk_index == 0.2
        assert result.tier2_required is False

    def test_sensory_domain_is_inverted(self) -> None:
        calm = self.score("sensoryProcessing", _domain_all("sensoryProcessing", AnswerType.NO))
        assert calm.risk_index == 0.0
        assert calm.tier2_required is False

        # 1.0 * 1.5 / 3.5
        flagged = self.score("sensoryProcessing", {
            "tod-sp-t1-1": AnswerType.NO,
            "tod-sp-t1-2": AnswerType.NO,
            "tod-sp-t1-3": AnswerType.YES,
        })
        assert flagged.risk_index == 0.43
        assert flagged.tier2_reason == "RED_FLAG"

    def test_single_inverted_question(self) -> None:
        result = self.score("socialEmotional", {
            "tod-se-t1-1": AnswerType.YES,
            "tod-se-t1-2": AnswerType.YES,
            "tod-se-t1-3": AnswerType.YES,
        })
        assert result.risk_index == 0.25
        assert result.status == "GREEN"
        assert result.tier2_required is False

    def test_unknown_question_rejected(self) -> None:
        with pytest.raises(ValueError):
            self.score("grossMotor", {"tod-fm-t1-1": AnswerType.YES})

    def test_recommendations_and_report_text(self) -> None:
        assert scoring.get_recommendations(["GREEN"])[0].startswith("Your child is developing well")
        assert len(scoring.get_recommendations(["RED", "YELLOW"])) == 4
        assert scoring.calculate_zone(0.5) == "red"
        assert scoring.domain_recommendations("grossMotor", "green") == []
        assert scoring.domain_recommendations("grossMotor", "red")
        assert scoring.developmental_age(100, 30) == "2 years, 6 months"
        assert scoring.developmental_age(50, 20) == "10 months"
        assert scoring.developmental_age(100, 24) == "2 years"


# ── Workflow ─────────────────────────────────────────────────────────────────


@pytest.fixture
def assessment(db, parent, child):
    return AssessmentService(db).create(parent, child.id, AGE_GROUP, now=BASE)


class TestAssessmentWorkflow:
    def test_create_sets_expiry(self, assessment) -> None:
        assert assessment.status == AssessmentStatus.IN_PROGRESS
        assert assessment.expires_at == BASE + timedelta(days=14)
        assert assessment.flagged_domains == []

    def test_only_parent_creates(self, db, make_user, child) -> None:
        stranger = make_user(UserRole.PARENT)
        with pytest.raises(ForbiddenError):
            AssessmentService(db).create(stranger, child.id, AGE_GROUP)

    def test_create_validates_age_group_and_child(self, db, parent, child) -> None:
        with pytest.raises(BadRequestError):
            AssessmentService(db).create(parent, child.id, "99-100-years")
        with pytest.raises(NotFoundError):
            AssessmentService(db).create(parent, uuid.uuid4(), AGE_GROUP)

    def test_clean_tier1_completes(self, db, parent, assessment) -> None:
        result = AssessmentService(db).submit_tier1(parent, assessment.id, _tier1_answers(), now=BASE)

        assert result["tier2_required"] is False
        assert result["flagged_domains"] == []
        assert result["overall_score"] == 0.0
        assert len(result["domain_scores"]) == 8
        assert assessment.status == AssessmentStatus.COMPLETED
        assert assessment.completed_at == BASE
        assert assessment.response_count == 24
        assert assessment.domain_scores["grossMotor"] == {
            "riskIndex": 0.0, "status": "GREEN", "tier2Required": False, "tier2Reason": None,
        }

        with pytest.raises(BadRequestError, match="already completed"):
            AssessmentService(db).submit_tier1(parent, assessment.id, _tier1_answers(), now=BASE)
        with pytest.raises(BadRequestError, match="No domains flagged"):
            AssessmentService(db).tier2_questionnaire(parent, assessment.id)

    def test_flagged_domain_goes_through_tier2(self, db, parent, assessment) -> None:
        service = AssessmentService(db)
        with pytest.raises(BadRequestError, match="Tier 1 must be completed first"):
            service.tier2_questionnaire(parent, assessment.id)

        result = service.submit_tier1(
            parent, assessment.id, _tier1_answers(_domain_all("grossMotor", AnswerType.NO)), now=BASE,
        )
        assert result["flagged_domains"] == ["grossMotor"]
        assert assessment.status == AssessmentStatus.TIER2_REQUIRED
        assert assessment.completed_at is None

        tier2 = service.tier2_questionnaire(parent, assessment.id)
        assert tier2["flagged_domains"] == ["grossMotor"]
        assert [d["domain_id"] for d in tier2["domains"]] == ["grossMotor"]
        question_ids = [q["id"] for q in tier2["domains"][0]["questions"]]
        assert question_ids == ["tod-gm-t2-1", "tod-gm-t2-2"]

        answers = [{"question_id": qid, "answer": AnswerType.SOMETIMES} for qid in question_ids]
        answers += [
            {"question_id": "tod-fm-t2-1", "answer": AnswerType.NO},
            {"question_id": "tod-zz-t2-9", "answer": AnswerType.NO},
        ]
        done = service.submit_tier2(parent, assessment.id, answers, now=BASE + timedelta(hours=1))

        assert done["completed"] is True
        assert assessment.status == AssessmentStatus.COMPLETED
        assert assessment.tier2_completed is True
        assert assessment.response_count == 26
        assert {r.question_id for r in assessment.responses if r.tier == 2} == set(question_ids)

        with pytest.raises(BadRequestError, match="Tier 2 already completed"):
            service.submit_tier2(parent, assessment.id, answers)

    def test_last_duplicate_answer_wins(self, db, parent, assessment) -> None:
        answers = _tier1_answers() + [{"question_id": "tod-vh-t1-1", "answer": AnswerType.NO}]
        result = AssessmentService(db).submit_tier1(parent, assessment.id, answers, now=BASE)
        assert "visionHearing" in result["flagged_domains"]
        stored = db.query(AssessmentResponse).filter(AssessmentResponse.question_id == "tod-vh-t1-1").one()
        assert stored.answer == AnswerType.NO
        assert stored.score == 2.0

    def test_tier1_needs_matching_answers(self, db, parent, assessment) -> None:
        with pytest.raises(BadRequestError, match="No Tier 1 answers"):
            AssessmentService(db).submit_tier1(
                parent, assessment.id, [{"question_id": "tod-gm-t2-1", "answer": AnswerType.YES}], now=BASE,
            )

    def test_expired_assessment_rejects_answers(self, db, parent, assessment) -> None:
        with pytest.raises(BadRequestError, match="expired"):
            AssessmentService(db).submit_tier1(parent, assessment.id, _tier1_answers(), now=BASE + timedelta(days=15))
        assert assessment.status == AssessmentStatus.EXPIRED
        assert assessment.tier1_completed is False

    def test_list_and_delete(self, db, parent, child, assessment, make_user) -> None:
        service = AssessmentService(db)
        service.submit_tier1(parent, assessment.id, _tier1_answers(), now=BASE)
        second = service.create(parent, child.id, "3-4-years")

        listed = service.list_for_child(parent, child.id)
        assert {a.id for a in listed} == {assessment.id, second.id}

        with pytest.raises(ForbiddenError):
            service.list_for_child(make_user(UserRole.PARENT), child.id)
        with pytest.raises(ForbiddenError):
            service.delete(make_user(UserRole.PARENT), assessment.id)

        service.delete(parent, assessment.id)
        assert db.query(AssessmentResponse).count() == 0
        with pytest.raises(NotFoundError):
            service.get(parent, assessment.id)


# ── Sharing ──────────────────────────────────────────────────────────────────


class TestSharing:
    def test_share_grants_read_access(self, db, parent, therapist, other_therapist, assessment) -> None:
        service = AssessmentService(db)
        with pytest.raises(ForbiddenError):
            service.get(therapist, assessment.id)

        share = service.share(parent, assessment.id, therapist.therapist_profile.id)
        assert share.shared_with_id == therapist.id
        assert share.access_level == AccessLevel.VIEW
        assert service.get(therapist, assessment.id).id == assessment.id
        assert [s.id for s in service.shared_with_me(therapist)] == [share.id]

        with pytest.raises(ForbiddenError):
            service.get(other_therapist, assessment.id)
        with pytest.raises(BadRequestError, match="already shared"):
            service.share(parent, assessment.id, therapist.therapist_profile.id)

    def test_only_parent_shares(self, db, therapist, other_therapist, parent, assessment) -> None:
        service = AssessmentService(db)
        service.share(parent, assessment.id, therapist.therapist_profile.id)
        with pytest.raises(ForbiddenError):
            service.share(therapist, assessment.id, other_therapist.therapist_profile.id)
        with pytest.raises(NotFoundError, match="Therapist not found"):
            service.share(parent, assessment.id, parent.id)

    def test_revoke_and_reshare(self, db, parent, therapist, assessment) -> None:
        service = AssessmentService(db)
        share = service.share(parent, assessment.id, therapist.therapist_profile.id)

        service.revoke_share(parent, assessment.id, therapist.id)
        assert service.shared_with_me(therapist) == []
        with pytest.raises(ForbiddenError):
            service.get(therapist, assessment.id)
        with pytest.raises(NotFoundError):
            service.revoke_share(parent, assessment.id, parent.id)

        again = service.share(parent, assessment.id, therapist.therapist_profile.id, AccessLevel.ANNOTATE)
        assert again.id == share.id
        assert again.is_active is True
        assert again.access_level == AccessLevel.ANNOTATE

    def test_annotations_need_annotate_access(self, db, parent, therapist, other_therapist, assessment) -> None:
        service = AssessmentService(db)
        note = {"notes": "Watch stair climbing", "domain": "grossMotor"}

        with pytest.raises(ForbiddenError):
            service.add_annotation(other_therapist, assessment.id, note)

        service.share(parent, assessment.id, therapist.therapist_profile.id)
        with pytest.raises(ForbiddenError, match="annotation permissions"):
            service.add_annotation(therapist, assessment.id, note)

        service.revoke_share(parent, assessment.id, therapist.id)
        service.share(parent, assessment.id, therapist.therapist_profile.id, AccessLevel.ANNOTATE)
        service.add_annotation(therapist, assessment.id, note)
        share = service.add_annotation(therapist, assessment.id, {"notes": "Second note"})

        notes = share.annotations["notes"]
        assert [n["notes"] for n in notes] == ["Watch stair climbing", "Second note"]
        assert notes[0]["domain"] == "grossMotor"
        assert notes[0]["created_by"] == str(therapist.id)
        assert notes[0]["id"] != notes[1]["id"]


# ── Reports ──────────────────────────────────────────────────────────────────


class TestReports:
    def test_report_requires_completion(self, db, parent, assessment) -> None:
        with pytest.raises(BadRequestError, match="must be completed"):
            AssessmentService(db).report(parent, assessment.id)

    def test_clean_report(self, db, parent, assessment) -> None:
        service = AssessmentService(db)
        service.submit_tier1(parent, assessment.id, _tier1_answers(), now=BASE)

        # child born 2019-04-12 is 30 months old on 2021-10-12
        report = service.report(parent, assessment.id, now=BASE)
        assert report["age_group"] == "2-3 Years"
        assert report["developmental_age_equivalent"] == "2 years, 6 months"
        assert report["overall_interpretation"].startswith("The child demonstrates strong")
        assert all(d["zone"] == "green" for d in report["domain_scores"])
        assert all(d["recommendations"] == [] for d in report["domain_scores"])
        assert len(report["responses"]) == 24
        assert report["responses"][0]["question"]

    def test_flagged_report(self, db, parent, assessment) -> None:
        service = AssessmentService(db)
        service.submit_tier1(parent, assessment.id, _tier1_answers(_domain_all("grossMotor", AnswerType.NO)), now=BASE)
        service.submit_tier2(parent, assessment.id, [{"question_id": "tod-gm-t2-1", "answer": AnswerType.NO}], now=BASE)

        report = service.report(parent, assessment.id, now=BASE)
        gross = next(d for d in report["domain_scores"] if d["domain_id"] == "grossMotor")
        assert gross["zone"] == "red"
        assert gross["recommendations"]
        assert "consult" in gross["interpretation"]
        assert report["recommendations"][0].startswith("Schedule a consultation")

    def test_history(self, db, parent, child, therapist, make_user, assessment) -> None:
        service = AssessmentService(db)
        service.create(parent, child.id, AGE_GROUP)
        service.submit_tier1(parent, assessment.id, _tier1_answers(), now=BASE)

        history = service.history(parent, child.id)
        assert history["child_name"] == "Zuri"
        assert [r["id"] for r in history["results"]] == [assessment.id]
        assert {d["score"] for d in history["results"][0]["domains"]} == {100}

        assert service.history(therapist, child.id)["results"]
        with pytest.raises(ForbiddenError):
            service.history(make_user(UserRole.PARENT), child.id)


# ── API ──────────────────────────────────────────────────────────────────────


class TestAssessmentRoutes:
    def test_parent_flow(self, client, parent, child, auth_headers) -> None:
        headers = auth_headers(parent)
        created = client.post("/api/assessments", json={"child_id": str(child.id), "age_group": AGE_GROUP},
                              headers=headers)
        assert created.status_code == 201
        assessment_id = created.json()["id"]

        tier1 = client.get(f"/api/assessments/{assessment_id}/questionnaire/tier1", headers=headers).json()
        assert tier1["estimated_time"] == "8-10 minutes"
        assert len(tier1["domains"]) == 8

        answers = [{"question_id": a["question_id"], "answer": a["answer"].value} for a in _tier1_answers()]
        result = client.post(f"/api/assessments/{assessment_id}/responses/tier1",
                             json={"responses": answers}, headers=headers)
        assert result.status_code == 200
        assert result.json()["tier2_required"] is False
        assert result.json()["assessment"]["status"] == "COMPLETED"

        report = client.get(f"/api/assessments/{assessment_id}/report", headers=headers)
        assert report.status_code == 200
        assert len(report.json()["domain_scores"]) == 8

        listed = client.get(f"/api/assessments/child/{child.id}", headers=headers).json()
        assert listed[0]["response_count"] == 24

        assert client.delete(f"/api/assessments/{assessment_id}", headers=headers).status_code == 200
        assert client.get(f"/api/assessments/{assessment_id}", headers=headers).status_code == 404

    def test_other_parent_is_forbidden(self, client, db, parent, child, make_user, auth_headers, assessment) -> None:
        stranger = auth_headers(make_user(UserRole.PARENT))

        response = client.get(f"/api/assessments/{assessment.id}", headers=stranger)
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        assert client.post("/api/assessments", json={"child_id": str(child.id), "age_group": AGE_GROUP},
                           headers=stranger).status_code == 403
        assert client.get(f"/api/assessments/child/{child.id}", headers=stranger).status_code == 403

    def test_invalid_answer_rejected(self, client, parent, auth_headers, assessment) -> None:
        response = client.post(f"/api/assessments/{assessment.id}/responses/tier1",
                               json={"responses": [{"question_id": "tod-gm-t1-1", "answer": "MAYBE"}]},
                               headers=auth_headers(parent))
        assert response.status_code == 422

    def test_therapist_sharing_routes(self, client, parent, therapist, auth_headers, assessment) -> None:
        shared = client.post(f"/api/assessments/{assessment.id}/share",
                             json={"therapist_id": str(therapist.therapist_profile.id), "access_level": "ANNOTATE"},
                             headers=auth_headers(parent))
        assert shared.status_code == 201

        inbox = client.get("/api/assessments/shared-with-me/all", headers=auth_headers(therapist))
        assert inbox.status_code == 200
        assert inbox.json()[0]["assessment"]["child"]["first_name"] == "Zuri"
        assert client.get("/api/assessments/shared-with-me/all", headers=auth_headers(parent)).status_code == 403

        note = client.post(f"/api/assessments/{assessment.id}/annotations",
                           json={"notes": "Looks typical"}, headers=auth_headers(therapist))
        assert note.status_code == 200
        assert note.json()["annotations"]["notes"][0]["notes"] == "Looks typical"

        revoked = client.delete(f"/api/assessments/{assessment.id}/share/{therapist.id}",
                                headers=auth_headers(parent))
        assert revoked.status_code == 200
        assert client.get(f"/api/assessments/{assessment.id}", headers=auth_headers(therapist)).status_code == 403

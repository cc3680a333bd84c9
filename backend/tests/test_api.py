"""
HTTP-level tests through the FastAPI TestClient.

Covers authentication, the error envelope, role and case guards, and a
few representative routes from each area.
"""

from datetime import date

from carebridge.core.security import create_refresh_token
from carebridge.main import RateLimitMiddleware
from carebridge.models import UserRole
from carebridge.services.availability import AvailabilityService, day_of_week
from carebridge.services.therapists import TherapistService


PASSWORD = "An0ther-Secret!"


# ── Health ───────────────────────────────────────────────────────────────────


class TestHealth:
    def test_root_and_health(self, client) -> None:
        assert client.get("/").json()["status"] == "running"

        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    def test_liveness(self, client) -> None:
        assert client.get("/health/live").status_code == 200


class TestRateLimiter:
    @staticmethod
    def limiter(limit: int = 2) -> RateLimitMiddleware:
        async def app(scope, receive, send) -> None:
            return None

        return RateLimitMiddleware(app, requests_per_minute=limit)

    def test_limit_applies_within_the_window(self) -> None:
        limiter = self.limiter()
        assert limiter._is_rate_limited("10.0.0.1", now=1000.0) is False
        assert limiter._is_rate_limited("10.0.0.1", now=1010.0) is False
        assert limiter._is_rate_limited("10.0.0.1", now=1020.0) is True
        assert limiter._is_rate_limited("10.0.0.1", now=1061.0) is False

    def test_idle_addresses_are_forgotten(self) -> None:
        limiter = self.limiter()
        for i in range(50):
            limiter._is_rate_limited(f"10.0.1.{i}", now=1000.0)
        assert len(limiter.request_log) == 50

        limiter._is_rate_limited("10.0.2.1", now=1030.0)
        assert len(limiter.request_log) == 51

        limiter._is_rate_limited("10.0.2.2", now=1061.0)
        assert set(limiter.request_log) == {"10.0.2.1", "10.0.2.2"}


# ── Auth ─────────────────────────────────────────────────────────────────────


class TestAuth:
    def test_register_login_me(self, client) -> None:
        response = client.post("/api/auth/register", json={
            "email": "New.Parent@Example.com", "password": PASSWORD, "name": "New Parent",
        })
        assert response.status_code == 201
        tokens = response.json()
        assert tokens["user"]["email"] == "new.parent@example.com"
        assert tokens["user"]["role"] == "parent"

        login = client.post("/api/auth/login", json={"email": "new.parent@example.com", "password": PASSWORD})
        assert login.status_code == 200
        access = login.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert me.status_code == 200
        assert me.json()["name"] == "New Parent"

    def test_duplicate_email_conflicts(self, client, parent) -> None:
        response = client.post("/api/auth/register", json={
            "email": parent.email.upper(), "password": PASSWORD, "name": "Again",
        })
        assert response.status_code == 409

    def test_admin_cannot_self_register(self, client) -> None:
        response = client.post("/api/auth/register", json={
            "email": "boss@example.com", "password": PASSWORD, "name": "Boss", "role": "admin",
        })
        assert response.status_code == 422

    def test_bad_password(self, client, parent) -> None:
        response = client.post("/api/auth/login", json={"email": parent.email, "password": "wrong-password"})
        assert response.status_code == 401

    def test_refresh_issues_new_pair(self, client, parent) -> None:
        refresh = create_refresh_token({"sub": str(parent.id)})
        response = client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(parent.id)

    def test_access_token_cannot_refresh(self, client, parent, auth_headers) -> None:
        access = auth_headers(parent)["Authorization"].split(" ", 1)[1]
        assert client.post("/api/auth/refresh", json={"refresh_token": access}).status_code == 401

    def test_missing_and_invalid_tokens(self, client) -> None:
        assert client.get("/api/auth/me").status_code == 401
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid or expired token"}


# ── Cases ────────────────────────────────────────────────────────────────────


class TestCaseRoutes:
    def test_therapist_opens_case(self, client, therapist, child, auth_headers) -> None:
        response = client.post(
            "/api/cases",
            json={"child_id": str(child.id), "diagnosis": "Speech delay"},
            headers=auth_headers(therapist),
        )
        assert response.status_code == 201
        assert response.json()["case_number"].startswith("CM-")
        assert response.json()["status"] == "ACTIVE"

    def test_parent_cannot_open_case(self, client, parent, child, auth_headers) -> None:
        response = client.post("/api/cases", json={"child_id": str(child.id)}, headers=auth_headers(parent))
        assert response.status_code == 403

    def test_case_listing_per_role(self, client, parent, therapist, other_therapist, case, auth_headers) -> None:
        for user, expected in ((therapist, 1), (parent, 1), (other_therapist, 0)):
            body = client.get("/api/cases", headers=auth_headers(user)).json()
            assert len(body["items"]) == expected

    def test_case_guard(self, client, parent, other_therapist, case, auth_headers) -> None:
        assert client.get(f"/api/cases/{case.id}", headers=auth_headers(parent)).status_code == 200
        assert client.get(f"/api/cases/{case.id}", headers=auth_headers(other_therapist)).status_code == 403

        response = client.patch(
            f"/api/cases/{case.id}/status", json={"status": "ON_HOLD"}, headers=auth_headers(parent),
        )
        assert response.status_code == 403

    def test_service_error_envelope(self, client, therapist, case, auth_headers) -> None:
        response = client.post(
            f"/api/cases/{case.id}/internal-notes", json={"content": "   "}, headers=auth_headers(therapist),
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "bad_request"


# ── Community ────────────────────────────────────────────────────────────────


class TestCommunityRoutes:
    def test_feed_is_public(self, client, parent, auth_headers) -> None:
        created = client.post(
            "/api/posts",
            json={"title": "First week of OT", "content": "Going well"},
            headers=auth_headers(parent),
        )
        assert created.status_code == 201

        feed = client.get("/api/posts").json()
        assert feed["total"] == 1
        assert feed["posts"][0]["user_vote"] is None

    def test_vote_then_duplicate_report(self, client, parent, make_user, auth_headers) -> None:
        post_id = client.post(
            "/api/posts", json={"title": "Sleep help", "content": "Any tips?"}, headers=auth_headers(parent),
        ).json()["id"]
        reader = auth_headers(make_user(UserRole.PARENT))

        vote = client.post(f"/api/posts/{post_id}/vote", json={"value": 1}, headers=reader).json()
        assert vote["removed"] is False
        assert client.get(f"/api/posts/{post_id}", headers=reader).json()["user_vote"] == 1

        assert client.post(f"/api/posts/{post_id}/report", json={"reason": "spam"}, headers=reader).status_code == 201
        duplicate = client.post(f"/api/posts/{post_id}/report", json={"reason": "spam"}, headers=reader)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "conflict"

    def test_question_by_slug(self, client, parent, auth_headers) -> None:
        created = client.post(
            "/api/questions",
            json={"title": "Is W-sitting harmful?", "content": "My son sits like this a lot."},
            headers=auth_headers(parent),
        )
        assert created.status_code == 201
        slug = created.json()["slug"]
        assert slug == "is-w-sitting-harmful"
        assert client.get(f"/api/questions/{slug}").status_code == 200


# ── Marketplace ──────────────────────────────────────────────────────────────


class TestMarketplaceRoutes:
    def test_slots_endpoint(self, client, db, therapist) -> None:
        session_type = TherapistService(db).create_session_type({
            "name": "Assessment", "duration": 60, "default_price": 150.0,
        })
        day = date(2030, 6, 3)
        AvailabilityService(db).set_recurring(therapist.therapist_profile, day_of_week(day), "09:00", "11:00", "UTC")

        response = client.get(
            f"/api/marketplace/therapists/{therapist.therapist_profile.id}/slots",
            params={"date": day.isoformat(), "session_type_id": str(session_type.id)},
        )
        assert response.status_code == 200
        assert [s["display_time"] for s in response.json()] == ["9:00 AM - 10:00 AM UTC"]

    def test_directory_lists_active_therapists(self, client, therapist) -> None:
        response = client.get("/api/marketplace/therapists")
        assert response.status_code == 200

    def test_device_token_registration(self, client, parent, auth_headers) -> None:
        response = client.put(
            "/api/notifications/token",
            json={"token": "ExponentPushToken[xyz]", "platform": "ios"},
            headers=auth_headers(parent),
        )
        assert response.status_code == 200
        tokens = client.get("/api/notifications/tokens", headers=auth_headers(parent)).json()
        assert [t["token"] for t in tokens] == ["ExponentPushToken[xyz]"]


class TestAIRoutes:
    def test_ai_health_reports_fallback(self, client) -> None:
        assert client.get("/api/ai/health").json()["mode"] == "fallback"

    def test_summarize_requires_auth(self, client, parent, auth_headers) -> None:
        payload = {"content": "We tried a visual schedule. It helped a lot. Mornings are calmer."}
        assert client.post("/api/ai/summarize", json=payload).status_code == 401

        body = client.post("/api/ai/summarize", json=payload, headers=auth_headers(parent)).json()
        assert body["summary"] == "We tried a visual schedule. It helped a lot."
        assert body["ai_generated"] is False

    def test_redact_and_tags(self, client, parent, auth_headers) -> None:
        headers = auth_headers(parent)
        assert client.post("/api/ai/redact", json={"content": "x"}).status_code == 401

        body = client.post("/api/ai/redact", json={"content": "Email me: amina@example.com"}, headers=headers).json()
        assert body == {
            "original": 27, "redacted": 26, "content": "Email me: [EMAIL_REDACTED]", "ai_generated": False,
        }

        body = client.post(
            "/api/ai/tags", json={"title": "ADHD and sleep", "content": "Any tips?"}, headers=headers,
        ).json()
        assert body == {"tags": ["adhd", "therapy", "pediatric", "clinical"], "count": 4, "ai_generated": False}

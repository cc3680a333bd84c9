"""
Tests for device tokens, Expo push dispatch and the AI assistant.

Outbound HTTP is served by ``httpx.MockTransport`` handlers.
"""

import json
from datetime import timedelta

import httpx
import pytest

from carebridge.core.config import settings
from carebridge.core.exceptions import BadRequestError, NotFoundError
from carebridge.core.types import utcnow
from carebridge.models import DevicePlatform
from carebridge.services.ai import AIService, fallback_insights, fallback_redact, fallback_summary, fallback_tags
from carebridge.services.device_tokens import DeviceTokenService
from carebridge.services.push import PushDeliveryError, PushService


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def chat_response(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


# ── Device tokens ────────────────────────────────────────────────────────────


class TestDeviceTokens:
    def test_register_is_an_upsert(self, db, parent) -> None:
        service = DeviceTokenService(db)
        first = service.register(parent, "ExponentPushToken[abc]", "ios", "Amina's phone")
        again = service.register(parent, "ExponentPushToken[abc]", "android")

        assert again.id == first.id
        assert again.platform == DevicePlatform.ANDROID
        assert again.device_name == "Amina's phone"
        assert len(service.list_for_user(parent)) == 1

    def test_token_moves_between_accounts(self, db, parent, therapist) -> None:
        service = DeviceTokenService(db)
        service.register(parent, "ExponentPushToken[shared]", "ios")
        service.register(therapist, "ExponentPushToken[shared]", "ios")

        assert service.list_for_user(parent) == []
        assert [d.token for d in service.active_tokens(therapist.id)] == ["ExponentPushToken[shared]"]

    def test_deactivate_and_remove(self, db, parent) -> None:
        service = DeviceTokenService(db)
        service.register(parent, "tok-1", "web")

        assert service.deactivate(parent, "tok-1") is True
        assert service.deactivate(parent, "unknown") is False
        assert service.active_tokens(parent.id) == []

        service.remove(parent, "tok-1")
        with pytest.raises(NotFoundError):
            service.remove(parent, "tok-1")

    def test_deactivate_stale(self, db, parent) -> None:
        service = DeviceTokenService(db)
        old = service.register(parent, "tok-old", "ios")
        service.register(parent, "tok-new", "ios")
        old.last_used_at = utcnow() - timedelta(days=45)
        db.commit()

        assert service.deactivate_stale() == 1
        assert [d.token for d in service.active_tokens(parent.id)] == ["tok-new"]


# ── Push ─────────────────────────────────────────────────────────────────────


class TestPush:
    def test_disabled_push_is_skipped(self, db, parent) -> None:
        DeviceTokenService(db).register(parent, "tok-1", "ios")
        result = PushService(db).send_to_user(parent.id, "Hello", "World")
        assert result == {"sent": 0, "failed": 0, "deactivated": 0, "skipped": True}

    def test_no_devices_is_skipped(self, db, parent, monkeypatch) -> None:
        monkeypatch.setattr(settings, "push_enabled", True)
        assert PushService(db).send_to_user(parent.id, "Hello", "World")["skipped"] is True

    def test_unregistered_devices_are_deactivated(self, db, parent, monkeypatch) -> None:
        monkeypatch.setattr(settings, "push_enabled", True)
        tokens = DeviceTokenService(db)
        tokens.register(parent, "tok-good", "ios")
        tokens.register(parent, "tok-gone", "android")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            messages = json.loads(request.content)
            seen.extend(messages)
            tickets = [
                {"status": "ok", "id": "t1"} if m["to"] == "tok-good"
                else {"status": "error", "details": {"error": "DeviceNotRegistered"}}
                for m in messages
            ]
            return httpx.Response(200, json={"data": tickets})

        result = PushService(db, client=mock_client(handler)).send_to_user(
            parent.id, "Booking confirmed", "See you soon", {"booking_id": "b1"},
        )

        assert result == {"sent": 1, "failed": 1, "deactivated": 1}
        assert {m["to"] for m in seen} == {"tok-good", "tok-gone"}
        assert seen[0]["data"] == {"booking_id": "b1"}
        assert [d.token for d in tokens.active_tokens(parent.id)] == ["tok-good"]

    def test_client_error_counts_as_failed(self, db, parent, monkeypatch) -> None:
        monkeypatch.setattr(settings, "push_enabled", True)
        DeviceTokenService(db).register(parent, "tok-1", "ios")
        client = mock_client(lambda request: httpx.Response(400, json={"errors": ["bad"]}))

        result = PushService(db, client=client).send_to_user(parent.id, "Hi", "There")
        assert result == {"sent": 0, "failed": 1, "deactivated": 0}

    def test_server_errors_on_every_batch_are_raised(self, db, parent, monkeypatch) -> None:
        monkeypatch.setattr(settings, "push_enabled", True)
        DeviceTokenService(db).register(parent, "tok-1", "ios")
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        with pytest.raises(PushDeliveryError):
            PushService(db, client=mock_client(handler)).send_to_user(parent.id, "Hi", "There")
        assert len(calls) == 3

    def test_partial_server_failure_is_reported(self, db, parent, monkeypatch) -> None:
        monkeypatch.setattr(settings, "push_enabled", True)
        monkeypatch.setattr("carebridge.services.push.EXPO_BATCH_SIZE", 1)
        tokens = DeviceTokenService(db)
        tokens.register(parent, "tok-up", "ios")
        tokens.register(parent, "tok-down", "android")

        def handler(request: httpx.Request) -> httpx.Response:
            message = json.loads(request.content)[0]
            if message["to"] == "tok-down":
                return httpx.Response(502)
            return httpx.Response(200, json={"data": [{"status": "ok"}]})

        result = PushService(db, client=mock_client(handler)).send_to_user(parent.id, "Hi", "There")
        assert result == {"sent": 1, "failed": 1, "deactivated": 0}


# ── AI ───────────────────────────────────────────────────────────────────────


class TestAIFallbacks:
    def test_fallback_summary_takes_two_sentences(self) -> None:
        assert fallback_summary("First point.   Second point! Third?") == "First point. Second point!"
        assert len(fallback_summary("word " * 100 + ".")) == 200

    def test_fallback_insights_pick_outcomes(self) -> None:
        content = "Hello there.\nEye contact improved by 40% over six weeks.\nShort.\nTantrums decreased after visual schedules"
        assert fallback_insights(content) == [
            "Eye contact improved by 40% over six weeks",
            "Tantrums decreased after visual schedules",
        ]

    def test_disabled_service_uses_fallbacks(self) -> None:
        ai = AIService()
        assert ai.enabled is False
        assert ai.summarize_post("One. Two. Three.")["ai_generated"] is False
        assert ai.enhance_clinical_text("kid did good") == {"enhanced": "kid did good", "ai_generated": False}
        assert ai.health()["mode"] == "fallback"

        dap = ai.summarize_session("Worked on /s/ sounds", "DAP")
        assert dap["format"] == "DAP"
        assert dap["summary"].startswith("**Data**: Worked on /s/ sounds...")

    def test_blank_session_notes_rejected(self) -> None:
        with pytest.raises(BadRequestError):
            AIService().summarize_session("   ", "SOAP")

    def test_regex_redaction(self) -> None:
        text = (
            "Dr. Amani Otieno saw the child (aged 4) on 12/03/2024. MRN: 448812. "
            "Call 0712 345 678 or email mum@example.com."
        )
        assert fallback_redact(text) == (
            "[NAME_REDACTED] saw the child ([AGE_REDACTED]) on [DATE_REDACTED]. [ID_REDACTED]. "
            "Call [PHONE_REDACTED] or email [EMAIL_REDACTED]."
        )
        assert fallback_redact("Dashed date 03-12-2024 stays a date") == "Dashed date [DATE_REDACTED] stays a date"
        assert fallback_redact("Worked on turn taking for 30 minutes") == "Worked on turn taking for 30 minutes"

    def test_keyword_tags(self) -> None:
        assert fallback_tags("Speech therapy ideas", "Tips for a child with autism and ADHD") == [
            "speech-therapy", "autism", "adhd",
        ]
        assert fallback_tags("Hello", "General chat") == ["therapy", "pediatric", "clinical"]

    def test_disabled_service_redacts_and_tags_locally(self) -> None:
        ai = AIService()
        assert ai.redact_sensitive_info("Reach me at dad@example.com") == {
            "content": "Reach me at [EMAIL_REDACTED]", "ai_generated": False,
        }
        assert ai.generate_smart_tags("Down syndrome and cerebral palsy support", "Groups")["tags"] == [
            "cerebral-palsy", "down-syndrome", "therapy", "pediatric", "clinical",
        ]


class TestAIProvider:
    def test_summary_from_provider(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return chat_response("  A parent asks about speech milestones.  ")

        ai = AIService(client=mock_client(handler))
        result = ai.summarize_post("When should my child talk?", "QUESTION")

        assert result == {"summary": "A parent asks about speech milestones.", "ai_generated": True}
        assert requests[0]["model"] == settings.ai_model
        assert requests[0]["messages"][0]["content"] == "You are summarizing a clinical question."

    def test_retryable_error_is_retried(self) -> None:
        responses = iter([httpx.Response(503), chat_response("Recovered")])
        ai = AIService(client=mock_client(lambda request: next(responses)))
        assert ai.enhance_clinical_text("kid did good") == {"enhanced": "Recovered", "ai_generated": True}

    def test_client_error_falls_back(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401)

        ai = AIService(client=mock_client(handler))
        result = ai.summarize_session("Practised turn taking", "SOAP", duration=30)
        assert result["ai_generated"] is False
        assert "**Objective**: Session conducted (30 min)." in result["summary"]
        assert len(calls) == 1

    def test_insights_json_mode(self) -> None:
        insights = ["Visual schedules cut transitions time", "Praise raised compliance", "Short sessions work"]

        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["response_format"] == {"type": "json_object"}
            return chat_response(json.dumps({"insights": insights}))

        result = AIService(client=mock_client(handler)).extract_insights("Long clinical post")
        assert result == {"insights": insights, "ai_generated": True}

    def test_invalid_json_falls_back(self) -> None:
        ai = AIService(client=mock_client(lambda request: chat_response("not json")))
        assert ai.extract_insights("Nothing measurable here")["ai_generated"] is False

    def test_redaction_from_provider_and_fallback(self) -> None:
        ai = AIService(client=mock_client(lambda request: chat_response("[REDACTED] attended the session.")))
        assert ai.redact_sensitive_info("Zuri attended the session.") == {
            "content": "[REDACTED] attended the session.", "ai_generated": True,
        }

        failing = AIService(client=mock_client(lambda request: httpx.Response(401)))
        assert failing.redact_sensitive_info("Call 0712 345 678") == {
            "content": "Call [PHONE_REDACTED]", "ai_generated": False,
        }

    def test_model_tags_are_normalized_and_topped_up(self) -> None:
        payload = {"tags": ["Sensory Processing", "OT", "sensory-processing", "x", 7]}
        ai = AIService(client=mock_client(lambda request: chat_response(json.dumps(payload))))

        result = ai.generate_smart_tags("Useful for autism", "Weighted vests")
        assert result == {
            "tags": ["sensory-processing", "ot", "autism", "therapy", "pediatric", "clinical"],
            "ai_generated": True,
        }

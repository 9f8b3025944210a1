"""Tests for inference response parsing and the HTTP client."""

import json

import httpx
import pytest

from widget_engine.core.errors import InferenceRequestError
from widget_engine.models.inference import (
    InferenceMalformed,
    InferenceRequest,
    InferenceSuccess,
    parse_inference_payload,
)
from widget_engine.services.inference_client import InferenceClient


def make_request() -> InferenceRequest:
    return InferenceRequest(
        message="How much is a website?",
        conversation_id="conv-1",
        visitor_id="visitor_1_abcdefghi",
        visitor_profile_id="profile-1",
    )


def client_returning(settings, handler) -> InferenceClient:
    transport = httpx.MockTransport(handler)
    return InferenceClient(settings, client=httpx.AsyncClient(transport=transport))


class TestParseInferencePayload:
    def test_full_payload(self) -> None:
        outcome = parse_inference_payload({
            "response": "Our sites start at $5k.",
            "type": "text",
            "confidence": 0.92,
            "intent": "pricing",
            "leadScore": 64,
            "shouldEscalate": True,
            "escalationReason": "Budget confirmed",
            "quickActions": [{"icon": "📅", "text": "Book a Call", "value": "consultation"}],
            "poweredBy": "ignored extra",
        })

        assert isinstance(outcome, InferenceSuccess)
        assert outcome.lead_score == 64
        assert outcome.escalated is True
        assert outcome.escalation_reason == "Budget confirmed"
        assert outcome.quick_actions[0].value == "consultation"

    def test_minimal_payload_defaults(self) -> None:
        outcome = parse_inference_payload({"response": "Hi!", "escalated": None})

        assert isinstance(outcome, InferenceSuccess)
        assert outcome.type == "text"
        assert outcome.escalated is False
        assert outcome.lead_score is None
        assert outcome.quick_actions is None

    def test_unknown_type_becomes_text(self) -> None:
        assert parse_inference_payload({"response": "Hi", "type": "carousel"}).type == "text"

    @pytest.mark.parametrize("payload", [
        {},
        {"response": ""},
        {"response": "ok", "confidence": 3},
        {"response": "ok", "leadScore": float("inf")},
        {"response": "ok", "leadScore": float("nan")},
        {"response": "ok", "confidence": float("nan")},
        ["response"],
        "plain text",
    ])
    def test_malformed(self, payload) -> None:
        outcome = parse_inference_payload(payload)
        assert isinstance(outcome, InferenceMalformed)
        assert outcome.kind == "malformed"

    def test_request_payload_uses_wire_names(self) -> None:
        assert make_request().to_payload() == {
            "message": "How much is a website?",
            "conversationId": "conv-1",
            "visitorId": "visitor_1_abcdefghi",
            "visitorProfileId": "profile-1",
            "file": None,
        }


class TestInferenceClient:
    @pytest.mark.asyncio
    async def test_success(self, settings) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "Sure!", "intent": "pricing", "leadScore": 30})

        client = client_returning(settings, handler)
        reply = await client.send(make_request())
        await client.close()

        assert reply.response == "Sure!"
        assert reply.lead_score == 30
        assert seen["url"] == settings.inference_url
        assert seen["body"]["conversationId"] == "conv-1"

    @pytest.mark.asyncio
    async def test_server_error(self, settings) -> None:
        client = client_returning(settings, lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(InferenceRequestError) as exc_info:
            await client.send(make_request())

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = client_returning(settings, handler)

        with pytest.raises(InferenceRequestError, match="timed out"):
            await client.send(make_request())

    @pytest.mark.asyncio
    async def test_transport_error(self, settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = client_returning(settings, handler)

        with pytest.raises(InferenceRequestError, match="transport"):
            await client.send(make_request())

    @pytest.mark.asyncio
    async def test_non_json_body(self, settings) -> None:
        client = client_returning(settings, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(InferenceRequestError, match="not JSON"):
            await client.send(make_request())

    @pytest.mark.asyncio
    async def test_malformed_body(self, settings) -> None:
        client = client_returning(settings, lambda request: httpx.Response(200, json={"reply": "hi"}))

        with pytest.raises(InferenceRequestError, match="Malformed"):
            await client.send(make_request())

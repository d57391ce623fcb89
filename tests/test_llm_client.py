"""
LLM transport tests
===================
Wire-level checks with httpx.MockTransport: request shapes per provider and
mapping of upstream failures to typed errors.
"""
from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from bug_reporter.errors import (
    AuthError,
    InvalidResponseFormat,
    LLMConnectionError,
    LLMTimeout,
    RateLimited,
    UpstreamUnavailable,
)
from bug_reporter.llm_client.llm_client import LLMClient
from bug_reporter.llm_client.models import Attachment
from bug_reporter.llm_client.schema import REPORT_SCHEMA

SHOT = Attachment(base64="iVBORw0KGgo=", mime_type="image/png", name="shot.png")
REPORT_TEXT = json.dumps({"suggestedTitle": "x"})


def _recording_transport(response_json, status_code=200):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, json=response_json)

    return httpx.MockTransport(handler), seen


def _openai_client(transport) -> LLMClient:
    return LLMClient(
        provider="openai",
        model="gpt-test",
        api_key="sk-test",
        base_url="https://llm.example.test/v1",
        transport=transport,
    )


def _gemini_client(transport) -> LLMClient:
    return LLMClient(
        provider="gemini",
        model="gemini-2.5-flash",
        api_key="g-test",
        base_url="https://gemini.example.test/v1beta",
        transport=transport,
    )


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------
def test_openai_text_only_request():
    transport, seen = _recording_transport({"choices": [{"message": {"content": REPORT_TEXT}}]})

    text = asyncio.run(_openai_client(transport).generate_json("PROMPT", REPORT_SCHEMA))

    assert text == REPORT_TEXT
    req = seen[0]
    assert str(req.url) == "https://llm.example.test/v1/chat/completions"
    assert req.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(req.content)
    assert body["model"] == "gpt-test"
    assert body["messages"] == [{"role": "user", "content": "PROMPT"}]
    assert body["temperature"] == pytest.approx(0.2)
    assert body["response_format"]["type"] == "json_schema"
    assert body["response_format"]["json_schema"]["schema"] == REPORT_SCHEMA


def test_openai_request_with_image_puts_image_first():
    transport, seen = _recording_transport({"choices": [{"message": {"content": REPORT_TEXT}}]})

    asyncio.run(_openai_client(transport).generate_json("PROMPT", REPORT_SCHEMA, image=SHOT))

    content = json.loads(seen[0].content)["messages"][0]["content"]
    assert content == [
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,iVBORw0KGgo="}},
        {"type": "text", "text": "PROMPT"},
    ]


def test_gemini_request_with_image():
    transport, seen = _recording_transport(
        {"candidates": [{"content": {"parts": [{"text": REPORT_TEXT}]}}]}
    )

    text = asyncio.run(_gemini_client(transport).generate_json("PROMPT", REPORT_SCHEMA, image=SHOT))

    assert text == REPORT_TEXT
    req = seen[0]
    assert str(req.url) == "https://gemini.example.test/v1beta/models/gemini-2.5-flash:generateContent"
    assert req.headers["x-goog-api-key"] == "g-test"
    body = json.loads(req.content)
    assert body["contents"][0]["parts"] == [
        {"inlineData": {"mimeType": "image/png", "data": "iVBORw0KGgo="}},
        {"text": "PROMPT"},
    ]
    cfg = body["generationConfig"]
    assert cfg["responseMimeType"] == "application/json"
    assert cfg["responseSchema"]["type"] == "OBJECT"
    assert cfg["temperature"] == pytest.approx(0.2)


def test_gemini_text_only_request_has_single_part():
    transport, seen = _recording_transport(
        {"candidates": [{"content": {"parts": [{"text": "{"}, {"text": "}"}]}}]}
    )

    text = asyncio.run(_gemini_client(transport).generate_json("PROMPT", REPORT_SCHEMA))

    assert text == "{}"
    assert json.loads(seen[0].content)["contents"][0]["parts"] == [{"text": "PROMPT"}]


def test_mock_provider_makes_no_network_call():
    def handler(request):
        raise AssertionError("mock provider must not hit the network")

    client = LLMClient(provider="mock", transport=httpx.MockTransport(handler))
    text = asyncio.run(client.generate_json("- Title: Broken\n", REPORT_SCHEMA))

    assert json.loads(text)["suggestedTitle"] == "Broken"


def test_missing_credentials_fail_fast():
    with pytest.raises(RuntimeError):
        LLMClient(provider="openai", api_key="")
    with pytest.raises(RuntimeError):
        LLMClient(provider="gemini", api_key="")
    with pytest.raises(RuntimeError):
        LLMClient(provider="nope")


# ---------------------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "status_code, error",
    [
        (401, AuthError),
        (403, AuthError),
        (429, RateLimited),
        (500, UpstreamUnavailable),
        (503, UpstreamUnavailable),
        (400, LLMConnectionError),
    ],
)
def test_http_status_mapping(status_code, error):
    transport, seen = _recording_transport({"error": "nope"}, status_code=status_code)

    with pytest.raises(error):
        asyncio.run(_openai_client(transport).generate_json("PROMPT", REPORT_SCHEMA))

    # surfaced, not retried
    assert len(seen) == 1


def test_upstream_error_message_does_not_leak_body():
    transport, _ = _recording_transport({"error": "secret internals"}, status_code=500)

    with pytest.raises(UpstreamUnavailable) as excinfo:
        asyncio.run(_openai_client(transport).generate_json("PROMPT", REPORT_SCHEMA))

    assert "secret internals" not in str(excinfo.value)


def test_timeout_maps_to_llm_timeout():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(LLMTimeout):
        asyncio.run(_openai_client(httpx.MockTransport(handler)).generate_json("PROMPT", REPORT_SCHEMA))

    assert len(calls) == 1


def test_connection_error_maps_to_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(_openai_client(httpx.MockTransport(handler)).generate_json("PROMPT", REPORT_SCHEMA))


@pytest.mark.parametrize(
    "envelope",
    [
        {"choices": []},
        {"unexpected": True},
        {"choices": [{"message": {"content": None}}]},
    ],
)
def test_malformed_envelope_is_invalid_format(envelope):
    transport, _ = _recording_transport(envelope)

    with pytest.raises(InvalidResponseFormat):
        asyncio.run(_openai_client(transport).generate_json("PROMPT", REPORT_SCHEMA))


def test_non_json_body_is_invalid_format():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(InvalidResponseFormat):
        asyncio.run(_openai_client(transport).generate_json("PROMPT", REPORT_SCHEMA))


def test_chat_uses_plain_messages():
    transport, seen = _recording_transport({"choices": [{"message": {"content": "OK"}}]})

    reply = asyncio.run(_openai_client(transport).chat([{"role": "user", "content": "ping"}]))

    assert reply == "OK"
    assert json.loads(seen[0].content) == {"model": "gpt-test", "messages": [{"role": "user", "content": "ping"}]}

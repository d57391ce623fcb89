# bug_reporter/llm_client/llm_client.py
"""
LLM client wrapper

Supports:
- LLM_PROVIDER=mock     -> no network, deterministic schema-conformant output
- LLM_PROVIDER=openai   -> OpenAI Chat Completions (base_url + /chat/completions)
- LLM_PROVIDER=gemini   -> Gemini generateContent (base_url + /models/<model>:generateContent)
- LLM_PROVIDER=internal -> OpenAI-compatible LLMaaS (base_url + optional path)

Includes:
- httpx async with a bounded per-call timeout
- tenacity retry on transport errors (LLM_MAX_ATTEMPTS, 1 = no retry)
- aiobreaker circuit breaker
- Prometheus metrics (requests + latency)
- typed errors (AuthError / RateLimited / UpstreamUnavailable / LLMTimeout)
"""

import json
import logging
import re
from datetime import timedelta
from typing import Any, Dict, List, Optional

import httpx
from aiobreaker import CircuitBreaker, CircuitBreakerError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from bug_reporter import config
from bug_reporter.errors import (
    AuthError,
    InvalidResponseFormat,
    LLMConnectionError,
    LLMTimeout,
    RateLimited,
    UpstreamUnavailable,
)
from bug_reporter.llm_client.models import Attachment
from bug_reporter.llm_client.schema import NOT_SPECIFIED, to_gemini_schema
from bug_reporter.metrics import LLM_LATENCY, LLM_REQUESTS

logger = logging.getLogger("bug-report-generator.llm_client")

# Circuit breaker: 5 failures -> open for 30s
breaker = CircuitBreaker(
    fail_max=5,
    timeout_duration=timedelta(seconds=30),
    exclude=(httpx.HTTPStatusError,),
)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(
        exc,
        (
            httpx.ConnectError,
            httpx.ReadTimeout,
            httpx.WriteTimeout,
            httpx.RemoteProtocolError,
            httpx.ConnectTimeout,
        ),
    )


@retry(
    reraise=True,
    stop=stop_after_attempt(config.LLM_MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception(_is_retryable),
)
async def _post_with_retry(
    client: httpx.AsyncClient,
    url: str,
    json_payload: Dict[str, Any],
) -> httpx.Response:
    """
    POST wrapper with retry + Prometheus metrics.
    """
    with LLM_LATENCY.time():
        try:
            resp = await client.post(url, json=json_payload)
            resp.raise_for_status()
            LLM_REQUESTS.labels(outcome="success").inc()
            return resp
        except Exception:
            LLM_REQUESTS.labels(outcome="failure").inc()
            raise


def _status_error(exc: httpx.HTTPStatusError) -> LLMConnectionError:
    code = exc.response.status_code
    if code in (401, 403):
        return AuthError(f"LLM rejected credentials (HTTP {code}).")
    if code == 429:
        return RateLimited("LLM quota exceeded (HTTP 429).")
    if code >= 500:
        return UpstreamUnavailable(f"LLM service error (HTTP {code}).")
    return LLMConnectionError(f"LLM HTTP error {code}.")


class LLMClient:
    """
    Unified LLM client for OpenAI / Gemini / Internal / Mock.

    IMPORTANT:
    - base_url is always a BASE (e.g. https://api.openai.com/v1)
    - chat_path is always a PATH (e.g. /chat/completions)

    Every argument defaults to bug_reporter.config; `transport` lets tests
    plug an httpx.MockTransport.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        chat_path: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.provider = (provider or config.LLM_PROVIDER).strip().lower()
        if self.provider not in config.LLM_PROVIDERS:
            raise RuntimeError(f"Invalid LLM provider '{self.provider}'.")

        self.model = model or config.LLM_MODEL
        self.timeout = httpx.Timeout(float(timeout_seconds or config.LLM_TIMEOUT_SECONDS))
        self.transport = transport

        self.base_url = ""
        self.chat_path = ""
        self.headers: Dict[str, str] = {}

        if self.provider == "openai":
            key = api_key if api_key is not None else config.OPENAI_API_KEY
            self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
            self.chat_path = chat_path if chat_path is not None else (config.OPENAI_CHAT_PATH or "/chat/completions")
            if not key:
                raise RuntimeError("OPENAI_API_KEY is empty (LLM_PROVIDER=openai).")
            self.headers = {
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }

        elif self.provider == "gemini":
            key = api_key if api_key is not None else config.GEMINI_API_KEY
            self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
            self.chat_path = chat_path if chat_path is not None else f"/models/{self.model}:generateContent"
            if not key:
                raise RuntimeError("GEMINI_API_KEY is empty (LLM_PROVIDER=gemini).")
            self.headers = {
                "x-goog-api-key": key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }

        elif self.provider == "internal":
            token = api_key if api_key is not None else config.LLM_API_TOKEN
            self.base_url = (base_url or config.LLM_BASE_URL).rstrip("/")
            # Empty chat path: LLM_BASE_URL is already the full endpoint.
            self.chat_path = (chat_path if chat_path is not None else config.LLM_CHAT_PATH or "").strip()
            if not self.base_url:
                raise RuntimeError("LLM_BASE_URL is empty (LLM_PROVIDER=internal).")
            self.headers = {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }

        if self.chat_path and not self.chat_path.startswith("/"):
            self.chat_path = f"/{self.chat_path}"

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------
    async def generate_json(
        self,
        prompt: str,
        schema: Dict[str, Any],
        image: Optional[Attachment] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        One schema-constrained generation call. Returns the raw response text.
        With an image, the payload is [image, prompt]; otherwise the prompt alone.
        """
        temp = config.LLM_TEMPERATURE if temperature is None else temperature

        if self.provider == "mock":
            LLM_REQUESTS.labels(outcome="mock").inc()
            return _mock_report_json(prompt)

        if self.provider == "gemini":
            parts: List[Dict[str, Any]] = []
            if image is not None:
                parts.append({"inlineData": {"mimeType": image.mime_type, "data": image.base64}})
            parts.append({"text": prompt})
            payload = {
                "contents": [{"role": "user", "parts": parts}],
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "responseSchema": to_gemini_schema(schema),
                    "temperature": temp,
                },
            }
            data = await self._send(payload)
            return _gemini_text(data)

        content: Any = prompt
        if image is not None:
            content = [
                {"type": "image_url", "image_url": {"url": image.data_url}},
                {"type": "text", "text": prompt},
            ]
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "temperature": temp,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "bug_report", "schema": schema},
            },
        }
        data = await self._send(payload)
        return _chat_text(data)

    async def chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Plain chat completion, used by diagnostics.
        """
        if self.provider == "mock":
            LLM_REQUESTS.labels(outcome="mock").inc()
            return "OK"

        if self.provider == "gemini":
            contents = [
                {"role": "model" if m.get("role") == "assistant" else "user", "parts": [{"text": m.get("content", "")}]}
                for m in messages
                if m.get("role") != "system"
            ]
            system = "\n".join(m.get("content", "") for m in messages if m.get("role") == "system")
            payload: Dict[str, Any] = {"contents": contents}
            if system:
                payload["systemInstruction"] = {"parts": [{"text": system}]}
            return _gemini_text(await self._send(payload))

        payload = {"model": self.model, "messages": messages}
        return _chat_text(await self._send(payload))

    # -----------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------
    async def _send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = self.chat_path  # can be ""

        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            logger.debug(
                f"LLM[{self.provider}] → POST {self.base_url}{endpoint} | payload={json.dumps(payload)[:500]}"
            )

            try:
                resp = await breaker.call_async(_post_with_retry, client, endpoint, payload)
            except CircuitBreakerError:
                logger.warning("LLM circuit breaker OPEN – request blocked")
                LLM_REQUESTS.labels(outcome="circuit_breaker").inc()
                raise UpstreamUnavailable("LLM service temporarily unavailable (circuit breaker open).")
            except httpx.HTTPStatusError as exc:
                logger.error(f"LLM HTTP error {exc.response.status_code}: {exc.response.text[:500]}")
                raise _status_error(exc)
            except httpx.TimeoutException as exc:
                logger.error(f"LLM request timed out: {exc!r}")
                raise LLMTimeout(f"LLM request timed out after {self.timeout.read}s.")
            except httpx.HTTPError as exc:
                logger.error(f"LLM request failed: {exc!r}")
                raise UpstreamUnavailable(f"LLM request failed: {exc}")

            logger.debug(f"LLM[{self.provider}] ← {resp.status_code} | response={resp.text[:500]}")

            try:
                data = resp.json()
            except json.JSONDecodeError:
                logger.error(f"Malformed LLM envelope – raw={resp.text[:1000]}")
                raise InvalidResponseFormat("LLM returned malformed response.")
            if not isinstance(data, dict):
                raise InvalidResponseFormat("LLM returned malformed response.")
            return data


# ---------------------------------------------------------------------
# Envelope parsing
# ---------------------------------------------------------------------
def _chat_text(data: Dict[str, Any]) -> str:
    # OpenAI-compatible chat completions
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        logger.error(f"Malformed LLM response: {json.dumps(data)[:1000]}")
        raise InvalidResponseFormat("LLM returned malformed response.")
    if not isinstance(content, str):
        raise InvalidResponseFormat("LLM returned malformed response.")
    return content


def _gemini_text(data: Dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    except (KeyError, IndexError, TypeError, AttributeError):
        logger.error(f"Malformed Gemini response: {json.dumps(data)[:1000]}")
        raise InvalidResponseFormat("LLM returned malformed response.")
    return text


# ---------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------
_FIELD_RE = re.compile(r"^- (Title|URL|Expected Result|Actual Result|Browser|OS|Device): (.*)$")
_STEP_PREFIX_RE = re.compile(r"^\s*(?:\d+[.)]|[-*#])\s*")


def _mock_report_json(prompt: str) -> str:
    """
    Deterministic report echoing the prompt's user fields.
    Environment values stay "Not specified" unless the prompt carries them.
    """
    fields: Dict[str, str] = {}
    steps: List[str] = []
    in_steps = False

    for line in prompt.splitlines():
        if line.startswith("- Steps to Reproduce:"):
            in_steps = True
            continue
        m = _FIELD_RE.match(line)
        if m:
            in_steps = False
            fields.setdefault(m.group(1), m.group(2).strip())
            continue
        if in_steps and line.strip():
            steps.extend(s for s in re.split(r"\s+(?=\d+[.)]\s)", line.strip()) if s)

    def _env(name: str) -> str:
        v = fields.get(name, "")
        return v if v and v != "Not provided" else NOT_SPECIFIED

    title = fields.get("Title", "Untitled bug")
    report = {
        "suggestedTitle": title,
        "summary": f"{title}: {fields.get('Actual Result', '')}".strip(": "),
        "stepsToReproduce": [_STEP_PREFIX_RE.sub("", s).strip() for s in steps] or ["Not provided"],
        "expectedBehavior": fields.get("Expected Result", ""),
        "actualBehavior": fields.get("Actual Result", ""),
        "impact": "Functionality does not behave as expected.",
        "environment": {
            "browser": _env("Browser"),
            "os": _env("OS"),
            "device": _env("Device"),
        },
    }
    return json.dumps(report)

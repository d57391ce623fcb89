# bug_reporter/llm_client/llm_agent.py
import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from bug_reporter.errors import InvalidResponseFormat
from .llm_client import LLMClient
from .models import Attachment, BugInput, GeneratedReport, ReportContent
from .prompts import build_prompt
from .schema import REPORT_SCHEMA, validate_against_schema

logger = logging.getLogger("bug-report-generator.llm_agent")

_llm: Optional[LLMClient] = None


def _get_llm() -> LLMClient:
    global _llm
    if _llm is None:
        _llm = LLMClient()
    return _llm


# ---------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------
def _strip_code_fences(s: str) -> str:
    s = (s or "").strip()
    # Remove common ```json ... ``` wrappers
    if s.startswith("```"):
        lines = s.splitlines()
        if len(lines) >= 2 and lines[0].startswith("```") and lines[-1].startswith("```"):
            s = "\n".join(lines[1:-1]).strip()
    return s


def parse_report_content(text: str) -> ReportContent:
    """
    Parse the model text into a ReportContent.

    Raises InvalidResponseFormat when the text is not JSON or does not
    satisfy REPORT_SCHEMA. The raw text is logged, never returned.
    """
    try:
        data: Any = json.loads(_strip_code_fences(text))
    except (json.JSONDecodeError, TypeError) as exc:
        logger.error(f"Failed to parse LLM response as JSON ({exc}): {text!r}")
        raise InvalidResponseFormat("The AI returned an invalid response format.")

    # REPORT_SCHEMA is the wire contract sent with the request; the reply is
    # held to that same document before typed parsing, and violations are
    # logged by JSON path.
    violations = validate_against_schema(data, REPORT_SCHEMA)
    if violations:
        logger.error(f"LLM response does not match the report schema: {violations} – raw={text!r}")
        raise InvalidResponseFormat("The AI returned an invalid response format.")

    try:
        return ReportContent.model_validate(data)
    except ValidationError as exc:
        logger.error(f"LLM response rejected by the report model: {exc} – raw={text!r}")
        raise InvalidResponseFormat("The AI returned an invalid response format.")


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------
async def generate_report_content(
    bug: BugInput,
    screenshot: Optional[Attachment] = None,
    client: Optional[LLMClient] = None,
) -> ReportContent:
    """
    Exactly one model call for one bug. Failures propagate; nothing is retried here.
    """
    llm = client or _get_llm()

    prompt = build_prompt(bug, has_image=screenshot is not None)
    text = await llm.generate_json(prompt, REPORT_SCHEMA, image=screenshot)

    return parse_report_content(text)


async def generate_report(
    bug: BugInput,
    screenshot: Optional[Attachment] = None,
    client: Optional[LLMClient] = None,
) -> GeneratedReport:
    content = await generate_report_content(bug, screenshot, client=client)
    return GeneratedReport(
        **content.model_dump(),
        original_id=bug.id,
        severity=bug.severity,
    )

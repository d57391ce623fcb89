# bug_reporter/tracker_client/jira_client.py
"""Jira Cloud client (issue filing).

Contract:
- accepts one GeneratedReport plus a JiraConfig
- returns a JiraSubmissionResult (success + issue URL, or failure + message)
- never raises past create_jira_issue()

An incomplete configuration is a local failure: no request is attempted.

Endpoint used:
  POST {base_url}/rest/api/2/issue   (basic auth: email + API token)

API v2 accepts the description as wiki markup, which is exactly what
render_jira_markup() produces.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from bug_reporter import config
from bug_reporter.errors import TrackerConfigMissing, TrackerRequestFailed
from bug_reporter.formatters import render_jira_markup
from bug_reporter.llm_client.models import (
    GeneratedReport,
    JiraConfig,
    JiraSubmissionResult,
)
from bug_reporter.metrics import TRACKER_SUBMISSIONS

logger = logging.getLogger("bug-report-generator.jira_client")

CONFIG_MISSING_MESSAGE = (
    "Jira is not configured. Please provide the Jira URL, email, API token and project key."
)

# Jira priority names, indexed by Severity.rank (Critical maps to Highest)
_PRIORITIES = ("Low", "Medium", "High", "Highest")

# Jira summary field limit
_MAX_SUMMARY = 255


def jira_config_from_env() -> JiraConfig:
    return JiraConfig(
        base_url=config.JIRA_BASE_URL,
        email=config.JIRA_EMAIL,
        api_token=config.JIRA_API_TOKEN,
        project_key=config.JIRA_PROJECT_KEY,
        issue_type=config.JIRA_ISSUE_TYPE,
    )


def build_issue_payload(report: GeneratedReport, cfg: JiraConfig) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "project": {"key": cfg.project_key.strip()},
        "summary": report.suggested_title.strip()[:_MAX_SUMMARY],
        "description": render_jira_markup(report),
        "issuetype": {"name": cfg.issue_type or "Bug"},
    }
    if report.severity is not None:
        fields["priority"] = {"name": _PRIORITIES[report.severity.rank]}
    return {"fields": fields}


def _error_detail(resp: httpx.Response) -> str:
    """Best-effort extraction of Jira's error messages (errorMessages + errors)."""
    try:
        body = resp.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    msgs = [m for m in body.get("errorMessages", []) if isinstance(m, str)]
    errors = body.get("errors")
    if isinstance(errors, dict):
        msgs += [f"{k}: {v}" for k, v in errors.items()]
    return "; ".join(msgs)


async def _post_issue(
    report: GeneratedReport,
    cfg: JiraConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> JiraSubmissionResult:
    if not cfg.is_configured:
        raise TrackerConfigMissing(CONFIG_MISSING_MESSAGE)

    base_url = cfg.base_url.strip().rstrip("/")
    payload = build_issue_payload(report, cfg)

    async with httpx.AsyncClient(
        base_url=base_url,
        auth=(cfg.email.strip(), cfg.api_token.strip()),
        headers={"Accept": "application/json", "Content-Type": "application/json"},
        timeout=httpx.Timeout(config.JIRA_TIMEOUT_SECONDS),
        transport=transport,
    ) as client:
        try:
            resp = await client.post("/rest/api/2/issue", json=payload)
        except httpx.HTTPError as exc:
            logger.error(f"[Jira] Request failed: {exc!r}")
            raise TrackerRequestFailed("Could not reach Jira. Please check the URL and try again.")

    if resp.status_code in (401, 403):
        raise TrackerRequestFailed("Jira rejected the credentials. Please check the email and API token.")
    if resp.status_code >= 400:
        detail = _error_detail(resp)
        logger.error(f"[Jira] HTTP {resp.status_code}: {resp.text[:500]}")
        msg = f"Jira returned an error (HTTP {resp.status_code})."
        raise TrackerRequestFailed(f"{msg} {detail}".strip())

    try:
        key = str(resp.json()["key"])
    except (ValueError, KeyError, TypeError):
        raise TrackerRequestFailed("Jira accepted the request but returned no issue key.")

    issue_url = f"{base_url}/browse/{key}"
    return JiraSubmissionResult(
        success=True,
        message=f"Created Jira issue {key}.",
        issue_url=issue_url,
        issue_key=key,
    )


async def create_jira_issue(
    report: GeneratedReport,
    cfg: JiraConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> JiraSubmissionResult:
    """
    Public API: file one report, exactly one attempt.
    """
    try:
        result = await _post_issue(report, cfg, transport=transport)
    except TrackerConfigMissing as exc:
        TRACKER_SUBMISSIONS.labels(outcome="config_missing").inc()
        return JiraSubmissionResult(success=False, message=str(exc))
    except TrackerRequestFailed as exc:
        TRACKER_SUBMISSIONS.labels(outcome="failure").inc()
        return JiraSubmissionResult(success=False, message=str(exc))
    except Exception as exc:
        logger.exception(f"[Jira] Unexpected error for report #{report.original_id}")
        TRACKER_SUBMISSIONS.labels(outcome="failure").inc()
        return JiraSubmissionResult(success=False, message=f"Unexpected error while creating the Jira issue: {exc}")

    TRACKER_SUBMISSIONS.labels(outcome="success").inc()
    logger.info(f"[Jira] Report #{report.original_id} filed as {result.issue_key}")
    return result

# bug_reporter/routes/deps.py
"""Shared FastAPI dependencies (overridable in tests via app.dependency_overrides)."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from bug_reporter.batch import GenerateFn
from bug_reporter.llm_client.models import GeneratedReport, JiraConfig, JiraSubmissionResult
from bug_reporter.session import SessionStore
from bug_reporter.tracker_client.jira_client import create_jira_issue

_STORE = SessionStore()

JiraCreateFn = Callable[[GeneratedReport, JiraConfig], Awaitable[JiraSubmissionResult]]


def get_store() -> SessionStore:
    return _STORE


def get_generate() -> Optional[GenerateFn]:
    # None = real LLM generation (bug_reporter.llm_client.generate_report)
    return None


def get_jira_create() -> JiraCreateFn:
    return create_jira_issue

from __future__ import annotations

import os

# Must happen before bug_reporter.config is imported: no network in tests.
os.environ["LLM_PROVIDER"] = "mock"
os.environ.pop("LLM_MODEL", None)
for _key in ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN", "JIRA_PROJECT_KEY"):
    os.environ.pop(_key, None)

import pytest

from bug_reporter.llm_client.llm_client import breaker
from bug_reporter.llm_client.models import BugInput, Environment, GeneratedReport


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    # Failures from one test must not open the breaker for the next one.
    breaker.close()
    yield
    breaker.close()


def make_bug(bug_id: int = 1, **overrides) -> BugInput:
    fields = dict(
        title="Save fails",
        url="/profile",
        steps="1. Open profile 2. Click Save",
        expected="Name updates",
        actual="Page reloads, name unchanged",
    )
    fields.update(overrides)
    return BugInput(id=bug_id, **fields)


def make_report(original_id: int = 1, **overrides) -> GeneratedReport:
    fields = dict(
        suggested_title=f"Profile save does not persist name (#{original_id})",
        summary="Saving the profile reloads the page without updating the name.",
        steps_to_reproduce=["Open the profile page", "Change the name", "Click Save"],
        expected_behavior="The name is updated.",
        actual_behavior="The page reloads and the name is unchanged.",
        impact="Users cannot update their profile.",
        environment=Environment(browser="Chrome", os="Windows", device="Desktop"),
        suggested_fix=None,
        original_id=original_id,
    )
    fields.update(overrides)
    return GeneratedReport(**fields)

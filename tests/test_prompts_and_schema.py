from __future__ import annotations

import copy

from conftest import make_bug

from bug_reporter.llm_client.models import Severity
from bug_reporter.llm_client.prompts import IMAGE_NOTE, build_prompt
from bug_reporter.llm_client.schema import (
    REPORT_SCHEMA,
    to_gemini_schema,
    validate_against_schema,
)


VALID_REPORT = {
    "suggestedTitle": "Profile name is not saved",
    "summary": "Clicking Save reloads the page without persisting the name.",
    "stepsToReproduce": ["Open profile", "Click Save"],
    "expectedBehavior": "Name updates",
    "actualBehavior": "Page reloads, name unchanged",
    "impact": "Users cannot edit their profile.",
    "environment": {"browser": "Not specified", "os": "Not specified", "device": "Not specified"},
}


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------
def test_prompt_contains_user_fields_verbatim():
    bug = make_bug()
    prompt = build_prompt(bug, has_image=False)

    assert "expert QA engineer" in prompt
    assert "- Title: Save fails" in prompt
    assert "- URL: /profile" in prompt
    assert "1. Open profile 2. Click Save" in prompt
    assert "- Expected Result: Name updates" in prompt
    assert "- Actual Result: Page reloads, name unchanged" in prompt
    assert "strictly as a JSON object" in prompt
    assert "Do not include any markdown" in prompt


def test_prompt_without_environment_hints_requests_full_inference():
    prompt = build_prompt(make_bug(), has_image=False)

    assert "has not provided specific environment details" in prompt
    assert "infer the Browser, OS, and Device" in prompt
    assert "- Browser:" not in prompt


def test_prompt_with_partial_hints_lists_values_and_asks_for_missing_only():
    bug = make_bug(browser="Firefox 128", os=None, device="")
    prompt = build_prompt(bug, has_image=False)

    assert "has provided the following environment details" in prompt
    assert "Infer only the details marked as not provided" in prompt
    assert "- Browser: Firefox 128" in prompt
    assert "- OS: Not provided" in prompt
    assert "- Device: Not provided" in prompt
    assert "has not provided specific environment details" not in prompt


def test_image_note_only_when_image_attached():
    bug = make_bug()
    assert IMAGE_NOTE in build_prompt(bug, has_image=True)
    assert IMAGE_NOTE not in build_prompt(bug, has_image=False)


def test_empty_fields_are_marked_not_provided():
    bug = make_bug(url="", expected="   ")
    prompt = build_prompt(bug, has_image=False)

    assert "- URL: Not provided" in prompt
    assert "- Expected Result: Not provided" in prompt


def test_severity_is_listed_when_given():
    prompt = build_prompt(make_bug(severity=Severity.HIGH), has_image=False)
    assert "Severity (as assessed by the reporter): High" in prompt
    assert "Severity" not in build_prompt(make_bug(), has_image=False)


# ---------------------------------------------------------------------------
# Schema contract
# ---------------------------------------------------------------------------
def test_schema_required_fields():
    assert REPORT_SCHEMA["required"] == [
        "suggestedTitle",
        "summary",
        "stepsToReproduce",
        "expectedBehavior",
        "actualBehavior",
        "impact",
        "environment",
    ]
    assert "suggestedFix" not in REPORT_SCHEMA["required"]
    assert REPORT_SCHEMA["properties"]["environment"]["required"] == ["browser", "os", "device"]


def test_valid_report_has_no_violations():
    assert validate_against_schema(VALID_REPORT, REPORT_SCHEMA) == []
    with_fix = {**VALID_REPORT, "suggestedFix": "Persist before reload."}
    assert validate_against_schema(with_fix, REPORT_SCHEMA) == []


def test_missing_impact_is_a_violation():
    data = {k: v for k, v in VALID_REPORT.items() if k != "impact"}
    assert validate_against_schema(data, REPORT_SCHEMA) == ["$.impact: required field missing"]


def test_nested_and_type_violations():
    data = copy.deepcopy(VALID_REPORT)
    del data["environment"]["os"]
    data["stepsToReproduce"] = ["ok", 3]

    violations = validate_against_schema(data, REPORT_SCHEMA)

    assert "$.environment.os: required field missing" in violations
    assert "$.stepsToReproduce[1]: expected string, got int" in violations


def test_non_object_response_is_a_violation():
    assert validate_against_schema(["not", "an", "object"], REPORT_SCHEMA) == [
        "$: expected object, got list"
    ]


def test_gemini_schema_uses_upper_case_types():
    gemini = to_gemini_schema(REPORT_SCHEMA)

    assert gemini["type"] == "OBJECT"
    assert gemini["properties"]["stepsToReproduce"]["type"] == "ARRAY"
    assert gemini["properties"]["stepsToReproduce"]["items"]["type"] == "STRING"
    assert gemini["properties"]["environment"]["properties"]["os"]["type"] == "STRING"
    assert gemini["required"] == REPORT_SCHEMA["required"]
    # source schema untouched
    assert REPORT_SCHEMA["type"] == "object"

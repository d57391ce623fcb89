from __future__ import annotations

from typing import Optional

from bug_reporter.llm_client.models import BugInput

NOT_PROVIDED = "Not provided"

PREAMBLE = """
You are an expert QA engineer. Your task is to take the following user-provided information and generate a professional, well-structured bug report.
The report should be clear, concise, and easy for a developer to understand and act upon.
""".strip()

IMAGE_NOTE = (
    "An image of the bug has been provided. Analyze the image for additional context "
    "like UI elements, error messages, or visual glitches."
)

CLOSING = """
Please analyze this information and generate the bug report. Pay close attention to detail and infer potential impact and environmental factors where appropriate.
If a field above is marked "Not provided", infer it from the rest of the information.
Format your response strictly as a JSON object that adheres to the provided schema. Do not include any markdown formatting or escape characters in the JSON output.
""".strip()


def _value(text: Optional[str]) -> str:
    s = (text or "").strip()
    return s if s else NOT_PROVIDED


def _environment_section(bug: BugInput) -> str:
    if bug.has_environment_hints():
        return "\n".join(
            [
                "The user has provided the following environment details. Use them in your report. "
                "Infer only the details marked as not provided.",
                f"- Browser: {_value(bug.browser)}",
                f"- OS: {_value(bug.os)}",
                f"- Device: {_value(bug.device)}",
            ]
        )
    return (
        "The user has not provided specific environment details. Please infer the Browser, OS, "
        "and Device from the context provided (including the screenshot if available). "
        'Use "Not specified" for any value that cannot be inferred.'
    )


def build_prompt(bug: BugInput, has_image: bool) -> str:
    """
    One instruction block: preamble, verbatim user fields, environment
    section, optional image note, strict-JSON closing.
    """
    fields = [
        "User Input:",
        f"- Title: {_value(bug.title)}",
        f"- URL: {_value(bug.url)}",
        "- Steps to Reproduce:",
        _value(bug.steps),
        f"- Expected Result: {_value(bug.expected)}",
        f"- Actual Result: {_value(bug.actual)}",
    ]
    if bug.severity is not None:
        fields.append(f"- Severity (as assessed by the reporter): {bug.severity.value}")

    sections = [PREAMBLE, "\n".join(fields), _environment_section(bug)]
    if has_image:
        sections.append(IMAGE_NOTE)
    sections.append(CLOSING)

    return "\n\n".join(sections)

# bug_reporter/formatters.py
"""
Text projections of a GeneratedReport (copy-to-clipboard and Jira markup).

Pure functions: they never touch session state.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from bug_reporter.llm_client.models import Branding, GeneratedReport

NO_FIX = "N/A"

_STEPS_HEADER = "**Steps to Reproduce:**"
_NUMBERED_RE = re.compile(r"^(\d+)\. (.*)$")
# Continuation lines of a multi-line step
_STEP_INDENT = "   "


def normalize_step(step: str) -> str:
    """Every kind of line break (CRLF, U+2028, ...) becomes a plain newline; trailing breaks are dropped."""
    return "\n".join(step.splitlines())


def _plain_step(number: int, step: str) -> str:
    first, *rest = normalize_step(step).split("\n")
    return "\n".join([f"{number}. {first}"] + [_STEP_INDENT + line for line in rest])


def render_plain_text(report: GeneratedReport) -> str:
    steps = "\n".join(_plain_step(i, step) for i, step in enumerate(report.steps_to_reproduce, start=1))
    lines = [
        f"**Bug Report: {report.suggested_title}**",
        "",
        "**Summary:**",
        report.summary,
        "",
        _STEPS_HEADER,
        steps,
        "",
        "**Expected Behavior:**",
        report.expected_behavior,
        "",
        "**Actual Behavior:**",
        report.actual_behavior,
        "",
        "**Impact:**",
        report.impact,
        "",
        "**Environment:**",
        f"- Browser: {report.environment.browser}",
        f"- OS: {report.environment.os}",
        f"- Device: {report.environment.device}",
    ]
    if report.severity is not None:
        lines += ["", "**Severity:**", report.severity.value]
    lines += ["", "**Suggested Fix:**", report.suggested_fix or NO_FIX]
    return "\n".join(lines).strip()


def parse_plain_text_steps(text: str) -> List[str]:
    """
    Recover the ordered step list from render_plain_text() output.

    Only the consecutive "N. ..." lines right after the steps header are
    read, so numbered lines elsewhere in the report are ignored. Indented
    lines continue the previous step. Steps come back normalized (see
    normalize_step).
    """
    lines = text.splitlines()
    try:
        start = lines.index(_STEPS_HEADER) + 1
    except ValueError:
        return []

    steps: List[str] = []
    for line in lines[start:]:
        if steps and line.startswith(_STEP_INDENT):
            steps[-1] += "\n" + line[len(_STEP_INDENT):]
            continue
        m = _NUMBERED_RE.match(line)
        if not m or int(m.group(1)) != len(steps) + 1:
            break
        steps.append(m.group(2))
    return steps


def render_jira_markup(report: GeneratedReport) -> str:
    # Jira list items are single lines; \\ is its forced line break
    steps = "\n".join(
        "# " + " \\\\ ".join(normalize_step(step).split("\n")) for step in report.steps_to_reproduce
    )
    sections = [
        f"h2. Summary\n{report.summary}",
        f"h2. Steps to Reproduce\n{steps}",
        f"h2. Expected Behavior\n{report.expected_behavior}",
        f"h2. Actual Behavior\n{report.actual_behavior}",
        f"h2. Impact\n{report.impact}",
        "h2. Environment\n"
        f"*Browser:* {report.environment.browser}\n"
        f"*OS:* {report.environment.os}\n"
        f"*Device:* {report.environment.device}",
    ]
    if report.severity is not None:
        sections.append(f"h2. Severity\n{report.severity.value}")
    sections.append(f"h2. Suggested Fix\n{report.suggested_fix or NO_FIX}")
    return "\n\n".join(sections).strip()


def render_batch_text(reports: Sequence[GeneratedReport], branding: Optional[Branding] = None) -> str:
    """All reports of a batch, numbered, under the project/build header if any."""
    parts: List[str] = []
    if branding is not None:
        header = []
        if branding.project_name:
            header.append(branding.project_name)
        if branding.build_number:
            header.append(f"Build: {branding.build_number}")
        if header:
            parts.append("\n".join(header))

    for i, report in enumerate(reports, start=1):
        parts.append(f"#{i}\n{render_plain_text(report)}")

    return "\n\n---\n\n".join(parts)

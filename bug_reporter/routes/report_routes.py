# bug_reporter/routes/report_routes.py
"""Stateless report endpoints.

- POST /api/reports/generate : one batch in, correlated reports out
- POST /api/reports/render   : text projections of one report

Empty text fields are not rejected here: they reach the prompt as
"Not provided" and the model is asked to infer them. Required-field
validation belongs to the form session (see session_routes).
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from bug_reporter.attachments import attachment_from_base64
from bug_reporter.batch import GENERIC_FAILURE_MESSAGE, GenerateFn, generate_batch
from bug_reporter.config import LLM_PROVIDER, MAX_SCREENSHOT_BYTES
from bug_reporter.formatters import render_jira_markup, render_plain_text
from bug_reporter.llm_client.models import (
    Attachment,
    BugInput,
    GeneratedReport,
    GenerateReportsRequest,
)
from bug_reporter.routes.deps import get_generate

logger = logging.getLogger("bug-report-generator")

router = APIRouter(prefix="/api/reports", tags=["reports"])


class RenderRequest(BaseModel):
    report: GeneratedReport
    format: Literal["text", "jira"] = "text"


def _to_batch(req: GenerateReportsRequest):
    bugs: List[BugInput] = []
    shots: Dict[int, Attachment] = {}
    # Entries without an id get the lowest positive ids nobody claimed explicitly
    taken = {entry.id for entry in req.bugs if entry.id is not None}
    free_ids = (i for i in itertools.count(1) if i not in taken)
    for entry in req.bugs:
        bug_id = entry.id if entry.id is not None else next(free_ids)
        bugs.append(BugInput(id=bug_id, **entry.model_dump(exclude={"id", "screenshot"})))
        if entry.screenshot is not None:
            shots[bug_id] = attachment_from_base64(
                entry.screenshot.data,
                entry.screenshot.mime_type,
                entry.screenshot.name,
                MAX_SCREENSHOT_BYTES,
            )
    return bugs, shots


@router.post("/generate")
async def generate_reports(
    req: GenerateReportsRequest,
    generate: Optional[GenerateFn] = Depends(get_generate),
):
    """
    Generate one report per bug entry.

    All-or-nothing unless allow_partial=true: any failure raises
    BatchGenerationError, mapped to a 502 by the app.
    """
    bugs, shots = _to_batch(req)
    result = await generate_batch(bugs, shots, generate=generate, allow_partial=req.allow_partial)

    return {
        "data": [r.model_dump(by_alias=True, mode="json") for r in result.reports],
        "meta": {
            "count": len(result.reports),
            "requested": len(bugs),
            "provider": LLM_PROVIDER,
        },
        "errors": [
            {"bug_id": bug_id, "message": GENERIC_FAILURE_MESSAGE}
            for bug_id in sorted(result.failures)
        ],
    }


@router.post("/render")
def render_report(req: RenderRequest):
    content = render_jira_markup(req.report) if req.format == "jira" else render_plain_text(req.report)
    return {"data": {"format": req.format, "content": content}, "meta": {"original_id": req.report.original_id}, "errors": []}

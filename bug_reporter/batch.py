# bug_reporter/batch.py
"""
Batch orchestration.

One generation call per bug entry, all started together (no concurrency cap,
batches are small and user-driven), joined once. Default semantics are
all-or-nothing: a single failure fails the whole batch and no report is
published. `allow_partial=True` keeps the successful reports and returns
the failures keyed by entry id instead.

In-flight calls are never cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from bug_reporter.errors import BatchGenerationError, InputValidationError
from bug_reporter.llm_client.llm_agent import generate_report
from bug_reporter.llm_client.models import Attachment, BugInput, GeneratedReport
from bug_reporter.metrics import REPORT_BATCHES

logger = logging.getLogger("bug-report-generator.batch")

GENERIC_FAILURE_MESSAGE = (
    "An error occurred while generating the report. Please check your inputs and try again."
)

GenerateFn = Callable[[BugInput, Optional[Attachment]], Awaitable[GeneratedReport]]


@dataclass(frozen=True)
class BatchResult:
    reports: List[GeneratedReport]
    failures: Dict[int, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _check_batch(bugs: Sequence[BugInput]) -> None:
    if not bugs:
        raise InputValidationError("At least one bug entry is required.")
    seen = set()
    for bug in bugs:
        if bug.id in seen:
            raise InputValidationError(f"Duplicate bug entry id {bug.id}.")
        seen.add(bug.id)


async def _default_generate(bug: BugInput, screenshot: Optional[Attachment]) -> GeneratedReport:
    return await generate_report(bug, screenshot)


async def generate_batch(
    bugs: Sequence[BugInput],
    screenshots: Optional[Mapping[int, Attachment]] = None,
    generate: Optional[GenerateFn] = None,
    allow_partial: bool = False,
) -> BatchResult:
    """
    Generate one report per entry.

    Reports come back in submission order and carry their entry id; the id,
    not the position, is the correlation key.
    """
    _check_batch(bugs)
    shots = screenshots or {}
    gen = generate or _default_generate

    logger.info(f"Generating {len(bugs)} report(s) (allow_partial={allow_partial})")

    outcomes = await asyncio.gather(
        *(gen(bug, shots.get(bug.id)) for bug in bugs),
        return_exceptions=True,
    )

    reports: List[GeneratedReport] = []
    failures: Dict[int, BaseException] = {}
    for bug, outcome in zip(bugs, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                # CancelledError / KeyboardInterrupt are not per-entry failures
                raise outcome
            logger.error(f"Report generation failed for bug #{bug.id}: {outcome!r}")
            failures[bug.id] = outcome
            continue
        if outcome.original_id != bug.id:
            logger.error(f"Report for bug #{bug.id} came back tagged #{outcome.original_id}")
            failures[bug.id] = BatchGenerationError(
                "Report correlation mismatch.", bug_id=bug.id
            )
            continue
        reports.append(outcome)

    if failures and not allow_partial:
        REPORT_BATCHES.labels(outcome="failure").inc()
        first_id = next(b.id for b in bugs if b.id in failures)
        raise BatchGenerationError(
            GENERIC_FAILURE_MESSAGE,
            bug_id=first_id,
            cause=failures[first_id],
        )

    REPORT_BATCHES.labels(outcome="partial" if failures else "success").inc()
    return BatchResult(reports=reports, failures=failures)

# bug_reporter/session.py
"""
Form session state.

SessionState is immutable: every user action is a pure function returning
a new state, and SessionStore only swaps whole values. Nothing here is
persisted; a session lives as long as the process.

Ownership rules:
- a screenshot belongs to exactly one bug entry (keyed by its id) and is
  dropped with it
- reports are replaced wholesale on each submission, never merged
- Jira statuses are keyed by report id and reset with the reports
"""

from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from pydantic import ValidationError

from bug_reporter.batch import GENERIC_FAILURE_MESSAGE, GenerateFn, generate_batch
from bug_reporter.errors import BatchGenerationError, InputValidationError
from bug_reporter.llm_client.models import (
    Attachment,
    BugInput,
    Branding,
    GeneratedReport,
    JiraConfig,
    JiraSubmissionResult,
    JiraSubmissionStatus,
)
from bug_reporter.tracker_client.jira_client import CONFIG_MISSING_MESSAGE, create_jira_issue

logger = logging.getLogger("bug-report-generator.session")

EDITABLE_BUG_FIELDS = frozenset(
    {"title", "url", "steps", "expected", "actual", "browser", "os", "device", "severity"}
)


class IdGenerator:
    """Monotonic id source; ids are never reused within one generator."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)

    def __call__(self) -> int:
        return next(self._counter)


@dataclass(frozen=True)
class SessionState:
    bugs: Tuple[BugInput, ...]
    screenshots: Dict[int, Attachment] = field(default_factory=dict)
    reports: Tuple[GeneratedReport, ...] = ()
    error: Optional[str] = None
    is_loading: bool = False
    branding: Branding = field(default_factory=Branding)
    jira_status: Dict[int, JiraSubmissionStatus] = field(default_factory=dict)
    # Bumped by every submission and by clear; a batch whose number is no
    # longer current is discarded on completion.
    submission: int = 0

    def bug(self, bug_id: int) -> BugInput:
        for b in self.bugs:
            if b.id == bug_id:
                return b
        raise InputValidationError(f"Unknown bug entry {bug_id}.")

    def report(self, report_id: int) -> GeneratedReport:
        for r in self.reports:
            if r.original_id == report_id:
                return r
        raise InputValidationError(f"No generated report for bug entry {report_id}.")


# ---------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------
def new_session(ids: Callable[[], int], branding: Optional[Branding] = None) -> SessionState:
    return SessionState(bugs=(BugInput(id=ids()),), branding=branding or Branding())


def add_bug(state: SessionState, ids: Callable[[], int]) -> SessionState:
    return replace(state, bugs=state.bugs + (BugInput(id=ids()),))


def update_bug(state: SessionState, bug_id: int, changes: Dict[str, Any]) -> SessionState:
    unknown = set(changes) - EDITABLE_BUG_FIELDS
    if unknown:
        raise InputValidationError(f"Unknown bug field(s): {', '.join(sorted(unknown))}.")

    current = state.bug(bug_id)
    try:
        updated = BugInput.model_validate({**current.model_dump(), **changes})
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise InputValidationError(f"Invalid value for bug field(s): {', '.join(fields)}.")
    bugs = tuple(updated if b.id == bug_id else b for b in state.bugs)
    return replace(state, bugs=bugs)


def remove_bug(state: SessionState, bug_id: int) -> SessionState:
    state.bug(bug_id)
    if state.is_loading:
        raise InputValidationError("Bug entries cannot be removed while reports are being generated.")
    if len(state.bugs) == 1:
        raise InputValidationError("At least one bug entry is required.")
    screenshots = {k: v for k, v in state.screenshots.items() if k != bug_id}
    return replace(
        state,
        bugs=tuple(b for b in state.bugs if b.id != bug_id),
        screenshots=screenshots,
    )


def attach_screenshot(state: SessionState, bug_id: int, attachment: Attachment) -> SessionState:
    state.bug(bug_id)
    return replace(state, screenshots={**state.screenshots, bug_id: attachment})


def clear_screenshot(state: SessionState, bug_id: int) -> SessionState:
    state.bug(bug_id)
    return replace(state, screenshots={k: v for k, v in state.screenshots.items() if k != bug_id})


# ---------------------------------------------------------------------
# Branding
# ---------------------------------------------------------------------
def set_branding(
    state: SessionState,
    project_name: Optional[str] = None,
    build_number: Optional[str] = None,
) -> SessionState:
    b = state.branding
    branding = b.model_copy(
        update={
            "project_name": b.project_name if project_name is None else project_name.strip(),
            "build_number": b.build_number if build_number is None else build_number.strip(),
        }
    )
    return replace(state, branding=branding)


def set_logo(state: SessionState, logo: Attachment) -> SessionState:
    return replace(state, branding=state.branding.model_copy(update={"logo": logo}))


def clear_logo(state: SessionState) -> SessionState:
    return replace(state, branding=state.branding.model_copy(update={"logo": None}))


# ---------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------
def begin_submission(state: SessionState) -> SessionState:
    """
    Validate every entry, then drop previous reports, error and Jira
    statuses together and flag the session as loading.
    """
    if state.is_loading:
        raise InputValidationError("A submission is already in progress.")

    problems = []
    for index, bug in enumerate(state.bugs, start=1):
        missing = bug.missing_required_fields()
        if missing:
            problems.append(f"Bug #{index}: {', '.join(missing)}")
    if problems:
        raise InputValidationError("Missing required field(s) – " + "; ".join(problems))

    return replace(
        state,
        reports=(),
        error=None,
        jira_status={},
        is_loading=True,
        submission=state.submission + 1,
    )


def complete_submission(
    state: SessionState,
    reports: Iterable[GeneratedReport],
    error: Optional[str] = None,
) -> SessionState:
    return replace(state, reports=tuple(reports), error=error, is_loading=False)


def fail_submission(state: SessionState, message: str = GENERIC_FAILURE_MESSAGE) -> SessionState:
    return replace(state, reports=(), error=message, is_loading=False)


def dismiss_error(state: SessionState) -> SessionState:
    return replace(state, error=None)


def clear_session(state: SessionState, ids: Callable[[], int]) -> SessionState:
    """Fresh single entry; branding survives. Any in-flight batch is orphaned."""
    return replace(new_session(ids, branding=state.branding), submission=state.submission + 1)


# ---------------------------------------------------------------------
# Jira submission state machine: idle -> loading -> success | error
#                                 error -> loading (retry)
# ---------------------------------------------------------------------
def set_jira_status(state: SessionState, report_id: int, status: JiraSubmissionStatus) -> SessionState:
    return replace(state, jira_status={**state.jira_status, report_id: status})


def begin_jira_submission(state: SessionState, report_id: int, configured: bool) -> SessionState:
    state.report(report_id)
    current = state.jira_status.get(report_id, JiraSubmissionStatus())

    if current.status == "loading":
        raise InputValidationError("A Jira submission is already in progress for this report.")
    if current.status == "success":
        raise InputValidationError(f"This report was already filed as {current.issue_key}.")

    if not configured:
        return set_jira_status(
            state, report_id, JiraSubmissionStatus(status="error", message=CONFIG_MISSING_MESSAGE)
        )
    return set_jira_status(state, report_id, JiraSubmissionStatus(status="loading"))


def finish_jira_submission(state: SessionState, report_id: int, result: JiraSubmissionResult) -> SessionState:
    status = JiraSubmissionStatus(
        status="success" if result.success else "error",
        message=result.message,
        issue_url=result.issue_url,
        issue_key=result.issue_key,
    )
    return set_jira_status(state, report_id, status)


# ---------------------------------------------------------------------
# In-memory store + async actions
# ---------------------------------------------------------------------
class SessionStore:
    def __init__(self, ids: Optional[Callable[[], int]] = None) -> None:
        self.ids = ids or IdGenerator()
        self._sessions: Dict[str, SessionState] = {}

    def create(self) -> Tuple[str, SessionState]:
        session_id = uuid.uuid4().hex
        state = new_session(self.ids)
        self._sessions[session_id] = state
        return session_id, state

    def get(self, session_id: str) -> SessionState:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session '{session_id}'")

    def exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def put(self, session_id: str, state: SessionState) -> SessionState:
        self._sessions[session_id] = state
        return state

    def apply(self, session_id: str, action: Callable[..., SessionState], *args: Any, **kwargs: Any) -> SessionState:
        return self.put(session_id, action(self.get(session_id), *args, **kwargs))

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


def _is_current(store: SessionStore, session_id: str, started: SessionState) -> bool:
    return store.exists(session_id) and store.get(session_id).submission == started.submission


async def submit(
    store: SessionStore,
    session_id: str,
    generate: Optional[GenerateFn] = None,
    allow_partial: bool = False,
) -> SessionState:
    """
    Run the batch for the session's current entries.

    Edits made while the batch runs are kept; only reports/error/loading
    are written back on completion. If the session was cleared or deleted
    meanwhile, the outcome is dropped and the current state is returned.
    """
    started = store.apply(session_id, begin_submission)

    try:
        result = await generate_batch(
            started.bugs,
            started.screenshots,
            generate=generate,
            allow_partial=allow_partial,
        )
    except BatchGenerationError as exc:
        logger.error(f"Session {session_id}: batch failed on bug #{exc.bug_id}: {exc.cause!r}")
        if not store.exists(session_id):
            raise
        if not _is_current(store, session_id, started):
            return store.get(session_id)
        return store.apply(session_id, fail_submission, str(exc))
    except Exception:
        if _is_current(store, session_id, started):
            store.apply(session_id, fail_submission)
        raise

    if not store.exists(session_id):
        return complete_submission(started, result.reports)
    if not _is_current(store, session_id, started):
        logger.info(f"Session {session_id}: discarding results of superseded submission #{started.submission}")
        return store.get(session_id)

    error = None
    if result.failures:
        failed = ", ".join(f"#{i}" for i in sorted(result.failures))
        error = f"Some reports could not be generated (bug {failed}). Please check your inputs and try again."
    return store.apply(session_id, complete_submission, result.reports, error)


async def file_report(
    store: SessionStore,
    session_id: str,
    report_id: int,
    cfg: JiraConfig,
    create: Callable[[GeneratedReport, JiraConfig], Awaitable[JiraSubmissionResult]] = create_jira_issue,
) -> JiraSubmissionStatus:
    state = store.apply(session_id, begin_jira_submission, report_id, cfg.is_configured)
    status = state.jira_status[report_id]
    if status.status == "error":
        return status

    report = state.report(report_id)
    result = await create(report, cfg)

    # A new submission may have replaced the reports meanwhile
    latest = store.get(session_id) if store.exists(session_id) else None
    if latest is None or not any(r is report for r in latest.reports):
        return finish_jira_submission(state, report_id, result).jira_status[report_id]

    return store.apply(session_id, finish_jira_submission, report_id, result).jira_status[report_id]

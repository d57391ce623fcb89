# bug_reporter/routes/session_routes.py
"""Form session endpoints.

One endpoint per user action of the bug form. Every action swaps the
session's state for a new value (see bug_reporter.session); responses
always carry the resulting session view.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from bug_reporter import session as actions
from bug_reporter.attachments import load_logo, load_screenshot
from bug_reporter.batch import GenerateFn
from bug_reporter.config import MAX_LOGO_BYTES, MAX_SCREENSHOT_BYTES
from bug_reporter.formatters import render_batch_text, render_jira_markup, render_plain_text
from bug_reporter.llm_client.models import JiraConfig, Severity
from bug_reporter.routes.deps import JiraCreateFn, get_generate, get_jira_create, get_store
from bug_reporter.session import SessionState, SessionStore
from bug_reporter.tracker_client.jira_client import jira_config_from_env

logger = logging.getLogger("bug-report-generator")

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


# ─────────────────────────────────────────────────────────────
# Payloads
# ─────────────────────────────────────────────────────────────
class BugUpdate(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    steps: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    device: Optional[str] = None
    severity: Optional[Severity] = None


class BrandingUpdate(BaseModel):
    project_name: Optional[str] = None
    build_number: Optional[str] = None


class JiraOverride(BaseModel):
    """Per-request Jira settings; blank fields fall back to the server config."""
    base_url: str = ""
    email: str = ""
    api_token: str = ""
    project_key: str = ""
    issue_type: str = ""


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────
def session_view(session_id: str, state: SessionState) -> Dict[str, Any]:
    return {
        "session_id": session_id,
        "bugs": [
            {
                **b.model_dump(mode="json"),
                "screenshot": state.screenshots[b.id].summary() if b.id in state.screenshots else None,
            }
            for b in state.bugs
        ],
        "reports": [r.model_dump(by_alias=True, mode="json") for r in state.reports],
        "error": state.error,
        "is_loading": state.is_loading,
        "branding": {
            "project_name": state.branding.project_name,
            "build_number": state.branding.build_number,
            "logo": state.branding.logo.summary() if state.branding.logo else None,
        },
        "jira_status": {str(k): v.model_dump() for k, v in state.jira_status.items()},
    }


def _get(store: SessionStore, session_id: str) -> SessionState:
    if not store.exists(session_id):
        raise HTTPException(status_code=404, detail={"message": f"Unknown session '{session_id}'."})
    return store.get(session_id)


def _apply(store: SessionStore, session_id: str, action, *args) -> Dict[str, Any]:
    _get(store, session_id)
    return session_view(session_id, store.apply(session_id, action, *args))


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
    # One byte over the cap is enough to reject without buffering huge uploads
    return await file.read(max_bytes + 1)


def _merge_jira(override: Optional[JiraOverride]) -> JiraConfig:
    cfg = jira_config_from_env()
    if override is None:
        return cfg
    updates = {k: v for k, v in override.model_dump().items() if (v or "").strip()}
    return cfg.model_copy(update=updates)


# ─────────────────────────────────────────────────────────────
# Session lifecycle
# ─────────────────────────────────────────────────────────────
@router.post("", status_code=201)
def create_session(store: SessionStore = Depends(get_store)):
    session_id, state = store.create()
    return session_view(session_id, state)


@router.get("/{session_id}")
def get_session(session_id: str, store: SessionStore = Depends(get_store)):
    return session_view(session_id, _get(store, session_id))


@router.post("/{session_id}/clear")
def clear_session(session_id: str, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.clear_session, store.ids)


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, store: SessionStore = Depends(get_store)):
    store.delete(session_id)


# ─────────────────────────────────────────────────────────────
# Bug entries
# ─────────────────────────────────────────────────────────────
@router.post("/{session_id}/bugs")
def add_bug(session_id: str, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.add_bug, store.ids)


@router.patch("/{session_id}/bugs/{bug_id}")
def update_bug(session_id: str, bug_id: int, body: BugUpdate, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.update_bug, bug_id, body.model_dump(exclude_unset=True))


@router.delete("/{session_id}/bugs/{bug_id}")
def remove_bug(session_id: str, bug_id: int, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.remove_bug, bug_id)


@router.put("/{session_id}/bugs/{bug_id}/screenshot")
async def upload_screenshot(
    session_id: str,
    bug_id: int,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_store),
):
    state = _get(store, session_id)
    state.bug(bug_id)
    data = await _read_upload(file, MAX_SCREENSHOT_BYTES)
    attachment = load_screenshot(data, file.content_type or "", file.filename or "")
    return _apply(store, session_id, actions.attach_screenshot, bug_id, attachment)


@router.get("/{session_id}/bugs/{bug_id}/screenshot")
def get_screenshot(session_id: str, bug_id: int, store: SessionStore = Depends(get_store)):
    state = _get(store, session_id)
    state.bug(bug_id)
    shot = state.screenshots.get(bug_id)
    if shot is None:
        raise HTTPException(status_code=404, detail={"message": f"No screenshot for bug entry {bug_id}."})
    return {**shot.summary(), "data_url": shot.data_url}


@router.delete("/{session_id}/bugs/{bug_id}/screenshot")
def remove_screenshot(session_id: str, bug_id: int, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.clear_screenshot, bug_id)


# ─────────────────────────────────────────────────────────────
# Branding
# ─────────────────────────────────────────────────────────────
@router.put("/{session_id}/branding")
def update_branding(session_id: str, body: BrandingUpdate, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.set_branding, body.project_name, body.build_number)


@router.put("/{session_id}/logo")
async def upload_logo(session_id: str, file: UploadFile = File(...), store: SessionStore = Depends(get_store)):
    _get(store, session_id)
    data = await _read_upload(file, MAX_LOGO_BYTES)
    logo = load_logo(data, file.content_type or "", file.filename or "")
    return _apply(store, session_id, actions.set_logo, logo)


@router.delete("/{session_id}/logo")
def remove_logo(session_id: str, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.clear_logo)


# ─────────────────────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────────────────────
@router.post("/{session_id}/submit")
async def submit_session(
    session_id: str,
    allow_partial: bool = False,
    store: SessionStore = Depends(get_store),
    generate: Optional[GenerateFn] = Depends(get_generate),
):
    _get(store, session_id)
    state = await actions.submit(store, session_id, generate=generate, allow_partial=allow_partial)
    view = session_view(session_id, state)
    if state.error and not state.reports:
        return JSONResponse(
            status_code=502,
            content={"error": "generation_failed", "detail": state.error, "session": view},
        )
    return view


@router.delete("/{session_id}/error")
def dismiss_error(session_id: str, store: SessionStore = Depends(get_store)):
    return _apply(store, session_id, actions.dismiss_error)


# ─────────────────────────────────────────────────────────────
# Export
# ─────────────────────────────────────────────────────────────
@router.get("/{session_id}/reports/{report_id}/export", response_class=PlainTextResponse)
def export_report(
    session_id: str,
    report_id: int,
    format: Literal["text", "jira"] = "text",
    store: SessionStore = Depends(get_store),
):
    report = _get(store, session_id).report(report_id)
    return render_jira_markup(report) if format == "jira" else render_plain_text(report)


@router.get("/{session_id}/export", response_class=PlainTextResponse)
def export_batch(session_id: str, store: SessionStore = Depends(get_store)):
    state = _get(store, session_id)
    return render_batch_text(state.reports, state.branding)


# ─────────────────────────────────────────────────────────────
# Issue tracker
# ─────────────────────────────────────────────────────────────
@router.post("/{session_id}/reports/{report_id}/jira")
async def file_in_jira(
    session_id: str,
    report_id: int,
    body: Optional[JiraOverride] = None,
    store: SessionStore = Depends(get_store),
    create: JiraCreateFn = Depends(get_jira_create),
):
    _get(store, session_id)
    status = await actions.file_report(store, session_id, report_id, _merge_jira(body), create=create)
    return {
        "data": status.model_dump(),
        "meta": {"session_id": session_id, "report_id": report_id},
        "errors": [] if status.status == "success" else [{"source": "jira", "message": status.message}],
    }

from __future__ import annotations

import base64
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ─────────────────────────────────────────────────────────────
# User input
# ─────────────────────────────────────────────────────────────

class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        # Declaration order: Low < Medium < High < Critical
        return list(Severity).index(self)


REQUIRED_BUG_FIELDS = ("title", "url", "steps", "expected", "actual")


class BugInput(BaseModel):
    """
    One user-authored defect description.

    Free-text environment hints and severity are both optional and may
    coexist on the same entry.
    """
    id: int
    title: str = ""
    url: str = ""
    steps: str = ""
    expected: str = ""
    actual: str = ""

    browser: Optional[str] = None
    os: Optional[str] = None
    device: Optional[str] = None
    severity: Optional[Severity] = None

    def missing_required_fields(self) -> List[str]:
        return [name for name in REQUIRED_BUG_FIELDS if not getattr(self, name).strip()]

    def has_environment_hints(self) -> bool:
        return any((v or "").strip() for v in (self.browser, self.os, self.device))


class Attachment(BaseModel):
    """
    Image payload (bug screenshot or company logo).
    `base64` holds the raw bytes without the data-URL prefix.
    """
    model_config = ConfigDict(frozen=True)

    base64: str
    mime_type: str
    name: str = ""

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"

    @property
    def size(self) -> int:
        return len(base64.b64decode(self.base64))

    def summary(self) -> dict:
        return {"name": self.name, "mime_type": self.mime_type, "size": self.size}


# ─────────────────────────────────────────────────────────────
# LLM output models (camelCase on the wire, same as the schema)
# ─────────────────────────────────────────────────────────────

class Environment(BaseModel):
    browser: str
    os: str
    device: str


class ReportContent(BaseModel):
    """
    Structured report as returned by the model, before correlation.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    suggested_title: str
    summary: str
    steps_to_reproduce: List[str]
    expected_behavior: str
    actual_behavior: str
    impact: str
    environment: Environment
    suggested_fix: Optional[str] = None


class GeneratedReport(ReportContent):
    """
    ReportContent tagged with the identifier of the BugInput it came from.
    Never mutated after creation.
    """
    model_config = ConfigDict(frozen=True)

    original_id: int
    severity: Optional[Severity] = None


# ─────────────────────────────────────────────────────────────
# Session-level branding & issue tracker
# ─────────────────────────────────────────────────────────────

class Branding(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_name: str = ""
    build_number: str = ""
    logo: Optional[Attachment] = None


class JiraConfig(BaseModel):
    base_url: str = ""
    email: str = ""
    api_token: str = ""
    project_key: str = ""
    issue_type: str = "Bug"

    @property
    def is_configured(self) -> bool:
        return all(
            (v or "").strip()
            for v in (self.base_url, self.email, self.api_token, self.project_key)
        )


JiraStatus = Literal["idle", "loading", "success", "error"]


class JiraSubmissionStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: JiraStatus = "idle"
    message: str = ""
    issue_url: Optional[str] = None
    issue_key: Optional[str] = None


class JiraSubmissionResult(BaseModel):
    success: bool
    message: str
    issue_url: Optional[str] = None
    issue_key: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# API payloads
# ─────────────────────────────────────────────────────────────

class ScreenshotPayload(BaseModel):
    """Screenshot carried inside a JSON request (base64 or full data URL)."""
    data: str
    mime_type: str = ""
    name: str = "screenshot"


class BugEntryRequest(BaseModel):
    id: Optional[int] = Field(default=None, description="Correlation id; the lowest unused positive id when omitted")
    title: str = ""
    url: str = ""
    steps: str = ""
    expected: str = ""
    actual: str = ""
    browser: Optional[str] = None
    os: Optional[str] = None
    device: Optional[str] = None
    severity: Optional[Severity] = None
    screenshot: Optional[ScreenshotPayload] = None


class GenerateReportsRequest(BaseModel):
    bugs: List[BugEntryRequest] = Field(..., min_length=1)
    allow_partial: bool = False

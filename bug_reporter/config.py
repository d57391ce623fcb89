# bug_reporter/config.py
"""
Central configuration for the bug report generator.

Design goals:
- Always load .env from the repository root in a deterministic way
- Support switching LLM providers (mock / openai / gemini / internal) via LLM_PROVIDER
- Keep secrets out of logs (provide "safe" diagnostics)
- Avoid URL confusion: base URL vs endpoint path
"""

from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv


# ---------------------------------------------------------------------
# 1) Repo root discovery + .env loading
# ---------------------------------------------------------------------
def _find_repo_root(start: Path) -> Path:
    """
    Walk upwards until we find a folder that looks like the repository root.
    Markers: .env, pyproject.toml, README.md
    """
    markers = (".env", "pyproject.toml", "README.md")
    for p in [start, *start.parents]:
        if any((p / m).exists() for m in markers):
            return p
    # Fallback: assume bug_reporter/ is directly under repo root
    return start.parents[1]


REPO_ROOT = _find_repo_root(Path(__file__).resolve())
load_dotenv(dotenv_path=REPO_ROOT / ".env", override=False)


# ---------------------------------------------------------------------
# 2) LLM Provider switch
# ---------------------------------------------------------------------
LLM_PROVIDERS = {"mock", "openai", "gemini", "internal"}

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "mock").strip().lower()
if LLM_PROVIDER not in LLM_PROVIDERS:
    raise RuntimeError(
        f"Invalid LLM_PROVIDER='{LLM_PROVIDER}'. Expected mock|openai|gemini|internal."
    )


# ---------------------------------------------------------------------
# 3) Common LLM settings
# ---------------------------------------------------------------------
_DEFAULT_MODEL = "gemini-2.5-flash" if LLM_PROVIDER == "gemini" else "gpt-4o-mini"

LLM_MODEL = os.getenv("LLM_MODEL", _DEFAULT_MODEL).strip()
# Low temperature: consistent structure over creative variation
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
# 1 = a failed call is surfaced immediately; raise to enable transport retries
LLM_MAX_ATTEMPTS = max(1, int(os.getenv("LLM_MAX_ATTEMPTS", "1")))


# ---------------------------------------------------------------------
# 4) OpenAI settings (LLM_PROVIDER=openai)
#
# IMPORTANT:
# - OPENAI_BASE_URL must be the BASE (e.g. https://api.openai.com/v1)
# - OPENAI_CHAT_PATH must be the PATH (e.g. /chat/completions)
# ---------------------------------------------------------------------
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip()
OPENAI_CHAT_PATH = os.getenv("OPENAI_CHAT_PATH", "/chat/completions").strip()

if OPENAI_CHAT_PATH and not OPENAI_CHAT_PATH.startswith("/"):
    OPENAI_CHAT_PATH = f"/{OPENAI_CHAT_PATH}"


# ---------------------------------------------------------------------
# 5) Gemini settings (LLM_PROVIDER=gemini)
# ---------------------------------------------------------------------
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
).strip()


# ---------------------------------------------------------------------
# 6) Internal LLMaaS settings (LLM_PROVIDER=internal)
#
# OpenAI-compatible gateway. If LLM_BASE_URL already is the full endpoint,
# set LLM_CHAT_PATH="".
# ---------------------------------------------------------------------
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "").strip()
LLM_CHAT_PATH = os.getenv("LLM_CHAT_PATH", "").strip()
LLM_API_TOKEN = os.getenv("LLM_API_TOKEN", "").strip()

if LLM_CHAT_PATH and not LLM_CHAT_PATH.startswith("/"):
    LLM_CHAT_PATH = f"/{LLM_CHAT_PATH}"


# ---------------------------------------------------------------------
# 7) Attachments
# ---------------------------------------------------------------------
MAX_SCREENSHOT_BYTES = 4 * 1024 * 1024
MAX_LOGO_BYTES = 1 * 1024 * 1024
ALLOWED_IMAGE_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})


# ---------------------------------------------------------------------
# 8) Issue tracker (Jira Cloud)
# ---------------------------------------------------------------------
JIRA_BASE_URL = os.getenv("JIRA_BASE_URL", "").strip().rstrip("/")
JIRA_EMAIL = os.getenv("JIRA_EMAIL", "").strip()
JIRA_API_TOKEN = os.getenv("JIRA_API_TOKEN", "").strip()
JIRA_PROJECT_KEY = os.getenv("JIRA_PROJECT_KEY", "").strip()
JIRA_ISSUE_TYPE = os.getenv("JIRA_ISSUE_TYPE", "Bug").strip() or "Bug"
JIRA_TIMEOUT_SECONDS = float(os.getenv("JIRA_TIMEOUT_SECONDS", "20"))


# ---------------------------------------------------------------------
# 9) Provider validation helpers (used by LLMClient)
# ---------------------------------------------------------------------
def validate_llm_config(provider: str = LLM_PROVIDER) -> None:
    """
    Validate required settings for the selected provider.
    - mock: no requirements
    - openai: requires OPENAI_API_KEY
    - gemini: requires GEMINI_API_KEY
    - internal: requires LLM_BASE_URL (token kept soft)
    """
    if provider == "openai":
        if not OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is empty (LLM_PROVIDER=openai).")
        if not OPENAI_BASE_URL:
            raise RuntimeError("OPENAI_BASE_URL is empty (LLM_PROVIDER=openai).")

    if provider == "gemini":
        if not GEMINI_API_KEY:
            raise RuntimeError("GEMINI_API_KEY is empty (LLM_PROVIDER=gemini).")

    if provider == "internal":
        if not LLM_BASE_URL:
            raise RuntimeError("LLM_BASE_URL is empty (LLM_PROVIDER=internal).")


def config_diag_safe() -> dict:
    """
    Safe diagnostics (no secrets).
    Served by /api/diag/config.
    """
    return {
        "repo_root": str(REPO_ROOT),
        "llm_provider": LLM_PROVIDER,
        "llm_model": LLM_MODEL,
        "llm_temperature": LLM_TEMPERATURE,
        "llm_timeout_seconds": LLM_TIMEOUT_SECONDS,
        "llm_max_attempts": LLM_MAX_ATTEMPTS,
        "openai_base_url": OPENAI_BASE_URL if LLM_PROVIDER == "openai" else None,
        "has_openai_key": bool(OPENAI_API_KEY),
        "gemini_base_url": GEMINI_BASE_URL if LLM_PROVIDER == "gemini" else None,
        "has_gemini_key": bool(GEMINI_API_KEY),
        "internal_base_url": LLM_BASE_URL if LLM_PROVIDER == "internal" else None,
        "internal_chat_path": LLM_CHAT_PATH if LLM_PROVIDER == "internal" else None,
        "has_internal_token": bool(LLM_API_TOKEN),
        "jira_base_url": JIRA_BASE_URL or None,
        "jira_project_key": JIRA_PROJECT_KEY or None,
        "has_jira_token": bool(JIRA_API_TOKEN),
        "max_screenshot_bytes": MAX_SCREENSHOT_BYTES,
        "max_logo_bytes": MAX_LOGO_BYTES,
    }

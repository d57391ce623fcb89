# bug_reporter/routes/diag_routes.py
import logging

from fastapi import APIRouter

from bug_reporter.config import LLM_PROVIDER, config_diag_safe, validate_llm_config
from bug_reporter.llm_client.llm_client import LLMClient

logger = logging.getLogger("bug-report-generator")
router = APIRouter(tags=["diag"])


@router.get("/health")
def health():
    return {"status": "ok", "llm_provider": LLM_PROVIDER}


@router.get("/api/diag/config")
def diag_config():
    diag = config_diag_safe()
    try:
        validate_llm_config()
        diag["llm_config_error"] = None
    except RuntimeError as exc:
        diag["llm_config_error"] = str(exc)
    return diag


@router.get("/api/diag/llm")
async def diag_llm():
    llm = LLMClient()
    content = await llm.chat(
        [
            {"role": "system", "content": "You are a diagnostic bot."},
            {"role": "user", "content": "Reply with: OK"},
        ]
    )
    return {"ok": True, "provider": llm.provider, "reply": content[:200]}

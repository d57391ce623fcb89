# bug_reporter/routes/__init__.py
"""Router registry.

Single source of truth for FastAPI route inclusion.

Guidelines:
- Keep this list deterministic and explicit.
- Each router must be mounted exactly once (no duplicates).
"""

from __future__ import annotations

from bug_reporter.routes.diag_routes import router as diag_router
from bug_reporter.routes.report_routes import router as report_router
from bug_reporter.routes.session_routes import router as session_router

# Deterministic inclusion order:
# 1) Diagnostics
# 2) Stateless report API
# 3) Form sessions
routers = [
    diag_router,
    report_router,
    session_router,
]

__all__ = ["routers"]

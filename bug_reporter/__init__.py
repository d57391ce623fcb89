# bug_reporter/__init__.py
"""
AI bug report generator.

FastAPI service that turns one or more user-written bug descriptions into
structured reports through a schema-constrained LLM call, renders them as
plain text or Jira markup, and can file them in Jira.

Usage (development):
    python -m uvicorn bug_reporter.main:app --reload

Install in editable mode for a reliable import path during auto-reload:
    pip install -e .
"""

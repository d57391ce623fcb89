# bug_reporter/llm_client/__init__.py
from .llm_client import LLMClient
from .llm_agent import generate_report, generate_report_content

__all__ = ["LLMClient", "generate_report", "generate_report_content"]

# bug_reporter/attachments.py
"""
Image attachments (bug screenshots, company logo).

Every loader validates first and only then builds the Attachment, so a
rejected upload never reaches the session state.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Tuple

from bug_reporter.config import (
    ALLOWED_IMAGE_MIME_TYPES,
    MAX_LOGO_BYTES,
    MAX_SCREENSHOT_BYTES,
)
from bug_reporter.errors import InputValidationError
from bug_reporter.llm_client.models import Attachment

logger = logging.getLogger("bug-report-generator.attachments")


def _human_size(n: int) -> str:
    if n % (1024 * 1024) == 0:
        return f"{n // (1024 * 1024)}MB"
    return f"{n} bytes"


def load_attachment(data: bytes, mime_type: str, name: str, max_bytes: int) -> Attachment:
    mime = (mime_type or "").strip().lower()
    if not data:
        raise InputValidationError(f"File '{name}' is empty.")
    if mime not in ALLOWED_IMAGE_MIME_TYPES:
        raise InputValidationError(
            f"Unsupported file type '{mime_type}'. Use PNG, JPG, GIF or WEBP."
        )
    if len(data) > max_bytes:
        logger.info(f"Rejected attachment '{name}': {len(data)} bytes > {max_bytes}")
        raise InputValidationError(
            f"File size exceeds {_human_size(max_bytes)}. Please upload a smaller image."
        )

    return Attachment(
        base64=base64.b64encode(data).decode("ascii"),
        mime_type=mime,
        name=name or "",
    )


def load_screenshot(data: bytes, mime_type: str, name: str) -> Attachment:
    return load_attachment(data, mime_type, name, MAX_SCREENSHOT_BYTES)


def load_logo(data: bytes, mime_type: str, name: str) -> Attachment:
    return load_attachment(data, mime_type, name, MAX_LOGO_BYTES)


def split_data_url(value: str) -> Tuple[Optional[str], str]:
    """
    "data:image/png;base64,AAAA" -> ("image/png", "AAAA")
    "AAAA"                        -> (None, "AAAA")
    """
    s = (value or "").strip()
    if s.startswith("data:") and "," in s:
        header, payload = s.split(",", 1)
        mime = header[len("data:"):].split(";", 1)[0].strip() or None
        return mime, payload
    return None, s


def attachment_from_base64(value: str, mime_type: str, name: str, max_bytes: int) -> Attachment:
    """Decode a base64 (or data URL) payload coming from a JSON request."""
    url_mime, payload = split_data_url(value)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputValidationError(f"File '{name}' is not valid base64: {exc}")
    return load_attachment(data, mime_type or url_mime or "", name, max_bytes)

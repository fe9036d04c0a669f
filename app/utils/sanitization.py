"""Cleaning for user-authored text: post fields, pitches, messages, rating comments"""

import html
import re
from typing import Optional

from ..errors import BadRequestError

MAX_CONTENT_LENGTH = 5000
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def escape_text(value: Optional[str]) -> Optional[str]:
    """HTML-escape optional text; None passes through"""
    if value is None:
        return None
    return html.escape(value, quote=True)


def clean_text(value: Optional[str], field: str = "Content", max_length: int = MAX_CONTENT_LENGTH) -> str:
    """
    Trim, length-check and escape required text.

    Raises:
        BadRequestError: If the text is empty after trimming or longer than max_length
    """
    text = (value or "").strip()
    if not text:
        raise BadRequestError(f"{field} is required")
    if len(text) > max_length:
        raise BadRequestError(f"{field} exceeds maximum length of {max_length} characters")
    return CONTROL_CHARS.sub("", html.escape(text, quote=True))

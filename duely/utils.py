"""
FILE: duely/utils.py
PURPOSE: Shared helpers for timestamps, input validation and markdown previews
EXPORTS:
  - now_iso(now) -> str
  - parse_timestamp(value, field) -> datetime
  - normalize_timestamp(value, field) -> str
  - validate_color(color) -> str
  - strip_markdown(markdown) -> str
DEPENDENCIES:
  - datetime (stdlib)
  - re (stdlib)
  - duely.core.exceptions (ValidationError)
NOTES:
  - Timestamps are stored as ISO-8601 strings (naive local time)
  - Date-only input ("2025-01-10") is accepted and means midnight
  - Timezone-aware input is converted to naive local time
"""

import re
from datetime import datetime
from typing import Optional, Union

from .core.exceptions import ValidationError


_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def now_iso(now: Optional[datetime] = None) -> str:
    """Return `now` (or the current time) as a naive local ISO-8601 string."""
    return parse_timestamp(now or datetime.now(), "timestamp").isoformat()


def parse_timestamp(value: Union[str, datetime], field: str = "date") -> datetime:
    """
    Parse an ISO-8601 string (or pass a datetime through).

    Raises:
        ValidationError: If the value can't be parsed
    """
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value).strip())
        except ValueError:
            raise ValidationError(f"Invalid {field}: '{value}' (expected YYYY-MM-DD or ISO-8601)")

    # Stored timestamps are naive local time
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def normalize_timestamp(value: Union[str, datetime], field: str = "date") -> str:
    """Validate a timestamp and return its canonical ISO-8601 form."""
    return parse_timestamp(value, field).isoformat()


def validate_color(color: str) -> str:
    """Accept #rrggbb hex colors, lowercased."""
    color = (color or "").strip()
    if not _HEX_COLOR.match(color):
        raise ValidationError(f"Invalid color '{color}'. Must be a hex value like #3b82f6")
    return color.lower()


def strip_markdown(markdown: Optional[str]) -> str:
    """
    Convert markdown to a plain single-line preview string.

    Removes code, images, link targets, heading/list/quote markers,
    checkboxes, emphasis markers and horizontal rules, then collapses
    whitespace.
    """
    if not markdown:
        return ""

    text = markdown
    text = re.sub(r"```[\s\S]*?```", " ", text)
    text = re.sub(r"`[^`]*`", " ", text)
    text = re.sub(r"!\[[^\]]*\]\([^)]*\)", " ", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"^\s{0,3}(#{1,6}|>|-|\*|\+|\d+\.)\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\s*\[( |x|X)\]\s+", " ", text)
    text = re.sub(r"([*_~]{1,3})(\S.*?\S?)\1", r"\2", text)
    text = re.sub(r"^(-{3,}|\*{3,}|_{3,})$", " ", text, flags=re.MULTILINE)
    text = re.sub(r"[\r\n]+", " ", text)
    text = re.sub(r"\s+", " ", text)

    return text.strip()

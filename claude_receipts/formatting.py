"""Text formatting helpers shared by every receipt rendering."""
import re
from datetime import datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DATE_SUFFIX_PATTERN = re.compile(r'-\d{8}$')

# Canonical model identifiers (date suffix removed) -> display names
MODEL_NAMES = {
    "claude-sonnet-4-5": "Claude Sonnet 4.5",
    "claude-opus-4-5": "Claude Opus 4.5",
    "claude-haiku-4-5": "Claude Haiku 4.5",
    "claude-3-5-sonnet": "Claude 3.5 Sonnet",
    "claude-3-opus": "Claude 3 Opus",
    "claude-3-haiku": "Claude 3 Haiku",
}

FALLBACK_MODEL_NAME = "Claude"


def format_currency(amount: float) -> str:
    """Format an amount as US dollars with two decimals."""
    return f"${amount:.2f}"


def format_number(value: int) -> str:
    """Format a count with thousands separators."""
    return f"{value:,}"


def format_datetime(value: datetime, timezone: Optional[str] = None) -> str:
    """Format a timestamp, converted to ``timezone`` when one is given.

    Without a timezone, or with an unknown one, the machine's local time
    is shown.
    """
    if timezone:
        try:
            zone = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            zone = None
        if zone is not None:
            return value.astimezone(zone).strftime("%Y-%m-%d %H:%M:%S %Z")
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def model_display_name(model: str) -> str:
    """Map a raw model identifier to its display name.

    A trailing ``-YYYYMMDD`` date is ignored for the lookup. Identifiers
    not in ``MODEL_NAMES`` are returned unchanged.
    """
    cleaned = DATE_SUFFIX_PATTERN.sub("", model)
    return MODEL_NAMES.get(cleaned, model)


def primary_model(records: Sequence, models_used: Optional[Sequence[str]] = None) -> str:
    """Pick the display name of the model credited on the receipt footer."""
    if records:
        return model_display_name(records[0].model)
    if models_used:
        return model_display_name(models_used[0])
    return FALLBACK_MODEL_NAME


def two_column(left: str, right: str, width: int) -> str:
    """Lay out ``left`` flush left and ``right`` flush right on one line.

    Rows that do not fit are joined by a single space and never truncated.
    """
    gap = width - len(left) - len(right)
    if gap < 1:
        return f"{left} {right}"
    return left + " " * gap + right


def center(text: str, width: int) -> str:
    """Left-pad text so it sits centered in ``width`` columns."""
    padding = max(0, (width - len(text)) // 2)
    return " " * padding + text

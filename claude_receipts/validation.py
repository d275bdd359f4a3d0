"""Validation of receipt payloads posted to the web service."""
import math
from typing import List, Tuple

from claude_receipts.receipt import parse_timestamp

MAX_STRING_LENGTH = 200
MAX_LOCATION_LENGTH = 100
MAX_MODEL_BREAKDOWNS = 10


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_non_negative_number(value) -> bool:
    return _is_number(value) and value >= 0


def _is_non_negative_integer(value) -> bool:
    return _is_non_negative_number(value) and float(value).is_integer()


def _validate_breakdown(breakdown, index: int) -> List[dict]:
    prefix = f"modelBreakdowns[{index}]"
    if not isinstance(breakdown, dict):
        return [{"field": prefix, "message": "must be an object"}]

    errors = []
    name = breakdown.get("modelName")
    if not isinstance(name, str) or not name:
        errors.append({"field": f"{prefix}.modelName", "message": "must be a non-empty string"})
    elif len(name) > MAX_STRING_LENGTH:
        errors.append({"field": f"{prefix}.modelName",
                       "message": f"must be at most {MAX_STRING_LENGTH} characters"})

    for key in ("inputTokens", "outputTokens"):
        if not _is_non_negative_integer(breakdown.get(key)):
            errors.append({"field": f"{prefix}.{key}", "message": "must be a non-negative integer"})

    for key in ("cacheCreationTokens", "cacheReadTokens"):
        if breakdown.get(key) is not None and not _is_non_negative_integer(breakdown[key]):
            errors.append({"field": f"{prefix}.{key}", "message": "must be a non-negative integer"})

    if not _is_non_negative_number(breakdown.get("cost")):
        errors.append({"field": f"{prefix}.cost", "message": "must be a non-negative number"})

    return errors


def validate_receipt_data(data) -> Tuple[bool, List[dict]]:
    """Check a receipt payload.

    Returns:
        (valid, errors) where each error is ``{"field": ..., "message": ...}``
    """
    if not isinstance(data, dict):
        return False, [{"field": "root", "message": "data must be an object"}]

    errors = []

    slug = data.get("sessionSlug")
    if not isinstance(slug, str) or not slug:
        errors.append({"field": "sessionSlug", "message": "must be a non-empty string"})
    elif len(slug) > MAX_STRING_LENGTH:
        errors.append({"field": "sessionSlug", "message": f"must be at most {MAX_STRING_LENGTH} characters"})

    location = data.get("location")
    if not isinstance(location, str):
        errors.append({"field": "location", "message": "must be a string"})
    elif len(location) > MAX_LOCATION_LENGTH:
        errors.append({"field": "location", "message": f"must be at most {MAX_LOCATION_LENGTH} characters"})

    session_date = data.get("sessionDate")
    try:
        if not isinstance(session_date, str):
            raise ValueError
        parse_timestamp(session_date)
    except ValueError:
        errors.append({"field": "sessionDate", "message": "must be a valid ISO 8601 date string"})

    tz = data.get("timezone")
    if tz is not None and (not isinstance(tz, str) or len(tz) > MAX_STRING_LENGTH):
        errors.append({"field": "timezone", "message": "must be a string"})

    if not _is_non_negative_number(data.get("totalCost")):
        errors.append({"field": "totalCost", "message": "must be a non-negative number"})

    breakdowns = data.get("modelBreakdowns")
    if not isinstance(breakdowns, list):
        errors.append({"field": "modelBreakdowns", "message": "must be an array"})
    elif len(breakdowns) > MAX_MODEL_BREAKDOWNS:
        errors.append({"field": "modelBreakdowns",
                       "message": f"must have at most {MAX_MODEL_BREAKDOWNS} items"})
    else:
        for index, breakdown in enumerate(breakdowns):
            errors.extend(_validate_breakdown(breakdown, index))

    models_used = data.get("modelsUsed")
    if models_used is not None and not (
        isinstance(models_used, list)
        and len(models_used) <= MAX_MODEL_BREAKDOWNS
        and all(isinstance(m, str) and m and len(m) <= MAX_STRING_LENGTH for m in models_used)
    ):
        errors.append({"field": "modelsUsed",
                       "message": f"must be an array of at most {MAX_MODEL_BREAKDOWNS} model names"})

    return not errors, errors

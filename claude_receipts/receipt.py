"""Receipt content models."""
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Optional

from claude_receipts.formatting import primary_model


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing ``Z``."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


@dataclass(frozen=True)
class ModelUsageRecord:
    """Token usage and cost for one model within a session."""
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0
    cost: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "ModelUsageRecord":
        """Build from a usage breakdown entry (camelCase keys)."""
        return cls(
            model=data["modelName"],
            input_tokens=int(data.get("inputTokens") or 0),
            output_tokens=int(data.get("outputTokens") or 0),
            cache_write_tokens=int(data.get("cacheCreationTokens") or 0),
            cache_read_tokens=int(data.get("cacheReadTokens") or 0),
            cost=float(data.get("cost") or 0.0),
        )


@dataclass(frozen=True)
class ReceiptContent:
    """Everything a receipt shows, independent of the output format."""
    location: str
    session: str
    timestamp: datetime
    records: tuple = ()
    total_cost: float = 0.0
    timezone: Optional[str] = None
    models_used: tuple = ()

    @property
    def cashier(self) -> str:
        """Display name of the model credited as cashier."""
        return primary_model(self.records, self.models_used)

    @property
    def total_tokens(self) -> int:
        """Tokens across every model and category."""
        return sum(
            r.input_tokens + r.output_tokens + r.cache_write_tokens + r.cache_read_tokens
            for r in self.records
        )

    @classmethod
    def from_dict(cls, data: dict) -> "ReceiptContent":
        """Build from a JSON receipt payload (as posted to the web service)."""
        return cls(
            location=data.get("location") or "The Cloud",
            session=data.get("sessionSlug") or "unknown-session",
            timestamp=parse_timestamp(data["sessionDate"]),
            records=tuple(ModelUsageRecord.from_dict(m) for m in data.get("modelBreakdowns") or []),
            total_cost=float(data.get("totalCost") or 0.0),
            timezone=data.get("timezone") or None,
            models_used=tuple(data.get("modelsUsed") or ()),
        )

    @classmethod
    def from_usage(cls, session: dict, transcript, location: str,
                   timezone: Optional[str] = None) -> "ReceiptContent":
        """Combine a usage session entry with a parsed transcript."""
        return cls(
            location=location,
            session=transcript.slug,
            timestamp=transcript.end_time,
            records=tuple(ModelUsageRecord.from_dict(m) for m in session.get("modelBreakdowns") or []),
            total_cost=float(session.get("totalCost") or 0.0),
            timezone=timezone,
            models_used=tuple(session.get("modelsUsed") or ()),
        )

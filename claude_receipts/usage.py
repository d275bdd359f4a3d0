"""Session usage data from ccusage and Claude Code transcripts."""
import json
import logging
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from claude_receipts.receipt import parse_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_PROJECT = "Unknown Project"
PROMPT_MAX_LENGTH = 100


class UsageError(Exception):
    """Usage statistics or a transcript could not be loaded."""


@dataclass
class Transcript:
    """Summary of a session transcript."""
    slug: str
    first_prompt: str
    start_time: datetime
    end_time: datetime
    user_messages: int
    assistant_messages: int
    total_messages: int


def fetch_session_usage(session_id: Optional[str] = None, timeout: float = 30) -> dict:
    """Fetch a session's usage breakdown from the ccusage CLI.

    Without ``session_id`` the first session with a real project path is
    returned.
    """
    args = ["npx", "ccusage", "session", "--json", "--breakdown"]
    if session_id:
        args += ["--id", session_id]

    try:
        result = subprocess.run(args, check=True, capture_output=True, text=True, timeout=timeout)
        response = json.loads(result.stdout)
    except subprocess.CalledProcessError as e:
        raise UsageError(f"Failed to fetch session data: {(e.stderr or '').strip() or e}") from e
    except (subprocess.TimeoutExpired, OSError, json.JSONDecodeError) as e:
        raise UsageError(f"Failed to fetch session data: {e}") from e

    sessions = response.get("sessions") or []
    if not sessions:
        raise UsageError("Failed to fetch session data: No session data found")

    if session_id:
        return sessions[0]

    for session in sessions:
        if session.get("projectPath") and session["projectPath"] != UNKNOWN_PROJECT:
            return session
    raise UsageError(
        "Failed to fetch session data: No sessions with valid project paths found. "
        "Run this command from a SessionEnd hook."
    )


def transcript_path_for(session: dict) -> str:
    """Locate the transcript file of a ccusage session."""
    project_path = session.get("projectPath")
    if not project_path or project_path == UNKNOWN_PROJECT:
        raise UsageError("Cannot determine transcript path. Session has no valid project path.")
    return os.path.join(os.path.expanduser("~"), ".claude", "projects", f"{project_path}.jsonl")


def parse_transcript(path: str) -> Transcript:
    """Parse a JSONL session transcript."""
    path = os.path.expanduser(path)
    if not os.path.exists(path):
        raise UsageError(f"Transcript file not found: {path}")

    messages = []
    with open(path, "r", encoding="utf-8") as f:
        for number, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                messages.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise UsageError(f"Invalid transcript line {number} in {path}: {e}") from e

    user_messages = [m for m in messages if m.get("type") == "user"]
    assistant_messages = [m for m in messages if m.get("type") == "assistant"]
    first_user = user_messages[0] if user_messages else None

    timestamps = []
    for m in messages:
        if m.get("timestamp"):
            try:
                timestamps.append(parse_timestamp(m["timestamp"]))
            except ValueError:
                logger.debug("Skipping unparsable timestamp %r", m["timestamp"])
    now = datetime.now(timezone.utc)

    return Transcript(
        slug=(first_user or {}).get("slug") or "unknown-session",
        first_prompt=_prompt_text(first_user),
        start_time=timestamps[0] if timestamps else now,
        end_time=timestamps[-1] if timestamps else now,
        user_messages=len(user_messages),
        assistant_messages=len(assistant_messages),
        total_messages=len(messages),
    )


def _prompt_text(message: Optional[dict]) -> str:
    content = ((message or {}).get("message") or {}).get("content")
    if isinstance(content, str):
        text = content
    elif isinstance(content, list):
        text = " ".join(
            part["text"] for part in content
            if isinstance(part, dict) and part.get("type") == "text" and part.get("text")
        )
    else:
        return "No prompt available"

    if len(text) <= PROMPT_MAX_LENGTH:
        return text
    return text[:PROMPT_MAX_LENGTH].strip() + "..."

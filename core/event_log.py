"""
Domain event log for WeekStreak.

Append-only JSONL record of every state transition the gating engine
causes (goal_created, task_created, task_completed, task_unlocked,
goal_completed, payment_recorded). The document store holds current
state; this log answers "what happened and when".
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from core.logger import get_logger
from core.paths import DATA_DIR

EVENT_LOG_PATH = DATA_DIR / "event_log.jsonl"

EVENT_SCHEMA_VERSION = "1.0"

logger = get_logger("event_log")


def normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an event to the canonical shape.
    """
    normalized = dict(event)
    normalized.setdefault("timestamp", datetime.now().isoformat())
    normalized.setdefault("schema_version", EVENT_SCHEMA_VERSION)
    normalized.setdefault("event_id", f"evt_{uuid4().hex[:12]}")
    normalized.setdefault("payload", {})
    return normalized


def append_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Append an event to the event log and return the stored form.
    """
    normalized_event = normalize_event(event)

    EVENT_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)

    with open(EVENT_LOG_PATH, "a", encoding="utf-8") as f:
        f.write(json.dumps(normalized_event, ensure_ascii=False, default=str) + "\n")

    logger.debug("event %s %s", normalized_event["type"], normalized_event["event_id"])
    return normalized_event


def read_events(
    event_type: Optional[str] = None,
    user_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Read events back, oldest first.

    Lines that fail to parse are logged and skipped.
    """
    if not EVENT_LOG_PATH.exists():
        return []

    events: List[Dict[str, Any]] = []
    with open(EVENT_LOG_PATH, "r", encoding="utf-8") as f:
        for line_number, raw_line in enumerate(f, start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("corrupt event log line %d: %s", line_number, e)
                continue
            if event_type and event.get("type") != event_type:
                continue
            if user_id and event.get("user_id") != user_id:
                continue
            events.append(event)

    if limit is not None:
        return events[-limit:] if limit > 0 else []
    return events

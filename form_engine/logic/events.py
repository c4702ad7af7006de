"""Domain event constants and publisher.

Routes publish after a successful storage write. Events are logged and
buffered in-process; a message broker adapter can drain the buffer.
"""

from __future__ import annotations

from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)

DEFINITION_PUBLISHED = "form_definition.published"
DEFINITION_ARCHIVED = "form_definition.archived"
RESPONSE_STARTED = "form_response.started"
RESPONSE_AUTOSAVED = "form_response.autosaved"
RESPONSE_SUBMITTED = "form_response.submitted"

EVENT_BUFFER: List[Dict[str, Any]] = []


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    EVENT_BUFFER.append({"type": event_type, "payload": payload})


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "DEFINITION_PUBLISHED",
    "DEFINITION_ARCHIVED",
    "RESPONSE_STARTED",
    "RESPONSE_AUTOSAVED",
    "RESPONSE_SUBMITTED",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]

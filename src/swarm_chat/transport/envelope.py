"""
Event envelope parsing.

parse_event() is total: it never raises, returning None for anything that
cannot be turned into a TaskEvent.
"""

import json
import logging
from typing import Any, Optional, Union

from swarm_chat.models.events import TaskEvent, WireEvent

logger = logging.getLogger(__name__)

RawEvent = Union[TaskEvent, WireEvent, dict[str, Any], str, bytes]


def parse_event(raw: RawEvent) -> Optional[TaskEvent]:
    """Decode a pushed record (JSON text, dict or model). Returns None if invalid."""
    if isinstance(raw, TaskEvent):
        return raw
    if isinstance(raw, WireEvent):
        return TaskEvent.from_wire(raw)
    try:
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        if not isinstance(raw, dict):
            logger.warning("Dropping event that is not an object: %r", raw)
            return None
        return TaskEvent.from_wire(WireEvent.model_validate(raw))
    except ValueError as e:
        logger.warning("Dropping malformed event: %s", e)
        return None

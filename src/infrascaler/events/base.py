#!/usr/bin/env python3
"""
Event types, the event record and the handler interface
"""

import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EventType(str, Enum):
    """Notifications published by the orchestrator"""

    # Lifecycle
    INITIALIZED = "initialized"
    DEPLOYED = "deployed"
    SHUTDOWN = "shutdown"

    # Scaling
    SCALED = "scaled"
    SCALING_FAILED = "scaling_failed"

    # Observation
    UNHEALTHY = "unhealthy"
    METRICS = "metrics"


def _jsonable(value: Any) -> Any:
    """Turn pydantic models nested in an event payload into plain data"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class Event:
    """
    One notification with its payload

    Subclasses pin ``event_type`` and check that their payload carries the
    keys subscribers rely on.
    """

    event_type: Optional[EventType] = None
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "orchestrator"
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.event_type is None:
            raise ValueError(f"{type(self).__name__} has no event_type")

    def require(self, *keys: str):
        missing = [key for key in keys if key not in self.data]
        if missing:
            raise ValueError(f"{self.event_type.value} event requires {', '.join(missing)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "event_id": self.event_id,
            "source": self.source,
            "timestamp": self.timestamp.isoformat(),
            "data": _jsonable(self.data),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class EventHandler(ABC):
    """Receives the events the bus dispatches to it"""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def handle(self, event: Event) -> bool:
        """
        Process one event

        Returns:
            False to report the event as not handled
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"

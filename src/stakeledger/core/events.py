"""
Structured ledger events.

Each mutating operation appends a LedgerEvent to its component's event log
describing the state transition. The append goes through the journal, so
events from a rolled-back operation disappear with the rest of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .environment import Journal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    """Represents a ledger state transition."""

    name: str  # e.g. "Staked", "ScheduleRevoked", "Locked"
    timestamp: int
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "timestamp": self.timestamp, "args": dict(self.args)}


def emit_event(
    journal: Journal,
    events: list[LedgerEvent],
    component: str,
    name: str,
    timestamp: int,
    **args: Any,
) -> LedgerEvent:
    """Append an event to ``events`` and log it."""
    event = LedgerEvent(name=name, timestamp=timestamp, args=args)
    journal.append(events, event)
    logger.debug(
        "%s emitted %s",
        component,
        name,
        extra={
            "event": f"{component}.{name}",
            "extra_fields": {"event_args": {k: str(v) for k, v in args.items()}},
        },
    )
    return event

"""Event log handling: appending events and matching stop conditions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from nebula4x.model import (
    INVALID_ID,
    EventCategory,
    EventContext,
    EventLevel,
    GameState,
    Id,
    SimEvent,
)

_SEQ_LIMIT = 1 << 64
_TRIM_SLACK = 128

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


@dataclass
class EventStopCondition:
    """Which new events should halt an advance-until-event run."""

    stop_on_info: bool = False
    stop_on_warn: bool = True
    stop_on_error: bool = True
    filter_category: bool = False
    category: EventCategory = EventCategory.GENERAL
    faction_id: Id = INVALID_ID
    system_id: Id = INVALID_ID
    ship_id: Id = INVALID_ID
    colony_id: Id = INVALID_ID
    message_contains: str = ""


@dataclass
class AdvanceUntilEventResult:
    days_advanced: int = 0
    hit: bool = False
    event: Optional[SimEvent] = None


def event_matches_stop(event: SimEvent, stop: EventStopCondition) -> bool:
    """Tell whether an event satisfies every criterion of a stop condition."""
    level_ok = (
        (event.level is EventLevel.INFO and stop.stop_on_info)
        or (event.level is EventLevel.WARN and stop.stop_on_warn)
        or (event.level is EventLevel.ERROR and stop.stop_on_error)
    )
    if not level_ok:
        return False
    if stop.filter_category and event.category is not stop.category:
        return False
    if stop.faction_id != INVALID_ID and stop.faction_id not in (event.faction_id, event.faction_id2):
        return False
    if stop.system_id != INVALID_ID and event.system_id != stop.system_id:
        return False
    if stop.ship_id != INVALID_ID and event.ship_id != stop.ship_id:
        return False
    if stop.colony_id != INVALID_ID and event.colony_id != stop.colony_id:
        return False
    if stop.message_contains:
        needle = stop.message_contains.translate(_ASCII_LOWER)
        if needle not in event.message.translate(_ASCII_LOWER):
            return False
    return True


def push_event(
    state: GameState,
    max_events: int,
    level: EventLevel,
    category: EventCategory,
    message: str,
    ctx: Optional[EventContext] = None,
) -> SimEvent:
    """Append an event to the state's log and return it.

    When ``max_events`` is positive and the log grows more than 128 past it,
    the oldest entries are dropped so that ``max_events`` remain.
    """
    ctx = ctx if ctx is not None else EventContext()
    event = SimEvent(
        seq=state.next_event_seq,
        day=state.date.days_since_epoch(),
        level=level,
        category=category,
        faction_id=ctx.faction_id,
        faction_id2=ctx.faction_id2,
        system_id=ctx.system_id,
        ship_id=ctx.ship_id,
        colony_id=ctx.colony_id,
        message=message,
    )
    state.next_event_seq += 1
    if state.next_event_seq >= _SEQ_LIMIT:
        state.next_event_seq = 1
    state.events.append(event)

    if max_events > 0 and len(state.events) > max_events + _TRIM_SLACK:
        del state.events[: len(state.events) - max_events]
    return event
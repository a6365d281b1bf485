import pytest

from nebula4x.events import (
    AdvanceUntilEventResult,
    EventStopCondition,
    event_matches_stop,
    push_event,
)
from nebula4x.model import (
    Date,
    EventCategory,
    EventContext,
    EventLevel,
    GameState,
    SimEvent,
)


def _event(**kwargs):
    base = dict(seq=1, level=EventLevel.WARN, category=EventCategory.COMBAT, message="Ship destroyed: Raider")
    base.update(kwargs)
    return SimEvent(**base)


@pytest.mark.parametrize(
    "level, flags, expected",
    [
        (EventLevel.INFO, dict(stop_on_info=True), True),
        (EventLevel.INFO, dict(stop_on_info=False), False),
        (EventLevel.WARN, dict(stop_on_warn=True), True),
        (EventLevel.WARN, dict(stop_on_warn=False), False),
        (EventLevel.ERROR, dict(stop_on_error=True), True),
        (EventLevel.ERROR, dict(stop_on_error=False), False),
    ],
)
def test_level_flags(level, flags, expected):
    assert event_matches_stop(_event(level=level), EventStopCondition(**flags)) is expected


def test_category_filter():
    stop = EventStopCondition(filter_category=True, category=EventCategory.RESEARCH)
    assert event_matches_stop(_event(), stop) is False
    assert event_matches_stop(_event(category=EventCategory.RESEARCH), stop) is True


def test_category_ignored_without_filter():
    stop = EventStopCondition(filter_category=False, category=EventCategory.RESEARCH)
    assert event_matches_stop(_event(), stop) is True


def test_faction_matches_either_faction_field():
    stop = EventStopCondition(faction_id=7)
    assert event_matches_stop(_event(faction_id=7), stop) is True
    assert event_matches_stop(_event(faction_id2=7), stop) is True
    assert event_matches_stop(_event(faction_id=3, faction_id2=4), stop) is False


@pytest.mark.parametrize("attr", ["system_id", "ship_id", "colony_id"])
def test_id_filters(attr):
    stop = EventStopCondition(**{attr: 9})
    assert event_matches_stop(_event(**{attr: 9}), stop) is True
    assert event_matches_stop(_event(**{attr: 8}), stop) is False


def test_message_contains_is_case_insensitive():
    assert event_matches_stop(_event(), EventStopCondition(message_contains="DESTROYED")) is True
    assert event_matches_stop(_event(), EventStopCondition(message_contains="built")) is False


def test_push_event_assigns_sequence_and_day():
    state = GameState(date=Date(5))
    first = push_event(state, 0, EventLevel.INFO, EventCategory.GENERAL, "one")
    second = push_event(
        state, 0, EventLevel.WARN, EventCategory.COMBAT, "two", EventContext(faction_id=2, ship_id=4)
    )
    assert (first.seq, second.seq) == (1, 2)
    assert state.next_event_seq == 3
    assert first.day == 5
    assert (second.faction_id, second.ship_id) == (2, 4)
    assert [e.message for e in state.events] == ["one", "two"]


def test_push_event_trims_with_slack():
    state = GameState()
    for i in range(130):
        push_event(state, 2, EventLevel.INFO, EventCategory.GENERAL, f"e{i}")
    assert len(state.events) == 130
    push_event(state, 2, EventLevel.INFO, EventCategory.GENERAL, "last")
    assert len(state.events) == 2
    assert state.events[-1].message == "last"
    assert state.events[0].seq + 1 == state.events[1].seq


def test_push_event_without_limit_keeps_everything():
    state = GameState()
    for i in range(300):
        push_event(state, 0, EventLevel.INFO, EventCategory.GENERAL, str(i))
    assert len(state.events) == 300


def test_sequence_wraps_to_one():
    state = GameState(next_event_seq=(1 << 64) - 1)
    ev = push_event(state, 0, EventLevel.INFO, EventCategory.GENERAL, "wrap")
    assert ev.seq == (1 << 64) - 1
    assert state.next_event_seq == 1


def test_advance_result_defaults():
    result = AdvanceUntilEventResult()
    assert (result.days_advanced, result.hit, result.event) == (0, False, None)
"""Sensor coverage, ship detection and contact tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Set, Tuple

from nebula4x.model import (
    Contact,
    ContentDB,
    EventCategory,
    EventContext,
    EventLevel,
    GameState,
    Id,
    Vec2,
    find_design,
)

Emit = Callable[[EventLevel, EventCategory, str, EventContext], Any]

MAX_CONTACT_AGE_DAYS = 180
_UNKNOWN = "(unknown)"


@dataclass
class SensorSource:
    pos_mkm: Vec2 = field(default_factory=Vec2)
    range_mkm: float = 0.0


def gather_sensor_sources(
    state: GameState, content: ContentDB, faction_id: Id, system_id: Id
) -> List[SensorSource]:
    """Collect the faction's ship and colony sensors in one system."""
    system = state.systems.get(system_id)
    if system is None:
        return []

    sources: List[SensorSource] = []
    for sid in system.ships:
        ship = state.ships.get(sid)
        if ship is None or ship.faction_id != faction_id:
            continue
        design = find_design(state, content, ship.design_id)
        rng = design.sensor_range_mkm if design is not None else 0.0
        if rng > 0.0:
            sources.append(SensorSource(ship.position_mkm, rng))

    for colony in state.colonies.values():
        if colony.faction_id != faction_id:
            continue
        body = state.bodies.get(colony.body_id)
        if body is None or body.system_id != system_id:
            continue
        best = max(
            (
                content.installations[inst_id].sensor_range_mkm
                for inst_id, count in colony.installations.items()
                if count > 0 and inst_id in content.installations
            ),
            default=0.0,
        )
        if best > 0.0:
            sources.append(SensorSource(body.position_mkm, best))

    return sources


def any_source_detects(sources: List[SensorSource], target_pos: Vec2) -> bool:
    """True when the target lies within range of at least one source."""
    return any(
        src.range_mkm > 0.0 and (target_pos - src.pos_mkm).length() <= src.range_mkm + 1e-9
        for src in sources
    )


def is_ship_detected(state: GameState, content: ContentDB, viewer_faction_id: Id, target_ship_id: Id) -> bool:
    target = state.ships.get(target_ship_id)
    if target is None:
        return False
    if target.faction_id == viewer_faction_id:
        return True
    sources = gather_sensor_sources(state, content, viewer_faction_id, target.system_id)
    return bool(sources) and any_source_detects(sources, target.position_mkm)


def detected_hostile_ships(state: GameState, content: ContentDB, viewer_faction_id: Id, system_id: Id) -> List[Id]:
    """Ids of other factions' ships in the system that the viewer currently sees."""
    system = state.systems.get(system_id)
    if system is None:
        return []
    sources = gather_sensor_sources(state, content, viewer_faction_id, system_id)
    if not sources:
        return []
    out: List[Id] = []
    for sid in system.ships:
        ship = state.ships.get(sid)
        if ship is None or ship.faction_id == viewer_faction_id:
            continue
        if any_source_detects(sources, ship.position_mkm):
            out.append(sid)
    return out


def recent_contacts(state: GameState, viewer_faction_id: Id, system_id: Id, max_age_days: int) -> List[Contact]:
    """Contacts in the system no older than ``max_age_days``, newest first."""
    faction = state.factions.get(viewer_faction_id)
    if faction is None:
        return []
    now = state.date.days_since_epoch()
    out = [
        c
        for c in faction.ship_contacts.values()
        if c.system_id == system_id and 0 <= now - c.last_seen_day <= max_age_days
    ]
    out.sort(key=lambda c: c.last_seen_day, reverse=True)
    return out


def _name_of(table: Dict[Id, Any], key: Id) -> str:
    item = table.get(key)
    return item.name if item is not None else _UNKNOWN


def tick_contacts(state: GameState, content: ContentDB, emit: Emit) -> None:
    """Refresh every faction's contact list and report new, reacquired and lost contacts."""
    now = state.date.days_since_epoch()

    for faction in state.factions.values():
        faction.ship_contacts = {
            key: c
            for key, c in faction.ship_contacts.items()
            if c.ship_id in state.ships and now - c.last_seen_day <= MAX_CONTACT_AGE_DAYS
        }

    cache: Dict[Tuple[Id, Id], List[SensorSource]] = {}

    def sources_for(faction_id: Id, system_id: Id) -> List[SensorSource]:
        key = (faction_id, system_id)
        if key not in cache:
            cache[key] = gather_sensor_sources(state, content, faction_id, system_id)
        return cache[key]

    detected_today: Dict[Id, Set[Id]] = {}
    faction_ids = sorted(state.factions)

    for ship_id in sorted(state.ships):
        ship = state.ships[ship_id]
        for fid in faction_ids:
            faction = state.factions[fid]
            if faction.id == ship.faction_id:
                continue
            sources = sources_for(faction.id, ship.system_id)
            if not sources or not any_source_detects(sources, ship.position_mkm):
                continue

            detected_today.setdefault(faction.id, set()).add(ship_id)

            previous = faction.ship_contacts.get(ship_id)
            is_new = previous is None
            was_stale = previous is not None and previous.last_seen_day < now - 1

            faction.ship_contacts[ship_id] = Contact(
                ship_id=ship_id,
                system_id=ship.system_id,
                last_seen_day=now,
                last_seen_position_mkm=ship.position_mkm,
                last_seen_name=ship.name,
                last_seen_design_id=ship.design_id,
                last_seen_faction_id=ship.faction_id,
            )

            if is_new or was_stale:
                sys_name = _name_of(state.systems, ship.system_id)
                other_name = _name_of(state.factions, ship.faction_id)
                ctx = EventContext(
                    faction_id=faction.id,
                    faction_id2=ship.faction_id,
                    system_id=ship.system_id,
                    ship_id=ship_id,
                )
                prefix = "New contact for " if is_new else "Contact reacquired for "
                msg = f"{prefix}{faction.name}: {ship.name} ({other_name}) in {sys_name}"
                emit(EventLevel.INFO, EventCategory.INTEL, msg, ctx)

    for fid in faction_ids:
        faction = state.factions[fid]
        seen = detected_today.get(faction.id, set())
        for sid in sorted(faction.ship_contacts):
            contact = faction.ship_contacts[sid]
            if contact.last_seen_day != now - 1 or sid in seen:
                continue
            sys_name = _name_of(state.systems, contact.system_id)
            other_name = _name_of(state.factions, contact.last_seen_faction_id)
            ship_name = contact.last_seen_name or f"Ship {contact.ship_id}"
            ctx = EventContext(
                faction_id=faction.id,
                faction_id2=contact.last_seen_faction_id,
                system_id=contact.system_id,
                ship_id=contact.ship_id,
            )
            msg = f"Contact lost for {faction.name}: {ship_name} ({other_name}) in {sys_name}"
            emit(EventLevel.INFO, EventCategory.INTEL, msg, ctx)
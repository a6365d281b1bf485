"""Daily weapons fire between hostile ships and removal of destroyed ships."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List

from nebula4x.model import (
    INVALID_ID,
    AttackShip,
    ContentDB,
    EventCategory,
    EventContext,
    EventLevel,
    GameState,
    Id,
    Ship,
    find_design,
)
from nebula4x.sensors import Emit, is_ship_detected

logger = logging.getLogger(__name__)

_UNKNOWN = "(unknown)"


@dataclass
class _Destruction:
    message: str
    ctx: EventContext


def _choose_target(state: GameState, content: ContentDB, attacker_id: Id, attacker: Ship, weapon_range: float,
                   ship_ids: List[Id]) -> Id:
    """Pick the ordered attack target if it is in range, else the nearest detected hostile."""

    def engageable(target: Ship, target_id: Id) -> bool:
        return (
            target.system_id == attacker.system_id
            and target.faction_id != attacker.faction_id
            and is_ship_detected(state, content, attacker.faction_id, target_id)
        )

    orders = state.ship_orders.get(attacker_id)
    if orders is not None and orders.queue and isinstance(orders.queue[0], AttackShip):
        target_id = orders.queue[0].target_ship_id
        target = state.ships.get(target_id)
        if target is not None and engageable(target, target_id):
            if (target.position_mkm - attacker.position_mkm).length() <= weapon_range:
                return target_id

    chosen = INVALID_ID
    chosen_dist = math.inf
    for target_id in ship_ids:
        if target_id == attacker_id:
            continue
        target = state.ships.get(target_id)
        if target is None or not engageable(target, target_id):
            continue
        dist = (target.position_mkm - attacker.position_mkm).length()
        if dist > weapon_range:
            continue
        if dist < chosen_dist:
            chosen = target_id
            chosen_dist = dist
    return chosen


def _describe_destruction(state: GameState, dead_id: Id, attacker_ids: List[Id]) -> _Destruction:
    victim = state.ships[dead_id]
    system = state.systems.get(victim.system_id)
    sys_name = system.name if system is not None else _UNKNOWN
    victim_faction = state.factions.get(victim.faction_id)
    victim_fac_name = victim_faction.name if victim_faction is not None else _UNKNOWN

    unique_attackers = sorted(set(attacker_ids))
    attacker_ship_id = INVALID_ID
    attacker_fid = INVALID_ID
    attacker_ship_name = ""
    attacker_fac_name = ""
    if unique_attackers:
        attacker_ship_id = unique_attackers[0]
        attacker = state.ships.get(attacker_ship_id)
        if attacker is not None:
            attacker_fid = attacker.faction_id
            attacker_ship_name = attacker.name
            faction = state.factions.get(attacker_fid)
            if faction is not None:
                attacker_fac_name = faction.name

    msg = f"Ship destroyed: {victim.name} ({victim_fac_name}) in {sys_name}"
    if attacker_ship_id != INVALID_ID:
        killer = attacker_ship_name or f"Ship {attacker_ship_id}"
        msg += f" (killed by {killer}"
        if attacker_fac_name:
            msg += f" / {attacker_fac_name}"
        if len(unique_attackers) > 1:
            msg += f" +{len(unique_attackers) - 1} more"
        msg += ")"

    ctx = EventContext(
        faction_id=victim.faction_id,
        faction_id2=attacker_fid,
        system_id=victim.system_id,
        ship_id=dead_id,
    )
    return _Destruction(msg, ctx)


def _remove_ship(state: GameState, dead_id: Id) -> None:
    ship = state.ships.get(dead_id)
    if ship is None:
        return
    system = state.systems.get(ship.system_id)
    if system is not None:
        system.ships = [sid for sid in system.ships if sid != dead_id]
    state.ship_orders.pop(dead_id, None)
    del state.ships[dead_id]
    for faction in state.factions.values():
        faction.ship_contacts.pop(dead_id, None)


def tick_combat(state: GameState, content: ContentDB, emit: Emit) -> None:
    """Resolve one day of fire: every armed ship shoots one target, then wrecks are removed."""
    incoming_damage: Dict[Id, float] = {}
    attackers_for_target: Dict[Id, List[Id]] = {}
    ship_ids = sorted(state.ships)

    for attacker_id in ship_ids:
        attacker = state.ships.get(attacker_id)
        if attacker is None:
            continue
        design = find_design(state, content, attacker.design_id)
        if design is None or design.weapon_damage <= 0.0 or design.weapon_range_mkm <= 0.0:
            continue
        chosen = _choose_target(state, content, attacker_id, attacker, design.weapon_range_mkm, ship_ids)
        if chosen != INVALID_ID:
            incoming_damage[chosen] = incoming_damage.get(chosen, 0.0) + design.weapon_damage
            attackers_for_target.setdefault(chosen, []).append(attacker_id)

    if not incoming_damage:
        return

    destroyed: List[Id] = []
    for target_id in sorted(incoming_damage):
        target = state.ships.get(target_id)
        if target is None:
            continue
        target.hp -= incoming_damage[target_id]
        if target.hp <= 0.0:
            destroyed.append(target_id)
    destroyed.sort()

    deaths = [
        _describe_destruction(state, dead_id, attackers_for_target.get(dead_id, []))
        for dead_id in destroyed
        if dead_id in state.ships
    ]

    for dead_id in destroyed:
        _remove_ship(state, dead_id)

    for death in deaths:
        logger.warning(death.message)
        emit(EventLevel.WARN, EventCategory.COMBAT, death.message, death.ctx)
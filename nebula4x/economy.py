"""Daily colony economy: mining, research, shipbuilding and construction."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from nebula4x.model import (
    INVALID_ID,
    Colony,
    ContentDB,
    EventCategory,
    EventContext,
    EventLevel,
    Faction,
    GameState,
    Id,
    InstallationBuildOrder,
    InstallationDef,
    Ship,
    ShipOrders,
    TechDef,
    apply_design_stats,
    find_design,
)

logger = logging.getLogger(__name__)

Emit = Callable[[EventLevel, EventCategory, str, EventContext], Any]

_EPS = 1e-9
_SHIPYARD = "shipyard"


def construction_points_per_day(colony: Colony, content: ContentDB) -> float:
    """Construction capacity from population plus construction installations."""
    total = max(0.0, colony.population_millions * 0.01)
    for inst_id, count in colony.installations.items():
        if count <= 0:
            continue
        inst = content.installations.get(inst_id)
        if inst is None or inst.construction_points_per_day <= 0.0:
            continue
        total += inst.construction_points_per_day * count
    return total


def tick_colonies(state: GameState, content: ContentDB) -> None:
    """Add each colony's daily mineral production."""
    for cid in sorted(state.colonies):
        colony = state.colonies[cid]
        for inst_id, count in colony.installations.items():
            if count <= 0:
                continue
            inst = content.installations.get(inst_id)
            if inst is None:
                continue
            for mineral, per_day in inst.produces_per_day.items():
                colony.minerals[mineral] = colony.minerals.get(mineral, 0.0) + per_day * count


# --- research ---


def _prereqs_met(faction: Faction, tech: TechDef) -> bool:
    return all(p in faction.known_techs for p in tech.prereqs)


def _enqueue_unique(faction: Faction, tech_id: str) -> None:
    if not tech_id or tech_id in faction.known_techs or tech_id in faction.research_queue:
        return
    faction.research_queue.append(tech_id)


def _clear_active(faction: Faction) -> None:
    faction.active_research_id = ""
    faction.active_research_progress = 0.0


def _select_next_available(faction: Faction, content: ContentDB) -> None:
    faction.research_queue = [
        t for t in faction.research_queue if t and t not in faction.known_techs and t in content.techs
    ]
    _clear_active(faction)
    for i, tech_id in enumerate(faction.research_queue):
        tech = content.techs.get(tech_id)
        if tech is None or not _prereqs_met(faction, tech):
            continue
        faction.active_research_id = tech_id
        del faction.research_queue[i]
        return


def _complete_tech(faction: Faction, tech: TechDef, emit: Emit) -> None:
    faction.known_techs.append(tech.id)
    for effect in tech.effects:
        if effect.type == "unlock_component":
            if effect.value not in faction.unlocked_components:
                faction.unlocked_components.append(effect.value)
        elif effect.type == "unlock_installation":
            if effect.value not in faction.unlocked_installations:
                faction.unlocked_installations.append(effect.value)
    msg = f"Research complete for {faction.name}: {tech.name}"
    logger.info(msg)
    emit(EventLevel.INFO, EventCategory.RESEARCH, msg, EventContext(faction_id=faction.id))


def _advance_research(faction: Faction, content: ContentDB, emit: Emit) -> None:
    if faction.active_research_id:
        active = faction.active_research_id
        tech = content.techs.get(active)
        if active in faction.known_techs or tech is None:
            _clear_active(faction)
        elif not _prereqs_met(faction, tech):
            _enqueue_unique(faction, active)
            _clear_active(faction)

    if not faction.active_research_id:
        _select_next_available(faction, content)

    while faction.active_research_id:
        tech = content.techs.get(faction.active_research_id)
        if tech is None or tech.id in faction.known_techs:
            _select_next_available(faction, content)
            continue
        if not _prereqs_met(faction, tech):
            _enqueue_unique(faction, tech.id)
            _select_next_available(faction, content)
            continue

        remaining = max(0.0, tech.cost - faction.active_research_progress)
        if remaining <= 0.0:
            _complete_tech(faction, tech, emit)
            _select_next_available(faction, content)
            continue

        if faction.research_points <= 0.0:
            break
        spend = min(faction.research_points, remaining)
        faction.research_points -= spend
        faction.active_research_progress += spend


def tick_research(state: GameState, content: ContentDB, emit: Emit) -> None:
    """Accrue research points from colonies and spend them on each faction's research."""
    for cid in sorted(state.colonies):
        colony = state.colonies[cid]
        rp_per_day = sum(
            content.installations[inst_id].research_points_per_day * count
            for inst_id, count in colony.installations.items()
            if inst_id in content.installations
        )
        if rp_per_day <= 0.0:
            continue
        faction = state.factions.get(colony.faction_id)
        if faction is not None:
            faction.research_points += rp_per_day

    for fid in sorted(state.factions):
        _advance_research(state.factions[fid], content, emit)


# --- shipyards ---


def _max_build_by_minerals(colony: Colony, costs_per_ton: Dict[str, float], desired_tons: float) -> float:
    max_tons = desired_tons
    for mineral, cost_per_ton in costs_per_ton.items():
        if cost_per_ton <= 0.0:
            continue
        max_tons = min(max_tons, colony.minerals.get(mineral, 0.0) / cost_per_ton)
    return max_tons


def _consume_minerals(colony: Colony, costs_per_ton: Dict[str, float], built_tons: float) -> None:
    for mineral, cost_per_ton in costs_per_ton.items():
        if cost_per_ton <= 0.0:
            continue
        colony.minerals[mineral] = max(0.0, colony.minerals.get(mineral, 0.0) - built_tons * cost_per_ton)


def _launch_ship(state: GameState, content: ContentDB, colony: Colony, design_id: str, emit: Emit) -> None:
    design = find_design(state, content, design_id)
    if design is None:
        msg = f"Unknown design in build queue: {design_id}"
        logger.warning(msg)
        ctx = EventContext(faction_id=colony.faction_id, colony_id=colony.id)
        emit(EventLevel.WARN, EventCategory.SHIPYARD, msg, ctx)
        return

    body = state.bodies.get(colony.body_id)
    if body is None:
        return
    system = state.systems.get(body.system_id)
    if system is None:
        return

    ship = Ship(
        id=state.allocate_id(),
        faction_id=colony.faction_id,
        system_id=body.system_id,
        design_id=design_id,
        position_mkm=body.position_mkm,
    )
    apply_design_stats(ship, design)
    ship.name = f"{design.name} #{ship.id}"
    state.ships[ship.id] = ship
    state.ship_orders[ship.id] = ShipOrders()
    system.ships.append(ship.id)

    msg = f"Built ship {ship.name} ({ship.design_id}) at {colony.name}"
    logger.info(msg)
    ctx = EventContext(
        faction_id=colony.faction_id,
        system_id=ship.system_id,
        ship_id=ship.id,
        colony_id=colony.id,
    )
    emit(EventLevel.INFO, EventCategory.SHIPYARD, msg, ctx)


def tick_shipyards(state: GameState, content: ContentDB, emit: Emit) -> None:
    """Progress each colony's shipyard queue, paying minerals per ton built."""
    yard = content.installations.get(_SHIPYARD)
    if yard is None or yard.build_rate_tons_per_day <= 0.0:
        return
    costs_per_ton = yard.build_costs_per_ton

    for cid in sorted(state.colonies):
        colony = state.colonies[cid]
        yards = colony.installations.get(_SHIPYARD, 0)
        if yards <= 0:
            continue
        capacity = yard.build_rate_tons_per_day * yards

        while capacity > _EPS and colony.shipyard_queue:
            order = colony.shipyard_queue[0]
            build_tons = min(capacity, order.tons_remaining)
            if costs_per_ton:
                build_tons = _max_build_by_minerals(colony, costs_per_ton, build_tons)
            if build_tons <= _EPS:
                break
            if costs_per_ton:
                _consume_minerals(colony, costs_per_ton, build_tons)
            order.tons_remaining -= build_tons
            capacity -= build_tons
            if order.tons_remaining > _EPS:
                break
            _launch_ship(state, content, colony, order.design_id, emit)
            colony.shipyard_queue.pop(0)


# --- construction ---


def _can_pay(colony: Colony, inst: InstallationDef) -> bool:
    return all(
        colony.minerals.get(mineral, 0.0) + _EPS >= cost
        for mineral, cost in inst.build_costs.items()
        if cost > 0.0
    )


def _pay(colony: Colony, inst: InstallationDef) -> None:
    for mineral, cost in inst.build_costs.items():
        if cost <= 0.0:
            continue
        colony.minerals[mineral] = max(0.0, colony.minerals.get(mineral, 0.0) - cost)


def _finish_one(colony: Colony, inst: InstallationDef, order: InstallationBuildOrder, system_id: Id,
                emit: Emit) -> None:
    colony.installations[inst.id] = colony.installations.get(inst.id, 0) + 1
    order.quantity_remaining -= 1
    order.minerals_paid = False
    order.cp_remaining = 0.0
    msg = f"Constructed {inst.name} at {colony.name}"
    ctx = EventContext(faction_id=colony.faction_id, system_id=system_id, colony_id=colony.id)
    emit(EventLevel.INFO, EventCategory.CONSTRUCTION, msg, ctx)
    if order.quantity_remaining <= 0:
        colony.construction_queue.pop(0)


def tick_construction(state: GameState, content: ContentDB, emit: Emit) -> None:
    """Spend each colony's construction points on its installation queue."""
    for cid in sorted(state.colonies):
        colony = state.colonies[cid]
        body = state.bodies.get(colony.body_id)
        system_id = body.system_id if body is not None else INVALID_ID
        cp_available = construction_points_per_day(colony, content)
        if cp_available <= _EPS:
            continue

        while cp_available > _EPS and colony.construction_queue:
            order = colony.construction_queue[0]
            if order.quantity_remaining <= 0:
                colony.construction_queue.pop(0)
                continue
            inst = content.installations.get(order.installation_id)
            if inst is None:
                colony.construction_queue.pop(0)
                continue

            if not order.minerals_paid:
                if not _can_pay(colony, inst):
                    break
                _pay(colony, inst)
                order.minerals_paid = True
                order.cp_remaining = max(0.0, inst.construction_cost)
                if order.cp_remaining <= _EPS:
                    _finish_one(colony, inst, order, system_id, emit)
                    continue

            spend = min(cp_available, order.cp_remaining)
            order.cp_remaining -= spend
            cp_available -= spend
            if order.cp_remaining <= _EPS:
                _finish_one(colony, inst, order, system_id, emit)
                continue
            break
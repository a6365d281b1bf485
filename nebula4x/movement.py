"""Daily ship movement and order execution, including jumps, cargo and scrapping."""

from __future__ import annotations

import copy
import logging
import math
from typing import Dict, List, Optional, Tuple

from nebula4x.model import (
    INVALID_ID,
    AttackShip,
    ContentDB,
    EventCategory,
    EventContext,
    EventLevel,
    GameState,
    Id,
    LoadMineral,
    MoveToBody,
    MoveToPoint,
    Order,
    OrbitBody,
    ScrapShip,
    Ship,
    SimConfig,
    TransferCargoToShip,
    TravelViaJump,
    UnloadMineral,
    Vec2,
    WaitDays,
    find_design,
)
from nebula4x.sensors import Emit, is_ship_detected

logger = logging.getLogger(__name__)

_EPS = 1e-9
_UNKNOWN = "(unknown)"
_CARGO_ORDERS = (LoadMineral, UnloadMineral, TransferCargoToShip)


def discover_system_for_faction(state: GameState, faction_id: Id, system_id: Id, emit: Emit) -> None:
    """Mark a system as discovered by a faction, reporting it the first time."""
    if system_id == INVALID_ID:
        return
    faction = state.factions.get(faction_id)
    if faction is None or system_id in faction.discovered_systems:
        return
    faction.discovered_systems.append(system_id)
    system = state.systems.get(system_id)
    sys_name = system.name if system is not None else _UNKNOWN
    ctx = EventContext(faction_id=faction_id, system_id=system_id)
    emit(EventLevel.INFO, EventCategory.EXPLORATION, f"{faction.name} discovered system {sys_name}", ctx)


def _colony_body_position(state: GameState, ship: Ship, colony_id: Id) -> Optional[Vec2]:
    colony = state.colonies.get(colony_id)
    if colony is None or colony.faction_id != ship.faction_id:
        return None
    body = state.bodies.get(colony.body_id)
    if body is None or body.system_id != ship.system_id:
        return None
    return body.position_mkm


def _resolve_target(
    state: GameState, content: ContentDB, ship: Ship, order: Order
) -> Optional[Tuple[Vec2, float, bool]]:
    """Return (target, desired range, attack has contact), or None if the order is void."""
    if isinstance(order, MoveToPoint):
        return order.target_mkm, 0.0, False
    if isinstance(order, (MoveToBody, OrbitBody)):
        body = state.bodies.get(order.body_id)
        if body is None or body.system_id != ship.system_id:
            return None
        return body.position_mkm, 0.0, False
    if isinstance(order, TravelViaJump):
        jp = state.jump_points.get(order.jump_point_id)
        if jp is None or jp.system_id != ship.system_id:
            return None
        return jp.position_mkm, 0.0, False
    if isinstance(order, AttackShip):
        target = state.ships.get(order.target_ship_id)
        if target is None or target.system_id != ship.system_id:
            return None
        if is_ship_detected(state, content, ship.faction_id, order.target_ship_id):
            order.last_known_position_mkm = target.position_mkm
            order.has_last_known = True
            design = find_design(state, content, ship.design_id)
            weapon_range = design.weapon_range_mkm if design is not None else 0.0
            desired = weapon_range * 0.9 if weapon_range > 0.0 else 0.1
            return target.position_mkm, desired, True
        if not order.has_last_known:
            return None
        return order.last_known_position_mkm, 0.0, False
    if isinstance(order, (LoadMineral, UnloadMineral, ScrapShip)):
        pos = _colony_body_position(state, ship, order.colony_id)
        if pos is None:
            return None
        return pos, 0.0, False
    if isinstance(order, TransferCargoToShip):
        target = state.ships.get(order.target_ship_id)
        if target is None or target.system_id != ship.system_id or target.faction_id != ship.faction_id:
            return None
        return target.position_mkm, 0.0, False
    return ship.position_mkm, 0.0, False


def _cargo_used(ship: Ship) -> float:
    return sum(max(0.0, tons) for tons in ship.cargo.values())


def _free_capacity(state: GameState, content: ContentDB, ship: Ship) -> float:
    design = find_design(state, content, ship.design_id)
    capacity = design.cargo_tons if design is not None else 0.0
    return max(0.0, capacity - _cargo_used(ship))


def _cargo_endpoints(
    state: GameState, content: ContentDB, ship: Ship, order: Order
) -> Optional[Tuple[Dict[str, float], Dict[str, float], float]]:
    if isinstance(order, LoadMineral):
        colony = state.colonies.get(order.colony_id)
        if colony is None:
            return None
        return colony.minerals, ship.cargo, _free_capacity(state, content, ship)
    if isinstance(order, UnloadMineral):
        colony = state.colonies.get(order.colony_id)
        if colony is None:
            return None
        return ship.cargo, colony.minerals, math.inf
    if isinstance(order, TransferCargoToShip):
        target = state.ships.get(order.target_ship_id)
        if target is None:
            return None
        return ship.cargo, target.cargo, _free_capacity(state, content, target)
    return None


def _transfer_cargo(state: GameState, content: ContentDB, ship: Ship, order: Order) -> float:
    """Move minerals for a cargo order and return the tons moved."""
    endpoints = _cargo_endpoints(state, content, ship, order)
    if endpoints is None:
        return 0.0
    source, dest, free = endpoints
    if free <= _EPS:
        return 0.0

    remaining = min(order.tons if order.tons > 0.0 else math.inf, free)
    moved_total = 0.0

    def transfer_one(mineral: str, limit: float) -> float:
        nonlocal moved_total
        if limit <= _EPS:
            return 0.0
        take = min(max(0.0, source.get(mineral, 0.0)), limit)
        if take > _EPS:
            dest[mineral] = dest.get(mineral, 0.0) + take
            if mineral in source:
                source[mineral] = max(0.0, source[mineral] - take)
                if source[mineral] <= _EPS:
                    del source[mineral]
            moved_total += take
        return take

    if order.mineral:
        transfer_one(order.mineral, remaining)
        return moved_total

    for mineral in sorted(k for k, v in source.items() if v > _EPS):
        if remaining <= _EPS:
            break
        remaining -= transfer_one(mineral, remaining)
    return moved_total


def _cargo_done(order: Order, moved: float) -> bool:
    """Update the order's outstanding tons and tell whether it is finished."""
    if order.tons <= 0.0:
        return True
    order.tons = max(0.0, order.tons - moved)
    if order.tons <= _EPS:
        return True
    return moved <= _EPS


def _transit_jump(state: GameState, ship_id: Id, ship: Ship, jump_id: Id, emit: Emit) -> None:
    jp = state.jump_points.get(jump_id)
    if jp is None or jp.system_id != ship.system_id or jp.linked_jump_id == INVALID_ID:
        return
    dest = state.jump_points.get(jp.linked_jump_id)
    if dest is None:
        return

    old_system = state.systems.get(ship.system_id)
    if old_system is not None:
        old_system.ships = [sid for sid in old_system.ships if sid != ship_id]

    new_sys = dest.system_id
    ship.system_id = new_sys
    ship.position_mkm = dest.position_mkm
    new_system = state.systems.get(new_sys)
    if new_system is not None:
        new_system.ships.append(ship_id)

    discover_system_for_faction(state, ship.faction_id, new_sys, emit)

    dest_name = new_system.name if new_system is not None else _UNKNOWN
    msg = f"Ship {ship.name} transited jump point {jp.name} -> {dest_name}"
    logger.info(msg)
    ctx = EventContext(faction_id=ship.faction_id, system_id=new_sys, ship_id=ship_id)
    emit(EventLevel.INFO, EventCategory.MOVEMENT, msg, ctx)


def _remove_ship(state: GameState, ship_id: Id) -> None:
    ship = state.ships.get(ship_id)
    if ship is None:
        return
    system = state.systems.get(ship.system_id)
    if system is not None:
        system.ships = [sid for sid in system.ships if sid != ship_id]
    state.ship_orders.pop(ship_id, None)
    del state.ships[ship_id]


def _advance_ship(
    state: GameState,
    content: ContentDB,
    cfg: SimConfig,
    emit: Emit,
    ship_id: Id,
    ship: Ship,
    queue: List[Order],
) -> None:
    order = queue[0]

    if isinstance(order, WaitDays):
        if order.days_remaining > 0:
            order.days_remaining -= 1
        if order.days_remaining <= 0:
            queue.pop(0)
        return

    resolved = _resolve_target(state, content, ship, order)
    if resolved is None:
        queue.pop(0)
        return
    target, desired_range, has_contact = resolved

    dist = (target - ship.position_mkm).length()
    arrive_eps = max(0.0, cfg.arrival_epsilon_mkm)
    dock_range = max(arrive_eps, cfg.docking_range_mkm)
    is_cargo = isinstance(order, _CARGO_ORDERS)
    is_attack = isinstance(order, AttackShip)

    if dist <= dock_range:
        if is_cargo:
            ship.position_mkm = target
            if _cargo_done(order, _transfer_cargo(state, content, ship, order)):
                queue.pop(0)
            return
        if isinstance(order, ScrapShip):
            if order.colony_id in state.colonies and find_design(state, content, ship.design_id) is not None:
                _remove_ship(state, ship_id)
                return
            queue.pop(0)
            return
        if isinstance(order, MoveToBody):
            ship.position_mkm = target
            queue.pop(0)
            return
        if isinstance(order, OrbitBody):
            ship.position_mkm = target
            if order.duration_days > 0:
                order.duration_days -= 1
            if order.duration_days == 0:
                queue.pop(0)
            return

    if isinstance(order, MoveToPoint) and dist <= arrive_eps:
        queue.pop(0)
        return

    if isinstance(order, TravelViaJump) and dist <= dock_range:
        ship.position_mkm = target
        _transit_jump(state, ship_id, ship, order.jump_point_id, emit)
        queue.pop(0)
        return

    if is_attack:
        if has_contact:
            if dist <= desired_range:
                return
        elif dist <= arrive_eps:
            queue.pop(0)
            return

    step = ship.speed_km_s * cfg.seconds_per_day / 1.0e6
    if step <= 0.0:
        return
    if is_attack:
        step = min(step, max(0.0, dist - desired_range))
        if step <= 0.0:
            return

    if dist <= step:
        ship.position_mkm = target
        if isinstance(order, TravelViaJump):
            _transit_jump(state, ship_id, ship, order.jump_point_id, emit)
            queue.pop(0)
        elif is_attack:
            if not has_contact:
                queue.pop(0)
        elif is_cargo:
            if _cargo_done(order, _transfer_cargo(state, content, ship, order)):
                queue.pop(0)
        elif isinstance(order, (ScrapShip, OrbitBody)):
            pass
        else:
            queue.pop(0)
        return

    ship.position_mkm = ship.position_mkm + (target - ship.position_mkm).normalized() * step


def tick_ships(state: GameState, content: ContentDB, cfg: SimConfig, emit: Emit) -> None:
    """Execute one day of every ship's current order, in ship id order."""
    for ship_id in sorted(state.ships):
        ship = state.ships.get(ship_id)
        if ship is None:
            continue
        orders = state.ship_orders.get(ship_id)
        if orders is None:
            continue
        if not orders.queue and orders.repeat and orders.repeat_template:
            orders.queue = copy.deepcopy(orders.repeat_template)
        if not orders.queue:
            continue
        _advance_ship(state, content, cfg, emit, ship_id, ship, orders.queue)
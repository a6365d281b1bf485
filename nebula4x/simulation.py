"""The simulation driver: owns the game state and exposes commands and daily ticks."""

from __future__ import annotations

import copy
import logging
import math
from collections import deque
from typing import Dict, List, Optional

from nebula4x.combat import tick_combat
from nebula4x.economy import (
    construction_points_per_day as _colony_construction_points,
    tick_colonies,
    tick_construction,
    tick_research,
    tick_shipyards,
)
from nebula4x.events import (
    AdvanceUntilEventResult,
    EventStopCondition,
    event_matches_stop,
    push_event as _push_event,
)
from nebula4x.model import (
    INVALID_ID,
    AttackShip,
    BuildOrder,
    Colony,
    Contact,
    ContentDB,
    EventCategory,
    EventContext,
    EventLevel,
    Faction,
    GameState,
    Id,
    InstallationBuildOrder,
    LoadMineral,
    MoveToBody,
    MoveToPoint,
    OrbitBody,
    ScrapShip,
    Ship,
    ShipDesign,
    ShipOrders,
    SimConfig,
    SimEvent,
    TransferCargoToShip,
    TravelViaJump,
    UnloadMineral,
    Vec2,
    WaitDays,
    apply_design_stats,
    derive_design_stats,
    find_design,
)
from nebula4x.movement import tick_ships
from nebula4x.sensors import (
    detected_hostile_ships,
    is_ship_detected,
    recent_contacts,
    tick_contacts,
)

logger = logging.getLogger(__name__)

_TWO_PI = 2.0 * math.pi


def _push_unique(items: list, value) -> None:
    if value not in items:
        items.append(value)


class Simulation:
    """Runs a game: holds content, configuration and state, and advances time."""

    def __init__(self, content: ContentDB, cfg: Optional[SimConfig] = None,
                 state: Optional[GameState] = None) -> None:
        self.content = content
        self.cfg = cfg if cfg is not None else SimConfig()
        self.state = GameState()
        self.load_game(state if state is not None else GameState())

    # --- queries ---

    def find_design(self, design_id: str) -> Optional[ShipDesign]:
        return find_design(self.state, self.content, design_id)

    def is_design_buildable_for_faction(self, faction_id: Id, design_id: str) -> bool:
        design = self.find_design(design_id)
        if design is None:
            return False
        faction = self.state.factions.get(faction_id)
        if faction is None:
            return True
        return all(cid in faction.unlocked_components for cid in design.components)

    def is_installation_buildable_for_faction(self, faction_id: Id, installation_id: str) -> bool:
        if installation_id not in self.content.installations:
            return False
        faction = self.state.factions.get(faction_id)
        if faction is None:
            return True
        return installation_id in faction.unlocked_installations

    def construction_points_per_day(self, colony: Colony) -> float:
        return _colony_construction_points(colony, self.content)

    def is_system_discovered_by_faction(self, viewer_faction_id: Id, system_id: Id) -> bool:
        faction = self.state.factions.get(viewer_faction_id)
        if faction is None:
            return True
        return system_id in faction.discovered_systems

    def is_ship_detected_by_faction(self, viewer_faction_id: Id, target_ship_id: Id) -> bool:
        return is_ship_detected(self.state, self.content, viewer_faction_id, target_ship_id)

    def detected_hostile_ships_in_system(self, viewer_faction_id: Id, system_id: Id) -> List[Id]:
        return detected_hostile_ships(self.state, self.content, viewer_faction_id, system_id)

    def recent_contacts_in_system(self, viewer_faction_id: Id, system_id: Id, max_age_days: int) -> List[Contact]:
        return recent_contacts(self.state, viewer_faction_id, system_id, max_age_days)

    # --- designs and loading ---

    def upsert_custom_design(self, design: ShipDesign) -> None:
        """Store a player design with stats derived from its components.

        Raises ValueError when the id is empty, collides with a built-in
        design, or a component is unknown.
        """
        if not design.id:
            raise ValueError("Design id is empty")
        if design.id in self.content.designs:
            raise ValueError(f"Design id conflicts with built-in design: {design.id}")
        for cid in design.components:
            if cid not in self.content.components:
                raise ValueError(f"Unknown component id: {cid}")

        design = copy.deepcopy(design)
        if not design.name:
            design.name = design.id
        derived = derive_design_stats(design, self.content.components)
        if derived is not None:
            design = derived
        self.state.custom_designs[design.id] = design

    def _apply_design_stats_to_ship(self, ship: Ship) -> None:
        design = self.find_design(ship.design_id)
        if design is None:
            ship.speed_km_s = 0.0
            if ship.hp <= 0.0:
                ship.hp = 1.0
            return
        apply_design_stats(ship, design)

    def _initialize_unlocks_for_faction(self, faction: Faction) -> None:
        state = self.state
        for cid in sorted(state.colonies):
            colony = state.colonies[cid]
            if colony.faction_id != faction.id:
                continue
            body = state.bodies.get(colony.body_id)
            if body is not None:
                _push_unique(faction.discovered_systems, body.system_id)
            for inst_id, count in colony.installations.items():
                if count > 0:
                    _push_unique(faction.unlocked_installations, inst_id)

        for sid in sorted(state.ships):
            ship = state.ships[sid]
            if ship.faction_id != faction.id:
                continue
            _push_unique(faction.discovered_systems, ship.system_id)
            design = self.find_design(ship.design_id)
            if design is not None:
                for cid in design.components:
                    _push_unique(faction.unlocked_components, cid)

        for tech_id in faction.known_techs:
            tech = self.content.techs.get(tech_id)
            if tech is None:
                continue
            for effect in tech.effects:
                if effect.type == "unlock_component":
                    _push_unique(faction.unlocked_components, effect.value)
                if effect.type == "unlock_installation":
                    _push_unique(faction.unlocked_installations, effect.value)

    def load_game(self, loaded: GameState) -> None:
        """Adopt a state and bring its derived data up to date."""
        self.state = loaded
        state = self.state

        max_seq = max((ev.seq for ev in state.events), default=0)
        if state.next_event_seq == 0:
            state.next_event_seq = 1
        if state.next_event_seq <= max_seq:
            state.next_event_seq = max_seq + 1

        if state.custom_designs:
            designs = list(state.custom_designs.values())
            state.custom_designs.clear()
            for design in designs:
                try:
                    self.upsert_custom_design(design)
                except ValueError as err:
                    logger.warning("Custom design '%s' could not be re-derived: %s", design.id, err)
                    state.custom_designs[design.id] = design

        for ship in state.ships.values():
            self._apply_design_stats_to_ship(ship)
        for faction in state.factions.values():
            self._initialize_unlocks_for_faction(faction)

        self._recompute_body_positions()
        tick_contacts(self.state, self.content, self.push_event)

    # --- time ---

    def advance_days(self, days: int) -> None:
        for _ in range(max(0, days)):
            self.tick_one_day()

    def advance_until_event(self, max_days: int,
                            stop: Optional[EventStopCondition] = None) -> AdvanceUntilEventResult:
        """Advance day by day until a new event matches ``stop`` or ``max_days`` pass."""
        stop = stop if stop is not None else EventStopCondition()
        result = AdvanceUntilEventResult()
        if max_days <= 0:
            return result

        last_seq = self.state.next_event_seq - 1 if self.state.next_event_seq > 0 else 0
        for _ in range(max_days):
            self.tick_one_day()
            result.days_advanced += 1

            newest_seq = self.state.next_event_seq - 1 if self.state.next_event_seq > 0 else 0
            if newest_seq <= last_seq:
                continue
            for event in reversed(self.state.events):
                if event.seq <= last_seq:
                    break
                if event_matches_stop(event, stop):
                    result.hit = True
                    result.event = copy.deepcopy(event)
                    return result
            last_seq = newest_seq
        return result

    def _recompute_body_positions(self) -> None:
        t = float(self.state.date.days_since_epoch())
        for body in self.state.bodies.values():
            if body.orbit_radius_mkm <= 1e-9:
                body.position_mkm = Vec2(0.0, 0.0)
                continue
            period = max(1.0, body.orbit_period_days)
            theta = body.orbit_phase_radians + _TWO_PI * (t / period)
            body.position_mkm = Vec2(body.orbit_radius_mkm * math.cos(theta),
                                     body.orbit_radius_mkm * math.sin(theta))

    def tick_one_day(self) -> None:
        state, content, emit = self.state, self.content, self.push_event
        state.date = state.date.add_days(1)
        self._recompute_body_positions()
        tick_colonies(state, content)
        tick_research(state, content, emit)
        tick_shipyards(state, content, emit)
        tick_construction(state, content, emit)
        tick_ships(state, content, self.cfg, emit)
        tick_contacts(state, content, emit)
        tick_combat(state, content, emit)

    def push_event(self, level: EventLevel, category: EventCategory = EventCategory.GENERAL,
                   message: str = "", ctx: Optional[EventContext] = None) -> SimEvent:
        return _push_event(self.state, self.cfg.max_events, level, category, message, ctx)

    # --- order queue management ---

    def _orders(self, ship_id: Id) -> ShipOrders:
        return self.state.ship_orders.setdefault(ship_id, ShipOrders())

    def clear_orders(self, ship_id: Id) -> bool:
        if ship_id not in self.state.ships:
            return False
        orders = self._orders(ship_id)
        orders.queue.clear()
        orders.repeat = False
        orders.repeat_template.clear()
        return True

    def enable_order_repeat(self, ship_id: Id) -> bool:
        if ship_id not in self.state.ships:
            return False
        orders = self._orders(ship_id)
        if not orders.queue:
            return False
        orders.repeat = True
        orders.repeat_template = copy.deepcopy(orders.queue)
        return True

    def update_order_repeat_template(self, ship_id: Id) -> bool:
        return self.enable_order_repeat(ship_id)

    def disable_order_repeat(self, ship_id: Id) -> bool:
        if ship_id not in self.state.ships:
            return False
        orders = self._orders(ship_id)
        orders.repeat = False
        orders.repeat_template.clear()
        return True

    def cancel_current_order(self, ship_id: Id) -> bool:
        if ship_id not in self.state.ships:
            return False
        orders = self.state.ship_orders.get(ship_id)
        if orders is None or not orders.queue:
            return False
        orders.queue.pop(0)
        return True

    # --- issuing orders ---

    def issue_wait_days(self, ship_id: Id, days: int) -> bool:
        if days <= 0 or ship_id not in self.state.ships:
            return False
        self._orders(ship_id).queue.append(WaitDays(days_remaining=days))
        return True

    def issue_move_to_point(self, ship_id: Id, target_mkm: Vec2) -> bool:
        if ship_id not in self.state.ships:
            return False
        self._orders(ship_id).queue.append(MoveToPoint(target_mkm=target_mkm))
        return True

    def _body_system(self, body_id: Id) -> Id:
        body = self.state.bodies.get(body_id)
        if body is None or body.system_id == INVALID_ID or body.system_id not in self.state.systems:
            return INVALID_ID
        return body.system_id

    def issue_move_to_body(self, ship_id: Id, body_id: Id, restrict_to_discovered: bool = False) -> bool:
        if ship_id not in self.state.ships:
            return False
        system_id = self._body_system(body_id)
        if system_id == INVALID_ID:
            return False
        if not self.issue_travel_to_system(ship_id, system_id, restrict_to_discovered):
            return False
        self._orders(ship_id).queue.append(MoveToBody(body_id=body_id))
        return True

    def issue_orbit_body(self, ship_id: Id, body_id: Id, duration_days: int = -1,
                         restrict_to_discovered: bool = False) -> bool:
        """Send a ship to orbit a body; a negative duration orbits until cancelled."""
        if ship_id not in self.state.ships:
            return False
        system_id = self._body_system(body_id)
        if system_id == INVALID_ID:
            return False
        if not self.issue_travel_to_system(ship_id, system_id, restrict_to_discovered):
            return False
        self._orders(ship_id).queue.append(OrbitBody(body_id=body_id, duration_days=duration_days))
        return True

    def issue_travel_via_jump(self, ship_id: Id, jump_point_id: Id) -> bool:
        if ship_id not in self.state.ships or jump_point_id not in self.state.jump_points:
            return False
        self._orders(ship_id).queue.append(TravelViaJump(jump_point_id=jump_point_id))
        return True

    def _jump_destination_system(self, jump_id: Id) -> Id:
        jp = self.state.jump_points.get(jump_id)
        if jp is None or jp.linked_jump_id == INVALID_ID:
            return INVALID_ID
        dest = self.state.jump_points.get(jp.linked_jump_id)
        if dest is None or dest.system_id == INVALID_ID or dest.system_id not in self.state.systems:
            return INVALID_ID
        return dest.system_id

    def _predicted_system_after_queue(self, ship_id: Id, ship: Ship) -> Id:
        system_id = ship.system_id
        orders = self.state.ship_orders.get(ship_id)
        if orders is None:
            return system_id
        for order in orders.queue:
            if not isinstance(order, TravelViaJump):
                continue
            jp = self.state.jump_points.get(order.jump_point_id)
            if jp is None or jp.system_id != system_id:
                continue
            dest_system = self._jump_destination_system(order.jump_point_id)
            if dest_system != INVALID_ID:
                system_id = dest_system
        return system_id

    def issue_travel_to_system(self, ship_id: Id, target_system_id: Id,
                               restrict_to_discovered: bool = False) -> bool:
        """Queue the shortest chain of jumps from where the queue leaves the ship to the target."""
        ship = self.state.ships.get(ship_id)
        if ship is None or target_system_id not in self.state.systems:
            return False

        start = self._predicted_system_after_queue(ship_id, ship)
        if start == INVALID_ID:
            return False
        if start == target_system_id:
            return True

        def allowed(system_id: Id) -> bool:
            return not restrict_to_discovered or self.is_system_discovered_by_faction(ship.faction_id, system_id)

        if not allowed(target_system_id):
            return False

        prev_system: Dict[Id, Id] = {start: INVALID_ID}
        prev_jump: Dict[Id, Id] = {}
        frontier = deque([start])
        while frontier:
            current = frontier.popleft()
            if current == target_system_id:
                break
            system = self.state.systems.get(current)
            if system is None:
                continue
            for jump_id in system.jump_points:
                if jump_id not in self.state.jump_points:
                    continue
                next_system = self._jump_destination_system(jump_id)
                if next_system == INVALID_ID or not allowed(next_system) or next_system in prev_system:
                    continue
                prev_system[next_system] = current
                prev_jump[next_system] = jump_id
                frontier.append(next_system)

        if target_system_id not in prev_system:
            return False

        jumps: List[Id] = []
        current = target_system_id
        while current != start:
            jumps.append(prev_jump[current])
            current = prev_system[current]
        jumps.reverse()

        self._orders(ship_id).queue.extend(TravelViaJump(jump_point_id=jid) for jid in jumps)
        return True

    def issue_attack_ship(self, attacker_ship_id: Id, target_ship_id: Id,
                          restrict_to_discovered: bool = False) -> bool:
        if attacker_ship_id == target_ship_id:
            return False
        attacker = self.state.ships.get(attacker_ship_id)
        target = self.state.ships.get(target_ship_id)
        if attacker is None or target is None or target.faction_id == attacker.faction_id:
            return False

        if self.is_ship_detected_by_faction(attacker.faction_id, target_ship_id):
            last_known = target.position_mkm
            target_system_id = target.system_id
        else:
            faction = self.state.factions.get(attacker.faction_id)
            if faction is None:
                return False
            contact = faction.ship_contacts.get(target_ship_id)
            if contact is None:
                return False
            last_known = contact.last_seen_position_mkm
            target_system_id = contact.system_id

        if target_system_id == INVALID_ID or target_system_id not in self.state.systems:
            return False
        if not self.issue_travel_to_system(attacker_ship_id, target_system_id, restrict_to_discovered):
            return False

        order = AttackShip(target_ship_id=target_ship_id, has_last_known=True, last_known_position_mkm=last_known)
        self._orders(attacker_ship_id).queue.append(order)
        return True

    def _own_colony_system(self, ship_id: Id, colony_id: Id) -> Id:
        ship = self.state.ships.get(ship_id)
        colony = self.state.colonies.get(colony_id)
        if ship is None or colony is None or colony.faction_id != ship.faction_id:
            return INVALID_ID
        return self._body_system(colony.body_id)

    def issue_load_mineral(self, ship_id: Id, colony_id: Id, mineral: str, tons: float,
                           restrict_to_discovered: bool = False) -> bool:
        """Load a mineral at an own colony; an empty mineral loads anything, zero tons as much as fits."""
        system_id = self._own_colony_system(ship_id, colony_id)
        if system_id == INVALID_ID or tons < 0.0:
            return False
        if not self.issue_travel_to_system(ship_id, system_id, restrict_to_discovered):
            return False
        self._orders(ship_id).queue.append(LoadMineral(colony_id=colony_id, mineral=mineral, tons=tons))
        return True

    def issue_unload_mineral(self, ship_id: Id, colony_id: Id, mineral: str, tons: float,
                             restrict_to_discovered: bool = False) -> bool:
        system_id = self._own_colony_system(ship_id, colony_id)
        if system_id == INVALID_ID or tons < 0.0:
            return False
        if not self.issue_travel_to_system(ship_id, system_id, restrict_to_discovered):
            return False
        self._orders(ship_id).queue.append(UnloadMineral(colony_id=colony_id, mineral=mineral, tons=tons))
        return True

    def issue_transfer_cargo_to_ship(self, ship_id: Id, target_ship_id: Id, mineral: str, tons: float,
                                     restrict_to_discovered: bool = False) -> bool:
        ship = self.state.ships.get(ship_id)
        target = self.state.ships.get(target_ship_id)
        if ship is None or target is None or ship.faction_id != target.faction_id or tons < 0.0:
            return False
        if not self.issue_travel_to_system(ship_id, target.system_id, restrict_to_discovered):
            return False
        order = TransferCargoToShip(target_ship_id=target_ship_id, mineral=mineral, tons=tons)
        self._orders(ship_id).queue.append(order)
        return True

    def issue_scrap_ship(self, ship_id: Id, colony_id: Id, restrict_to_discovered: bool = False) -> bool:
        ship = self.state.ships.get(ship_id)
        colony = self.state.colonies.get(colony_id)
        if ship is None or colony is None or colony.faction_id != ship.faction_id:
            return False
        body = self.state.bodies.get(colony.body_id)
        if body is None:
            return False
        if not self.issue_travel_to_system(ship_id, body.system_id, restrict_to_discovered):
            return False
        self._orders(ship_id).queue.append(ScrapShip(colony_id=colony_id))
        return True

    # --- colony queues ---

    def enqueue_build(self, colony_id: Id, design_id: str) -> bool:
        colony = self.state.colonies.get(colony_id)
        if colony is None or colony.installations.get("shipyard", 0) <= 0:
            return False
        design = self.find_design(design_id)
        if design is None or not self.is_design_buildable_for_faction(colony.faction_id, design_id):
            return False
        colony.shipyard_queue.append(BuildOrder(design_id=design_id, tons_remaining=max(1.0, design.mass_tons)))
        return True

    def enqueue_installation_build(self, colony_id: Id, installation_id: str, quantity: int = 1) -> bool:
        colony = self.state.colonies.get(colony_id)
        if colony is None or quantity <= 0:
            return False
        if installation_id not in self.content.installations:
            return False
        if not self.is_installation_buildable_for_faction(colony.faction_id, installation_id):
            return False
        colony.construction_queue.append(
            InstallationBuildOrder(installation_id=installation_id, quantity_remaining=quantity)
        )
        return True
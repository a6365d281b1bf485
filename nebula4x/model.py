"""Core data model: geometry, dates, content definitions and game state."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

Id = int
INVALID_ID: Id = 0


@dataclass(frozen=True)
class Vec2:
    """A 2D vector, in millions of kilometres where used for positions."""

    x: float = 0.0
    y: float = 0.0

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def normalized(self) -> Vec2:
        """Unit vector in the same direction; the zero vector stays zero."""
        n = self.length()
        if n <= 0.0:
            return Vec2(0.0, 0.0)
        return Vec2(self.x / n, self.y / n)

    def __add__(self, other: Vec2) -> Vec2:
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vec2) -> Vec2:
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> Vec2:
        return Vec2(self.x * factor, self.y * factor)

    __rmul__ = __mul__


@dataclass(frozen=True, order=True)
class Date:
    """A game date counted in whole days from the epoch."""

    days: int = 0

    def days_since_epoch(self) -> int:
        return self.days

    def add_days(self, days: int) -> Date:
        return Date(self.days + days)


class ShipRole(Enum):
    UNKNOWN = "unknown"
    FREIGHTER = "freighter"
    SURVEYOR = "surveyor"
    COMBATANT = "combatant"


class ComponentType(Enum):
    UNKNOWN = "unknown"
    ENGINE = "engine"
    CARGO = "cargo"
    SENSOR = "sensor"
    REACTOR = "reactor"
    WEAPON = "weapon"
    ARMOR = "armor"


@dataclass
class ComponentDef:
    id: str = ""
    name: str = ""
    type: ComponentType = ComponentType.UNKNOWN
    mass_tons: float = 0.0
    speed_km_s: float = 0.0
    cargo_tons: float = 0.0
    sensor_range_mkm: float = 0.0
    power: float = 0.0
    weapon_damage: float = 0.0
    weapon_range_mkm: float = 0.0
    hp_bonus: float = 0.0


@dataclass
class InstallationDef:
    id: str = ""
    name: str = ""
    produces_per_day: Dict[str, float] = field(default_factory=dict)
    construction_points_per_day: float = 0.0
    construction_cost: float = 0.0
    build_costs: Dict[str, float] = field(default_factory=dict)
    build_rate_tons_per_day: float = 0.0
    build_costs_per_ton: Dict[str, float] = field(default_factory=dict)
    sensor_range_mkm: float = 0.0
    research_points_per_day: float = 0.0


@dataclass
class ShipDesign:
    id: str = ""
    name: str = ""
    role: ShipRole = ShipRole.UNKNOWN
    components: List[str] = field(default_factory=list)
    mass_tons: float = 0.0
    speed_km_s: float = 0.0
    cargo_tons: float = 0.0
    sensor_range_mkm: float = 0.0
    weapon_damage: float = 0.0
    weapon_range_mkm: float = 0.0
    max_hp: float = 0.0


@dataclass
class TechEffect:
    type: str = ""
    value: str = ""
    amount: float = 0.0


@dataclass
class TechDef:
    id: str = ""
    name: str = ""
    cost: float = 0.0
    prereqs: List[str] = field(default_factory=list)
    effects: List[TechEffect] = field(default_factory=list)


@dataclass
class ContentDB:
    components: Dict[str, ComponentDef] = field(default_factory=dict)
    installations: Dict[str, InstallationDef] = field(default_factory=dict)
    designs: Dict[str, ShipDesign] = field(default_factory=dict)
    techs: Dict[str, TechDef] = field(default_factory=dict)


@dataclass
class StarSystem:
    id: Id = INVALID_ID
    name: str = ""
    bodies: List[Id] = field(default_factory=list)
    ships: List[Id] = field(default_factory=list)
    jump_points: List[Id] = field(default_factory=list)


@dataclass
class Body:
    id: Id = INVALID_ID
    name: str = ""
    system_id: Id = INVALID_ID
    orbit_radius_mkm: float = 0.0
    orbit_period_days: float = 0.0
    orbit_phase_radians: float = 0.0
    position_mkm: Vec2 = field(default_factory=Vec2)


@dataclass
class JumpPoint:
    id: Id = INVALID_ID
    name: str = ""
    system_id: Id = INVALID_ID
    position_mkm: Vec2 = field(default_factory=Vec2)
    linked_jump_id: Id = INVALID_ID


@dataclass
class Ship:
    id: Id = INVALID_ID
    name: str = ""
    faction_id: Id = INVALID_ID
    system_id: Id = INVALID_ID
    design_id: str = ""
    position_mkm: Vec2 = field(default_factory=Vec2)
    speed_km_s: float = 0.0
    hp: float = 0.0
    cargo: Dict[str, float] = field(default_factory=dict)


@dataclass
class Contact:
    ship_id: Id = INVALID_ID
    system_id: Id = INVALID_ID
    last_seen_day: int = 0
    last_seen_position_mkm: Vec2 = field(default_factory=Vec2)
    last_seen_name: str = ""
    last_seen_design_id: str = ""
    last_seen_faction_id: Id = INVALID_ID


@dataclass
class BuildOrder:
    design_id: str = ""
    tons_remaining: float = 0.0


@dataclass
class InstallationBuildOrder:
    installation_id: str = ""
    quantity_remaining: int = 0
    minerals_paid: bool = False
    cp_remaining: float = 0.0


@dataclass
class Colony:
    id: Id = INVALID_ID
    name: str = ""
    faction_id: Id = INVALID_ID
    body_id: Id = INVALID_ID
    population_millions: float = 0.0
    minerals: Dict[str, float] = field(default_factory=dict)
    installations: Dict[str, int] = field(default_factory=dict)
    shipyard_queue: List[BuildOrder] = field(default_factory=list)
    construction_queue: List[InstallationBuildOrder] = field(default_factory=list)


@dataclass
class Faction:
    id: Id = INVALID_ID
    name: str = ""
    research_points: float = 0.0
    active_research_id: str = ""
    active_research_progress: float = 0.0
    research_queue: List[str] = field(default_factory=list)
    known_techs: List[str] = field(default_factory=list)
    unlocked_components: List[str] = field(default_factory=list)
    unlocked_installations: List[str] = field(default_factory=list)
    discovered_systems: List[Id] = field(default_factory=list)
    ship_contacts: Dict[Id, Contact] = field(default_factory=dict)


class EventLevel(Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class EventCategory(Enum):
    GENERAL = "general"
    RESEARCH = "research"
    SHIPYARD = "shipyard"
    CONSTRUCTION = "construction"
    MOVEMENT = "movement"
    COMBAT = "combat"
    INTEL = "intel"
    EXPLORATION = "exploration"


@dataclass
class EventContext:
    faction_id: Id = INVALID_ID
    faction_id2: Id = INVALID_ID
    system_id: Id = INVALID_ID
    ship_id: Id = INVALID_ID
    colony_id: Id = INVALID_ID


@dataclass
class SimEvent:
    seq: int = 0
    day: int = 0
    level: EventLevel = EventLevel.INFO
    category: EventCategory = EventCategory.GENERAL
    faction_id: Id = INVALID_ID
    faction_id2: Id = INVALID_ID
    system_id: Id = INVALID_ID
    ship_id: Id = INVALID_ID
    colony_id: Id = INVALID_ID
    message: str = ""


@dataclass
class MoveToPoint:
    target_mkm: Vec2 = field(default_factory=Vec2)


@dataclass
class MoveToBody:
    body_id: Id = INVALID_ID


@dataclass
class OrbitBody:
    """Orbit a body; a duration of -1 means indefinitely."""

    body_id: Id = INVALID_ID
    duration_days: int = -1


@dataclass
class TravelViaJump:
    jump_point_id: Id = INVALID_ID


@dataclass
class AttackShip:
    target_ship_id: Id = INVALID_ID
    has_last_known: bool = False
    last_known_position_mkm: Vec2 = field(default_factory=Vec2)


@dataclass
class WaitDays:
    days_remaining: int = 0


@dataclass
class LoadMineral:
    """Load from a colony; an empty mineral means any, tons <= 0 means as much as possible."""

    colony_id: Id = INVALID_ID
    mineral: str = ""
    tons: float = 0.0


@dataclass
class UnloadMineral:
    colony_id: Id = INVALID_ID
    mineral: str = ""
    tons: float = 0.0


@dataclass
class TransferCargoToShip:
    target_ship_id: Id = INVALID_ID
    mineral: str = ""
    tons: float = 0.0


@dataclass
class ScrapShip:
    colony_id: Id = INVALID_ID


Order = Union[
    MoveToPoint,
    MoveToBody,
    OrbitBody,
    TravelViaJump,
    AttackShip,
    WaitDays,
    LoadMineral,
    UnloadMineral,
    TransferCargoToShip,
    ScrapShip,
]


@dataclass
class ShipOrders:
    queue: List[Order] = field(default_factory=list)
    repeat: bool = False
    repeat_template: List[Order] = field(default_factory=list)


@dataclass
class SimConfig:
    seconds_per_day: float = 86400.0
    max_events: int = 1000
    arrival_epsilon_mkm: float = 1e-6
    docking_range_mkm: float = 0.01


@dataclass
class GameState:
    date: Date = field(default_factory=Date)
    next_id: Id = 1
    next_event_seq: int = 1
    selected_system: Id = INVALID_ID
    systems: Dict[Id, StarSystem] = field(default_factory=dict)
    bodies: Dict[Id, Body] = field(default_factory=dict)
    jump_points: Dict[Id, JumpPoint] = field(default_factory=dict)
    ships: Dict[Id, Ship] = field(default_factory=dict)
    ship_orders: Dict[Id, ShipOrders] = field(default_factory=dict)
    colonies: Dict[Id, Colony] = field(default_factory=dict)
    factions: Dict[Id, Faction] = field(default_factory=dict)
    custom_designs: Dict[str, ShipDesign] = field(default_factory=dict)
    events: List[SimEvent] = field(default_factory=list)

    def allocate_id(self) -> Id:
        """Hand out the next unused entity id."""
        new_id = self.next_id
        self.next_id += 1
        return new_id


def find_design(state: GameState, content: ContentDB, design_id: str) -> Optional[ShipDesign]:
    """Look up a design, preferring custom designs over built-in ones."""
    design = state.custom_designs.get(design_id)
    if design is not None:
        return design
    return content.designs.get(design_id)


def derive_design_stats(design: ShipDesign, components: Dict[str, ComponentDef]) -> ShipDesign:
    """Return a copy of the design with stats derived from its components.

    Raises ValueError for a component id that is not in ``components``.
    """
    mass = speed = cargo = sensor = weapon_damage = weapon_range = hp_bonus = 0.0
    for cid in design.components:
        comp = components.get(cid)
        if comp is None:
            raise ValueError(f"Unknown component id: {cid}")
        mass += comp.mass_tons
        speed = max(speed, comp.speed_km_s)
        cargo += comp.cargo_tons
        sensor = max(sensor, comp.sensor_range_mkm)
        if comp.type is ComponentType.WEAPON:
            weapon_damage += comp.weapon_damage
            weapon_range = max(weapon_range, comp.weapon_range_mkm)
        hp_bonus += comp.hp_bonus

    return dataclasses.replace(
        design,
        components=list(design.components),
        mass_tons=mass,
        speed_km_s=speed,
        cargo_tons=cargo,
        sensor_range_mkm=sensor,
        weapon_damage=weapon_damage,
        weapon_range_mkm=weapon_range,
        max_hp=max(1.0, mass * 2.0 + hp_bonus),
    )


def apply_design_stats(ship: Ship, design: Optional[ShipDesign]) -> None:
    """Copy speed onto the ship and bring its hit points into the design's range."""
    if design is None:
        ship.speed_km_s = 0.0
        if ship.hp <= 0.0:
            ship.hp = 1.0
        return
    ship.speed_km_s = design.speed_km_s
    if ship.hp <= 0.0:
        ship.hp = design.max_hp
    ship.hp = min(max(ship.hp, 0.0), design.max_hp)
import pytest

from nebula4x.model import (
    AttackShip,
    Body,
    Colony,
    ContentDB,
    EventCategory,
    Faction,
    GameState,
    JumpPoint,
    LoadMineral,
    MoveToBody,
    MoveToPoint,
    OrbitBody,
    ScrapShip,
    Ship,
    ShipDesign,
    ShipOrders,
    SimConfig,
    StarSystem,
    TransferCargoToShip,
    TravelViaJump,
    UnloadMineral,
    Vec2,
    WaitDays,
)
from nebula4x.movement import discover_system_for_faction, tick_ships


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, level, category, message, ctx):
        self.events.append((level, category, message, ctx))


def make_world():
    content = ContentDB(
        designs={
            "tug": ShipDesign(id="tug", name="Tug", speed_km_s=1.0, cargo_tons=50.0, max_hp=10.0),
            "hauler": ShipDesign(id="hauler", name="Hauler", speed_km_s=1.0, cargo_tons=10.0, max_hp=10.0),
            "gunboat": ShipDesign(
                id="gunboat", name="Gunboat", speed_km_s=100.0, sensor_range_mkm=100.0,
                weapon_damage=5.0, weapon_range_mkm=2.0, max_hp=10.0,
            ),
            "scout": ShipDesign(id="scout", name="Scout", speed_km_s=1.0, max_hp=10.0),
        }
    )
    state = GameState(next_id=200)
    state.factions[1] = Faction(id=1, name="Terrans", discovered_systems=[10])
    state.factions[2] = Faction(id=2, name="Aliens")
    state.systems[10] = StarSystem(id=10, name="Sol", bodies=[11], jump_points=[13])
    state.systems[20] = StarSystem(id=20, name="Beta", bodies=[21], jump_points=[23])
    state.bodies[11] = Body(id=11, name="Earth", system_id=10, position_mkm=Vec2(5.0, 0.0))
    state.bodies[21] = Body(id=21, name="Beta I", system_id=20, position_mkm=Vec2(1.0, 1.0))
    state.colonies[12] = Colony(id=12, name="Earth Colony", faction_id=1, body_id=11)
    state.jump_points[13] = JumpPoint(id=13, name="JP-A", system_id=10, position_mkm=Vec2(0.0, 0.0), linked_jump_id=23)
    state.jump_points[23] = JumpPoint(id=23, name="JP-B", system_id=20, position_mkm=Vec2(3.0, 4.0), linked_jump_id=13)
    add_ship(state, 100, "Alpha", 1, "tug", Vec2(0.0, 0.0), content)
    cfg = SimConfig(seconds_per_day=1.0e6)
    return state, content, cfg


def add_ship(state, ship_id, name, faction_id, design_id, pos, content, system_id=10):
    design = content.designs.get(design_id)
    state.ships[ship_id] = Ship(
        id=ship_id, name=name, faction_id=faction_id, system_id=system_id, design_id=design_id,
        position_mkm=pos, speed_km_s=design.speed_km_s if design else 0.0, hp=10.0,
    )
    state.ship_orders[ship_id] = ShipOrders()
    state.systems[system_id].ships.append(ship_id)
    return state.ships[ship_id]


def queue_of(state, ship_id):
    return state.ship_orders[ship_id].queue


def test_move_to_point_steps_then_arrives():
    state, content, cfg = make_world()
    queue_of(state, 100).append(MoveToPoint(Vec2(10.0, 0.0)))
    rec = Recorder()
    tick_ships(state, content, cfg, rec)
    assert state.ships[100].position_mkm == Vec2(1.0, 0.0)
    assert len(queue_of(state, 100)) == 1
    for _ in range(9):
        tick_ships(state, content, cfg, rec)
    assert state.ships[100].position_mkm == Vec2(10.0, 0.0)
    assert queue_of(state, 100) == []


def test_ship_without_orders_entry_is_untouched():
    state, content, cfg = make_world()
    del state.ship_orders[100]
    state.ships[100].position_mkm = Vec2(2.0, 2.0)
    tick_ships(state, content, cfg, Recorder())
    assert state.ships[100].position_mkm == Vec2(2.0, 2.0)
    assert 100 not in state.ship_orders


def test_wait_days_counts_down():
    state, content, cfg = make_world()
    queue_of(state, 100).append(WaitDays(2))
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100)[0].days_remaining == 1
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []


def test_repeat_template_refills_queue_with_copies():
    state, content, cfg = make_world()
    orders = state.ship_orders[100]
    orders.repeat = True
    orders.repeat_template = [WaitDays(2)]
    tick_ships(state, content, cfg, Recorder())
    assert orders.queue == [WaitDays(1)]
    assert orders.repeat_template == [WaitDays(2)]


def test_jump_transit_moves_ship_and_discovers_system():
    state, content, cfg = make_world()
    queue_of(state, 100).append(TravelViaJump(13))
    rec = Recorder()
    tick_ships(state, content, cfg, rec)
    ship = state.ships[100]
    assert ship.system_id == 20
    assert ship.position_mkm == Vec2(3.0, 4.0)
    assert 100 not in state.systems[10].ships
    assert 100 in state.systems[20].ships
    assert state.factions[1].discovered_systems == [10, 20]
    assert queue_of(state, 100) == []
    assert [(e[1], e[2]) for e in rec.events] == [
        (EventCategory.EXPLORATION, "Terrans discovered system Beta"),
        (EventCategory.MOVEMENT, "Ship Alpha transited jump point JP-A -> Beta"),
    ]


def test_jump_from_wrong_system_is_dropped():
    state, content, cfg = make_world()
    queue_of(state, 100).append(TravelViaJump(23))
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []
    assert state.ships[100].system_id == 10


def test_discover_system_only_once():
    state, _, _ = make_world()
    rec = Recorder()
    discover_system_for_faction(state, 1, 20, rec)
    discover_system_for_faction(state, 1, 20, rec)
    discover_system_for_faction(state, 1, 0, rec)
    discover_system_for_faction(state, 99, 20, rec)
    assert state.factions[1].discovered_systems == [10, 20]
    assert len(rec.events) == 1
    assert rec.events[0][3].system_id == 20


def test_move_to_body_in_other_system_is_dropped():
    state, content, cfg = make_world()
    queue_of(state, 100).append(MoveToBody(21))
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []
    assert state.ships[100].position_mkm == Vec2(0.0, 0.0)


def test_move_to_body_reaches_body():
    state, content, cfg = make_world()
    queue_of(state, 100).append(MoveToBody(11))
    for _ in range(5):
        tick_ships(state, content, cfg, Recorder())
    assert state.ships[100].position_mkm == state.bodies[11].position_mkm
    assert queue_of(state, 100) == []


def test_orbit_with_duration_then_leaves():
    state, content, cfg = make_world()
    state.ships[100].position_mkm = Vec2(5.0, 0.0)
    queue_of(state, 100).append(OrbitBody(11, 2))
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100)[0].duration_days == 1
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []


def test_orbit_indefinitely_stays():
    state, content, cfg = make_world()
    state.ships[100].position_mkm = Vec2(5.0, 0.0)
    queue_of(state, 100).append(OrbitBody(11, -1))
    for _ in range(3):
        tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == [OrbitBody(11, -1)]


def test_load_everything_fills_by_sorted_mineral():
    state, content, cfg = make_world()
    state.ships[100].position_mkm = Vec2(5.0, 0.0)
    state.colonies[12].minerals = {"iron": 100.0, "gold": 5.0}
    queue_of(state, 100).append(LoadMineral(12, "", 0.0))
    tick_ships(state, content, cfg, Recorder())
    assert state.ships[100].cargo == {"gold": 5.0, "iron": 45.0}
    assert state.colonies[12].minerals == {"iron": 55.0}
    assert queue_of(state, 100) == []


def test_load_partial_keeps_order_until_blocked():
    state, content, cfg = make_world()
    state.ships[100].position_mkm = Vec2(5.0, 0.0)
    state.colonies[12].minerals = {"iron": 20.0}
    queue_of(state, 100).append(LoadMineral(12, "iron", 30.0))
    tick_ships(state, content, cfg, Recorder())
    assert state.ships[100].cargo == {"iron": 20.0}
    assert queue_of(state, 100)[0].tons == pytest.approx(30.0 - 20.0)
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []


def test_unload_all_to_colony():
    state, content, cfg = make_world()
    ship = state.ships[100]
    ship.position_mkm = Vec2(5.0, 0.0)
    ship.cargo = {"iron": 20.0}
    queue_of(state, 100).append(UnloadMineral(12, "iron", 0.0))
    tick_ships(state, content, cfg, Recorder())
    assert ship.cargo == {}
    assert state.colonies[12].minerals == {"iron": 20.0}
    assert queue_of(state, 100) == []


def test_transfer_to_ship_respects_target_capacity():
    state, content, cfg = make_world()
    state.ships[100].cargo = {"iron": 30.0}
    add_ship(state, 102, "Mule", 1, "hauler", Vec2(0.0, 0.0), content)
    queue_of(state, 100).append(TransferCargoToShip(102, "", 0.0))
    tick_ships(state, content, cfg, Recorder())
    total = state.ships[100].cargo["iron"] + state.ships[102].cargo["iron"]
    assert state.ships[102].cargo["iron"] == pytest.approx(content.designs["hauler"].cargo_tons)
    assert total == pytest.approx(30.0)
    assert queue_of(state, 100) == []


def test_transfer_to_foreign_ship_is_dropped():
    state, content, cfg = make_world()
    state.ships[100].cargo = {"iron": 30.0}
    add_ship(state, 102, "Other", 2, "hauler", Vec2(0.0, 0.0), content)
    queue_of(state, 100).append(TransferCargoToShip(102, "", 0.0))
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []
    assert state.ships[102].cargo == {}


def test_scrap_removes_ship():
    state, content, cfg = make_world()
    state.ships[100].position_mkm = Vec2(5.0, 0.0)
    queue_of(state, 100).append(ScrapShip(12))
    tick_ships(state, content, cfg, Recorder())
    assert 100 not in state.ships
    assert 100 not in state.ship_orders
    assert 100 not in state.systems[10].ships


def test_scrap_with_unknown_design_only_drops_order():
    state, content, cfg = make_world()
    ship = state.ships[100]
    ship.position_mkm = Vec2(5.0, 0.0)
    ship.design_id = "ghost"
    queue_of(state, 100).append(ScrapShip(12))
    tick_ships(state, content, cfg, Recorder())
    assert 100 in state.ships
    assert queue_of(state, 100) == []


def test_attack_with_contact_closes_to_weapon_range():
    state, content, cfg = make_world()
    add_ship(state, 101, "Raider", 2, "scout", Vec2(10.0, 0.0), content)
    add_ship(state, 103, "Lancer", 1, "gunboat", Vec2(0.0, 0.0), content)
    queue_of(state, 103).append(AttackShip(101))
    tick_ships(state, content, cfg, Recorder())
    attacker = state.ships[103]
    dist = (state.ships[101].position_mkm - attacker.position_mkm).length()
    assert dist == pytest.approx(content.designs["gunboat"].weapon_range_mkm * 0.9)
    order = queue_of(state, 103)[0]
    assert order.has_last_known
    assert order.last_known_position_mkm == Vec2(10.0, 0.0)


def test_attack_without_contact_or_last_known_is_dropped():
    state, content, cfg = make_world()
    add_ship(state, 101, "Raider", 2, "scout", Vec2(10.0, 0.0), content)
    queue_of(state, 100).append(AttackShip(101))
    tick_ships(state, content, cfg, Recorder())
    assert queue_of(state, 100) == []
    assert state.ships[100].position_mkm == Vec2(0.0, 0.0)


def test_attack_without_contact_goes_to_last_known_and_stops():
    state, content, cfg = make_world()
    add_ship(state, 101, "Raider", 2, "scout", Vec2(10.0, 0.0), content)
    queue_of(state, 100).append(AttackShip(101, True, Vec2(0.5, 0.0)))
    tick_ships(state, content, cfg, Recorder())
    assert state.ships[100].position_mkm == Vec2(0.5, 0.0)
    assert queue_of(state, 100) == []
import math

import pytest

from nebula4x.model import (
    INVALID_ID,
    ComponentDef,
    ComponentType,
    ContentDB,
    Date,
    GameState,
    Ship,
    ShipDesign,
    Vec2,
    apply_design_stats,
    derive_design_stats,
    find_design,
)


def test_vec2_add_sub_round_trip():
    a = Vec2(1.5, -2.0)
    b = Vec2(0.25, 7.0)
    assert (a + b) - b == a


def test_vec2_length_matches_hypot():
    v = Vec2(3.0, 4.0)
    assert v.length() == pytest.approx(math.hypot(3.0, 4.0))


def test_vec2_normalized_has_unit_length():
    v = Vec2(-12.0, 5.0).normalized()
    assert v.length() == pytest.approx(1.0)
    assert v.x < 0 and v.y > 0


def test_vec2_zero_normalized_is_zero():
    assert Vec2(0.0, 0.0).normalized() == Vec2(0.0, 0.0)


def test_vec2_scalar_multiply_both_sides():
    v = Vec2(2.0, -1.0)
    assert v * 3.0 == Vec2(6.0, -3.0)
    assert 3.0 * v == v * 3.0


def test_date_add_days_round_trip():
    d = Date(10)
    assert d.add_days(5).add_days(-5) == d
    assert d.add_days(7).days_since_epoch() == d.days_since_epoch() + 7


def test_allocate_id_is_monotonic():
    state = GameState()
    first = state.allocate_id()
    second = state.allocate_id()
    assert first != INVALID_ID
    assert second == first + 1
    assert state.next_id == second + 1


def test_find_design_prefers_custom():
    content = ContentDB(designs={"d": ShipDesign(id="d", name="builtin")})
    state = GameState(custom_designs={"d": ShipDesign(id="d", name="custom")})
    assert find_design(state, content, "d").name == "custom"
    assert find_design(GameState(), content, "d").name == "builtin"
    assert find_design(state, content, "missing") is None


def _components():
    return {
        "eng": ComponentDef(id="eng", type=ComponentType.ENGINE, mass_tons=10.0, speed_km_s=20.0),
        "eng2": ComponentDef(id="eng2", type=ComponentType.ENGINE, mass_tons=5.0, speed_km_s=35.0),
        "hold": ComponentDef(id="hold", type=ComponentType.CARGO, mass_tons=4.0, cargo_tons=50.0),
        "gun": ComponentDef(
            id="gun", type=ComponentType.WEAPON, mass_tons=2.0, weapon_damage=3.0, weapon_range_mkm=0.5
        ),
        "fake": ComponentDef(id="fake", type=ComponentType.ARMOR, weapon_damage=99.0, weapon_range_mkm=9.0),
    }


def test_derive_design_stats_sums_and_maxes():
    design = ShipDesign(id="x", components=["eng", "eng2", "hold", "hold"])
    out = derive_design_stats(design, _components())
    assert out.mass_tons == pytest.approx(10.0 + 5.0 + 4.0 + 4.0)
    assert out.speed_km_s == 35.0
    assert out.cargo_tons == pytest.approx(100.0)
    assert out.max_hp >= 1.0
    assert design.mass_tons == 0.0


def test_derive_design_stats_only_weapons_deal_damage():
    out = derive_design_stats(ShipDesign(id="x", components=["gun", "fake"]), _components())
    assert out.weapon_damage == 3.0
    assert out.weapon_range_mkm == 0.5


def test_derive_design_stats_empty_has_minimum_hp():
    out = derive_design_stats(ShipDesign(id="x"), _components())
    assert out.max_hp == 1.0


def test_derive_design_stats_unknown_component():
    with pytest.raises(ValueError, match="Unknown component id: nope"):
        derive_design_stats(ShipDesign(id="x", components=["nope"]), _components())


def test_apply_design_stats_without_design():
    ship = Ship(hp=0.0, speed_km_s=50.0)
    apply_design_stats(ship, None)
    assert ship.speed_km_s == 0.0
    assert ship.hp == 1.0


def test_apply_design_stats_fills_and_clamps_hp():
    design = ShipDesign(id="d", speed_km_s=12.0, max_hp=40.0)
    fresh = Ship(hp=0.0)
    apply_design_stats(fresh, design)
    assert fresh.hp == design.max_hp
    assert fresh.speed_km_s == design.speed_km_s

    damaged = Ship(hp=15.0)
    apply_design_stats(damaged, design)
    assert damaged.hp == 15.0

    over = Ship(hp=400.0)
    apply_design_stats(over, design)
    assert over.hp == design.max_hp
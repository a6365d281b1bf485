"""Loading of blueprint content and the tech tree from JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from nebula4x.model import (
    ComponentDef,
    ComponentType,
    ContentDB,
    InstallationDef,
    ShipDesign,
    ShipRole,
    TechDef,
    TechEffect,
    derive_design_stats,
)


class ContentError(ValueError):
    """Raised when content data cannot be read or is malformed."""


def _num(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


def _obj(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, dict):
        raise ContentError(f"{what} must be a JSON object")
    return value


def _arr(value: Any, what: str) -> list:
    if not isinstance(value, list):
        raise ContentError(f"{what} must be a JSON array")
    return value


def _required(obj: Mapping[str, Any], key: str, what: str) -> Any:
    if key not in obj:
        raise ContentError(f"{what} is missing required key '{key}'")
    return obj[key]


def _parse_role(text: str) -> ShipRole:
    try:
        return ShipRole(text)
    except ValueError:
        return ShipRole.UNKNOWN


def _parse_component_type(text: str) -> ComponentType:
    try:
        return ComponentType(text)
    except ValueError:
        return ComponentType.UNKNOWN


def _mineral_map(value: Any, what: str) -> Dict[str, float]:
    return {mineral: _num(amount, 0.0) for mineral, amount in _obj(value, what).items()}


def _parse_component(cid: str, cj: Mapping[str, Any]) -> ComponentDef:
    c = ComponentDef(id=cid)
    c.name = _str(cj.get("name"), cid)
    c.type = _parse_component_type(_str(cj.get("type"), ""))
    if "mass_tons" in cj:
        c.mass_tons = _num(cj["mass_tons"], 0.0)
    if "speed_km_s" in cj:
        c.speed_km_s = _num(cj["speed_km_s"], 0.0)
    if "cargo_tons" in cj:
        c.cargo_tons = _num(cj["cargo_tons"], 0.0)
    # Older data named the sensor range "range_mkm".
    if "range_mkm" in cj:
        c.sensor_range_mkm = _num(cj["range_mkm"], 0.0)
    if "sensor_range_mkm" in cj:
        c.sensor_range_mkm = _num(cj["sensor_range_mkm"], c.sensor_range_mkm)
    if "power" in cj:
        c.power = _num(cj["power"], 0.0)
    if "damage" in cj:
        c.weapon_damage = _num(cj["damage"], 0.0)
    if "weapon_range_mkm" in cj:
        c.weapon_range_mkm = _num(cj["weapon_range_mkm"], 0.0)
    if "range_mkm" in cj and c.type is ComponentType.WEAPON and c.weapon_range_mkm <= 0.0:
        c.weapon_range_mkm = _num(cj["range_mkm"], 0.0)
    if "hp_bonus" in cj:
        c.hp_bonus = _num(cj["hp_bonus"], 0.0)
    return c


def _parse_installation(inst_id: str, vo: Mapping[str, Any]) -> InstallationDef:
    d = InstallationDef(id=inst_id)
    d.name = _str(vo.get("name"), inst_id)
    if "produces" in vo:
        d.produces_per_day = _mineral_map(vo["produces"], f"installation '{inst_id}' produces")
    if "construction_points_per_day" in vo:
        d.construction_points_per_day = _num(vo["construction_points_per_day"], 0.0)
    if "construction_cost" in vo:
        d.construction_cost = _num(vo["construction_cost"], 0.0)
    if "build_costs" in vo:
        d.build_costs = _mineral_map(vo["build_costs"], f"installation '{inst_id}' build_costs")
    if "build_rate_tons_per_day" in vo:
        d.build_rate_tons_per_day = _num(vo["build_rate_tons_per_day"], 0.0)
    if "build_costs_per_ton" in vo:
        d.build_costs_per_ton = _mineral_map(
            vo["build_costs_per_ton"], f"installation '{inst_id}' build_costs_per_ton"
        )
    if "sensor_range_mkm" in vo:
        d.sensor_range_mkm = _num(vo["sensor_range_mkm"], 0.0)
    if "range_mkm" in vo and d.sensor_range_mkm <= 0.0:
        d.sensor_range_mkm = _num(vo["range_mkm"], 0.0)
    if "research_points_per_day" in vo:
        d.research_points_per_day = _num(vo["research_points_per_day"], 0.0)
    return d


def parse_content_db(data: Any) -> ContentDB:
    """Build a ContentDB (without techs) from decoded blueprint JSON."""
    root = _obj(data, "content root")
    db = ContentDB()

    if "components" in root:
        for cid, cv in _obj(root["components"], "components").items():
            db.components[cid] = _parse_component(cid, _obj(cv, f"component '{cid}'"))

    if "installations" in root:
        for inst_id, iv in _obj(root["installations"], "installations").items():
            db.installations[inst_id] = _parse_installation(inst_id, _obj(iv, f"installation '{inst_id}'"))

    if "designs" in root:
        for dj in _arr(root["designs"], "designs"):
            o = _obj(dj, "design")
            design_id = _str(_required(o, "id", "design"), "")
            components = [
                _str(cv, "") for cv in _arr(_required(o, "components", f"design '{design_id}'"), "components")
            ]
            design = ShipDesign(
                id=design_id,
                name=_str(o.get("name"), design_id),
                role=_parse_role(_str(o.get("role"), "unknown")),
                components=components,
            )
            try:
                db.designs[design_id] = derive_design_stats(design, db.components)
            except ValueError as exc:
                raise ContentError(str(exc)) from exc

    return db


def parse_tech_db(data: Any) -> Dict[str, TechDef]:
    """Build the tech table from decoded tech-tree JSON."""
    root = _obj(data, "tech root")
    out: Dict[str, TechDef] = {}
    if "techs" not in root:
        return out

    for tv in _arr(root["techs"], "techs"):
        o = _obj(tv, "tech")
        tech_id = _str(_required(o, "id", "tech"), "")
        tech = TechDef(
            id=tech_id,
            name=_str(o.get("name"), tech_id),
            cost=_num(o.get("cost"), 0.0),
        )
        if "prereqs" in o:
            tech.prereqs = [_str(p, "") for p in _arr(o["prereqs"], f"tech '{tech_id}' prereqs")]
        if "effects" in o:
            for ev in _arr(o["effects"], f"tech '{tech_id}' effects"):
                eo = _obj(ev, f"tech '{tech_id}' effect")
                tech.effects.append(
                    TechEffect(
                        type=_str(eo.get("type"), ""),
                        value=_str(eo.get("value"), ""),
                        amount=_num(eo.get("amount"), 0.0),
                    )
                )
        out[tech_id] = tech
    return out


def _read_json(path: Union[str, Path]) -> Any:
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ContentError(f"Cannot read {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ContentError(f"Invalid JSON in {path}: {exc}") from exc


def load_content_db(path: Union[str, Path]) -> ContentDB:
    """Read blueprint content from a JSON file."""
    return parse_content_db(_read_json(path))


def load_tech_db(path: Union[str, Path]) -> Dict[str, TechDef]:
    """Read the tech tree from a JSON file."""
    return parse_tech_db(_read_json(path))
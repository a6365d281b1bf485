# nebula4x

The simulation core of a turn-based space strategy game. It models star
systems joined by jump points, ships that carry out queued orders, and
colonies that mine, research and build. It also tracks sensor contacts and
resolves combat. Time moves forward one day at a time.

The package needs only the Python standard library, version 3.10 or later.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `nebula4x.model`: the data model. It has the `Vec2` and `Date` types, the
  content definitions (`ComponentDef`, `InstallationDef`, `ShipDesign`,
  `TechDef` and `ContentDB`), and the state records (`StarSystem`, `Body`,
  `JumpPoint`, `Ship`, `Colony`, `Faction`, `Contact` and `SimEvent`). It also
  defines the order types, `SimConfig` and `GameState`, and the helpers
  `find_design`, `derive_design_stats` and `apply_design_stats`.
- `nebula4x.content`: loads blueprints and the tech tree from JSON.
- `nebula4x.simulation`: the `Simulation` class, which runs a game.
- `nebula4x.events`: appends events to the log (`push_event`) and matches them
  against stop conditions (`EventStopCondition` and `event_matches_stop`).
- `nebula4x.sensors`: sensor coverage, detection of ships, and contact
  tracking.
- `nebula4x.economy`: mining, research, shipyards and installation
  construction.
- `nebula4x.movement`: ship movement and order execution.
- `nebula4x.combat`: weapons fire and removal of destroyed ships.

## Content

Blueprints and the tech tree are JSON documents:

```python
from nebula4x.content import load_content_db, load_tech_db

content = load_content_db("starting_blueprints.json")
content.techs = load_tech_db("tech_tree.json")
```

A blueprint document can contain three keys:

- `components`: an object keyed by component id.
- `installations`: an object keyed by installation id.
- `designs`: a list of designs, each with an `id` and a `components` list.

A design's mass, speed, cargo, sensor range, weapon damage and range, and
maximum HP are all derived from its components. A tech document has a `techs`
list. Each tech has an `id`, and may have a `name`, a `cost`, `prereqs` and
`effects`. An effect of type `unlock_component` or `unlock_installation`
unlocks the item named in its `value`.

Loading raises `ContentError` (a `ValueError`) in these cases:

- the file cannot be read;
- the JSON is invalid;
- the document is shaped wrongly;
- a required key is missing;
- a design names an unknown component.

To work with data that is already decoded, use `parse_content_db` and
`parse_tech_db`.

## Running a simulation

```python
from nebula4x.events import EventStopCondition
from nebula4x.model import SimConfig
from nebula4x.simulation import Simulation

sim = Simulation(content, SimConfig(), state)

sim.issue_move_to_body(ship_id, body_id, restrict_to_discovered=False)
sim.advance_days(30)

result = sim.advance_until_event(365, EventStopCondition(message_contains="destroyed"))
if result.hit:
    print(result.event.day, result.event.message)
```

The `state` argument is a `GameState`. If you leave it out, the simulation
starts from an empty state.

Loading a state with `load_game` brings its derived data up to date:

- custom designs are re-derived;
- ship speed and HP are updated;
- faction unlocks and discovered systems are updated;
- body positions are recalculated;
- contacts are refreshed.

The `advance_until_event` method stops at the first new event that matches
the stop condition. By default it stops on warnings and errors. Message
matching ignores case.

Each day runs these steps in order:

1. Orbits advance.
2. Colonies produce minerals.
3. Research progresses.
4. Shipyards and construction progress.
5. Ships carry out their orders.
6. Contacts are updated.
7. Combat is resolved.

### Orders

These methods give ships orders:

- `issue_move_to_point`
- `issue_move_to_body`
- `issue_orbit_body`
- `issue_travel_via_jump`
- `issue_travel_to_system`
- `issue_attack_ship`
- `issue_load_mineral`
- `issue_unload_mineral`
- `issue_transfer_cargo_to_ship`
- `issue_scrap_ship`
- `issue_wait_days`

Each one returns `False` if the order cannot be given. Travel to another
system is routed through jump points by breadth-first search. The route starts
from the system the ship will be in once its current queue is done. If you
pass `restrict_to_discovered=True`, the route uses only systems the faction
has discovered.

For cargo orders, an empty mineral name means any mineral. A tonnage of zero
means as much as fits.

These methods manage a ship's queue:

- `clear_orders`
- `cancel_current_order`
- `enable_order_repeat` and `update_order_repeat_template`: turn on repeat,
  using a copy of the current queue as the template.
- `disable_order_repeat`

### Colonies and designs

Colonies build ships with `enqueue_build`, which needs a shipyard and a design
whose components the faction has unlocked. They build installations with
`enqueue_installation_build`.

To add a player design, use `upsert_custom_design`. Its stats are derived from
its components. It raises `ValueError` in these cases:

- the id is empty;
- the id clashes with a built-in design;
- a component is unknown.

### Queries

These methods answer questions about the current state:

- `is_ship_detected_by_faction`
- `detected_hostile_ships_in_system`
- `recent_contacts_in_system`
- `is_system_discovered_by_faction`
- `is_design_buildable_for_faction`
- `is_installation_buildable_for_faction`
- `construction_points_per_day`

## What this package does not do

- There is no command-line program and no graphical interface. It is a
  library to drive from Python code.
- It has no built-in starting scenario. You build the `GameState` yourself.
- It cannot save a game state to a file or read one back.
- It has no checker that reports inconsistencies in a state you build or load
  by hand.
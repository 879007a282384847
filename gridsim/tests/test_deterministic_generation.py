import pytest

from gridsim.sim.engine import SimulationEngine
from gridsim.sim.grid import Grid
from gridsim.sim.world import apply_scenario, generate_scenario


WAREHOUSE = Grid.from_rows([
    ".........",
    ".#.#.#.#.",
    ".........",
    ".#.#.#.#.",
    "c.......c",
])


def test_scenario_generation_deterministic():
    a = generate_scenario(WAREHOUSE, seed=42, robots=3, tasks=8)
    b = generate_scenario(WAREHOUSE, seed=42, robots=3, tasks=8)

    assert a.scenario_hash == b.scenario_hash
    assert a.robot_cells == b.robot_cells
    assert a.task_cells == b.task_cells


def test_scenario_generation_changes_with_seed():
    a = generate_scenario(WAREHOUSE, seed=42, robots=3, tasks=8)
    b = generate_scenario(WAREHOUSE, seed=43, robots=3, tasks=8)
    assert a.scenario_hash != b.scenario_hash


def test_scenario_cells_are_distinct_and_valid():
    scenario = generate_scenario(WAREHOUSE, seed=5, robots=4, tasks=10)

    assert len(scenario.robot_cells) == 4
    assert len(scenario.task_cells) == 10
    assert len(set(scenario.robot_cells) | set(scenario.task_cells)) == 14
    assert all(WAREHOUSE.is_passable(cell) for cell in scenario.robot_cells)
    assert all(WAREHOUSE.is_walkable(cell) for cell in scenario.task_cells)


def test_scenario_rejects_impossible_counts():
    with pytest.raises(ValueError):
        generate_scenario(WAREHOUSE, seed=1, robots=0, tasks=1)
    with pytest.raises(ValueError):
        generate_scenario(Grid.from_rows(["..", ".."]), seed=1, robots=2, tasks=3)


def test_apply_scenario_places_through_setup_api():
    engine = SimulationEngine(strategy="nearest")
    engine.load_grid(WAREHOUSE)
    scenario = generate_scenario(WAREHOUSE, seed=9, robots=2, tasks=3)

    apply_scenario(engine, scenario)

    assert [r.location for r in engine.state.robots.values()] == list(scenario.robot_cells)
    assert [t.location for t in engine.state.tasks.values()] == list(scenario.task_cells)

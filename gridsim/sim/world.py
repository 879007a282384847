from __future__ import annotations

"""
File: gridsim/sim/world.py
Purpose: Deterministic scenario generation for robots and tasks on a grid.
Key responsibilities:
- Use a seeded RNG to choose robot and task placements.
- Compute a scenario hash for comparability across runs.
- Apply a generated scenario to an engine through its setup API.
"""

from dataclasses import dataclass
import hashlib
import json
import random

from gridsim.sim.engine import SimulationEngine
from gridsim.sim.entities import Coord
from gridsim.sim.grid import Grid


@dataclass(frozen=True)
class Scenario:
    """Seeded placements plus their hash."""
    seed: int
    robot_cells: tuple[Coord, ...]
    task_cells: tuple[Coord, ...]
    scenario_hash: str


def generate_scenario(grid: Grid, seed: int, robots: int, tasks: int) -> Scenario:
    """Pick distinct robot cells (walkable or charger) and distinct task cells deterministically."""
    if robots <= 0:
        raise ValueError("robots must be > 0")
    if tasks < 0:
        raise ValueError("tasks must be >= 0")

    passable = grid.passable_cells()
    if robots > len(passable):
        raise ValueError(f"grid has {len(passable)} free cells, cannot place {robots} robots")
    rng = random.Random(seed)
    robot_cells = rng.sample(passable, robots)

    taken = set(robot_cells)
    walkable = [cell for cell in passable if grid.is_walkable(cell) and cell not in taken]
    if tasks > len(walkable):
        raise ValueError(f"grid has {len(walkable)} free walkable cells, cannot place {tasks} tasks")
    task_cells = rng.sample(walkable, tasks)

    payload = {
        "seed": seed,
        "grid": grid.to_text(),
        "robots": [list(cell) for cell in robot_cells],
        "tasks": [list(cell) for cell in task_cells],
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    scenario_hash = hashlib.sha256(encoded).hexdigest()
    return Scenario(
        seed=seed,
        robot_cells=tuple(robot_cells),
        task_cells=tuple(task_cells),
        scenario_hash=scenario_hash,
    )


def apply_scenario(engine: SimulationEngine, scenario: Scenario) -> None:
    """Place the scenario's robots and tasks through the engine's setup API."""
    for cell in scenario.robot_cells:
        engine.add_robot(cell)
    for cell in scenario.task_cells:
        engine.add_task(cell)

from __future__ import annotations

"""
File: gridsim/sim/assignment.py
Purpose: Task assignment strategies (nearest and round-robin).
Key responsibilities:
- Feasibility predicate for a robot/task/path triple.
- Map idle robots to unassigned tasks and return assignment intents.
- Keep the round-robin pointer across ticks.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from gridsim.sim.entities import Coord, RobotStatus, RobotView, Strategy, TaskView
from gridsim.sim.grid import Grid
from gridsim.sim.pathfinding import find_path


@dataclass(frozen=True)
class Assignment:
    """Intent to send a robot to a task along a precomputed path."""
    robot_id: int
    task_id: int
    path: tuple[Coord, ...]


def is_robot_available_for_task(robot: RobotView, task: TaskView, path: Optional[Sequence[Coord]]) -> bool:
    """Robot is idle, the task is reachable, and the battery covers travel plus work."""
    if robot.status != RobotStatus.IDLE:
        return False
    if path is None:
        return False
    required = len(path) * robot.movement_cost_per_cell + task.battery_cost_to_perform
    return robot.battery >= required


def has_unaffordable_reachable_task(grid: Grid, robot: RobotView, tasks: Sequence[TaskView]) -> bool:
    """True if some task is reachable from the robot but costs more battery than it has."""
    for task in tasks:
        path = find_path(grid, robot.location, task.location)
        if path is None:
            continue
        if not is_robot_available_for_task(robot, task, path):
            return True
    return False


class _PathCache:
    """Per-call memo of robot -> task paths."""
    def __init__(self, grid: Grid) -> None:
        self.grid = grid
        self._paths: dict[tuple[Coord, Coord], Optional[list[Coord]]] = {}

    def get(self, start: Coord, end: Coord) -> Optional[list[Coord]]:
        key = (start, end)
        if key not in self._paths:
            self._paths[key] = find_path(self.grid, start, end)
        return self._paths[key]


class AssignmentPolicy:
    """Base strategy: receives read-only views and returns assignment intents."""
    strategy: Strategy

    def assign(
        self,
        grid: Grid,
        idle_robots: Sequence[RobotView],
        open_tasks: Sequence[TaskView],
    ) -> list[Assignment]:
        raise NotImplementedError


class NearestTaskPolicy(AssignmentPolicy):
    """Each idle robot (ascending id) takes the closest feasible task by path length."""
    strategy = Strategy.NEAREST

    def assign(
        self,
        grid: Grid,
        idle_robots: Sequence[RobotView],
        open_tasks: Sequence[TaskView],
    ) -> list[Assignment]:
        cache = _PathCache(grid)
        tasks = sorted(open_tasks, key=lambda t: t.id)
        taken: set[int] = set()
        assignments: list[Assignment] = []

        for robot in sorted(idle_robots, key=lambda r: r.id):
            best: Optional[tuple[int, int, list[Coord]]] = None
            for task in tasks:
                if task.id in taken:
                    continue
                path = cache.get(robot.location, task.location)
                if not is_robot_available_for_task(robot, task, path):
                    continue
                if best is None or (len(path), task.id) < (best[0], best[1]):
                    best = (len(path), task.id, path)
            if best is None:
                continue
            taken.add(best[1])
            assignments.append(Assignment(robot_id=robot.id, task_id=best[1], path=tuple(best[2])))
        return assignments


class RoundRobinPolicy(AssignmentPolicy):
    """Rotate through robots in placement order, offering the oldest reachable task.

    Each idle robot is one assignment opportunity. An opportunity walks the
    rotation from the pointer and stops at the first robot that can take a
    task; the pointer then moves just past that robot.
    """
    strategy = Strategy.ROUND_ROBIN

    def __init__(self, robot_order: Sequence[int]) -> None:
        self.robot_order = list(robot_order)
        self.pointer = 0

    def assign(
        self,
        grid: Grid,
        idle_robots: Sequence[RobotView],
        open_tasks: Sequence[TaskView],
    ) -> list[Assignment]:
        if not self.robot_order:
            return []
        cache = _PathCache(grid)
        idle = {robot.id: robot for robot in idle_robots}
        remaining = sorted(open_tasks, key=lambda t: t.id)
        assignments: list[Assignment] = []

        for _ in range(len(idle)):
            decision = self._next_opportunity(cache, idle, remaining)
            if decision is None:
                break
            assignments.append(decision)
            del idle[decision.robot_id]
            remaining = [task for task in remaining if task.id != decision.task_id]
        return assignments

    def _next_opportunity(
        self,
        cache: _PathCache,
        idle: dict[int, RobotView],
        remaining: Sequence[TaskView],
    ) -> Optional[Assignment]:
        count = len(self.robot_order)
        for step in range(count):
            idx = (self.pointer + step) % count
            robot = idle.get(self.robot_order[idx])
            if robot is None:
                continue
            for task in remaining:
                path = cache.get(robot.location, task.location)
                if is_robot_available_for_task(robot, task, path):
                    self.pointer = (idx + 1) % count
                    return Assignment(robot_id=robot.id, task_id=task.id, path=tuple(path))
        return None


def make_policy(strategy: Strategy, robot_order: Sequence[int]) -> AssignmentPolicy:
    """Build the policy object for a run's strategy."""
    if strategy == Strategy.NEAREST:
        return NearestTaskPolicy()
    if strategy == Strategy.ROUND_ROBIN:
        return RoundRobinPolicy(robot_order)
    raise ValueError(f"invalid strategy: {strategy}")

from __future__ import annotations

"""
File: gridsim/sim/entities.py
Purpose: Core dataclasses, status enums and transition tables for simulation state.
Key responsibilities:
- Robot and Task records with their placement-time values for reset.
- Closed status enumerations and the central transition checks.
- Read-only views handed to assignment policies.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from gridsim.sim.errors import InvalidStateTransition

if TYPE_CHECKING:
    from gridsim.sim.grid import Grid


Coord = tuple[int, int]


class CellType(str, Enum):
    WALKABLE = "walkable"
    WALL = "wall"
    CHARGING_STATION = "charging_station"
    EMPTY = "empty"


class RobotStatus(str, Enum):
    IDLE = "idle"
    EN_ROUTE_TO_TASK = "en_route_to_task"
    PERFORMING_TASK = "performing_task"
    EN_ROUTE_TO_CHARGER = "en_route_to_charger"
    CHARGING = "charging"


class TaskStatus(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class EngineStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class Strategy(str, Enum):
    NEAREST = "nearest"
    ROUND_ROBIN = "round_robin"


ROBOT_TRANSITIONS: dict[RobotStatus, frozenset[RobotStatus]] = {
    RobotStatus.IDLE: frozenset({RobotStatus.EN_ROUTE_TO_TASK, RobotStatus.EN_ROUTE_TO_CHARGER}),
    # en_route_to_task -> idle: the task was handed to an idle robot blocking the only route.
    RobotStatus.EN_ROUTE_TO_TASK: frozenset({RobotStatus.PERFORMING_TASK, RobotStatus.IDLE}),
    RobotStatus.PERFORMING_TASK: frozenset({RobotStatus.IDLE}),
    RobotStatus.EN_ROUTE_TO_CHARGER: frozenset({RobotStatus.CHARGING}),
    RobotStatus.CHARGING: frozenset({RobotStatus.IDLE}),
}

TASK_ORDER: dict[TaskStatus, int] = {
    TaskStatus.UNASSIGNED: 0,
    TaskStatus.ASSIGNED: 1,
    TaskStatus.IN_PROGRESS: 2,
    TaskStatus.COMPLETED: 3,
}


def check_robot_transition(current: RobotStatus, target: RobotStatus) -> None:
    """Raise InvalidStateTransition unless the robot table allows current -> target."""
    if target not in ROBOT_TRANSITIONS[current]:
        raise InvalidStateTransition(f"robot transition {current.value} -> {target.value} not allowed")


def check_task_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Task status only ever advances one step at a time."""
    if TASK_ORDER[target] != TASK_ORDER[current] + 1:
        raise InvalidStateTransition(f"task transition {current.value} -> {target.value} not allowed")


@dataclass(frozen=True)
class Cell:
    type: CellType
    coordinates: Coord

    @property
    def passable(self) -> bool:
        return self.type in (CellType.WALKABLE, CellType.CHARGING_STATION)


@dataclass(frozen=True)
class RobotView:
    """Read-only robot view used by assignment policies."""
    id: int
    location: Coord
    battery: int
    max_battery: int
    movement_cost_per_cell: int
    status: RobotStatus


@dataclass(frozen=True)
class TaskView:
    """Read-only task view used by assignment policies."""
    id: int
    location: Coord
    battery_cost_to_perform: int


@dataclass
class Robot:
    """Robot state tracked by the simulation engine."""
    id: int
    location: Coord
    max_battery: int
    movement_cost_per_cell: int
    battery: int
    icon_type: str = "default"
    status: RobotStatus = RobotStatus.IDLE
    assigned_task_id: Optional[int] = None
    current_target: Optional[Coord] = None
    current_path: list[Coord] = field(default_factory=list)
    consecutive_wait_steps: int = 0
    cells_moved: int = 0
    wait_ticks_total: int = 0
    start_location: Optional[Coord] = None

    def __post_init__(self) -> None:
        if self.start_location is None:
            self.start_location = self.location

    def transition(self, target: RobotStatus) -> None:
        check_robot_transition(self.status, target)
        self.status = target

    def battery_fraction(self) -> float:
        if self.max_battery <= 0:
            return 0.0
        return self.battery / self.max_battery

    def drain(self, amount: int) -> None:
        self.battery = max(0, self.battery - amount)

    def charge(self, amount: int) -> None:
        self.battery = min(self.max_battery, self.battery + amount)

    def clear_route(self) -> None:
        self.current_target = None
        self.current_path = []
        self.consecutive_wait_steps = 0

    def view(self) -> RobotView:
        return RobotView(
            id=self.id,
            location=self.location,
            battery=self.battery,
            max_battery=self.max_battery,
            movement_cost_per_cell=self.movement_cost_per_cell,
            status=self.status,
        )

    def restore(self) -> None:
        """Return to placement-time values: full battery, idle, no route."""
        self.location = self.start_location
        self.battery = self.max_battery
        self.status = RobotStatus.IDLE
        self.assigned_task_id = None
        self.clear_route()
        self.cells_moved = 0
        self.wait_ticks_total = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "x": self.location[0],
            "y": self.location[1],
            "icon_type": self.icon_type,
            "battery": self.battery,
            "max_battery": self.max_battery,
            "movement_cost_per_cell": self.movement_cost_per_cell,
            "status": self.status.value,
            "assigned_task_id": self.assigned_task_id,
            "current_target": list(self.current_target) if self.current_target is not None else None,
            "current_path": [list(step) for step in self.current_path],
            "consecutive_wait_steps": self.consecutive_wait_steps,
        }


@dataclass
class Task:
    """Task definition and lifecycle tracking for the simulation."""
    id: int
    location: Coord
    work_duration: int
    battery_cost_to_perform: int
    status: TaskStatus = TaskStatus.UNASSIGNED
    work_remaining: int = -1
    assigned_robot_id: Optional[int] = None
    assigned_tick: Optional[int] = None
    started_tick: Optional[int] = None
    completed_tick: Optional[int] = None

    def __post_init__(self) -> None:
        if self.work_remaining < 0:
            self.work_remaining = self.work_duration

    def advance(self, target: TaskStatus) -> None:
        check_task_transition(self.status, target)
        self.status = target

    def view(self) -> TaskView:
        return TaskView(id=self.id, location=self.location, battery_cost_to_perform=self.battery_cost_to_perform)

    def restore(self) -> None:
        self.status = TaskStatus.UNASSIGNED
        self.work_remaining = self.work_duration
        self.assigned_robot_id = None
        self.assigned_tick = None
        self.started_tick = None
        self.completed_tick = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "x": self.location[0],
            "y": self.location[1],
            "status": self.status.value,
            "work_duration": self.work_duration,
            "work_remaining": self.work_remaining,
            "battery_cost_to_perform": self.battery_cost_to_perform,
            "assigned_robot_id": self.assigned_robot_id,
        }


@dataclass
class SimulationState:
    """Container for all simulation entities and counters of one run."""
    grid: Optional[Grid] = None
    grid_id: Optional[str] = None
    strategy: Optional[Strategy] = None
    robots: dict[int, Robot] = field(default_factory=dict)
    tasks: dict[int, Task] = field(default_factory=dict)
    clock: int = 0
    status: EngineStatus = EngineStatus.IDLE
    speed: float = 1.0
    total_recharges: int = 0
    unassignable_task_ids: set[int] = field(default_factory=set)
    metrics: Optional[dict[str, Any]] = None

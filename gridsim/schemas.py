from __future__ import annotations

"""
File: gridsim/schemas.py
Purpose: Pydantic models for the setup/control API contracts.
Key responsibilities:
- Validate placement, strategy, speed and scenario payloads.
- Define robot, task, snapshot and metrics response shapes.
Key entrypoints:
- AddRobotRequest, AddTaskRequest, SnapshotResponse, MetricsResponse
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional


RobotStatus = Literal["idle", "en_route_to_task", "performing_task", "en_route_to_charger", "charging"]
TaskStatus = Literal["unassigned", "assigned", "in_progress", "completed"]
EngineStatus = Literal["idle", "running", "paused", "ended"]
StrategyName = Literal["nearest", "round_robin"]


class LoadGridRequest(BaseModel):
    """Request body for POST /grid."""
    grid_id: str = Field(min_length=1)


class GridLayoutRequest(BaseModel):
    """Inline character-matrix grid for POST /grid/layout."""
    rows: list[str] = Field(min_length=1)
    name: str = "inline"


class StoredGrid(BaseModel):
    """One entry of GET /grids."""
    id: str
    name: str


class GridResponse(BaseModel):
    grid_id: Optional[str] = None
    name: str
    width: int
    height: int
    charging_stations: list[tuple[int, int]]


class AddRobotRequest(BaseModel):
    """Request body for POST /robots."""
    x: int
    y: int
    icon_type: str = "default"
    max_battery: Optional[int] = Field(default=None, gt=0)
    movement_cost_per_cell: Optional[int] = Field(default=None, ge=0)


class AddTaskRequest(BaseModel):
    """Request body for POST /tasks."""
    x: int
    y: int
    work_duration: Optional[int] = Field(default=None, ge=0)
    battery_cost_to_perform: Optional[int] = Field(default=None, ge=0)


class StrategyRequest(BaseModel):
    strategy: StrategyName


class SpeedRequest(BaseModel):
    factor: float = Field(gt=0)


class ScenarioRequest(BaseModel):
    """Seeded random placement of robots and tasks on the loaded grid."""
    seed: int = 42
    robots: int = Field(gt=0)
    tasks: int = Field(ge=0)


class ScenarioResponse(BaseModel):
    seed: int
    scenario_hash: str
    robots: list[tuple[int, int]]
    tasks: list[tuple[int, int]]


class Robot(BaseModel):
    """Robot state as published in snapshots."""
    id: int
    x: int
    y: int
    icon_type: str
    battery: int
    max_battery: int
    movement_cost_per_cell: int
    status: RobotStatus
    assigned_task_id: Optional[int] = None
    current_target: Optional[tuple[int, int]] = None
    current_path: list[tuple[int, int]] = Field(default_factory=list)
    consecutive_wait_steps: int = 0


class Task(BaseModel):
    """Task state as published in snapshots."""
    id: int
    x: int
    y: int
    status: TaskStatus
    work_duration: int
    work_remaining: int
    battery_cost_to_perform: int
    assigned_robot_id: Optional[int] = None


class GridSummary(BaseModel):
    name: str
    width: int
    height: int


class SnapshotResponse(BaseModel):
    """Settled post-tick view of the run."""
    clock: int
    status: EngineStatus
    strategy: Optional[StrategyName] = None
    speed: float
    grid_id: Optional[str] = None
    grid: Optional[GridSummary] = None
    robots: list[Robot]
    tasks: list[Task]
    unassignable_task_ids: list[int]


class Metrics(BaseModel):
    total_time: int
    total_recharges: int
    completed_tasks: int
    unassignable_tasks: int
    total_tasks: int
    robot_count: int
    total_distance: int
    total_wait_ticks: int


class RunRecord(BaseModel):
    """Record handed to the persistence sink after a run ends."""
    grid_id: Optional[str] = None
    strategy: StrategyName
    total_time: int
    total_recharges: int
    robot_count: int
    task_count: int
    timestamp: str


class MetricsResponse(BaseModel):
    status: EngineStatus
    metrics: Optional[Metrics] = None
    record: Optional[RunRecord] = None

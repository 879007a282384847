from __future__ import annotations

"""
File: gridsim/sim/engine.py
Purpose: Tick-based simulation engine for robots and tasks on a grid.
Key responsibilities:
- Setup API: load grid, place robots/tasks, choose the strategy.
- Lifecycle: start/pause/resume/reset/set_speed.
- One tick: movement -> task work -> charging -> assignment -> termination.
- Publish a settled snapshot and final metrics.
"""

import logging
from typing import Any, Iterable, Optional

from gridsim.settings import settings
from gridsim.sim.assignment import (
    Assignment,
    AssignmentPolicy,
    has_unaffordable_reachable_task,
    is_robot_available_for_task,
    make_policy,
)
from gridsim.sim.entities import (
    Coord,
    EngineStatus,
    Robot,
    RobotStatus,
    SimulationState,
    Strategy,
    Task,
    TaskStatus,
)
from gridsim.sim.errors import (
    EntityNotFound,
    EntityValidationError,
    InvalidPlacement,
    InvalidStateTransition,
)
from gridsim.sim.grid import Grid
from gridsim.sim.metrics import build_run_record, compute_metrics
from gridsim.sim.pathfinding import closest_reachable, find_path, manhattan

logger = logging.getLogger("gridsim.engine")

_CHARGER_BOUND = (RobotStatus.EN_ROUTE_TO_CHARGER, RobotStatus.CHARGING)


class SimulationEngine:
    """Simulation engine that owns one run's entities and advances them per tick.

    The engine holds no timer: an external driver calls tick() while the
    status is RUNNING. Robots are always processed in ascending id order, so
    when two robots contend for the same cell the lower id moves and the
    higher id waits.
    """
    def __init__(
        self,
        grid: Optional[Grid] = None,
        grid_id: Optional[str] = None,
        strategy: Optional[Strategy | str] = None,
        charge_rate: int = settings.charge_rate,
        low_battery_fraction: float = settings.low_battery_fraction,
        deadlock_wait_threshold: int = settings.deadlock_wait_threshold,
        default_max_battery: int = settings.default_max_battery,
        movement_cost_per_cell: int = settings.movement_cost_per_cell,
        task_work_duration: int = settings.task_work_duration,
        task_battery_cost: int = settings.task_battery_cost,
    ) -> None:
        """Initialize the engine with simulation parameters."""
        self.state = SimulationState(
            grid=grid,
            grid_id=grid_id,
            strategy=Strategy(strategy) if strategy is not None else None,
        )
        self.charge_rate = charge_rate
        self.low_battery_fraction = low_battery_fraction
        self.deadlock_wait_threshold = deadlock_wait_threshold
        self.default_max_battery = default_max_battery
        self.movement_cost_per_cell = movement_cost_per_cell
        self.task_work_duration = task_work_duration
        self.task_battery_cost = task_battery_cost

        self._policy: Optional[AssignmentPolicy] = None
        self._next_robot_id = 1
        self._next_task_id = 1

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @property
    def status(self) -> EngineStatus:
        return self.state.status

    def _require_setup_phase(self, action: str) -> None:
        if self.state.status != EngineStatus.IDLE:
            raise InvalidStateTransition(f"{action} is only allowed before start (status={self.state.status.value})")

    def load_grid(self, grid: Grid, grid_id: Optional[str] = None) -> None:
        """Install the grid for the run; existing placements are dropped."""
        self._require_setup_phase("load_grid")
        self.state.grid = grid
        self.state.grid_id = grid_id
        self.state.robots.clear()
        self.state.tasks.clear()
        self.state.unassignable_task_ids.clear()
        self._next_robot_id = 1
        self._next_task_id = 1
        logger.info("grid loaded grid_id=%s name=%s size=%sx%s", grid_id, grid.name, grid.width, grid.height)

    def _placement_cell(self, location: Iterable[int]) -> Coord:
        grid = self.state.grid
        x, y = location
        loc = (int(x), int(y))
        if grid is None:
            raise InvalidPlacement("no grid loaded", loc)
        if not grid.in_bounds(loc):
            raise InvalidPlacement("location is out of bounds", loc)
        return loc

    def add_robot(
        self,
        location: Iterable[int],
        icon_type: str = "default",
        max_battery: Optional[int] = None,
        movement_cost_per_cell: Optional[int] = None,
    ) -> Robot:
        """Place a robot on a walkable or charging-station cell."""
        self._require_setup_phase("add_robot")
        loc = self._placement_cell(location)
        if not self.state.grid.is_passable(loc):
            raise InvalidPlacement("robots must be placed on a walkable or charging-station cell", loc)
        for other in self.state.robots.values():
            if other.location == loc:
                raise InvalidPlacement(f"cell already occupied by robot {other.id}", loc)

        capacity = self.default_max_battery if max_battery is None else int(max_battery)
        cost = self.movement_cost_per_cell if movement_cost_per_cell is None else int(movement_cost_per_cell)
        if capacity <= 0:
            raise ValueError("max_battery must be > 0")
        if cost < 0:
            raise ValueError("movement_cost_per_cell must be >= 0")

        robot = Robot(
            id=self._next_robot_id,
            location=loc,
            max_battery=capacity,
            movement_cost_per_cell=cost,
            battery=capacity,
            icon_type=icon_type,
        )
        self._next_robot_id += 1
        self.state.robots[robot.id] = robot
        logger.info("robot added robot_id=%s x=%s y=%s icon=%s", robot.id, loc[0], loc[1], icon_type)
        return robot

    def add_task(
        self,
        location: Iterable[int],
        work_duration: Optional[int] = None,
        battery_cost_to_perform: Optional[int] = None,
    ) -> Task:
        """Place a task on a walkable cell."""
        self._require_setup_phase("add_task")
        loc = self._placement_cell(location)
        if not self.state.grid.is_walkable(loc):
            raise InvalidPlacement("tasks must be placed on a walkable cell", loc)

        duration = self.task_work_duration if work_duration is None else int(work_duration)
        cost = self.task_battery_cost if battery_cost_to_perform is None else int(battery_cost_to_perform)
        if duration < 0:
            raise ValueError("work_duration must be >= 0")
        if cost < 0:
            raise ValueError("battery_cost_to_perform must be >= 0")

        task = Task(id=self._next_task_id, location=loc, work_duration=duration, battery_cost_to_perform=cost)
        self._next_task_id += 1
        self.state.tasks[task.id] = task
        logger.info("task added task_id=%s x=%s y=%s work=%s", task.id, loc[0], loc[1], duration)
        return task

    def set_strategy(self, strategy: Strategy | str) -> None:
        self._require_setup_phase("set_strategy")
        self.state.strategy = Strategy(strategy)
        logger.info("strategy set strategy=%s", self.state.strategy.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Validate setup, seed initial assignments and begin running."""
        if self.state.status != EngineStatus.IDLE:
            raise InvalidStateTransition(f"start requires an idle engine (status={self.state.status.value})")
        if self.state.grid is None:
            raise InvalidStateTransition("cannot start: no grid loaded")
        if not self.state.robots:
            raise InvalidStateTransition("cannot start: no robots placed")
        if self.state.strategy is None:
            raise InvalidStateTransition("cannot start: no strategy chosen")

        self.state.clock = 0
        self.state.metrics = None
        self._policy = make_policy(self.state.strategy, sorted(self.state.robots))
        self._flag_unreachable_tasks()
        self.state.status = EngineStatus.RUNNING
        logger.info(
            "sim started grid_id=%s strategy=%s robots=%s tasks=%s",
            self.state.grid_id,
            self.state.strategy.value,
            len(self.state.robots),
            len(self.state.tasks),
        )
        self._assignment_phase()
        self._termination_check()

    def pause(self) -> None:
        if self.state.status != EngineStatus.RUNNING:
            raise InvalidStateTransition(f"pause requires a running engine (status={self.state.status.value})")
        self.state.status = EngineStatus.PAUSED
        logger.info("sim paused clock=%s", self.state.clock)

    def resume(self) -> None:
        if self.state.status != EngineStatus.PAUSED:
            raise InvalidStateTransition(f"resume requires a paused engine (status={self.state.status.value})")
        self.state.status = EngineStatus.RUNNING
        logger.info("sim resumed clock=%s", self.state.clock)

    def reset(self) -> None:
        """Restore placement-time values; placements and strategy are kept."""
        for robot in self.state.robots.values():
            robot.restore()
        for task in self.state.tasks.values():
            task.restore()
        self.state.clock = 0
        self.state.total_recharges = 0
        self.state.unassignable_task_ids.clear()
        self.state.metrics = None
        self.state.status = EngineStatus.IDLE
        self._policy = None
        logger.info("sim reset robots=%s tasks=%s", len(self.state.robots), len(self.state.tasks))

    def set_speed(self, factor: float) -> None:
        """Change the external tick cadence multiplier; tick semantics are unaffected."""
        if factor <= 0:
            raise ValueError("speed factor must be > 0")
        self.state.speed = float(factor)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> dict[str, Any]:
        """Advance the simulation by one tick and return the settled snapshot."""
        if self.state.status != EngineStatus.RUNNING:
            raise InvalidStateTransition(f"tick requires a running engine (status={self.state.status.value})")
        self.state.clock += 1
        self._movement_phase()
        self._task_work_phase()
        self._charging_phase()
        self._assignment_phase()
        self._termination_check()

        violations = self.invariant_violations()
        for violation in violations:
            logger.error("invariant violated clock=%s %s", self.state.clock, violation)
        return self.get_snapshot()

    def _movement_phase(self) -> None:
        occupied = {robot.location: robot.id for robot in self.state.robots.values()}
        for robot in self._robots_in_order():
            try:
                self._move_robot(robot, occupied)
                self._check_arrival(robot)
            except EntityValidationError as exc:
                logger.warning("skipping robot in movement phase robot_id=%s reason=%s", robot.id, exc.reason)

    def _move_robot(self, robot: Robot, occupied: dict[Coord, int]) -> None:
        if not robot.current_path:
            return
        next_cell = robot.current_path[0]
        if not self.state.grid.is_passable(next_cell) or manhattan(robot.location, next_cell) != 1:
            raise EntityValidationError(
                f"next step ({next_cell[0]},{next_cell[1]}) is not an adjacent passable cell",
                entity_id=robot.id,
            )
        if robot.current_target is None:
            raise EntityValidationError("robot has a path but no target", entity_id=robot.id)

        if next_cell not in occupied:
            self._step(robot, occupied)
            return

        robot.consecutive_wait_steps += 1
        robot.wait_ticks_total += 1
        if robot.consecutive_wait_steps > self.deadlock_wait_threshold:
            self._reroute(robot, occupied, blocked_cell=next_cell)

    def _step(self, robot: Robot, occupied: dict[Coord, int]) -> None:
        next_cell = robot.current_path.pop(0)
        del occupied[robot.location]
        occupied[next_cell] = robot.id
        robot.location = next_cell
        robot.drain(robot.movement_cost_per_cell)
        robot.cells_moved += 1
        robot.consecutive_wait_steps = 0

    def _reroute(self, robot: Robot, occupied: dict[Coord, int], blocked_cell: Coord) -> None:
        """Recompute the path around the observed occupant after too many waits.

        When a detour exists its first step is taken this tick if free, so the
        robot that reroutes first clears the way for the one it was facing.
        """
        robot.consecutive_wait_steps = 0
        detour = find_path(self.state.grid, robot.location, robot.current_target, blocked={blocked_cell})
        if detour is None:
            self._clear_blockage(robot, occupied, blocked_cell)
            return
        robot.current_path = detour
        logger.info("robot rerouted robot_id=%s path_len=%s", robot.id, len(detour))
        if detour and detour[0] not in occupied:
            self._step(robot, occupied)

    def _clear_blockage(self, robot: Robot, occupied: dict[Coord, int], blocked_cell: Coord) -> None:
        """Resolve a wait with no detour.

        A robot bound for an occupied charger picks another free station. An
        idle occupant either takes over the waiting robot's task or is nudged
        to a free neighbour. Moving occupants are left alone; the robot keeps
        its path and waits for them.
        """
        occupant = self._robot(occupied[blocked_cell])
        if (
            robot.status == RobotStatus.EN_ROUTE_TO_CHARGER
            and blocked_cell == robot.current_target
            and not occupant.current_path
            and self._retarget_charger(robot)
        ):
            if robot.current_path and robot.current_path[0] not in occupied:
                self._step(robot, occupied)
            return
        if occupant.status != RobotStatus.IDLE:
            logger.info(
                "no detour around occupant robot_id=%s blocked=(%s,%s), keeping path",
                robot.id,
                blocked_cell[0],
                blocked_cell[1],
            )
            return
        if robot.status == RobotStatus.EN_ROUTE_TO_TASK and self._hand_over_task(robot, occupant):
            return
        if self._nudge(occupant, robot, occupied) and robot.current_path[0] not in occupied:
            self._step(robot, occupied)

    def _hand_over_task(self, robot: Robot, occupant: Robot) -> bool:
        """Give the robot's task to the idle occupant if it can do it without backing through the robot."""
        task = self._task(robot.assigned_task_id)
        path = find_path(self.state.grid, occupant.location, task.location)
        if path is None or robot.location in path:
            return False
        if not is_robot_available_for_task(occupant.view(), task.view(), path):
            return False

        robot.transition(RobotStatus.IDLE)
        robot.assigned_task_id = None
        robot.clear_route()
        occupant.transition(RobotStatus.EN_ROUTE_TO_TASK)
        occupant.assigned_task_id = task.id
        occupant.current_target = task.location
        occupant.current_path = list(path)
        occupant.consecutive_wait_steps = 0
        task.assigned_robot_id = occupant.id
        task.assigned_tick = self.state.clock
        logger.info(
            "task handed over task_id=%s from_robot_id=%s to_robot_id=%s clock=%s",
            task.id,
            robot.id,
            occupant.id,
            self.state.clock,
        )
        return True

    def _nudge(self, occupant: Robot, robot: Robot, occupied: dict[Coord, int]) -> bool:
        """Move an idle occupant one cell, preferring cells off the waiting robot's route."""
        route = set(robot.current_path)
        free = [
            cell
            for cell in self.state.grid.neighbors(occupant.location)
            if cell not in occupied and cell != robot.current_target
        ]
        if not free:
            logger.info("idle occupant cannot move robot_id=%s blocking_robot_id=%s", robot.id, occupant.id)
            return False
        cell = min(
            free,
            key=lambda c: (c in route, self.state.grid.is_charging_station(c), free.index(c)),
        )
        del occupied[occupant.location]
        occupied[cell] = occupant.id
        occupant.location = cell
        occupant.drain(occupant.movement_cost_per_cell)
        occupant.cells_moved += 1
        logger.info(
            "idle robot nudged robot_id=%s to=(%s,%s) for_robot_id=%s",
            occupant.id,
            cell[0],
            cell[1],
            robot.id,
        )
        return True

    def _check_arrival(self, robot: Robot) -> None:
        if robot.status not in (RobotStatus.EN_ROUTE_TO_TASK, RobotStatus.EN_ROUTE_TO_CHARGER):
            return
        if robot.current_path:
            return
        if robot.location != robot.current_target:
            raise EntityValidationError("route exhausted away from target", entity_id=robot.id)

        if robot.status == RobotStatus.EN_ROUTE_TO_TASK:
            self._begin_task(robot)
        else:
            robot.transition(RobotStatus.CHARGING)
            logger.debug("robot charging robot_id=%s battery=%s", robot.id, robot.battery)

    def _begin_task(self, robot: Robot) -> None:
        task = self._task(robot.assigned_task_id)
        robot.transition(RobotStatus.PERFORMING_TASK)
        robot.drain(task.battery_cost_to_perform)
        task.advance(TaskStatus.IN_PROGRESS)
        task.started_tick = self.state.clock
        logger.debug("task started task_id=%s robot_id=%s clock=%s", task.id, robot.id, self.state.clock)

    def _task_work_phase(self) -> None:
        for task in self._tasks_in_order():
            if task.status != TaskStatus.IN_PROGRESS:
                continue
            # Work starts on the tick after arrival.
            if task.started_tick is not None and task.started_tick >= self.state.clock:
                continue
            task.work_remaining = max(0, task.work_remaining - 1)
            if task.work_remaining == 0:
                self._complete_task(task)

    def _complete_task(self, task: Task) -> None:
        robot = self._robot(task.assigned_robot_id)
        task.advance(TaskStatus.COMPLETED)
        task.completed_tick = self.state.clock
        robot.transition(RobotStatus.IDLE)
        robot.assigned_task_id = None
        robot.clear_route()
        logger.info("task completed task_id=%s robot_id=%s clock=%s", task.id, robot.id, self.state.clock)

    def _charging_phase(self) -> None:
        for robot in self._robots_in_order():
            if robot.status != RobotStatus.CHARGING:
                continue
            # Unlike task work, charge is added on the arrival tick.
            robot.charge(self.charge_rate)
            if robot.battery >= robot.max_battery:
                robot.transition(RobotStatus.IDLE)
                robot.clear_route()
                logger.debug("robot fully charged robot_id=%s clock=%s", robot.id, self.state.clock)

    def _assignment_phase(self) -> None:
        idle = [r for r in self._robots_in_order() if r.status == RobotStatus.IDLE]
        if not idle:
            return

        for robot in idle:
            if robot.battery_fraction() < self.low_battery_fraction:
                self._send_to_charger(robot)

        candidates = [r for r in idle if r.status == RobotStatus.IDLE]
        open_tasks = self._open_tasks()
        if candidates and open_tasks:
            decisions = self._policy.assign(
                self.state.grid,
                [r.view() for r in candidates],
                [t.view() for t in open_tasks],
            )
            for decision in decisions:
                self._apply_assignment(decision)

        open_tasks = self._open_tasks()
        if not open_tasks:
            return
        task_views = [t.view() for t in open_tasks]
        for robot in candidates:
            if robot.status != RobotStatus.IDLE or robot.battery >= robot.max_battery:
                continue
            if has_unaffordable_reachable_task(self.state.grid, robot.view(), task_views):
                self._send_to_charger(robot)

    def _free_stations(self, robot: Robot) -> list[Coord]:
        """Stations not reserved by another charger-bound robot and not held by a stationary one."""
        taken: set[Coord] = set()
        for other in self.state.robots.values():
            if other.id == robot.id:
                continue
            if other.status in _CHARGER_BOUND:
                taken.add(other.current_target)
            if not other.current_path and self.state.grid.is_charging_station(other.location):
                taken.add(other.location)
        return [c for c in self.state.grid.charging_stations if c not in taken]

    def _retarget_charger(self, robot: Robot) -> bool:
        """Send a charger-bound robot to another free station; the recharge is not counted twice."""
        stations = [c for c in self._free_stations(robot) if c != robot.current_target]
        choice = closest_reachable(self.state.grid, robot.location, stations)
        if choice is None:
            return False
        station, path = choice
        robot.current_target = station
        robot.current_path = list(path)
        logger.info(
            "robot retargeted charger robot_id=%s station=(%s,%s) path_len=%s",
            robot.id,
            station[0],
            station[1],
            len(path),
        )
        return True

    def _send_to_charger(self, robot: Robot) -> bool:
        """Route an idle robot to the closest free reachable charging station."""
        choice = closest_reachable(self.state.grid, robot.location, self._free_stations(robot))
        if choice is None:
            logger.debug("no reachable charging station robot_id=%s battery=%s", robot.id, robot.battery)
            return False
        station, path = choice
        robot.transition(RobotStatus.EN_ROUTE_TO_CHARGER)
        robot.current_target = station
        robot.current_path = list(path)
        robot.consecutive_wait_steps = 0
        self.state.total_recharges += 1
        logger.info(
            "robot seeking charger robot_id=%s battery=%s station=(%s,%s) path_len=%s",
            robot.id,
            robot.battery,
            station[0],
            station[1],
            len(path),
        )
        return True

    def _apply_assignment(self, decision: Assignment) -> None:
        """Apply a policy decision if the robot/task are still eligible."""
        robot = self._robot(decision.robot_id)
        task = self._task(decision.task_id)
        if robot.status != RobotStatus.IDLE or task.status != TaskStatus.UNASSIGNED:
            logger.warning(
                "dropping stale assignment robot_id=%s task_id=%s robot_status=%s task_status=%s",
                robot.id,
                task.id,
                robot.status.value,
                task.status.value,
            )
            return
        robot.transition(RobotStatus.EN_ROUTE_TO_TASK)
        robot.assigned_task_id = task.id
        robot.current_target = task.location
        robot.current_path = list(decision.path)
        robot.consecutive_wait_steps = 0
        task.advance(TaskStatus.ASSIGNED)
        task.assigned_robot_id = robot.id
        task.assigned_tick = self.state.clock
        logger.info(
            "task assigned strategy=%s task_id=%s robot_id=%s path_len=%s clock=%s",
            self.state.strategy.value,
            task.id,
            robot.id,
            len(decision.path),
            self.state.clock,
        )

    def _flag_unreachable_tasks(self) -> None:
        """Flag tasks no robot can reach; the grid is fixed so this holds for the run."""
        for task in self._tasks_in_order():
            if task.status != TaskStatus.UNASSIGNED:
                continue
            reachable = any(
                find_path(self.state.grid, robot.location, task.location) is not None
                for robot in self.state.robots.values()
            )
            if not reachable:
                self.state.unassignable_task_ids.add(task.id)
                logger.warning("task unreachable from every robot task_id=%s, flagged unassignable", task.id)

    def _termination_check(self) -> None:
        done = all(
            task.status == TaskStatus.COMPLETED or task.id in self.state.unassignable_task_ids
            for task in self.state.tasks.values()
        )
        if not done:
            return
        self.state.status = EngineStatus.ENDED
        self.state.metrics = compute_metrics(self.state)
        logger.info("run ended clock=%s metrics=%s", self.state.clock, self.state.metrics)

    # ------------------------------------------------------------------
    # Lookups and views
    # ------------------------------------------------------------------

    def _robots_in_order(self) -> list[Robot]:
        return [self.state.robots[robot_id] for robot_id in sorted(self.state.robots)]

    def _tasks_in_order(self) -> list[Task]:
        return [self.state.tasks[task_id] for task_id in sorted(self.state.tasks)]

    def _open_tasks(self) -> list[Task]:
        return [
            task
            for task in self._tasks_in_order()
            if task.status == TaskStatus.UNASSIGNED and task.id not in self.state.unassignable_task_ids
        ]

    def _robot(self, robot_id: Optional[int]) -> Robot:
        robot = self.state.robots.get(robot_id) if robot_id is not None else None
        if robot is None:
            raise EntityNotFound(f"robot {robot_id} does not exist")
        return robot

    def _task(self, task_id: Optional[int]) -> Task:
        task = self.state.tasks.get(task_id) if task_id is not None else None
        if task is None:
            raise EntityNotFound(f"task {task_id} does not exist")
        return task

    def get_robot(self, robot_id: int) -> Robot:
        return self._robot(robot_id)

    def get_task(self, task_id: int) -> Task:
        return self._task(task_id)

    def get_snapshot(self) -> dict[str, Any]:
        """Return a serializable snapshot of the settled state."""
        grid = self.state.grid
        return {
            "clock": self.state.clock,
            "status": self.state.status.value,
            "strategy": self.state.strategy.value if self.state.strategy is not None else None,
            "speed": self.state.speed,
            "grid_id": self.state.grid_id,
            "grid": {"name": grid.name, "width": grid.width, "height": grid.height} if grid is not None else None,
            "robots": [robot.to_dict() for robot in self._robots_in_order()],
            "tasks": [task.to_dict() for task in self._tasks_in_order()],
            "unassignable_task_ids": sorted(self.state.unassignable_task_ids),
        }

    def get_metrics(self) -> Optional[dict[str, Any]]:
        """Final metrics once the run has ended, else None."""
        if self.state.metrics is None:
            return None
        return dict(self.state.metrics)

    def run_record(self) -> dict[str, Any]:
        """Record for the persistence sink; only available after the run ends."""
        if self.state.status != EngineStatus.ENDED or self.state.metrics is None:
            raise InvalidStateTransition("run record is only available after the run has ended")
        return build_run_record(self.state, self.state.metrics)

    def invariant_violations(self) -> list[str]:
        """Check entity invariants against the current state; empty when consistent."""
        grid = self.state.grid
        problems: list[str] = []
        seen: dict[Coord, int] = {}
        for robot in self._robots_in_order():
            if grid is not None and not grid.is_passable(robot.location):
                problems.append(f"robot {robot.id} on impassable cell {robot.location}")
            if robot.location in seen:
                problems.append(f"robots {seen[robot.location]} and {robot.id} share cell {robot.location}")
            seen[robot.location] = robot.id
            if not 0 <= robot.battery <= robot.max_battery:
                problems.append(f"robot {robot.id} battery {robot.battery} outside [0,{robot.max_battery}]")
            if robot.assigned_task_id is not None:
                task = self.state.tasks.get(robot.assigned_task_id)
                if task is None or task.status not in (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS):
                    problems.append(f"robot {robot.id} assigned to inactive task {robot.assigned_task_id}")
                elif task.assigned_robot_id != robot.id:
                    problems.append(f"task {task.id} does not point back at robot {robot.id}")
            if robot.current_path:
                previous = robot.location
                for step in robot.current_path:
                    if manhattan(previous, step) != 1 or (grid is not None and not grid.is_passable(step)):
                        problems.append(f"robot {robot.id} path is not contiguous at {step}")
                        break
                    previous = step
                if robot.current_path[-1] != robot.current_target:
                    problems.append(f"robot {robot.id} path does not end at its target")
        return problems

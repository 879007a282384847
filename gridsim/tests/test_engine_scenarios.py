from gridsim.sim.engine import SimulationEngine
from gridsim.sim.entities import TASK_ORDER, EngineStatus, RobotStatus, TaskStatus
from gridsim.sim.grid import Grid
from gridsim.sim.world import apply_scenario, generate_scenario


OPEN_5X5 = [".....", ".....", ".....", ".....", "....."]


def _engine(rows, strategy="nearest", **overrides):
    params = dict(
        charge_rate=10,
        low_battery_fraction=0.2,
        deadlock_wait_threshold=3,
        default_max_battery=100,
        movement_cost_per_cell=1,
        task_work_duration=3,
        task_battery_cost=5,
    )
    params.update(overrides)
    engine = SimulationEngine(strategy=strategy, **params)
    engine.load_grid(Grid.from_rows(rows), grid_id="test")
    return engine


def _run(engine, limit=1000):
    ticks = 0
    while engine.status == EngineStatus.RUNNING and ticks < limit:
        engine.tick()
        ticks += 1
    return ticks


def test_single_robot_open_grid_takes_eleven_ticks():
    engine = _engine(OPEN_5X5)
    robot = engine.add_robot((0, 0))
    task = engine.add_task((4, 4))

    engine.start()
    assert robot.status == RobotStatus.EN_ROUTE_TO_TASK
    assert task.status == TaskStatus.ASSIGNED
    assert len(robot.current_path) == 8

    for _ in range(8):
        engine.tick()
    assert engine.state.clock == 8
    assert robot.location == (4, 4)
    assert robot.status == RobotStatus.PERFORMING_TASK
    assert task.status == TaskStatus.IN_PROGRESS

    _run(engine)
    assert engine.status == EngineStatus.ENDED
    assert task.status == TaskStatus.COMPLETED
    assert robot.status == RobotStatus.IDLE
    assert robot.battery == 100 - 8 - 5
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 11
    assert metrics["total_recharges"] == 0
    assert metrics["total_distance"] == 8


def test_wall_column_detour_adds_exact_cost():
    engine = _engine(["..#..", "..#..", "..#..", "..#..", "....."])
    robot = engine.add_robot((0, 0))
    engine.add_task((4, 0))

    engine.start()
    # Manhattan distance 4, plus 4 rows down and 4 back up
    assert len(robot.current_path) == 12

    _run(engine)
    assert engine.get_metrics()["total_time"] == 12 + 3


def test_head_on_robots_resolve_by_rerouting():
    engine = _engine([".....", ".###.", "....."], strategy="round_robin")
    r1 = engine.add_robot((1, 0))
    r2 = engine.add_robot((3, 0))
    t1 = engine.add_task((4, 0))
    t2 = engine.add_task((0, 0))

    engine.start()
    assert (r1.assigned_task_id, r2.assigned_task_id) == (t1.id, t2.id)

    engine.tick()
    # both want (2,0); the lower id moves, the higher id waits
    assert r1.location == (2, 0)
    assert r2.location == (3, 0)
    assert r2.consecutive_wait_steps == 1

    for _ in range(3):
        engine.tick()
    # robot 2 exceeded the wait threshold and took the long way round
    assert r2.location == (4, 0)
    assert r2.current_path[0] == (4, 1)

    while engine.status == EngineStatus.RUNNING:
        engine.tick()
        assert r1.location != r2.location
        assert engine.state.clock < 100

    assert t1.status == TaskStatus.COMPLETED
    assert t2.status == TaskStatus.COMPLETED
    assert r1.cells_moved == 3
    assert r2.cells_moved == 9
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 15
    assert metrics["total_wait_ticks"] == 7


def test_junction_contest_lower_id_proceeds():
    engine = _engine(["#.#", "...", "#.#"])
    r1 = engine.add_robot((0, 1))
    r2 = engine.add_robot((1, 0))
    engine.add_task((2, 1))
    engine.add_task((1, 2))

    engine.start()
    engine.tick()
    assert r1.location == (1, 1)
    assert r2.location == (1, 0)
    assert r2.consecutive_wait_steps == 1

    engine.tick()
    assert r1.location == (2, 1)
    assert r2.location == (1, 1)

    _run(engine)
    assert engine.get_metrics()["total_time"] == 6


def test_single_lane_robots_queue_behind_each_other():
    engine = _engine(["......"])
    r1 = engine.add_robot((0, 0))
    r2 = engine.add_robot((1, 0))
    near = engine.add_task((3, 0))
    far = engine.add_task((5, 0))

    engine.start()
    assert (r1.assigned_task_id, r2.assigned_task_id) == (near.id, far.id)

    engine.tick()
    assert r1.location == (0, 0)
    assert r2.location == (2, 0)

    assert _run(engine, limit=50) < 50
    assert engine.status == EngineStatus.ENDED
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 7
    assert metrics["total_wait_ticks"] == 1


def test_idle_robot_on_single_lane_takes_over_the_task():
    engine = _engine(["......"])
    r1 = engine.add_robot((0, 0))
    r2 = engine.add_robot((2, 0))
    task = engine.add_task((5, 0))

    engine.start()
    assert task.assigned_robot_id == r1.id

    for _ in range(4):
        engine.tick()
    assert r1.location == (1, 0)
    assert r1.consecutive_wait_steps == 3

    engine.tick()
    assert r1.status == RobotStatus.IDLE
    assert r1.assigned_task_id is None
    assert r2.status == RobotStatus.EN_ROUTE_TO_TASK
    assert r2.location == (3, 0)
    assert task.assigned_robot_id == r2.id
    assert engine.invariant_violations() == []

    assert _run(engine, limit=50) < 50
    assert engine.status == EngineStatus.ENDED
    assert task.status == TaskStatus.COMPLETED
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 10
    assert metrics["total_wait_ticks"] == 4


def test_idle_robot_that_cannot_take_the_task_is_nudged_aside():
    engine = _engine(["......", "##.###"])
    r1 = engine.add_robot((0, 0))
    r2 = engine.add_robot((2, 0), max_battery=4)
    task = engine.add_task((5, 0))

    engine.start()
    for _ in range(5):
        engine.tick()

    # the pocket below is off the waiting robot's route
    assert r2.location == (2, 1)
    assert r2.status == RobotStatus.IDLE
    assert r2.cells_moved == 1
    assert r2.battery == 3
    assert r1.location == (2, 0)
    assert task.assigned_robot_id == r1.id

    assert _run(engine, limit=50) < 50
    assert engine.status == EngineStatus.ENDED
    assert engine.get_metrics()["total_time"] == 11


def test_charger_held_by_idle_robot_is_not_chosen():
    engine = _engine(["c...."])
    parked = engine.add_robot((0, 0), max_battery=5)
    worker = engine.add_robot((4, 0))
    task = engine.add_task((2, 0), battery_cost_to_perform=10)
    worker.battery = 15

    engine.start()
    # the only station is occupied, so the low robot stays idle and takes the task
    assert worker.status == RobotStatus.EN_ROUTE_TO_TASK
    assert task.assigned_robot_id == worker.id

    assert _run(engine, limit=50) < 50
    assert engine.status == EngineStatus.ENDED
    assert parked.location == (0, 0)
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 5
    assert metrics["total_recharges"] == 0


def test_charger_held_by_idle_robot_falls_back_to_free_station():
    engine = _engine(["c...c"])
    parked = engine.add_robot((0, 0), max_battery=5)
    worker = engine.add_robot((1, 0))
    engine.add_task((2, 0))
    worker.battery = 10

    engine.start()
    assert worker.status == RobotStatus.EN_ROUTE_TO_CHARGER
    assert worker.current_target == (4, 0)

    assert _run(engine, limit=50) < 50
    assert engine.status == EngineStatus.ENDED
    assert parked.location == (0, 0)
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 17
    assert metrics["total_recharges"] == 1


def test_robot_blocked_at_its_charger_picks_another_station():
    engine = _engine(["c...c"])
    parked = engine.add_robot((2, 0), max_battery=5)
    worker = engine.add_robot((1, 0))
    engine.add_task((3, 0))
    worker.battery = 10

    engine.start()
    assert worker.current_target == (0, 0)
    # an idle robot ends up standing on the chosen station
    parked.location = (0, 0)

    for _ in range(4):
        engine.tick()
    assert worker.status == RobotStatus.EN_ROUTE_TO_CHARGER
    assert worker.current_target == (4, 0)
    assert worker.location == (2, 0)
    assert engine.state.total_recharges == 1

    assert _run(engine, limit=50) < 50
    assert engine.status == EngineStatus.ENDED
    assert engine.get_metrics()["total_time"] == 19


def test_unaffordable_task_sends_robot_to_charger():
    engine = _engine(["c....."])
    robot = engine.add_robot((5, 0), max_battery=10)
    near = engine.add_task((4, 0), work_duration=1, battery_cost_to_perform=5)
    far = engine.add_task((3, 0), work_duration=1, battery_cost_to_perform=5)

    engine.start()
    assert robot.assigned_task_id == near.id

    engine.tick()
    engine.tick()
    assert near.status == TaskStatus.COMPLETED
    assert robot.battery == 4
    # 1 cell + 5 work is more than the 4 left, so the robot charges first
    assert robot.status == RobotStatus.EN_ROUTE_TO_CHARGER
    assert robot.current_target == (0, 0)
    assert far.status == TaskStatus.UNASSIGNED

    _run(engine)
    assert far.status == TaskStatus.COMPLETED
    metrics = engine.get_metrics()
    assert metrics["total_recharges"] == 1
    assert metrics["total_time"] == 10


def test_low_battery_robot_charges_before_next_task():
    engine = _engine(["..c..."])
    robot = engine.add_robot((5, 0), max_battery=20)
    engine.add_task((4, 0), work_duration=1, battery_cost_to_perform=16)
    later = engine.add_task((1, 0), work_duration=1, battery_cost_to_perform=0)

    engine.start()
    engine.tick()
    engine.tick()
    assert robot.battery == 3
    assert robot.status == RobotStatus.EN_ROUTE_TO_CHARGER
    assert later.status == TaskStatus.UNASSIGNED

    engine.tick()
    engine.tick()
    assert robot.location == (2, 0)
    assert robot.status == RobotStatus.CHARGING
    assert robot.battery == 11

    engine.tick()
    assert robot.battery == 20
    assert robot.status == RobotStatus.EN_ROUTE_TO_TASK

    _run(engine)
    assert engine.get_metrics()["total_time"] == 7
    assert engine.get_metrics()["total_recharges"] == 1


def test_chargers_are_not_shared_between_robots():
    engine = _engine(["c...c"])
    r1 = engine.add_robot((1, 0))
    r2 = engine.add_robot((2, 0))
    engine.add_task((3, 0))
    r1.battery = 1
    r2.battery = 1

    engine.start()

    assert r1.status == RobotStatus.EN_ROUTE_TO_CHARGER
    assert r1.current_target == (0, 0)
    assert r2.status == RobotStatus.EN_ROUTE_TO_CHARGER
    assert r2.current_target == (4, 0)
    assert engine.state.total_recharges == 2


def test_unreachable_charger_leaves_robot_idle():
    engine = _engine(["c#..."])
    robot = engine.add_robot((2, 0), max_battery=5)
    task = engine.add_task((4, 0), battery_cost_to_perform=10)
    robot.battery = 0

    engine.start()
    for _ in range(3):
        engine.tick()

    assert engine.status == EngineStatus.RUNNING
    assert robot.status == RobotStatus.IDLE
    assert robot.location == (2, 0)
    assert task.status == TaskStatus.UNASSIGNED
    assert engine.state.total_recharges == 0


def test_unreachable_task_flagged_and_run_still_ends():
    engine = _engine(["..#.."])
    engine.add_robot((0, 0))
    reachable = engine.add_task((1, 0))
    walled_off = engine.add_task((4, 0))

    engine.start()
    assert engine.get_snapshot()["unassignable_task_ids"] == [walled_off.id]

    _run(engine)
    assert engine.status == EngineStatus.ENDED
    assert reachable.status == TaskStatus.COMPLETED
    assert walled_off.status == TaskStatus.UNASSIGNED
    metrics = engine.get_metrics()
    assert metrics["total_time"] == 4
    assert metrics["completed_tasks"] == 1
    assert metrics["unassignable_tasks"] == 1


def test_run_without_tasks_ends_at_start():
    engine = _engine(OPEN_5X5)
    engine.add_robot((2, 2))
    engine.start()
    assert engine.status == EngineStatus.ENDED
    assert engine.get_metrics()["total_time"] == 0


def test_invariants_hold_every_tick_until_all_tasks_complete():
    grid_rows = ["......"] * 6
    for strategy in ("nearest", "round_robin"):
        engine = _engine(grid_rows, strategy=strategy, default_max_battery=500)
        scenario = generate_scenario(engine.state.grid, seed=7, robots=3, tasks=6)
        apply_scenario(engine, scenario)
        engine.start()

        last_order = {task.id: TASK_ORDER[task.status] for task in engine.state.tasks.values()}
        while engine.status == EngineStatus.RUNNING:
            engine.tick()
            assert engine.state.clock <= 500
            assert engine.invariant_violations() == []

            locations = [robot.location for robot in engine.state.robots.values()]
            assert len(locations) == len(set(locations))
            for robot in engine.state.robots.values():
                assert 0 <= robot.battery <= robot.max_battery
            for task in engine.state.tasks.values():
                assert TASK_ORDER[task.status] >= last_order[task.id]
                last_order[task.id] = TASK_ORDER[task.status]

        assert engine.status == EngineStatus.ENDED
        assert all(task.status == TaskStatus.COMPLETED for task in engine.state.tasks.values())
        assert engine.get_metrics()["completed_tasks"] == 6

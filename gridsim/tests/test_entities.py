import pytest

from gridsim.sim.entities import (
    ROBOT_TRANSITIONS,
    Robot,
    RobotStatus,
    Task,
    TaskStatus,
    check_robot_transition,
    check_task_transition,
)
from gridsim.sim.errors import InvalidPlacement, InvalidStateTransition


def test_robot_transition_table():
    assert ROBOT_TRANSITIONS[RobotStatus.IDLE] == {RobotStatus.EN_ROUTE_TO_TASK, RobotStatus.EN_ROUTE_TO_CHARGER}
    assert ROBOT_TRANSITIONS[RobotStatus.EN_ROUTE_TO_TASK] == {RobotStatus.PERFORMING_TASK, RobotStatus.IDLE}
    assert ROBOT_TRANSITIONS[RobotStatus.PERFORMING_TASK] == {RobotStatus.IDLE}
    assert ROBOT_TRANSITIONS[RobotStatus.EN_ROUTE_TO_CHARGER] == {RobotStatus.CHARGING}
    assert ROBOT_TRANSITIONS[RobotStatus.CHARGING] == {RobotStatus.IDLE}


def test_every_robot_transition_outside_table_rejected():
    for current in RobotStatus:
        for target in RobotStatus:
            if target in ROBOT_TRANSITIONS[current]:
                check_robot_transition(current, target)
            else:
                with pytest.raises(InvalidStateTransition):
                    check_robot_transition(current, target)


def test_task_status_only_advances_one_step():
    check_task_transition(TaskStatus.UNASSIGNED, TaskStatus.ASSIGNED)
    check_task_transition(TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS)
    check_task_transition(TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)
    with pytest.raises(InvalidStateTransition):
        check_task_transition(TaskStatus.UNASSIGNED, TaskStatus.IN_PROGRESS)
    with pytest.raises(InvalidStateTransition):
        check_task_transition(TaskStatus.COMPLETED, TaskStatus.ASSIGNED)
    with pytest.raises(InvalidStateTransition):
        check_task_transition(TaskStatus.ASSIGNED, TaskStatus.ASSIGNED)


def test_robot_battery_clamped():
    robot = Robot(id=1, location=(0, 0), max_battery=10, movement_cost_per_cell=1, battery=3)
    robot.drain(5)
    assert robot.battery == 0
    robot.charge(25)
    assert robot.battery == 10
    assert robot.battery_fraction() == 1.0


def test_robot_restore_returns_to_placement():
    robot = Robot(id=1, location=(1, 1), max_battery=10, movement_cost_per_cell=1, battery=10)
    robot.transition(RobotStatus.EN_ROUTE_TO_TASK)
    robot.location = (2, 1)
    robot.current_target = (3, 1)
    robot.current_path = [(3, 1)]
    robot.drain(4)

    robot.restore()

    assert robot.location == (1, 1)
    assert robot.battery == 10
    assert robot.status == RobotStatus.IDLE
    assert robot.current_path == []
    assert robot.current_target is None


def test_task_defaults_work_remaining_to_duration():
    task = Task(id=1, location=(0, 0), work_duration=3, battery_cost_to_perform=5)
    assert task.work_remaining == 3
    task.advance(TaskStatus.ASSIGNED)
    task.work_remaining = 1
    task.restore()
    assert task.status == TaskStatus.UNASSIGNED
    assert task.work_remaining == 3


def test_error_messages_carry_reason():
    assert str(InvalidStateTransition("not running")) == "not running"
    assert str(InvalidPlacement("wall", (2, 3))) == "wall at (2,3)"

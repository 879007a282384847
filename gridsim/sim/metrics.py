from __future__ import annotations

"""
File: gridsim/sim/metrics.py
Purpose: Compute aggregate run metrics from engine state.
Key responsibilities:
- Elapsed ticks, recharge count, task completion totals, distance and waits.
- Build the run record handed to the persistence sink.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from gridsim.sim.entities import SimulationState, TaskStatus


def compute_metrics(state: SimulationState) -> dict[str, Any]:
    """Compute run-level metrics used by the UI and API."""
    tasks = list(state.tasks.values())
    robots = list(state.robots.values())
    completed_tasks = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    return {
        "total_time": state.clock,
        "total_recharges": state.total_recharges,
        "completed_tasks": completed_tasks,
        "unassignable_tasks": len(state.unassignable_task_ids),
        "total_tasks": len(tasks),
        "robot_count": len(robots),
        "total_distance": sum(r.cells_moved for r in robots),
        "total_wait_ticks": sum(r.wait_ticks_total for r in robots),
    }


def build_run_record(
    state: SimulationState,
    metrics: dict[str, Any],
    timestamp: Optional[datetime] = None,
) -> dict[str, Any]:
    """Return the record a persistence sink stores after a run ends."""
    ts = timestamp or datetime.now(timezone.utc)
    return {
        "grid_id": state.grid_id,
        "strategy": state.strategy.value if state.strategy is not None else None,
        "total_time": int(metrics["total_time"]),
        "total_recharges": int(metrics["total_recharges"]),
        "robot_count": len(state.robots),
        "task_count": len(state.tasks),
        "timestamp": ts.isoformat(),
    }

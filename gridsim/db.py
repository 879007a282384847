from __future__ import annotations

"""
File: gridsim/db.py
Purpose: MySQL helper functions for grid storage and run results.
Key responsibilities:
- Fetch stored grid layouts (grid repository).
- Upsert parsed grid definitions (seeding).
- Insert the run record produced when a simulation ends.
"""

from contextlib import contextmanager
import json
from typing import Any

import pymysql

from gridsim.settings import settings
from gridsim.sim.errors import GridNotFound
from gridsim.sim.grid import Grid


def _connect():
    """Open a new MySQL connection with dict cursor."""
    return pymysql.connect(
        host=settings.mysql_host,
        port=settings.mysql_port,
        user=settings.mysql_user,
        password=settings.mysql_password,
        database=settings.mysql_db,
        autocommit=True,
        cursorclass=pymysql.cursors.DictCursor,
    )


@contextmanager
def db_cursor():
    """Context manager for a short-lived DB cursor."""
    conn = _connect()
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def fetch_grid(grid_id: str) -> Grid:
    """Load a grid layout by id; raises GridNotFound when missing."""
    with db_cursor() as cur:
        cur.execute("SELECT id, name, layout FROM grids WHERE id=%s", (grid_id,))
        row = cur.fetchone()
    if row is None:
        raise GridNotFound(f"grid {grid_id} not found", grid_id=str(grid_id))
    layout = row["layout"]
    if isinstance(layout, (str, bytes)):
        layout = json.loads(layout)
    return Grid.from_layout(layout, name=str(row.get("name") or grid_id))


def list_grids() -> list[dict[str, Any]]:
    """Return id/name pairs of stored grids."""
    with db_cursor() as cur:
        cur.execute("SELECT id, name FROM grids ORDER BY name")
        rows = cur.fetchall()
    return [{"id": str(row["id"]), "name": row["name"]} for row in rows]


def upsert_grid(name: str, grid: Grid) -> None:
    """Insert or update a grid layout keyed by its unique name."""
    with db_cursor() as cur:
        cur.execute(
            """
            INSERT INTO grids (name, layout)
            VALUES (%s, %s)
            ON DUPLICATE KEY UPDATE
                layout=VALUES(layout)
            """,
            (name, json.dumps(grid.to_layout(), separators=(",", ":"))),
        )


def insert_run_result(record: dict[str, Any]) -> None:
    """Insert the run record of a finished simulation."""
    with db_cursor() as cur:
        cur.execute(
            """
            INSERT INTO run_results (grid_id, strategy, total_time, total_recharges, robot_count, task_count, finished_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                record.get("grid_id"),
                record["strategy"],
                int(record["total_time"]),
                int(record["total_recharges"]),
                int(record["robot_count"]),
                int(record["task_count"]),
                record["timestamp"],
            ),
        )

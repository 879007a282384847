"""A* pathfinding over a Grid with 4-directional movement.

find_path() is a pure function of (grid, start, end, blocked): the same
inputs always produce the same coordinate sequence.

Ordering of the open set is (f, h, y, x): among nodes with equal f the one
closer to the goal is expanded first, then the lower row, then the lower
column. Combined with the fixed neighbour order of Grid.neighbors() this
makes the chosen path fully deterministic.

Result shape:
    - start == end            -> []
    - start/end impassable    -> None  (no path found)
    - otherwise               -> [step_1, ..., end]  (start excluded)
"""

from __future__ import annotations

import heapq
from typing import Collection, Iterable, Optional

from gridsim.sim.entities import Coord
from gridsim.sim.grid import Grid


def manhattan(a: Coord, b: Coord) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def find_path(
    grid: Grid,
    start: Coord,
    end: Coord,
    blocked: Collection[Coord] = frozenset(),
) -> Optional[list[Coord]]:
    """Shortest orthogonal path from start to end, or None if unreachable.

    Args:
        grid: immutable grid for the run
        start: current cell (must be passable)
        end: target cell (must be passable and not blocked)
        blocked: extra cells treated as impassable, e.g. an observed occupant

    Returns:
        Path excluding start and including end, [] when start == end,
        None when no path exists.
    """
    if not grid.is_passable(start) or not grid.is_passable(end):
        return None
    if start == end:
        return []
    if end in blocked:
        return None

    h_start = manhattan(start, end)
    open_heap: list[tuple[int, int, int, int]] = [(h_start, h_start, start[1], start[0])]
    g_score: dict[Coord, int] = {start: 0}
    parent: dict[Coord, Coord] = {}
    closed: set[Coord] = set()

    while open_heap:
        _, _, y, x = heapq.heappop(open_heap)
        current = (x, y)
        if current in closed:
            continue
        if current == end:
            return _reconstruct(parent, start, end)
        closed.add(current)

        for neighbor in grid.neighbors(current):
            if neighbor in closed or neighbor in blocked:
                continue
            tentative = g_score[current] + 1
            if tentative < g_score.get(neighbor, tentative + 1):
                g_score[neighbor] = tentative
                parent[neighbor] = current
                h = manhattan(neighbor, end)
                heapq.heappush(open_heap, (tentative + h, h, neighbor[1], neighbor[0]))

    return None


def _reconstruct(parent: dict[Coord, Coord], start: Coord, end: Coord) -> list[Coord]:
    path = [end]
    node = end
    while parent[node] != start:
        node = parent[node]
        path.append(node)
    path.reverse()
    return path


def closest_reachable(
    grid: Grid,
    start: Coord,
    targets: Iterable[Coord],
) -> Optional[tuple[Coord, list[Coord]]]:
    """Pick the target with the shortest path from start.

    Ties are broken by path length, then by the target's (y, x) order.
    Returns (target, path) or None when no target is reachable.
    """
    best: Optional[tuple[int, int, int, Coord, list[Coord]]] = None
    for target in targets:
        path = find_path(grid, start, target)
        if path is None:
            continue
        key = (len(path), target[1], target[0])
        if best is None or key < best[:3]:
            best = (key[0], key[1], key[2], target, path)
    if best is None:
        return None
    return best[3], best[4]

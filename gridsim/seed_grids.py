from __future__ import annotations

"""
File: gridsim/seed_grids.py
Purpose: Seed the grids table from character-matrix text files.
Key responsibilities:
- Discover *.txt grid definitions (example_* files are skipped).
- Derive a display name from the file name and parse the matrix.
- Upsert each layout; per-file failures are logged and skipped.
Key entrypoints:
- seed_grids(directory)
- main()
Config/env vars:
- GRID_DEFINITIONS_DIR, MYSQL_*
"""

import logging
import os
from pathlib import Path
import sys
from typing import Callable, Optional

from gridsim import db
from gridsim.sim.grid import Grid

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s gridsim-seed %(message)s")
logger = logging.getLogger("gridsim.seed")

DEFAULT_GRID_DIR = Path(__file__).resolve().parent.parent / "grids"

GridWriter = Callable[[str, Grid], None]


def grid_name_from_file(file_name: str) -> str:
    """'small-warehouse_b.txt' -> 'Small Warehouse B'."""
    stem = file_name[: -len(".txt")] if file_name.endswith(".txt") else file_name
    words = stem.replace("-", " ").replace("_", " ").split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def grid_files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        raise FileNotFoundError(f"grid definitions directory not found: {directory}")
    return sorted(
        path
        for path in directory.iterdir()
        if path.name.endswith(".txt") and not path.name.startswith("example_")
    )


def seed_grids(directory: Path, write: Optional[GridWriter] = None) -> list[str]:
    """Parse and store every grid definition in directory; returns the seeded names."""
    write = write or db.upsert_grid
    files = grid_files(directory)
    if not files:
        logger.warning("no grid definition files found dir=%s", directory)
        return []
    logger.info("found %s grid definition file(s) dir=%s", len(files), directory)

    seeded: list[str] = []
    for path in files:
        name = grid_name_from_file(path.name)
        try:
            text = path.read_text(encoding="utf-8")
            if not text.strip():
                logger.warning("grid file is empty, skipping file=%s", path.name)
                continue
            grid = Grid.from_text(text, name=name)
            if grid.height == 0 or grid.width == 0:
                logger.warning("parsed grid is empty, skipping name=%r", name)
                continue
            write(name, grid)
        except Exception as exc:  # noqa: BLE001
            logger.exception("seeding grid failed file=%s err=%s", path.name, exc)
            continue
        logger.info("grid seeded name=%r size=%sx%s", name, grid.width, grid.height)
        seeded.append(name)
    return seeded


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    directory = Path(args[0]) if args else Path(os.getenv("GRID_DEFINITIONS_DIR", str(DEFAULT_GRID_DIR)))
    try:
        seed_grids(directory)
    except Exception as exc:  # noqa: BLE001
        logger.error("grid seeding failed err=%s", exc)
        return 1
    logger.info("grid seeding finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())

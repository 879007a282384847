from __future__ import annotations

"""
File: gridsim/main.py
Purpose: FastAPI setup/control surface for the grid simulation.
Key responsibilities:
- Load grids (stored or inline) and place robots/tasks before a run.
- Start/pause/resume/reset/step the run and change its speed.
- Stream settled snapshots over WebSocket (and RabbitMQ when enabled).
Key entrypoints:
- create_app()
- /simulation/* endpoints, /ws
Config/env vars:
- API_HOST, API_PORT, SIM_TICK_HZ, MAX_TICKS, DEFAULT_STRATEGY
- BROADCAST_MQ, RABBITMQ_*, PERSIST_RUNS, MYSQL_*
"""

from contextlib import asynccontextmanager
import logging
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
import uvicorn

from gridsim import db
from gridsim.mq import MQBroadcaster
from gridsim.runner import PersistenceSink, SimRunner
from gridsim.schemas import (
    AddRobotRequest,
    AddTaskRequest,
    GridLayoutRequest,
    GridResponse,
    LoadGridRequest,
    MetricsResponse,
    Robot,
    ScenarioRequest,
    ScenarioResponse,
    SnapshotResponse,
    SpeedRequest,
    StoredGrid,
    StrategyRequest,
    Task,
)
from gridsim.settings import rabbit_url, settings
from gridsim.sim.engine import SimulationEngine
from gridsim.sim.errors import (
    EntityNotFound,
    GridNotFound,
    InvalidPlacement,
    InvalidStateTransition,
)
from gridsim.sim.grid import Grid
from gridsim.sim.world import apply_scenario, generate_scenario
from gridsim.ws import WSManager

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s gridsim %(message)s")
logger = logging.getLogger("gridsim")

GridRepository = Callable[[str], Grid]
GridCatalog = Callable[[], list[dict[str, Any]]]


def _error(status_code: int, kind: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": kind, "detail": detail})


def _grid_response(grid: Grid, grid_id: Optional[str]) -> GridResponse:
    return GridResponse(
        grid_id=grid_id,
        name=grid.name,
        width=grid.width,
        height=grid.height,
        charging_stations=list(grid.charging_stations),
    )


def create_app(
    engine: Optional[SimulationEngine] = None,
    grid_repository: GridRepository = db.fetch_grid,
    grid_catalog: GridCatalog = db.list_grids,
    persist: Optional[PersistenceSink] = None,
    broadcast_mq: bool = settings.broadcast_mq,
    drive: bool = True,
) -> FastAPI:
    """Build the API around one engine.

    With drive=False the background tick loop is not started and the run only
    advances through POST /simulation/step.
    """
    if engine is None:
        engine = SimulationEngine(strategy=settings.default_strategy)
    if persist is None and settings.persist_runs:
        persist = db.insert_run_result

    ws_manager = WSManager()
    mq_broadcaster = MQBroadcaster(rabbit_url(), settings.exchange_name) if broadcast_mq else None
    sinks = [ws_manager.broadcast]
    if mq_broadcaster is not None:
        sinks.append(mq_broadcaster.broadcast)
    runner = SimRunner(engine, sinks=sinks, persist=persist, drive=drive)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if mq_broadcaster is not None:
            try:
                await mq_broadcaster.start()
            except Exception as exc:  # noqa: BLE001
                logger.exception("rabbitmq unavailable, snapshots go to websocket only err=%s", exc)
        logger.info("gridsim api started drive=%s broadcast_mq=%s persist=%s", drive, broadcast_mq, persist is not None)
        yield
        await runner.stop()
        if mq_broadcaster is not None:
            await mq_broadcaster.close()

    app = FastAPI(title="gridsim", version="1.0.0", lifespan=lifespan)
    app.state.engine = engine
    app.state.runner = runner
    app.state.ws_manager = ws_manager

    @app.exception_handler(InvalidPlacement)
    async def invalid_placement_handler(_request: Request, exc: InvalidPlacement) -> JSONResponse:
        return _error(422, "invalid_placement", str(exc))

    @app.exception_handler(InvalidStateTransition)
    async def invalid_state_handler(_request: Request, exc: InvalidStateTransition) -> JSONResponse:
        return _error(409, "invalid_state_transition", str(exc))

    @app.exception_handler(GridNotFound)
    async def grid_not_found_handler(_request: Request, exc: GridNotFound) -> JSONResponse:
        return _error(404, "grid_not_found", str(exc))

    @app.exception_handler(EntityNotFound)
    async def entity_not_found_handler(_request: Request, exc: EntityNotFound) -> JSONResponse:
        return _error(404, "entity_not_found", str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, "invalid_value", str(exc))

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness/readiness endpoint."""
        return {"status": "ok"}

    @app.get("/config")
    def config() -> dict[str, Any]:
        """Return engine defaults for the UI."""
        return {
            "tick_hz": runner.tick_hz,
            "max_ticks": runner.max_ticks,
            "default_strategy": settings.default_strategy,
            "default_max_battery": engine.default_max_battery,
            "movement_cost_per_cell": engine.movement_cost_per_cell,
            "task_work_duration": engine.task_work_duration,
            "task_battery_cost": engine.task_battery_cost,
            "charge_rate": engine.charge_rate,
            "low_battery_fraction": engine.low_battery_fraction,
            "deadlock_wait_threshold": engine.deadlock_wait_threshold,
        }

    @app.get("/grids", response_model=list[StoredGrid])
    def list_grids() -> list[dict[str, Any]]:
        """List stored grids that POST /grid can load."""
        return grid_catalog()

    @app.post("/grid", response_model=GridResponse)
    def load_grid(req: LoadGridRequest) -> GridResponse:
        """Load a stored grid from the repository by id."""
        grid = grid_repository(req.grid_id)
        engine.load_grid(grid, grid_id=req.grid_id)
        return _grid_response(grid, req.grid_id)

    @app.post("/grid/layout", response_model=GridResponse)
    def load_grid_layout(req: GridLayoutRequest) -> GridResponse:
        """Load an inline character-matrix grid."""
        grid = Grid.from_rows(req.rows, name=req.name)
        if grid.height == 0:
            raise ValueError("grid layout has no cells")
        engine.load_grid(grid)
        return _grid_response(grid, None)

    @app.post("/robots", response_model=Robot, status_code=201)
    def add_robot(req: AddRobotRequest) -> dict[str, Any]:
        robot = engine.add_robot(
            (req.x, req.y),
            icon_type=req.icon_type,
            max_battery=req.max_battery,
            movement_cost_per_cell=req.movement_cost_per_cell,
        )
        return robot.to_dict()

    @app.post("/tasks", response_model=Task, status_code=201)
    def add_task(req: AddTaskRequest) -> dict[str, Any]:
        task = engine.add_task(
            (req.x, req.y),
            work_duration=req.work_duration,
            battery_cost_to_perform=req.battery_cost_to_perform,
        )
        return task.to_dict()

    @app.put("/strategy")
    def set_strategy(req: StrategyRequest) -> dict[str, str]:
        engine.set_strategy(req.strategy)
        return {"strategy": req.strategy}

    @app.post("/scenario", response_model=ScenarioResponse)
    def scenario(req: ScenarioRequest) -> ScenarioResponse:
        """Place seeded robots/tasks on the loaded grid; existing placements are replaced."""
        grid = engine.state.grid
        if grid is None:
            raise InvalidStateTransition("cannot generate a scenario: no grid loaded")
        generated = generate_scenario(grid, seed=req.seed, robots=req.robots, tasks=req.tasks)
        engine.load_grid(grid, grid_id=engine.state.grid_id)
        apply_scenario(engine, generated)
        logger.info("scenario applied seed=%s scenario_hash=%s", generated.seed, generated.scenario_hash)
        return ScenarioResponse(
            seed=generated.seed,
            scenario_hash=generated.scenario_hash,
            robots=list(generated.robot_cells),
            tasks=list(generated.task_cells),
        )

    @app.post("/simulation/start", response_model=SnapshotResponse)
    async def start() -> dict[str, Any]:
        return await runner.start()

    @app.post("/simulation/pause", response_model=SnapshotResponse)
    async def pause() -> dict[str, Any]:
        return await runner.pause()

    @app.post("/simulation/resume", response_model=SnapshotResponse)
    async def resume() -> dict[str, Any]:
        return await runner.resume()

    @app.post("/simulation/reset", response_model=SnapshotResponse)
    async def reset() -> dict[str, Any]:
        return await runner.reset()

    @app.post("/simulation/step", response_model=SnapshotResponse)
    async def step() -> dict[str, Any]:
        """Advance one tick manually; not available while the driver loop is ticking."""
        if runner.driving:
            raise InvalidStateTransition("manual step is not available while the driver is ticking")
        return await runner.step()

    @app.put("/simulation/speed")
    def set_speed(req: SpeedRequest) -> dict[str, float]:
        runner.set_speed(req.factor)
        return {"speed": engine.state.speed, "tick_interval_s": runner.tick_interval_s()}

    @app.get("/simulation/snapshot", response_model=SnapshotResponse)
    def snapshot() -> dict[str, Any]:
        return engine.get_snapshot()

    @app.get("/simulation/metrics", response_model=MetricsResponse)
    def metrics() -> dict[str, Any]:
        """Final metrics and run record; both are null until the run ends."""
        metrics = engine.get_metrics()
        record = engine.run_record() if metrics is not None else None
        return {"status": engine.status.value, "metrics": metrics, "record": record}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """WebSocket endpoint for streaming snapshot.tick and run.completed events."""
        await ws_manager.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            await ws_manager.disconnect(websocket)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("gridsim.main:app", host=settings.api_host, port=settings.api_port)

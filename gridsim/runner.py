from __future__ import annotations

"""
File: gridsim/runner.py
Purpose: External driver that ticks a SimulationEngine at a real-time cadence.
Key responsibilities:
- Call engine.tick() every 1 / (tick_hz * speed) seconds while running.
- Fan settled snapshots and run completion out to broadcast sinks.
- Hand the run record to the persistence sink when the run ends.
Key entrypoints:
- SimRunner.start() / pause() / resume() / reset() / step()
"""

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence
import uuid

from gridsim.settings import settings
from gridsim.sim.engine import SimulationEngine
from gridsim.sim.entities import EngineStatus

logger = logging.getLogger("gridsim.runner")

BroadcastSink = Callable[[dict[str, Any]], Awaitable[None]]
PersistenceSink = Callable[[dict[str, Any]], None]


class SimRunner:
    """Async tick driver for one engine."""
    def __init__(
        self,
        engine: SimulationEngine,
        sinks: Sequence[BroadcastSink] = (),
        persist: Optional[PersistenceSink] = None,
        tick_hz: int = settings.sim_tick_hz,
        max_ticks: int = settings.max_ticks,
        drive: bool = True,
    ) -> None:
        self.engine = engine
        self.sinks = list(sinks)
        self.persist = persist
        self.tick_hz = tick_hz
        self.max_ticks = max_ticks
        self.drive = drive
        self.run_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    def tick_interval_s(self) -> float:
        return 1.0 / (self.tick_hz * self.engine.state.speed)

    @property
    def driving(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> dict[str, Any]:
        """Start the engine and, when driving, the background tick loop."""
        self.engine.start()
        self.run_id = uuid.uuid4().hex
        logger.info("run started run_id=%s", self.run_id)
        snapshot = self.engine.get_snapshot()
        await self._broadcast_snapshot(snapshot)
        if self.engine.status == EngineStatus.ENDED:
            await self._finish()
        elif self.drive:
            self._spawn_loop()
        return snapshot

    async def pause(self) -> dict[str, Any]:
        self.engine.pause()
        snapshot = self.engine.get_snapshot()
        await self._broadcast_snapshot(snapshot)
        return snapshot

    async def resume(self) -> dict[str, Any]:
        """Resume the engine; restart the tick loop if it exited at the tick bound or on an error."""
        self.engine.resume()
        snapshot = self.engine.get_snapshot()
        await self._broadcast_snapshot(snapshot)
        if self.drive and not self.driving:
            self._spawn_loop()
        return snapshot

    def _spawn_loop(self) -> None:
        self._task = asyncio.create_task(self._drive_loop(self.engine.state.clock + self.max_ticks))

    async def reset(self) -> dict[str, Any]:
        """Stop ticking and restore the engine's initial setup."""
        await self.stop()
        self.engine.reset()
        self.run_id = None
        snapshot = self.engine.get_snapshot()
        await self._broadcast_snapshot(snapshot)
        return snapshot

    def set_speed(self, factor: float) -> None:
        self.engine.set_speed(factor)
        logger.info("speed changed factor=%s interval_s=%.4f", factor, self.tick_interval_s())

    async def step(self) -> dict[str, Any]:
        """Run exactly one tick and publish its snapshot."""
        snapshot = self.engine.tick()
        await self._broadcast_snapshot(snapshot)
        if self.engine.status == EngineStatus.ENDED:
            await self._finish()
        return snapshot

    async def wait(self) -> None:
        """Wait for the background loop to exit."""
        if self._task is not None:
            await self._task

    async def _drive_loop(self, stop_at: int) -> None:
        """Tick until the run ends or the clock reaches stop_at; either exit leaves the engine paused or ended."""
        while True:
            status = self.engine.status
            if status in (EngineStatus.ENDED, EngineStatus.IDLE):
                return
            if status == EngineStatus.RUNNING:
                if self.engine.state.clock >= stop_at:
                    logger.warning("max ticks reached run_id=%s clock=%s, pausing", self.run_id, self.engine.state.clock)
                    await self.pause()
                    return
                try:
                    await self.step()
                except Exception as exc:  # noqa: BLE001
                    logger.exception("tick failed run_id=%s err=%s, pausing", self.run_id, exc)
                    if self.engine.status == EngineStatus.RUNNING:
                        await self.pause()
                    return
            await asyncio.sleep(self.tick_interval_s())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _finish(self) -> None:
        metrics = self.engine.get_metrics()
        record = self.engine.run_record()
        logger.info("run completed run_id=%s metrics=%s", self.run_id, metrics)
        await self._broadcast(
            {
                "event_type": "run.completed",
                "run_id": self.run_id,
                "metrics": metrics,
                "record": record,
                "ts_utc": datetime.now(timezone.utc).isoformat(),
            }
        )
        if self.persist is None:
            return
        try:
            self.persist(record)
        except Exception as exc:  # noqa: BLE001
            logger.exception("persisting run record failed run_id=%s err=%s", self.run_id, exc)

    async def _broadcast_snapshot(self, snapshot: dict[str, Any]) -> None:
        await self._broadcast(
            {
                "event_type": "snapshot.tick",
                "run_id": self.run_id,
                "snapshot": snapshot,
                "ts_utc": datetime.now(timezone.utc).isoformat(),
            }
        )

    async def _broadcast(self, payload: dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                await sink(payload)
            except Exception as exc:  # noqa: BLE001
                logger.exception("broadcast sink failed event_type=%s err=%s", payload.get("event_type"), exc)

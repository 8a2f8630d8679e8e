from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pygame.math import Vector3

from ..sim.core.config import AppConfig
from ..sim.core.rng import DeterministicRng
from ..sim.core.simulation import Simulation
from .presentation import TrailPresenter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SimulationController:
    def __init__(self, config: AppConfig):
        self.config = config
        sim_config = config.simulation
        self.simulation = Simulation(sim_config, rng=DeterministicRng(sim_config.seed))
        self.presenter = TrailPresenter(sim_config.trail, DeterministicRng())
        for agent in self.simulation.agent_snapshots():
            self.presenter.on_agent_added(agent)
        self.simulation.add_listener(self.presenter)
        self.broadcast_interval = max(1, config.broadcast_interval)
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=max(1, config.snapshot_backlog))
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.simulation.running

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
        async with self._lock:
            self.simulation.start()

    async def stop(self) -> None:
        async with self._lock:
            self.simulation.stop()

    async def resize_population(self, count: int) -> None:
        if count < self.config.min_population or count > self.config.max_population:
            raise ValueError(
                f"Population must be between {self.config.min_population} and {self.config.max_population}"
            )
        async with self._lock:
            self.simulation.resize_population(count)
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        await self._broadcast_snapshot()

    async def set_goal(self, x: float, z: float, y: Optional[float] = None) -> None:
        height = self.config.simulation.agent.ground_offset if y is None else y
        async with self._lock:
            self.simulation.set_goal(Vector3(x, height, z))

    async def clear_goal(self) -> None:
        async with self._lock:
            self.simulation.clear_goal()

    async def advance(self, dt: float) -> bool:
        async with self._lock:
            metrics = self.simulation.step(dt)
            if metrics is None:
                return False
            self.presenter.update(self.simulation.agent_snapshots(), dt)
        return True

    async def _loop(self) -> None:
        dt = 1.0 / self.config.tick_rate
        while True:
            await asyncio.sleep(dt)
            if not await self.advance(dt):
                continue
            if self.simulation.tick % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    async def acknowledge(self, tick: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].tick <= tick:
                self._snapshot_queue.popleft()

    def _serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.simulation.snapshot()
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "tick": snapshot.tick,
                "running": snapshot.running,
                "goal": list(snapshot.goal) if snapshot.goal is not None else None,
                "agents": [asdict(agent) for agent in snapshot.agents],
                "metrics": asdict(snapshot.metrics) if snapshot.metrics is not None else None,
                "trails": self.presenter.export(),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.tick > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.tick
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        if not self.clients:
            return
        queued = self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            logger.info("Dropping disconnected client")
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


app = FastAPI(title="Flockbots Simulation")
controller = SimulationController(AppConfig())


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    metrics = controller.simulation.metrics
    goal = controller.simulation.goal
    return JSONResponse(
        {
            "running": controller.running,
            "tick": controller.simulation.tick,
            "population": len(controller.simulation.agents),
            "goal": [goal.x, goal.y, goal.z] if goal is not None else None,
            "metrics": asdict(metrics) if metrics is not None else None,
        }
    )


@app.get("/api/world")
async def world() -> JSONResponse:
    return JSONResponse(asdict(controller.simulation.world_descriptor()))


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    await controller.start()
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    await controller.stop()
    return JSONResponse({"running": False})


@app.post("/api/population")
async def set_population(payload: dict) -> JSONResponse:
    try:
        count = int(payload.get("count", -1))
        await controller.resize_population(count)
    except (TypeError, ValueError) as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return JSONResponse({"population": len(controller.simulation.agents), "running": controller.running})


@app.post("/api/goal")
async def set_goal(payload: dict) -> JSONResponse:
    try:
        x = float(payload["x"])
        z = float(payload["z"])
        y = float(payload["y"]) if payload.get("y") is not None else None
        await controller.set_goal(x, z, y)
    except (KeyError, TypeError, ValueError) as exc:
        return JSONResponse({"error": f"Invalid goal: {exc}"}, status_code=400)
    goal = controller.simulation.goal
    return JSONResponse({"goal": [goal.x, goal.y, goal.z]})


@app.delete("/api/goal")
async def clear_goal() -> JSONResponse:
    await controller.clear_goal()
    return JSONResponse({"goal": None})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                tick = payload.get("tick")
                if isinstance(tick, int):
                    await controller.acknowledge(tick)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller"]

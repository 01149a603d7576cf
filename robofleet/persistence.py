from __future__ import annotations

"""
File: robofleet/persistence.py
Purpose: Best-effort persistence gateway for fleet and delivery snapshots.
Key responsibilities:
- Store robots, the capped delivery history and simulation state as JSON documents.
- Swallow and log backend failures so the simulation never depends on storage.
- Run writes off the event loop, in order, through a single-writer queue.
"""

import asyncio
import copy
import logging
import threading
from typing import Any, Callable, Iterable, Protocol

from robofleet import db

logger = logging.getLogger("robofleet.persistence")

ROBOTS_KEY = "robofleet:robots"
DELIVERIES_KEY = "robofleet:deliveries"
SIMULATION_KEY = "robofleet:simulation"


class SnapshotBackend(Protocol):
    def load(self, name: str) -> Any | None: ...

    def save(self, name: str, payload: Any) -> None: ...

    def delete(self, names: Iterable[str]) -> None: ...


class MemoryBackend:
    """Process-local storage used when no database is configured."""
    def __init__(self) -> None:
        self._docs: dict[str, Any] = {}
        self._lock = threading.Lock()

    def load(self, name: str) -> Any | None:
        with self._lock:
            return copy.deepcopy(self._docs.get(name))

    def save(self, name: str, payload: Any) -> None:
        with self._lock:
            self._docs[name] = copy.deepcopy(payload)

    def delete(self, names: Iterable[str]) -> None:
        with self._lock:
            for name in names:
                self._docs.pop(name, None)


class MySQLBackend:
    """Snapshot storage in the fleet_snapshots table."""
    def __init__(self, params: dict[str, Any] | None = None) -> None:
        self.params = params
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            db.ensure_schema(self.params)
            self._schema_ready = True

    def load(self, name: str) -> Any | None:
        self._ensure_schema()
        return db.load_snapshot(name, self.params)

    def save(self, name: str, payload: Any) -> None:
        self._ensure_schema()
        db.save_snapshot(name, payload, self.params)

    def delete(self, names: Iterable[str]) -> None:
        self._ensure_schema()
        db.delete_snapshots(names, self.params)


class PersistenceGateway:
    """Best-effort load/save of fleet documents. No method raises."""
    def __init__(self, backend: SnapshotBackend, history_cap: int = 100) -> None:
        self.backend = backend
        self.history_cap = history_cap

    def load_robots(self) -> list[dict[str, Any]]:
        try:
            robots = self.backend.load(ROBOTS_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to load robots err=%s", exc)
            return []
        if not isinstance(robots, list):
            return []
        if robots:
            logger.info("loaded robots from persistence count=%s", len(robots))
        return robots

    def save_robots(self, robots: list[dict[str, Any]]) -> None:
        try:
            self.backend.save(ROBOTS_KEY, robots)
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to save robots err=%s", exc)

    def load_delivery_history(self) -> list[dict[str, Any]]:
        try:
            deliveries = self.backend.load(DELIVERIES_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to load delivery history err=%s", exc)
            return []
        return deliveries if isinstance(deliveries, list) else []

    def save_delivery_history(self, deliveries: list[dict[str, Any]], cap: int | None = None) -> None:
        """Keep only the most recent `cap` deliveries."""
        limit = self.history_cap if cap is None else cap
        try:
            self.backend.save(DELIVERIES_KEY, deliveries[-limit:] if limit > 0 else [])
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to save delivery history err=%s", exc)

    def add_delivery(self, delivery: dict[str, Any]) -> None:
        history = self.load_delivery_history()
        history.append(delivery)
        self.save_delivery_history(history)
        logger.debug("delivery added to history delivery_id=%s", delivery.get("id"))

    def update_delivery(self, delivery_id: str, status: str) -> None:
        history = self.load_delivery_history()
        updated = False
        for item in history:
            if item.get("id") == delivery_id:
                item["status"] = status
                updated = True
        if not updated:
            logger.warning("delivery not in history delivery_id=%s status=%s", delivery_id, status)
            return
        self.save_delivery_history(history)

    def load_simulation_state(self) -> dict[str, Any] | None:
        try:
            state = self.backend.load(SIMULATION_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to load simulation state err=%s", exc)
            return None
        return state if isinstance(state, dict) else None

    def save_simulation_state(self, state: dict[str, Any]) -> None:
        try:
            self.backend.save(SIMULATION_KEY, state)
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to save simulation state err=%s", exc)

    def clear_all(self) -> None:
        try:
            self.backend.delete([ROBOTS_KEY, DELIVERIES_KEY, SIMULATION_KEY])
            logger.info("cleared persisted fleet data")
        except Exception as exc:  # noqa: BLE001
            logger.exception("failed to clear persisted data err=%s", exc)


class PersistenceWriter:
    """Single-writer queue; blocking gateway calls run in a worker thread, in submit order."""
    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[Callable[..., Any], tuple[Any, ...]]] | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        """Queue a write; must be called from the event loop."""
        self._ensure_worker()
        self._queue.put_nowait((fn, args))

    def _ensure_worker(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            # Queue and worker belong to a previous (closed) loop.
            self._queue = asyncio.Queue()
            self._task = None
            self._loop = loop
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    def _bound_to_running_loop(self) -> bool:
        try:
            return self._loop is asyncio.get_running_loop()
        except RuntimeError:
            return False

    async def _run(self) -> None:
        while True:
            fn, args = await self._queue.get()
            try:
                await asyncio.to_thread(fn, *args)
            except Exception as exc:  # noqa: BLE001
                logger.exception("persistence write failed fn=%s err=%s", getattr(fn, "__name__", fn), exc)
            finally:
                self._queue.task_done()

    async def flush(self) -> None:
        """Wait until every queued write has run."""
        if not self._bound_to_running_loop():
            return
        if self._task is not None and not self._task.done():
            await self._queue.join()

    async def close(self) -> None:
        await self.flush()
        if self._task is not None and self._bound_to_running_loop():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

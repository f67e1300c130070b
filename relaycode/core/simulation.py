"""Timed simulation of a backend applying transactions.

Each run is an ``asyncio.Task`` owned by the engine. A per-transaction
active set guards against overlapping runs; the guard is released from the
task's done-callback so it is freed on success, error and cancellation.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import threading
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from dataclasses import dataclass
from typing import Any

from relaycode.config.schema import SimulationConfig

from .errors import FileNotFound, InvalidStatusTransition, SimulationConflict
from .models import FileApplyStatus, SimulationScenario, Transaction, TransactionStatus
from .state_machine import aggregate_file_status
from .store import TransactionStore

logger = logging.getLogger(__name__)

PATCH_CONFLICT_ERROR = "Patch conflict: file content mismatch"
RETRY_FAILED_ERROR = "Retry failed: unresolved conflict"


@dataclass(frozen=True)
class FilePlan:
    path: str
    delay_ms: float
    fails: bool


class SimulationEngine:
    def __init__(
        self,
        store: TransactionStore,
        config: SimulationConfig | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self._store = store
        self._config = config or SimulationConfig()
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self._active: set[str] = set()
        self._tasks: dict[str, asyncio.Task] = {}
        self._guard = threading.Lock()

    @property
    def active_ids(self) -> frozenset[str]:
        with self._guard:
            return frozenset(self._active)

    def is_active(self, transaction_id: str) -> bool:
        with self._guard:
            return transaction_id in self._active

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def start_simulation(self, transaction_id: str, scenario: SimulationScenario | None = None) -> Transaction:
        """Move a PENDING transaction to APPLYING and schedule its completion.

        Returns the transaction as it is right after the call; later
        transitions are only visible through the broadcaster.
        Raises TransactionNotFound or SimulationConflict.
        """
        asyncio.get_running_loop()
        self._store.get(transaction_id)
        self._acquire(transaction_id)
        try:
            try:
                updated = self._store.update_status(transaction_id, TransactionStatus.APPLYING)
            except InvalidStatusTransition as e:
                raise SimulationConflict(transaction_id, f"status is {e.current.value}, expected PENDING") from e

            if scenario is SimulationScenario.PARTIAL_FAILURE:
                plans = self._plan_files(updated.file_paths(), self._config.file_failure_probability)
                self._spawn(transaction_id, self._run_partial(transaction_id, plans))
            else:
                duration_ms = self._duration_ms(scenario)
                self._spawn(transaction_id, self._run_single(transaction_id, scenario, duration_ms))
        except BaseException:
            self._release(transaction_id)
            raise

        logger.info(
            "Simulation started for %s (scenario=%s)",
            transaction_id,
            scenario.value if scenario else "default",
        )
        return updated

    def reapply_file(self, transaction_id: str, file_path: str) -> list[str]:
        """Retry one FAILED file. Returns the paths being retried."""
        return self._start_reapply(transaction_id, [file_path])

    def reapply_all_failed(self, transaction_id: str) -> list[str]:
        """Retry every FAILED file; a no-op when none failed."""
        paths = self._store.failed_file_paths(transaction_id)
        if not paths:
            return []
        return self._start_reapply(transaction_id, paths)

    async def join(self, transaction_id: str) -> None:
        """Wait for the in-flight run of *transaction_id*, if any."""
        task = self._tasks.get(transaction_id)
        if task is not None:
            await asyncio.wait({task})

    async def shutdown(self) -> None:
        """Cancel and await every in-flight run."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def _run_single(
        self,
        transaction_id: str,
        scenario: SimulationScenario | None,
        duration_ms: float,
    ) -> None:
        await self._sleep(duration_ms / 1000)
        if scenario is SimulationScenario.SIMULATED_FAILURE:
            self._finish(transaction_id, TransactionStatus.FAILED)
        else:
            self._finish(transaction_id, TransactionStatus.APPLIED)

    async def _run_partial(self, transaction_id: str, plans: list[FilePlan]) -> None:
        await self._apply_files(transaction_id, plans, PATCH_CONFLICT_ERROR)
        self._finish(transaction_id, self._aggregate(transaction_id))

    async def _run_reapply(self, transaction_id: str, plans: list[FilePlan]) -> None:
        await self._apply_files(transaction_id, plans, RETRY_FAILED_ERROR)
        self._finish(transaction_id, self._aggregate(transaction_id), reapply=True)

    async def _apply_files(self, transaction_id: str, plans: Iterable[FilePlan], error_message: str) -> None:
        # Every timer must settle before the caller aggregates
        results = await asyncio.gather(
            *(self._apply_file(transaction_id, plan, error_message) for plan in plans),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _apply_file(self, transaction_id: str, plan: FilePlan, error_message: str) -> None:
        await self._sleep(plan.delay_ms / 1000)
        if plan.fails:
            self._store.update_file_apply_status(transaction_id, plan.path, FileApplyStatus.FAILED, error_message)
        else:
            self._store.update_file_apply_status(transaction_id, plan.path, FileApplyStatus.APPLIED)

    def _aggregate(self, transaction_id: str) -> TransactionStatus:
        tx = self._store.get(transaction_id)
        return aggregate_file_status(f.apply_status for f in tx.files)

    def _finish(self, transaction_id: str, status: TransactionStatus, *, reapply: bool = False) -> None:
        if self._store.get(transaction_id).status is status:
            return
        try:
            self._store.update_status(transaction_id, status, reapply=reapply)
        except InvalidStatusTransition as e:
            logger.warning("Discarding simulation result for %s: %s", transaction_id, e)
            return
        logger.info("Simulation for %s finished as %s", transaction_id, status.value)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _start_reapply(self, transaction_id: str, paths: list[str]) -> list[str]:
        asyncio.get_running_loop()
        self._store.get(transaction_id)
        self._acquire(transaction_id)
        try:
            tx = self._store.get(transaction_id)
            if tx.status not in (TransactionStatus.FAILED, TransactionStatus.PARTIALLY_APPLIED):
                raise SimulationConflict(transaction_id, f"cannot reapply files while {tx.status.value}")
            for path in paths:
                file = tx.find_file(path)
                if file is None:
                    raise FileNotFound(transaction_id, path)
                if file.apply_status is not FileApplyStatus.FAILED:
                    raise SimulationConflict(
                        transaction_id, f"file {path} is {file.apply_status.value}, expected FAILED"
                    )
            for path in paths:
                self._store.update_file_apply_status(transaction_id, path, FileApplyStatus.APPLYING)
            plans = self._plan_files(paths, self._config.reapply_failure_probability)
            self._spawn(transaction_id, self._run_reapply(transaction_id, plans))
        except BaseException:
            self._release(transaction_id)
            raise
        logger.info("Reapplying %d file(s) for %s", len(paths), transaction_id)
        return paths

    def _duration_ms(self, scenario: SimulationScenario | None) -> float:
        cfg = self._config
        if scenario is SimulationScenario.FAST_SUCCESS:
            window = cfg.fast_success_duration_ms
        elif scenario is SimulationScenario.LONG_RUNNING:
            window = cfg.long_running_duration_ms
        else:
            window = cfg.default_duration_ms
        return self._rng.uniform(*window)

    def _plan_files(self, paths: Iterable[str], failure_probability: float) -> list[FilePlan]:
        # Draw in file order so a seeded rng gives a reproducible run
        plans = []
        for path in paths:
            delay_ms = self._rng.uniform(*self._config.file_delay_ms)
            plans.append(FilePlan(path, delay_ms, self._rng.random() < failure_probability))
        return plans

    def _acquire(self, transaction_id: str) -> None:
        with self._guard:
            if transaction_id in self._active:
                raise SimulationConflict(transaction_id, "a simulation is already running")
            self._active.add(transaction_id)

    def _release(self, transaction_id: str) -> None:
        with self._guard:
            self._active.discard(transaction_id)

    def _spawn(self, transaction_id: str, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=f"simulation:{transaction_id}")
        self._tasks[transaction_id] = task
        task.add_done_callback(functools.partial(self._on_done, transaction_id))

    def _on_done(self, transaction_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(transaction_id) is task:
            del self._tasks[transaction_id]
        self._release(transaction_id)
        if task.cancelled():
            logger.info("Simulation for %s cancelled", transaction_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Simulation for %s failed: %s", transaction_id, exc, exc_info=exc)

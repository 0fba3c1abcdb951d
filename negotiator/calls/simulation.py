"""
Simulated call progression for when no live telephony channel is available.

Each simulated call gets one asyncio task that walks it through
in-progress, negotiating and completed. Every step runs under the session
lock and only while the call is still the session's current call, so a
newer call or vendor selection makes the old timeline a no-op. Tasks are
keyed by call id and can be cancelled individually or all at once.
"""

import asyncio
import random
from typing import Optional

from negotiator.calls.reconciler import CallStatusReconciler, StatusEvent
from negotiator.config import SimulationConfig, settings
from negotiator.logging_context import bind_call, get_call_logger
from negotiator.schemas.session_schema import CallStatus, NegotiationStage
from negotiator.store.session_store import SessionStore

logger = get_call_logger(__name__)


class CallSimulator:
    """Drives simulated calls on cancelable timers."""

    def __init__(
        self,
        store: SessionStore,
        reconciler: CallStatusReconciler,
        config: SimulationConfig = settings.simulation,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._config = config
        self._rng = rng or random.Random()
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_calls(self) -> list[str]:
        return [call_id for call_id, task in self._tasks.items() if not task.done()]

    def start(self, session_id: str, call_id: str) -> asyncio.Task:
        self.cancel(call_id)
        task = asyncio.create_task(self._run(session_id, call_id), name=f"simulate-{call_id}")
        self._tasks[call_id] = task
        task.add_done_callback(lambda _t, cid=call_id: self._forget(cid, _t))
        logger.info("Simulating call %s", call_id)
        return task

    def cancel(self, call_id: str) -> bool:
        task = self._tasks.pop(call_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Simulation cancelled for call %s", call_id)
        return True

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, session_id: str, call_id: str) -> None:
        bind_call(session_id, call_id)
        await asyncio.sleep(self._config.in_progress_delay_sec)
        await self._reconciler.apply(session_id, call_id, StatusEvent(status="in-progress"))

        await asyncio.sleep(self._config.negotiating_delay_sec)
        if not await self._mark_negotiating(session_id, call_id):
            return

        await asyncio.sleep(self._config.completion_delay_sec)
        if not await self._agree_price(session_id, call_id):
            return
        await self._reconciler.apply(
            session_id,
            call_id,
            StatusEvent(status="completed", duration_seconds=self._config.call_duration_sec),
        )

    async def _mark_negotiating(self, session_id: str, call_id: str) -> bool:
        async with self._store.lock(session_id):
            call = self._store.get_call(session_id, call_id)
            if call is None or call.is_terminal:
                return False
            if call.status != CallStatus.NEGOTIATING:
                self._store.update_call(session_id, call_id, status=CallStatus.NEGOTIATING)
            return True

    async def _agree_price(self, session_id: str, call_id: str) -> bool:
        async with self._store.lock(session_id):
            call = self._store.get_call(session_id, call_id)
            if call is None or call.is_terminal:
                return False
            price = self._rng.randrange(self._config.price_min, self._config.price_max)
            state = call.conversation_state.model_copy(
                update={
                    "stage": NegotiationStage.FINAL_AGREEMENT,
                    "final_price": price,
                    "attempts": 0,
                }
            )
            self._store.update_call(
                session_id,
                call_id,
                negotiated_price=price,
                conversation_state=state,
                transcript="[simulated] Vendor agreed to the offer.",
            )
            logger.info("Simulated vendor agreed at %d", price)
            return True

    def _forget(self, call_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(call_id) is task:
            del self._tasks[call_id]

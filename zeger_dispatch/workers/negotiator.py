"""
Dispatch Negotiator
===================

Runs the bounded accept/reject window between a customer and the single
rider they picked.

Per negotiation
---------------
1. ``request`` checks the rider can be dispatched and creates the pending
   ``customer_orders`` row (the negotiation id *is* the order id).
2. ``open`` starts two tasks and waits for the first to settle the
   negotiation:

   * **listener**  -- subscribes to ``dispatch:{id}`` and maps the rider's
     status write (``accepted`` / ``in_progress`` / ``rejected``) onto the
     negotiation.  Right after subscribing it reads the record once, so a
     response written before the subscription existed is not missed.
   * **countdown** -- decrements ``remaining_seconds`` once per tick from
     the window (60) to 0, then times the negotiation out.

3. Whatever settles first wins; the other task is cancelled.  A status
   change delivered in the same tick as the last countdown step wins over
   the timeout.  The countdown yields to the loop once before expiring, so
   this holds for changes already queued on the loop.  A Redis message
   still sitting in the socket buffer at that instant may lose the tie.
   ``cancel`` settles the negotiation synchronously.

Concurrency safety
------------------
Everything runs on one event loop.  ``_apply`` / ``_expire`` / ``cancel``
never await between checking ``is_terminal`` and transitioning, so two
settlements cannot interleave.  Notifications arriving after settlement
are discarded.

If the channel cannot be subscribed the listener gives up quietly and the
countdown still guarantees a terminal state.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Optional

from zeger_dispatch.config import settings
from zeger_dispatch.domain.entities import (
    DispatchNegotiation,
    RiderCandidate,
    StatusChange,
)
from zeger_dispatch.domain.enums import (
    ACCEPTED_ORDER_STATUSES,
    REJECTED_ORDER_STATUSES,
    NegotiationState,
)
from zeger_dispatch.domain.errors import (
    ChannelUnavailable,
    InvalidSelection,
    StoreUnavailable,
)
from zeger_dispatch.domain.ports import DispatchStore, NotificationChannel

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]


class _Watch:
    def __init__(self, negotiation: DispatchNegotiation):
        self.negotiation = negotiation
        self.settled = asyncio.Event()


class DispatchNegotiator:
    """Owns every negotiation it creates; callers only observe outcomes."""

    def __init__(
        self,
        store: DispatchStore,
        channel: NotificationChannel,
        *,
        window_seconds: Optional[int] = None,
        tick_seconds: Optional[float] = None,
        rejection_reason: Optional[str] = None,
        history_size: Optional[int] = None,
    ):
        self.store = store
        self.channel = channel
        self.window_seconds = (
            window_seconds
            if window_seconds is not None
            else settings.negotiation_window_seconds
        )
        self.tick_seconds = (
            tick_seconds if tick_seconds is not None else settings.countdown_tick_seconds
        )
        self.rejection_reason = (
            rejection_reason
            if rejection_reason is not None
            else settings.default_rejection_reason
        )
        self.history_size = (
            history_size
            if history_size is not None
            else settings.negotiation_history_size
        )

        self._watches: dict[str, _Watch] = {}
        self._history: OrderedDict[str, DispatchNegotiation] = OrderedDict()
        self._tasks: set[asyncio.Task] = set()

    # ── Public API ────────────────────────────────────────────────────

    async def request(
        self, requester_id: str, rider: RiderCandidate
    ) -> DispatchNegotiation:
        """Create the pending dispatch record for *rider*."""
        if not rider.has_position:
            raise InvalidSelection(f"Rider {rider.id} has no resolvable position")

        dispatch_id = await self.store.create_dispatch(requester_id, rider.id)
        negotiation = DispatchNegotiation(
            id=dispatch_id,
            requester_id=requester_id,
            rider_id=rider.id,
            opened_at=datetime.now(timezone.utc),
            window_seconds=self.window_seconds,
        )
        self._watches[negotiation.id] = _Watch(negotiation)
        logger.info(
            "Negotiation %s opened: requester=%s rider=%s window=%ds",
            negotiation.id, requester_id, rider.id, self.window_seconds,
        )
        return negotiation

    async def open(
        self,
        negotiation: DispatchNegotiation,
        on_tick: Optional[TickCallback] = None,
    ) -> DispatchNegotiation:
        """Observe *negotiation* until it reaches a terminal state."""
        watch = self._watches.get(negotiation.id)
        if watch is None:
            raise KeyError(f"Unknown negotiation {negotiation.id}")

        listener = countdown = None
        try:
            if not negotiation.is_terminal:
                listener = asyncio.create_task(self._listen(watch))
                countdown = asyncio.create_task(self._countdown(watch, on_tick))
                await watch.settled.wait()
        finally:
            for task in (listener, countdown):
                if task is not None and not task.done():
                    task.cancel()
            results = await asyncio.gather(
                *(t for t in (listener, countdown) if t is not None),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, Exception):
                    logger.error(
                        "Watcher for negotiation %s failed",
                        negotiation.id,
                        exc_info=result,
                    )
            if negotiation.is_terminal:
                self._retire(watch)
                await self.store.release(negotiation)
        return negotiation

    def start(
        self,
        negotiation: DispatchNegotiation,
        on_tick: Optional[TickCallback] = None,
    ) -> asyncio.Task:
        """Run ``open`` in the background; the task is cancelled on shutdown."""
        task = asyncio.create_task(self.open(negotiation, on_tick))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self, negotiation_id: str) -> Optional[DispatchNegotiation]:
        """Revoke a pending request.  Terminal negotiations are left as-is."""
        watch = self._watches.get(negotiation_id)
        if watch is None:
            return self._history.get(negotiation_id)
        if not watch.negotiation.is_terminal:
            watch.negotiation.transition_to(NegotiationState.CANCELLED)
            self._settle(watch)
        return watch.negotiation

    def get(self, negotiation_id: str) -> Optional[DispatchNegotiation]:
        watch = self._watches.get(negotiation_id)
        if watch is not None:
            return watch.negotiation
        return self._history.get(negotiation_id)

    def active(self) -> list[DispatchNegotiation]:
        return [
            w.negotiation for w in self._watches.values() if not w.negotiation.is_terminal
        ]

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Dispatch negotiator stopped (%d negotiations interrupted)", len(tasks))

    # ── Internals ─────────────────────────────────────────────────────

    async def _listen(self, watch: _Watch) -> None:
        negotiation_id = watch.negotiation.id
        try:
            subscription = await self.channel.subscribe(negotiation_id)
        except ChannelUnavailable:
            logger.warning(
                "No status channel for negotiation %s; waiting for timeout only",
                negotiation_id,
            )
            return

        try:
            try:
                current = await self.store.get_status(negotiation_id)
            except StoreUnavailable:
                logger.warning("Could not read status of %s after subscribing", negotiation_id)
                current = None
            if current is not None and self._apply(watch, current):
                return

            async for change in subscription:
                if self._apply(watch, change):
                    return
        except ChannelUnavailable:
            logger.warning(
                "Status channel for negotiation %s lost; waiting for timeout only",
                negotiation_id,
            )
        finally:
            await subscription.close()

    async def _countdown(
        self, watch: _Watch, on_tick: Optional[TickCallback]
    ) -> None:
        negotiation = watch.negotiation
        loop = asyncio.get_running_loop()
        started = loop.time()
        ticks = 0

        if on_tick:
            on_tick(negotiation.remaining_seconds)
        while negotiation.remaining_seconds > 0:
            ticks += 1
            await asyncio.sleep(max(0.0, started + ticks * self.tick_seconds - loop.time()))
            if negotiation.is_terminal:
                return
            negotiation.remaining_seconds -= 1
            if on_tick:
                on_tick(negotiation.remaining_seconds)

        # a status change already queued on the loop wins; best-effort for
        # messages not yet read off the Redis socket
        await asyncio.sleep(0)
        self._expire(watch)

    def _apply(self, watch: _Watch, change: StatusChange) -> bool:
        """Map *change* onto the negotiation; True once it is terminal."""
        negotiation = watch.negotiation
        if negotiation.is_terminal:
            logger.debug(
                "Discarding status %r for settled negotiation %s",
                change.status, negotiation.id,
            )
            return True

        if change.status in ACCEPTED_ORDER_STATUSES:
            negotiation.transition_to(NegotiationState.ACCEPTED)
        elif change.status in REJECTED_ORDER_STATUSES:
            negotiation.transition_to(
                NegotiationState.REJECTED,
                reason=change.rejection_reason or self.rejection_reason,
            )
        else:
            return False

        self._settle(watch)
        return True

    def _expire(self, watch: _Watch) -> None:
        if watch.negotiation.is_terminal:
            return
        watch.negotiation.transition_to(NegotiationState.TIMED_OUT)
        self._settle(watch)

    def _settle(self, watch: _Watch) -> None:
        negotiation = watch.negotiation
        watch.settled.set()
        logger.info(
            "Negotiation %s settled: %s (%ds left)",
            negotiation.id, negotiation.state.value, negotiation.remaining_seconds,
        )

    def _retire(self, watch: _Watch) -> None:
        negotiation = watch.negotiation
        self._watches.pop(negotiation.id, None)
        self._history[negotiation.id] = negotiation
        while len(self._history) > self.history_size:
            self._history.popitem(last=False)

"""
Mutation Batcher

Coalesces high-frequency change notifications into low-frequency batches.

Every notification adds its node to a pending set (deduplicated by identity)
and restarts a single-shot timer on the running event loop. Only the last
timer of a burst fires: it snapshots and empties the pending set, yields to
the loop once, then hands the snapshot to the batch handler. A burst that
never pauses for the full delay keeps draining suspended.
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from .nodes import CaptionNode, Mutation

logger = logging.getLogger("summator.capture.batcher")

DEFAULT_DEBOUNCE_SECONDS = 0.2

BatchHandler = Callable[[List[CaptionNode]], None]


class MutationBatcher:
    """
    Trailing-debounce batcher bound to an asyncio event loop.

    ``add``/``feed`` must be called from a coroutine or callback running on
    the loop; the loop is captured on first use.
    """

    def __init__(
        self,
        handler: BatchHandler,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        """
        Initialize batcher.

        Args:
            handler: Called with each drained snapshot, in insertion order
            delay: Quiet period in seconds before a burst is drained
        """
        self._handler = handler
        self._delay = delay
        # dict as an insertion-ordered set; CaptionNode hashes by identity
        self._pending: Dict[CaptionNode, None] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._batches_drained = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def batches_drained(self) -> int:
        return self._batches_drained

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def add(self, node: CaptionNode) -> None:
        """Queue a node and restart the debounce timer"""
        self._pending[node] = None
        self._reschedule()

    def feed(self, mutations: Iterable[Mutation]) -> None:
        """
        Queue the content nodes of a burst of mutation records.

        The timer is restarted once per burst, even if the burst queued
        nothing new.
        """
        for mutation in mutations:
            for node in mutation.content_nodes():
                self._pending[node] = None
        self._reschedule()

    def _reschedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._timer = self._loop.call_later(self._delay, self._fire)

    def _take_snapshot(self) -> List[CaptionNode]:
        nodes = list(self._pending)
        self._pending.clear()
        return nodes

    def _fire(self) -> None:
        self._timer = None
        if not self._pending:
            return

        nodes = self._take_snapshot()
        task = self._loop.create_task(self._drain(nodes))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _drain(self, nodes: List[CaptionNode]) -> None:
        # Yield once so the loop can service other callbacks first
        await asyncio.sleep(0)
        self._dispatch(nodes)

    def _dispatch(self, nodes: List[CaptionNode]) -> None:
        self._batches_drained += 1
        logger.debug("Draining batch of %d nodes", len(nodes))
        self._handler(nodes)

    def flush(self) -> int:
        """
        Drain pending nodes synchronously, cancelling the timer.

        Returns:
            Number of nodes drained
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._pending:
            return 0

        nodes = self._take_snapshot()
        self._dispatch(nodes)
        return len(nodes)

    def close(self) -> int:
        """
        Cancel the timer and discard pending nodes.

        Batches whose timer already fired still drain.

        Returns:
            Number of nodes discarded
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        discarded = len(self._pending)
        self._pending.clear()
        return discarded

    async def wait_idle(self) -> None:
        """Wait for batches whose timer already fired to finish draining"""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

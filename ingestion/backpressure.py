"""
Backpressure control between the decoder and the batch processor.

The controller is a small state machine owned by the import runner:

    idle ──(watermark)──> batch_in_flight ──(batch done)──> idle
    idle ──(end of stream)──> draining ──(buffer empty)──> finished
    any non-terminal ──(fatal error)──> failed

While a batch is in flight the runner does not pull from the decoder, so
at most one batch of rows sits in the buffer. Every transition is a plain
synchronous method; there is no re-entrant completion check.
"""

import asyncio
import enum
import logging
from typing import Generic, List, Optional, TypeVar

from core.exceptions import PipelineStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    BATCH_IN_FLIGHT = "batch_in_flight"
    DRAINING = "draining"
    FINISHED = "finished"
    FAILED = "failed"


_TRANSITIONS = {
    PipelineState.IDLE: {PipelineState.BATCH_IN_FLIGHT, PipelineState.DRAINING, PipelineState.FAILED},
    PipelineState.BATCH_IN_FLIGHT: {PipelineState.IDLE, PipelineState.FAILED},
    PipelineState.DRAINING: {PipelineState.FINISHED, PipelineState.FAILED},
    PipelineState.FINISHED: set(),
    PipelineState.FAILED: set(),
}


async def cooperative_yield():
    """Give other tasks on the event loop one turn before the next batch"""
    await asyncio.sleep(0)


class BackpressureController(Generic[T]):
    """
    Bounded row buffer with an explicit batch lifecycle.

    Args:
        batch_size: Rows per batch; also the buffer watermark
    """

    def __init__(self, batch_size: int):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size
        self.state = PipelineState.IDLE
        self.high_water_mark = 0
        self.batches_cut = 0
        self._buffer: List[T] = []

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def accepts_rows(self) -> bool:
        return self.state == PipelineState.IDLE

    @property
    def is_terminal(self) -> bool:
        return self.state in (PipelineState.FINISHED, PipelineState.FAILED)

    def push(self, row: T) -> bool:
        """
        Buffer one decoded row.

        Returns:
            True when the buffer has reached the batch watermark
        """
        if not self.accepts_rows:
            raise PipelineStateError(
                "Cannot buffer rows outside the idle state",
                context={"state": self.state.value}
            )
        self._buffer.append(row)
        self.high_water_mark = max(self.high_water_mark, len(self._buffer))
        return len(self._buffer) >= self.batch_size

    def begin_batch(self) -> List[T]:
        """Suspend decoding and cut exactly one batch from the buffer"""
        self._transition(PipelineState.BATCH_IN_FLIGHT)
        return self._cut()

    def end_batch(self):
        """Batch persisted; decoding may resume"""
        self._transition(PipelineState.IDLE)

    def end_stream(self):
        """Decoder exhausted; remaining rows will be drained"""
        self._transition(PipelineState.DRAINING)

    def next_drain_batch(self) -> Optional[List[T]]:
        """
        Next chunk of leftover rows after end of stream.

        The last chunk may be smaller than batch_size. Returns None and
        moves to finished once nothing is left.
        """
        if self.state != PipelineState.DRAINING:
            raise PipelineStateError(
                "Drain requested outside the draining state",
                context={"state": self.state.value}
            )
        if not self._buffer:
            self._transition(PipelineState.FINISHED)
            return None
        return self._cut()

    def fail(self):
        """Abort: drop buffered rows, nothing further is processed"""
        if self.is_terminal:
            return
        dropped = len(self._buffer)
        self._buffer.clear()
        self._transition(PipelineState.FAILED)
        if dropped:
            logger.debug(f"Dropped {dropped} buffered rows after fatal error")

    def _cut(self) -> List[T]:
        batch = self._buffer[:self.batch_size]
        del self._buffer[:self.batch_size]
        self.batches_cut += 1
        return batch

    def _transition(self, target: PipelineState):
        if target not in _TRANSITIONS[self.state]:
            raise PipelineStateError(
                f"Illegal pipeline transition {self.state.value} -> {target.value}",
                context={"from": self.state.value, "to": target.value}
            )
        self.state = target

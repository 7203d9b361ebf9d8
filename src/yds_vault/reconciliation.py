from __future__ import annotations

from collections.abc import Iterable

from .logger import get_logger
from .reader import ContractReader, QueryKey
from .scheduler import Scheduler, Subscription

logger = get_logger(__name__)


class ReconciliationScheduler:
    """Re-reads queries affected by a confirmed write at staggered offsets.

    The node may confirm a write before its read path reflects it, so each
    confirmation triggers one re-read per offset. Nothing guarantees the
    last re-read observes the new state; regular polling continues after.
    """

    def __init__(
        self,
        reader: ContractReader,
        scheduler: Scheduler,
        offsets: Iterable[float],
    ) -> None:
        self._reader = reader
        self._scheduler = scheduler
        self.offsets = tuple(offsets)

    def on_operation_confirmed(self, affected: Iterable[QueryKey]) -> list[Subscription]:
        keys = frozenset(key for key in affected if key.enabled)
        if not keys:
            return []

        logger.debug(
            "Scheduling re-reads of %d queries at %s s", len(keys), list(self.offsets)
        )
        return [
            self._scheduler.call_later(
                offset,
                self._reader.refetch,
                keys,
                name=f"reconcile+{offset}s",
            )
            for offset in self.offsets
        ]

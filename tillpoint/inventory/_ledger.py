"""
Compensation ledger — undo log for writes that have no native transaction.

Every applied write records how to undo itself. If a later write fails,
recorded undos run in reverse order.

    ledger = Ledger()
    reserve(k, 3)
    ledger.record(lambda: release(k, 3))
    ...
    report = await ledger.rollback()
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

type Undo = Callable[[], Awaitable[None]]
"""Compensation action that reverts one applied write."""


@dataclass(frozen=True, slots=True)
class RollbackReport:
    undos_run: int
    undos_failed: int

    @property
    def complete(self) -> bool:
        return self.undos_failed == 0


@dataclass(slots=True)
class Ledger:
    _undos: list[Undo] = field(default_factory=list[Undo])

    def __len__(self) -> int:
        return len(self._undos)

    def record(self, undo: Undo) -> None:
        """Record an undo for a write that has just been applied."""
        self._undos.append(undo)

    async def rollback(self) -> RollbackReport:
        """Run undos in reverse. Keeps going past a failed undo."""
        run = 0
        failed = 0
        for undo in reversed(self._undos):
            try:
                await undo()
                run += 1
            except Exception:
                logger.exception("compensation failed")
                failed += 1
        self._undos.clear()
        return RollbackReport(undos_run=run, undos_failed=failed)

    def commit(self) -> None:
        """Forget recorded undos; the writes are final."""
        self._undos.clear()


__all__ = ("Undo", "RollbackReport", "Ledger")

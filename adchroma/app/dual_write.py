"""Index-then-record writes with a compensating index action.

The vector index and the record store cannot commit together. Every write
that touches both runs as a two-step saga:

1. ``index_step`` mutates the index.
2. ``record_step`` mutates the record store.
3. If step 2 raises, ``compensate`` reverses step 1 and the original error
   propagates to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _noop() -> None:
    return None


@dataclass(slots=True)
class DualWrite(Generic[T]):
    """One index mutation followed by one record mutation."""

    operation: str
    index_step: Callable[[], object]
    record_step: Callable[[], T]
    compensate: Callable[[], object] = _noop

    def run(self) -> T:
        """Apply both steps, compensating the first if the second fails.

        Raises:
            Exception: whatever ``index_step`` or ``record_step`` raised. A
                failure inside ``compensate`` is logged and does not replace
                the record-step error.
        """
        self.index_step()
        try:
            return self.record_step()
        except Exception as exc:
            logger.warning(
                "%s: record write failed after index write; compensating (%s)",
                self.operation,
                exc,
            )
            try:
                self.compensate()
            except Exception:
                logger.exception(
                    "%s: compensation failed; index and record store have diverged",
                    self.operation,
                )
            raise

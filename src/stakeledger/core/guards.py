"""
Reentrancy guard for mutating ledger operations.

A single flag per component: set on entry, cleared on every exit path. A
second entry while the flag is set fails immediately, before touching any
state. Token callbacks that try to re-enter a ledger therefore abort the
whole operation instead of seeing half-applied updates.
"""

from __future__ import annotations

import logging

from .exceptions import ReentrancyError

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    def __init__(self, name: str):
        self.name = name
        self._entered = False

    @property
    def entered(self) -> bool:
        return self._entered

    def __enter__(self) -> "ReentrancyGuard":
        if self._entered:
            logger.warning(
                "Reentrant call rejected on %s",
                self.name,
                extra={"event": "guard.reentrancy_rejected", "component": self.name},
            )
            raise ReentrancyError(
                f"{self.name}: reentrant call",
                details={"component": self.name},
            )
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._entered = False
        return False

"""
Event coordinator.

The single authoritative record of which events have been received
during a run. Instrumented nodes, external event workers and the run
controller all query and update the same :class:`EventCoordinator`,
usually through the HTTP server in :mod:`runseq.execution.server`.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional

from runseq.core.compiler import CompiledSequence
from runseq.utils.logger import RunLogger


class EventCoordinator:
    """
    Thread-safe store of received events.

    On construction, BLOCK markers in the sequence whose dependencies
    already hold are marked received. After every new receipt the
    remaining markers are checked again, so a marker is received as
    soon as its dependencies are.

    Attributes:
        compiled: The compiled run sequence.
        logger: Logger for receipts.
    """

    def __init__(
        self,
        compiled: CompiledSequence,
        logger: Optional[RunLogger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            compiled: The compiled run sequence.
            logger: Optional logger (silent by default).
            clock: Time source for receipt timestamps.
        """
        self.compiled = compiled
        self.logger = logger or RunLogger.silent()
        self._clock = clock
        self._lock = threading.RLock()
        self._received: Dict[str, float] = {}
        self._last_received_at: float = clock()
        self._markers = [e.name for e in compiled.block_markers()]

        with self._lock:
            self._mark_eligible_block_markers()

    # ---- Queries ---- #

    def has_received(self, name: str) -> bool:
        with self._lock:
            return name in self._received

    def dependencies_met(self, name: str, include_self: bool = False) -> bool:
        """
        Check whether every dependency of ``name`` has been received.

        Args:
            name: Event name.
            include_self: Also require ``name`` itself to be received.

        Returns:
            False for names that are not declared in the deployment.
        """
        if self.compiled.event(name) is None:
            return False
        with self._lock:
            return self._dependencies_met(name, include_self)

    def block_dependencies_met(self, name: str) -> bool:
        """
        Check whether ``name`` may pause execution now.

        True for non-blocking events and for blocking events without a
        blocking condition; otherwise the condition must be received.
        """
        event = self.compiled.event(name)
        if event is None or not event.is_blocking:
            return True
        condition = self.compiled.blocking_condition(name)
        if condition is None:
            return True
        return self.has_received(condition)

    def sequence_complete(self) -> bool:
        """True once every event of the run sequence has been received."""
        with self._lock:
            return all(name in self._received for name in self.compiled.names)

    def pending(self) -> List[str]:
        """Sequence events not yet received, in textual order."""
        with self._lock:
            return [n for n in self.compiled.names if n not in self._received]

    @property
    def last_received_at(self) -> float:
        """Clock reading of the latest new receipt (or of construction)."""
        with self._lock:
            return self._last_received_at

    def inactivity_exceeded(self, seconds: Optional[float]) -> bool:
        """
        Check whether no new event arrived for more than ``seconds``.

        Always False when ``seconds`` is None or the sequence is
        complete.
        """
        if seconds is None or self.sequence_complete():
            return False
        return self._clock() - self.last_received_at > seconds

    def received(self) -> Dict[str, float]:
        """Snapshot of ``name -> receipt time``."""
        with self._lock:
            return dict(self._received)

    # ---- Updates ---- #

    def receive(self, name: str) -> bool:
        """
        Record that ``name`` happened.

        Receiving an event twice has the same effect as receiving it
        once.

        Returns:
            True if this call recorded the event, False if it was
            already received.
        """
        with self._lock:
            if not self._insert(name):
                return False
            self._mark_eligible_block_markers()
            return True

    # ---- Internals (lock held) ---- #

    def _insert(self, name: str) -> bool:
        if name in self._received:
            return False
        now = self._clock()
        self._received[name] = now
        self._last_received_at = now
        self.logger.event_received(name, self._pending_count())
        return True

    def _dependencies_met(self, name: str, include_self: bool) -> bool:
        depends = self.compiled.depends_on(name)
        if depends is not None and not all(d in self._received for d in depends):
            return False
        return not include_self or name in self._received

    def _mark_eligible_block_markers(self) -> None:
        changed = True
        while changed:
            changed = False
            for name in self._markers:
                if name not in self._received and self._dependencies_met(name, False):
                    self._insert(name)
                    changed = True

    def _pending_count(self) -> int:
        return sum(1 for n in self.compiled.names if n not in self._received)

"""
Event definitions for run sequences.

Every event that may appear in a run sequence is an
:class:`EventDefinition`, a closed variant discriminated by
:class:`EventKind`. Internal events happen inside an instrumented node
(stack traces, scheduling markers, garbage collection); external events
are applied to the environment by a runtime engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class EventKind(Enum):
    """Discriminant of :class:`EventDefinition`."""

    STACK_TRACE = "stack_trace"
    SCHEDULING = "scheduling"
    GARBAGE_COLLECTION = "garbage_collection"
    NODE_OPERATION = "node_operation"
    NETWORK_OPERATION = "network_operation"
    CLOCK_DRIFT = "clock_drift"
    WORKLOAD = "workload"


class SchedulingPoint(Enum):
    """Where around the target call execution may be paused."""

    BEFORE = "before"
    AFTER = "after"


class SchedulingOperation(Enum):
    BLOCK = "block"
    UNBLOCK = "unblock"


class NodeOperation(Enum):
    START = "start"
    STOP = "stop"
    KILL = "kill"
    RESET = "reset"


class NetworkOperation(Enum):
    PARTITION = "partition"
    REMOVE_PARTITION = "remove_partition"
    LINK_DOWN = "link_down"
    LINK_UP = "link_up"


INTERNAL_KINDS = frozenset({
    EventKind.STACK_TRACE,
    EventKind.SCHEDULING,
    EventKind.GARBAGE_COLLECTION,
})

DEFAULT_SECONDS_UNTIL_FORCED_STOP = 5


@dataclass(frozen=True)
class EventDefinition:
    """
    Immutable description of a named event.

    Only the fields relevant to ``kind`` may be set; the rest stay at
    their defaults.

    Attributes:
        name: Unique event name, referenced from the run sequence.
        kind: The event variant.
        node: Owning node (internal kinds, node operations, clock
            drift, workloads with a command).
        stack: Qualified method names, outermost first, target call
            last (stack trace events).
        point: Scheduling point (stack trace and scheduling events).
        operation: BLOCK or UNBLOCK (scheduling events).
        target: Name of the stack trace event a scheduling marker
            refers to.
        node_operation: The node operation to apply.
        seconds_until_forced_stop: Grace period for STOP and RESET.
        network_operation: The network operation to apply.
        partitions: Partition scheme, e.g. ``"n1-n2,n3"``.
        amount: Clock drift in milliseconds.
        command: Shell command for a workload event.
    """

    name: str
    kind: EventKind
    node: Optional[str] = None
    stack: Tuple[str, ...] = ()
    point: Optional[SchedulingPoint] = None
    operation: Optional[SchedulingOperation] = None
    target: Optional[str] = None
    node_operation: Optional[NodeOperation] = None
    seconds_until_forced_stop: int = DEFAULT_SECONDS_UNTIL_FORCED_STOP
    network_operation: Optional[NetworkOperation] = None
    partitions: Optional[str] = None
    amount: int = 0
    command: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the fields required by each kind."""
        if not self.name:
            raise ValueError("Event name must be non-empty")
        kind = self.kind
        if kind in INTERNAL_KINDS and not self.node:
            raise ValueError(f"Event '{self.name}' requires a node")
        if kind is EventKind.STACK_TRACE:
            if not self.stack:
                raise ValueError(
                    f"Stack trace event '{self.name}' requires a stack"
                )
            if self.point is None:
                object.__setattr__(self, "point", SchedulingPoint.BEFORE)
        elif kind is EventKind.SCHEDULING:
            if self.operation is None or self.point is None:
                raise ValueError(
                    f"Scheduling event '{self.name}' requires an operation "
                    f"and a point"
                )
            if not self.target:
                raise ValueError(
                    f"Scheduling event '{self.name}' requires a target"
                )
        elif kind is EventKind.NODE_OPERATION:
            if self.node_operation is None or not self.node:
                raise ValueError(
                    f"Node operation event '{self.name}' requires a node "
                    f"and an operation"
                )
            if self.seconds_until_forced_stop < 0:
                raise ValueError("seconds_until_forced_stop must be >= 0")
        elif kind is EventKind.NETWORK_OPERATION:
            if self.network_operation is None or not self.partitions:
                raise ValueError(
                    f"Network operation event '{self.name}' requires an "
                    f"operation and partitions"
                )
        elif kind is EventKind.CLOCK_DRIFT:
            if not self.node:
                raise ValueError(
                    f"Clock drift event '{self.name}' requires a node"
                )
        elif kind is EventKind.WORKLOAD:
            if self.command is not None and not self.node:
                raise ValueError(
                    f"Workload event '{self.name}' with a command "
                    f"requires a node"
                )

    # ---- #

    @property
    def is_internal(self) -> bool:
        """True for events that happen inside an instrumented node."""
        return self.kind in INTERNAL_KINDS

    @property
    def is_external(self) -> bool:
        return not self.is_internal

    @property
    def is_blocking(self) -> bool:
        """
        True for events that pause execution at an instrumented point.

        These are stack trace events and UNBLOCK scheduling markers. A
        BLOCK marker only signals that the point is closed.
        """
        if self.kind is EventKind.STACK_TRACE:
            return True
        return (
            self.kind is EventKind.SCHEDULING
            and self.operation is SchedulingOperation.UNBLOCK
        )

    @property
    def is_block_marker(self) -> bool:
        return (
            self.kind is EventKind.SCHEDULING
            and self.operation is SchedulingOperation.BLOCK
        )

    @property
    def is_test_case_event(self) -> bool:
        """True for workload events driven by the test itself."""
        return self.kind is EventKind.WORKLOAD and self.command is None

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name}"

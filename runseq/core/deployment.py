"""
Deployment description.

A :class:`Deployment` is the immutable configuration of one test run:
its nodes, its event definitions, the run sequence and coordinator
settings. It is assembled with a flat fluent :class:`DeploymentBuilder`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from runseq.core.events import (
    DEFAULT_SECONDS_UNTIL_FORCED_STOP,
    EventDefinition,
    EventKind,
    NetworkOperation,
    NodeOperation,
    SchedulingOperation,
    SchedulingPoint,
)
from runseq.errors import NameConflictError

DEFAULT_EVENT_SERVER_PORT = 8765
DEFAULT_SECONDS_TO_WAIT_FOR_COMPLETION = 5


@dataclass(frozen=True)
class Node:
    """
    A process under test.

    Attributes:
        name: Unique node name.
        start_command: Command the runtime engine uses to start it.
        environment: Extra environment variables as ``(key, value)``
            pairs.
    """

    name: str
    start_command: Optional[str] = None
    environment: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Node name must be non-empty")

    @property
    def env(self) -> Dict[str, str]:
        return dict(self.environment)


@dataclass(frozen=True)
class Deployment:
    """
    Immutable configuration of a test run.

    Attributes:
        name: Deployment name.
        nodes: Declared nodes.
        events: Declared event definitions.
        run_sequence: The run sequence expression, if any.
        event_server_port: Port the coordinator listens on (0 picks a
            free port).
        seconds_to_wait_for_completion: Grace period given to nodes
            when the run is stopped.
        next_event_receipt_timeout: Default inactivity timeout in
            seconds for :meth:`RunController.wait_for_completion`.
    """

    name: str
    nodes: Tuple[Node, ...] = ()
    events: Tuple[EventDefinition, ...] = ()
    run_sequence: Optional[str] = None
    event_server_port: int = DEFAULT_EVENT_SERVER_PORT
    seconds_to_wait_for_completion: int = DEFAULT_SECONDS_TO_WAIT_FOR_COMPLETION
    next_event_receipt_timeout: Optional[float] = None
    _events_by_name: Mapping[str, EventDefinition] = field(
        init=False, repr=False, compare=False, hash=False,
    )
    _nodes_by_name: Mapping[str, Node] = field(
        init=False, repr=False, compare=False, hash=False,
    )

    def __post_init__(self) -> None:
        """Index entities and reject name conflicts."""
        seen: Dict[str, str] = {}
        for kind, names in (
            ("node", [n.name for n in self.nodes]),
            ("event", [e.name for e in self.events]),
        ):
            for name in names:
                if name in seen:
                    raise NameConflictError(
                        f"Name '{name}' is used more than once "
                        f"({seen[name]} and {kind})"
                    )
                seen[name] = kind
        if not 0 <= self.event_server_port <= 65535:
            raise ValueError(
                f"event_server_port out of range: {self.event_server_port}"
            )
        object.__setattr__(
            self, "_events_by_name", {e.name: e for e in self.events}
        )
        object.__setattr__(
            self, "_nodes_by_name", {n.name: n for n in self.nodes}
        )

    # ---- #

    def event(self, name: str) -> Optional[EventDefinition]:
        """Return the event named ``name``, or None."""
        return self._events_by_name.get(name)

    def node(self, name: str) -> Optional[Node]:
        return self._nodes_by_name.get(name)

    def has_node(self, name: str) -> bool:
        return name in self._nodes_by_name

    @property
    def node_names(self) -> Tuple[str, ...]:
        return tuple(n.name for n in self.nodes)

    @property
    def event_names(self) -> Tuple[str, ...]:
        return tuple(e.name for e in self.events)

    def events_of_node(self, node: str) -> List[EventDefinition]:
        """Return the internal events owned by ``node``."""
        return [e for e in self.events if e.is_internal and e.node == node]


class DeploymentBuilder:
    """
    Flat fluent builder for :class:`Deployment`.

    Every method returns the builder itself::

        deployment = (
            DeploymentBuilder("example")
            .node("n1")
            .stack_trace("e1", "n1", ["app.Server.handle"])
            .start_node("n1Started", "n1")
            .run_sequence("n1Started * e1")
            .build()
        )
    """

    def __init__(self, name: str = "deployment") -> None:
        self._name = name
        self._nodes: List[Node] = []
        self._events: List[EventDefinition] = []
        self._run_sequence: Optional[str] = None
        self._event_server_port = DEFAULT_EVENT_SERVER_PORT
        self._seconds_to_wait = DEFAULT_SECONDS_TO_WAIT_FOR_COMPLETION
        self._next_event_receipt_timeout: Optional[float] = None

    # ---- Nodes ---- #

    def node(
        self,
        name: str,
        start_command: Optional[str] = None,
        environment: Optional[Mapping[str, str]] = None,
    ) -> DeploymentBuilder:
        env = tuple(sorted((environment or {}).items()))
        self._nodes.append(Node(name, start_command, env))
        return self

    # ---- Internal events ---- #

    def stack_trace(
        self,
        name: str,
        node: str,
        stack: Iterable[str] | str,
        block_after: bool = False,
    ) -> DeploymentBuilder:
        """
        Declare a stack trace event.

        Args:
            name: Event name.
            node: Owning node.
            stack: Qualified method names, outermost first, or one
                comma-separated string.
            block_after: Pause after the target call instead of before.
        """
        point = SchedulingPoint.AFTER if block_after else SchedulingPoint.BEFORE
        return self._add(EventDefinition(
            name, EventKind.STACK_TRACE, node=node,
            stack=_split_stack(stack), point=point,
        ))

    def block_before(self, name: str, node: str, target: str) -> DeploymentBuilder:
        return self._scheduling(
            name, node, target, SchedulingOperation.BLOCK, SchedulingPoint.BEFORE,
        )

    def block_after(self, name: str, node: str, target: str) -> DeploymentBuilder:
        return self._scheduling(
            name, node, target, SchedulingOperation.BLOCK, SchedulingPoint.AFTER,
        )

    def unblock_before(self, name: str, node: str, target: str) -> DeploymentBuilder:
        return self._scheduling(
            name, node, target, SchedulingOperation.UNBLOCK, SchedulingPoint.BEFORE,
        )

    def unblock_after(self, name: str, node: str, target: str) -> DeploymentBuilder:
        return self._scheduling(
            name, node, target, SchedulingOperation.UNBLOCK, SchedulingPoint.AFTER,
        )

    def garbage_collection(self, name: str, node: str) -> DeploymentBuilder:
        return self._add(
            EventDefinition(name, EventKind.GARBAGE_COLLECTION, node=node)
        )

    # ---- External events ---- #

    def start_node(self, name: str, node: str) -> DeploymentBuilder:
        return self._node_op(name, node, NodeOperation.START)

    def stop_node(
        self,
        name: str,
        node: str,
        seconds_until_forced_stop: int = DEFAULT_SECONDS_UNTIL_FORCED_STOP,
    ) -> DeploymentBuilder:
        return self._node_op(name, node, NodeOperation.STOP, seconds_until_forced_stop)

    def kill_node(self, name: str, node: str) -> DeploymentBuilder:
        return self._node_op(name, node, NodeOperation.KILL)

    def restart_node(
        self,
        name: str,
        node: str,
        seconds_until_forced_stop: int = DEFAULT_SECONDS_UNTIL_FORCED_STOP,
    ) -> DeploymentBuilder:
        return self._node_op(name, node, NodeOperation.RESET, seconds_until_forced_stop)

    def network_partition(self, name: str, partitions: str) -> DeploymentBuilder:
        return self._network_op(name, NetworkOperation.PARTITION, partitions)

    def remove_network_partition(self, name: str, partitions: str) -> DeploymentBuilder:
        return self._network_op(name, NetworkOperation.REMOVE_PARTITION, partitions)

    def link_down(self, name: str, node1: str, node2: str) -> DeploymentBuilder:
        return self._network_op(name, NetworkOperation.LINK_DOWN, f"{node1},{node2}")

    def link_up(self, name: str, node1: str, node2: str) -> DeploymentBuilder:
        return self._network_op(name, NetworkOperation.LINK_UP, f"{node1},{node2}")

    def clock_drift(self, name: str, node: str, amount: int) -> DeploymentBuilder:
        return self._add(
            EventDefinition(name, EventKind.CLOCK_DRIFT, node=node, amount=amount)
        )

    def workload(self, name: str, node: str, command: str) -> DeploymentBuilder:
        return self._add(
            EventDefinition(name, EventKind.WORKLOAD, node=node, command=command)
        )

    def test_case_events(self, *names: str) -> DeploymentBuilder:
        """Declare events that the test drives through ``enforce_order``."""
        for name in names:
            self._add(EventDefinition(name, EventKind.WORKLOAD))
        return self

    # ---- Run settings ---- #

    def run_sequence(self, sequence: str) -> DeploymentBuilder:
        self._run_sequence = sequence
        return self

    def event_server_port(self, port: int) -> DeploymentBuilder:
        self._event_server_port = port
        return self

    def seconds_to_wait_for_completion(self, seconds: int) -> DeploymentBuilder:
        self._seconds_to_wait = seconds
        return self

    def next_event_receipt_timeout(self, seconds: Optional[float]) -> DeploymentBuilder:
        self._next_event_receipt_timeout = seconds
        return self

    def build(self) -> Deployment:
        """
        Create the deployment.

        Raises:
            NameConflictError: If two entities share a name.
        """
        return Deployment(
            name=self._name,
            nodes=tuple(self._nodes),
            events=tuple(self._events),
            run_sequence=self._run_sequence,
            event_server_port=self._event_server_port,
            seconds_to_wait_for_completion=self._seconds_to_wait,
            next_event_receipt_timeout=self._next_event_receipt_timeout,
        )

    # ---- #

    def _add(self, event: EventDefinition) -> DeploymentBuilder:
        self._events.append(event)
        return self

    def _scheduling(
        self,
        name: str,
        node: str,
        target: str,
        operation: SchedulingOperation,
        point: SchedulingPoint,
    ) -> DeploymentBuilder:
        return self._add(EventDefinition(
            name, EventKind.SCHEDULING, node=node,
            operation=operation, point=point, target=target,
        ))

    def _node_op(
        self,
        name: str,
        node: str,
        operation: NodeOperation,
        seconds_until_forced_stop: int = DEFAULT_SECONDS_UNTIL_FORCED_STOP,
    ) -> DeploymentBuilder:
        return self._add(EventDefinition(
            name, EventKind.NODE_OPERATION, node=node,
            node_operation=operation,
            seconds_until_forced_stop=seconds_until_forced_stop,
        ))

    def _network_op(
        self, name: str, operation: NetworkOperation, partitions: str,
    ) -> DeploymentBuilder:
        return self._add(EventDefinition(
            name, EventKind.NETWORK_OPERATION,
            network_operation=operation, partitions=partitions,
        ))


def _split_stack(stack: Iterable[str] | str) -> Tuple[str, ...]:
    if isinstance(stack, str):
        stack = stack.split(",")
    return tuple(s.strip() for s in stack if s.strip())

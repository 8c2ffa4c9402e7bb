"""
Runtime engine interface.

A runtime engine owns the processes of a deployment and applies
environment faults to them. runseq only decides *when* an action runs;
the engine decides *how*. :func:`execute_external_event` maps an
external event onto the engine call it stands for.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Mapping, Optional, Tuple

from runseq.core.deployment import Deployment
from runseq.core.events import (
    EventDefinition,
    EventKind,
    NetworkOperation,
    NodeOperation,
)
from runseq.errors import RuntimeEngineError
from runseq.utils.logger import RunLogger


class RuntimeEngine(ABC):
    """
    Base class for runtime engines.

    ``start`` receives the environment that every node must see so its
    client can reach the event coordinator. Actions that cannot be
    applied raise :class:`~runseq.errors.RuntimeEngineError`.
    """

    @abstractmethod
    def start(self, deployment: Deployment, environment: Mapping[str, str]) -> None:
        """Start the deployment's nodes with ``environment``."""

    @abstractmethod
    def stop(self) -> None:
        """Stop every node and release engine resources."""

    # ---- Node operations ---- #

    @abstractmethod
    def start_node(self, node: str) -> None:
        ...

    @abstractmethod
    def stop_node(self, node: str, seconds_until_forced_stop: int) -> None:
        ...

    @abstractmethod
    def kill_node(self, node: str) -> None:
        ...

    @abstractmethod
    def restart_node(self, node: str, seconds_until_forced_stop: int) -> None:
        ...

    # ---- Network operations ---- #

    @abstractmethod
    def network_partition(self, partitions: str) -> None:
        ...

    @abstractmethod
    def remove_network_partition(self, partitions: str) -> None:
        ...

    @abstractmethod
    def link_down(self, node1: str, node2: str) -> None:
        ...

    @abstractmethod
    def link_up(self, node1: str, node2: str) -> None:
        ...

    # ---- Other ---- #

    @abstractmethod
    def clock_drift(self, node: str, amount: int) -> None:
        """Shift ``node``'s clock by ``amount`` milliseconds."""

    @abstractmethod
    def run_command_in_node(self, node: str, command: str) -> None:
        ...


class DryRunEngine(RuntimeEngine):
    """
    Runtime engine that only records and logs the actions it is asked
    for. Used by ``runseq --serve`` when the nodes are managed
    elsewhere.

    Once started, node actions naming a node outside the deployment
    raise :class:`RuntimeEngineError`.

    Attributes:
        actions: ``(operation, arguments)`` in call order.
        deployment: The started deployment, if any.
    """

    def __init__(self, logger: Optional[RunLogger] = None) -> None:
        self.logger = logger or RunLogger.silent()
        self.actions: List[Tuple[str, Tuple[object, ...]]] = []
        self.environment: Mapping[str, str] = {}
        self.deployment: Optional[Deployment] = None

    def _record(self, operation: str, *args: object) -> None:
        self.actions.append((operation, args))
        self.logger.info(f"Runtime action: {operation}", arguments=args)

    def _check_nodes(self, *nodes: str) -> None:
        if self.deployment is None:
            return
        for node in nodes:
            if not self.deployment.has_node(node):
                raise RuntimeEngineError(
                    f"Node '{node}' is not part of deployment "
                    f"'{self.deployment.name}'"
                )

    def start(self, deployment: Deployment, environment: Mapping[str, str]) -> None:
        self.deployment = deployment
        self.environment = dict(environment)
        self._record("start", deployment.name)

    def stop(self) -> None:
        self._record("stop")

    def start_node(self, node: str) -> None:
        self._check_nodes(node)
        self._record("start_node", node)

    def stop_node(self, node: str, seconds_until_forced_stop: int) -> None:
        self._check_nodes(node)
        self._record("stop_node", node, seconds_until_forced_stop)

    def kill_node(self, node: str) -> None:
        self._check_nodes(node)
        self._record("kill_node", node)

    def restart_node(self, node: str, seconds_until_forced_stop: int) -> None:
        self._check_nodes(node)
        self._record("restart_node", node, seconds_until_forced_stop)

    def network_partition(self, partitions: str) -> None:
        self._record("network_partition", partitions)

    def remove_network_partition(self, partitions: str) -> None:
        self._record("remove_network_partition", partitions)

    def link_down(self, node1: str, node2: str) -> None:
        self._check_nodes(node1, node2)
        self._record("link_down", node1, node2)

    def link_up(self, node1: str, node2: str) -> None:
        self._check_nodes(node1, node2)
        self._record("link_up", node1, node2)

    def clock_drift(self, node: str, amount: int) -> None:
        self._check_nodes(node)
        self._record("clock_drift", node, amount)

    def run_command_in_node(self, node: str, command: str) -> None:
        self._check_nodes(node)
        self._record("run_command_in_node", node, command)


def execute_external_event(event: EventDefinition, engine: RuntimeEngine) -> None:
    """
    Apply an external event through ``engine``.

    Raises:
        ValueError: For internal events and test-case events, which are
            not executed by the engine.
    """
    kind = event.kind
    if kind is EventKind.NODE_OPERATION:
        op = event.node_operation
        if op is NodeOperation.START:
            engine.start_node(event.node)
        elif op is NodeOperation.STOP:
            engine.stop_node(event.node, event.seconds_until_forced_stop)
        elif op is NodeOperation.KILL:
            engine.kill_node(event.node)
        else:
            engine.restart_node(event.node, event.seconds_until_forced_stop)
    elif kind is EventKind.NETWORK_OPERATION:
        op = event.network_operation
        if op is NetworkOperation.PARTITION:
            engine.network_partition(event.partitions)
        elif op is NetworkOperation.REMOVE_PARTITION:
            engine.remove_network_partition(event.partitions)
        else:
            node1, node2 = _link_nodes(event.partitions)
            if op is NetworkOperation.LINK_DOWN:
                engine.link_down(node1, node2)
            else:
                engine.link_up(node1, node2)
    elif kind is EventKind.CLOCK_DRIFT:
        engine.clock_drift(event.node, event.amount)
    elif kind is EventKind.WORKLOAD and event.command is not None:
        engine.run_command_in_node(event.node, event.command)
    else:
        raise ValueError(f"Event '{event.name}' is not executed by a runtime engine")


def _link_nodes(partitions: str) -> Tuple[str, str]:
    nodes = [n.strip() for n in partitions.split(",") if n.strip()]
    if len(nodes) != 2:
        raise ValueError(f"A link needs exactly two nodes, got '{partitions}'")
    return nodes[0], nodes[1]

"""
Instrumentation plan for internal events.

Describes, per node, which runtime client calls must be woven into
which methods so that the node takes part in the run sequence. The
weaving itself is done by an external instrumentation engine; this
module only produces the plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from runseq.core.compiler import CompiledSequence
from runseq.core.events import EventDefinition, EventKind, SchedulingPoint

MAIN_METHOD = "main"


class RuntimeOperation(Enum):
    """Client calls an instrumentation point can make."""

    ENFORCE_ORDER = "enforce_order"
    GARBAGE_COLLECTION = "garbage_collection"
    ALLOW_BLOCKING = "allow_blocking"


@dataclass(frozen=True)
class InstrumentationPoint:
    """
    A location in a node's code.

    Attributes:
        method: Qualified method name, or ``"main"`` for process entry.
        position: Before or after the method body.
    """

    method: str
    position: SchedulingPoint = SchedulingPoint.BEFORE

    def __str__(self) -> str:
        return f"{self.position.value} {self.method}"


@dataclass(frozen=True)
class InstrumentationOperation:
    """One client call with its arguments."""

    operation: RuntimeOperation
    arguments: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.operation.value}({', '.join(self.arguments)})"


@dataclass(frozen=True)
class InstrumentationDefinition:
    """Client calls to weave at one point, in call order."""

    point: InstrumentationPoint
    operations: Tuple[InstrumentationOperation, ...]


def definitions_for(event: EventDefinition, compiled: CompiledSequence) -> List[InstrumentationDefinition]:
    """
    Return the instrumentation an internal event needs.

    Stack trace events and UNBLOCK markers enforce order at the last
    method of their stack; garbage collection events hook the process
    entry point; BLOCK markers need no instrumentation.
    """
    if event.kind is EventKind.STACK_TRACE:
        return [_enforce_order(event.name, event.stack, event.point)]
    if event.kind is EventKind.SCHEDULING:
        if not event.is_blocking:
            return []
        target = compiled.event(event.target)
        return [_enforce_order(event.name, target.stack, event.point)]
    if event.kind is EventKind.GARBAGE_COLLECTION:
        return [InstrumentationDefinition(
            InstrumentationPoint(MAIN_METHOD),
            (InstrumentationOperation(
                RuntimeOperation.GARBAGE_COLLECTION, (event.name,),
            ),),
        )]
    return []


def _enforce_order(
    name: str, stack: Tuple[str, ...], point: Optional[SchedulingPoint],
) -> InstrumentationDefinition:
    return InstrumentationDefinition(
        InstrumentationPoint(stack[-1], point or SchedulingPoint.BEFORE),
        (InstrumentationOperation(
            RuntimeOperation.ENFORCE_ORDER, (name, ",".join(stack)),
        ),),
    )


def instrumentation_plan(compiled: CompiledSequence) -> Dict[str, List[InstrumentationDefinition]]:
    """
    Build the merged instrumentation plan of every node.

    Definitions at the same point are merged in sequence order. Every
    point except the process entry starts with an ``allow_blocking``
    call so that each pass through the method may pause once.

    Returns:
        ``node -> definitions``, nodes without instrumentation omitted.
    """
    per_node: Dict[str, Dict[InstrumentationPoint, List[InstrumentationOperation]]] = {}
    for event in compiled.internal_events():
        for definition in definitions_for(event, compiled):
            points = per_node.setdefault(event.node, {})
            points.setdefault(definition.point, []).extend(definition.operations)

    plan: Dict[str, List[InstrumentationDefinition]] = {}
    for node, points in per_node.items():
        definitions = []
        for point, operations in points.items():
            if point.method != MAIN_METHOD:
                operations = [
                    InstrumentationOperation(RuntimeOperation.ALLOW_BLOCKING),
                    *operations,
                ]
            definitions.append(InstrumentationDefinition(point, tuple(operations)))
        plan[node] = definitions
    return plan

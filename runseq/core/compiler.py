"""
Run sequence compiler.

Turns the run sequence of a :class:`Deployment` into a dependency graph
(``depends_on``) and a blocking chain (``blocking_condition``).

Dependencies are resolved left to right. Each event looks at the last
operator and operand of the nearest enclosing level that has one:

- no operand yet: the event has no dependencies,
- ``*``: the event depends on the operand (every member of a group),
- ``|``: the event inherits the dependencies of the operand (of the
  first member of a group).

Blocking events that pause at the same (point, stack) are chained in
textual order: each one may only pause after the previous one with the
same key has been received.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple

from runseq.core.deployment import Deployment
from runseq.core.events import (
    EventDefinition,
    EventKind,
    SchedulingOperation,
    SchedulingPoint,
)
from runseq.errors import (
    BadReferenceError,
    DuplicateEventError,
    UnknownEventError,
    UnmatchedBlockError,
)
from runseq.parser.ast_nodes import AND, EventRef, Sequence, Term
from runseq.parser.sequence import parse_sequence
from runseq.utils.logger import RunLogger

# (operator, operand members) to the left of a term
_Context = Optional[Tuple[str, Tuple[str, ...]]]


@dataclass(frozen=True)
class CompiledSequence:
    """
    Immutable result of compiling a run sequence.

    Attributes:
        deployment: The deployment the sequence was compiled against.
        text: The run sequence expression ("" when there is none).
        ast: The parsed sequence, or None when there is none.
        names: Event names in textual order.
    """

    deployment: Deployment
    text: str
    ast: Optional[Sequence]
    names: Tuple[str, ...]
    _depends_on: Mapping[str, Optional[FrozenSet[str]]] = field(
        repr=False, compare=False, hash=False,
    )
    _blocking_conditions: Mapping[str, Optional[str]] = field(
        repr=False, compare=False, hash=False,
    )
    _name_set: FrozenSet[str] = field(
        init=False, repr=False, compare=False, hash=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_name_set", frozenset(self.names))

    # ---- Queries ---- #

    def is_in_sequence(self, name: str) -> bool:
        return name in self._name_set

    def event(self, name: str) -> Optional[EventDefinition]:
        return self.deployment.event(name)

    def depends_on(self, name: str) -> Optional[FrozenSet[str]]:
        """
        Return the events that must all be received before ``name``.

        None means the event has no dependencies (or is not part of the
        sequence).
        """
        return self._depends_on.get(name)

    def blocking_condition(self, name: str) -> Optional[str]:
        """Return the event that must be received before ``name`` may pause."""
        return self._blocking_conditions.get(name)

    def dependency_graph(self) -> Dict[str, FrozenSet[str]]:
        """Return ``name -> dependencies`` for every sequence event."""
        return {
            name: self._depends_on.get(name) or frozenset()
            for name in self.names
        }

    def external_events(self) -> List[EventDefinition]:
        """External events in the sequence, in textual order."""
        return [e for e in self._sequence_events() if e.is_external]

    def internal_events(self) -> List[EventDefinition]:
        return [e for e in self._sequence_events() if e.is_internal]

    def block_markers(self) -> List[EventDefinition]:
        """BLOCK scheduling events in the sequence, in textual order."""
        return [e for e in self._sequence_events() if e.is_block_marker]

    def _sequence_events(self) -> Iterator[EventDefinition]:
        for name in self.names:
            event = self.deployment.event(name)
            if event is not None:
                yield event

    def __len__(self) -> int:
        return len(self.names)


class SequenceCompiler:
    """
    Compiles and verifies the run sequence of a deployment.

    Verification order: event references, grammar, duplicate names,
    unknown names, BLOCK/UNBLOCK pairing. The first problem found is
    raised as a :class:`CompileError` subclass.

    Usage::

        compiled = SequenceCompiler(deployment).compile()
        compiled.depends_on("e2")
    """

    def __init__(
        self, deployment: Deployment, logger: Optional[RunLogger] = None,
    ) -> None:
        self.deployment = deployment
        self.logger = logger or RunLogger.silent()
        self._depends_on: Dict[str, Optional[FrozenSet[str]]] = {}

    def compile(self) -> CompiledSequence:
        """
        Compile the deployment's run sequence.

        Returns:
            The immutable :class:`CompiledSequence`.

        Raises:
            BadReferenceError: An event references an undeclared node
                or an unsuitable target event.
            ParseError: The sequence is malformed.
            DuplicateEventError: A name occurs twice in the sequence.
            UnknownEventError: A name is not a declared event.
            UnmatchedBlockError: BLOCK/UNBLOCK markers do not pair up.
        """
        self._verify_references()

        text = self.deployment.run_sequence
        if text is None:
            return CompiledSequence(self.deployment, "", None, (), {}, {})

        ast = parse_sequence(text)
        refs = list(_event_refs(ast))
        self._check_duplicates(refs)

        self._depends_on = {}
        self._resolve(ast, None)
        names = tuple(ref.name for ref in refs)
        blocking = self._resolve_blocking_conditions(names)
        self._check_block_pairs(names)

        self.logger.info(
            "Run sequence compiled",
            sequence=str(ast),
            events=len(names),
        )
        return CompiledSequence(
            self.deployment, text, ast, names, dict(self._depends_on), blocking,
        )

    # ---- Reference verification ---- #

    def _verify_references(self) -> None:
        deployment = self.deployment
        for event in deployment.events:
            if event.node is not None and not deployment.has_node(event.node):
                raise BadReferenceError(
                    f"Event '{event.name}' references undefined node "
                    f"'{event.node}'"
                )
            if event.kind is EventKind.SCHEDULING:
                target = deployment.event(event.target)
                if target is None or target.kind is not EventKind.STACK_TRACE:
                    raise BadReferenceError(
                        f"Scheduling event '{event.name}' must target a stack "
                        f"trace event, got '{event.target}'"
                    )
                if target.node != event.node:
                    raise BadReferenceError(
                        f"Scheduling event '{event.name}' is on node "
                        f"'{event.node}' but its target '{target.name}' is on "
                        f"node '{target.node}'"
                    )
            elif event.kind is EventKind.NETWORK_OPERATION:
                for node in _partition_nodes(event.partitions):
                    if not deployment.has_node(node):
                        raise BadReferenceError(
                            f"Network event '{event.name}' references "
                            f"undefined node '{node}'"
                        )

    # ---- Sequence checks ---- #

    @staticmethod
    def _check_duplicates(refs: List[EventRef]) -> None:
        counts = Counter(ref.name for ref in refs)
        seen = set()
        for ref in refs:
            if ref.name in seen:
                raise DuplicateEventError(
                    f"Event '{ref.name}' appears {counts[ref.name]} times in "
                    f"the run sequence (index {ref.offset})",
                    offset=ref.offset,
                )
            seen.add(ref.name)

    def _check_block_pairs(self, names: Tuple[str, ...]) -> None:
        open_blocks: Dict[Tuple[str, SchedulingPoint], str] = {}
        for name in names:
            event = self.deployment.event(name)
            if event.kind is not EventKind.SCHEDULING:
                continue
            key = (event.target, event.point)
            if event.operation is SchedulingOperation.BLOCK:
                if key in open_blocks:
                    raise UnmatchedBlockError(
                        f"Event '{name}' blocks '{event.target}' "
                        f"{event.point.value} again before '{open_blocks[key]}' "
                        f"was unblocked"
                    )
                open_blocks[key] = name
            else:
                open_blocks.pop(key, None)
        if open_blocks:
            pending = ", ".join(sorted(open_blocks.values()))
            raise UnmatchedBlockError(
                f"Unblock events are needed for events: {pending}"
            )

    # ---- Dependency resolution ---- #

    def _resolve(self, sequence: Sequence, context: _Context) -> Tuple[str, ...]:
        """
        Resolve every event of ``sequence`` and return its members.

        Args:
            sequence: The (sub)sequence to resolve.
            context: Operator and operand to the left of the sequence,
                inherited from the enclosing level.
        """
        members: List[str] = []
        left = context
        operand: Tuple[str, ...] = ()
        for index, term in enumerate(sequence.terms):
            if index > 0:
                left = (sequence.operators[index - 1], operand)
            if isinstance(term, EventRef):
                self._resolve_event(term, left)
                operand = (term.name,)
            else:
                operand = self._resolve(term, left)
            members.extend(operand)
        return tuple(members)

    def _resolve_event(self, ref: EventRef, left: _Context) -> None:
        if self.deployment.event(ref.name) is None:
            raise UnknownEventError(
                f"Event '{ref.name}' at index {ref.offset} is not defined",
                offset=ref.offset,
            )
        if left is None:
            depends: Optional[FrozenSet[str]] = None
        else:
            operator, operand = left
            if operator == AND:
                depends = frozenset(operand)
            else:
                depends = self._depends_on.get(operand[0])
        self._depends_on[ref.name] = depends
        self.logger.debug(
            f"Resolved {ref.name}",
            depends_on=sorted(depends) if depends is not None else None,
        )

    def _resolve_blocking_conditions(
        self, names: Tuple[str, ...],
    ) -> Dict[str, Optional[str]]:
        last: Dict[Tuple[SchedulingPoint, Tuple[str, ...]], str] = {}
        conditions: Dict[str, Optional[str]] = {}
        for name in names:
            event = self.deployment.event(name)
            if not event.is_blocking:
                continue
            key = (event.point, self._stack_of(event))
            conditions[name] = last.get(key)
            last[key] = name
        return conditions

    def _stack_of(self, event: EventDefinition) -> Tuple[str, ...]:
        if event.kind is EventKind.SCHEDULING:
            return self.deployment.event(event.target).stack
        return event.stack


def compile_deployment(
    deployment: Deployment, logger: Optional[RunLogger] = None,
) -> CompiledSequence:
    """Compile ``deployment``'s run sequence; see :class:`SequenceCompiler`."""
    return SequenceCompiler(deployment, logger).compile()


def _event_refs(term: Term) -> Iterator[EventRef]:
    if isinstance(term, EventRef):
        yield term
    else:
        for child in term.terms:
            yield from _event_refs(child)


def _partition_nodes(partitions: Optional[str]) -> List[str]:
    """Split ``"n1-n2,n3"`` into node names."""
    if not partitions:
        return []
    return [
        node.strip()
        for group in partitions.split("-")
        for node in group.split(",")
        if node.strip()
    ]

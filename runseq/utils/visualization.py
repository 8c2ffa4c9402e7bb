"""
Visualization utilities for runseq.

Renders a compiled run sequence as a dependency graph in text, DOT
(Graphviz) and JSON form, and prints per-node instrumentation plans.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from runseq.core.compiler import CompiledSequence
from runseq.core.instrumentation import instrumentation_plan


class DependencyGraphVisualizer:
    """
    Visualizer for compiled run sequences.

    Nodes are events; an edge ``a -> b`` means ``b`` waits for ``a``.
    Dashed edges are blocking conditions.

    Attributes:
        compiled: The compiled run sequence.
    """

    def __init__(self, compiled: CompiledSequence) -> None:
        self.compiled = compiled

    def to_text(self) -> str:
        """
        One line per event in sequence order.

        Returns:
            Lines like ``e2 <- e1 [blocks after: e0]``.
        """
        lines: List[str] = [f"=== Run Sequence: {self.compiled.ast or '(none)'} ==="]
        for name in self.compiled.names:
            event = self.compiled.event(name)
            depends = self.compiled.depends_on(name)
            deps = ", ".join(sorted(depends)) if depends else "-"
            line = f"{name} ({event.kind.value}) <- {deps}"
            condition = self.compiled.blocking_condition(name)
            if condition is not None:
                line += f" [blocks after: {condition}]"
            lines.append(line)
        return "\n".join(lines)

    def to_dot(self) -> str:
        """
        Generate DOT format string for Graphviz rendering.

        External events are drawn as boxes, internal events as ellipses.

        Returns:
            A DOT format string.
        """
        lines: List[str] = ["digraph RunSequence {"]
        lines.append("  rankdir=LR;")
        for name in self.compiled.names:
            event = self.compiled.event(name)
            shape = "ellipse" if event.is_internal else "box"
            lines.append(f'  "{name}" [shape={shape}, label="{name}\\n{event.kind.value}"];')
        for name in self.compiled.names:
            for dep in sorted(self.compiled.depends_on(name) or ()):
                lines.append(f'  "{dep}" -> "{name}";')
            condition = self.compiled.blocking_condition(name)
            if condition is not None:
                lines.append(f'  "{condition}" -> "{name}" [style=dashed];')
        lines.append("}")
        return "\n".join(lines)

    def to_json(self) -> str:
        """
        Generate JSON representation of the graph.

        Returns:
            A JSON string with the sequence and one entry per event.
        """
        events: List[Dict[str, Any]] = []
        for name in self.compiled.names:
            depends = self.compiled.depends_on(name)
            events.append(
                {
                    "name": name,
                    "kind": self.compiled.event(name).kind.value,
                    "depends_on": sorted(depends) if depends is not None else None,
                    "blocking_condition": self.compiled.blocking_condition(name),
                }
            )
        return json.dumps(
            {"run_sequence": self.compiled.text, "events": events}, indent=2,
        )

    def render(self, fmt: str) -> str:
        """Render in ``"text"``, ``"dot"`` or ``"json"`` format."""
        renderers = {"text": self.to_text, "dot": self.to_dot, "json": self.to_json}
        if fmt not in renderers:
            raise ValueError(f"Unknown graph format '{fmt}'")
        return renderers[fmt]()


def instrumentation_text(compiled: CompiledSequence) -> str:
    """Per-node instrumentation plan, one point per line."""
    lines: List[str] = []
    for node, definitions in sorted(instrumentation_plan(compiled).items()):
        lines.append(f"[{node}]")
        for definition in definitions:
            calls = "; ".join(str(op) for op in definition.operations)
            lines.append(f"  {definition.point}: {calls}")
    return "\n".join(lines)

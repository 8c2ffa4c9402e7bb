"""
JSON deployment file reader.

Loads a deployment description (nodes, events, run sequence and run
settings) from a JSON file and builds it with
:class:`~runseq.core.deployment.DeploymentBuilder`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from runseq.core.deployment import Deployment, DeploymentBuilder
from runseq.core.events import DEFAULT_SECONDS_UNTIL_FORCED_STOP


class DeploymentReader:
    """
    Parses JSON deployment files.

    Expected format::

        {
          "name": "example",
          "nodes": [{"name": "n1", "start_command": "python -m app"}],
          "events": [
            {"type": "stack_trace", "name": "e1", "node": "n1",
             "stack": "app.main,app.Server.handle", "block_after": false},
            {"type": "block_before", "name": "b1", "node": "n1", "target": "e1"},
            {"type": "start_node", "name": "n1Started", "node": "n1"},
            {"type": "link_down", "name": "x1", "nodes": ["n1", "n2"]},
            {"type": "test_case", "name": "t1"}
          ],
          "run_sequence": "n1Started * e1",
          "event_server_port": 8765,
          "seconds_to_wait_for_completion": 5,
          "next_event_receipt_timeout": 30
        }

    Attributes:
        filepath: Path to the deployment file.
    """

    def __init__(self, filepath: Path) -> None:
        """
        Initialize reader with file path.

        Args:
            filepath: Path to the JSON deployment file.
        """
        self.filepath: Path = Path(filepath)

    def read(self) -> Deployment:
        """
        Read and build the deployment.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid JSON or an entry is
                malformed.
            NameConflictError: If two entities share a name.
        """
        if not self.filepath.exists():
            raise FileNotFoundError(f"Deployment file not found: {self.filepath}")
        try:
            data = json.loads(self.filepath.read_text())
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {self.filepath}: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("Deployment file must contain a JSON object")
        return build_deployment(data, default_name=self.filepath.stem)


def build_deployment(data: Dict[str, Any], default_name: str = "deployment") -> Deployment:
    """Build a deployment from its decoded JSON form."""
    builder = DeploymentBuilder(data.get("name", default_name))

    for entry in data.get("nodes", []):
        builder.node(
            _required(entry, "name", "node"),
            start_command=entry.get("start_command"),
            environment=entry.get("environment"),
        )

    for index, entry in enumerate(data.get("events", [])):
        try:
            _add_event(builder, entry)
        except KeyError as exc:
            raise ValueError(f"Event #{index}: missing field {exc}") from None

    if data.get("run_sequence") is not None:
        builder.run_sequence(data["run_sequence"])
    if "event_server_port" in data:
        builder.event_server_port(int(data["event_server_port"]))
    if "seconds_to_wait_for_completion" in data:
        builder.seconds_to_wait_for_completion(int(data["seconds_to_wait_for_completion"]))
    if data.get("next_event_receipt_timeout") is not None:
        builder.next_event_receipt_timeout(float(data["next_event_receipt_timeout"]))
    return builder.build()


def _add_event(builder: DeploymentBuilder, entry: Dict[str, Any]) -> None:
    kind = entry["type"]
    name = entry["name"]
    grace = int(entry.get("seconds_until_forced_stop", DEFAULT_SECONDS_UNTIL_FORCED_STOP))

    if kind == "stack_trace":
        builder.stack_trace(
            name, entry["node"], entry["stack"], bool(entry.get("block_after", False)),
        )
    elif kind in ("block_before", "block_after", "unblock_before", "unblock_after"):
        getattr(builder, kind)(name, entry["node"], entry["target"])
    elif kind == "garbage_collection":
        builder.garbage_collection(name, entry["node"])
    elif kind in ("start_node", "kill_node"):
        getattr(builder, kind)(name, entry["node"])
    elif kind in ("stop_node", "restart_node"):
        getattr(builder, kind)(name, entry["node"], grace)
    elif kind in ("network_partition", "remove_network_partition"):
        getattr(builder, kind)(name, entry["partitions"])
    elif kind in ("link_down", "link_up"):
        node1, node2 = entry["nodes"]
        getattr(builder, kind)(name, node1, node2)
    elif kind == "clock_drift":
        builder.clock_drift(name, entry["node"], int(entry["amount"]))
    elif kind == "workload":
        builder.workload(name, entry["node"], entry["command"])
    elif kind == "test_case":
        builder.test_case_events(name)
    else:
        raise ValueError(f"Unknown event type '{kind}' for event '{name}'")


def _required(entry: Dict[str, Any], key: str, what: str) -> Any:
    if key not in entry:
        raise ValueError(f"Every {what} needs a '{key}'")
    return entry[key]

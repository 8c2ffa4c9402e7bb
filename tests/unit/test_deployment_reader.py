"""
Tests for the JSON deployment reader.
"""

import json
from pathlib import Path

import pytest

from runseq.core.events import EventKind, NodeOperation, SchedulingPoint
from runseq.errors import NameConflictError
from runseq.utils.deployment_reader import DeploymentReader, build_deployment


class TestReadFixtures:
    """Reading the bundled deployment files."""

    def test_sample(self, deployments_dir: Path) -> None:
        deployment = DeploymentReader(deployments_dir / "sample.json").read()
        assert deployment.name == "sample"
        assert deployment.node_names == ("n1", "n2")
        assert deployment.node("n2").env == {"APP_ROLE": "replica"}
        assert deployment.event("e1").stack == ("app.main", "app.Server.handle")
        assert deployment.event("e3").point is SchedulingPoint.AFTER
        assert deployment.event("x1").partitions == "n1,n2"
        assert deployment.run_sequence.startswith("bbe2")
        assert deployment.seconds_to_wait_for_completion == 3
        assert deployment.next_event_receipt_timeout == 30.0

    def test_external_only(self, deployments_dir: Path) -> None:
        deployment = DeploymentReader(deployments_dir / "external_only.json").read()
        restart = deployment.event("n1Restarted")
        assert restart.node_operation is NodeOperation.RESET
        assert restart.seconds_until_forced_stop == 1
        assert deployment.event("d1").amount == -250
        assert deployment.event_server_port == 0

    def test_test_case_event(self, deployments_dir: Path) -> None:
        deployment = DeploymentReader(deployments_dir / "never_completes.json").read()
        assert deployment.event("t1").kind is EventKind.WORKLOAD
        assert deployment.event("t1").is_test_case_event


class TestErrors:
    """Malformed files."""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="not found"):
            DeploymentReader(tmp_path / "nope.json").read()

    def test_invalid_json(self, deployments_dir: Path) -> None:
        with pytest.raises(ValueError, match="Invalid JSON"):
            DeploymentReader(deployments_dir / "invalid.json").read()

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            DeploymentReader(path).read()

    def test_unknown_event_type(self) -> None:
        with pytest.raises(ValueError, match="Unknown event type 'teleport'"):
            build_deployment({"events": [{"type": "teleport", "name": "t"}]})

    def test_missing_event_field(self) -> None:
        data = {"nodes": [{"name": "n1"}], "events": [{"type": "kill_node", "name": "k"}]}
        with pytest.raises(ValueError, match="Event #0: missing field 'node'"):
            build_deployment(data)

    def test_node_without_name(self) -> None:
        with pytest.raises(ValueError, match="needs a 'name'"):
            build_deployment({"nodes": [{}]})

    def test_name_conflict(self) -> None:
        data = {"nodes": [{"name": "x"}], "events": [{"type": "test_case", "name": "x"}]}
        with pytest.raises(NameConflictError):
            build_deployment(data)

    def test_default_name_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "my_run.json"
        path.write_text(json.dumps({"nodes": []}))
        assert DeploymentReader(path).read().name == "my_run"

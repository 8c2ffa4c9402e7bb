"""
Tests for the runseq command-line interface.

Tests cover graph and instrumentation output, exit codes, error
handling and serving a coordinator until the sequence completes.
"""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

DEPLOYMENTS = Path(__file__).parent.parent / "fixtures" / "deployments"

SAMPLE = str(DEPLOYMENTS / "sample.json")
EXTERNAL_ONLY = str(DEPLOYMENTS / "external_only.json")
NEVER_COMPLETES = str(DEPLOYMENTS / "never_completes.json")


def _run_cli(*args: str, timeout: int = 60) -> subprocess.CompletedProcess[str]:
    """Run the runseq CLI as a subprocess."""
    cmd = [sys.executable, "-m", "runseq", *args]
    return subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        timeout=timeout,
    )


# ---------------------------------------------------------------------------
# Tests: Required Arguments
# ---------------------------------------------------------------------------


class TestRequiredArguments:
    """Test that required arguments are enforced."""

    def test_no_arguments(self) -> None:
        result = _run_cli()
        assert result.returncode == 2

    def test_version(self) -> None:
        result = _run_cli("--version")
        assert result.returncode == 0
        assert result.stdout.startswith("runseq ")


# ---------------------------------------------------------------------------
# Tests: Error Handling
# ---------------------------------------------------------------------------


class TestErrorHandling:
    """Input and compile errors exit with code 2."""

    def test_nonexistent_file(self) -> None:
        result = _run_cli("-f", "/nonexistent/deployment.json")
        assert result.returncode == 2
        assert "not found" in result.stderr

    def test_invalid_json(self) -> None:
        result = _run_cli("-f", str(DEPLOYMENTS / "invalid.json"))
        assert result.returncode == 2
        assert "Invalid JSON" in result.stderr

    def test_unbalanced_sequence(self) -> None:
        result = _run_cli("-f", str(DEPLOYMENTS / "unbalanced.json"))
        assert result.returncode == 2
        assert "Unbalanced '('" in result.stderr

    def test_unmatched_block(self) -> None:
        result = _run_cli("-f", str(DEPLOYMENTS / "unmatched_block.json"))
        assert result.returncode == 2
        assert "Unblock events are needed" in result.stderr

    def test_unknown_graph_format(self) -> None:
        result = _run_cli("-f", SAMPLE, "--graph", "svg")
        assert result.returncode == 2


# ---------------------------------------------------------------------------
# Tests: Graph Output
# ---------------------------------------------------------------------------


class TestGraphOutput:
    """Compiled dependency graph output."""

    def test_default_is_text(self) -> None:
        result = _run_cli("-f", SAMPLE)
        assert result.returncode == 0
        assert "=== Run Sequence: bbe2 * e1" in result.stdout
        assert "e2 (stack_trace) <- x1 [blocks after: ubbe2]" in result.stdout

    def test_dot(self) -> None:
        result = _run_cli("-f", SAMPLE, "--graph", "dot")
        assert result.returncode == 0
        assert "digraph RunSequence" in result.stdout

    def test_json(self) -> None:
        result = _run_cli("-f", SAMPLE, "--graph", "json", "-o", "normal")
        assert result.returncode == 0
        start = result.stdout.index("{")
        data = json.loads(result.stdout[start:])
        assert [e["name"] for e in data["events"]][:2] == ["bbe2", "e1"]

    def test_instrumentation(self) -> None:
        result = _run_cli("-f", SAMPLE, "--instrumentation")
        assert result.returncode == 0
        assert "[n1]" in result.stdout
        assert "garbage_collection(e4)" in result.stdout
        assert "=== Run Sequence" not in result.stdout

    def test_silent_prints_nothing(self) -> None:
        result = _run_cli("-f", SAMPLE, "-o", "silent")
        assert result.returncode == 0
        assert result.stdout == ""

    def test_debug_logs_resolution(self) -> None:
        result = _run_cli("-f", SAMPLE, "-d", "3")
        assert result.returncode == 0
        assert "[DEBUG] Resolved e1" in result.stdout


# ---------------------------------------------------------------------------
# Tests: Serving
# ---------------------------------------------------------------------------


class TestServe:
    """--serve runs the coordinator until the sequence completes."""

    def test_external_events_complete(self) -> None:
        result = _run_cli(
            "-f", EXTERNAL_ONLY, "--serve", "--port", "0", "--timeout", "20",
        )
        assert result.returncode == 0, result.stderr
        assert "Event coordinator listening on http://127.0.0.1:" in result.stdout
        assert "COMPLETED" in result.stdout

    def test_timeout_exits_one(self) -> None:
        result = _run_cli(
            "-f", NEVER_COMPLETES, "--serve", "--port", "0", "--timeout", "1",
        )
        assert result.returncode == 1
        assert "TIMEOUT" in result.stdout
        assert "t1" in result.stdout.split("TIMEOUT", 1)[1]

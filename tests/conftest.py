"""
Shared pytest fixtures for the runseq test suite.

Provides deployment builders, compiled sequences, coordinators and
paths to the deployment fixture files used across unit and integration
tests.
"""

from pathlib import Path
from typing import Callable

import pytest

from runseq.core.compiler import CompiledSequence, SequenceCompiler
from runseq.core.coordinator import EventCoordinator
from runseq.core.deployment import Deployment, DeploymentBuilder
from runseq.errors import ParseError
from runseq.execution.client import RunSequenceRuntime
from runseq.parser.sequence import event_names

SAMPLE_SEQUENCE = "bbe2 * e1 * ubbe2 * x1 * e2 * e3 * x2 * e4"


@pytest.fixture(autouse=True)
def _reset_blocking_permission() -> None:
    """Each test starts with a fresh pause permission."""
    RunSequenceRuntime.allow_blocking()


@pytest.fixture
def builder() -> DeploymentBuilder:
    """A builder with two declared nodes."""
    return DeploymentBuilder("test").node("n1").node("n2")


@pytest.fixture
def sample_deployment(builder: DeploymentBuilder) -> Deployment:
    """Two nodes, every internal event kind and a link fault."""
    return (
        builder
        .stack_trace("e1", "n1", "app.main,app.Server.handle")
        .stack_trace("e2", "n2", ["app.main", "app.Replica.apply"])
        .stack_trace("e3", "n2", "app.main,app.Replica.commit", block_after=True)
        .garbage_collection("e4", "n1")
        .block_before("bbe2", "n2", "e2")
        .unblock_before("ubbe2", "n2", "e2")
        .link_down("x1", "n1", "n2")
        .link_up("x2", "n1", "n2")
        .run_sequence(SAMPLE_SEQUENCE)
        .build()
    )


@pytest.fixture
def sample_compiled(sample_deployment: Deployment) -> CompiledSequence:
    return SequenceCompiler(sample_deployment).compile()


@pytest.fixture
def compile_sequence() -> Callable[[str], CompiledSequence]:
    """
    Factory: compile a sequence whose names are all test-case events.

    Names that cannot be lexed are left to the compiler to reject.
    """

    def _compile(sequence: str) -> CompiledSequence:
        try:
            names = sorted(set(event_names(sequence)))
        except ParseError:
            names = []
        deployment = (
            DeploymentBuilder("sequence")
            .test_case_events(*names)
            .run_sequence(sequence)
            .build()
        )
        return SequenceCompiler(deployment).compile()

    return _compile


@pytest.fixture
def make_coordinator(
    compile_sequence: Callable[[str], CompiledSequence],
) -> Callable[..., EventCoordinator]:
    """Factory: coordinator for a sequence of test-case events."""

    def _make(sequence: str, **kwargs) -> EventCoordinator:
        return EventCoordinator(compile_sequence(sequence), **kwargs)

    return _make


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def deployments_dir(fixtures_dir: Path) -> Path:
    """Path to the deployment file fixtures."""
    return fixtures_dir / "deployments"

"""
Command-line interface for runseq.

Compiles the run sequence of a JSON deployment file and prints its
dependency graph or instrumentation plan, or serves a standalone event
coordinator until the sequence completes.

Exit codes: 0 success, 1 run timeout, 2 input or compile error.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import runseq
from runseq.config import get_settings
from runseq.core.compiler import compile_deployment
from runseq.errors import RunTimeoutError
from runseq.execution.controller import RunController
from runseq.execution.runtime_engine import DryRunEngine
from runseq.utils.deployment_reader import DeploymentReader
from runseq.utils.logger import LogLevel, RunLogger
from runseq.utils.visualization import DependencyGraphVisualizer, instrumentation_text


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the runseq CLI."""
    parser = argparse.ArgumentParser(
        prog="runseq",
        description=(
            "runseq: compile run sequences and coordinate the order of "
            "events in distributed system tests"
        ),
    )

    required = parser.add_argument_group("required arguments")
    required.add_argument(
        "-f",
        "--deployment",
        type=Path,
        required=True,
        help="Path to deployment file (.json)",
    )

    parser.add_argument(
        "--graph",
        choices=["text", "dot", "json"],
        default=None,
        help="Print the compiled dependency graph (default: text)",
    )
    parser.add_argument(
        "--instrumentation",
        action="store_true",
        help="Print the per-node instrumentation plan",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the event coordinator until the run sequence completes",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Coordinator port (default: from the deployment file)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="With --serve: seconds to wait for completion",
    )
    parser.add_argument(
        "--inactivity-timeout",
        type=float,
        default=None,
        help="With --serve: seconds allowed between two new events",
    )
    parser.add_argument(
        "-o",
        "--output",
        choices=["silent", "normal", "verbose"],
        default="normal",
        help="Output level (default: normal)",
    )
    parser.add_argument(
        "-d",
        "--debug",
        type=int,
        choices=[0, 1, 2, 3],
        default=0,
        help="Debug level 0-3 (default: 0)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"runseq {runseq.__version__}",
    )

    return parser


def _resolve_log_level(output: str, debug: int) -> LogLevel:
    """Determine the effective log level from output and debug settings."""
    if debug >= 3:
        return LogLevel.DEBUG
    if output == "verbose" or debug >= 1:
        return LogLevel.VERBOSE
    if output == "silent":
        return LogLevel.SILENT
    return LogLevel.NORMAL


def main() -> None:
    """Entry point for the ``runseq`` CLI command."""
    parser = _build_parser()
    args = parser.parse_args()

    try:
        _run(args)
    except SystemExit:
        raise
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


def _run(args: argparse.Namespace) -> None:
    """Execute the requested commands."""
    if not args.deployment.exists():
        print(f"Error: Deployment file not found: {args.deployment}", file=sys.stderr)
        sys.exit(2)

    log_level = _resolve_log_level(args.output, args.debug)
    logger = RunLogger(level=log_level, stream=sys.stdout)

    deployment = DeploymentReader(args.deployment).read()
    compiled = compile_deployment(deployment, logger)

    show_graph = args.graph or ("text" if not (args.instrumentation or args.serve) else None)
    if show_graph and log_level is not LogLevel.SILENT:
        print(DependencyGraphVisualizer(compiled).render(show_graph))
    if args.instrumentation and log_level is not LogLevel.SILENT:
        print(instrumentation_text(compiled))

    if not args.serve:
        sys.exit(0)

    controller = RunController(
        deployment,
        DryRunEngine(logger),
        settings=get_settings(),
        logger=logger,
        port=args.port,
    )
    controller.start()
    try:
        if log_level is not LogLevel.SILENT:
            print(f"Event coordinator listening on {controller.server.url}", flush=True)
        controller.wait_for_completion(
            timeout=args.timeout,
            inactivity_timeout=args.inactivity_timeout,
        )
    except RunTimeoutError:
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(1)
    finally:
        controller.stop()
    sys.exit(0)

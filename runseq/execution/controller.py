"""
Run controller.

Drives one test run: compiles the run sequence, serves the event
coordinator, starts the deployment through a runtime engine, fires
external events when their turn comes and lets the test wait for the
sequence to complete.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Tuple

from runseq.config import Settings, get_settings, node_environment
from runseq.core.compiler import CompiledSequence, SequenceCompiler
from runseq.core.coordinator import EventCoordinator
from runseq.core.deployment import Deployment
from runseq.core.events import EventDefinition
from runseq.errors import PollCancelledError, RunSeqError, RunTimeoutError
from runseq.execution.client import CoordinatorClient, RunSequenceRuntime
from runseq.execution.runtime_engine import RuntimeEngine, execute_external_event
from runseq.execution.server import CoordinatorServer, summary
from runseq.utils.logger import RunLogger


def wait_for_completion(
    coordinator: EventCoordinator,
    timeout: Optional[float] = None,
    inactivity_timeout: Optional[float] = None,
    poll_interval: float = 1.0,
    logger: Optional[RunLogger] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Block until every event of the run sequence is received.

    Both limits are checked on every poll and fail independently.

    Args:
        coordinator: The run's coordinator.
        timeout: Overall limit in seconds.
        inactivity_timeout: Limit in seconds on the time since the last
            new receipt.
        poll_interval: Seconds between checks.
        logger: Optional logger.
        clock: Time source for ``timeout``.
        sleep: Sleep function between checks.

    Raises:
        RunTimeoutError: If either limit is exceeded.
    """
    log = logger or RunLogger.silent()
    started = clock()
    while not coordinator.sequence_complete():
        if timeout is not None and clock() - started > timeout:
            reason = (
                f"Run sequence did not complete within {timeout}s "
                f"(pending: {', '.join(coordinator.pending())})"
            )
            log.sequence_timed_out(reason)
            raise RunTimeoutError(reason)
        if coordinator.inactivity_exceeded(inactivity_timeout):
            reason = (
                f"No new event received for more than {inactivity_timeout}s "
                f"(pending: {', '.join(coordinator.pending())})"
            )
            log.sequence_timed_out(reason)
            raise RunTimeoutError(reason)
        sleep(poll_interval)
    log.sequence_completed()


class RunController:
    """
    Orchestrates a run of a deployment.

    Usage::

        with RunController(deployment, engine) as run:
            run.enforce_order("x1", lambda: client.put("k", "v"))
            run.wait_for_completion(timeout=60)

    Attributes:
        deployment: The deployment under test.
        engine: Runtime engine that owns the nodes.
        compiled: The compiled run sequence, after :meth:`start`.
        coordinator: The run's coordinator, after :meth:`start`.
        server: The coordinator's HTTP server, after :meth:`start`.
        failures: External events whose engine action raised.
    """

    def __init__(
        self,
        deployment: Deployment,
        engine: RuntimeEngine,
        settings: Optional[Settings] = None,
        logger: Optional[RunLogger] = None,
        port: Optional[int] = None,
    ) -> None:
        """
        Args:
            deployment: The deployment under test.
            engine: Runtime engine that owns the nodes.
            settings: Settings (default: process settings).
            logger: Optional logger (default: at the settings' log level).
            port: Coordinator port, overriding the deployment's (0 picks
                a free port).
        """
        self.deployment = deployment
        self.engine = engine
        self.settings = settings or get_settings()
        self.logger = logger or RunLogger(self.settings.logger_level)
        self._port = deployment.event_server_port if port is None else port

        self.compiled: Optional[CompiledSequence] = None
        self.coordinator: Optional[EventCoordinator] = None
        self.server: Optional[CoordinatorServer] = None
        self.failures: List[Tuple[str, Exception]] = []
        self._runtime: Optional[RunSequenceRuntime] = None
        self._engine_started = False
        self._cancel = threading.Event()
        self._workers: List[threading.Thread] = []

    # ---- Lifecycle ---- #

    def start(self) -> None:
        """
        Compile, serve the coordinator, start the nodes and the external
        event workers.

        Raises:
            CompileError: If the run sequence is invalid; nothing is
                started in that case.
            RunSeqError: If the run was already started.
        """
        if self.coordinator is not None:
            raise RunSeqError("Run already started")

        self.compiled = SequenceCompiler(self.deployment, self.logger).compile()
        self.coordinator = EventCoordinator(self.compiled, self.logger)
        try:
            self.server = CoordinatorServer(
                self.coordinator,
                host=self.settings.event_server_ip_address,
                port=self._port,
                logger=self.logger,
            )
            self.server.start()
            client = CoordinatorClient(
                self.server.url,
                timeout=self.settings.request_timeout,
                logger=self.logger,
            )
            self._runtime = RunSequenceRuntime(
                client, poll_interval=self.settings.poll_interval, logger=self.logger,
            )

            environment = node_environment(
                self.settings.event_server_ip_address, self.server.port,
            )
            self.engine.start(self.deployment, environment)
            self._engine_started = True

            for event in self.compiled.external_events():
                if not event.is_test_case_event:
                    self._start_worker(event)
        except BaseException:
            self.logger.error("Run failed to start, stopping started resources")
            self.stop()
            raise

        self.logger.info(
            "Run started",
            deployment=self.deployment.name,
            coordinator=self.server.url,
            external_events=len(self._workers),
        )

    def stop(self) -> None:
        """Cancel pending external events, stop the nodes and the server."""
        was_serving = self.server is not None
        self._cancel.set()
        for worker in self._workers:
            worker.join(timeout=self.deployment.seconds_to_wait_for_completion)
        running = [w.name for w in self._workers if w.is_alive()]
        self._workers = []
        if self._engine_started:
            self._engine_started = False
            self.engine.stop()
        if self._runtime is not None:
            if running:
                self.logger.warning(
                    "External events still running after stop", workers=running,
                )
            else:
                self._runtime.close()
            self._runtime = None
        if self.server is not None:
            self.server.stop()
            self.server = None
        if was_serving:
            self.logger.statistics(summary(self.coordinator))

    def __enter__(self) -> RunController:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # ---- Test driver API ---- #

    def wait_for_completion(
        self,
        timeout: Optional[float] = None,
        inactivity_timeout: Optional[float] = None,
        stop_after: bool = False,
    ) -> None:
        """
        Wait until every run sequence event is received.

        Args:
            timeout: Overall limit in seconds.
            inactivity_timeout: Limit on the time since the last new
                event (default: the deployment's
                ``next_event_receipt_timeout``).
            stop_after: Stop the run once the sequence completes.

        Raises:
            RunTimeoutError: If either limit is exceeded.
        """
        coordinator = self._require_started()
        if inactivity_timeout is None:
            inactivity_timeout = self.deployment.next_event_receipt_timeout
        wait_for_completion(
            coordinator,
            timeout=timeout,
            inactivity_timeout=inactivity_timeout,
            poll_interval=self.settings.completion_poll_interval,
            logger=self.logger,
        )
        if stop_after:
            self.stop()

    def enforce_order(
        self,
        name: str,
        action: Optional[Callable[[], object]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Run a test-case event: wait for its dependencies, run
        ``action`` and mark the event received.

        Raises:
            ValueError: If ``name`` is not a declared event.
            RunTimeoutError: If ``timeout`` elapses while waiting.
        """
        self._require_started()
        if self.deployment.event(name) is None:
            raise ValueError(f"Event '{name}' is not defined")
        self._runtime.block_and_poll(name, timeout=timeout)
        if action is not None:
            action()
        self._runtime.send_event(name)

    def wait_for(
        self, name: str, include_event: bool = False, timeout: Optional[float] = None,
    ) -> None:
        """
        Wait until ``name``'s dependencies (and optionally ``name``
        itself) are received.
        """
        self._require_started()
        self._runtime.block_and_poll(name, include_event=include_event, timeout=timeout)

    # ---- #

    def _require_started(self) -> EventCoordinator:
        if self.coordinator is None or self._runtime is None:
            raise RunSeqError("Run has not been started")
        return self.coordinator

    def _start_worker(self, event: EventDefinition) -> None:
        worker = threading.Thread(
            target=self._run_external_event,
            args=(event, self._runtime),
            name=f"runseq-event-{event.name}",
            daemon=True,
        )
        self._workers.append(worker)
        worker.start()

    def _run_external_event(self, event: EventDefinition, runtime: RunSequenceRuntime) -> None:
        try:
            runtime.block_and_poll(event.name, cancel=self._cancel)
        except PollCancelledError:
            return
        self.logger.info(f"Executing external event {event}")
        try:
            execute_external_event(event, self.engine)
        except Exception as exc:
            self.logger.error(f"External event '{event.name}' failed", error=exc)
            self.failures.append((event.name, exc))
        if self._cancel.is_set():
            self.logger.warning(f"Run stopped before '{event.name}' was reported")
            return
        runtime.send_event(event.name)

"""
Client side of the run sequence protocol.

:class:`CoordinatorClient` speaks HTTP to the event coordinator.
:class:`RunSequenceRuntime` is what instrumented code calls: it pauses
the calling thread at an instrumented point until the event's
dependencies are received, then reports the event.

A pass through an instrumented method may pause at most once. The
instrumentation calls :meth:`RunSequenceRuntime.allow_blocking` on entry
to the method, and a successful :meth:`RunSequenceRuntime.enforce_order`
clears the permission again for the rest of that pass. The permission
lives in a context variable, so every thread and task has its own.
"""

from __future__ import annotations

import gc
import threading
import time
from contextvars import ContextVar
from typing import Dict, Optional, Sequence, Set

import httpx

from runseq.config import Settings
from runseq.errors import PollCancelledError, RunTimeoutError
from runseq.execution.stack_matcher import matches_current_stack
from runseq.utils.logger import RunLogger

_allow_blocking: ContextVar[bool] = ContextVar("runseq_allow_blocking", default=True)


class CoordinatorClient:
    """
    HTTP client for the event coordinator.

    Connection errors, timeouts, non-success responses and requests on
    a closed client all read as "not satisfied"; they are logged and
    never raised, so callers simply poll again.

    Attributes:
        base_url: Coordinator URL.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8765",
        timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[RunLogger] = None,
    ) -> None:
        """
        Args:
            base_url: Coordinator URL, used when ``http_client`` is None.
            timeout: Per-request timeout in seconds.
            http_client: Preconfigured client (its base URL is used).
            logger: Optional logger.
        """
        self.base_url = base_url
        self.logger = logger or RunLogger.silent()
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    # ---- Queries ---- #

    def is_received(self, name: str) -> bool:
        return self._request("GET", f"/events/{name}")

    def dependencies_met(self, name: str, include_event: bool = False) -> bool:
        params = {"includeEvent": "1" if include_event else "0"}
        return self._request("GET", f"/dependencies/{name}", params=params)

    def block_dependencies_met(self, name: str) -> bool:
        return self._request("GET", f"/blockDependencies/{name}")

    # ---- Updates ---- #

    def send_event(self, name: str) -> bool:
        """Report ``name`` to the coordinator; True on success."""
        return self._request("POST", "/events", json={"name": name})

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, str]] = None,
    ) -> bool:
        if self._http.is_closed:
            self.logger.debug(f"Coordinator client is closed: {method} {path}")
            return False
        try:
            response = self._http.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            self.logger.debug(f"Coordinator request timed out: {method} {path}", error=exc)
            return False
        except httpx.RequestError as exc:
            self.logger.debug(f"Coordinator unreachable: {method} {path}", error=exc)
            return False
        if response.status_code == 404:
            return False
        if not response.is_success:
            self.logger.warning(
                f"Unexpected coordinator response: {method} {path}",
                status=response.status_code,
            )
            return False
        return True

    def __enter__(self) -> CoordinatorClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class RunSequenceRuntime:
    """
    Order enforcement for instrumented code.

    Usage::

        runtime = RunSequenceRuntime.from_env()

        def handle(self, request):
            runtime.allow_blocking()
            runtime.enforce_order("e1", ["app.main", "app.Server.handle"])
            ...
    """

    def __init__(
        self,
        client: CoordinatorClient,
        poll_interval: float = 0.005,
        logger: Optional[RunLogger] = None,
    ) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.logger = logger or RunLogger.silent()
        self._sent: Set[str] = set()
        self._sent_lock = threading.Lock()

    @classmethod
    def from_env(
        cls,
        settings: Optional[Settings] = None,
        logger: Optional[RunLogger] = None,
    ) -> RunSequenceRuntime:
        """
        Build a runtime for the coordinator named in the environment.

        Without a logger, one is created at the ``RUNSEQ_LOG_LEVEL`` level.
        """
        settings = settings or Settings()
        logger = logger or RunLogger(settings.logger_level)
        client = CoordinatorClient(
            settings.event_server_url,
            timeout=settings.request_timeout,
            logger=logger,
        )
        return cls(client, poll_interval=settings.poll_interval, logger=logger)

    # ---- Instrumentation entry points ---- #

    @staticmethod
    def allow_blocking() -> None:
        """Reset the pause permission at the entry of an instrumented method."""
        _allow_blocking.set(True)

    @staticmethod
    def blocking_allowed() -> bool:
        return _allow_blocking.get()

    def enforce_order(
        self,
        name: str,
        stack: Optional[Sequence[str] | str] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Pause until ``name``'s dependencies are received, then report it.

        Nothing happens when the event was already reported, when the
        live stack does not match ``stack``, when this pass already
        paused once, or when the event's blocking condition is not yet
        received.

        Args:
            name: Event name.
            stack: Stack signature the caller must match, if any.
            timeout: Give up after this many seconds.

        Returns:
            True if this call reported the event.

        Raises:
            RunTimeoutError: If ``timeout`` elapses while waiting.
        """
        if self.is_sent(name):
            return False
        if stack is not None and not matches_current_stack(stack):
            return False
        if not _allow_blocking.get():
            return False
        if not self.client.block_dependencies_met(name):
            return False

        self.block_and_poll(name, timeout=timeout)
        self.send_event(name)
        _allow_blocking.set(False)
        return True

    def garbage_collection(self, name: str) -> threading.Thread:
        """
        Run a garbage collection as event ``name`` on a separate thread.

        Returns:
            The started worker thread.
        """
        worker = threading.Thread(
            target=self._collect, args=(name,), name=f"runseq-gc-{name}", daemon=True,
        )
        worker.start()
        return worker

    # ---- Protocol primitives ---- #

    def is_sent(self, name: str) -> bool:
        """True if ``name`` is known to be received by the coordinator."""
        with self._sent_lock:
            if name in self._sent:
                return True
        if self.client.is_received(name):
            self._remember(name)
            return True
        return False

    def block_and_poll(
        self,
        name: str,
        include_event: bool = False,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Poll until ``name``'s dependencies are received.

        Args:
            name: Event name.
            include_event: Also wait for ``name`` itself.
            timeout: Give up after this many seconds.
            cancel: Stop waiting once this event is set.

        Raises:
            RunTimeoutError: If ``timeout`` elapses.
            PollCancelledError: If ``cancel`` is set.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.client.dependencies_met(name, include_event):
            if cancel is not None and cancel.is_set():
                raise PollCancelledError(f"Waiting for '{name}' was cancelled")
            if deadline is not None and time.monotonic() >= deadline:
                raise RunTimeoutError(
                    f"Dependencies of '{name}' were not met within {timeout}s"
                )
            if cancel is not None:
                cancel.wait(self.poll_interval)
            else:
                time.sleep(self.poll_interval)

    def send_event(self, name: str) -> bool:
        """Report ``name``; True if the coordinator accepted it."""
        if self.client.send_event(name):
            self._remember(name)
            self.logger.debug(f"Event sent: {name}")
            return True
        self.logger.warning(f"Could not send event '{name}' to the coordinator")
        return False

    def close(self) -> None:
        self.client.close()

    # ---- #

    def _remember(self, name: str) -> None:
        with self._sent_lock:
            self._sent.add(name)

    def _collect(self, name: str) -> None:
        if self.is_sent(name):
            return
        if not self.client.block_dependencies_met(name):
            return
        self.block_and_poll(name)
        gc.collect()
        self.send_event(name)

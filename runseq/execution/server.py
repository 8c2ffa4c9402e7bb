"""
HTTP server for the event coordinator.

Routes:
    GET  /events/{name}                       200 if received, else 404
    GET  /dependencies/{name}?includeEvent=1  200 if met, else 404
    GET  /blockDependencies/{name}            200 if met, else 404
    POST /events  {"name": "..."}             records receipt, 200
    GET  /status                              run progress summary
"""

from __future__ import annotations

import threading
import time
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from runseq import __version__
from runseq.core.coordinator import EventCoordinator
from runseq.errors import RunSeqError
from runseq.utils.logger import RunLogger

# =============================================================================
# Request / Response Models
# =============================================================================


class EventReceipt(BaseModel):
    """Body of ``POST /events``."""

    name: str


class EventStatus(BaseModel):
    name: str
    ok: bool


class RunStatus(BaseModel):
    """Run progress summary."""

    complete: bool
    received: List[str]
    pending: List[str]


# =============================================================================
# Application
# =============================================================================


def create_app(
    coordinator: EventCoordinator, logger: Optional[RunLogger] = None,
) -> FastAPI:
    """
    Create the coordinator application bound to ``coordinator``.

    Args:
        coordinator: The run's coordinator.
        logger: Optional request logger.
    """
    log = logger or RunLogger.silent()
    app = FastAPI(title="runseq event coordinator", version=__version__)
    app.state.coordinator = coordinator

    def _coordinator(request: Request) -> EventCoordinator:
        return request.app.state.coordinator

    def _answer(name: str, ok: bool) -> EventStatus:
        if not ok:
            raise HTTPException(status_code=404, detail=f"{name}: not satisfied")
        return EventStatus(name=name, ok=True)

    @app.get("/events/{name}", response_model=EventStatus)
    def get_event(name: str, request: Request) -> EventStatus:
        return _answer(name, _coordinator(request).has_received(name))

    @app.get("/dependencies/{name}", response_model=EventStatus)
    def get_dependencies(
        name: str,
        request: Request,
        include_event: bool = Query(False, alias="includeEvent"),
    ) -> EventStatus:
        met = _coordinator(request).dependencies_met(name, include_event)
        log.debug("Dependency query", event=name, include_event=include_event, met=met)
        return _answer(name, met)

    @app.get("/blockDependencies/{name}", response_model=EventStatus)
    def get_block_dependencies(name: str, request: Request) -> EventStatus:
        return _answer(name, _coordinator(request).block_dependencies_met(name))

    @app.post("/events", response_model=EventStatus)
    def post_event(receipt: EventReceipt, request: Request) -> EventStatus:
        _coordinator(request).receive(receipt.name)
        return EventStatus(name=receipt.name, ok=True)

    @app.get("/status", response_model=RunStatus)
    def get_status(request: Request) -> RunStatus:
        coord = _coordinator(request)
        return RunStatus(
            complete=coord.sequence_complete(),
            received=sorted(coord.received()),
            pending=coord.pending(),
        )

    return app


# =============================================================================
# Server
# =============================================================================


class CoordinatorServer:
    """
    Serves a coordinator with uvicorn on a background thread.

    Usage::

        server = CoordinatorServer(coordinator, port=0)
        server.start()
        ...  # server.port holds the bound port
        server.stop()
    """

    def __init__(
        self,
        coordinator: EventCoordinator,
        host: str = "127.0.0.1",
        port: int = 8765,
        logger: Optional[RunLogger] = None,
        startup_timeout: float = 10.0,
    ) -> None:
        self.coordinator = coordinator
        self.host = host
        self.port = port
        self.logger = logger or RunLogger.silent()
        self.startup_timeout = startup_timeout
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start serving and wait until the socket is bound.

        Raises:
            RunSeqError: If the server does not come up in time.
        """
        if self.running:
            return
        config = uvicorn.Config(
            create_app(self.coordinator, self.logger),
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run, name="runseq-coordinator", daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise RunSeqError(
                    f"Event coordinator failed to start on {self.host}:{self.port}"
                )
            time.sleep(0.01)

        self.port = self._bound_port(self._server)
        self.logger.info("Event coordinator started", url=self.url)

    def stop(self) -> None:
        """Stop serving and join the server thread."""
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self.startup_timeout)
            self.logger.info("Event coordinator stopped", url=self.url)
        self._server = None
        self._thread = None

    @staticmethod
    def _bound_port(server: uvicorn.Server) -> int:
        for srv in server.servers:
            for sock in srv.sockets:
                return sock.getsockname()[1]
        return server.config.port

    def __enter__(self) -> CoordinatorServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def summary(coordinator: EventCoordinator) -> Dict[str, object]:
    """Statistics for the logger's ``statistics`` block."""
    return {
        "sequence_events": len(coordinator.compiled),
        "received_events": len(coordinator.received()),
        "pending_events": len(coordinator.pending()),
        "complete": coordinator.sequence_complete(),
    }

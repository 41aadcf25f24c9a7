"""Supervisor that runs the listener loops and applies the restart/terminate policy."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from switchpipe.config import SwitchPipeConfig
from switchpipe.errors import LoopFatalError
from switchpipe.ipc.client import SwitchClient
from switchpipe.ipc.endpoint import RemoteEndpoint, resolve_local, validate_port
from switchpipe.ipc.server import ListenerLoop, invoke_handler
from switchpipe.ipc.transports import LocalTransport, RemoteTransport

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from switchpipe.ipc.endpoint import LocalEndpoint
    from switchpipe.ipc.server import SwitchHandler

logger = logging.getLogger(__name__)

_READY_POLL_SECONDS = 0.01
_RESTART_DELAY_SECONDS = 0.1
_STOP_GRACE_SECONDS = 2.0


class SwitchServer:
    """Runs the local listener loop, plus the TCP loop when a port is set.

    Both loops share one stop event and are supervised as a group: when one
    faults the other is cancelled too, and then either both are relaunched
    (``auto_restart``) or the fault is reported through ``on_fatal`` and
    :meth:`wait`. Faults before :meth:`start` has returned are always
    reported. The server never exits the process itself.

    Usage::

        server = SwitchServer(handle_switches, config)
        await server.start()
        try:
            await server.wait()
        except LoopFatalError:
            sys.exit(-1)

    Handlers that want to shut the server down should call
    :meth:`request_stop` rather than awaiting :meth:`stop`, since they run
    inside a loop that :meth:`stop` waits for.
    """

    def __init__(
        self,
        handler: SwitchHandler,
        config: SwitchPipeConfig | None = None,
        *,
        local_endpoint: LocalEndpoint | None = None,
        on_fatal: Callable[[LoopFatalError], None] | None = None,
    ) -> None:
        self._handler = handler
        self._config = config or SwitchPipeConfig()
        self._local_endpoint = local_endpoint or resolve_local(self._config)
        self._remote_endpoint: RemoteEndpoint | None = None
        advanced = self._config.advanced
        if advanced.remote_port:
            self._remote_endpoint = RemoteEndpoint(
                host=advanced.remote_bind_host,
                port=validate_port(advanced.remote_port),
            )
        self._on_fatal = on_fatal
        self._stop_event = asyncio.Event()
        self._supervisor_task: asyncio.Task[None] | None = None
        self._loops: list[ListenerLoop] = []
        self._restarts = 0
        self._fatal: LoopFatalError | None = None
        self._ready = False

    async def __aenter__(self) -> SwitchServer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    @property
    def local_endpoint(self) -> LocalEndpoint:
        return self._local_endpoint

    @property
    def remote_endpoint(self) -> RemoteEndpoint | None:
        return self._remote_endpoint

    @property
    def loops(self) -> tuple[ListenerLoop, ...]:
        """Loops of the current (most recent) launch."""
        return tuple(self._loops)

    @property
    def restarts(self) -> int:
        """Number of times the loops were relaunched after a fault."""
        return self._restarts

    @property
    def fatal_error(self) -> LoopFatalError | None:
        return self._fatal

    @property
    def is_running(self) -> bool:
        """Whether the supervised group is still active."""
        return self._supervisor_task is not None and not self._supervisor_task.done()

    async def start(self) -> None:
        """Launch the loops and return once every listener is bound.

        Raises:
            RuntimeError: If the server is already running.
            LoopFatalError: If a loop faulted before every listener was bound.
                Faults at that stage are never restarted, even with
                ``auto_restart``.
        """
        if self.is_running:
            msg = "Switch server is already running"
            raise RuntimeError(msg)

        self._stop_event.clear()
        self._fatal = None
        self._ready = False
        task = asyncio.create_task(self._supervise(), name="switchpipe-supervisor")
        self._supervisor_task = task

        while not task.done():
            if self._loops and all(loop.is_listening for loop in self._loops):
                self._ready = True
                logger.info(
                    "Switch server listening: %s",
                    ", ".join(str(loop.endpoint) for loop in self._loops),
                )
                return
            await asyncio.sleep(_READY_POLL_SECONDS)

        if self._fatal is not None:
            raise self._fatal
        task.result()

    def request_stop(self) -> None:
        """Ask the loops to stop after their current session."""
        self._stop_event.set()

    async def stop(self) -> None:
        """Stop the loops and wait for them to finish. Idempotent."""
        task = self._supervisor_task
        if task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=_STOP_GRACE_SECONDS)
        except TimeoutError:
            logger.warning("Switch server did not stop within %ss; cancelling", _STOP_GRACE_SECONDS)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._supervisor_task = None
        logger.info("Switch server stopped")

    async def wait(self) -> None:
        """Block until the loops end.

        Raises:
            LoopFatalError: When the loops ended on an unrecovered fault.
        """
        task = self._supervisor_task
        if task is not None:
            await asyncio.wait({task})
        if self._fatal is not None:
            raise self._fatal

    async def _supervise(self) -> None:
        while True:
            self._loops = self._build_loops()
            tasks = {
                asyncio.create_task(loop.run(), name=f"switchpipe-{loop.name}-loop"): loop
                for loop in self._loops
            }
            try:
                failed, error = await self._wait_for_group(tasks)
            except asyncio.CancelledError:
                await self._cancel_all(tasks)
                raise

            if failed is None or error is None:
                return

            if (
                self._config.advanced.auto_restart
                and self._ready
                and not self._stop_event.is_set()
            ):
                self._restarts += 1
                logger.critical(
                    "Listener loop %s failed with %s: %s; restarting all loops",
                    failed.name,
                    type(error).__name__,
                    error,
                    exc_info=error,
                )
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), _RESTART_DELAY_SECONDS)
                if self._stop_event.is_set():
                    return
                continue

            fatal = LoopFatalError(failed.name, error)
            fatal.__cause__ = error
            self._fatal = fatal
            logger.critical(
                "Listener loop %s failed with %s: %s; signalling fatal termination",
                failed.name,
                type(error).__name__,
                error,
                exc_info=error,
            )
            if self._on_fatal is not None:
                try:
                    self._on_fatal(fatal)
                except Exception:
                    logger.exception("Fatal-error callback raised")
            return

    async def _wait_for_group(
        self,
        tasks: dict[asyncio.Task[None], ListenerLoop],
    ) -> tuple[ListenerLoop | None, BaseException | None]:
        """Wait for every loop; on the first fault cancel the rest and report it."""
        pending = set(tasks)
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task.cancelled():
                    continue
                error = task.exception()
                if error is not None:
                    await self._cancel_all({t: tasks[t] for t in pending})
                    return tasks[task], error
        return None, None

    @staticmethod
    async def _cancel_all(tasks: dict[asyncio.Task[None], ListenerLoop]) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _build_loops(self) -> list[ListenerLoop]:
        loops = [
            ListenerLoop(
                LocalTransport(self._config),
                self._local_endpoint,
                self._handler,
                self._config,
                self._stop_event,
            )
        ]
        if self._remote_endpoint is not None:
            loops.append(
                ListenerLoop(
                    RemoteTransport(self._config),
                    self._remote_endpoint,
                    self._handler,
                    self._config,
                    self._stop_event,
                )
            )
        return loops


@dataclass(frozen=True, slots=True)
class LaunchOutcome:
    """Result of :func:`run_single_instance`.

    Attributes:
        forwarded: Arguments were delivered to an already-running instance.
        reply: That instance's reply.
        instance_found: Another instance is running (even if nothing was sent).
        server: The server started by this process when it became the
            running instance.
        initial_reply: The handler's reply to this process's own arguments.
    """

    forwarded: bool
    reply: str = ""
    instance_found: bool = False
    server: SwitchServer | None = None
    initial_reply: str = ""


async def run_single_instance(
    handler: SwitchHandler,
    config: SwitchPipeConfig | None = None,
    args: Sequence[str] | None = None,
    *,
    on_fatal: Callable[[LoopFatalError], None] | None = None,
) -> LaunchOutcome:
    """Forward *args* to a running instance, or become the running instance.

    When no instance answers, a :class:`SwitchServer` is started for later
    launches and *handler* is then applied to *args* as the first request.
    The listener is bound before the handler runs.
    """
    config = config or SwitchPipeConfig()
    arguments = list(sys.argv[1:] if args is None else args)

    result = await SwitchClient(config).try_send_args(arguments)
    if result.delivered:
        return LaunchOutcome(forwarded=True, reply=result.reply, instance_found=True)
    if result.instance_found:
        return LaunchOutcome(forwarded=False, instance_found=True)

    server = SwitchServer(handler, config, on_fatal=on_fatal)
    await server.start()

    initial_reply = ""
    if arguments:
        initial_reply = await invoke_handler(handler, arguments)
    return LaunchOutcome(forwarded=False, server=server, initial_reply=initial_reply)


__all__ = ["LaunchOutcome", "SwitchServer", "run_single_instance"]

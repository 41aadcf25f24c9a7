"""Listener loop that services forwarded argument lists one session at a time."""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from switchpipe.ipc.framing import decode_args
from switchpipe.logs import progress

if TYPE_CHECKING:
    from switchpipe.config import SwitchPipeConfig
    from switchpipe.ipc.endpoint import Endpoint
    from switchpipe.ipc.session import Session
    from switchpipe.ipc.transports import Listener, Transport

logger = logging.getLogger(__name__)

type SwitchHandler = Callable[[Sequence[str]], str | None | Awaitable[str | None]]


async def invoke_handler(handler: SwitchHandler, args: Sequence[str]) -> str:
    """Invoke *handler* on *args*, isolating its exceptions.

    A handler fault is logged and answered with an empty reply; a ``None``
    result is also an empty reply.
    """
    try:
        result = handler(args)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        logger.warning("%s trapped from switch handler", type(exc).__name__, exc_info=True)
        return ""
    return "" if result is None else str(result)


class LoopState(enum.Enum):
    """State machine for one listener loop."""

    LISTENING = "listening"
    CONNECTED = "connected"
    DISPATCHING = "dispatching"
    DISCONNECTING = "disconnecting"
    STOPPED = "stopped"
    FAULTED = "faulted"


class ListenerLoop:
    """Accepts one connection at a time and hands its arguments to a handler.

    Each pass accepts a session, reads one message, invokes the handler when
    at least one argument was decoded, writes the reply and closes the
    session. Faults confined to a session or to the handler are logged and
    the loop moves on; faults in the loop's own accept machinery propagate
    to the caller (normally the supervisor).

    The loop exits when *stop_event* is set. A session already read when
    that happens is still answered.
    """

    def __init__(
        self,
        transport: Transport,
        endpoint: Endpoint,
        handler: SwitchHandler,
        config: SwitchPipeConfig,
        stop_event: asyncio.Event,
    ) -> None:
        self._transport = transport
        self._endpoint = endpoint
        self._handler = handler
        self._config = config
        self._stop_event = stop_event
        self._state = LoopState.STOPPED
        self._sessions_handled = 0
        self._listening = False

    @property
    def name(self) -> str:
        """Transport name (``local`` or ``remote``)."""
        return self._transport.name

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def state(self) -> LoopState:
        """Current loop state."""
        return self._state

    @property
    def is_listening(self) -> bool:
        """Whether the listener is bound and the loop is serving."""
        return self._listening

    @property
    def sessions_handled(self) -> int:
        """Number of sessions completed since construction."""
        return self._sessions_handled

    async def run(self) -> None:
        """Serve sessions until the stop event fires."""
        listener: Listener | None = None
        try:
            listener = await self._transport.open_listener(self._endpoint)
            self._listening = True
            while not self._stop_event.is_set():
                self._set_state(LoopState.LISTENING)
                progress(
                    logger,
                    self._config,
                    "Switch server waiting for connection on %s",
                    listener.describe(),
                )
                session = await listener.accept(self._stop_event)
                if session is None:
                    break
                self._set_state(LoopState.CONNECTED)
                await self._serve(session)
                self._sessions_handled += 1
        except asyncio.CancelledError:
            self._set_state(LoopState.STOPPED)
            raise
        except Exception:
            self._set_state(LoopState.FAULTED)
            raise
        else:
            self._set_state(LoopState.STOPPED)
        finally:
            self._listening = False
            if listener is not None:
                await listener.close()
            progress(logger, self._config, "Switch server on %s has stopped listening", self.name)

    async def _serve(self, session: Session) -> None:
        """Run one session: read, dispatch, reply, disconnect."""
        progress(logger, self._config, "Switch client %s has connected", session.peer)
        try:
            message = await session.receive()
            args = decode_args(message, self._config.advanced.separator)
            if args:
                self._set_state(LoopState.DISPATCHING)
                reply = await self._dispatch(args)
                try:
                    await session.send(reply)
                except (ConnectionError, OSError, ValueError) as exc:
                    logger.warning(
                        "%s while writing reply to %s", type(exc).__name__, session.peer
                    )
        finally:
            self._set_state(LoopState.DISCONNECTING)
            await session.close()
            progress(logger, self._config, "Switch server terminated client connection")

    async def _dispatch(self, args: list[str]) -> str:
        progress(logger, self._config, "Invoking switch handler for %d switches", len(args))
        return await invoke_handler(self._handler, args)

    def _set_state(self, new_state: LoopState) -> None:
        old = self._state
        self._state = new_state
        logger.debug("Listener loop %s: %s -> %s", self.name, old.value, new_state.value)


__all__ = ["ListenerLoop", "LoopState", "SwitchHandler", "invoke_handler"]

"""Client handshake: find a running instance and forward arguments to it."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from switchpipe.config import SwitchPipeConfig
from switchpipe.errors import EmptyArgsError, ProbeError
from switchpipe.ipc.endpoint import LocalEndpoint, resolve_local
from switchpipe.ipc.framing import encode_args
from switchpipe.ipc.transports import LocalTransport, RemoteTransport
from switchpipe.logs import progress

if TYPE_CHECKING:
    from collections.abc import Sequence

    from switchpipe.ipc.endpoint import Endpoint
    from switchpipe.ipc.session import Session
    from switchpipe.ipc.transports import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SendResult:
    """Outcome of :meth:`SwitchClient.try_send_args`.

    Attributes:
        delivered: The arguments reached a running instance.
        instance_found: A running instance accepted the connection.
        reply: The running instance's reply (empty when it had none).
    """

    delivered: bool
    instance_found: bool
    reply: str = ""


class SwitchClient:
    """Probes for a running instance and forwards command-line arguments.

    Usage::

        client = SwitchClient(config)
        result = await client.try_send_args(sys.argv[1:])
        if result.delivered:
            print(result.reply)
            return
        # no instance is running; become the server
    """

    def __init__(self, config: SwitchPipeConfig | None = None) -> None:
        self._config = config or SwitchPipeConfig()

    @property
    def config(self) -> SwitchPipeConfig:
        return self._config

    async def try_connect(self, endpoint: Endpoint | None = None) -> bool:
        """Return whether an instance is listening on *endpoint*.

        Raises:
            ProbeError: When the probe fails for a reason other than nobody
                listening (permissions, unreachable network, ...).
        """
        session = await self._open(endpoint)
        if session is None:
            progress(logger, self._config, "No running instance found")
            return False
        await session.close()
        progress(logger, self._config, "Running instance found")
        return True

    async def try_send_args(
        self,
        args: Sequence[str] | None = None,
        endpoint: Endpoint | None = None,
    ) -> SendResult:
        """Send *args* to a running instance and wait for its reply.

        *args* defaults to this process's command line without the program
        name.

        Raises:
            EmptyArgsError: An instance is running, *args* is empty and the
                configuration says to throw.
            OversizedMessageError: The message does not fit in one TCP buffer.
            ProbeError: The probe failed for a reason other than absence.
        """
        arguments = list(sys.argv[1:] if args is None else args)
        advanced = self._config.advanced
        progress(
            logger,
            self._config,
            "Switch list has %d elements, checking for a running instance",
            len(arguments),
        )

        session = await self._open(endpoint)
        if session is None:
            progress(logger, self._config, "No running instance found")
            return SendResult(delivered=False, instance_found=False)

        async with session:
            progress(logger, self._config, "Connected to switch server at %s", session.peer)
            if not arguments:
                if advanced.throw_if_running:
                    logger.error("No arguments were provided to pass to the running instance")
                    raise EmptyArgsError
                logger.error(
                    "No arguments were provided to pass to the running instance; "
                    "this instance should exit"
                )
                return SendResult(delivered=False, instance_found=True)

            progress(logger, self._config, "Sending switches to running instance")
            try:
                await session.send(encode_args(arguments, advanced.separator))
            except (ConnectionError, OSError) as exc:
                logger.warning("%s while sending switches to %s", type(exc).__name__, session.peer)
                return SendResult(delivered=False, instance_found=True)

            progress(logger, self._config, "Waiting for reply")
            reply = await session.receive()

        progress(logger, self._config, "Switches sent, this instance can terminate normally")
        return SendResult(delivered=True, instance_found=True, reply=reply)

    async def _open(self, endpoint: Endpoint | None) -> Session | None:
        target = endpoint or resolve_local(self._config)
        transport = self._transport_for(target)
        timeout = (
            self._config.advanced.connection_timeout if isinstance(target, LocalEndpoint) else None
        )
        try:
            return await transport.connect(target, timeout)
        except OSError as exc:
            msg = f"Probe of {target} failed: {type(exc).__name__}: {exc}"
            raise ProbeError(msg) from exc

    def _transport_for(self, endpoint: Endpoint) -> Transport:
        if isinstance(endpoint, LocalEndpoint):
            return LocalTransport(self._config)
        return RemoteTransport(self._config)


async def try_connect(
    endpoint: Endpoint | None = None,
    *,
    config: SwitchPipeConfig | None = None,
) -> bool:
    """One-shot :meth:`SwitchClient.try_connect`."""
    return await SwitchClient(config).try_connect(endpoint)


async def try_send_args(
    args: Sequence[str] | None = None,
    endpoint: Endpoint | None = None,
    *,
    config: SwitchPipeConfig | None = None,
) -> SendResult:
    """One-shot :meth:`SwitchClient.try_send_args`."""
    return await SwitchClient(config).try_send_args(args, endpoint)


__all__ = ["SendResult", "SwitchClient", "try_connect", "try_send_args"]

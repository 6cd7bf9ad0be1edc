import asyncio
import errno
import functools
import logging
import socket
import uuid
from typing import Callable, TypeVar

from robot_remote.domain.errors import (
    ConnectError,
    ConnectFailure,
    TransportClosedError,
    WriteError,
    WriteFailure,
)
from robot_remote.domain.peer import PROTOCOL_ID, PeerIdentifier
from robot_remote.ports.adapter import RadioAdapterPort

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNREACHABLE_ERRNOS = frozenset({
    errno.EHOSTDOWN,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
    errno.ETIMEDOUT,
    errno.ENOENT,
})
REJECTED_ERRNOS = frozenset({
    errno.ECONNREFUSED,
    errno.EACCES,
    errno.EPERM,
})
ADAPTER_ERRNOS = frozenset({
    errno.EAFNOSUPPORT,
    errno.EPROTONOSUPPORT,
    errno.ENODEV,
    errno.EADDRNOTAVAIL,
})


def classify_connect_error(exc: OSError) -> ConnectFailure:
    if isinstance(exc, TimeoutError) or exc.errno in UNREACHABLE_ERRNOS:
        return ConnectFailure.PEER_UNREACHABLE
    if isinstance(exc, ConnectionRefusedError) or exc.errno in REJECTED_ERRNOS:
        return ConnectFailure.REJECTED
    if exc.errno in ADAPTER_ERRNOS:
        return ConnectFailure.ADAPTER_UNAVAILABLE
    return ConnectFailure.IO_FAILURE


def describe_os_error(exc: OSError) -> str:
    return exc.strerror or str(exc) or type(exc).__name__


def bluetooth_sockets_supported() -> bool:
    return hasattr(socket, "AF_BLUETOOTH") and hasattr(socket, "BTPROTO_RFCOMM")


class RfcommTransport:
    """Outbound RFCOMM session over a BlueZ Bluetooth socket.

    One instance serves exactly one connection attempt. Once ``close`` has run,
    ``open`` raises ``TransportClosedError`` and ``write`` raises
    ``WriteError(NOT_CONNECTED)``.
    """

    def __init__(
        self,
        adapter: RadioAdapterPort,
        channel: int | None = None,
        service_id: uuid.UUID = PROTOCOL_ID,
    ) -> None:
        self._adapter = adapter
        self._channel = channel
        self._service_id = service_id
        self._sock: socket.socket | None = None
        self._opening = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._sock is not None and not self._closed

    async def open(self, peer: PeerIdentifier) -> None:
        if self._closed:
            raise TransportClosedError()
        if self._sock is not None or self._opening:
            raise ConnectError(ConnectFailure.IO_FAILURE, "session already opened")
        if not bluetooth_sockets_supported():
            raise ConnectError(
                ConnectFailure.ADAPTER_UNAVAILABLE, "Bluetooth sockets not supported on this platform",
            )

        self._opening = True
        try:
            if not await asyncio.to_thread(self._adapter.is_available):
                raise ConnectError(ConnectFailure.ADAPTER_UNAVAILABLE, "Bluetooth adapter not available")
            await asyncio.to_thread(self._adapter.cancel_discovery)
            channel = await self._resolve_channel(peer)
            logger.info("Opening RFCOMM to %s on channel %d", peer.address, channel)
            sock = await run_blocking_open(_release_socket, _connect_socket, peer.address, channel)
        finally:
            self._opening = False

        if self._closed:
            _release_socket(sock)
            raise TransportClosedError("transport closed while connecting")
        self._sock = sock
        logger.info("RFCOMM session open to %s", peer.address)

    async def write(self, payload: bytes) -> None:
        sock = self._sock
        if sock is None or self._closed:
            raise WriteError(WriteFailure.NOT_CONNECTED)
        try:
            await asyncio.to_thread(sock.sendall, payload)
        except OSError as exc:
            if self._closed:
                raise WriteError(WriteFailure.NOT_CONNECTED, "session closed during write") from exc
            raise WriteError(WriteFailure.IO_FAILURE, describe_os_error(exc)) from exc

    async def close(self) -> None:
        """Release the socket. Idempotent and never raises."""
        self._closed = True
        sock, self._sock = self._sock, None
        if sock is not None:
            _release_socket(sock)
            logger.info("RFCOMM session closed")

    async def _resolve_channel(self, peer: PeerIdentifier) -> int:
        if self._channel is not None:
            return self._channel
        channel = await asyncio.to_thread(self._adapter.find_service_channel, peer, self._service_id)
        if channel is None:
            raise ConnectError(
                ConnectFailure.REJECTED, f"{peer.address} does not offer service {self._service_id}",
            )
        return channel


async def run_blocking_open(release: Callable[[T], None], func: Callable[..., T], *args) -> T:
    """Run a blocking open on a worker thread.

    The worker cannot be interrupted, so a cancelled caller leaves it running.
    Whatever handle it produces afterwards is passed to ``release``.
    """
    future = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        future.add_done_callback(functools.partial(_release_orphan, release))
        raise


def _release_orphan(release: Callable[[T], None], future: "asyncio.Future[T]") -> None:
    if future.cancelled() or future.exception() is not None:
        return
    logger.info("Releasing handle from a cancelled open")
    release(future.result())


def _connect_socket(address: str, channel: int) -> socket.socket:
    try:
        sock = socket.socket(socket.AF_BLUETOOTH, socket.SOCK_STREAM, socket.BTPROTO_RFCOMM)
    except OSError as exc:
        raise ConnectError(ConnectFailure.ADAPTER_UNAVAILABLE, describe_os_error(exc)) from exc
    try:
        sock.connect((address, channel))
    except OSError as exc:
        _release_socket(sock)
        raise ConnectError(classify_connect_error(exc), describe_os_error(exc)) from exc
    return sock


def _release_socket(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    try:
        sock.close()
    except OSError as exc:
        logger.debug("Error closing RFCOMM socket: %s", exc)

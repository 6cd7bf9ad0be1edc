import asyncio
import errno
import logging

import serial

from robot_remote.adapters.rfcomm_transport import (
    classify_connect_error,
    describe_os_error,
    run_blocking_open,
)
from robot_remote.domain.errors import (
    ConnectError,
    ConnectFailure,
    TransportClosedError,
    WriteError,
    WriteFailure,
)
from robot_remote.domain.peer import PeerIdentifier
from robot_remote.ports.adapter import RadioAdapterPort

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600


class SerialPortTransport:
    def __init__(
        self,
        adapter: RadioAdapterPort | None,
        port: str = "/dev/rfcomm0",
        baudrate: int = DEFAULT_BAUDRATE,
    ) -> None:
        self._adapter = adapter
        self._port = port
        self._baudrate = baudrate
        self._serial: serial.Serial | None = None
        self._opening = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._serial is not None and not self._closed

    async def open(self, peer: PeerIdentifier) -> None:
        if self._closed:
            raise TransportClosedError()
        if self._serial is not None or self._opening:
            raise ConnectError(ConnectFailure.IO_FAILURE, "session already opened")

        self._opening = True
        try:
            if self._adapter is not None:
                await asyncio.to_thread(self._adapter.cancel_discovery)
            logger.info("Opening %s for %s (%s)", self._port, peer.display_name, peer.address)
            handle = await run_blocking_open(_release_port, self._open_port)
        finally:
            self._opening = False

        if self._closed:
            _release_port(handle)
            raise TransportClosedError("transport closed while connecting")
        self._serial = handle
        logger.info("Serial session open on %s", self._port)

    async def write(self, payload: bytes) -> None:
        handle = self._serial
        if handle is None or self._closed:
            raise WriteError(WriteFailure.NOT_CONNECTED)
        try:
            written = await asyncio.to_thread(handle.write, payload)
        except (serial.SerialException, OSError) as exc:
            if self._closed:
                raise WriteError(WriteFailure.NOT_CONNECTED, "session closed during write") from exc
            raise WriteError(WriteFailure.IO_FAILURE, str(exc) or type(exc).__name__) from exc
        if written is not None and written != len(payload):
            raise WriteError(
                WriteFailure.IO_FAILURE, f"short write ({written} of {len(payload)} bytes)",
            )

    async def close(self) -> None:
        """Release the port. Idempotent and never raises."""
        self._closed = True
        handle, self._serial = self._serial, None
        if handle is not None:
            _release_port(handle)
            logger.info("Serial session closed on %s", self._port)

    def _open_port(self) -> serial.Serial:
        try:
            return serial.Serial(port=self._port, baudrate=self._baudrate, write_timeout=None)
        except serial.SerialException as exc:
            if exc.errno == errno.ENOENT:
                raise ConnectError(
                    ConnectFailure.PEER_UNREACHABLE, f"{self._port} is not bound to a peer",
                ) from exc
            if exc.errno is not None:
                raise ConnectError(classify_connect_error(exc), describe_os_error(exc)) from exc
            raise ConnectError(ConnectFailure.IO_FAILURE, str(exc)) from exc
        except OSError as exc:
            raise ConnectError(classify_connect_error(exc), describe_os_error(exc)) from exc


def _release_port(handle: serial.Serial) -> None:
    try:
        handle.close()
    except (serial.SerialException, OSError) as exc:
        logger.debug("Error closing serial port: %s", exc)

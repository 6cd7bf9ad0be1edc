import asyncio
import errno
import threading
import types

import pytest
import serial

from robot_remote.adapters import serial_transport
from robot_remote.adapters.serial_transport import SerialPortTransport
from robot_remote.domain.errors import (
    ConnectError,
    ConnectFailure,
    TransportClosedError,
    WriteError,
    WriteFailure,
)

from tests.conftest import FakeAdapter


class FakeSerial:
    instances: list["FakeSerial"] = []

    def __init__(self, port: str, baudrate: int, write_timeout=None) -> None:
        self.port = port
        self.baudrate = baudrate
        self.written: list[bytes] = []
        self.write_error: Exception | None = None
        self.short_write = False
        self.closed = False
        FakeSerial.instances.append(self)

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)
        return 0 if self.short_write else len(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_serial(monkeypatch):
    FakeSerial.instances = []
    monkeypatch.setattr(serial_transport.serial, "Serial", FakeSerial)
    return FakeSerial


def _failing_serial(exc: Exception):
    def factory(*args, **kwargs):
        raise exc
    return factory


class TestSerialPortTransport:
    @pytest.mark.asyncio
    async def test_open_uses_configured_port(self, fake_serial, robot_peer):
        adapter = FakeAdapter()
        transport = SerialPortTransport(adapter=adapter, port="/dev/rfcomm3", baudrate=115200)

        await transport.open(robot_peer)

        assert transport.is_open
        assert adapter.calls == ["cancel_discovery"]
        handle = fake_serial.instances[0]
        assert (handle.port, handle.baudrate) == ("/dev/rfcomm3", 115200)

    @pytest.mark.asyncio
    async def test_unbound_port_is_unreachable(self, monkeypatch, robot_peer):
        monkeypatch.setattr(
            serial_transport.serial,
            "Serial",
            _failing_serial(serial.SerialException(errno.ENOENT, "could not open port /dev/rfcomm0")),
        )
        transport = SerialPortTransport(adapter=None)

        with pytest.raises(ConnectError) as exc_info:
            await transport.open(robot_peer)

        assert exc_info.value.reason == ConnectFailure.PEER_UNREACHABLE

    @pytest.mark.asyncio
    async def test_refused_connection_is_rejected(self, monkeypatch, robot_peer):
        monkeypatch.setattr(
            serial_transport.serial,
            "Serial",
            _failing_serial(serial.SerialException(errno.ECONNREFUSED, "could not open port /dev/rfcomm0")),
        )
        transport = SerialPortTransport(adapter=None)

        with pytest.raises(ConnectError) as exc_info:
            await transport.open(robot_peer)

        assert exc_info.value.reason == ConnectFailure.REJECTED

    @pytest.mark.asyncio
    async def test_generic_serial_error_is_io_failure(self, monkeypatch, robot_peer):
        monkeypatch.setattr(
            serial_transport.serial, "Serial", _failing_serial(serial.SerialException("port busy")),
        )
        transport = SerialPortTransport(adapter=None)

        with pytest.raises(ConnectError) as exc_info:
            await transport.open(robot_peer)

        assert exc_info.value.reason == ConnectFailure.IO_FAILURE

    @pytest.mark.asyncio
    async def test_write(self, fake_serial, robot_peer):
        transport = SerialPortTransport(adapter=None)
        await transport.open(robot_peer)

        await transport.write(b"3")

        assert fake_serial.instances[0].written == [b"3"]

    @pytest.mark.asyncio
    async def test_write_fault_is_io_failure(self, fake_serial, robot_peer):
        transport = SerialPortTransport(adapter=None)
        await transport.open(robot_peer)
        fake_serial.instances[0].write_error = serial.SerialException("device reports readiness to read but returned no data")

        with pytest.raises(WriteError) as exc_info:
            await transport.write(b"F")

        assert exc_info.value.reason == WriteFailure.IO_FAILURE
        assert transport.is_open

    @pytest.mark.asyncio
    async def test_short_write_is_io_failure(self, fake_serial, robot_peer):
        transport = SerialPortTransport(adapter=None)
        await transport.open(robot_peer)
        fake_serial.instances[0].short_write = True

        with pytest.raises(WriteError) as exc_info:
            await transport.write(b"F")

        assert exc_info.value.reason == WriteFailure.IO_FAILURE

    @pytest.mark.asyncio
    async def test_close_releases_port_once_and_blocks_reuse(self, fake_serial, robot_peer):
        transport = SerialPortTransport(adapter=None)
        await transport.open(robot_peer)

        await transport.close()
        await transport.close()

        assert fake_serial.instances[0].closed
        with pytest.raises(WriteError):
            await transport.write(b"F")
        with pytest.raises(TransportClosedError):
            await transport.open(robot_peer)


@pytest.fixture
def gated_serial(monkeypatch):
    """A port open that blocks its worker thread until ``release`` is set."""
    FakeSerial.instances = []
    gate = types.SimpleNamespace(entered=threading.Event(), release=threading.Event())

    def open_port(*args, **kwargs):
        gate.entered.set()
        gate.release.wait(timeout=5)
        return FakeSerial(*args, **kwargs)

    monkeypatch.setattr(serial_transport.serial, "Serial", open_port)
    return gate


async def _wait_for_release(timeout: float = 1.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while not (FakeSerial.instances and FakeSerial.instances[0].closed):
        if asyncio.get_running_loop().time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True


class TestCloseDuringOpen:
    @pytest.mark.asyncio
    async def test_close_while_opening_releases_port(self, gated_serial, robot_peer):
        transport = SerialPortTransport(adapter=None)
        opening = asyncio.create_task(transport.open(robot_peer))
        await asyncio.to_thread(gated_serial.entered.wait, 1)

        await transport.close()
        gated_serial.release.set()

        with pytest.raises(TransportClosedError):
            await opening
        assert FakeSerial.instances[0].closed
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_cancelled_open_releases_port_when_open_finishes(self, gated_serial, robot_peer):
        transport = SerialPortTransport(adapter=None)
        opening = asyncio.create_task(transport.open(robot_peer))
        await asyncio.to_thread(gated_serial.entered.wait, 1)

        opening.cancel()
        with pytest.raises(asyncio.CancelledError):
            await opening
        gated_serial.release.set()

        assert await _wait_for_release()
        assert not transport.is_open

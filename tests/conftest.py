import asyncio
import uuid

import pytest

from robot_remote.domain.errors import WriteError, WriteFailure
from robot_remote.domain.events import CommandSent, DomainEvent, Notice, StatusChanged
from robot_remote.domain.peer import PeerIdentifier
from robot_remote.domain.session import ControlSession


ROBOT_ADDRESS = "AA:BB:CC:DD:EE:FF"
ROBOT_NAME = "RobotX"


class FakeTransport:
    def __init__(
        self,
        open_error: Exception | None = None,
        write_error: Exception | None = None,
        close_error: Exception | None = None,
    ) -> None:
        self.open_error = open_error
        self.write_error = write_error
        self.close_error = close_error
        self.open_gate: asyncio.Event | None = None
        self.write_gate: asyncio.Event | None = None
        self.opened_peer: PeerIdentifier | None = None
        self.writes: list[bytes] = []
        self.close_calls = 0
        self.active_writes = 0
        self.max_concurrent_writes = 0
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, peer: PeerIdentifier) -> None:
        self.opened_peer = peer
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_error is not None:
            raise self.open_error
        self._open = True

    async def write(self, payload: bytes) -> None:
        self.active_writes += 1
        self.max_concurrent_writes = max(self.max_concurrent_writes, self.active_writes)
        try:
            if self.write_gate is not None:
                await self.write_gate.wait()
            else:
                await asyncio.sleep(0)
            if not self._open:
                raise WriteError(WriteFailure.NOT_CONNECTED)
            if self.write_error is not None:
                raise self.write_error
            self.writes.append(payload)
        finally:
            self.active_writes -= 1

    async def close(self) -> None:
        self.close_calls += 1
        self._open = False
        if self.close_error is not None:
            raise self.close_error


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    def notify(self, event: DomainEvent) -> None:
        self.events.append(event)

    @property
    def statuses(self) -> list[str]:
        return [e.text for e in self.events if isinstance(e, StatusChanged)]

    @property
    def notices(self) -> list[str]:
        return [e.message for e in self.events if isinstance(e, Notice)]

    @property
    def sent(self) -> list:
        return [e.token for e in self.events if isinstance(e, CommandSent)]


class FakeAdapter:
    def __init__(
        self,
        available: bool = True,
        peers: list[PeerIdentifier] | None = None,
        channel: int | None = 1,
    ) -> None:
        self.available = available
        self.peers = peers if peers is not None else []
        self.channel = channel
        self.calls: list[str] = []

    def is_available(self) -> bool:
        self.calls.append("is_available")
        return self.available

    def cancel_discovery(self) -> None:
        self.calls.append("cancel_discovery")

    def bonded_peers(self) -> list[PeerIdentifier]:
        self.calls.append("bonded_peers")
        return list(self.peers)

    def find_service_channel(self, peer: PeerIdentifier, service_id: uuid.UUID) -> int | None:
        self.calls.append("find_service_channel")
        return self.channel


@pytest.fixture
def robot_peer():
    return PeerIdentifier(address=ROBOT_ADDRESS, name=ROBOT_NAME)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def fake_adapter(robot_peer):
    return FakeAdapter(peers=[robot_peer])


@pytest.fixture
def session(fake_transport, observer):
    return ControlSession(transport=fake_transport, observers=[observer])

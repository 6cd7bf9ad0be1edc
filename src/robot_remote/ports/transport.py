from typing import Protocol

from robot_remote.domain.peer import PeerIdentifier


class TransportPort(Protocol):
    async def open(self, peer: PeerIdentifier) -> None: ...
    async def write(self, payload: bytes) -> None: ...
    async def close(self) -> None: ...

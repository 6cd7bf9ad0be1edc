import uuid
from typing import Protocol

from robot_remote.domain.peer import PeerIdentifier


class RadioAdapterPort(Protocol):
    def is_available(self) -> bool: ...
    def cancel_discovery(self) -> None: ...
    def bonded_peers(self) -> list[PeerIdentifier]: ...
    def find_service_channel(self, peer: PeerIdentifier, service_id: uuid.UUID) -> int | None: ...

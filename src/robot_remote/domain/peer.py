import re
import uuid
from dataclasses import dataclass

PROTOCOL_ID = uuid.UUID("00001101-0000-1000-8000-00805F9B34FB")

_ADDRESS_PATTERN = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")


@dataclass(frozen=True)
class PeerIdentifier:
    address: str
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.address

    @property
    def label(self) -> str:
        return f"{self.display_name}\n{self.address}"


def is_valid_address(address: str) -> bool:
    return bool(_ADDRESS_PATTERN.match(address.upper()))


def resolve_peer(query: str, peers: list[PeerIdentifier]) -> PeerIdentifier | None:
    wanted = query.strip()
    for peer in peers:
        if peer.address.upper() == wanted.upper():
            return peer
    for peer in peers:
        if peer.name == wanted:
            return peer
    lowered = wanted.lower()
    for peer in peers:
        if peer.name.lower() == lowered:
            return peer
    return None

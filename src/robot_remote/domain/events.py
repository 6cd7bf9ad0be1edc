from dataclasses import dataclass, field
from time import time

from robot_remote.domain.commands import CommandToken
from robot_remote.domain.state import ConnectionState


@dataclass(frozen=True)
class DomainEvent:
    timestamp: float = field(default_factory=time)


@dataclass(frozen=True)
class StatusChanged(DomainEvent):
    state: ConnectionState = ConnectionState.IDLE
    text: str = ""


@dataclass(frozen=True)
class Notice(DomainEvent):
    message: str = ""


@dataclass(frozen=True)
class CommandSent(DomainEvent):
    token: CommandToken = CommandToken.STOP

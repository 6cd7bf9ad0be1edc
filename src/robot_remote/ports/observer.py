from typing import Protocol

from robot_remote.domain.events import DomainEvent


class StatusObserverPort(Protocol):
    def notify(self, event: DomainEvent) -> None: ...

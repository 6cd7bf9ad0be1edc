import logging
import sys
from typing import TextIO

from robot_remote.domain.events import CommandSent, DomainEvent, Notice, StatusChanged

logger = logging.getLogger(__name__)


class LoggingStatusObserver:
    def notify(self, event: DomainEvent) -> None:
        if isinstance(event, StatusChanged):
            logger.info("Status: %s", event.text)
        elif isinstance(event, Notice):
            logger.warning("Notice: %s", event.message)
        elif isinstance(event, CommandSent):
            logger.debug("Command sent: %s", event.token.name)


class ConsoleStatusObserver:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def notify(self, event: DomainEvent) -> None:
        if isinstance(event, StatusChanged):
            self._print(event.text)
        elif isinstance(event, Notice):
            self._print(f"! {event.message}")
        elif isinstance(event, CommandSent) and event.token.is_speed:
            self._print(f"Speed {event.token.value}")

    def _print(self, text: str) -> None:
        stream = self._stream or sys.stdout
        print(text, file=stream, flush=True)

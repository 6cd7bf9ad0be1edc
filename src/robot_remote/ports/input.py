from typing import Protocol, AsyncIterator

from robot_remote.domain.commands import CommandToken


class InputSourcePort(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    def tokens(self) -> AsyncIterator[CommandToken]: ...

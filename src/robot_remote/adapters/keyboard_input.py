import logging
import sys
import threading
from collections.abc import AsyncIterator
from typing import TextIO

import janus

from robot_remote.domain.commands import CommandToken

logger = logging.getLogger(__name__)

QUEUE_MAXSIZE = 64
DEFAULT_QUIT_KEYS = "q"


class KeyboardInput:
    def __init__(
        self,
        key_bindings: dict[str, CommandToken],
        stream: TextIO | None = None,
        quit_keys: str = DEFAULT_QUIT_KEYS,
    ) -> None:
        self._key_bindings = dict(key_bindings)
        self._stream = stream
        self._quit_keys = quit_keys
        self._queue: janus.Queue[CommandToken | None] | None = None
        self._thread: threading.Thread | None = None

    async def start(self) -> None:
        self._queue = janus.Queue(maxsize=QUEUE_MAXSIZE)
        self._thread = threading.Thread(
            target=self._read_loop,
            args=(self._queue.sync_q,),
            daemon=True,
            name="KeyboardInput",
        )
        self._thread.start()
        logger.debug("Keyboard input started (%d bindings)", len(self._key_bindings))

    async def stop(self) -> None:
        if self._queue:
            self._queue.close()
            await self._queue.wait_closed()
            self._queue = None
        self._thread = None

    async def tokens(self) -> AsyncIterator[CommandToken]:
        if not self._queue:
            return
        queue = self._queue
        while True:
            try:
                item = await queue.async_q.get()
            except janus.AsyncQueueShutDown:
                break
            if item is None:
                break
            yield item

    def _read_loop(self, sync_q: "janus.SyncQueue[CommandToken | None]") -> None:
        stream = self._stream or sys.stdin
        try:
            for line in stream:
                for key in line.rstrip("\r\n"):
                    if key in self._quit_keys:
                        logger.info("Quit requested")
                        sync_q.put(None)
                        return
                    token = self._key_bindings.get(key)
                    if token is None:
                        logger.debug("Unbound key %r", key)
                        continue
                    sync_q.put(token)
            sync_q.put(None)
        except janus.SyncQueueShutDown:
            logger.debug("Keyboard queue closed, reader exiting")

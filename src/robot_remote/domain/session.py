import asyncio
import logging

from robot_remote.domain.commands import CommandToken
from robot_remote.domain.errors import (
    ConnectError,
    SessionAlreadyStartedError,
    WriteError,
    WriteFailure,
)
from robot_remote.domain.events import CommandSent, DomainEvent, Notice, StatusChanged
from robot_remote.domain.peer import PeerIdentifier
from robot_remote.domain.state import ConnectionState, validate_transition
from robot_remote.ports.observer import StatusObserverPort
from robot_remote.ports.transport import TransportPort

logger = logging.getLogger(__name__)

STATUS_CONNECTING = "Connecting..."
STATUS_CONNECTED = "Connected and ready to send commands"
STATUS_FAILED = "Failed to connect"
STATUS_CLOSED = "Disconnected"

NOTICE_NOT_CONNECTED = "Not connected"
NOTICE_CONNECT_CANCELLED = "Connection cancelled"


class ControlSession:
    """Connection lifecycle and command dispatch for one peer.

    A session is single use: ``start`` may be called once, from IDLE. After
    ``teardown`` the session is CLOSED for good and nothing reaches the
    transport any more.

    A failed write is reported to the observers but leaves the session
    CONNECTED. Tokens can keep being dispatched into a dead link until the
    owner tears the session down.
    """

    def __init__(
        self,
        transport: TransportPort,
        observers: list[StatusObserverPort] | None = None,
    ) -> None:
        self._transport = transport
        self._observers: list[StatusObserverPort] = list(observers or [])
        self._state = ConnectionState.IDLE
        self._status = ""
        self._peer: PeerIdentifier | None = None
        self._connect_task: asyncio.Task[ConnectionState] | None = None
        self._write_lock = asyncio.Lock()
        self._transport_released = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def peer(self) -> PeerIdentifier | None:
        return self._peer

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def add_observer(self, observer: StatusObserverPort) -> None:
        self._observers.append(observer)

    def start(self, peer: PeerIdentifier) -> asyncio.Task[ConnectionState]:
        if self._state != ConnectionState.IDLE:
            raise SessionAlreadyStartedError(
                f"Session already started (state={self._state.name})"
            )
        self._peer = peer
        self._transition_to(ConnectionState.CONNECTING, STATUS_CONNECTING)
        self._connect_task = asyncio.create_task(
            self._connect(peer), name=f"connect-{peer.address}"
        )
        return self._connect_task

    async def connect(self, peer: PeerIdentifier) -> ConnectionState:
        return await self.start(peer)

    async def dispatch(self, token: CommandToken) -> bool:
        if self._state != ConnectionState.CONNECTED:
            logger.debug("Dropped %s: state=%s", token.name, self._state.name)
            self._publish(Notice(message=NOTICE_NOT_CONNECTED))
            return False

        async with self._write_lock:
            if self._state != ConnectionState.CONNECTED:
                logger.debug("Dropped %s: session closed while queued", token.name)
                self._publish(Notice(message=NOTICE_NOT_CONNECTED))
                return False
            try:
                await self._transport.write(token.payload)
            except WriteError as exc:
                logger.warning("Send %s failed: %s (%s)", token.name, exc.detail, exc.reason.name)
                if exc.reason == WriteFailure.NOT_CONNECTED:
                    self._publish(Notice(message=NOTICE_NOT_CONNECTED))
                else:
                    self._publish(Notice(message=f"Send failed: {exc.detail}"))
                return False
            except Exception as exc:
                logger.exception("Unexpected error sending %s", token.name)
                self._publish(Notice(message=f"Send failed: {exc}"))
                return False

        logger.info("Sent %s (%s)", token.name, token.value)
        self._publish(CommandSent(token=token))
        return True

    async def teardown(self) -> None:
        """Close the session. Safe from any state, repeatable, never raises."""
        if self._state != ConnectionState.CLOSED:
            self._transition_to(ConnectionState.CLOSED, STATUS_CLOSED)

        task = self._connect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Connect task failed during teardown")

        await self._release_transport()

    async def _connect(self, peer: PeerIdentifier) -> ConnectionState:
        logger.info("Connecting to %s (%s)", peer.display_name, peer.address)
        try:
            await self._transport.open(peer)
        except ConnectError as exc:
            logger.warning("Connect to %s failed: %s (%s)", peer.address, exc.detail, exc.reason.name)
            self._fail(f"Connection error: {exc.detail}")
            return self._state
        except asyncio.CancelledError:
            if self._state == ConnectionState.CONNECTING:
                self._fail(NOTICE_CONNECT_CANCELLED)
                await self._release_transport()
            raise
        except Exception as exc:
            logger.exception("Unexpected error connecting to %s", peer.address)
            self._fail(f"Connection error: {exc}")
            return self._state

        if self._state != ConnectionState.CONNECTING:
            logger.info("Session closed during connect, releasing %s", peer.address)
            await self._release_transport()
            return self._state

        self._transition_to(ConnectionState.CONNECTED, STATUS_CONNECTED)
        return self._state

    def _fail(self, notice: str) -> None:
        if self._state != ConnectionState.CONNECTING:
            return
        self._transition_to(ConnectionState.FAILED, STATUS_FAILED)
        self._publish(Notice(message=notice))

    async def _release_transport(self) -> None:
        if self._transport_released:
            return
        self._transport_released = True
        try:
            await self._transport.close()
        except Exception:
            logger.exception("Transport close raised")

    def _transition_to(self, target: ConnectionState, status: str) -> None:
        validate_transition(self._state, target)
        logger.info("State: %s -> %s", self._state.name, target.name)
        self._state = target
        self._status = status
        self._publish(StatusChanged(state=target, text=status))

    def _publish(self, event: DomainEvent) -> None:
        for observer in self._observers:
            observer.notify(event)

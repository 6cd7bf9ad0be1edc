from enum import Enum, auto


class ConnectFailure(Enum):
    ADAPTER_UNAVAILABLE = auto()
    PEER_UNREACHABLE = auto()
    REJECTED = auto()
    IO_FAILURE = auto()


class WriteFailure(Enum):
    NOT_CONNECTED = auto()
    IO_FAILURE = auto()


class RobotRemoteError(Exception):
    pass


class ConnectError(RobotRemoteError):
    def __init__(self, reason: ConnectFailure, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail or reason.name.replace("_", " ").lower()
        super().__init__(self.detail)


class TransportClosedError(ConnectError):
    def __init__(self, detail: str = "transport already closed") -> None:
        super().__init__(ConnectFailure.IO_FAILURE, detail)


class WriteError(RobotRemoteError):
    def __init__(self, reason: WriteFailure, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail or reason.name.replace("_", " ").lower()
        super().__init__(self.detail)


class SessionAlreadyStartedError(RobotRemoteError):
    pass


class InvalidTransitionError(RobotRemoteError):
    pass

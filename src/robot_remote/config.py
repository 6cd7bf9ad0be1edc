from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KEY_BINDINGS: dict[str, str] = {
    "w": "forward",
    "s": "backward",
    "a": "left",
    "d": "right",
    " ": "stop",
    "x": "stop",
    "F": "forward",
    "B": "backward",
    "L": "left",
    "R": "right",
    "S": "stop",
    "1": "speed_1",
    "2": "speed_2",
    "3": "speed_3",
}


class RobotRemoteConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ROBOT_REMOTE_")

    transport: Literal["rfcomm", "serial"] = "rfcomm"
    rfcomm_channel: int | None = None

    serial_port: str = "/dev/rfcomm0"
    serial_baudrate: int = 9600

    bluetoothctl_command: str = "bluetoothctl"
    sdptool_command: str = "sdptool"
    adapter_command_timeout_seconds: float = 5.0

    connect_timeout_seconds: float = 0.0

    socket_path: str = "/tmp/robot-remote.sock"
    log_file: str = ""

    key_bindings: dict[str, str] = DEFAULT_KEY_BINDINGS
    quit_keys: str = "q"

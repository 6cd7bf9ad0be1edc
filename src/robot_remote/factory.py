import logging

from robot_remote.adapters.bluez_adapter import BluezAdapter
from robot_remote.adapters.keyboard_input import KeyboardInput
from robot_remote.adapters.observers import LoggingStatusObserver
from robot_remote.config import RobotRemoteConfig
from robot_remote.domain.commands import CommandToken
from robot_remote.domain.session import ControlSession
from robot_remote.ports.adapter import RadioAdapterPort
from robot_remote.ports.control import ControlPort
from robot_remote.ports.input import InputSourcePort
from robot_remote.ports.observer import StatusObserverPort
from robot_remote.ports.transport import TransportPort

logger = logging.getLogger(__name__)


def create_adapter(config: RobotRemoteConfig) -> BluezAdapter:
    return BluezAdapter(
        bluetoothctl_command=config.bluetoothctl_command,
        sdptool_command=config.sdptool_command,
        timeout=config.adapter_command_timeout_seconds,
    )


def create_transport(config: RobotRemoteConfig, adapter: RadioAdapterPort) -> TransportPort:
    if config.transport == "serial":
        from robot_remote.adapters.serial_transport import SerialPortTransport

        return SerialPortTransport(
            adapter=adapter,
            port=config.serial_port,
            baudrate=config.serial_baudrate,
        )

    from robot_remote.adapters.rfcomm_transport import RfcommTransport

    return RfcommTransport(adapter=adapter, channel=config.rfcomm_channel)


def create_key_bindings(config: RobotRemoteConfig) -> dict[str, CommandToken]:
    bindings: dict[str, CommandToken] = {}
    for key, name in config.key_bindings.items():
        if len(key) != 1:
            logger.warning("Ignoring key binding %r: keys must be a single character", key)
            continue
        try:
            bindings[key] = CommandToken.parse(name)
        except ValueError:
            logger.warning("Ignoring key binding %r -> %r: unknown command", key, name)
    return bindings


def create_keyboard_input(config: RobotRemoteConfig) -> InputSourcePort:
    return KeyboardInput(
        key_bindings=create_key_bindings(config),
        quit_keys=config.quit_keys,
    )


def create_session(
    config: RobotRemoteConfig,
    adapter: RadioAdapterPort,
    observers: list[StatusObserverPort] | None = None,
) -> ControlSession:
    transport = create_transport(config, adapter)
    session = ControlSession(transport=transport, observers=[LoggingStatusObserver()])
    for observer in observers or []:
        session.add_observer(observer)
    return session


def create_control_server(config: RobotRemoteConfig, session: ControlSession) -> ControlPort:
    from robot_remote.adapters.unix_control import UnixSocketControlServer
    from robot_remote.remote_control import build_control_handler

    return UnixSocketControlServer(build_control_handler(session), socket_path=config.socket_path)

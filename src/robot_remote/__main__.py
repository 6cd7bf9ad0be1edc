import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import TextIO

from robot_remote.config import RobotRemoteConfig
from robot_remote.domain.peer import PeerIdentifier, is_valid_address, resolve_peer
from robot_remote.domain.session import ControlSession
from robot_remote.domain.state import ConnectionState
from robot_remote.log_format import configure_logging
from robot_remote.ports.adapter import RadioAdapterPort
from robot_remote.ports.input import InputSourcePort

ENV_FILE_PATH = Path.home() / ".config" / "robot-remote" / "env"

NO_PAIRED_DEVICES = "No paired devices. Pair in system settings first."
BLUETOOTH_NOT_SUPPORTED = "Bluetooth not supported"
NOT_RUNNING = "Robot remote is not running"


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            value = value.strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robot-remote",
        description="Drive a paired Bluetooth robot over a serial session",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--transport", choices=["rfcomm", "serial"], help="Override the configured transport")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("peers", help="List paired devices")

    drive_parser = subparsers.add_parser("drive", help="Connect to a paired device and drive it")
    drive_parser.add_argument("peer", help="Device address or name")

    send_parser = subparsers.add_parser("send", help="Send one command to a running drive session")
    send_parser.add_argument("token", help="forward, backward, left, right, stop, speed_1..speed_3 or F/B/L/R/S/1/2/3")

    subparsers.add_parser("status", help="Query a running drive session")

    return parser


def main(argv: list[str] | None = None) -> None:
    _load_env_file()
    parser = build_parser()
    args = parser.parse_args(argv)

    config = RobotRemoteConfig()
    if args.transport:
        config.transport = args.transport

    configure_logging(verbose=args.verbose, log_file=config.log_file, colored=sys.stderr.isatty())

    if args.command == "peers":
        sys.exit(_list_peers(config))
    elif args.command in ("send", "status"):
        asyncio.run(_run_client_command(args, config))
    elif args.command == "drive":
        sys.exit(asyncio.run(_run_drive(args.peer, config)))
    else:
        parser.print_help()
        sys.exit(2)


def _list_peers(config: RobotRemoteConfig, adapter: RadioAdapterPort | None = None) -> int:
    if adapter is None:
        from robot_remote.factory import create_adapter

        adapter = create_adapter(config)

    if not adapter.is_available():
        print(BLUETOOTH_NOT_SUPPORTED, file=sys.stderr)
        return 1

    peers = adapter.bonded_peers()
    if not peers:
        print(NO_PAIRED_DEVICES)
        return 0
    for peer in peers:
        print(peer.label)
    return 0


def _select_peer(adapter: RadioAdapterPort, query: str) -> PeerIdentifier | None:
    peer = resolve_peer(query, adapter.bonded_peers())
    if peer is None and is_valid_address(query):
        logging.warning("%s is not in the paired list, trying it anyway", query)
        return PeerIdentifier(address=query.upper())
    return peer


async def _run_client_command(args: argparse.Namespace, config: RobotRemoteConfig) -> None:
    from robot_remote.adapters.unix_control import UnixSocketControlClient

    client = UnixSocketControlClient(socket_path=config.socket_path)

    try:
        if args.command == "send":
            result = await client.send_command("send", {"token": args.token})
        elif args.command == "status":
            result = await client.send_command("status")
        else:
            print(f"Unknown command: {args.command}", file=sys.stderr)
            sys.exit(1)

        print(f"{result}")
        if result.get("status") != "ok":
            sys.exit(1)
    except ConnectionRefusedError:
        print(NOT_RUNNING, file=sys.stderr)
        sys.exit(1)
    except FileNotFoundError:
        print(NOT_RUNNING, file=sys.stderr)
        sys.exit(1)


async def _run_drive(query: str, config: RobotRemoteConfig) -> int:
    from robot_remote.adapters.observers import ConsoleStatusObserver
    from robot_remote.factory import (
        create_adapter,
        create_control_server,
        create_keyboard_input,
        create_session,
    )
    from robot_remote.health import has_critical_failures, run_startup_checks

    adapter = create_adapter(config)
    peer = await asyncio.to_thread(_select_peer, adapter, query)
    if peer is None:
        print(f"Unknown device: {query}", file=sys.stderr)
        return 1

    results = await asyncio.to_thread(run_startup_checks, config, adapter, peer)
    if has_critical_failures(results):
        logging.error("Critical health check failures, aborting startup")
        return 1

    print(f"Connected to {peer.display_name}")
    print(f"Device ID: {peer.address}")

    session = create_session(config, adapter, observers=[ConsoleStatusObserver()])
    keyboard = create_keyboard_input(config)
    control = create_control_server(config, session)

    shutdown_event = asyncio.Event()
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await control.start()
    input_task = None
    if _stdin_is_interactive():
        await keyboard.start()
        input_task = asyncio.create_task(_pump_input(keyboard, session, shutdown_event))
    else:
        logging.info("stdin is not a terminal, drive with 'robot-remote send' and stop with Ctrl+C")
    connected = False
    try:
        connect_task = session.start(peer)
        connected = await _wait_for_connect(connect_task, shutdown_event, config.connect_timeout_seconds)
        if connected:
            await shutdown_event.wait()
    finally:
        if input_task is not None:
            input_task.cancel()
            try:
                await asyncio.wait_for(input_task, timeout=1.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
            await keyboard.stop()
        await control.stop()
        await session.teardown()

    return 0 if connected else 1


def _stdin_is_interactive(stream: TextIO | None = None) -> bool:
    if stream is None:
        stream = sys.stdin
    return stream is not None and stream.isatty()


async def _pump_input(keyboard: InputSourcePort, session: ControlSession, shutdown_event: asyncio.Event) -> None:
    async for token in keyboard.tokens():
        await session.dispatch(token)
    shutdown_event.set()


async def _wait_for_connect(
    connect_task: "asyncio.Task[ConnectionState]",
    shutdown_event: asyncio.Event,
    timeout: float,
) -> bool:
    shutdown_waiter = asyncio.create_task(shutdown_event.wait())
    try:
        done, _ = await asyncio.wait(
            {connect_task, shutdown_waiter},
            timeout=timeout or None,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        shutdown_waiter.cancel()

    if connect_task not in done:
        if not shutdown_event.is_set():
            logging.error("Connect timed out after %.1fs", timeout)
        connect_task.cancel()
        try:
            await connect_task
        except asyncio.CancelledError:
            pass
        return False

    if connect_task.cancelled():
        return False
    return connect_task.result() == ConnectionState.CONNECTED


if __name__ == "__main__":
    main()

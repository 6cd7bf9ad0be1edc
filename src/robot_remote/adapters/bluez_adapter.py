import logging
import re
import subprocess
import uuid

from robot_remote.domain.errors import ConnectError, ConnectFailure
from robot_remote.domain.peer import PeerIdentifier

logger = logging.getLogger(__name__)

DEFAULT_RFCOMM_CHANNEL = 1
DEFAULT_COMMAND_TIMEOUT_SECONDS = 5.0
BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805f9b34fb"

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]|\x01|\x02")
_DEVICE_LINE = re.compile(r"^Device\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})\s*(.*)$")
_CHANNEL_LINE = re.compile(r"Channel:\s*(\d+)")


class BluezAdapter:
    def __init__(
        self,
        bluetoothctl_command: str = "bluetoothctl",
        sdptool_command: str = "sdptool",
        timeout: float = DEFAULT_COMMAND_TIMEOUT_SECONDS,
    ) -> None:
        self._bluetoothctl = bluetoothctl_command
        self._sdptool = sdptool_command
        self._timeout = timeout

    def is_available(self) -> bool:
        output = self._run_bluetoothctl("show")
        if output is None:
            return False
        return "Controller" in output and "No default controller" not in output

    def cancel_discovery(self) -> None:
        if self._run_bluetoothctl("scan", "off") is None:
            logger.debug("Discovery was not active or could not be stopped")
        else:
            logger.debug("Discovery stopped")

    def bonded_peers(self) -> list[PeerIdentifier]:
        output = self._run_bluetoothctl("devices", "Paired")
        if not output or not parse_device_list(output):
            output = self._run_bluetoothctl("paired-devices")
        if not output:
            return []
        return parse_device_list(output)

    def find_service_channel(self, peer: PeerIdentifier, service_id: uuid.UUID) -> int | None:
        try:
            result = subprocess.run(
                [self._sdptool, "search", "--bdaddr", peer.address, sdp_service_name(service_id)],
                capture_output=True, text=True, timeout=self._timeout,
            )
        except FileNotFoundError:
            logger.warning(
                "%s not available, assuming RFCOMM channel %d", self._sdptool, DEFAULT_RFCOMM_CHANNEL,
            )
            return DEFAULT_RFCOMM_CHANNEL
        except subprocess.TimeoutExpired as exc:
            raise ConnectError(
                ConnectFailure.PEER_UNREACHABLE, f"SDP query to {peer.address} timed out",
            ) from exc

        output = result.stdout + result.stderr
        if "Failed to connect to SDP server" in output:
            raise ConnectError(ConnectFailure.PEER_UNREACHABLE, output.strip().splitlines()[-1])
        return parse_service_channel(output)

    def _run_bluetoothctl(self, *args: str) -> str | None:
        try:
            result = subprocess.run(
                [self._bluetoothctl, *args],
                capture_output=True, text=True, timeout=self._timeout,
            )
        except FileNotFoundError:
            logger.warning("%s not found", self._bluetoothctl)
            return None
        except subprocess.TimeoutExpired:
            logger.warning("%s %s timed out", self._bluetoothctl, " ".join(args))
            return None
        if result.returncode != 0:
            logger.debug(
                "%s %s exited with %d: %s",
                self._bluetoothctl, " ".join(args), result.returncode, result.stderr.strip(),
            )
            return None
        return strip_ansi(result.stdout)


def strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


def parse_device_list(output: str) -> list[PeerIdentifier]:
    peers: list[PeerIdentifier] = []
    seen: set[str] = set()
    for line in strip_ansi(output).splitlines():
        match = _DEVICE_LINE.match(line.strip())
        if not match:
            continue
        address = match.group(1).upper()
        if address in seen:
            continue
        seen.add(address)
        name = match.group(2).strip()
        if name.replace("-", ":").upper() == address:
            name = ""
        peers.append(PeerIdentifier(address=address, name=name))
    return peers


def parse_service_channel(output: str) -> int | None:
    match = _CHANNEL_LINE.search(output)
    if not match:
        return None
    return int(match.group(1))


def sdp_service_name(service_id: uuid.UUID) -> str:
    text = str(service_id).lower()
    if text.startswith("0000") and text.endswith(BLUETOOTH_BASE_UUID_SUFFIX):
        return f"0x{text[4:8].upper()}"
    return text

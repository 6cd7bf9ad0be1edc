import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from robot_remote.config import RobotRemoteConfig
from robot_remote.domain.peer import PeerIdentifier
from robot_remote.ports.adapter import RadioAdapterPort

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(
    config: RobotRemoteConfig,
    adapter: RadioAdapterPort,
    peer: PeerIdentifier | None = None,
) -> list[HealthCheckResult]:
    results = [
        _check_bluetoothctl(config),
        _check_adapter(adapter),
    ]
    if config.transport == "rfcomm":
        results.append(_check_sdptool(config))
    else:
        results.append(_check_serial_port(config))
    if peer is not None:
        results.append(_check_peer_bonded(adapter, peer))

    passed = sum(1 for r in results if r.passed)

    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    critical_checks = {"adapter", "serial_port"}
    return any(not r.passed and r.name in critical_checks for r in results)


def _check_bluetoothctl(config: RobotRemoteConfig) -> HealthCheckResult:
    name = "bluetoothctl"
    path = shutil.which(config.bluetoothctl_command)
    if path is None:
        return HealthCheckResult(name=name, passed=False, detail=f"'{config.bluetoothctl_command}' not on PATH")
    return HealthCheckResult(name=name, passed=True, detail=path)


def _check_adapter(adapter: RadioAdapterPort) -> HealthCheckResult:
    name = "adapter"
    try:
        if adapter.is_available():
            return HealthCheckResult(name=name, passed=True, detail="Default controller available")
        return HealthCheckResult(name=name, passed=False, detail="Bluetooth not supported")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))


def _check_sdptool(config: RobotRemoteConfig) -> HealthCheckResult:
    name = "sdptool"
    if config.rfcomm_channel is not None:
        return HealthCheckResult(
            name=name, passed=True, detail=f"Skipped (channel {config.rfcomm_channel} configured)",
        )
    path = shutil.which(config.sdptool_command)
    if path is None:
        return HealthCheckResult(
            name=name, passed=False, detail=f"'{config.sdptool_command}' not on PATH, default channel will be used",
        )
    return HealthCheckResult(name=name, passed=True, detail=path)


def _check_serial_port(config: RobotRemoteConfig) -> HealthCheckResult:
    name = "serial_port"
    if Path(config.serial_port).exists():
        return HealthCheckResult(name=name, passed=True, detail=f"{config.serial_port} present")
    return HealthCheckResult(
        name=name, passed=False, detail=f"{config.serial_port} missing (bind it with 'rfcomm bind')",
    )


def _check_peer_bonded(adapter: RadioAdapterPort, peer: PeerIdentifier) -> HealthCheckResult:
    name = "peer_bonded"
    try:
        bonded = {p.address.upper() for p in adapter.bonded_peers()}
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))
    if peer.address.upper() in bonded:
        return HealthCheckResult(name=name, passed=True, detail=f"{peer.address} is paired")
    return HealthCheckResult(
        name=name, passed=False, detail=f"{peer.address} is not paired. Pair in system settings first.",
    )

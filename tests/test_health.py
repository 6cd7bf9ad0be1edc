from robot_remote import health
from robot_remote.config import RobotRemoteConfig
from robot_remote.domain.peer import PeerIdentifier
from robot_remote.health import has_critical_failures, run_startup_checks

from tests.conftest import FakeAdapter


def _by_name(results):
    return {r.name: r for r in results}


class TestStartupChecks:
    def test_all_pass(self, monkeypatch, fake_adapter, robot_peer):
        monkeypatch.setattr(health.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")

        results = run_startup_checks(RobotRemoteConfig(), fake_adapter, robot_peer)

        assert all(r.passed for r in results)
        assert set(_by_name(results)) == {"bluetoothctl", "adapter", "sdptool", "peer_bonded"}
        assert not has_critical_failures(results)

    def test_missing_adapter_is_critical(self, monkeypatch):
        monkeypatch.setattr(health.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")

        results = run_startup_checks(RobotRemoteConfig(), FakeAdapter(available=False))

        assert _by_name(results)["adapter"].detail == "Bluetooth not supported"
        assert has_critical_failures(results)

    def test_unpaired_peer_is_not_critical(self, monkeypatch, fake_adapter):
        monkeypatch.setattr(health.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
        stranger = PeerIdentifier(address="11:22:33:44:55:66")

        results = run_startup_checks(RobotRemoteConfig(), fake_adapter, stranger)

        assert not _by_name(results)["peer_bonded"].passed
        assert not has_critical_failures(results)

    def test_missing_sdptool_is_not_critical(self, monkeypatch, fake_adapter):
        monkeypatch.setattr(health.shutil, "which", lambda cmd: None if cmd == "sdptool" else f"/usr/bin/{cmd}")

        results = run_startup_checks(RobotRemoteConfig(), fake_adapter)

        assert not _by_name(results)["sdptool"].passed
        assert not has_critical_failures(results)

    def test_configured_channel_skips_sdptool(self, monkeypatch, fake_adapter):
        monkeypatch.setattr(health.shutil, "which", lambda cmd: None)

        results = run_startup_checks(RobotRemoteConfig(rfcomm_channel=1), fake_adapter)

        assert _by_name(results)["sdptool"].passed

    def test_serial_transport_requires_port(self, monkeypatch, fake_adapter, tmp_path):
        monkeypatch.setattr(health.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")
        config = RobotRemoteConfig(transport="serial", serial_port=str(tmp_path / "rfcomm0"))

        results = run_startup_checks(config, fake_adapter)
        assert has_critical_failures(results)

        (tmp_path / "rfcomm0").touch()
        results = run_startup_checks(config, fake_adapter)
        assert not has_critical_failures(results)

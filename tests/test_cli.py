from __future__ import annotations

from dataclasses import replace

import pytest
from typer.testing import CliRunner

from conftest import FakeDevice
from ledctl import cli
from ledctl.core.model import QueuePolicy
from ledctl.core.profile_loader import LoadedProfiles, load_profiles

runner = CliRunner()


@pytest.fixture
def device(monkeypatch: pytest.MonkeyPatch) -> FakeDevice:
    device = FakeDevice()
    loaded = load_profiles()
    fast = {
        profile_id: replace(profile, queue=QueuePolicy(cooldown_s=0, max_retries=3, base_delay_s=0))
        for profile_id, profile in loaded.profiles.items()
    }

    def fake_transport(base_url: str, *, timeout_s: float = 5.0) -> FakeDevice:
        device.base_url = base_url
        return device

    monkeypatch.setattr(cli, "load_profiles", lambda: LoadedProfiles(fast, loaded.warnings))
    monkeypatch.setattr(cli, "HTTPTransport", fake_transport)
    return device


def test_profiles_command() -> None:
    result = runner.invoke(cli.app, ["profiles"])
    assert result.exit_code == 0
    assert "led_panel: LED Matrix Panel Controller" in result.stdout
    assert "  speed: 10..60000 (piecewise)" in result.stdout
    assert "  spawnRate: 0.00..1.00 (identity)" in result.stdout
    assert "  animation: options from listAnimations" in result.stdout
    assert "  panelOrder: left, right" in result.stdout


def test_map_command() -> None:
    result = runner.invoke(cli.app, ["map", "speed", "100"])
    assert result.exit_code == 0
    assert "speed: slider 100 -> 60000" in result.stdout

    result = runner.invoke(cli.app, ["map", "speed", "500", "--inverse"])
    assert result.exit_code == 0
    assert "speed: 500 -> slider 25" in result.stdout


def test_map_unknown_setting_is_clean() -> None:
    result = runner.invoke(cli.app, ["map", "hue", "1"])
    assert result.exit_code == 1
    assert "Error: Profile 'led_panel' does not define setting 'hue'" in result.stderr
    assert "Traceback" not in result.stderr


def test_show_command(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["show", "--host", "10.0.0.5"])
    assert result.exit_code == 0
    assert device.base_url == "10.0.0.5"
    assert "speed: 500" in result.stdout
    assert "palette: 2: Forest" in result.stdout
    assert "panelCount: 4" in result.stdout
    assert "panelOrder: 0: left" in result.stdout
    assert "(default)" not in result.stdout
    assert device.closed


def test_show_marks_defaults(device: FakeDevice) -> None:
    device.failures["getBrightness"] = -1
    result = runner.invoke(cli.app, ["show"])
    assert result.exit_code == 0
    assert "brightness: 128 (default)" in result.stdout
    assert "Warning: Request /api/getBrightness failed after 4 attempts" in result.stderr


def test_set_command(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "speed", "2500"])
    assert result.exit_code == 0
    assert "Sent speed=2500 via /api/setSpeed?val=2500" in result.stdout
    assert "response=Speed set to 2500" in result.stdout


def test_set_command_slider(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "speed", "100", "--slider"])
    assert result.exit_code == 0
    assert "/api/setSpeed?val=60000" in result.stdout


def test_set_command_enum_by_name(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "animation", "Rainbow"])
    assert result.exit_code == 0
    assert "/api/setAnimation?val=1" in result.stdout


def test_set_unknown_setting_is_clean(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "hue", "3"])
    assert result.exit_code == 1
    assert "Available:" in result.stderr
    assert device.calls == []


def test_set_failure_exits_nonzero(device: FakeDevice) -> None:
    device.failures["setBrightness"] = -1
    result = runner.invoke(cli.app, ["set", "brightness", "10"])
    assert result.exit_code == 1
    assert "Warning: Request /api/setBrightness?val=10 failed after 4 attempts" in result.stderr
    assert "Error: could not write 'brightness' to the device" in result.stderr


def test_profile_override_warning_is_printed(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    profile_dir = tmp_path / "cfg" / "ledctl" / "profiles"
    profile_dir.mkdir(parents=True)
    (profile_dir / "panel.yaml").write_text(
        """
id: led_panel
name: My Panel
settings:
  level:
    set: setLevel
    default: 1
    mapping:
      kind: identity
      control: [0, 9]
      domain: [0, 9]
""",
        encoding="utf-8",
    )
    result = runner.invoke(cli.app, ["profiles"])
    assert result.exit_code == 0
    assert "led_panel: My Panel" in result.stdout
    assert "Warning:" in result.stderr
    assert "overrides" in result.stderr


def test_set_command_invalid_slider_position_is_clamped(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "speed", "fast", "--slider"])
    assert result.exit_code == 0
    assert "Sent speed=10 via /api/setSpeed?val=10" in result.stdout
    assert "Traceback" not in result.stderr


def test_set_command_fixed_option(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "panelOrder", "right"])
    assert result.exit_code == 0
    assert "Sent panelOrder=1 via /api/setPanelOrder?val=right" in result.stdout


def test_set_command_option_index_is_clamped(device: FakeDevice) -> None:
    result = runner.invoke(cli.app, ["set", "rotatePanel1", "7"])
    assert result.exit_code == 0
    assert "/api/rotatePanel1?val=270" in result.stdout

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import pytest

from ledctl.core.errors import TransportResponseError
from ledctl.core.model import DeviceProfile, Endpoint, QueuePolicy
from ledctl.core.profile_loader import load_profiles

PANEL_RESPONSES = {
    "listAnimations": '["Snow", "Rainbow", "Fireworks"]',
    "listPalettes": '["Ocean", "Lava", "Forest"]',
    "getPalette": '{"current": 2}',
    "getBrightness": "200",
    "getFadeAmount": "30",
    "getTailLength": "12",
    "getSpawnRate": "0.25",
    "getMaxFlakes": "250",
    "getSpeed": "500",
    "getPanelCount": '{"panelCount": 4}',
    "rotatePanel1": "Panel1 rotated",
    "rotatePanel2": "Panel2 rotated",
}


class FakeDevice:
    """In-memory device answering like the panel firmware's HTTP API.

    `failures` maps an operation to how many times it fails before it
    succeeds; -1 means it never succeeds.
    """

    def __init__(
        self,
        responses: dict[str, str] | None = None,
        failures: dict[str, int] | None = None,
    ) -> None:
        self.responses = dict(PANEL_RESPONSES if responses is None else responses)
        self.failures = dict(failures or {})
        self.calls: list[Endpoint] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False
        self.observer: Callable[[Endpoint], None] | None = None

    @property
    def operations(self) -> list[str]:
        return [call.operation for call in self.calls]

    async def request(self, endpoint: Endpoint) -> str:
        self.calls.append(endpoint)
        if self.observer is not None:
            self.observer(endpoint)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            remaining = self.failures.get(endpoint.operation, 0)
            if remaining:
                if remaining > 0:
                    self.failures[endpoint.operation] = remaining - 1
                raise TransportResponseError(f"{endpoint} returned HTTP 500", status=500)
            if endpoint.operation.startswith("set"):
                return f"{endpoint.operation[3:]} set to {endpoint.value}"
            if endpoint.operation not in self.responses:
                raise TransportResponseError(f"{endpoint} returned HTTP 404", status=404)
            return self.responses[endpoint.operation]
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture(autouse=True)
def isolated_profile_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("LEDCTL_HOST", raising=False)


@pytest.fixture
def panel_profile() -> DeviceProfile:
    profile = load_profiles().profiles["led_panel"]
    return replace(profile, queue=QueuePolicy(cooldown_s=0.1, max_retries=3, base_delay_s=0.5))

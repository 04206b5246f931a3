from __future__ import annotations

import asyncio

from conftest import FakeDevice, RecordingNotifier, RecordingSleep
from ledctl.core.engine import SyncEngine
from ledctl.core.model import BootstrapState, DeviceProfile, Endpoint
from ledctl.core.surface import MemorySurface


def _engine(profile: DeviceProfile, device: FakeDevice) -> SyncEngine:
    return SyncEngine(
        profile,
        transport=device,
        surface=MemorySurface(),
        notifier=RecordingNotifier(),
        sleep=RecordingSleep(),
    )


def test_bootstrap_fetches_in_stage_order(panel_profile: DeviceProfile) -> None:
    device = FakeDevice()
    engine = _engine(panel_profile, device)
    seen: list[tuple[str, BootstrapState]] = []

    def observe(endpoint: Endpoint) -> None:
        seen.append((endpoint.operation, engine.state))

    device.observer = observe
    assert engine.state is BootstrapState.IDLE
    assert asyncio.run(engine.start()) is BootstrapState.READY

    assert seen == [
        ("listAnimations", BootstrapState.FETCHING_OPTIONS),
        ("listPalettes", BootstrapState.FETCHING_OPTIONS),
        ("getBrightness", BootstrapState.FETCHING_SCALARS),
        ("getFadeAmount", BootstrapState.FETCHING_SCALARS),
        ("getTailLength", BootstrapState.FETCHING_SCALARS),
        ("getSpawnRate", BootstrapState.FETCHING_SCALARS),
        ("getMaxFlakes", BootstrapState.FETCHING_SCALARS),
        ("getSpeed", BootstrapState.FETCHING_SCALARS),
        ("getPanelCount", BootstrapState.FETCHING_SCALARS),
        ("getPalette", BootstrapState.FETCHING_DERIVED),
    ]


def test_bootstrap_applies_device_values(panel_profile: DeviceProfile) -> None:
    device = FakeDevice()
    engine = _engine(panel_profile, device)

    asyncio.run(engine.start())

    surface = engine.surface
    assert surface.options["animation.slider"] == ("Snow", "Rainbow", "Fireworks")
    assert surface.texts["palette.display"] == "2: Forest"
    assert surface.values["brightness.slider"] == 200
    assert surface.values["speed.slider"] == 25
    assert surface.values["speed.field"] == 500
    assert surface.texts["spawnRate.display"] == "0.25"
    assert surface.values["panelCount.slider"] == 4
    assert engine.binding("maxFlakes").state.confirmed == 250
    assert not any(op.startswith("set") for op in device.operations)


def test_failed_option_list_falls_back_and_continues(panel_profile: DeviceProfile) -> None:
    device = FakeDevice(failures={"listAnimations": -1})
    engine = _engine(panel_profile, device)

    assert asyncio.run(engine.start()) is BootstrapState.READY

    animation = engine.binding("animation")
    assert animation.state.options == ()
    assert animation.value == 0
    assert engine.surface.texts["animation.display"] == "0"
    assert device.operations.count("listAnimations") == 4
    assert "getSpeed" in device.operations
    assert engine.notifier.messages == ["Request /api/listAnimations failed after 4 attempts"]


def test_malformed_response_uses_default(panel_profile: DeviceProfile) -> None:
    responses = dict(FakeDevice().responses)
    responses["getBrightness"] = "<html>oops</html>"
    responses["getPanelCount"] = '{"count": 3}'
    engine = _engine(panel_profile, FakeDevice(responses=responses))

    assert asyncio.run(engine.start()) is BootstrapState.READY

    brightness = engine.binding("brightness")
    assert brightness.value == 128
    assert brightness.state.confirmed is None
    assert engine.binding("panelCount").value == 1
    assert engine.binding("fadeAmount").value == 30


def test_writes_before_ready_are_flushed_after_reads(panel_profile: DeviceProfile) -> None:
    device = FakeDevice()
    engine = _engine(panel_profile, device)

    async def scenario() -> None:
        engine.set_value("brightness", 42)
        assert engine.deferred == (("brightness", 42),)
        await engine.start()
        await engine.join()

    asyncio.run(scenario())
    assert engine.deferred == ()
    assert device.operations[-1] == "setBrightness"
    assert device.operations.index("setBrightness") > device.operations.index("getBrightness")
    assert str(device.calls[-1]) == "/api/setBrightness?val=42"
    assert engine.binding("brightness").state.confirmed == 42
    assert engine.binding("brightness").value == 42


def test_second_run_is_a_no_op(panel_profile: DeviceProfile) -> None:
    device = FakeDevice()
    engine = _engine(panel_profile, device)

    async def scenario() -> None:
        await engine.start()
        await engine.start()

    asyncio.run(scenario())
    assert device.operations.count("getSpeed") == 1


class FlakySurface(MemorySurface):
    """Surface that rejects the first update of one control."""

    def __init__(self, control_id: str) -> None:
        super().__init__()
        self._control_id = control_id
        self._failed = False

    def set_value(self, control_id: str, value: float) -> None:
        if control_id == self._control_id and not self._failed:
            self._failed = True
            raise RuntimeError("control not ready")
        super().set_value(control_id, value)


def test_apply_error_falls_back_to_default(panel_profile: DeviceProfile) -> None:
    device = FakeDevice()
    engine = SyncEngine(
        panel_profile,
        transport=device,
        surface=FlakySurface("brightness.slider"),
        notifier=RecordingNotifier(),
        sleep=RecordingSleep(),
    )

    assert asyncio.run(engine.start()) is BootstrapState.READY

    brightness = engine.binding("brightness")
    assert brightness.value == 128
    assert brightness.state.confirmed is None
    assert engine.surface.values["brightness.slider"] == 128
    assert engine.binding("speed").value == 500

"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging

import typer

from ledctl.core.engine import SyncEngine, resolve_base_url, resolve_profile
from ledctl.core.errors import LedctlError
from ledctl.core.mapping import build_mapper, format_value
from ledctl.core.model import DeviceProfile
from ledctl.core.notify import Notification, NotificationCenter
from ledctl.core.profile_loader import load_profiles
from ledctl.transports.http import HTTPTransport

app = typer.Typer(help="Keep LED panel controller settings in sync over its HTTP API")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every request and retry"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load() -> dict[str, DeviceProfile]:
    loaded = load_profiles()
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return loaded.profiles


def _echo_notification(notification: Notification) -> None:
    typer.echo(f"Warning: {notification.message}", err=True)


def _build_engine(profile: DeviceProfile, host: str | None) -> SyncEngine:
    transport = HTTPTransport(resolve_base_url(profile, host), timeout_s=profile.timeout_s)
    notifier = NotificationCenter(ttl_s=profile.queue.notification_ttl_s, on_show=_echo_notification)
    return SyncEngine(profile, transport=transport, notifier=notifier)


@app.command("profiles")
def list_profiles() -> None:
    """List available device profiles and their settings."""
    try:
        profiles = _load()
        if not profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile in sorted(profiles.values(), key=lambda p: p.id):
            typer.echo(f"{profile.id}: {profile.name} ({profile.base_url})")
            for setting in profile.settings.values():
                if setting.list_op:
                    typer.echo(f"  {setting.id}: options from {setting.list_op}")
                    continue
                if setting.options:
                    typer.echo(f"  {setting.id}: {', '.join(setting.options)}")
                    continue
                mapping = setting.mapping
                typer.echo(
                    f"  {setting.id}: {format_value(mapping, mapping.domain_min)}"
                    f"..{format_value(mapping, mapping.domain_max)} ({mapping.kind})"
                )
    except LedctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("map")
def map_value(
    setting: str,
    value: float,
    inverse: bool = typer.Option(False, "--inverse", help="Map a device value back to a slider position"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """Show how a slider position maps to the device value (offline)."""
    try:
        target = resolve_profile(_load(), profile)
        spec = target.settings.get(setting)
        if spec is None:
            available = ", ".join(target.settings)
            raise LedctlError(f"Profile '{target.id}' does not define setting '{setting}'. Available: {available}")
        mapper = build_mapper(spec.mapping)
        if inverse:
            typer.echo(f"{setting}: {format_value(spec.mapping, value)} -> slider {mapper.to_control(value)}")
        else:
            typer.echo(f"{setting}: slider {value:g} -> {format_value(spec.mapping, mapper.to_domain(value))}")
    except LedctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


async def _show(engine: SyncEngine) -> None:
    async with engine:
        await engine.start()
        await engine.join()
        for setting_id, binding in engine.bindings.items():
            text = binding.display_text(binding.value)
            unread = binding.setting.get_op is not None and binding.state.confirmed is None
            marker = " (default)" if unread else ""
            typer.echo(f"{setting_id}: {text}{marker}")


@app.command("show")
def show(
    host: str | None = typer.Option(None, "--host", help="Device address (overrides LEDCTL_HOST)"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """Read every setting from the device and print it."""
    try:
        target = resolve_profile(_load(), profile)
        asyncio.run(_show(_build_engine(target, host)))
    except LedctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


async def _set(engine: SyncEngine, setting: str, value: str, slider: bool) -> bool:
    async with engine:
        engine.binding(setting)
        await engine.start()
        engine.set_value(setting, value, slider=slider)
        await engine.join()
        for result in engine.writes:
            typer.echo(f"Sent {result.setting}={result.value} via {result.endpoint}")
            if result.response:
                typer.echo(f"response={result.response.strip()}")
        return bool(engine.writes)


@app.command("set")
def set_setting(
    setting: str,
    value: str,
    slider: bool = typer.Option(False, "--slider", help="VALUE is a slider position, not a device value"),
    host: str | None = typer.Option(None, "--host", help="Device address (overrides LEDCTL_HOST)"),
    profile: str | None = typer.Option(None, "--profile", help="Profile ID"),
) -> None:
    """Set a setting on the device.

    Enumerated settings accept an option name or index. Out-of-range values
    are clamped before anything is sent.
    """
    try:
        target = resolve_profile(_load(), profile)
        sent = asyncio.run(_set(_build_engine(target, host), setting, value, slider))
    except LedctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if not sent:
        typer.echo(f"Error: could not write '{setting}' to the device", err=True)
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()

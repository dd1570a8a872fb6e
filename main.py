"""CLI entry point using Click."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from ya_frida_tool.config import AppConfig
from ya_frida_tool.core.targets import (
    AllByName,
    AnyByName,
    ByFrontmost,
    ByGating,
    ByName,
    DeviceByHost,
    DeviceById,
    RemoteDevice,
    Spawn,
    Target,
    TargetDevice,
    UsbDevice,
    infer_process,
    parse_device,
)


@click.group()
@click.option(
    "--config", "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config.toml file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """Ya-Frida-Tool: attach a Frida agent to processes across devices."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = AppConfig.load(config)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


def build_device(
    default: str,
    *,
    usb: bool = False,
    remote: bool = False,
    host: str | None = None,
    device_id: str | None = None,
) -> TargetDevice:
    """Pick the device selector from CLI flags, falling back to *default*."""
    if device_id:
        return DeviceById(device_id)
    if host:
        return DeviceByHost(host)
    if usb:
        return UsbDevice()
    if remote:
        return RemoteDevice()
    return parse_device(default)


def build_target(
    device: TargetDevice,
    *,
    spawn: tuple[str, ...] = (),
    names: tuple[str, ...] = (),
    all_names: tuple[str, ...] = (),
    any_names: tuple[str, ...] = (),
    pids: tuple[int, ...] = (),
    frontmost: bool = False,
    wait: tuple[str, ...] = (),
    positional: str | None = None,
) -> Target | None:
    """Fold the process flags into one Target, or None if none were given."""
    target = Target(device=device)
    for program in spawn:
        target.add_process(Spawn(program))
    for name in names:
        target.add_process(ByName(name))
    for name in all_names:
        target.add_process(AllByName(name))
    for name in any_names:
        target.add_process(AnyByName(name))
    if pids:
        target.add_pids(*pids)
    if frontmost:
        target.add_process(ByFrontmost())
    for name in wait:
        target.add_process(ByGating(name))
    if positional is not None:
        target.add_process(infer_process(positional))
    return target if target.processes else None


@cli.command()
@click.argument("target", required=False)
@click.option("--usb", "-U", is_flag=True, help="Connect to USB device.")
@click.option("--remote", "-R", is_flag=True, help="Connect to remote frida-server.")
@click.option("--host", "-H", default=None, help="Connect to remote frida-server on HOST.")
@click.option("--device", "-D", "device_id", default=None, help="Connect to device with the given ID.")
@click.option("--file", "-f", "spawn", multiple=True, help="Spawn FILE.")
@click.option("--attach-name", "-n", "names", multiple=True, help="Attach to NAME.")
@click.option("--all-by-name", "-a", "all_names", multiple=True, help="Attach to all processes named NAME.")
@click.option("--any-by-name", "-N", "any_names", multiple=True, help="Attach to the first process named NAME.")
@click.option("--attach-pid", "-p", "pids", type=int, multiple=True, help="Attach to PID (repeatable).")
@click.option("--attach-frontmost", "-F", "frontmost", is_flag=True, help="Attach to frontmost application.")
@click.option("--wait", "-w", multiple=True, help="Attach to NAME as soon as it's spawned.")
@click.option("--script", "-s", type=click.Path(exists=True, dir_okay=False), default=None, help="Agent script to load.")
@click.option("--runtime", type=click.Choice(["qjs", "v8"]), default=None, help="Script runtime.")
@click.pass_context
def run(
    ctx: click.Context,
    target: str | None,
    usb: bool,
    remote: bool,
    host: str | None,
    device_id: str | None,
    spawn: tuple[str, ...],
    names: tuple[str, ...],
    all_names: tuple[str, ...],
    any_names: tuple[str, ...],
    pids: tuple[int, ...],
    frontmost: bool,
    wait: tuple[str, ...],
    script: str | None,
    runtime: str | None,
) -> None:
    """Instrument the selected processes until they exit or Ctrl-C."""
    import asyncio
    import contextlib
    import signal

    from ya_frida_tool.application import Application
    from ya_frida_tool.console import ConsoleUI

    cfg: AppConfig = ctx.obj["config"]
    if script:
        cfg.frida.script = script
    if runtime:
        cfg.frida.runtime = runtime

    device = build_device(cfg.frida.default_device, usb=usb, remote=remote, host=host, device_id=device_id)
    cli_target = build_target(
        device,
        spawn=spawn, names=names, all_names=all_names, any_names=any_names,
        pids=pids, frontmost=frontmost, wait=wait, positional=target,
    )
    if cli_target is not None:
        cfg.targets = [cli_target]
    if not cfg.targets:
        raise click.UsageError("Expected a target")

    async def _run() -> None:
        app = Application(cfg, ConsoleUI())
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, app.stop)
        await app.run()

    try:
        asyncio.run(_run())
    except Exception as exc:
        logging.getLogger(__name__).debug("Run failed", exc_info=True)
        click.echo(click.style(f"{type(exc).__name__}: {exc}", fg="bright_red"), err=True)
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# config / version
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def init_config(ctx: click.Context) -> None:
    """Generate a default config.toml in the current directory."""
    target = Path.cwd() / "config.toml"
    if target.exists():
        click.confirm(f"{target} already exists. Overwrite?", abort=True)
    cfg = AppConfig()
    cfg.save(target)
    click.echo(f"Config written to {target}")


@cli.command()
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Display the current resolved configuration."""
    import json

    cfg: AppConfig = ctx.obj["config"]
    click.echo(json.dumps(cfg.to_dict(), indent=2))


@cli.command()
def version() -> None:
    """Show version information."""
    import frida

    from ya_frida_tool import __version__

    click.echo(f"ya-frida-tool  {__version__}")
    click.echo(f"frida          {frida.__version__}")


if __name__ == "__main__":
    cli()

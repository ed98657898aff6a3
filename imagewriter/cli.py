"""Thin CLI wrapper for imagewriter.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from imagewriter import __version__
from imagewriter.config import get_settings, print_settings_json
from imagewriter.logging_setup import configure_logging
from imagewriter.units import human_size

app = typer.Typer(
    name="imagewriter",
    help="Write disk images to removable block devices",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"imagewriter version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """imagewriter - find disk images and write them to USB/SD devices."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    log_file_display = str(settings.log_file) if settings.log_file else "(none)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Logging:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Log file:            {log_file_display}")
    console.print()
    console.print("[bold]Image discovery:[/bold]")
    console.print(f"  Max depth:           {settings.scan_max_depth}")
    console.print(f"  Minimum size:        {human_size(settings.min_image_size)}")
    console.print(f"  Extensions:          {', '.join(settings.image_extensions)}")
    console.print()
    console.print("[bold]Write / verify:[/bold]")
    console.print(f"  Block size:          {human_size(settings.block_size)}")
    console.print(f"  Verify after write:  {settings.verify_after_write}")
    console.print()
    console.print("[bold]Interactive session:[/bold]")
    console.print(f"  Tick interval (s):   {settings.tick_interval}")
    console.print(f"  Elevation command:   {settings.elevation_command}")


@app.command()
def devices(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List writable whole-disk block devices.

    Loop devices, read-only devices and the disk holding the root
    filesystem are never listed.
    """
    from imagewriter.devices.lsblk import DeviceDiscoveryError, probe_devices

    try:
        found = probe_devices()
    except DeviceDiscoveryError as e:
        console.print(f"[red]Device discovery failed: {e.message}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = [
            {
                "name": d.name,
                "path": str(d.path),
                "size": d.size,
                "model": d.model,
                "serial": d.serial,
                "transport": d.transport,
                "removable": d.removable,
                "hotplug": d.hotplug,
                "mounted": d.mounted,
                "labels": list(d.labels),
            }
            for d in found
        ]
        console.print(json.dumps(output, indent=2), soft_wrap=True)
        return

    if not found:
        console.print("[yellow]No writable devices found[/yellow]")
        return

    table = Table(title="Writable devices")
    table.add_column("Device")
    table.add_column("Size", justify="right")
    table.add_column("Model")
    table.add_column("Transport")
    table.add_column("Flags")
    table.add_column("Labels")
    for d in found:
        flags = [
            name
            for name, value in (
                ("hotplug", d.hotplug),
                ("removable", d.removable),
                ("mounted", d.mounted),
            )
            if value
        ]
        table.add_row(
            str(d.path),
            human_size(d.size),
            d.model or "",
            d.transport or "",
            ",".join(flags),
            ", ".join(d.labels),
        )
    console.print(table)


@app.command()
def images(
    query: Annotated[
        str,
        typer.Option("--query", "-q", help="Case-insensitive file name filter"),
    ] = "",
    roots: Annotated[
        list[Path] | None,
        typer.Option(
            "--root",
            "-r",
            help="Directory to scan (can be repeated; default: ., ~/Downloads, ~)",
        ),
    ] = None,
    min_size: Annotated[
        int | None,
        typer.Option("--min-size", help="Smallest image size in bytes"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Find disk images (.iso, .img, .raw), newest first."""
    from imagewriter.images.scanner import default_roots, scan
    from imagewriter.types import DirectoryPath

    settings = get_settings()
    scan_roots = [DirectoryPath(p) for p in roots] if roots else default_roots()
    found = scan(
        scan_roots,
        query,
        max_depth=settings.scan_max_depth,
        min_size=settings.min_image_size if min_size is None else min_size,
        extensions=settings.image_extensions,
    )

    if json_output:
        output = [
            {
                "path": str(c.path),
                "size": c.size,
                "modified": c.modified.isoformat() if c.modified else None,
            }
            for c in found
        ]
        console.print(json.dumps(output, indent=2), soft_wrap=True)
        return

    if not found:
        console.print("[yellow]No images found[/yellow]")
        return

    table = Table(title="Disk images")
    table.add_column("Image")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for c in found:
        table.add_row(
            str(c.path),
            human_size(c.size),
            c.modified.strftime("%Y-%m-%d %H:%M") if c.modified else "",
        )
    console.print(table)


@app.command()
def run(
    verify: Annotated[
        bool | None,
        typer.Option(
            "--verify/--no-verify",
            help="Verify the device against the image after writing",
        ),
    ] = None,
) -> None:
    """Start the interactive image writer.

    Pick an image, pick a device, type YES and the image is written.
    Requires an interactive terminal; writing usually requires root.
    """
    from imagewriter.app.dispatcher import Dispatcher
    from imagewriter.app.model import Model
    from imagewriter.app.runtime import run as run_event_loop
    from imagewriter.devices.platform import is_privileged
    from imagewriter.ui.render import done_summary
    from imagewriter.ui.terminal import KeyReader, TerminalSession

    if not sys.stdin.isatty():
        console.print("[red]The interactive writer needs a terminal on stdin[/red]")
        raise typer.Exit(code=1)

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file, interactive=True)

    model = Model(
        privileged=is_privileged(),
        verify_enabled=settings.verify_after_write if verify is None else verify,
    )

    with TerminalSession(console) as session:
        dispatcher = Dispatcher(
            settings,
            before_exec=session.restore,
            after_exec_failed=session.resume,
        )
        reader = KeyReader(dispatcher.post)
        reader.start()
        try:
            final = run_event_loop(
                model, dispatcher, session.render, settings.tick_interval
            )
        finally:
            reader.stop()

    if final.write_outcome is None:
        return
    for line in done_summary(final):
        console.print(line)
    failed = [
        o for o in (final.write_outcome, final.verify_outcome) if o and o.is_failure
    ]
    if failed:
        raise typer.Exit(code=1)


__all__ = ["app"]

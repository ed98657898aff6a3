"""Rich rendering of the model.

Every function here is a pure view of the Model; nothing mutates state or
performs I/O. render_model() returns one renderable for the current screen.
"""

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from imagewriter.app.model import CONFIRM_TOKEN, Model
from imagewriter.types import Device, JobOutcome, Screen, TransferProgress
from imagewriter.units import format_eta, human_rate, human_size

_PERMISSION_MARKERS = ("permission denied", "operation not permitted")

_TITLES = {
    Screen.IMAGE_SEARCH: "Select image",
    Screen.DEVICE_SELECT: "Select device",
    Screen.CONFIRM: "Confirm write",
    Screen.WRITING: "Writing",
    Screen.DONE: "Done",
}

_FOOTERS = {
    Screen.IMAGE_SEARCH: (
        "type to search  up/down select  enter choose  tab next  ctrl+c quit"
    ),
    Screen.DEVICE_SELECT: "up/down select  enter choose  r refresh  esc back  q quit",
    Screen.CONFIRM: (
        f"type {CONFIRM_TOKEN} and press enter  v verify  ctrl+s run as root  esc back"
    ),
    Screen.WRITING: "please wait, the write cannot be interrupted",
    Screen.DONE: "esc write another device  q quit",
}


def permission_hint(message: str | None, privileged: bool) -> str | None:
    """Return a 'run as root' hint when a failure looks permission related."""
    text = (message or "").lower()
    if not privileged or any(marker in text for marker in _PERMISSION_MARKERS):
        return "Hint: writing to block devices usually requires root (ctrl+s or sudo)."
    return None


def device_label(device: Device) -> str:
    """One-line description of a device."""
    parts = [str(device.path), human_size(device.size)]
    if device.model:
        parts.append(device.model)
    if device.transport:
        parts.append(device.transport.upper())
    if device.labels:
        parts.append("[" + ", ".join(device.labels) + "]")
    if device.mounted:
        parts.append("(mounted)")
    return "  ".join(parts)


def progress_line(progress: TransferProgress) -> Text:
    """Percent, bytes, rate and ETA of a transfer."""
    return Text(
        f"{progress.percent:5.1f}%  "
        f"{human_size(progress.done)} / {human_size(progress.total)}  "
        f"{human_rate(progress.throughput)}  "
        f"ETA {format_eta(progress.eta_seconds)}"
    )


def _progress_block(label: str, progress: TransferProgress) -> RenderableType:
    return Group(
        Text(label, style="bold"),
        ProgressBar(total=max(progress.total, 1), completed=progress.done, width=50),
        progress_line(progress),
    )


def _outcome_text(what: str, outcome: JobOutcome | None) -> Text:
    if outcome is None:
        return Text(f"{what}: unknown", style="yellow")
    if outcome.is_pending:
        return Text(f"{what}: in progress", style="yellow")
    if outcome.is_success:
        return Text(f"{what}: succeeded", style="green")
    return Text(f"{what} failed: {outcome.message}", style="red")


def render_image_search(model: Model) -> RenderableType:
    rows: list[RenderableType] = [Text(f"Search: {model.query}_")]
    if model.image_error:
        rows.append(Text(model.image_error, style="red"))
    if model.image_scanning:
        rows.append(Text("Scanning...", style="dim"))

    table = Table(expand=True, show_edge=False)
    table.add_column("")
    table.add_column("Image")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for index, image in enumerate(model.images):
        marker = ">" if index == model.image_selected else ""
        modified = image.modified.strftime("%Y-%m-%d %H:%M") if image.modified else ""
        style = "reverse" if marker else None
        table.add_row(
            marker,
            Text(str(image.path)),
            human_size(image.size),
            modified,
            style=style,
        )
    if model.images:
        rows.append(table)
    elif model.images_scanned and not model.image_scanning:
        rows.append(Text("No images found", style="yellow"))
    return Group(*rows)


def render_device_select(model: Model) -> RenderableType:
    rows: list[RenderableType] = []
    if model.image_chosen is not None:
        rows.append(Text(f"Image: {model.image_chosen}"))
    if model.device_refreshing:
        rows.append(Text("Refreshing devices...", style="dim"))
    if model.device_error:
        rows.append(Text(model.device_error, style="red"))
    for index, device in enumerate(model.devices):
        selected = index == model.device_selected
        rows.append(
            Text(
                ("> " if selected else "  ") + device_label(device),
                style="reverse" if selected else "",
            )
        )
    if not model.devices and not model.device_refreshing:
        rows.append(Text("No writable devices found", style="yellow"))
    return Group(*rows)


def render_confirm(model: Model) -> RenderableType:
    device = next(
        (d for d in model.devices if d.path == model.device_chosen), None
    )
    target = device_label(device) if device is not None else str(model.device_chosen)
    rows: list[RenderableType] = [
        Text(f"Image:  {model.image_chosen}"),
        Text(f"Device: {target}"),
        Text(""),
        Text("ALL DATA ON THE DEVICE WILL BE DESTROYED.", style="bold red"),
        Text(f"Verify after write: {'on' if model.verify_enabled else 'off'}"),
        Text(f"Type {CONFIRM_TOKEN} to continue: {model.confirm_text}_"),
    ]
    if not model.privileged:
        rows.append(
            Text("Not running as root; ctrl+s restarts with sudo.", style="yellow")
        )
    return Group(*rows)


def render_writing(model: Model) -> RenderableType:
    rows: list[RenderableType] = [
        Text(f"{model.image_chosen} -> {model.device_chosen}"),
        _progress_block("Write", model.write_progress),
    ]
    if model.verify_outcome is not None:
        rows.append(_progress_block("Verify", model.verify_progress))
    for warning in model.write_warnings:
        rows.append(Text(f"Warning: {warning}", style="yellow"))
    return Group(*rows)


def done_summary(model: Model) -> list[Text]:
    """Lines describing the result of the last write and verify."""
    lines = [_outcome_text("Write", model.write_outcome)]
    if model.write_outcome is not None and model.write_outcome.is_success:
        lines.append(Text(f"Wrote {human_size(model.write_progress.done)}"))
    if model.verify_outcome is not None:
        lines.append(_outcome_text("Verify", model.verify_outcome))
    for warning in model.write_warnings:
        lines.append(Text(f"Warning: {warning}", style="yellow"))

    failure = next(
        (
            outcome.message
            for outcome in (model.write_outcome, model.verify_outcome)
            if outcome is not None and outcome.is_failure
        ),
        None,
    )
    if failure is not None:
        hint = permission_hint(failure, model.privileged)
        if hint:
            lines.append(Text(hint, style="cyan"))
    return lines


def render_done(model: Model) -> RenderableType:
    return Group(*done_summary(model))


_SCREENS = {
    Screen.IMAGE_SEARCH: render_image_search,
    Screen.DEVICE_SELECT: render_device_select,
    Screen.CONFIRM: render_confirm,
    Screen.WRITING: render_writing,
    Screen.DONE: render_done,
}


def render_model(model: Model) -> RenderableType:
    """Render the current screen with its title, notice and key help."""
    body = _SCREENS[model.screen](model)
    parts: list[RenderableType] = [body]
    if model.notice:
        parts.append(Text(model.notice, style="bold yellow"))
    return Panel(
        Group(*parts),
        title=f"imagewriter - {_TITLES[model.screen]}",
        subtitle=_FOOTERS[model.screen],
    )


__all__ = [
    "device_label",
    "done_summary",
    "permission_hint",
    "progress_line",
    "render_model",
]

"""The reducer: update(model, msg) -> (model, commands).

update() is pure and total. It never performs I/O and never raises on a
failure payload; background effects are requested by returning commands,
and their results come back as messages.
"""

from collections.abc import Callable
from dataclasses import replace
from typing import Any

from imagewriter.app import messages as m
from imagewriter.app.commands import (
    Cmd,
    RefreshDevices,
    ReexecPrivileged,
    ScanImages,
    VerifyImage,
    WriteImage,
)
from imagewriter.app.model import CONFIRM_TOKEN, Model
from imagewriter.types import JobOutcome, Screen, TransferProgress

Result = tuple[Model, list[Cmd]]

_BACK = {
    Screen.DEVICE_SELECT: Screen.IMAGE_SEARCH,
    Screen.CONFIRM: Screen.DEVICE_SELECT,
    Screen.WRITING: Screen.CONFIRM,
    Screen.DONE: Screen.DEVICE_SELECT,
}


def next_screen(model: Model) -> Screen:
    """Target of the forward navigation intent."""
    if model.screen == Screen.IMAGE_SEARCH:
        return Screen.DEVICE_SELECT
    if model.screen == Screen.DEVICE_SELECT:
        return Screen.CONFIRM if model.can_start_write() else Screen.IMAGE_SEARCH
    if model.screen == Screen.CONFIRM:
        return Screen.IMAGE_SEARCH
    return model.screen


def prev_screen(model: Model) -> Screen:
    """Target of the backward cyclic navigation intent."""
    if model.screen == Screen.IMAGE_SEARCH:
        return Screen.CONFIRM if model.can_start_write() else Screen.DEVICE_SELECT
    return _BACK[model.screen]


def _clamp(index: int, length: int) -> int:
    if length == 0:
        return 0
    return max(0, min(index, length - 1))


def _scan(model: Model, query: str) -> Result:
    model = replace(
        model,
        query=query,
        image_selected=0,
        image_scanning=True,
        images_scanned=True,
    )
    return model, [ScanImages(query=query)]


def _refresh(model: Model) -> Result:
    return replace(model, device_refreshing=True), [RefreshDevices()]


# Navigation


def _on_tick(model: Model, msg: m.Tick) -> Result:
    if (
        model.screen == Screen.IMAGE_SEARCH
        and not model.image_scanning
        and not model.images_scanned
    ):
        return _scan(model, model.query)
    if (
        model.screen == Screen.DEVICE_SELECT
        and not model.device_refreshing
        and not model.devices
    ):
        return _refresh(model)
    return model, []


def _on_quit(model: Model, msg: m.Quit) -> Result:
    # A running write or verify is never abandoned half way
    if model.is_job_running():
        return model, []
    return replace(model, quitting=True), []


def _on_back(model: Model, msg: m.Back) -> Result:
    return replace(model, screen=_BACK.get(model.screen, model.screen)), []


def _on_next(model: Model, msg: m.NextScreen) -> Result:
    return replace(model, screen=next_screen(model)), []


def _on_prev(model: Model, msg: m.PrevScreen) -> Result:
    return replace(model, screen=prev_screen(model)), []


# Image search


def _on_query_changed(model: Model, msg: m.QueryChanged) -> Result:
    return _scan(model, msg.query)


def _on_images_scanned(model: Model, msg: m.ImagesScanned) -> Result:
    images = tuple(msg.results)
    return (
        replace(
            model,
            images=images,
            image_selected=_clamp(model.image_selected, len(images)),
            image_scanning=False,
            image_error=None,
        ),
        [],
    )


def _on_image_scan_failed(model: Model, msg: m.ImageScanFailed) -> Result:
    return replace(model, image_scanning=False, image_error=msg.message), []


def _on_move_image(model: Model, msg: m.MoveImageSelection) -> Result:
    if not model.images:
        return model, []
    index = _clamp(model.image_selected + msg.delta, len(model.images))
    return replace(model, image_selected=index), []


def _on_confirm_image(model: Model, msg: m.ConfirmImage) -> Result:
    candidate = model.selected_image()
    if candidate is None:
        return model, []
    model = replace(model, image_chosen=candidate.path, screen=Screen.DEVICE_SELECT)
    return _refresh(model)


# Devices


def _on_refresh_requested(model: Model, msg: m.RefreshDevicesRequested) -> Result:
    return _refresh(model)


def _on_devices_refreshed(model: Model, msg: m.DevicesRefreshed) -> Result:
    devices = tuple(msg.devices)
    return (
        replace(
            model,
            devices=devices,
            device_selected=_clamp(model.device_selected, len(devices)),
            device_refreshing=False,
            device_error=None,
        ),
        [],
    )


def _on_devices_refresh_failed(model: Model, msg: m.DevicesRefreshFailed) -> Result:
    return (
        replace(
            model,
            devices=(),
            device_selected=0,
            device_refreshing=False,
            device_error=msg.message,
        ),
        [],
    )


def _on_move_device(model: Model, msg: m.MoveDeviceSelection) -> Result:
    if not model.devices:
        return model, []
    index = _clamp(model.device_selected + msg.delta, len(model.devices))
    return replace(model, device_selected=index), []


def _on_confirm_device(model: Model, msg: m.ConfirmDevice) -> Result:
    device = model.selected_device()
    if device is None:
        return model, []
    return (
        replace(
            model,
            device_chosen=device.path,
            confirm_text="",
            screen=Screen.CONFIRM,
        ),
        [],
    )


# Confirmation


def _on_confirm_text_changed(model: Model, msg: m.ConfirmTextChanged) -> Result:
    return replace(model, confirm_text=msg.text), []


def _on_toggle_verify(model: Model, msg: m.ToggleVerify) -> Result:
    return replace(model, verify_enabled=not model.verify_enabled), []


def _on_start_write(model: Model, msg: m.StartWrite) -> Result:
    image, device = model.image_chosen, model.device_chosen
    if model.screen != Screen.CONFIRM or not model.is_confirmation_valid():
        return model, []
    if model.is_job_running():
        return model, []
    if image is None or device is None:
        return model, []
    model = replace(
        model,
        screen=Screen.WRITING,
        write_progress=TransferProgress(),
        write_outcome=JobOutcome.pending(),
        write_warnings=(),
        verify_progress=TransferProgress(),
        verify_outcome=None,
    )
    return model, [WriteImage(image=image, device=device)]


# Write job


def _on_write_started(model: Model, msg: m.WriteStarted) -> Result:
    return replace(model, write_progress=TransferProgress(total=msg.total)), []


def _on_write_progress(model: Model, msg: m.WriteProgress) -> Result:
    progress = TransferProgress(
        done=msg.done,
        total=max(msg.total, msg.done),
        throughput=msg.throughput,
    )
    return replace(model, write_progress=progress), []


def _on_write_warning(model: Model, msg: m.WriteWarning) -> Result:
    return replace(model, write_warnings=(*model.write_warnings, msg.message)), []


def _on_write_finished(model: Model, msg: m.WriteFinished) -> Result:
    if msg.error is not None:
        return (
            replace(
                model,
                write_outcome=JobOutcome.failed(msg.error),
                screen=Screen.DONE,
            ),
            [],
        )

    model = replace(model, write_outcome=JobOutcome.succeeded())
    image, device = model.image_chosen, model.device_chosen
    if model.verify_enabled and image is not None and device is not None:
        size = model.write_progress.total
        model = replace(
            model,
            verify_outcome=JobOutcome.pending(),
            verify_progress=TransferProgress(total=size),
        )
        return model, [VerifyImage(image=image, device=device, size=size)]

    return replace(model, screen=Screen.DONE), []


# Verify job


def _on_verify_started(model: Model, msg: m.VerifyStarted) -> Result:
    return replace(model, verify_progress=TransferProgress(total=msg.total)), []


def _on_verify_progress(model: Model, msg: m.VerifyProgress) -> Result:
    progress = TransferProgress(
        done=msg.done,
        total=max(msg.total, msg.done),
        throughput=msg.throughput,
    )
    return replace(model, verify_progress=progress), []


def _on_verify_finished(model: Model, msg: m.VerifyFinished) -> Result:
    outcome = (
        JobOutcome.succeeded() if msg.error is None else JobOutcome.failed(msg.error)
    )
    return replace(model, verify_outcome=outcome, screen=Screen.DONE), []


# Elevation


def _on_elevate_requested(model: Model, msg: m.ElevateRequested) -> Result:
    if model.privileged:
        return model, []
    return model, [ReexecPrivileged()]


def _on_elevation_failed(model: Model, msg: m.ElevationFailed) -> Result:
    return replace(model, notice=msg.message), []


# Keys


def key_intent(model: Model, key: m.Key) -> m.Msg | None:
    """Map a key press on the current screen to an intent message."""
    if key.ctrl:
        if key.key == "c" and not model.is_job_running():
            return m.Quit()
        if key.key == "s" and model.screen == Screen.CONFIRM:
            return m.ElevateRequested()
        return None

    name = key.key
    if name == "esc":
        return m.Back()
    if name == "tab":
        return m.NextScreen()
    if name == "backtab":
        return m.PrevScreen()

    if model.screen == Screen.IMAGE_SEARCH:
        if name == "up":
            return m.MoveImageSelection(-1)
        if name == "down":
            return m.MoveImageSelection(1)
        if name == "enter":
            return m.ConfirmImage()
        if name == "backspace":
            return m.QueryChanged(model.query[:-1])
        if len(name) == 1 and name.isprintable():
            return m.QueryChanged(model.query + name)

    elif model.screen == Screen.DEVICE_SELECT:
        if name == "up":
            return m.MoveDeviceSelection(-1)
        if name == "down":
            return m.MoveDeviceSelection(1)
        if name == "enter":
            return m.ConfirmDevice()
        if name in ("r", "R"):
            return m.RefreshDevicesRequested()
        if name in ("q", "Q"):
            return m.Quit()

    elif model.screen == Screen.CONFIRM:
        if name == "enter":
            return m.StartWrite()
        if name == "backspace":
            return m.ConfirmTextChanged(model.confirm_text[:-1])
        if name in ("v", "V"):
            return m.ToggleVerify()
        if (
            len(name) == 1
            and name.isalpha()
            and len(model.confirm_text) < len(CONFIRM_TOKEN)
        ):
            return m.ConfirmTextChanged(model.confirm_text + name)

    elif name in ("q", "Q"):
        return m.Quit()

    return None


def _on_key(model: Model, msg: m.Key) -> Result:
    intent = key_intent(model, msg)
    if intent is None:
        return model, []
    return update(model, intent)


_HANDLERS: dict[type, Callable[[Model, Any], Result]] = {
    m.Tick: _on_tick,
    m.Quit: _on_quit,
    m.Back: _on_back,
    m.NextScreen: _on_next,
    m.PrevScreen: _on_prev,
    m.Key: _on_key,
    m.QueryChanged: _on_query_changed,
    m.ImagesScanned: _on_images_scanned,
    m.ImageScanFailed: _on_image_scan_failed,
    m.MoveImageSelection: _on_move_image,
    m.ConfirmImage: _on_confirm_image,
    m.RefreshDevicesRequested: _on_refresh_requested,
    m.DevicesRefreshed: _on_devices_refreshed,
    m.DevicesRefreshFailed: _on_devices_refresh_failed,
    m.MoveDeviceSelection: _on_move_device,
    m.ConfirmDevice: _on_confirm_device,
    m.ConfirmTextChanged: _on_confirm_text_changed,
    m.ToggleVerify: _on_toggle_verify,
    m.StartWrite: _on_start_write,
    m.WriteStarted: _on_write_started,
    m.WriteProgress: _on_write_progress,
    m.WriteWarning: _on_write_warning,
    m.WriteFinished: _on_write_finished,
    m.VerifyStarted: _on_verify_started,
    m.VerifyProgress: _on_verify_progress,
    m.VerifyFinished: _on_verify_finished,
    m.ElevateRequested: _on_elevate_requested,
    m.ElevationFailed: _on_elevation_failed,
}


def update(model: Model, msg: m.Msg) -> Result:
    """Apply one message to the model.

    Args:
        model: Current model.
        msg: Message to apply.

    Returns:
        Tuple of (new model, commands to dispatch). Unknown messages leave
        the model unchanged.
    """
    handler = _HANDLERS.get(type(msg))
    if handler is None:
        return model, []
    return handler(model, msg)


__all__ = ["key_intent", "next_screen", "prev_screen", "update"]

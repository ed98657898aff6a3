"""Foreground event loop.

The loop owns the model. It blocks only on the dispatcher's inbound queue
(with the tick interval as timeout), feeds each message to update(),
dispatches the resulting commands and re-renders.
"""

import logging
import queue
from collections.abc import Callable

from imagewriter.app import messages as m
from imagewriter.app.dispatcher import Dispatcher
from imagewriter.app.model import Model
from imagewriter.app.update import update

logger = logging.getLogger(__name__)

Renderer = Callable[[Model], None]


def next_message(inbox: "queue.Queue[m.Msg]", tick_interval: float) -> m.Msg:
    """Wait for the next message, producing a Tick when none arrives in time."""
    try:
        return inbox.get(timeout=tick_interval)
    except queue.Empty:
        return m.Tick()


def step(model: Model, msg: m.Msg, dispatcher: Dispatcher) -> Model:
    """Apply one message and launch the commands it produced."""
    model, cmds = update(model, msg)
    if cmds:
        dispatcher.dispatch(cmds)
    return model


def run(
    model: Model,
    dispatcher: Dispatcher,
    render: Renderer,
    tick_interval: float = 0.25,
) -> Model:
    """Run the event loop until the model asks to quit.

    Args:
        model: Initial model.
        dispatcher: Dispatcher whose inbox receives all messages.
        render: Called with the model after every update.
        tick_interval: Seconds without a message before a Tick is generated.

    Returns:
        The final model.
    """
    logger.info("Event loop started")
    render(model)
    while not model.quitting:
        msg = next_message(dispatcher.inbox, tick_interval)
        model = step(model, msg, dispatcher)
        render(model)
    logger.info("Event loop stopped on screen %s", model.screen.value)
    return model


__all__ = ["next_message", "run", "step"]

"""Terminal front-end: rendering of the model and keyboard input."""

from imagewriter.ui.render import done_summary, permission_hint, render_model

__all__ = ["done_summary", "permission_hint", "render_model"]

"""
Control actions.

Applies action names produced by controls to a running pipeline. Tunables
take effect on the next iteration; resolution and device changes go
through renegotiation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict
from loguru import logger

from flowcam.core.errors import PipelineError

if TYPE_CHECKING:
    from flowcam.pipeline.controller import PipelineController

WINDOW_SIZE_DELTA = 2
STEP_DELTA = 2
SCALE_DELTA = 0.1


def next_preset(controller: PipelineController) -> str:
    """Name of the preset after the current one, wrapping around."""
    names = list(controller.available_presets())
    current = controller.controls.resolution_preset
    index = names.index(current) if current in names else -1
    return names[(index + 1) % len(names)]


def _capture(controller: PipelineController):
    if not controller.capture_reference():
        logger.info("Reference capture unavailable right now")


def _toggle_mode(controller: PipelineController):
    mode = controller.controls.toggle_capture_mode()
    logger.info(f"Capture mode: {mode.value}")


def _next_preset(controller: PipelineController):
    controller.request_resolution(next_preset(controller))


def _export(controller: PipelineController):
    path = controller.export_flow()
    logger.info(f"Flow exported to {path}")


def _screenshot(controller: PipelineController):
    path = controller.save_screenshot()
    logger.info(f"Screenshot saved to {path}")


def _adjuster(name: str, delta: float) -> Callable[[PipelineController], None]:
    def apply(controller: PipelineController):
        value = controller.controls.adjust(name, delta)
        logger.info(f"{name} = {value}")
    return apply


ACTIONS: Dict[str, Callable[[PipelineController], None]] = {
    "capture": _capture,
    "toggle_mode": _toggle_mode,
    "next_preset": _next_preset,
    "next_device": lambda controller: controller.next_device(),
    "export": _export,
    "screenshot": _screenshot,
    "step_up": _adjuster("flow_step", STEP_DELTA),
    "step_down": _adjuster("flow_step", -STEP_DELTA),
    "window_up": _adjuster("window_size", WINDOW_SIZE_DELTA),
    "window_down": _adjuster("window_size", -WINDOW_SIZE_DELTA),
    "scale_up": _adjuster("vector_scale", SCALE_DELTA),
    "scale_down": _adjuster("vector_scale", -SCALE_DELTA),
}


def apply_action(controller: PipelineController, action: str) -> bool:
    """
    Apply one action.

    User-facing failures (export unavailable, write errors) are logged and
    do not stop the pipeline.

    Returns:
        False if the action asks the application to quit
    """
    if action == "quit":
        return False

    handler = ACTIONS.get(action)
    if handler is None:
        logger.warning(f"Unknown action '{action}'")
        return True

    try:
        handler(controller)
    except (PipelineError, OSError, KeyError) as e:
        logger.error(f"Action '{action}' failed: {e}")
    return True

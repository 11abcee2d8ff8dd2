"""Pipeline control: state machine, context and pacing."""

from .controller import PipelineController
from .context import PipelineContext
from .scheduler import PacingScheduler, TARGET_FPS, TARGET_PERIOD_S

__all__ = [
    "PipelineController",
    "PipelineContext",
    "PacingScheduler",
    "TARGET_FPS",
    "TARGET_PERIOD_S",
]

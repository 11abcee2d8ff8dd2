"""
Flow overlay renderer.

Draws the current frame, then a sparse grid of displacement vectors.
Holds no state between calls.
"""

from __future__ import annotations

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from flowcam.buffers.image import FlowField
from .surface import DrawingSurface

MIN_STEP = 2
DEFAULT_LINE_WIDTH = 2


def sample_vectors(
    flow: FlowField,
    step: int,
    vector_scale: float,
) -> NDArray[np.float32]:
    """
    Sample the flow field on a regular grid.

    Args:
        flow: Flow field to sample
        step: Grid spacing in pixels (clamped to >= 2)
        vector_scale: Multiplier applied to each displacement

    Returns:
        (N, 4) array of segments (x0, y0, x1, y1)
    """
    step = max(MIN_STEP, int(step))
    ys, xs = np.mgrid[0:flow.height:step, 0:flow.width:step]
    sampled = flow.data[ys, xs]

    x0 = xs.astype(np.float32).ravel()
    y0 = ys.astype(np.float32).ravel()
    x1 = x0 + sampled[..., 0].ravel() * vector_scale
    y1 = y0 + sampled[..., 1].ravel() * vector_scale
    return np.stack([x0, y0, x1, y1], axis=1)


def render(
    surface: DrawingSurface,
    frame: NDArray[np.uint8],
    flow: Optional[FlowField],
    step: int,
    vector_scale: float,
    stroke_color: str,
    line_width: int = DEFAULT_LINE_WIDTH,
) -> int:
    """
    Draw one output frame.

    Args:
        surface: Target surface
        frame: RGBA frame (H x W x 4)
        flow: Flow field, or None for pass-through
        step: Vector grid spacing
        vector_scale: Vector length multiplier
        stroke_color: Hex colour for the vectors
        line_width: Stroke width in pixels

    Returns:
        Number of vectors drawn
    """
    height, width = frame.shape[:2]
    surface.draw_frame(frame, width, height)

    if flow is None:
        return 0

    segments = sample_vectors(flow, step, vector_scale)
    for x0, y0, x1, y1 in segments:
        surface.stroke_line(x0, y0, x1, y1, stroke_color, line_width)
    return len(segments)

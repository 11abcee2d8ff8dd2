"""
Dense Optical Flow Engine.

Thin stateless wrapper around OpenCV's Farneback estimator. Only the call
contract lives here:
- reference and current must share one resolution
- window size is forced odd on every call
- output is (dx, dy) per pixel in pixel units, reference -> current
"""

from __future__ import annotations

import time
from typing import Optional
import cv2
from loguru import logger

from flowcam.core.contracts import FlowParameters
from flowcam.core.errors import DimensionMismatch
from flowcam.buffers.image import GrayscaleBuffer, FlowField


def normalize_window_size(window_size: int) -> int:
    """Return the odd window size actually passed to the estimator."""
    window_size = int(window_size)
    if window_size % 2 == 0:
        return window_size + 1
    return window_size


def compute_flow(
    reference: GrayscaleBuffer,
    current: GrayscaleBuffer,
    params: FlowParameters,
    out: Optional[FlowField] = None,
) -> FlowField:
    """
    Estimate dense displacement from reference to current.

    Args:
        reference: Reference grayscale frame
        current: Current grayscale frame
        params: Estimation parameters
        out: Optional preallocated flow buffer to write into

    Returns:
        FlowField of the same resolution as the inputs

    Raises:
        DimensionMismatch: If the inputs (or out) differ in resolution
    """
    if reference.resolution != current.resolution:
        raise DimensionMismatch(
            f"Reference {reference.resolution} and current {current.resolution} differ"
        )
    if out is not None and out.resolution != current.resolution:
        raise DimensionMismatch(f"Flow buffer {out.resolution} does not match {current.resolution}")

    dst = out.data if out is not None else None
    flow = cv2.calcOpticalFlowFarneback(
        reference.data,
        current.data,
        dst,
        params.pyramid_scale,
        params.pyramid_levels,
        normalize_window_size(params.window_size),
        params.iterations,
        params.poly_expansion_size,
        params.poly_sigma,
        0,
    )

    if out is not None:
        if flow is not out.data:
            out.data[...] = flow
        return out
    return FlowField(flow)


class FlowEngine:
    """
    Flow engine with timing statistics.

    Holds no frame state; every call depends only on its inputs.
    """

    def __init__(self, params: Optional[FlowParameters] = None):
        self.params = params or FlowParameters()
        self._inference_times: list[float] = []

    def compute(
        self,
        reference: GrayscaleBuffer,
        current: GrayscaleBuffer,
        params: Optional[FlowParameters] = None,
        out: Optional[FlowField] = None,
    ) -> FlowField:
        start = time.perf_counter()
        flow = compute_flow(reference, current, params or self.params, out=out)
        elapsed_ms = (time.perf_counter() - start) * 1000

        self._inference_times.append(elapsed_ms)
        if len(self._inference_times) > 30:
            self._inference_times.pop(0)
        logger.debug(f"Flow computed at {current.resolution} in {elapsed_ms:.1f}ms")
        return flow

    @property
    def average_time_ms(self) -> float:
        if not self._inference_times:
            return 0.0
        return sum(self._inference_times) / len(self._inference_times)

"""
Device Negotiation.

Opens streams off the pipeline loop. A negotiation cannot be interrupted
once issued; callers tag each one with a generation and discard results
whose generation is no longer current.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional
from loguru import logger

from flowcam.core.contracts import DeviceRequest, ResolutionConstraints
from flowcam.core.errors import ConstraintUnsatisfiable
from .frame_source import FrameSource, FrameStream


@dataclass
class Negotiation:
    """An issued negotiation and the future that will hold its stream."""
    request: DeviceRequest
    future: Future

    @property
    def generation(self) -> int:
        return self.request.generation

    def done(self) -> bool:
        return self.future.done()


class DeviceNegotiator:
    """
    Issues stream negotiations on a worker thread.

    Each negotiation tries exact constraints first, then retries once with
    ideal constraints. DeviceAccessDenied is never retried.
    """

    def __init__(self, source: FrameSource, executor: Optional[Executor] = None):
        self.source = source
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="flowcam-negotiate"
        )

    def submit(self, request: DeviceRequest) -> Negotiation:
        logger.debug(
            f"Negotiation #{request.generation}: device={request.device_id} {request.resolution}"
        )
        future = self._executor.submit(self._negotiate, request)
        return Negotiation(request=request, future=future)

    def _negotiate(self, request: DeviceRequest) -> FrameStream:
        constraints = ResolutionConstraints(
            width=request.resolution.width,
            height=request.resolution.height,
            exact=True,
            frame_rate=request.frame_rate,
        )
        try:
            return self.source.open(request.device_id, constraints)
        except ConstraintUnsatisfiable as e:
            logger.warning(f"{e}; retrying with ideal constraints")

        return self.source.open(request.device_id, constraints.relaxed())

    def shutdown(self):
        if self._owns_executor:
            self._executor.shutdown(wait=False)

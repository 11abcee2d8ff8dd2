"""
Pipeline Controller.

Executes the streaming pipeline in strict order:

1. Read a frame from the stream
2. Convert it into the RGBA frame buffer
3. Convert to grayscale
4. Drop the reference if its size no longer matches
5. Compute flow against the reference (if any)
6. Render frame + vector overlay
7. Replace the reference (continuous mode only)

State machine:
    UNINITIALIZED -> ACQUIRING -> STREAMING <-> RECONFIGURING
    any -> STOPPED (explicit stop or fatal error)

Entering RECONFIGURING or STOPPED always halts the scheduler, then releases
buffers, then the reference, before anything is reallocated.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from flowcam.core.contracts import (
    CaptureMode,
    DeviceInfo,
    DeviceRequest,
    IterationResult,
    PipelineState,
    Resolution,
)
from flowcam.core.errors import (
    PipelineError,
    DeviceAccessDenied,
    ConstraintUnsatisfiable,
    ProcessingFailure,
    ExportUnavailable,
)
from flowcam.config import FlowControls, VideoConfig, ExportConfig
from flowcam.capture.frame_source import FrameSource, FrameStream
from flowcam.capture.negotiation import DeviceNegotiator, Negotiation
from flowcam.capture.presets import available_presets, resolve_preset
from flowcam.buffers.image import FrameBuffer
from flowcam.flow.engine import FlowEngine
from flowcam.render.renderer import render
from flowcam.render.surface import DrawingSurface, CanvasSurface
from flowcam.export.exporter import FlowFieldExporter
from flowcam.export.screenshot import save_screenshot
from .context import PipelineContext
from .scheduler import PacingScheduler, TARGET_PERIOD_S


def _close_opened_stream(future):
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class PipelineController:
    """
    Top-level pipeline state machine.

    All context mutation happens on the loop thread. Negotiation results
    are only picked up in poll(), which the scheduler calls on every idle
    tick; step() only closes streams from superseded negotiations.
    """

    def __init__(
        self,
        source: FrameSource,
        controls: Optional[FlowControls] = None,
        surface: Optional[DrawingSurface] = None,
        engine: Optional[FlowEngine] = None,
        exporter: Optional[FlowFieldExporter] = None,
        negotiator: Optional[DeviceNegotiator] = None,
        video_config: Optional[VideoConfig] = None,
        export_config: Optional[ExportConfig] = None,
        on_error: Optional[Callable[[PipelineError], None]] = None,
        period_s: float = TARGET_PERIOD_S,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize pipeline controller.

        Args:
            source: Camera subsystem
            controls: Live tuning surface (read every iteration)
            surface: Drawing target
            engine: Flow engine
            exporter: Flow field exporter
            negotiator: Stream negotiator (defaults to a worker thread)
            video_config: Capture settings
            export_config: Export destinations
            on_error: Called with every reported error
            period_s: Scheduler period
            clock: Scheduler clock
            sleep: Scheduler sleep
        """
        self.source = source
        self.controls = controls or FlowControls()
        self.surface = surface or CanvasSurface()
        self.engine = engine or FlowEngine()
        self.exporter = exporter or FlowFieldExporter()
        self.negotiator = negotiator or DeviceNegotiator(source)
        self.video_config = video_config or VideoConfig()
        self.export_config = export_config or ExportConfig()
        self.on_error = on_error

        self.scheduler = PacingScheduler(
            step=self.step,
            idle=self.poll,
            period_s=period_s,
            clock=clock,
            sleep=sleep,
        )

        self._state = PipelineState.UNINITIALIZED
        self._generation = 0
        self._negotiations: List[Negotiation] = []
        self._resume_state = PipelineState.UNINITIALIZED
        self._devices: Optional[List[DeviceInfo]] = None

        self._context = PipelineContext.create(
            scheduler_active=lambda: self.scheduler.is_active,
            is_streaming=lambda: self._state == PipelineState.STREAMING,
        )
        self._context.reference.mode = self.controls.capture_mode

        self.last_error: Optional[PipelineError] = None
        self.last_result: Optional[IterationResult] = None

        logger.info("Pipeline controller initialized")

    # ============================================================
    # PROPERTIES
    # ============================================================

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def context(self) -> PipelineContext:
        return self._context

    @property
    def resolution(self) -> Optional[Resolution]:
        return self._context.pool.resolution

    @property
    def export_available(self) -> bool:
        return self._context.reference.export_available

    @property
    def pending_negotiations(self) -> int:
        return len(self._negotiations)

    def available_presets(self) -> Dict[str, Resolution]:
        return available_presets(self._context.capabilities)

    def devices(self, refresh: bool = False) -> List[DeviceInfo]:
        if self._devices is None or refresh:
            self._devices = self.source.enumerate_devices()
        return self._devices

    # ============================================================
    # EXTERNAL OPERATIONS
    # ============================================================

    def start(self, device_id: Any = None):
        """
        Request a stream and enter ACQUIRING.

        Returns:
            The negotiation future, or None if already running
        """
        if self._state not in (PipelineState.UNINITIALIZED, PipelineState.STOPPED):
            logger.debug(f"Start ignored in state {self._state.value}")
            return None

        if device_id is None:
            device_id = self.video_config.device_index
        self._probe_device(device_id)
        resolution = resolve_preset(self.controls.resolution_preset, self._context.capabilities)

        self._resume_state = self._state
        self._set_state(PipelineState.ACQUIRING)
        return self._issue(device_id, resolution)

    def stop(self, reason: str = "stop requested"):
        """Halt, release everything and enter STOPPED."""
        self._generation += 1
        self.scheduler.halt()
        self._context.teardown()
        if self._state != PipelineState.STOPPED:
            logger.info(
                f"Pipeline stopped ({reason}): {self._context.flows_computed} flow fields, "
                f"avg tick {self.scheduler.average_tick_ms:.1f}ms"
            )
        self._set_state(PipelineState.STOPPED)

    def request_resolution(self, preset_name: str):
        """
        Switch to another resolution preset.

        Outside of an active pipeline the preset is only stored for the next
        start().

        Returns:
            The negotiation future, or None if nothing was issued

        Raises:
            KeyError: If the preset is unknown
        """
        resolution = resolve_preset(preset_name, self._context.capabilities)
        self.controls.resolution_preset = preset_name
        logger.info(f"Resolution changed to: {preset_name}")

        if self._state in (PipelineState.UNINITIALIZED, PipelineState.STOPPED):
            return None
        if self._state == PipelineState.STREAMING:
            self._resume_state = PipelineState.STREAMING
            self._enter_reconfiguring("resolution change")
        return self._issue(self._context.device_id, resolution)

    def request_device(self, device_id: Any):
        """
        Switch to another camera at the current preset.

        Returns:
            The negotiation future, or None if nothing was issued
        """
        if self._state in (PipelineState.UNINITIALIZED, PipelineState.STOPPED):
            self.video_config.device_index = device_id
            return None

        self._probe_device(device_id)
        resolution = resolve_preset(self.controls.resolution_preset, self._context.capabilities)
        logger.info(f"Switching to device {device_id!r}")

        if self._state == PipelineState.STREAMING:
            self._resume_state = PipelineState.STREAMING
            self._enter_reconfiguring("device change")
        return self._issue(device_id, resolution)

    def next_device(self):
        """Cycle to the next enumerated camera."""
        devices = self.devices()
        if len(devices) < 2:
            logger.info("No other camera available")
            return None
        ids = [d.device_id for d in devices]
        current = self._context.device_id
        index = ids.index(current) if current in ids else -1
        return self.request_device(ids[(index + 1) % len(ids)])

    def capture_reference(self) -> bool:
        """Store the latest grayscale frame as the reference (streaming only)."""
        if not self._context.gray_ready:
            logger.debug("Reference capture ignored: no frame processed yet")
            return False
        return self._context.reference.capture(self._context.pool.gray)

    def export_flow(self, filename: Optional[Union[str, Path]] = None):
        """
        Export the latest flow field as a two-sheet workbook.

        Raises:
            ExportUnavailable: If no flow exists for the current reference
        """
        if not self._context.reference.export_available:
            raise ExportUnavailable("No flow field produced since the last reference change")
        if filename is None:
            filename = Path(self.export_config.directory) / self.export_config.workbook_name
        return self.exporter.export(self._context.pool.flow, filename)

    def save_screenshot(self, directory: Optional[Union[str, Path]] = None) -> Path:
        """
        Save the rendered output as PNG.

        Raises:
            ExportUnavailable: If no reference is held or nothing was drawn
        """
        if not self._context.reference.has_reference:
            raise ExportUnavailable("Screenshots require a reference frame")
        image = self.surface.snapshot()
        if image is None:
            raise ExportUnavailable("Nothing has been rendered yet")
        return save_screenshot(image, directory or self.export_config.directory)

    def run(
        self,
        should_continue: Optional[Callable[[], bool]] = None,
        after: Optional[Callable[[], object]] = None,
        max_ticks: Optional[int] = None,
    ) -> int:
        """Drive the scheduler until should_continue() is False."""
        keep_going = should_continue or (lambda: True)
        return self.scheduler.run(keep_going, after=after, max_ticks=max_ticks)

    def shutdown(self):
        """Stop the pipeline and release collaborators.

        Negotiations still running are left to finish on their own; any
        stream they open is closed as soon as it arrives.
        """
        self.stop("shutdown")
        for negotiation in self._negotiations:
            negotiation.future.add_done_callback(_close_opened_stream)
        self._negotiations.clear()
        self.negotiator.shutdown()
        self.surface.close()

    # ============================================================
    # LOOP HOOKS
    # ============================================================

    def poll(self):
        """
        Apply finished negotiations and pending reconfiguration work.

        Called on every tick while the scheduler is halted.
        """
        finished = [n for n in self._negotiations if n.done()]
        for negotiation in finished:
            self._negotiations.remove(negotiation)
            self._settle(negotiation)
        if finished or self._awaiting_negotiation():
            return

        ctx = self._context
        if self._state in (PipelineState.ACQUIRING, PipelineState.RECONFIGURING):
            if ctx.pending_resize is not None and not self.scheduler.is_active:
                self._apply_pending_resize()
            elif ctx.awaiting_first_frame:
                self._try_first_frame()

    def _awaiting_negotiation(self) -> bool:
        return any(n.generation == self._generation for n in self._negotiations)

    def _discard_stale(self):
        """Close streams from finished negotiations that were superseded."""
        for negotiation in [n for n in self._negotiations if n.done()]:
            if negotiation.generation != self._generation:
                self._negotiations.remove(negotiation)
                self._settle(negotiation)

    def step(self) -> Optional[IterationResult]:
        """
        Run one pipeline iteration.

        Any unexpected failure stops the pipeline.
        """
        self._discard_stale()
        if self._state != PipelineState.STREAMING:
            return None

        start = time.perf_counter()
        try:
            result = self._process_frame()
        except Exception as e:
            if isinstance(e, ProcessingFailure):
                failure = e
            else:
                failure = ProcessingFailure(f"Error in pipeline iteration: {e}")
                failure.__cause__ = e
            self._fail(failure)
            return None

        result.latency_ms = (time.perf_counter() - start) * 1000
        self.last_result = result
        return result

    # ============================================================
    # ITERATION
    # ============================================================

    def _process_frame(self) -> IterationResult:
        ctx = self._context
        pool = ctx.pool
        reference = ctx.reference
        controls = self.controls

        # ============================================================
        # STEP 1: Read a frame
        # ============================================================
        raw = ctx.primed_frame
        ctx.primed_frame = None
        if raw is None:
            stream = ctx.stream.value
            if stream is None:
                raise ProcessingFailure("No open stream")
            raw = stream.read()

        if raw is None:
            ctx.missed_frames += 1
            if ctx.missed_frames >= self.video_config.max_missed_frames:
                raise ProcessingFailure(
                    f"No frames received for {ctx.missed_frames} iterations"
                )
            return IterationResult(
                frame_index=ctx.frame_index,
                resolution=pool.resolution,
                skipped=True,
                skip_reason="no frame",
            )
        ctx.missed_frames = 0

        frame_resolution = Resolution(int(raw.shape[1]), int(raw.shape[0]))
        if frame_resolution != pool.resolution:
            logger.warning(
                f"Frame size changed from {pool.resolution} to {frame_resolution}, reconfiguring"
            )
            self._resume_state = PipelineState.STREAMING
            self._enter_reconfiguring("frame size changed")
            ctx.pending_resize = frame_resolution
            ctx.primed_frame = raw
            return IterationResult(
                frame_index=ctx.frame_index,
                resolution=frame_resolution,
                skipped=True,
                skip_reason="frame size changed",
            )

        # ============================================================
        # STEPS 2-3: Convert to RGBA and grayscale
        # ============================================================
        self._load_frame(raw, pool.frame)
        cv2.cvtColor(pool.frame.data, cv2.COLOR_RGBA2GRAY, dst=pool.gray.data)
        ctx.gray_ready = True

        # ============================================================
        # STEPS 4-5: Validate reference, compute flow
        # ============================================================
        reference.mode = controls.capture_mode
        invalidated = reference.invalidate_if_mismatched(frame_resolution)

        flow = None
        ref = reference.reference
        if ref is not None:
            flow = self.engine.compute(
                ref.gray, pool.gray, controls.flow_parameters(), out=pool.flow
            )
            reference.mark_flow_produced()
            ctx.flows_computed += 1

        # ============================================================
        # STEP 6: Render
        # ============================================================
        vectors = render(
            self.surface,
            pool.frame.data,
            flow,
            controls.flow_step,
            controls.vector_scale,
            controls.stroke_color,
        )
        self.surface.present()

        # ============================================================
        # STEP 7: Continuous reference update
        # ============================================================
        replaced = False
        if reference.mode == CaptureMode.CONTINUOUS:
            reference.update_continuous(pool.gray)
            replaced = True

        ctx.frame_index += 1
        return IterationResult(
            frame_index=ctx.frame_index,
            resolution=frame_resolution,
            flow_computed=flow is not None,
            reference_invalidated=invalidated,
            reference_replaced=replaced,
            stats={"vectors": float(vectors)},
        )

    @staticmethod
    def _load_frame(raw: NDArray[np.uint8], frame: FrameBuffer):
        """Convert a source frame (gray, BGR or RGBA) into the RGBA buffer."""
        if raw.ndim == 3 and raw.shape[2] == 1:
            raw = raw[:, :, 0]
        if raw.ndim == 2:
            cv2.cvtColor(raw, cv2.COLOR_GRAY2RGBA, dst=frame.data)
        elif raw.ndim == 3 and raw.shape[2] == 3:
            cv2.cvtColor(raw, cv2.COLOR_BGR2RGBA, dst=frame.data)
        elif raw.ndim == 3 and raw.shape[2] == 4:
            np.copyto(frame.data, raw)
        else:
            raise ProcessingFailure(f"Unsupported frame shape {raw.shape}")

    # ============================================================
    # TRANSITIONS
    # ============================================================

    def _set_state(self, state: PipelineState):
        if state != self._state:
            logger.info(f"Pipeline state: {self._state.value} -> {state.value}")
            self._state = state

    def _enter_reconfiguring(self, reason: str):
        logger.info(f"Reconfiguring: {reason}")
        self.scheduler.halt()
        self._context.release_buffers()
        self._context.awaiting_first_frame = False
        self._set_state(PipelineState.RECONFIGURING)

    def _enter_streaming(self):
        ctx = self._context
        ctx.awaiting_first_frame = False
        ctx.missed_frames = 0
        self._set_state(PipelineState.STREAMING)
        self.scheduler.resume()
        logger.info(f"Streaming at {ctx.pool.resolution}")

    def _issue(self, device_id: Any, resolution: Resolution):
        # Work left over from the previous stream must not resume the loop
        ctx = self._context
        ctx.pending_resize = None
        ctx.awaiting_first_frame = False
        ctx.primed_frame = None

        self._generation += 1
        request = DeviceRequest(
            device_id=device_id,
            resolution=resolution,
            generation=self._generation,
            frame_rate=self.video_config.frame_rate,
        )
        negotiation = self.negotiator.submit(request)
        self._negotiations.append(negotiation)
        return negotiation.future

    def _settle(self, negotiation: Negotiation):
        future = negotiation.future
        error = future.exception()

        if negotiation.generation != self._generation:
            logger.debug(
                f"Discarding stale negotiation #{negotiation.generation} "
                f"(current #{self._generation})"
            )
            if error is None:
                future.result().close()
            return

        if error is None:
            self._adopt_stream(negotiation.request, future.result())
        elif isinstance(error, DeviceAccessDenied):
            self._report(error)
            self.scheduler.halt()
            self._context.teardown()
            self._set_state(PipelineState.UNINITIALIZED)
        elif isinstance(error, PipelineError):
            self._report(error)
            self._restore_previous()
        else:
            wrapped = ConstraintUnsatisfiable(
                negotiation.request.device_id,
                negotiation.request.resolution.width,
                negotiation.request.resolution.height,
                exact=False,
            )
            wrapped.__cause__ = error
            logger.error(f"Negotiation failed unexpectedly: {error}")
            self._report(wrapped)
            self._restore_previous()

    def _adopt_stream(self, request: DeviceRequest, stream: FrameStream):
        ctx = self._context
        ctx.stream.replace(stream)
        ctx.device_id = request.device_id
        logger.info(f"Stream negotiated: {stream.width}x{stream.height} (requested {request.resolution})")

        self._rebuild(stream.resolution)

    def _rebuild(self, resolution: Resolution):
        """Allocate buffers for a (re)negotiated stream and wait for its first frame."""
        ctx = self._context
        ctx.pool.resize(resolution.width, resolution.height)
        ctx.gray_ready = False
        ctx.frame_index = 0
        ctx.first_frame_attempts_left = self.video_config.first_frame_attempts
        ctx.awaiting_first_frame = True
        self._try_first_frame()

    def _restore_previous(self):
        """Return to the state held before the failed request."""
        ctx = self._context
        if self._resume_state == PipelineState.STREAMING and not ctx.stream.is_empty():
            logger.info("Keeping previous stream")
            self._probe_device(ctx.device_id)
            self._rebuild(ctx.stream.value.resolution)
        else:
            ctx.teardown()
            self._set_state(self._resume_state)

    def _try_first_frame(self):
        ctx = self._context
        stream = ctx.stream.value
        frame = stream.read() if stream is not None else None

        if frame is None:
            ctx.first_frame_attempts_left -= 1
            if ctx.first_frame_attempts_left <= 0:
                self._fail(ProcessingFailure("Stream delivered no frames"))
            return

        frame_resolution = Resolution(int(frame.shape[1]), int(frame.shape[0]))
        if frame_resolution != ctx.pool.resolution:
            logger.warning(
                f"Stream reported {ctx.pool.resolution} but delivers {frame_resolution}"
            )
            ctx.pool.resize(frame_resolution.width, frame_resolution.height)
        ctx.primed_frame = frame
        self._enter_streaming()

    def _apply_pending_resize(self):
        ctx = self._context
        resolution = ctx.pending_resize
        ctx.pending_resize = None
        ctx.pool.resize(resolution.width, resolution.height)
        ctx.gray_ready = False
        self._enter_streaming()

    def _probe_device(self, device_id: Any):
        self._context.capabilities = self.source.capabilities(device_id)

    def _fail(self, error: PipelineError):
        self._report(error)
        self.stop(reason=type(error).__name__)

    def _report(self, error: PipelineError):
        self.last_error = error
        logger.error(f"{type(error).__name__}: {error}")
        if self.on_error is not None:
            self.on_error(error)

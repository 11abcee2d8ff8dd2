"""Shared pytest configuration and fixtures for the FlowCam test suite."""

import sys
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from flowcam.capture.negotiation import DeviceNegotiator
from flowcam.capture.synthetic import SyntheticFrameSource, make_texture
from flowcam.config import FlowControls, VideoConfig, ExportConfig
from flowcam.core.contracts import Resolution
from flowcam.pipeline.controller import PipelineController
from flowcam.render.surface import CanvasSurface


# =============================================================================
# Executors
# =============================================================================

class ImmediateExecutor(Executor):
    """Runs each submitted call synchronously."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds submitted calls until the test runs them."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_next(self):
        future, fn, args, kwargs = self.pending.pop(0)
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)

    def run_all(self):
        while self.pending:
            self.run_next()


class FakeClock:
    """Manually advanced clock with a sleep that advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def texture():
    """Smooth 640x480 random texture."""
    return make_texture(Resolution(640, 480), seed=7)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def deferred_executor():
    return DeferredExecutor()


@pytest.fixture
def synthetic_source():
    return SyntheticFrameSource(velocity=(1, 0))


@pytest.fixture
def make_controller(tmp_path):
    """Factory for controllers wired to a synthetic source and no pacing."""

    def _make(
        source=None,
        executor=None,
        controls=None,
        video_config=None,
        **kwargs,
    ) -> PipelineController:
        source = source or SyntheticFrameSource(velocity=(1, 0))
        negotiator = DeviceNegotiator(source, executor=executor or ImmediateExecutor())
        return PipelineController(
            source=source,
            controls=controls or FlowControls(),
            surface=CanvasSurface(),
            negotiator=negotiator,
            video_config=video_config or VideoConfig(source="synthetic"),
            export_config=ExportConfig(directory=str(tmp_path / "exports")),
            period_s=0.0,
            sleep=lambda seconds: None,
            **kwargs,
        )

    return _make


@pytest.fixture
def streaming_controller(make_controller):
    """Controller already streaming at the default 640x480 preset."""
    controller = make_controller()
    controller.start()
    controller.poll()
    yield controller
    controller.shutdown()

#!/usr/bin/env python3
"""
FlowCam - live dense optical flow viewer

Main entry point. Streams a camera, estimates per-pixel displacement
against a reference frame and draws the result as a vector field.

Usage:
    python main.py [--config CONFIG_PATH] [--device DEVICE_INDEX] [--preset NAME]

Keyboard Controls:
    C     - Capture reference frame
    M     - Toggle manual / continuous reference
    R     - Next resolution preset
    N     - Next camera
    E     - Export flow to workbook
    S     - Save screenshot
    + -   - Vector grid step
    ] [   - Flow window size
    . ,   - Vector scale
    Q     - Quit
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from flowcam.config import AppConfig, load_config, parse_args
from flowcam.capture import get_source
from flowcam.controls import KeyboardControl, apply_action
from flowcam.core.contracts import PipelineState
from flowcam.core.errors import PipelineError
from flowcam.pipeline import PipelineController
from flowcam.render.surface import CanvasSurface, WindowSurface


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


# ============================================================
# MAIN APPLICATION
# ============================================================

class FlowCamApp:
    """Main application class."""

    def __init__(self, config: AppConfig):
        self.config = config

        if config.headless:
            self.surface = CanvasSurface()
        else:
            self.surface = WindowSurface(max_width=config.display_max_width)

        self.controller = PipelineController(
            source=get_source(config.video.source),
            controls=config.controls,
            surface=self.surface,
            video_config=config.video,
            export_config=config.export,
            on_error=self._on_error,
        )
        self.keyboard = KeyboardControl()
        self._running = False

    def _on_error(self, error: PipelineError):
        """Surface pipeline errors to the user."""
        logger.warning(f"Pipeline reported: {error}")

    def _after_tick(self):
        """Handle window input once per tick."""
        if not isinstance(self.surface, WindowSurface):
            return
        action = self.keyboard.poll(self.surface.poll_key())
        if action is not None:
            self._running = apply_action(self.controller, action)

    def _should_continue(self) -> bool:
        if self.controller.state in (PipelineState.UNINITIALIZED, PipelineState.STOPPED):
            logger.info(f"Pipeline is {self.controller.state.value}, exiting")
            return False
        return self._running

    def run(self) -> int:
        """Run the main application loop.

        Returns:
            Process exit code
        """
        logger.info("Starting FlowCam")
        logger.info("Press C to capture a reference, Q to quit")

        self.keyboard.start()
        self._running = True
        exit_code = 0

        try:
            self.controller.start()
            ticks = self.controller.run(
                should_continue=self._should_continue,
                after=self._after_tick,
                max_ticks=self.config.max_frames,
            )
            logger.info(f"Loop finished after {ticks} ticks")
            if self.controller.state in (PipelineState.UNINITIALIZED, PipelineState.STOPPED):
                exit_code = 1
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self._running = False
            self.keyboard.stop()
            self.controller.shutdown()
            logger.info("FlowCam stopped")

        return exit_code


# ============================================================
# ENTRY POINT
# ============================================================

def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    config = load_config(args)

    # Setup logging
    setup_logging(config.logging.level, config.logging.file)

    app = FlowCamApp(config)
    return app.run()


if __name__ == "__main__":
    sys.exit(main())

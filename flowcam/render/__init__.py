"""
Rendering Module.

Responsibilities:
- Drawing surfaces (off-screen canvas, OpenCV window)
- Frame + flow vector overlay
"""

from .surface import DrawingSurface, CanvasSurface, WindowSurface, parse_color
from .renderer import render, sample_vectors

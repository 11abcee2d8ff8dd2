"""
FlowCam - Live Dense Optical Flow Viewer

Acquires a live camera stream, computes a dense motion field between a
reference grayscale frame and the current one, draws the field as a vector
overlay and exports it as spreadsheet tables.

Top Priorities (strict order):
1. Never use a buffer after it has been released
2. Never resize while an iteration is in flight
3. Recover locally from size changes, stop cleanly on real failures
4. Hold a steady 30 iterations per second
"""

__version__ = "0.1.0"
__author__ = "FlowCam Team"

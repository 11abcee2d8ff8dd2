"""
Dense flow estimation.
"""

from .engine import FlowEngine, compute_flow, normalize_window_size

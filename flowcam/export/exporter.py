"""
Flow Field Export.

Splits a flow field into horizontal and vertical displacement tables and
hands them to a workbook writer.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple, Union, Protocol, Sequence
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from flowcam.buffers.image import FlowField
from .workbook import ExcelWorkbookWriter

SHEET_NAMES = ("Horizontal Displacements", "Vertical Displacements")
DEFAULT_WORKBOOK_NAME = "optical_flow_data.xlsx"


class WorkbookWriter(Protocol):
    def write_workbook(
        self,
        table_a: NDArray,
        table_b: NDArray,
        sheet_names: Sequence[str],
        filename: Union[str, Path],
    ): ...


class FlowFieldExporter:
    """Converts flow fields into exportable numeric tables."""

    def __init__(self, writer: Optional[WorkbookWriter] = None):
        self.writer = writer or ExcelWorkbookWriter()

    @staticmethod
    def to_tables(flow: FlowField) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Split a flow field into (dx, dy) tables.

        Returns:
            Two independent row-major arrays of shape (height, width)
        """
        dx = np.array(flow.dx, dtype=np.float64, copy=True)
        dy = np.array(flow.dy, dtype=np.float64, copy=True)
        return dx, dy

    def export(
        self,
        flow: FlowField,
        filename: Union[str, Path] = DEFAULT_WORKBOOK_NAME,
    ):
        """
        Write the flow field as a two-sheet workbook.

        Returns:
            Whatever the writer returns (the written path for the Excel writer)
        """
        dx, dy = self.to_tables(flow)
        logger.info(f"Exporting flow field {flow.resolution} to {filename}")
        return self.writer.write_workbook(dx, dy, SHEET_NAMES, filename)

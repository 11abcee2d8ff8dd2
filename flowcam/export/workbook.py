"""
Spreadsheet writer for flow tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Union
import numpy as np
from numpy.typing import NDArray
import pandas as pd
from loguru import logger


class ExcelWorkbookWriter:
    """Writes two numeric tables to an .xlsx workbook, one sheet each."""

    def __init__(self, engine: str = "openpyxl"):
        self.engine = engine

    def write_workbook(
        self,
        table_a: NDArray,
        table_b: NDArray,
        sheet_names: Sequence[str],
        filename: Union[str, Path],
    ) -> Path:
        """
        Write both tables as header-less, index-less sheets.

        Args:
            table_a: First table (rows x columns)
            table_b: Second table (rows x columns)
            sheet_names: Names for the two sheets
            filename: Output .xlsx path

        Returns:
            Path of the written workbook
        """
        if len(sheet_names) != 2:
            raise ValueError(f"Expected 2 sheet names, got {len(sheet_names)}")

        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)

        with pd.ExcelWriter(path, engine=self.engine) as writer:
            for table, name in zip((table_a, table_b), sheet_names):
                pd.DataFrame(np.asarray(table)).to_excel(
                    writer, sheet_name=name, header=False, index=False
                )

        logger.info(f"Workbook written: {path}")
        return path

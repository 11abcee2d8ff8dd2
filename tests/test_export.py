"""
Unit Tests for flow export and screenshots.
"""

from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from flowcam.buffers.image import FlowField
from flowcam.core.contracts import Resolution
from flowcam.export import (
    ExcelWorkbookWriter,
    FlowFieldExporter,
    SHEET_NAMES,
    save_screenshot,
    screenshot_filename,
)


class RecordingWriter:
    def __init__(self):
        self.calls = []

    def write_workbook(self, table_a, table_b, sheet_names, filename):
        self.calls.append((table_a, table_b, tuple(sheet_names), filename))
        return filename


@pytest.fixture
def flow_3x2():
    flow = FlowField.allocate(Resolution(3, 2))
    flow.data[..., 0] = np.arange(6, dtype=np.float32).reshape(2, 3)
    flow.data[..., 1] = -np.arange(6, dtype=np.float32).reshape(2, 3)
    return flow


# ============================================================================
# TABLES
# ============================================================================

def test_tables_are_row_major_copies(flow_3x2):
    dx, dy = FlowFieldExporter.to_tables(flow_3x2)
    assert dx.shape == (2, 3)
    assert dx[1, 2] == 5.0
    assert dy[0, 1] == -1.0

    flow_3x2.data[...] = 0
    assert dx[1, 2] == 5.0


def test_export_passes_sheet_names(flow_3x2):
    writer = RecordingWriter()
    FlowFieldExporter(writer).export(flow_3x2, "out.xlsx")

    (table_a, table_b, names, filename), = writer.calls
    assert names == SHEET_NAMES
    assert filename == "out.xlsx"
    assert table_a.shape == table_b.shape == (2, 3)


# ============================================================================
# WORKBOOK
# ============================================================================

def test_workbook_round_trip(tmp_path, flow_3x2):
    path = FlowFieldExporter().export(flow_3x2, tmp_path / "nested" / "flow.xlsx")

    sheets = pd.read_excel(path, sheet_name=None, header=None)
    assert list(sheets) == list(SHEET_NAMES)
    horizontal = sheets["Horizontal Displacements"].to_numpy()
    assert horizontal.shape == (2, 3)
    assert horizontal[1, 2] == pytest.approx(5.0)
    assert sheets["Vertical Displacements"].to_numpy()[0, 1] == pytest.approx(-1.0)


def test_workbook_requires_two_sheet_names(tmp_path):
    with pytest.raises(ValueError):
        ExcelWorkbookWriter().write_workbook(
            np.zeros((1, 1)), np.zeros((1, 1)), ["only"], tmp_path / "x.xlsx"
        )


# ============================================================================
# SCREENSHOTS
# ============================================================================

def test_screenshot_filename_format():
    stamp = datetime(2024, 3, 5, 14, 7, 9)
    assert screenshot_filename(640, 480, stamp) == "DIC_screenshot_640x480_2024-03-05T14-07-09.png"


def test_save_screenshot_writes_png(tmp_path):
    image = np.zeros((24, 32, 3), dtype=np.uint8)
    path = save_screenshot(image, tmp_path / "shots", datetime(2024, 1, 1))
    assert path.exists()
    assert path.name.startswith("DIC_screenshot_32x24_")
    assert path.suffix == ".png"

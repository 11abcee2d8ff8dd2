"""
Export Module.

Responsibilities:
- Flow field to displacement tables
- Two-sheet workbook writing
- PNG screenshots of the rendered output
"""

from .exporter import FlowFieldExporter, SHEET_NAMES, DEFAULT_WORKBOOK_NAME
from .workbook import ExcelWorkbookWriter
from .screenshot import save_screenshot, screenshot_filename

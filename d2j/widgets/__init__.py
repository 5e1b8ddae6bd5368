"""Widget library for the Textual UI."""

from __future__ import annotations

from .connection_form import ConnectionForm
from .convert_pad import ConvertPad
from .status_bar import StatusBar
from .tables_sidebar import TablesSidebar

__all__ = ["ConnectionForm", "ConvertPad", "StatusBar", "TablesSidebar"]

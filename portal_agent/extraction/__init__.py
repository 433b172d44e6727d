"""
Extraction Module
=================
Request-history extraction from the portal's embedded list widget.

    - ``ExtractionPipeline`` — navigation → menu → sub-document → search → harvest
    - ``records``            — raw grid row → ``ExtractedRecord`` mapping
"""

from .pipeline import ExtractionPipeline, Trigger, discover_triggers
from .records import map_row, map_rows, sanitize_partition, search_window

__all__ = [
    "ExtractionPipeline",
    "Trigger",
    "discover_triggers",
    "map_row",
    "map_rows",
    "sanitize_partition",
    "search_window",
]

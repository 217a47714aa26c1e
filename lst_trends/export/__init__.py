"""Export sinks and reporting."""

from .sinks import RasterSink, TableSink, GeoTIFFRasterSink, CSVTableSink, MemorySink
from .report import format_summary

__all__ = [
    "RasterSink",
    "TableSink",
    "GeoTIFFRasterSink",
    "CSVTableSink",
    "MemorySink",
    "format_summary",
]

"""Export functionality for Time Clock."""

from pathlib import Path
from typing import Optional

from time_clock.core.errors import ValidationError
from time_clock.export_import.base import Exporter, Summary
from time_clock.export_import.csv_format import CSVExporter
from time_clock.export_import.json_format import JSONExporter

EXPORTERS: dict[str, type[Exporter]] = {
    "json": JSONExporter,
    "csv": CSVExporter,
}


def get_exporter(fmt: str, output_path: Optional[Path] = None) -> Exporter:
    """Exporter for a format name.

    Raises:
        ValidationError: If the format is not supported
    """
    exporter_cls = EXPORTERS.get(fmt.lower())
    if exporter_cls is None:
        raise ValidationError(f"Unsupported export format: {fmt}", {"format": fmt})
    return exporter_cls(output_path)


def export_summary(summary: Summary, fmt: str = "json") -> str:
    """Render a summary as JSON or CSV text."""
    return get_exporter(fmt).render_summary(summary)


__all__ = [
    "CSVExporter",
    "EXPORTERS",
    "Exporter",
    "JSONExporter",
    "export_summary",
    "get_exporter",
]

"""JSON export."""

import json
from datetime import datetime, timezone
from typing import Any

from time_clock.core.models import TimeEntry
from time_clock.export_import.base import Exporter, Summary


class JSONExporter(Exporter):
    """Export summaries and time entries to JSON."""

    def get_file_extension(self) -> str:
        return ".json"

    def render_summary(self, summary: Summary, **kwargs: Any) -> str:
        """Render a summary as indented JSON.

        Args:
            summary: Summary to render
            **kwargs: Additional options
                - indent (int): JSON indentation level (default: 2)
        """
        return json.dumps(summary.to_dict(), indent=kwargs.get("indent", 2), ensure_ascii=False)

    def render_entries(self, entries: list[TimeEntry], **kwargs: Any) -> str:
        """Render entries with optional export metadata.

        Args:
            entries: Entries to render
            **kwargs: Additional options
                - indent (int): JSON indentation level (default: 2)
                - include_metadata (bool): Include export metadata (default: True)
        """
        export_data: dict[str, Any] = {"entries": [e.to_dict() for e in entries]}
        if kwargs.get("include_metadata", True):
            export_data["metadata"] = {
                "export_date": datetime.now(timezone.utc).isoformat(),
                "entry_count": len(entries),
                "format_version": "1.0",
            }
        return json.dumps(export_data, indent=kwargs.get("indent", 2), ensure_ascii=False)

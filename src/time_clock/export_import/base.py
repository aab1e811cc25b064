"""Base class for summary and entry exporters."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from time_clock.core.models import (
    DailyWorkSummary,
    MonthlyWorkSummary,
    TimeEntry,
    WeeklyWorkSummary,
    WorkProgressMetrics,
)

Summary = Union[DailyWorkSummary, WeeklyWorkSummary, MonthlyWorkSummary, WorkProgressMetrics]


class Exporter(ABC):
    """Base class for all exporters.

    ``render_*`` methods return the exported text; ``export_*`` methods write
    it to ``output_path``.
    """

    def __init__(self, output_path: Optional[Path] = None):
        """Initialize exporter.

        Args:
            output_path: Path where exported data will be written
        """
        self.output_path = Path(output_path) if output_path else None

    @abstractmethod
    def render_summary(self, summary: Summary, **kwargs: Any) -> str:
        """Render a summary in the output format."""

    @abstractmethod
    def render_entries(self, entries: list[TimeEntry], **kwargs: Any) -> str:
        """Render raw time entries in the output format."""

    @abstractmethod
    def get_file_extension(self) -> str:
        """Get the file extension for this format (e.g., '.json', '.csv').

        Returns:
            File extension including the dot
        """

    def export_summary(self, summary: Summary, **kwargs: Any) -> Path:
        return self._write(self.render_summary(summary, **kwargs))

    def export_entries(self, entries: list[TimeEntry], **kwargs: Any) -> Path:
        return self._write(self.render_entries(entries, **kwargs))

    def ensure_output_path(self) -> Path:
        """Ensure the output path's parent directory exists."""
        if self.output_path is None:
            raise ValueError("No output path configured")
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        return self.output_path

    def _write(self, text: str) -> Path:
        path = self.ensure_output_path()
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        return path

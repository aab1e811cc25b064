"""Reporting for Time Clock."""

from time_clock.analysis.reports import ReportGenerator

__all__ = ["ReportGenerator"]

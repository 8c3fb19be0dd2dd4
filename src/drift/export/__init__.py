"""Exporters for agent activity."""

from drift.export.markdown import BriefingExporter

__all__ = ["BriefingExporter"]

from event_exporter.exporter import EventExporter, select_events
from event_exporter.service import AnalyticsService

__all__ = ["AnalyticsService", "EventExporter", "select_events"]

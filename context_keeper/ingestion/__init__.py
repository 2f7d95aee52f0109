"""
Ingestion boundary: turn one external event into a sanitized message row.
"""

from .capture import CaptureEvent, CaptureResult, capture_event, parse_event, record_event

__all__ = ["CaptureEvent", "CaptureResult", "capture_event", "parse_event", "record_event"]

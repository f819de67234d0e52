"""Observability modules."""

from authcore.observability.tracing import OperationSpan, track_operation

__all__ = ["OperationSpan", "track_operation"]

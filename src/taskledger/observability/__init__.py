"""Observability helpers for TaskLedger."""

from taskledger.observability.metrics import metrics

__all__ = ["metrics"]

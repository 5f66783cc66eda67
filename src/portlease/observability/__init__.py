"""Observability helpers for portlease."""

from portlease.observability.metrics import metrics

__all__ = ["metrics"]

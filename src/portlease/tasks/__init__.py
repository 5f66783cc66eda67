"""portlease background tasks."""

from portlease.tasks.sweep import LeaseSweeper

__all__ = ["LeaseSweeper"]

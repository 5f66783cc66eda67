"""portlease data models."""

from portlease.models.lease import Lease

__all__ = ["Lease"]

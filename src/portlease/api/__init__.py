"""portlease HTTP API."""

from portlease.api.router import router

__all__ = ["router"]

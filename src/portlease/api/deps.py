"""API dependencies."""

import logging

from fastapi import HTTPException, Request

from portlease.config import Settings
from portlease.engine import LeaseManager

logger = logging.getLogger("portlease.api")


def get_manager(request: Request) -> LeaseManager:
    """Lease manager built by the application lifespan."""
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        logger.error("Request arrived before the lease manager was initialized")
        raise HTTPException(
            status_code=503,
            detail={"code": "NOT_READY", "message": "Lease manager is not initialized"},
        )
    return manager


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings

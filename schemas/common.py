"""schemas/common.py
====================
Shared response and helper models used across multiple API endpoints.

Only lightweight, dependency-free `pydantic.BaseModel` subclasses should live
here so import cycles are avoided.  Feature-specific response/request models
belong in their dedicated `schemas/<feature>_schemas.py` module.
"""

from typing import Literal

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every error answered by the app-wide exception handlers."""

    detail: str


class HealthStatus(BaseModel):
    """Health/ready-check response served by `/health`."""

    status: Literal["healthy", "degraded", "down"]
    db_available: bool
    environment: str
    app_name: str
    version: str

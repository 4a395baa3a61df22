"""
minimux: Response Schemas
=========================

What:  Pydantic models for the JSON bodies the framework itself produces.
Who:   ErrorResponse is built by Context.error(); HealthResponse by the
       bundled /health route.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    Example:
        {
            "error": "not_found",
            "message": "item with ID '42' was not found",
            "details": {"resource": "item", "resource_id": "42"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Service and dependency status returned by GET /health."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")

"""
Platera Backend — Shared Response Schemas
=========================================

What:  Error and health payloads shared by every route.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "recipe with ID '...' was not found",
            "details": {"resource": "recipe"},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="connected or disconnected")
    identity: str = Field(description="available, unavailable or circuit_open")
    uptime_seconds: float = Field(description="Seconds since the process started")


class MessageResponse(BaseModel):
    message: str

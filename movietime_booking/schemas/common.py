"""
Common schemas for API responses and error handling.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: str
    timestamp: str

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": {
                        "error_code": "SEATS_UNAVAILABLE",
                        "message": "Seats no longer available, please reselect",
                        "details": {
                            "show_id": "123e4567-e89b-12d3-a456-426614174000",
                            "unavailable_seats": ["A2"],
                        },
                        "suggestions": ["Pick different seats and try again"],
                    },
                    "error_id": "5b0f1c52-8f0e-4d7e-9a37-0f0c3a8d2f11",
                    "timestamp": "2026-01-01T12:00:00+00:00",
                }
            ]
        }
    )


class HealthStatus(BaseModel):
    """Schema for health check responses."""

    status: str = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: str = Field(..., description="Health check timestamp")
    dependencies: Optional[Dict[str, Dict[str, Any]]] = Field(
        None,
        description="Status of service dependencies"
    )

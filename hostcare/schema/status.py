"""
Health check response model
"""

from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """
    Health check response model.
    """

    status: str = Field(default="OK", description="Service status")
    version: str = Field(..., description="Service version")
    uptime: float = Field(..., description="Service uptime")
    exec_id: str = Field(..., description="Service execution ID")
    hostname: str = Field(default="", description="Host being maintained")


class IndexResponse(BaseModel):
    """
    Index response model.
    """

    message: str = Field(default="OK", description="Welcome message")

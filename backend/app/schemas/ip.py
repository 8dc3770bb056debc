from pydantic import BaseModel, Field


class IPResponse(BaseModel):
    ip: str = Field(..., description="Resolved client IP; may be empty on /")


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: int = Field(..., description="Unix time in seconds")

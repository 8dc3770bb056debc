from app.schemas.ip import ErrorResponse, HealthResponse, IPResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "IPResponse",
]

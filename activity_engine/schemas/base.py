"""Base schemas and common types for the Activity Engine API."""

from pydantic import BaseModel, ConfigDict


class EngineBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Build straight from dataclasses / ORM rows
        populate_by_name=True,
        use_enum_values=True,
    )


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorDetail(EngineBaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str


class ErrorResponse(EngineBaseModel):
    """Standard error response format."""

    error: str
    message: str
    details: list[ErrorDetail] = []

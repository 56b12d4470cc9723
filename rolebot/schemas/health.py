from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Body of a successful /health or /ready probe."""

    status: str = Field(..., description="'ok' when storage answered")
    storage: str = Field(..., description="Storage probe outcome")

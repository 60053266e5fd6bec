"""Pydantic schemas for FastAPI request/response models."""
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    message: str


class Prediction(BaseModel):
    """One category predicted for an image."""
    className: str
    probability: float = Field(ge=0.0, le=1.0)

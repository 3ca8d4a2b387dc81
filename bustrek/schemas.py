"""
schemas.py - cross-cutting response envelopes.

Every error response has the shape:
    {"status": "error", "message": "...", "error": {"code": "...", "message": "...", "details": [...]}}
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Single field-level validation error."""
    model_config = ConfigDict(extra="forbid")

    field: Optional[str] = None   # Dot-notation field path, e.g. "busDetails.rating"
    issue: str                     # Human-readable description of the problem


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str                                      # VALIDATION_ERROR, NOT_FOUND, etc.
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response format for all BusTrek endpoints."""
    model_config = ConfigDict(extra="forbid")

    status: Literal["error"] = "error"
    message: str
    error: ErrorBody

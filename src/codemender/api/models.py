"""
Pydantic models for codemender API requests and responses.
This module defines the request and response schemas used by the codemender API.
"""

from typing import Optional

from pydantic import (
    BaseModel,
    Field,
)

from codemender.core.schema import ReviewOutcome


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ReviewRequest(BaseModel):
    """Directory to review."""

    directory: str = Field(..., description="Root directory of the project to review and fix")
    max_steps: Optional[int] = Field(
        None, ge=1, description="Model round-trip budget (defaults to MAX_STEPS)"
    )


class ReviewResponse(BaseModel):
    """API response returned to the caller."""

    directory: str
    outcome: ReviewOutcome

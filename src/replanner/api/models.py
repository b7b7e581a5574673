"""
Pydantic models for Replanner API requests and responses.
This module defines the request and response schemas used by the Replanner API.
"""

from typing import Optional

from pydantic import (
    BaseModel,
    Field,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str


class QuestionRequest(BaseModel):
    """Incoming user question."""

    question: str = Field(..., description="Question for the assistant")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")


class AnswerResponse(BaseModel):
    """API response returned to the caller.

    Failures are reported as text in ``answer`` as well; ``error`` then names the error class.
    """

    answer: str
    session_id: Optional[str] = None
    error: Optional[str] = None

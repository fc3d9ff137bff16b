"""Shared response schemas."""
from typing import Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    """
    Simple success response for operations that return no data.

    Example:
        {
            "message": "Record deleted",
            "request_id": "req_abc123"
        }
    """
    message: str = Field(..., description="Success message")
    request_id: Optional[str] = Field(None, description="Request identifier")

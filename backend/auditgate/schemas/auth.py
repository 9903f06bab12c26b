"""
Authentication-related Pydantic schemas.
"""
from typing import Optional
from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    """Identity resolved from a Supabase access token."""
    id: str = Field(..., description="User unique identifier")
    email: Optional[str] = Field(None, description="User email address")
    role: Optional[str] = Field(None, description="Supabase role claim")

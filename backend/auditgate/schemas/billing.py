"""
Pydantic schemas for billing endpoints.
"""

from typing import Optional
from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Response from webhook processing."""
    status: str
    message: str
    user_id: Optional[str] = None
    plan_id: Optional[str] = None

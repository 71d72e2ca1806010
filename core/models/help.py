# =============================================================================
# core/models/help.py - Help & Contact Schemas
# =============================================================================

from pydantic import BaseModel, Field


class HelpRequestCreate(BaseModel):
    """
    A message sent from the help page contact form.

    Example:
        {"title": "Instagram won't connect", "description": "The popup closes right away"}
    """
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None

"""Pydantic schemas for provider-verified identities."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Identity(BaseModel):
    """External user as reported by the identity provider."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    display_name: str
    avatar_url: Optional[str] = None

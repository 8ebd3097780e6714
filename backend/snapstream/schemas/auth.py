"""
SnapStream Backend — Auth Schemas
===================================

What:  Request/response bodies for POST /api/signup and POST /api/login.
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)
    email: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Defaults to <username>@example.com when omitted",
    )


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)


class UserSummary(BaseModel):
    id: uuid.UUID
    username: str
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    """Bearer token plus the user it identifies."""
    token: str = Field(description="JWT to send as 'Authorization: Bearer <token>'")
    token_type: str = Field(default="bearer")
    user: UserSummary

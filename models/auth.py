from pydantic import BaseModel
from typing import Optional


class User(BaseModel):
    id: int
    email: str
    created_at: Optional[str] = None


class Session(BaseModel):
    """A signed-in session. token is sent back as a Bearer token."""
    token: str
    user: User
    expires_at: str                         # ISO 8601 UTC

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class SessionCookie(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    expires: Optional[str] = None
    original_max_age: Optional[int] = Field(default=None, alias="originalMaxAge")


class SessionPayload(BaseModel):
    """Shape check for session bodies sent by the middleware."""

    model_config = ConfigDict(extra="allow")

    cookie: Optional[SessionCookie] = None

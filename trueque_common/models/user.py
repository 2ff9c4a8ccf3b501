from uuid import UUID

from pydantic import BaseModel, ConfigDict


class CurrentUser(BaseModel):
    """Authenticated user resolved from a live session; shared by every router."""

    model_config = ConfigDict(frozen=True, extra="forbid", from_attributes=True)

    id: UUID
    email: str | None = None
    phone: str | None = None
    name: str
    is_verified: bool = False

"""Authenticated user profile."""

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """User as returned by the backend login/profile endpoints."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str = ""
    email: str = ""
    phone: str = ""
    is_admin: bool = Field(default=False, alias="isAdmin")
    role: str | None = None

    def can_manage(self, provider_id: str | None) -> bool:
        """
        Whether this user may approve/reject a reservation of ``provider_id``.

        Admins manage everything. Otherwise the user must be the provider.
        An unknown provider is left for the backend to decide.
        """
        if self.is_admin:
            return True
        if provider_id is None:
            return True
        return provider_id == self.id

"""User domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class UserRole(StrEnum):
    """User role within the workspace."""

    ADMIN = "admin"
    MEMBER = "member"


class Actor(BaseModel):
    """Identity of the caller, resolved upstream and trusted as given."""

    id: str = Field(..., description="User ID of the caller")
    role: UserRole = Field(default=UserRole.MEMBER, description="Role of the caller")

    @field_validator("id")
    @classmethod
    def validate_id_present(cls, v: str) -> str:
        """Reject blank user IDs."""
        v = v.strip()
        if not v:
            raise ValueError("User ID cannot be empty")
        return v

    @property
    def is_admin(self) -> bool:
        """Whether the caller holds the admin role."""
        return self.role == UserRole.ADMIN

from enum import Enum

from pydantic import BaseModel, Field


class UserType(str, Enum):
    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"


class Actor(BaseModel):
    """
    Already-authenticated caller handed to every engine operation.

    Identity is issued upstream; the engine only performs authorization
    checks against this record.
    """

    user_uid: str = Field(..., min_length=1, description="Authenticated user ID")
    user_type: UserType = Field(..., description="guest, host or admin")
    is_email_verified: bool = Field(False, description="Whether the user's email is verified")

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN

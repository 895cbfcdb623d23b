from typing import Literal, Optional

from pydantic import BaseModel, Field

from notewise.entities import User

AvatarId = Literal["avatar1", "avatar2", "avatar3", "avatar4", "avatar5"]

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"


class SignupRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    name: str = Field(default="", max_length=100)
    avatar: AvatarId = "avatar1"


class LoginRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=254)
    avatar: Optional[AvatarId] = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    avatar: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            avatar=user.avatar,
            created_at=user.created_at,
        )

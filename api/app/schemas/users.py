from datetime import datetime
from typing import Literal

from app.schemas.common import CamelModel

UserRole = Literal["user", "admin"]
UserStatus = Literal["incomplete", "pending", "approved", "rejected"]


class UserOut(CamelModel):
    uid: str
    email: str
    display_name: str = ""
    photo_url: str = ""
    bio: str = ""
    company: str = ""
    phone: str = ""
    location: str = ""
    role: UserRole = "user"
    status: UserStatus = "incomplete"
    created_at: datetime
    updated_at: datetime


class SignInRequest(CamelModel):
    email: str
    display_name: str = ""
    photo_url: str = ""


class ProfileUpdateRequest(CamelModel):
    display_name: str
    company: str
    phone: str
    location: str
    bio: str = ""
    photo_url: str | None = None

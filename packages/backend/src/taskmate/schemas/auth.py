"""Pydantic schemas for registration and login.

Fields default to empty strings so a missing field and a blank one are
rejected the same way (400, "All fields are required") by AuthService.
"""

from typing import Optional

from pydantic import BaseModel

from taskmate.schemas.user import UserSummary


class RegisterRequest(BaseModel):
    name: Optional[str] = ""
    email: Optional[str] = ""
    password: Optional[str] = ""


class LoginRequest(BaseModel):
    email: Optional[str] = ""
    password: Optional[str] = ""


class AuthResponse(BaseModel):
    token: str
    user: UserSummary

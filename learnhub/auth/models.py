from typing import Optional

from pydantic import EmailStr, Field, field_validator

from learnhub.schemas import CamelModel

# ==================== AUTH REQUESTS ====================

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    name: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @field_validator("name")
    @classmethod
    def name_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    secret: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


# ==================== RESPONSE SHAPES ====================

def user_out(user: Optional[dict]) -> Optional[dict]:
    """External shape of a stored user document"""
    if not user:
        return None
    return {
        "userId": user["user_id"],
        "email": user.get("email"),
        "name": user.get("name"),
        "avatar": user.get("avatar"),
        "role": user.get("role", "student"),
        "createdAt": user.get("created_at"),
        "updatedAt": user.get("updated_at"),
    }

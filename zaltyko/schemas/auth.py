"""
Authentication Schemas

Request/response models for authentication endpoints.
"""
from pydantic import EmailStr, Field
from zaltyko.schemas.common import APIModel


class Token(APIModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"


class LoginRequest(APIModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class RegisterRequest(APIModel):
    """Owner self-registration. The tenant is assigned with the first academy."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "owner@academia.es",
                "password": "securepassword123",
                "name": "Marta López",
            }
        }

from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from accounts.dbmodel import Role


class RegistrationDetails(BaseModel):
    fullname: str = Field(min_length=1)
    email: EmailStr
    contact_number: str = Field(min_length=1)
    role: Role = Role.admin


class LoginDetails(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordDetails(BaseModel):
    email: Optional[str] = None


class NewPasswordDetails(BaseModel):
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class UploadedFile(BaseModel):
    """A file read fully into memory from a multipart request."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

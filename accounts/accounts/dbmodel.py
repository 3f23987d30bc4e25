from sqlmodel import SQLModel, Field, Column, TEXT
from sqlalchemy import DateTime
from pydantic import EmailStr
from datetime import datetime
from typing import Optional
from enum import Enum

from accounts.clock import utcnow


class Role(str, Enum):
    admin = "admin"
    staff = "staff"
    superadmin = "superadmin"


class Account(SQLModel, table=True):
    __tablename__ = "accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: str = Field(unique=True, index=True)
    fullname: str
    email: EmailStr = Field(
        sa_column=Column(TEXT, unique=True, index=True)
    )  # used as login
    contact_number: str
    role: str = Field(default=Role.admin.value, index=True)
    password_hash: str
    is_temporary_password: bool = Field(default=True)
    is_verified: bool = Field(default=False)
    reset_token: Optional[str] = Field(default=None, index=True)
    reset_token_expires: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=False), nullable=True)
    )
    valid_id: Optional[str] = Field(default=None)
    resume: Optional[str] = Field(default=None)
    registration_pending: bool = Field(default=False)
    # naive UTC, see accounts.clock
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False)
    )

    def public_view(self) -> dict:
        """Outward representation. Credentials and reset state never leave."""
        return {
            "_id": self.public_id,
            "fullName": self.fullname,
            "email": self.email,
            "role": self.role,
            "contactNumber": self.contact_number,
            "isVerified": self.is_verified,
            "isTemporaryPassword": self.is_temporary_password,
            "validId": self.valid_id,
            "resume": self.resume,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

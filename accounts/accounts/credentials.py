"""Credential rules: temporary passwords, strength policy, reset tokens."""

import re
import secrets
from datetime import datetime, timedelta
from typing import Optional

SYMBOLS = "!@#$%^&*()_+-=[]{};':\"\\|,.<>/?"
MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

PASSWORD_POLICY_MESSAGE = (
    "Password must be at least 8 characters long, include 1 uppercase letter, "
    "1 number, and 1 special character."
)
PASSWORD_TOO_LONG_MESSAGE = (
    f"Password must not be longer than {MAX_PASSWORD_BYTES} bytes."
)

_password_pattern = re.compile(
    r"^(?=.*[A-Z])(?=.*[a-z])(?=.*\d)(?=.*[" + re.escape(SYMBOLS) + r"]).{8,}$",
    re.DOTALL,
)


def normalize_email(email: str) -> str:
    """Canonical form under which emails are stored and looked up."""
    return email.strip().lower()


def temporary_password(fullname: str, contact_number: str) -> str:
    """First name token followed by the last four digits of the contact number.

    Args:
        fullname: full name as entered at registration
        contact_number: contact number as entered at registration

    Returns:
        Temporary password sent in the welcome email
    """
    return f"{fullname.split(' ')[0]}{contact_number[-4:]}"


def is_password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def is_strong_password(password: Optional[str]) -> bool:
    if not password or is_password_too_long(password):
        return False
    return _password_pattern.match(password) is not None


def new_reset_token() -> str:
    # 32 random bytes, hex encoded
    return secrets.token_hex(32)


def reset_window_end(now: datetime, window: timedelta) -> datetime:
    return now + window

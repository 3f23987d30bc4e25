import jwt

from datetime import datetime, timedelta, timezone
from typing import Optional


class Authenticator:
    """Issues signed tokens bound to an account's public id."""

    def __init__(
        self,
        key: str,
        algorithm: str,
        expire: timedelta,
        setup_expire: timedelta = timedelta(days=2),
    ) -> None:
        self.key = key
        self.algorithm = algorithm
        self.expire = expire
        self.setup_expire = setup_expire

    def encode_token(self, account_public_id: str, role: str) -> str:
        now = datetime.now(tz=timezone.utc)
        payload = {
            "exp": now + self.expire,
            "iat": now,
            "id": account_public_id,
            "role": role,
        }
        return jwt.encode(payload, self.key, algorithm=self.algorithm)

    def encode_setup_token(self, account_public_id: str) -> str:
        now = datetime.now(tz=timezone.utc)
        payload = {
            "exp": now + self.setup_expire,
            "iat": now,
            "id": account_public_id,
            "purpose": "setup",
        }
        return jwt.encode(payload, self.key, algorithm=self.algorithm)

    def decode_setup_token(self, token: str) -> Optional[str]:
        """Returns the account id of a valid setup token, None otherwise."""
        try:
            payload = jwt.decode(token, self.key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError:
            return None
        if payload.get("purpose") != "setup":
            return None
        return payload.get("id")

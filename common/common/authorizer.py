import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional

bearer = HTTPBearer(auto_error=False)


class Authorizer:
    """Resolves the caller's account id from a bearer token."""

    def __init__(self, key: str, algorithm: str):
        self.key = key
        self.algorithm = algorithm

    def decode_token(self, token):
        try:
            payload = jwt.decode(token, self.key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Signature has expired")
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
        if "id" not in payload or payload.get("purpose") == "setup":
            raise HTTPException(status_code=401, detail="Invalid token")
        return payload

    def __call__(
        self, auth: Optional[HTTPAuthorizationCredentials] = Security(bearer)
    ) -> str:
        if auth is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return self.decode_token(auth.credentials)["id"]

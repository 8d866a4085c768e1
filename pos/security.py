"""
Credential primitives used by the auth and user services.

- ``PasswordHasher``: bcrypt with a per-password salt and a configurable
  cost factor.
- ``TokenManager``: HS256 JWTs carrying the user id in ``sub`` plus a
  ``type`` claim so access and refresh tokens cannot be swapped.
"""
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from pos.config import settings

_ROUNDS = 12


class PasswordMismatchError(ValueError):
    pass


class PasswordHasher:
    def __init__(self, rounds: int = _ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("password must not be empty")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode(), salt).decode()

    def verify(self, hashed: str, password: str) -> None:
        """
        Raise ``PasswordMismatchError`` unless *password* matches *hashed*.

        A value that is not a bcrypt hash raises a plain ``ValueError``.
        """
        if not bcrypt.checkpw(password.encode(), hashed.encode()):
            raise PasswordMismatchError("password does not match")


class TokenManager:
    def __init__(
        self,
        secret: str | None = None,
        access_ttl: int | None = None,
        refresh_ttl: int | None = None,
    ) -> None:
        self.secret = secret or settings.SECRET_KEY
        self.access_ttl = access_ttl if access_ttl is not None else settings.ACCESS_TOKEN_TTL
        self.refresh_ttl = refresh_ttl if refresh_ttl is not None else settings.REFRESH_TOKEN_TTL

    def _encode(self, user_id: int, token_type: str, ttl: int) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": token_type,
            "iat": now,
            "exp": now + timedelta(seconds=ttl),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm="HS256")

    def create_access_token(self, user_id: int) -> str:
        return self._encode(user_id, "access", self.access_ttl)

    def create_refresh_token(self, user_id: int) -> str:
        return self._encode(user_id, "refresh", self.refresh_ttl)

    def refresh_expiration(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self.refresh_ttl)

    def validate(self, token: str, token_type: str = "access") -> int:
        """
        Return the user id carried by *token*.

        Raises ``jwt.ExpiredSignatureError`` for expired tokens and
        ``jwt.InvalidTokenError`` for anything else that is wrong with it.
        """
        payload = jwt.decode(token, self.secret, algorithms=["HS256"])
        if payload.get("type") != token_type:
            raise jwt.InvalidTokenError(f"expected a {token_type} token")
        try:
            return int(payload["sub"])
        except (KeyError, ValueError) as exc:
            raise jwt.InvalidTokenError("token subject is not a user id") from exc

"""
Password hashing, identity tokens and the request authentication dependency.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-auth-token"


class PasswordHasher:
    """Salted one-way password hashing (bcrypt, fresh salt per hash)."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return self._context.verify(password, password_hash)
        except (ValueError, TypeError):
            # unrecognised or corrupt stored hash
            return False


class InvalidTokenError(Exception):
    """The token is malformed, tampered with or expired. Callers cannot tell which."""


def _has_canonical_signature(token: str) -> bool:
    # base64 decoding ignores the trailing pad bits, so two spellings of the last
    # signature character can decode to the same digest
    signature = token.rsplit(".", 1)[-1].encode("utf-8")
    try:
        return base64url_encode(base64url_decode(signature)) == signature
    except (ValueError, TypeError):
        return False


class TokenService:
    """
    Issues and verifies signed identity tokens.

    Payload: {"user": {"id": <user id>}, "iat": ..., "exp": ...}
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: timedelta = timedelta(days=5)):
        self._secret = secret
        self._algorithm = algorithm
        self._expires_in = expires_in

    def issue(self, user_id: str, issued_at: Optional[datetime] = None) -> str:
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "user": {"id": user_id},
            "iat": now,
            "exp": now + self._expires_in,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> str:
        """Return the user id embedded in `token` or raise InvalidTokenError."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require_exp": True},
            )
        except JWTError as exc:
            raise InvalidTokenError("Token is not valid") from exc

        if not _has_canonical_signature(token):
            raise InvalidTokenError("Token is not valid")

        user = payload.get("user")
        user_id = user.get("id") if isinstance(user, dict) else None
        if not isinstance(user_id, str) or not user_id:
            raise InvalidTokenError("Token is not valid")
        return user_id


# Request authentication

token_header = APIKeyHeader(name=TOKEN_HEADER, auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The verified caller, attached to authenticated requests."""
    user_id: str


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def get_identity(
    token: Optional[str] = Security(token_header),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token, authorization denied")
    try:
        user_id = tokens.verify(token)
    except InvalidTokenError:
        logger.debug("Rejected invalid token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token is not valid")
    return Identity(user_id=user_id)

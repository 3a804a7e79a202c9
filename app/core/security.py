"""
Password hashing (bcrypt) and JWT issuance / validation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import ErrorKind, Result
from app.models.user import UserRole
from app.schemas.token import TokenClaims

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "Could not validate credentials"


# ── Passwords ───────────────────────────────────────────────────────
class PasswordHasher:
    """Salted bcrypt hashing with a tunable cost factor."""

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, plain: str) -> str:
        return self._context.hash(plain)

    def verify(self, plain: str, hashed: str) -> bool:
        """Constant-time check; an unreadable digest counts as a mismatch."""
        if not isinstance(hashed, str) or not hashed:
            return False
        try:
            return self._context.verify(plain, hashed)
        except (ValueError, TypeError):
            return False


# ── JWT tokens ──────────────────────────────────────────────────────
@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenIssuer:
    """Signs access tokens with a shared secret and validates them.

    Tokens carry ``sub`` (user id), ``username``, ``email`` and ``role`` plus
    the registered ``iss``, ``aud``, ``iat`` and ``exp`` claims.  Validation
    failures of any kind collapse into a single unauthorized outcome.
    """

    def __init__(
        self,
        secret: str,
        issuer: str,
        audience: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(hours=4),
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._algorithm = algorithm
        self._lifetime = lifetime

    def issue(
        self,
        user_id: int,
        username: str,
        email: str,
        role: UserRole | str,
        now: datetime | None = None,
    ) -> IssuedToken:
        # JWT timestamps are whole seconds; truncate so exp == iat + lifetime exactly
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires_at = issued_at + self._lifetime
        claims: dict[str, Any] = {
            "sub": str(user_id),
            "username": username,
            "email": email,
            "role": UserRole(role).value,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(claims, self._secret, algorithm=self._algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def validate(self, token: str) -> Result[TokenClaims]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
                options={
                    "require_iss": True,
                    "require_aud": True,
                    "require_iat": True,
                    "require_exp": True,
                    "require_sub": True,
                },
            )
            claims = TokenClaims(
                user_id=int(payload["sub"]),
                username=payload["username"],
                email=payload["email"],
                role=payload["role"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, TypeError, ValueError, ValidationError) as exc:
            logger.warning("Token rejected: %s", type(exc).__name__)
            return Result.failure(ErrorKind.UNAUTHORIZED, INVALID_TOKEN_MESSAGE)
        return Result.success(claims)


password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)

token_issuer = TokenIssuer(
    secret=settings.SECRET_KEY,
    issuer=settings.JWT_ISSUER,
    audience=settings.JWT_AUDIENCE,
    algorithm=settings.ALGORITHM,
    lifetime=timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
)

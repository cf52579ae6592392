"""
Token issuing/validation (PyJWT) and password hashing (bcrypt).

Every login session gets a pair of signed tokens that share the session
id: a short-lived access token sent on each request and a longer-lived
refresh token that can only be traded for a new pair.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from starter_api.config import ConfigError, JWTSettings
from starter_api.errors import UnauthorizedError

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
REQUIRED_CLAIMS = ["exp", "iat", "nbf", "iss", "aud", "sub", "jti"]


class ExpiredTokenError(UnauthorizedError):
    def __init__(self, message: str = "Token has expired", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidTokenError(UnauthorizedError):
    def __init__(self, message: str = "Invalid token", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class InvalidClaimsError(InvalidTokenError):
    def __init__(self, message: str = "Invalid token", **kwargs: Any) -> None:
        kwargs.setdefault("details", "invalid token claims")
        super().__init__(message, **kwargs)


class TokenNotFoundError(UnauthorizedError):
    """The token is well-formed but no longer honoured (deny-listed)."""

    def __init__(self, message: str = "Token not found", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_at: int
    token_type: str = "Bearer"


@dataclass
class Claims:
    user_id: uuid.UUID
    email: str
    token_type: str
    session_id: uuid.UUID
    jti: str
    issuer: str
    audience: list[str]
    subject: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime

    @property
    def remaining(self) -> timedelta:
        """Time left before the token expires (never negative)."""
        return max(self.expires_at - datetime.now(timezone.utc), timedelta(0))


class JWTManager:
    def __init__(
        self,
        secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        issuer: str,
        audience: str,
        algorithm: str = "HS256",
    ) -> None:
        if algorithm not in HMAC_ALGORITHMS:
            raise ConfigError(
                f"JWT algorithm {algorithm} needs a key pair; only HS256/HS384/HS512 are supported"
            )
        if not secret:
            raise ConfigError("JWT secret is required")
        self._secret = secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, cfg: JWTSettings) -> "JWTManager":
        return cls(
            secret=cfg.secret,
            access_ttl=cfg.access_token_ttl,
            refresh_ttl=cfg.refresh_token_ttl,
            issuer=cfg.issuer,
            audience=cfg.audience,
            algorithm=cfg.algorithm,
        )

    def generate_token_pair(
        self, user_id: uuid.UUID, email: str, session_id: uuid.UUID
    ) -> TokenPair:
        now = datetime.now(timezone.utc)
        access = self._generate_token(user_id, email, session_id, ACCESS_TOKEN, now, self.access_ttl)
        refresh = self._generate_token(user_id, email, session_id, REFRESH_TOKEN, now, self.refresh_ttl)
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_at=int((now + self.access_ttl).timestamp()),
        )

    def _generate_token(
        self,
        user_id: uuid.UUID,
        email: str,
        session_id: uuid.UUID,
        token_type: str,
        now: datetime,
        ttl: timedelta,
    ) -> str:
        payload = {
            "user_id": str(user_id),
            "email": email,
            "token_type": token_type,
            "session_id": str(session_id),
            "iss": self.issuer,
            "aud": [self.audience],
            "sub": str(user_id),
            "exp": now + ttl,
            "nbf": now,
            "iat": now,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate_token(self, token: str) -> Claims:
        """
        Verify signature, expiry, issuer and audience of *token*.

        Raises ``ExpiredTokenError`` for an expired token,
        ``InvalidClaimsError`` when a registered claim is wrong or missing,
        and ``InvalidTokenError`` for anything else.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredTokenError(cause=exc) from exc
        except (
            jwt.InvalidAudienceError,
            jwt.InvalidIssuerError,
            jwt.MissingRequiredClaimError,
        ) as exc:
            raise InvalidClaimsError(cause=exc) from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(cause=exc) from exc

        return self._claims_from_payload(payload)

    @staticmethod
    def _claims_from_payload(payload: dict[str, Any]) -> Claims:
        try:
            token_type = payload["token_type"]
            if token_type not in (ACCESS_TOKEN, REFRESH_TOKEN):
                raise ValueError(f"unknown token type {token_type!r}")
            audience = payload["aud"]
            return Claims(
                user_id=uuid.UUID(payload["user_id"]),
                email=payload["email"],
                token_type=token_type,
                session_id=uuid.UUID(payload["session_id"]),
                jti=payload["jti"],
                issuer=payload["iss"],
                audience=audience if isinstance(audience, list) else [audience],
                subject=payload["sub"],
                issued_at=datetime.fromtimestamp(payload["iat"], timezone.utc),
                not_before=datetime.fromtimestamp(payload["nbf"], timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidClaimsError(cause=exc) from exc

    def refresh_access_token(self, refresh_token: str, session_id: uuid.UUID) -> TokenPair:
        claims = self.validate_token(refresh_token)
        if claims.token_type != REFRESH_TOKEN:
            raise InvalidTokenError(details="not a refresh token")
        if claims.session_id != session_id:
            raise InvalidTokenError(details="token does not belong to this session")
        return self.generate_token_pair(claims.user_id, claims.email, session_id)

    def extract_user_id(self, token: str) -> uuid.UUID:
        return self.validate_token(token).user_id

    def extract_session_id(self, token: str) -> uuid.UUID:
        return self.validate_token(token).session_id


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt"""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a hash; a malformed hash never matches."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False

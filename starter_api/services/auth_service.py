"""
Auth service: registration, login and the session/token lifecycle.

Each login creates a ``Session`` row holding the current refresh token.
Access tokens carry the session id, so deleting the session (logout)
invalidates every token issued for it; the access token used to log out
is additionally deny-listed in Redis until it expires.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from starter_api.cache import CacheManager, cache
from starter_api.database import as_utc, utcnow
from starter_api.errors import ConflictError, UnauthorizedError
from starter_api.models import Session, User
from starter_api.repositories import SessionRepository, UserRepository
from starter_api.schemas import LoginRequest, RegisterRequest
from starter_api.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    Claims,
    InvalidTokenError,
    JWTManager,
    PasswordHasher,
    TokenNotFoundError,
    TokenPair,
)
from starter_api.validators import (
    validate_email,
    validate_optional_text,
    validate_password,
    validate_username,
)

logger = logging.getLogger(__name__)


class InvalidCredentialsError(UnauthorizedError):
    def __init__(self, message: str = "Invalid email or password", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class SessionNotFoundError(UnauthorizedError):
    def __init__(self, message: str = "Session is invalid or expired", **kwargs: Any) -> None:
        kwargs.setdefault("details", "session not found")
        super().__init__(message, **kwargs)


class InvalidSessionError(UnauthorizedError):
    def __init__(self, message: str = "Session is invalid or expired", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class UserNotFoundError(UnauthorizedError):
    def __init__(self, message: str = "User not found", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair


@dataclass
class AuthContext:
    """What ``require_auth`` hands to route functions."""

    user: User
    session: Session
    claims: Claims


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        sessions: SessionRepository,
        jwt_manager: JWTManager,
        hasher: PasswordHasher,
        session_ttl: timedelta,
        token_store: CacheManager = cache,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.jwt = jwt_manager
        self.hasher = hasher
        self.session_ttl = session_ttl
        self.token_store = token_store

    async def register(
        self,
        data: RegisterRequest,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResult:
        email = validate_email(data.email)
        username = validate_username(data.username)
        password = validate_password(data.password)
        full_name = validate_optional_text(data.full_name, "full_name", 150)

        if await self.users.get_by_email(email) is not None:
            raise ConflictError("user with this email already exists").with_field("field", "email")
        if await self.users.get_by_username(username) is not None:
            raise ConflictError("username is already taken").with_field("field", "username")

        # bcrypt is CPU bound; keep it off the event loop.
        password_hash = await asyncio.to_thread(self.hasher.hash_password, password)
        user = await self.users.create(
            User(
                email=email,
                username=username,
                full_name=full_name,
                password_hash=password_hash,
                is_active=True,
            )
        )
        logger.info("User registered", extra={"user_id": str(user.id)})
        return await self._create_session(user, user_agent, ip_address)

    async def login(
        self,
        data: LoginRequest,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Authenticate by email and password.  A missing user, an inactive
        user and a wrong password all fail with the same error.
        """
        user = await self.users.get_by_email(data.email)
        if user is None or not user.is_active:
            raise InvalidCredentialsError()

        valid = await asyncio.to_thread(
            self.hasher.verify_password, data.password, user.password_hash
        )
        if not valid:
            raise InvalidCredentialsError()

        user.last_login_at = utcnow()
        await self.users.update(user)
        return await self._create_session(user, user_agent, ip_address)

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        """Trade a refresh token for a new pair and rotate the session's refresh token."""
        claims = self.jwt.validate_token(refresh_token)
        if claims.token_type != REFRESH_TOKEN:
            raise InvalidTokenError(details="not a refresh token")

        session = await self.sessions.get_by_refresh_token(refresh_token)
        if session is None or session.user_id != claims.user_id:
            raise SessionNotFoundError()
        if as_utc(session.expires_at) < utcnow():
            await self.sessions.purge(session)
            raise InvalidSessionError()

        user = await self.users.get_by_id(session.user_id)
        if user is None:
            raise UserNotFoundError()
        if not user.is_active:
            raise InvalidTokenError(details="user account is inactive")

        tokens = self.jwt.generate_token_pair(user.id, user.email, session.id)
        session.refresh_token = tokens.refresh_token
        await self.sessions.update(session)
        return tokens

    async def logout(self, session: Session, claims: Claims) -> None:
        await self.sessions.delete(session)
        ttl = int(claims.remaining.total_seconds()) + 1
        await self.token_store.revoke_token(claims.jti, ttl)
        logger.info("User logged out", extra={"user_id": str(session.user_id)})

    async def logout_all(self, user_id: uuid.UUID) -> int:
        removed = await self.sessions.delete_by_user_id(user_id)
        logger.info(
            "User logged out of all sessions",
            extra={"user_id": str(user_id), "sessions": removed},
        )
        return removed

    async def validate_token(self, token: str) -> AuthContext:
        """
        Resolve an access token to its user and session.

        Fails when the token is not an access token, has been deny-listed,
        belongs to a missing or expired session, or to a missing or
        inactive user.  Expired sessions are deleted on sight.
        """
        claims = self.jwt.validate_token(token)
        if claims.token_type != ACCESS_TOKEN:
            raise InvalidTokenError(details="not an access token")
        if await self.token_store.is_token_revoked(claims.jti):
            raise TokenNotFoundError()

        session = await self.sessions.get_by_id(claims.session_id)
        if session is None:
            raise SessionNotFoundError()
        if as_utc(session.expires_at) < utcnow():
            await self.sessions.purge(session)
            raise InvalidSessionError()

        user = await self.users.get_by_id(claims.user_id)
        if user is None:
            raise UserNotFoundError()
        if not user.is_active:
            raise InvalidTokenError(details="user account is inactive")

        return AuthContext(user=user, session=session, claims=claims)

    async def cleanup_expired_sessions(self) -> int:
        removed = await self.sessions.delete_expired()
        logger.info("Expired sessions removed", extra={"sessions": removed})
        return removed

    async def _create_session(
        self, user: User, user_agent: Optional[str], ip_address: Optional[str]
    ) -> AuthResult:
        session_id = uuid.uuid4()
        tokens = self.jwt.generate_token_pair(user.id, user.email, session_id)
        await self.sessions.create(
            Session(
                id=session_id,
                user_id=user.id,
                refresh_token=tokens.refresh_token,
                user_agent=(user_agent or "")[:512] or None,
                ip_address=ip_address,
                expires_at=utcnow() + self.session_ttl,
            )
        )
        return AuthResult(user=user, tokens=tokens)

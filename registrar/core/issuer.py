"""
Authentication Issuer
Central coordinator for registration, login, token refresh and password changes
"""

import asyncio
from datetime import date, datetime
from typing import Callable, Optional

import structlog
from pydantic import BaseModel

from .errors import DuplicateEmail, InvalidCredentials, InvalidToken, WeakPassword
from .passwords import PasswordHasher
from .subjects import (
    Identity,
    Role,
    StudentProfile,
    TokenKind,
    TokenManager,
    normalize_email,
    utcnow,
)
from ..storage.base import IdentityStore

logger = structlog.get_logger()


class RegistrationResult(BaseModel):
    identity: Identity
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class TokenPair(BaseModel):
    identity: Identity
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class AuthIssuer:
    """Issues and validates credentials for identities held in an IdentityStore"""

    def __init__(
        self,
        storage: IdentityStore,
        token_manager: TokenManager,
        password_hasher: PasswordHasher,
        min_password_length: int = 8,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage
        self.token_manager = token_manager
        self.password_hasher = password_hasher
        self.min_password_length = min_password_length
        self.clock = clock or utcnow

    def _check_password_policy(self, password: str) -> None:
        if not password or len(password) < self.min_password_length:
            raise WeakPassword(
                f"Password must be at least {self.min_password_length} characters"
            )

    def _issue_pair(self, identity: Identity) -> TokenPair:
        now = self.clock()
        return TokenPair(
            identity=identity,
            access_token=self.token_manager.create_access_token(identity, now),
            refresh_token=self.token_manager.create_refresh_token(identity, now),
            expires_in=self.token_manager.expires_in(TokenKind.ACCESS),
        )

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        date_of_birth: Optional[date] = None,
    ) -> RegistrationResult:
        """Create a Student identity (with its student profile) and log it in"""
        email = normalize_email(email)
        self._check_password_policy(password)

        # Fast path only; the store's unique constraint is authoritative
        if await self.storage.identity_exists(email):
            raise DuplicateEmail()

        now = self.clock()
        identity = Identity(
            email=email,
            password_hash=await asyncio.to_thread(self.password_hasher.hash, password),
            role=Role.STUDENT,
            first_name=first_name,
            last_name=last_name,
            created_at=now,
            updated_at=now,
        )
        profile = StudentProfile(date_of_birth=date_of_birth, enrollment_date=now.date())
        identity = await self.storage.save_identity(identity, student_profile=profile)

        logger.info("Identity registered", user_id=identity.id, role=identity.role.value)

        return RegistrationResult(
            identity=identity,
            access_token=self.token_manager.create_access_token(identity, now),
            expires_in=self.token_manager.expires_in(TokenKind.ACCESS),
        )

    async def login(self, email: str, password: str) -> TokenPair:
        """Exchange email and password for an access/refresh token pair"""
        identity = await self.storage.find_identity_by_email(normalize_email(email))
        if identity is None:
            await asyncio.to_thread(self.password_hasher.burn, password)
            logger.info("Login rejected")
            raise InvalidCredentials()

        if not await asyncio.to_thread(self.password_hasher.verify, password, identity.password_hash):
            logger.info("Login rejected")
            raise InvalidCredentials()

        logger.info("Login succeeded", user_id=identity.id)
        return self._issue_pair(identity)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token into a fresh access/refresh pair"""
        claims = self.token_manager.verify_token(
            refresh_token, self.clock(), expected_kind=TokenKind.REFRESH
        )
        if claims is None:
            logger.debug("Token refresh failed")
            raise InvalidToken("Invalid refresh token")

        identity = await self.storage.find_identity_by_email(claims.subject)
        if identity is None or identity.id != claims.user_id:
            logger.debug("Token refresh failed", user_id=claims.user_id)
            raise InvalidToken("Invalid refresh token")

        logger.info("Tokens refreshed", user_id=identity.id)
        return self._issue_pair(identity)

    async def current_identity(self, access_token: str) -> Identity:
        """Resolve the identity behind an access token"""
        claims = self.token_manager.verify_token(
            access_token, self.clock(), expected_kind=TokenKind.ACCESS
        )
        if claims is None:
            raise InvalidToken()

        identity = await self.storage.find_identity_by_email(claims.subject)
        if identity is None or identity.id != claims.user_id:
            raise InvalidToken()
        return identity

    async def change_password(self, identity: Identity, current_password: str, new_password: str) -> Identity:
        """Replace the stored hash after checking the current password"""
        stored = await self.storage.find_identity_by_email(identity.email)
        if stored is None or stored.id != identity.id:
            raise InvalidCredentials()
        if not await asyncio.to_thread(self.password_hasher.verify, current_password, stored.password_hash):
            logger.info("Password change rejected", user_id=stored.id)
            raise InvalidCredentials("Current password is incorrect")
        self._check_password_policy(new_password)

        new_hash = await asyncio.to_thread(self.password_hasher.hash, new_password)
        updated = await self.storage.save_identity(stored.with_password_hash(new_hash, self.clock()))
        logger.info("Password changed", user_id=updated.id)
        return updated

    async def logout(self, identity: Identity) -> str:
        # Tokens are stateless; they lapse at their embedded expiry
        logger.info("Logged out", user_id=identity.id)
        return "Logged out successfully"

    def has_role(self, identity: Identity, role: Role) -> bool:
        return identity.has_role(role)

    def is_admin(self, identity: Identity) -> bool:
        return self.has_role(identity, Role.ADMIN)

    def is_lecturer(self, identity: Identity) -> bool:
        return self.has_role(identity, Role.LECTURER)

    def is_student(self, identity: Identity) -> bool:
        return self.has_role(identity, Role.STUDENT)

"""
Identity Subjects
Identity records and the signed token codec built on them
"""

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

import jwt
from jwt import InvalidSignatureError, InvalidTokenError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


class Role(str, Enum):
    STUDENT = "Student"
    LECTURER = "Lecturer"
    ADMIN = "Admin"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


def normalize_email(email: str) -> str:
    """Canonical form used for every lookup and uniqueness check"""
    return (email or "").strip().lower()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Identity(BaseModel):
    """Authenticated user as held by the identity store"""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    email: str
    password_hash: str = Field(repr=False)
    role: Role = Role.STUDENT
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def has_role(self, role) -> bool:
        return self.role == Role(role)

    def with_password_hash(self, password_hash: str, now: datetime) -> "Identity":
        """Return the next version of this identity carrying a new hash"""
        return self.model_copy(update={"password_hash": password_hash, "updated_at": now})


class StudentProfile(BaseModel):
    """Student record created alongside a registered identity; shares its id"""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    date_of_birth: Optional[date] = None
    enrollment_date: date


class TokenClaims(BaseModel):
    """Claim set carried by every token"""
    model_config = ConfigDict(frozen=True)

    subject: str
    user_id: int
    role: Role
    kind: TokenKind
    issued_at: int
    expires_at: int


class TokenFailure(str, Enum):
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    INVALID_CLAIMS = "invalid_claims"
    EXPIRED = "expired"


class TokenInspection(BaseModel):
    """Outcome of a verification that keeps the failure reason"""
    claims: Optional[TokenClaims] = None
    failure: Optional[TokenFailure] = None

    @property
    def valid(self) -> bool:
        return self.claims is not None


class TokenManager:
    """JWT token management"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS512",
        access_token_ttl: timedelta = timedelta(hours=24),
        refresh_token_ttl: timedelta = timedelta(days=7),
    ):
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        if not secret_key:
            raise ValueError("A signing key is required")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttls = {
            TokenKind.ACCESS: access_token_ttl,
            TokenKind.REFRESH: refresh_token_ttl,
        }

    def expires_in(self, kind: TokenKind) -> int:
        """Lifetime of a token kind in seconds"""
        return int(self.ttls[TokenKind(kind)].total_seconds())

    def create_token(self, identity: Identity, kind: TokenKind, now: Optional[datetime] = None) -> str:
        """Create a signed token of the given kind for an identity"""
        kind = TokenKind(kind)
        issued_at = int((now or utcnow()).timestamp())
        payload: Dict[str, Any] = {
            "sub": identity.email,
            "user_id": identity.id,
            "role": identity.role.value,
            "type": kind.value,
            "iat": issued_at,
            "exp": issued_at + self.expires_in(kind),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_access_token(self, identity: Identity, now: Optional[datetime] = None) -> str:
        return self.create_token(identity, TokenKind.ACCESS, now)

    def create_refresh_token(self, identity: Identity, now: Optional[datetime] = None) -> str:
        return self.create_token(identity, TokenKind.REFRESH, now)

    def inspect(self, token: str, now: Optional[datetime] = None) -> TokenInspection:
        """Verify a token and report why it failed, never raising"""
        if not isinstance(token, str) or token.count(".") != 2:
            return TokenInspection(failure=TokenFailure.MALFORMED)

        try:
            # Expiry is checked below against the supplied clock
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except InvalidSignatureError:
            return TokenInspection(failure=TokenFailure.BAD_SIGNATURE)
        except InvalidTokenError:
            return TokenInspection(failure=TokenFailure.MALFORMED)

        try:
            claims = TokenClaims(
                subject=payload["sub"],
                user_id=payload["user_id"],
                role=payload["role"],
                kind=payload["type"],
                issued_at=payload["iat"],
                expires_at=payload["exp"],
            )
        except (KeyError, TypeError, ValidationError):
            return TokenInspection(failure=TokenFailure.INVALID_CLAIMS)

        if claims.expires_at <= (now or utcnow()).timestamp():
            return TokenInspection(failure=TokenFailure.EXPIRED)

        return TokenInspection(claims=claims)

    def verify_token(
        self,
        token: str,
        now: Optional[datetime] = None,
        expected_kind: Optional[TokenKind] = None,
    ) -> Optional[TokenClaims]:
        """Return the claim set of a valid token, otherwise None"""
        claims = self.inspect(token, now).claims
        if claims is None:
            return None
        if expected_kind is not None and claims.kind != TokenKind(expected_kind):
            return None
        return claims

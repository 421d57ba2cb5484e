"""
Tests for identity subjects and the token codec
Covers issuance, expiry, tamper detection and token kinds
"""
from datetime import timedelta

import jwt
import pytest

from registrar.core.subjects import (
    Identity,
    Role,
    TokenFailure,
    TokenKind,
    TokenManager,
    normalize_email,
)


@pytest.fixture
def identity(now):
    return Identity(
        id=7,
        email="ada@example.edu",
        password_hash="not-a-real-hash",
        role=Role.LECTURER,
        created_at=now,
        updated_at=now,
    )


def _tamper_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    index = len(signature) // 2
    replacement = "A" if signature[index] != "A" else "B"
    return ".".join([header, payload, signature[:index] + replacement + signature[index + 1:]])


class TestTokenManager:
    """Token codec behaviour"""

    def test_access_token_round_trip(self, token_manager, identity, now):
        """Claims recovered from a fresh access token match the identity"""
        token = token_manager.create_access_token(identity, now)

        claims = token_manager.verify_token(token, now)

        assert claims is not None
        assert claims.subject == "ada@example.edu"
        assert claims.user_id == 7
        assert claims.role == Role.LECTURER
        assert claims.kind == TokenKind.ACCESS
        assert claims.issued_at == int(now.timestamp())
        assert claims.expires_at == int(now.timestamp()) + 86400

    def test_refresh_token_lives_seven_days(self, token_manager, identity, now):
        token = token_manager.create_refresh_token(identity, now)

        claims = token_manager.verify_token(token, now + timedelta(days=6, hours=23))

        assert claims.kind == TokenKind.REFRESH
        assert token_manager.verify_token(token, now + timedelta(days=7)) is None

    def test_token_expires_after_ttl(self, token_manager, identity, now):
        token = token_manager.create_access_token(identity, now)

        assert token_manager.verify_token(token, now + timedelta(hours=24, seconds=1)) is None
        inspection = token_manager.inspect(token, now + timedelta(hours=24, seconds=1))
        assert inspection.failure == TokenFailure.EXPIRED

    def test_token_invalid_exactly_at_expiry(self, token_manager, identity, now):
        token = token_manager.create_access_token(identity, now)

        assert token_manager.verify_token(token, now + timedelta(hours=24)) is None
        assert token_manager.verify_token(token, now + timedelta(hours=23, minutes=59)) is not None

    def test_configured_ttls(self, identity, now, signing_key):
        manager = TokenManager(signing_key, access_token_ttl=timedelta(minutes=15))
        token = manager.create_access_token(identity, now)

        assert manager.expires_in(TokenKind.ACCESS) == 900
        assert manager.verify_token(token, now + timedelta(minutes=16)) is None

    def test_tampered_signature_rejected(self, token_manager, identity, now):
        token = _tamper_signature(token_manager.create_access_token(identity, now))

        assert token_manager.verify_token(token, now) is None
        assert token_manager.inspect(token, now).failure == TokenFailure.BAD_SIGNATURE

    def test_tampered_claims_rejected(self, token_manager, identity, now):
        """Swapping the claim segment for an admin one breaks the signature"""
        token = token_manager.create_access_token(identity, now)
        forged = jwt.encode(
            {"sub": "ada@example.edu", "user_id": 7, "role": "Admin", "type": "access",
             "iat": int(now.timestamp()), "exp": int(now.timestamp()) + 3600},
            "some-other-key-that-is-long-enough-for-hs512-signing-0123456789abcdef0123",
            algorithm="HS512",
        )
        header, _, signature = token.split(".")
        spliced = ".".join([header, forged.split(".")[1], signature])

        assert token_manager.verify_token(spliced, now) is None

    def test_token_signed_with_other_key_rejected(self, identity, now, signing_key):
        other = TokenManager("another-secret-key-0123456789abcdef0123456789abcdef0123456789abcdef")
        token = other.create_access_token(identity, now)

        assert TokenManager(signing_key).verify_token(token, now) is None

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "a.b", None, 42])
    def test_malformed_tokens_never_raise(self, token_manager, token, now):
        inspection = token_manager.inspect(token, now)

        assert inspection.valid is False
        assert inspection.failure == TokenFailure.MALFORMED

    def test_missing_claims_reported(self, token_manager, now, signing_key):
        token = jwt.encode(
            {"sub": "ada@example.edu", "iat": int(now.timestamp()), "exp": int(now.timestamp()) + 60},
            signing_key,
            algorithm="HS512",
        )

        assert token_manager.inspect(token, now).failure == TokenFailure.INVALID_CLAIMS

    def test_unsigned_token_rejected(self, token_manager, identity, now):
        token = jwt.encode(
            {"sub": identity.email, "user_id": 7, "role": "Admin", "type": "access",
             "iat": int(now.timestamp()), "exp": int(now.timestamp()) + 60},
            None,
            algorithm="none",
        )

        assert token_manager.verify_token(token, now) is None

    def test_expected_kind_enforced(self, token_manager, identity, now):
        refresh = token_manager.create_refresh_token(identity, now)

        assert token_manager.verify_token(refresh, now, expected_kind=TokenKind.ACCESS) is None
        assert token_manager.verify_token(refresh, now, expected_kind=TokenKind.REFRESH) is not None

    def test_rejects_non_hmac_algorithm(self, signing_key):
        with pytest.raises(ValueError):
            TokenManager(signing_key, algorithm="RS256")


class TestIdentity:

    def test_has_role(self, identity):
        assert identity.has_role(Role.LECTURER)
        assert identity.has_role("Lecturer")
        assert not identity.has_role(Role.ADMIN)

    def test_password_hash_update_advances_timestamp(self, identity, now):
        later = now + timedelta(minutes=5)

        updated = identity.with_password_hash("new-hash", later)

        assert updated.password_hash == "new-hash"
        assert updated.updated_at == later
        assert identity.password_hash == "not-a-real-hash"

    def test_password_hash_hidden_from_repr(self, identity):
        assert "not-a-real-hash" not in repr(identity)

    def test_normalize_email(self):
        assert normalize_email("  Ada@Example.EDU ") == "ada@example.edu"

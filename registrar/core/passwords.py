"""
Password Hashing
Salted one-way hashes backed by passlib
"""

from passlib.context import CryptContext


class PasswordHasher:
    """Hash and verify passwords; plaintext never leaves this object"""

    def __init__(self, rounds: int = 29000):
        self.pwd_context = CryptContext(
            schemes=["pbkdf2_sha256"], deprecated="auto", pbkdf2_sha256__rounds=rounds
        )
        # Verified against when the email is unknown so both login failures cost the same
        self._dummy_hash = self.pwd_context.hash("registrar-timing-equaliser")

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password or not password_hash:
            return False
        try:
            return self.pwd_context.verify(password, password_hash)
        except ValueError:
            # Unrecognised or corrupt hash
            return False

    def burn(self, password: str) -> None:
        self.pwd_context.verify(password or "", self._dummy_hash)

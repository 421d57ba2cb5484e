"""
Core Authentication Components
"""

from .errors import RegistrarError
from .passwords import PasswordHasher
from .subjects import Identity, Role, TokenKind, TokenManager

__all__ = ["Identity", "PasswordHasher", "RegistrarError", "Role", "TokenKind", "TokenManager"]

"""
Storage Backends
"""

from .base import CourseStore, EnrollmentStore, IdentityStore, Storage, StudentStore
from .memory import MemoryStorage
from .postgres import DatabaseStorage

__all__ = [
    "CourseStore",
    "DatabaseStorage",
    "EnrollmentStore",
    "IdentityStore",
    "MemoryStorage",
    "Storage",
    "StudentStore",
]

"""
Enrollment Components
"""

from .models import Course, Enrollment, EnrollmentStatus

__all__ = ["Course", "Enrollment", "EnrollmentStatus"]

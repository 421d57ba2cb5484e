"""
Registrar Errors
Typed failures shared by the authentication and enrollment components
"""


class RegistrarError(Exception):
    """Base class for recoverable, caller-facing failures"""

    code = "registrar_error"
    default_message = "Request could not be completed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(RegistrarError):
    code = "not_found"
    default_message = "Resource not found"


class DuplicateEmail(RegistrarError):
    code = "duplicate_email"
    default_message = "Email already exists"


class AlreadyEnrolled(RegistrarError):
    code = "already_enrolled"
    default_message = "Student is already enrolled in this course"


class CapacityExceeded(RegistrarError):
    code = "capacity_exceeded"
    default_message = "Course is at full capacity"


class InvalidTransition(RegistrarError):
    code = "invalid_transition"
    default_message = "Enrollment status does not allow this change"


class InvalidGrade(RegistrarError):
    code = "invalid_grade"
    default_message = "Grade must be between 0.0 and 10.0"


class InvalidCredentials(RegistrarError):
    # Same message for unknown email and wrong password
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class InvalidToken(RegistrarError):
    code = "invalid_token"
    default_message = "Invalid or expired token"


class WeakPassword(RegistrarError):
    code = "weak_password"
    default_message = "Password does not meet the minimum length"


class Unavailable(RegistrarError):
    code = "unavailable"
    default_message = "Storage is temporarily unavailable"

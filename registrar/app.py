"""
Registrar Service
HTTP boundary for authentication and enrollment management
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from . import __version__
from .config import Settings
from .core.errors import (
    AlreadyEnrolled,
    CapacityExceeded,
    DuplicateEmail,
    InvalidCredentials,
    InvalidGrade,
    InvalidToken,
    InvalidTransition,
    NotFound,
    RegistrarError,
    Unavailable,
    WeakPassword,
)
from .core.issuer import AuthIssuer
from .core.passwords import PasswordHasher
from .core.subjects import Identity, Role, TokenManager
from .enrollment.engine import EnrollmentEngine
from .enrollment.models import (
    CourseEnrollmentStats,
    Enrollment,
    EnrollmentStats,
    EnrollmentStatus,
    EnrollmentTrends,
)
from .storage.base import Storage
from .storage.memory import MemoryStorage
from .storage.postgres import DatabaseStorage

SETTINGS = Settings.from_env()

# Configure structured logging
logging.basicConfig(level=getattr(logging, SETTINGS.log_level.upper(), logging.INFO))
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

ERROR_STATUS = {
    NotFound.code: 404,
    DuplicateEmail.code: 409,
    AlreadyEnrolled.code: 409,
    CapacityExceeded.code: 409,
    InvalidTransition.code: 409,
    InvalidGrade.code: 422,
    WeakPassword.code: 422,
    InvalidCredentials.code: 401,
    InvalidToken.code: 401,
    Unavailable.code: 503,
}

# Security scheme
security = HTTPBearer(auto_error=False)


# Pydantic models
class RegisterRequest(BaseModel):
    first_name: str
    last_name: str
    email: str
    password: str
    date_of_birth: Optional[date] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class EnrollRequest(BaseModel):
    student_id: int
    course_id: int


class UpdateEnrollmentRequest(BaseModel):
    status: Optional[EnrollmentStatus] = None
    grade: Optional[Decimal] = None


class UserResponse(BaseModel):
    id: int
    email: str
    role: Role
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            email=identity.email,
            role=identity.role,
            first_name=identity.first_name,
            last_name=identity.last_name,
            created_at=identity.created_at,
        )


class AuthResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


def build_storage(settings: Settings) -> Storage:
    if settings.database_url:
        return DatabaseStorage(settings.database_url, timeout_seconds=settings.database_timeout_seconds)
    logger.warning("No DATABASE_URL found, using in-memory storage")
    return MemoryStorage()


def create_app(settings: Optional[Settings] = None, storage: Optional[Storage] = None) -> FastAPI:
    settings = settings or SETTINGS
    storage = storage or build_storage(settings)

    app = FastAPI(
        title="Registrar Service",
        description="Credential lifecycle and enrollment management",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.storage = storage
    app.state.auth_issuer = AuthIssuer(
        storage=storage,
        token_manager=TokenManager(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_token_ttl=settings.access_token_ttl,
            refresh_token_ttl=settings.refresh_token_ttl,
        ),
        password_hasher=PasswordHasher(rounds=settings.password_hash_rounds),
        min_password_length=settings.min_password_length,
    )
    app.state.enrollment_engine = EnrollmentEngine(
        enrollments=storage,
        courses=storage,
        students=storage,
        block_reenrollment_after_drop=settings.block_reenrollment_after_drop,
        tz=ZoneInfo(settings.timezone),
    )

    @app.exception_handler(RegistrarError)
    async def registrar_error_handler(request: Request, exc: RegistrarError):
        status_code = ERROR_STATUS.get(exc.code, 400)
        if status_code >= 500:
            logger.error("Request failed", path=request.url.path, code=exc.code)
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})

    app.include_router(router)
    return app


def get_auth_issuer(request: Request) -> AuthIssuer:
    return request.app.state.auth_issuer


def get_enrollment_engine(request: Request) -> EnrollmentEngine:
    return request.app.state.enrollment_engine


# Authentication helpers
async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth_issuer: AuthIssuer = Depends(get_auth_issuer),
) -> Identity:
    """Get current authenticated identity"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return await auth_issuer.current_identity(credentials.credentials)


def require_roles(*roles: Role):
    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not any(identity.has_role(role) for role in roles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return identity
    return dependency


any_role = require_roles(Role.STUDENT, Role.LECTURER, Role.ADMIN)
staff_only = require_roles(Role.ADMIN, Role.LECTURER)
admin_only = require_roles(Role.ADMIN)


# API Endpoints
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(status="healthy", service="registrar", version=__version__)

@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, auth_issuer: AuthIssuer = Depends(get_auth_issuer)):
    result = await auth_issuer.register(
        body.first_name, body.last_name, body.email, body.password, body.date_of_birth
    )
    return AuthResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        user=UserResponse.from_identity(result.identity),
    )

@router.post("/auth/login", response_model=AuthResponse)
async def login(body: LoginRequest, auth_issuer: AuthIssuer = Depends(get_auth_issuer)):
    pair = await auth_issuer.login(body.email, body.password)
    return AuthResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        user=UserResponse.from_identity(pair.identity),
    )

@router.post("/auth/refresh", response_model=AuthResponse)
async def refresh(body: RefreshRequest, auth_issuer: AuthIssuer = Depends(get_auth_issuer)):
    """Rotate access and refresh tokens"""
    pair = await auth_issuer.refresh(body.refresh_token)
    return AuthResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=pair.expires_in,
        user=UserResponse.from_identity(pair.identity),
    )

@router.post("/auth/logout", response_model=MessageResponse)
async def logout(
    identity: Identity = Depends(get_current_identity),
    auth_issuer: AuthIssuer = Depends(get_auth_issuer),
):
    return MessageResponse(message=await auth_issuer.logout(identity))

@router.post("/auth/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    auth_issuer: AuthIssuer = Depends(get_auth_issuer),
):
    await auth_issuer.change_password(identity, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")

@router.get("/auth/me", response_model=UserResponse)
async def me(identity: Identity = Depends(get_current_identity)):
    return UserResponse.from_identity(identity)

@router.post("/enrollments", response_model=Enrollment, status_code=status.HTTP_201_CREATED)
async def enroll(
    body: EnrollRequest,
    identity: Identity = Depends(any_role),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.enroll(body.student_id, body.course_id)

@router.get("/enrollments", response_model=List[Enrollment])
async def list_enrollments(
    enrollment_status: Optional[EnrollmentStatus] = Query(None, alias="status"),
    identity: Identity = Depends(any_role),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    """All enrollments, or those in one status (staff only)"""
    if enrollment_status is None:
        return await engine.list_all()
    if not (identity.has_role(Role.ADMIN) or identity.has_role(Role.LECTURER)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return await engine.list_by_status(enrollment_status)

@router.get("/enrollments/stats", response_model=EnrollmentStats)
async def enrollment_stats(
    identity: Identity = Depends(staff_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.stats()

@router.get("/enrollments/trends", response_model=EnrollmentTrends)
async def enrollment_trends(
    start_date: date,
    end_date: date,
    identity: Identity = Depends(admin_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.trends(start_date, end_date)

@router.get("/enrollments/recent", response_model=List[Enrollment])
async def recent_enrollments(
    days: int = Query(7, ge=1),
    identity: Identity = Depends(admin_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.recent(days)

@router.get("/enrollments/{enrollment_id}", response_model=Enrollment)
async def get_enrollment(
    enrollment_id: int,
    identity: Identity = Depends(any_role),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.get(enrollment_id)

@router.put("/enrollments/{enrollment_id}", response_model=Enrollment)
async def update_enrollment(
    enrollment_id: int,
    body: UpdateEnrollmentRequest,
    identity: Identity = Depends(staff_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.update(enrollment_id, status=body.status, grade=body.grade)

@router.put("/enrollments/{enrollment_id}/drop", response_model=Enrollment)
async def drop_enrollment(
    enrollment_id: int,
    identity: Identity = Depends(any_role),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.drop(enrollment_id)

@router.get("/students/{student_id}/enrollments", response_model=List[Enrollment])
async def student_enrollments(
    student_id: int,
    identity: Identity = Depends(any_role),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.list_for_student(student_id)

@router.get("/lecturers/{lecturer_id}/enrollments", response_model=List[Enrollment])
async def lecturer_enrollments(
    lecturer_id: int,
    identity: Identity = Depends(staff_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.list_for_lecturer(lecturer_id)

@router.get("/courses/popular", response_model=List[CourseEnrollmentStats])
async def popular_courses(
    identity: Identity = Depends(admin_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.course_popularity()

@router.get("/courses/{course_id}/enrollments", response_model=List[Enrollment])
async def course_enrollments(
    course_id: int,
    identity: Identity = Depends(staff_only),
    engine: EnrollmentEngine = Depends(get_enrollment_engine),
):
    return await engine.list_for_course(course_id)


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

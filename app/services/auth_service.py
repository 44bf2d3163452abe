from typing import Optional, Tuple
import hmac
import uuid

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import Certificate, Employee, User, UserRole
from app.db.session import get_sync_session
from app.schemas.auth_schemas import (
    EmployeeProfile,
    ProfileCertificate,
    ProfileResponse,
    UserResponse,
)
from app.services.audit_service import Actor, AuditService
from app.utils.auth import AuthUtils
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import AuthenticationError, AuthorizationError, ConflictError
from app.utils.logging import get_logger

logger = get_logger()


class AuthState:
    """Authentication state to be stored in request.state"""

    def __init__(
        self,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
        is_authenticated: bool = True,
    ):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.is_authenticated = is_authenticated

    @classmethod
    def anonymous(cls) -> "AuthState":
        return cls(is_authenticated=False)

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == UserRole.ADMIN.value


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        role=user.role.value,
        employee_id=str(user.employee_id) if user.employee_id else None,
    )


class AuthService:
    """Authentication service for bootstrap, login and session resolution"""

    def __init__(self, db_session: Session, config: Settings = default_settings):
        self.db = db_session
        self.config = config

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def bootstrap_admin(
        self, email: str, password: str, bootstrap_key: str
    ) -> Tuple[UserResponse, str]:
        """Create the first administrator. Returns the user and a session token."""
        expected_key = self.config.ADMIN_BOOTSTRAP_KEY
        if not expected_key or not hmac.compare_digest(
            bootstrap_key.encode(), expected_key.encode()
        ):
            raise AuthorizationError("Forbidden", "BOOTSTRAP_FORBIDDEN")

        existing_admin = self.db.execute(
            select(User.id).where(User.role == UserRole.ADMIN).limit(1)
        ).first()
        if existing_admin:
            raise ConflictError("Admin already exists", "ADMIN_EXISTS")

        user = User(
            email=email.strip().lower(),
            password_hash=AuthUtils.hash_password(
                password, rounds=self.config.BCRYPT_ROUNDS
            ),
            role=UserRole.ADMIN,
        )

        try:
            self.db.add(user)
            self.db.flush()
            AuditService(self.db, self.config).record(
                Actor(user.email, UserRole.ADMIN.value),
                "auth.bootstrap",
                "user",
                user.id,
                {"email": user.email},
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("User already exists", "USER_EXISTS")
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Bootstrapped admin user {user.id}")
        return _user_response(user), self._issue_token(user)

    async def login(self, email: str, password: str) -> Tuple[UserResponse, str]:
        """Check credentials and issue a session token"""
        user = await self.get_user_by_email(email)

        # verify_password does the same bcrypt work when the user is missing
        password_ok = AuthUtils.verify_password(
            password, user.password_hash if user else None
        )
        if not user or not password_ok:
            raise AuthenticationError("Invalid credentials", "INVALID_CREDENTIALS")

        if user.role == UserRole.EMPLOYEE:
            employee = user.employee
            if not employee or employee.is_archived:
                raise AuthorizationError("Employee is inactive", "EMPLOYEE_INACTIVE")

        logger.info(f"User {user.id} logged in")
        return _user_response(user), self._issue_token(user)

    @staticmethod
    def resolve_session(
        token: Optional[str], config: Settings = default_settings
    ) -> AuthState:
        """Map a session token to an AuthState; invalid tokens give an anonymous one"""
        if not token:
            return AuthState.anonymous()

        payload = AuthUtils.verify_session_token(token, config)
        if not payload:
            return AuthState.anonymous()

        user_id = payload.get("sub")
        email = payload.get("email")
        role = payload.get("role")
        if not all([user_id, email, role]):
            return AuthState.anonymous()

        return AuthState(user_id=str(user_id), email=str(email), role=str(role))

    async def get_profile(self, auth: AuthState) -> ProfileResponse:
        """Own account view; employees also get their record and certificates"""
        user = self.db.execute(
            select(User).where(User.id == _as_uuid(auth.user_id))
        ).scalar_one_or_none()
        if not user:
            raise AuthenticationError("User not found", "USER_NOT_FOUND")

        if user.role != UserRole.EMPLOYEE:
            return ProfileResponse(user=_user_response(user))

        employee: Optional[Employee] = user.employee
        if not employee or employee.is_archived:
            raise AuthorizationError("Employee is inactive", "EMPLOYEE_INACTIVE")

        certificates = self.db.execute(
            select(Certificate)
            .where(Certificate.employee_id == employee.id)
            .order_by(Certificate.issued_at.desc())
        ).scalars()

        now = naive_utc_now()
        return ProfileResponse(
            user=_user_response(user),
            employee=EmployeeProfile(
                employee_id=employee.id,
                full_name=employee.full_name,
                email=employee.email,
                city=employee.city,
                phone=employee.phone,
                iin_last4=employee.iin_last4,
                status=employee.status,
                establishment_id=employee.establishment_id,
                establishment_name=(
                    employee.establishment.name if employee.establishment else None
                ),
            ),
            certificates=[
                ProfileCertificate(
                    id=certificate.id,
                    certificate_number=certificate.certificate_number,
                    status=certificate.status,
                    display_status=certificate.display_status(now),
                    issued_at=certificate.issued_at,
                    valid_until=certificate.valid_until,
                )
                for certificate in certificates
            ],
        )

    def _issue_token(self, user: User) -> str:
        return AuthUtils.generate_session_token(
            user_id=str(user.id),
            email=user.email,
            role=user.role.value,
            config=self.config,
        )


def _as_uuid(value: Optional[str]) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise AuthenticationError("Invalid session", "INVALID_SESSION")


# Dependency injection for service provider
def get_auth_service(
    db: Session = Depends(get_sync_session),
) -> AuthService:
    """Dependency to provide AuthService instance"""
    return AuthService(db)

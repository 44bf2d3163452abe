from typing import Any, Dict, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import (
    Employee,
    EmployeeStatus,
    Establishment,
    User,
    UserRole,
)
from app.db.session import get_sync_session
from app.schemas.public.registration_schemas import (
    RegistrationPayload,
    ResetPasswordPayload,
    RegistrationLookupResponse,
    RegistrationResultResponse,
)
from app.services.audit_service import Actor, AuditService
from app.services.notification_service import (
    NotificationDispatcher,
    get_notification_dispatcher,
    registration_completed_email,
)
from app.utils.auth import AuthUtils
from app.utils.datetime_utils import naive_utc_now
from app.utils.encryption import IinEncryptor
from app.utils.errors import NotFoundError, UserExistsError
from app.utils.logging import get_logger

logger = get_logger()


class RegistrationService:
    """Self-registration and password reset through a single-use link.

    The token is the only credential on this path. It is consumed in the
    same transaction that creates or updates the credential, under a row
    lock, so two concurrent submissions cannot both succeed.
    """

    def __init__(
        self,
        db_session: Session,
        config: Settings = default_settings,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.db = db_session
        self.config = config
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.audit = AuditService(db_session, config)
        self.encryptor = IinEncryptor(config)

    def _live_token_query(self, token: str):
        return (
            select(Employee)
            .join(Establishment, Establishment.id == Employee.establishment_id)
            .where(
                Employee.registration_token == token,
                Employee.deleted_at.is_(None),
                Establishment.deleted_at.is_(None),
            )
        )

    async def lookup_by_token(self, token: str) -> RegistrationLookupResponse:
        """Resolve a registration link for the public page"""
        employee = (
            self.db.execute(self._live_token_query(token)).scalar_one_or_none()
            if token
            else None
        )
        if not employee:
            raise NotFoundError(
                "Registration link not found", "REGISTRATION_LINK_NOT_FOUND"
            )

        establishment = employee.establishment
        return RegistrationLookupResponse(
            id=employee.id,
            email=employee.email,
            full_name=employee.full_name,
            status=employee.status,
            employee_city=employee.city,
            employee_phone=employee.phone,
            establishment_name=establishment.name,
            establishment_city=establishment.city,
            establishment_address=establishment.address,
        )

    async def complete_registration(
        self, token: str, payload: Dict[str, Any]
    ) -> RegistrationResultResponse:
        """Consume the token and create or update the employee credential.

        Raises pydantic ``ValidationError`` for a payload that does not match
        the employee's current branch.
        """
        if not token:
            raise NotFoundError(
                "Registration link not found", "REGISTRATION_LINK_NOT_FOUND"
            )

        try:
            employee = self.db.execute(
                self._live_token_query(token).with_for_update(of=Employee)
            ).scalar_one_or_none()
            if not employee:
                raise NotFoundError(
                    "Registration link not found", "REGISTRATION_LINK_NOT_FOUND"
                )

            existing_user = self.db.execute(
                select(User).where(User.email == employee.email.lower())
            ).scalar_one_or_none()

            if employee.status == EmployeeStatus.RESET_PASSWORD and existing_user:
                result = self._reset_password(
                    employee, existing_user, ResetPasswordPayload.model_validate(payload)
                )
                self.db.commit()
                logger.info(f"Password reset completed for employee {employee.id}")
                return result

            data = RegistrationPayload.model_validate(payload)
            if existing_user:
                raise UserExistsError()

            result = self._register(employee, data)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise UserExistsError()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Registration completed for employee {employee.id}")
        self.dispatcher.dispatch(
            [registration_completed_email(employee.email, employee.full_name)]
        )
        return result

    def _reset_password(
        self, employee: Employee, user: User, data: ResetPasswordPayload
    ) -> RegistrationResultResponse:
        # Profile fields are left untouched on this branch
        user.password_hash = AuthUtils.hash_password(
            data.password, rounds=self.config.BCRYPT_ROUNDS
        )
        employee.status = EmployeeStatus.REGISTERED
        employee.registration_token = None

        self.audit.record(
            Actor(employee.email, UserRole.EMPLOYEE.value),
            "employees.reset_password",
            "employee",
            employee.id,
            {"email": employee.email},
        )
        return RegistrationResultResponse(
            message="Password reset completed", employee_id=employee.id
        )

    def _register(
        self, employee: Employee, data: RegistrationPayload
    ) -> RegistrationResultResponse:
        encrypted = self.encryptor.encrypt(data.iin)

        employee.full_name = data.full_name.strip()
        employee.city = data.city.strip()
        employee.phone = data.phone.strip()
        employee.iin_encrypted = encrypted.ciphertext
        employee.iin_last4 = encrypted.last4
        employee.status = EmployeeStatus.REGISTERED
        employee.registered_at = naive_utc_now()
        employee.registration_token = None

        self.db.add(
            User(
                email=employee.email.lower(),
                password_hash=AuthUtils.hash_password(
                    data.password, rounds=self.config.BCRYPT_ROUNDS
                ),
                role=UserRole.EMPLOYEE,
                employee_id=employee.id,
            )
        )
        self.db.flush()

        self.audit.record(
            Actor(employee.email, UserRole.EMPLOYEE.value),
            "employees.register",
            "employee",
            employee.id,
            {"email": employee.email},
        )
        return RegistrationResultResponse(
            message="Registration completed", employee_id=employee.id
        )


# Dependency injection for service provider
def get_registration_service(
    db: Session = Depends(get_sync_session),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> RegistrationService:
    """Dependency to provide RegistrationService instance"""
    return RegistrationService(db, dispatcher=dispatcher)

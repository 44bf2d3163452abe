from typing import Dict, List, Optional, Sequence
import uuid

from fastapi import Depends
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.config.settings import Settings, settings as default_settings
from app.db.models import (
    Employee,
    EmployeeStatus,
    EmployeeTransfer,
    Establishment,
    TOKEN_BEARING_STATUSES,
)
from app.db.session import get_sync_session
from app.schemas.admin.employee_schemas import (
    CreateEmployeeRequest,
    UpdateEmployeeRequest,
    EmployeeListQueryParams,
    EmployeeResponse,
    EmployeeTransferResponse,
    TrainingInviteResponse,
)
from app.services.audit_service import Actor, AuditService, SYSTEM_ACTOR
from app.services.notification_service import (
    NotificationDispatcher,
    get_notification_dispatcher,
    training_invite_email,
)
from app.utils.auth import AuthUtils
from app.utils.datetime_utils import naive_utc_now
from app.utils.errors import ConflictError, NotFoundError
from app.utils.logging import get_logger

logger = get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EmployeeService:
    """Service provider for the employee lifecycle.

    Every mutation refuses archived employees except restore, and keeps the
    registration token present exactly while the status is
    pending_registration or reset_password.
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

    # Core CRUD Operations
    async def get_employee_by_id(self, employee_id: uuid.UUID) -> Optional[Employee]:
        """Get employee by ID or return None if not found"""
        result = self.db.execute(
            select(Employee)
            .options(joinedload(Employee.establishment))
            .where(Employee.id == employee_id)
        )
        return result.scalar_one_or_none()

    async def list_employees(
        self, params: Optional[EmployeeListQueryParams] = None
    ) -> List[EmployeeResponse]:
        """Employees newest first, filtered by establishment, status and search"""
        params = params or EmployeeListQueryParams()
        query = select(Employee).options(joinedload(Employee.establishment))

        if not params.include_archived:
            query = query.where(Employee.deleted_at.is_(None))
        if params.establishment_id:
            query = query.where(Employee.establishment_id == params.establishment_id)
        if params.status:
            query = query.where(Employee.status == params.status)
        if params.search and params.search.strip():
            pattern = f"%{params.search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Employee.full_name).like(pattern),
                    func.lower(Employee.email).like(pattern),
                )
            )

        query = query.order_by(Employee.created_at.desc())
        employees = self.db.execute(query).scalars().all()
        return [self._create_employee_response(employee) for employee in employees]

    async def create_employee(
        self, data: CreateEmployeeRequest, actor: Actor = SYSTEM_ACTOR
    ) -> EmployeeResponse:
        """Add an employee awaiting self-registration"""
        await self._require_active_establishments([data.establishment_id])

        email = normalize_email(data.email)
        if await self._find_existing_emails([email]):
            raise ConflictError(
                "Employee email already exists", "EMPLOYEE_EMAIL_EXISTS"
            )

        try:
            employee = self._add_employee(data, email, "create", actor)
            self.db.flush()
            self.audit.record(
                actor, "employees.create", "employee", employee.id, {"email": email}
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                "Employee email already exists", "EMPLOYEE_EMAIL_EXISTS"
            )
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(employee)
        logger.info(f"Created employee {employee.id}")
        return self._create_employee_response(employee)

    async def bulk_create(
        self, items: Sequence[CreateEmployeeRequest], actor: Actor = SYSTEM_ACTOR
    ) -> List[EmployeeResponse]:
        """Create every employee or none of them"""
        await self._require_active_establishments(
            [item.establishment_id for item in items]
        )

        emails = [normalize_email(item.email) for item in items]
        duplicates_in_batch = sorted({e for e in emails if emails.count(e) > 1})
        if duplicates_in_batch:
            raise ConflictError(
                "Duplicate email in batch",
                "EMPLOYEE_EMAIL_EXISTS",
                {"emails": duplicates_in_batch},
            )

        existing = await self._find_existing_emails(emails)
        if existing:
            raise ConflictError(
                "Employee email already exists",
                "EMPLOYEE_EMAIL_EXISTS",
                {"emails": sorted(existing)},
            )

        try:
            created = [
                self._add_employee(item, email, "bulk_create", actor)
                for item, email in zip(items, emails)
            ]
            self.db.flush()
            self.audit.record(
                actor,
                "employees.bulk_create",
                "employee",
                None,
                {"count": len(created)},
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Duplicate email in batch", "EMPLOYEE_EMAIL_EXISTS")
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Bulk created {len(created)} employees")
        return [self._create_employee_response(employee) for employee in created]

    async def update_employee(
        self,
        employee_id: uuid.UUID,
        data: UpdateEmployeeRequest,
        actor: Actor = SYSTEM_ACTOR,
    ) -> EmployeeResponse:
        """Partial update of profile fields and status"""
        employee = await self._get_mutable_employee(employee_id)

        try:
            for field in ("full_name", "city", "phone"):
                if field in data.model_fields_set:
                    setattr(employee, field, getattr(data, field))

            if "status" in data.model_fields_set and data.status is not None:
                self._apply_status(employee, data.status)

            self.audit.record(
                actor,
                "employees.update",
                "employee",
                employee.id,
                data.model_dump(exclude_unset=True),
            )
            self.db.commit()
            self.db.refresh(employee)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Updated employee {employee.id}")
        return self._create_employee_response(employee)

    async def archive_employee(
        self, employee_id: uuid.UUID, actor: Actor = SYSTEM_ACTOR
    ) -> EmployeeResponse:
        """Soft delete; any pending registration link stops working"""
        employee = await self.get_employee_by_id(employee_id)
        if not employee:
            raise NotFoundError("Employee not found", "EMPLOYEE_NOT_FOUND")
        if employee.is_archived:
            raise ConflictError("Employee already archived", "EMPLOYEE_ARCHIVED")

        try:
            employee.deleted_at = naive_utc_now()
            employee.registration_token = None
            self.audit.record(
                actor,
                "employees.archive",
                "employee",
                employee.id,
                {"email": employee.email},
            )
            self.db.commit()
            self.db.refresh(employee)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Archived employee {employee.id}")
        return self._create_employee_response(employee)

    async def restore_employee(
        self,
        employee_id: uuid.UUID,
        establishment_id: Optional[uuid.UUID] = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> EmployeeResponse:
        """Undo an archive, optionally into another establishment"""
        employee = await self.get_employee_by_id(employee_id)
        if not employee:
            raise NotFoundError("Employee not found", "EMPLOYEE_NOT_FOUND")
        if not employee.is_archived:
            raise ConflictError("Employee already active", "EMPLOYEE_ALREADY_ACTIVE")

        previous_establishment_id = employee.establishment_id
        target_establishment_id = establishment_id or previous_establishment_id
        await self._require_active_establishments([target_establishment_id])

        try:
            employee.deleted_at = None
            employee.establishment_id = target_establishment_id
            # Archive dropped the token, a link-awaiting status needs a new one
            if (
                employee.status in TOKEN_BEARING_STATUSES
                and not employee.registration_token
            ):
                employee.registration_token = AuthUtils.generate_registration_token()

            if target_establishment_id != previous_establishment_id:
                self._add_transfer(
                    employee,
                    previous_establishment_id,
                    target_establishment_id,
                    "restore",
                    actor,
                )

            self.audit.record(
                actor,
                "employees.restore",
                "employee",
                employee.id,
                {"email": employee.email},
            )
            self.db.commit()
            self.db.refresh(employee)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Restored employee {employee.id}")
        return self._create_employee_response(employee)

    async def transfer_employee(
        self,
        employee_id: uuid.UUID,
        establishment_id: uuid.UUID,
        reason: Optional[str] = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> EmployeeResponse:
        """Move an employee to another establishment and record the move"""
        employee = await self._get_mutable_employee(employee_id)

        if employee.establishment_id == establishment_id:
            raise ConflictError(
                "Employee already in establishment", "ALREADY_IN_ESTABLISHMENT"
            )
        await self._require_active_establishments([establishment_id])

        try:
            previous_establishment_id = employee.establishment_id
            employee.establishment_id = establishment_id
            self._add_transfer(
                employee, previous_establishment_id, establishment_id, reason, actor
            )
            self.audit.record(
                actor,
                "employees.transfer",
                "employee",
                employee.id,
                {
                    "fromEstablishmentId": str(previous_establishment_id),
                    "toEstablishmentId": str(establishment_id),
                },
            )
            self.db.commit()
            self.db.refresh(employee)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Transferred employee {employee.id}")
        return self._create_employee_response(employee)

    async def list_transfers(
        self, employee_id: uuid.UUID
    ) -> List[EmployeeTransferResponse]:
        """Establishment history of one employee, oldest first"""
        employee = await self.get_employee_by_id(employee_id)
        if not employee:
            raise NotFoundError("Employee not found", "EMPLOYEE_NOT_FOUND")

        result = self.db.execute(
            select(EmployeeTransfer)
            .where(EmployeeTransfer.employee_id == employee_id)
            .order_by(EmployeeTransfer.created_at, EmployeeTransfer.id)
        )
        return [
            EmployeeTransferResponse.model_validate(transfer)
            for transfer in result.scalars().all()
        ]

    async def send_training_invite(
        self, employee_id: uuid.UUID, actor: Actor = SYSTEM_ACTOR
    ) -> TrainingInviteResponse:
        """Mark training as pending and queue the training link email"""
        employee = await self.get_employee_by_id(employee_id)
        if not employee or employee.is_archived:
            raise NotFoundError("Employee not found", "EMPLOYEE_NOT_FOUND")

        try:
            self._apply_status(employee, EmployeeStatus.TRAINING_PENDING)
            self.audit.record(
                actor,
                "employees.send_training",
                "employee",
                employee.id,
                {"email": employee.email},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        training_url = self.config.TRAINING_URL
        self.dispatcher.dispatch(
            [training_invite_email(employee.email, employee.full_name, training_url)]
        )

        logger.info(f"Queued training invitation for employee {employee.id}")
        return TrainingInviteResponse(
            message="Training invitation queued", training_url=training_url
        )

    # Helper Methods
    async def _get_mutable_employee(self, employee_id: uuid.UUID) -> Employee:
        employee = await self.get_employee_by_id(employee_id)
        if not employee:
            raise NotFoundError("Employee not found", "EMPLOYEE_NOT_FOUND")
        if employee.is_archived:
            raise ConflictError("Employee is archived", "EMPLOYEE_ARCHIVED")
        return employee

    async def _require_active_establishments(
        self, establishment_ids: Sequence[uuid.UUID]
    ) -> Dict[uuid.UUID, Establishment]:
        """Raise ConflictError naming every missing or archived establishment"""
        unique_ids = list(dict.fromkeys(establishment_ids))
        result = self.db.execute(
            select(Establishment).where(
                Establishment.id.in_(unique_ids),
                Establishment.deleted_at.is_(None),
            )
        )
        active = {establishment.id: establishment for establishment in result.scalars()}

        missing = [str(i) for i in unique_ids if i not in active]
        if missing:
            raise ConflictError(
                "Establishment is archived",
                "ESTABLISHMENT_ARCHIVED",
                {"missing": missing},
            )
        return active

    async def _find_existing_emails(self, emails: Sequence[str]) -> List[str]:
        result = self.db.execute(
            select(Employee.email).where(func.lower(Employee.email).in_(emails))
        )
        return [email.lower() for email in result.scalars().all()]

    def _add_employee(
        self, data: CreateEmployeeRequest, email: str, reason: str, actor: Actor
    ) -> Employee:
        employee = Employee(
            id=uuid.uuid4(),
            establishment_id=data.establishment_id,
            full_name=data.full_name.strip(),
            email=email,
            city=data.city,
            phone=data.phone,
            status=EmployeeStatus.PENDING_REGISTRATION,
            registration_token=AuthUtils.generate_registration_token(),
        )
        self.db.add(employee)
        self._add_transfer(employee, None, data.establishment_id, reason, actor)
        return employee

    def _add_transfer(
        self,
        employee: Employee,
        from_establishment_id: Optional[uuid.UUID],
        to_establishment_id: uuid.UUID,
        reason: Optional[str],
        actor: Actor,
    ) -> EmployeeTransfer:
        transfer = EmployeeTransfer(
            employee_id=employee.id,
            from_establishment_id=from_establishment_id,
            to_establishment_id=to_establishment_id,
            reason=reason,
            actor=actor.email,
        )
        self.db.add(transfer)
        return transfer

    @staticmethod
    def _apply_status(employee: Employee, status: EmployeeStatus) -> None:
        """Set the status and keep the registration token in step with it"""
        if status == EmployeeStatus.RESET_PASSWORD:
            # Re-entering reset_password keeps the link already handed out
            if not (
                employee.status == EmployeeStatus.RESET_PASSWORD
                and employee.registration_token
            ):
                employee.registration_token = AuthUtils.generate_registration_token()
        elif status == EmployeeStatus.PENDING_REGISTRATION:
            if not employee.registration_token:
                employee.registration_token = AuthUtils.generate_registration_token()
        else:
            employee.registration_token = None

        employee.status = status

    def registration_link(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        return f"{self.config.REGISTRATION_BASE_URL.rstrip('/')}/{token}"

    def _create_employee_response(self, employee: Employee) -> EmployeeResponse:
        """Create standardized employee response data"""
        return EmployeeResponse(
            id=employee.id,
            establishment_id=employee.establishment_id,
            establishment_name=(
                employee.establishment.name if employee.establishment else None
            ),
            full_name=employee.full_name,
            email=employee.email,
            city=employee.city,
            phone=employee.phone,
            iin_last4=employee.iin_last4,
            status=employee.status,
            registration_token=employee.registration_token,
            registration_link=self.registration_link(employee.registration_token),
            registered_at=employee.registered_at,
            deleted_at=employee.deleted_at,
            created_at=employee.created_at,
            updated_at=employee.updated_at,
        )


# Dependency injection for service provider
def get_employee_service(
    db: Session = Depends(get_sync_session),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> EmployeeService:
    """Dependency to provide EmployeeService instance"""
    return EmployeeService(db, dispatcher=dispatcher)

from datetime import datetime
from typing import List, Optional, Tuple
import secrets
import uuid

from fastapi import Depends
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import (
    Certificate,
    CertificateHistory,
    CertificateStatus,
    Employee,
    EmployeeStatus,
    Establishment,
)
from app.db.session import get_sync_session
from app.schemas.admin.certificate_schemas import (
    CertificateListQueryParams,
    CertificateResponse,
    CertificateListItem,
    CertificateHistoryResponse,
)
from app.services.audit_service import Actor, AuditService, SYSTEM_ACTOR
from app.services.certificate_renderer import CertificateContent, CertificateRenderer
from app.services.notification_service import (
    NotificationDispatcher,
    certificate_issued_email,
    get_notification_dispatcher,
)
from app.utils.datetime_utils import add_years, naive_utc_now, to_naive_utc
from app.utils.errors import BusinessLogicError, ConflictError, NotFoundError
from app.utils.logging import get_logger

logger = get_logger()

MANUAL_ISSUE_REASON = "manual_issue"
MIN_REVOKE_REASON_LENGTH = 3
CERTIFICATE_NUMBER_ATTEMPTS = 5


def generate_certificate_number(now: Optional[datetime] = None) -> str:
    """CERT-YYYYMMDD-NNNN with a random four digit suffix"""
    now = now or naive_utc_now()
    return f"CERT-{now:%Y%m%d}-{1000 + secrets.randbelow(9000)}"


class CertificateService:
    """Service provider for certificate issuance, revocation and rendering"""

    def __init__(
        self,
        db_session: Session,
        config: Settings = default_settings,
        dispatcher: Optional[NotificationDispatcher] = None,
        renderer: Optional[CertificateRenderer] = None,
    ):
        self.db = db_session
        self.config = config
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.renderer = renderer or CertificateRenderer(config)
        self.audit = AuditService(db_session, config)

    # Core CRUD Operations
    async def get_certificate_by_id(
        self, certificate_id: uuid.UUID
    ) -> Optional[Certificate]:
        """Get certificate by ID or return None if not found"""
        result = self.db.execute(
            select(Certificate).where(Certificate.id == certificate_id)
        )
        return result.scalar_one_or_none()

    async def get_active_certificate(self, employee_id: uuid.UUID) -> Optional[Certificate]:
        result = self.db.execute(
            select(Certificate)
            .where(
                Certificate.employee_id == employee_id,
                Certificate.status == CertificateStatus.ACTIVE,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_certificates(
        self, params: Optional[CertificateListQueryParams] = None
    ) -> List[CertificateListItem]:
        """Certificates newest first with holder and establishment names"""
        params = params or CertificateListQueryParams()
        query = (
            select(
                Certificate,
                Employee.full_name,
                Employee.email,
                Establishment.name.label("establishment_name"),
            )
            .join(Employee, Employee.id == Certificate.employee_id)
            .join(Establishment, Establishment.id == Certificate.establishment_id)
        )

        if params.establishment_id:
            query = query.where(Certificate.establishment_id == params.establishment_id)
        if params.status:
            query = query.where(Certificate.status == params.status)
        if params.search and params.search.strip():
            pattern = f"%{params.search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Employee.full_name).like(pattern),
                    func.lower(Employee.email).like(pattern),
                    func.lower(Certificate.certificate_number).like(pattern),
                )
            )

        query = query.order_by(Certificate.issued_at.desc(), Certificate.id)

        now = naive_utc_now()
        return [
            CertificateListItem(
                **self._certificate_fields(row.Certificate, now),
                full_name=row.full_name,
                email=row.email,
                establishment_name=row.establishment_name,
            )
            for row in self.db.execute(query).all()
        ]

    async def issue_certificate(
        self,
        employee_id: uuid.UUID,
        valid_until: Optional[datetime] = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> CertificateResponse:
        """Issue a certificate and mark the employee certified, in one commit"""
        employee = self.db.execute(
            select(Employee).where(
                Employee.id == employee_id, Employee.deleted_at.is_(None)
            )
        ).scalar_one_or_none()
        if not employee:
            raise NotFoundError("Employee not found", "EMPLOYEE_NOT_FOUND")

        if await self.get_active_certificate(employee.id):
            raise ConflictError(
                "Active certificate already exists", "CERTIFICATE_ALREADY_ACTIVE"
            )

        try:
            certificate = await self.mint_certificate(
                employee, MANUAL_ISSUE_REASON, actor, valid_until
            )
            self.audit.record(
                actor,
                "certificates.create",
                "certificate",
                certificate.id,
                {"employeeId": str(employee.id)},
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(
                "Certificate was issued concurrently, retry the request",
                "CERTIFICATE_ISSUE_CONFLICT",
                {"retryable": True},
            )
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Issued certificate {certificate.certificate_number}")
        self.dispatcher.dispatch(
            [
                certificate_issued_email(
                    employee.email, certificate.certificate_number, employee.full_name
                )
            ]
        )
        return self._create_certificate_response(certificate)

    async def mint_certificate(
        self,
        employee: Employee,
        reason: str,
        actor: Actor,
        valid_until: Optional[datetime] = None,
    ) -> Certificate:
        """Add certificate, history row and status change to the session.

        The caller owns the transaction. Shared by manual issue and the
        training import.
        """
        issued_at = naive_utc_now()
        certificate = Certificate(
            id=uuid.uuid4(),
            employee_id=employee.id,
            establishment_id=employee.establishment_id,
            certificate_number=await self._unused_certificate_number(issued_at),
            status=CertificateStatus.ACTIVE,
            issued_at=issued_at,
            valid_until=(
                to_naive_utc(valid_until)
                if valid_until
                else add_years(issued_at, self.config.CERTIFICATE_VALIDITY_YEARS)
            ),
        )
        self.db.add(certificate)
        self.db.add(
            CertificateHistory(
                certificate_id=certificate.id,
                status=CertificateStatus.ACTIVE,
                reason=reason,
                actor=actor.email,
            )
        )
        employee.status = EmployeeStatus.CERTIFIED
        employee.registration_token = None
        self.db.flush()
        return certificate

    async def revoke_certificate(
        self, certificate_id: uuid.UUID, reason: str, actor: Actor = SYSTEM_ACTOR
    ) -> CertificateResponse:
        """Revoke a certificate; the holder's employee status is left as is"""
        reason = (reason or "").strip()
        if len(reason) < MIN_REVOKE_REASON_LENGTH:
            raise BusinessLogicError(
                f"Revocation reason must be at least {MIN_REVOKE_REASON_LENGTH} characters",
                "REVOKE_REASON_REQUIRED",
            )

        certificate = await self.get_certificate_by_id(certificate_id)
        if not certificate:
            raise NotFoundError("Certificate not found", "CERTIFICATE_NOT_FOUND")
        if certificate.status == CertificateStatus.REVOKED:
            raise ConflictError(
                "Certificate already revoked", "CERTIFICATE_ALREADY_REVOKED"
            )

        try:
            certificate.status = CertificateStatus.REVOKED
            certificate.revoked_at = naive_utc_now()
            certificate.revoked_reason = reason
            self.db.add(
                CertificateHistory(
                    certificate_id=certificate.id,
                    status=CertificateStatus.REVOKED,
                    reason=reason,
                    actor=actor.email,
                )
            )
            self.audit.record(
                actor,
                "certificates.revoke",
                "certificate",
                certificate.id,
                {"reason": reason},
            )
            self.db.commit()
            self.db.refresh(certificate)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Revoked certificate {certificate.certificate_number}")
        return self._create_certificate_response(certificate)

    async def get_history(
        self, certificate_id: uuid.UUID
    ) -> List[CertificateHistoryResponse]:
        """History rows of one certificate, oldest first"""
        if not await self.get_certificate_by_id(certificate_id):
            raise NotFoundError("Certificate not found", "CERTIFICATE_NOT_FOUND")

        result = self.db.execute(
            select(CertificateHistory)
            .where(CertificateHistory.certificate_id == certificate_id)
            .order_by(CertificateHistory.created_at, CertificateHistory.id)
        )
        return [
            CertificateHistoryResponse.model_validate(entry)
            for entry in result.scalars().all()
        ]

    async def render_pdf(self, certificate_id: uuid.UUID) -> Tuple[str, bytes]:
        """Render the certificate, returning (filename, pdf bytes)"""
        row = self.db.execute(
            select(Certificate, Employee.full_name)
            .join(Employee, Employee.id == Certificate.employee_id)
            .where(Certificate.id == certificate_id)
        ).first()
        if not row:
            raise NotFoundError("Certificate not found", "CERTIFICATE_NOT_FOUND")

        certificate = row.Certificate
        content = CertificateContent(
            recipient_name=row.full_name,
            qualification=self.config.CERTIFICATE_QUALIFICATION,
            training_center_name=self.config.TRAINING_CENTER_NAME,
            issued_at=certificate.issued_at or certificate.created_at,
            certificate_number=certificate.certificate_number,
        )
        pdf_bytes = self.renderer.render(content)
        return f"certificate-{certificate.certificate_number}.pdf", pdf_bytes

    # Helper Methods
    async def _unused_certificate_number(self, issued_at: datetime) -> str:
        """Draw numbers until one is free; the unique index remains the guard"""
        pending = {
            obj.certificate_number
            for obj in self.db.new
            if isinstance(obj, Certificate)
        }
        for _ in range(CERTIFICATE_NUMBER_ATTEMPTS):
            number = generate_certificate_number(issued_at)
            if number in pending:
                continue
            taken = self.db.execute(
                select(Certificate.id).where(Certificate.certificate_number == number)
            ).first()
            if not taken:
                return number

        raise ConflictError(
            "Could not allocate a certificate number, retry the request",
            "CERTIFICATE_NUMBER_CONFLICT",
            {"retryable": True},
        )

    def _certificate_fields(self, certificate: Certificate, now: datetime) -> dict:
        return {
            "id": certificate.id,
            "employee_id": certificate.employee_id,
            "establishment_id": certificate.establishment_id,
            "certificate_number": certificate.certificate_number,
            "status": certificate.status,
            "display_status": certificate.display_status(now),
            "is_expired": certificate.is_expired(now),
            "issued_at": certificate.issued_at,
            "valid_until": certificate.valid_until,
            "revoked_at": certificate.revoked_at,
            "revoked_reason": certificate.revoked_reason,
        }

    def _create_certificate_response(
        self, certificate: Certificate
    ) -> CertificateResponse:
        """Create standardized certificate response data"""
        return CertificateResponse(
            **self._certificate_fields(certificate, naive_utc_now())
        )


# Dependency injection for service provider
def get_certificate_service(
    db: Session = Depends(get_sync_session),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> CertificateService:
    """Dependency to provide CertificateService instance"""
    return CertificateService(db, dispatcher=dispatcher)

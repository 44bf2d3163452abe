from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid
from sqlalchemy import (
    String,
    Float,
    Text,
    ForeignKey,
    Enum,
    Index,
    JSON,
    DateTime,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum

from app.utils.datetime_utils import naive_utc_now


class Base(DeclarativeBase):
    pass


# Enums
class UserRole(enum.Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


class EmployeeStatus(enum.Enum):
    PENDING_REGISTRATION = "pending_registration"
    RESET_PASSWORD = "reset_password"
    REGISTERED = "registered"
    TRAINING_PENDING = "training_pending"
    TRAINING_PASSED = "training_passed"
    TRAINING_FAILED = "training_failed"
    CERTIFIED = "certified"
    INACTIVE = "inactive"


# Statuses in which an employee holds a live registration token
TOKEN_BEARING_STATUSES = frozenset(
    {EmployeeStatus.PENDING_REGISTRATION, EmployeeStatus.RESET_PASSWORD}
)


class CertificateStatus(enum.Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class TrainingStatus(enum.Enum):
    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"


class RequestStatus(enum.Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, onupdate=naive_utc_now, nullable=False
    )


# Models
class Establishment(Base, AuditMixin):
    __tablename__ = "establishments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    representative: Mapped[Optional[str]] = mapped_column(String(200))
    representative_phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(String(300))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    employees: Mapped[List["Employee"]] = relationship(back_populates="establishment")
    certificates: Mapped[List["Certificate"]] = relationship(
        back_populates="establishment"
    )

    # Constraints
    __table_args__ = (
        Index("idx_establishments_deleted_at", "deleted_at"),
        Index("idx_establishments_created_at", "created_at"),
    )

    @property
    def is_archived(self) -> bool:
        return self.deleted_at is not None


class Employee(Base, AuditMixin):
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    establishment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("establishments.id", ondelete="RESTRICT"), nullable=False
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False
    )  # RFC 5321 max length
    city: Mapped[Optional[str]] = mapped_column(String(100))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    iin_encrypted: Mapped[Optional[str]] = mapped_column(Text)
    iin_last4: Mapped[Optional[str]] = mapped_column(String(4))
    status: Mapped[EmployeeStatus] = mapped_column(
        Enum(EmployeeStatus, name="employee_status", values_callable=_enum_values),
        default=EmployeeStatus.PENDING_REGISTRATION,
        nullable=False,
    )
    registration_token: Mapped[Optional[str]] = mapped_column(String(128), unique=True)
    registered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    establishment: Mapped["Establishment"] = relationship(back_populates="employees")
    user: Mapped[Optional["User"]] = relationship(back_populates="employee")
    certificates: Mapped[List["Certificate"]] = relationship(
        back_populates="employee", order_by="Certificate.issued_at.desc()"
    )
    transfers: Mapped[List["EmployeeTransfer"]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="EmployeeTransfer.created_at",
    )
    training_results: Mapped[List["TrainingResult"]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (
        Index("idx_employees_establishment_id", "establishment_id"),
        Index("idx_employees_status", "status"),
        Index("idx_employees_deleted_at", "deleted_at"),
    )

    @property
    def is_archived(self) -> bool:
        return self.deleted_at is not None


class EmployeeTransfer(Base):
    __tablename__ = "employee_transfers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    from_establishment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("establishments.id")
    )
    to_establishment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("establishments.id"), nullable=False
    )
    reason: Mapped[Optional[str]] = mapped_column(String(200))
    actor: Mapped[Optional[str]] = mapped_column(String(320))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(back_populates="transfers")

    # Constraints
    __table_args__ = (Index("idx_employee_transfers_employee_id", "employee_id"),)


class User(Base, AuditMixin):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=_enum_values),
        nullable=False,
    )
    employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("employees.id"), unique=True
    )

    # Relationships
    employee: Mapped[Optional["Employee"]] = relationship(back_populates="user")

    # Constraints
    __table_args__ = (Index("idx_users_role", "role"),)


class Certificate(Base, AuditMixin):
    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id"), nullable=False
    )
    # Snapshot of the employee's establishment at issue time
    establishment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("establishments.id"), nullable=False
    )
    certificate_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False
    )
    status: Mapped[CertificateStatus] = mapped_column(
        Enum(CertificateStatus, name="certificate_status", values_callable=_enum_values),
        default=CertificateStatus.ACTIVE,
        nullable=False,
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    revoked_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    employee: Mapped["Employee"] = relationship(back_populates="certificates")
    establishment: Mapped["Establishment"] = relationship(
        back_populates="certificates"
    )
    history: Mapped[List["CertificateHistory"]] = relationship(
        back_populates="certificate",
        cascade="all, delete-orphan",
        order_by="CertificateHistory.created_at",
    )

    # Constraints
    __table_args__ = (
        Index("idx_certificates_employee_status", "employee_id", "status"),
        Index("idx_certificates_establishment_id", "establishment_id"),
        # At most one active certificate per employee
        Index(
            "uq_certificates_employee_active",
            "employee_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Expiry is derived from valid_until at read time, never stored."""
        if self.valid_until is None:
            return False
        return self.valid_until < (now or naive_utc_now())

    def display_status(self, now: Optional[datetime] = None) -> str:
        if self.status == CertificateStatus.ACTIVE and self.is_expired(now):
            return "expired"
        return self.status.value


class CertificateHistory(Base):
    __tablename__ = "certificate_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[CertificateStatus] = mapped_column(
        Enum(
            CertificateStatus,
            name="certificate_history_status",
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text)
    actor: Mapped[Optional[str]] = mapped_column(String(320))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    certificate: Mapped["Certificate"] = relationship(back_populates="history")

    # Constraints
    __table_args__ = (
        Index("idx_certificate_history_certificate_id", "certificate_id"),
    )


class TrainingResult(Base):
    __tablename__ = "training_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[TrainingStatus] = mapped_column(
        Enum(TrainingStatus, name="training_status", values_callable=_enum_values),
        nullable=False,
    )
    score: Mapped[Optional[float]] = mapped_column(Float)
    source_file: Mapped[Optional[str]] = mapped_column(String(300))
    raw_payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(back_populates="training_results")

    # Constraints
    __table_args__ = (Index("idx_training_results_employee_id", "employee_id"),)


class Request(Base):
    """Inbound lead submitted from the public site."""

    __tablename__ = "requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    establishment_name: Mapped[Optional[str]] = mapped_column(String(200))
    message: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name="request_status", values_callable=_enum_values),
        default=RequestStatus.NEW,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Constraints
    __table_args__ = (Index("idx_requests_status", "status"),)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor: Mapped[str] = mapped_column(String(320), nullable=False)
    actor_role: Mapped[Optional[str]] = mapped_column(String(50))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64))
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Constraints
    __table_args__ = (
        Index("idx_audit_logs_created_at", "created_at"),
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
    )

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.db.models import Certificate, CertificateStatus, Employee, Establishment
from app.db.session import get_sync_session
from app.schemas.admin.metrics_schemas import EmployeeStatusCount, MetricsResponse


class MetricsService:
    """Dashboard counters for the admin overview"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_metrics(self) -> MetricsResponse:
        establishments = self.db.execute(
            select(func.count(Establishment.id)).where(Establishment.deleted_at.is_(None))
        ).scalar_one()
        employees = self.db.execute(
            select(func.count(Employee.id)).where(Employee.deleted_at.is_(None))
        ).scalar_one()
        active_certificates = self.db.execute(
            select(func.count(Certificate.id)).where(
                Certificate.status == CertificateStatus.ACTIVE
            )
        ).scalar_one()

        status_rows = self.db.execute(
            select(Employee.status, func.count(Employee.id))
            .where(Employee.deleted_at.is_(None))
            .group_by(Employee.status)
        ).all()

        return MetricsResponse(
            establishments=establishments,
            employees=employees,
            active_certificates=active_certificates,
            employee_statuses=[
                EmployeeStatusCount(status=status.value, count=count)
                for status, count in sorted(status_rows, key=lambda row: row[0].value)
            ],
        )


# Dependency injection for service provider
def get_metrics_service(
    db: Session = Depends(get_sync_session),
) -> MetricsService:
    """Dependency to provide MetricsService instance"""
    return MetricsService(db)

import math
import re
from typing import Dict, List, Optional, Sequence, Tuple

from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.config.settings import Settings, settings as default_settings
from app.db.models import (
    Employee,
    EmployeeStatus,
    TrainingResult,
    TrainingStatus,
)
from app.db.session import get_sync_session
from app.providers.spreadsheet_provider import SpreadsheetProvider
from app.schemas.admin.training_schemas import (
    ImportRowError,
    TrainingImportReport,
    UnmatchedRow,
)
from app.services.audit_service import Actor, AuditService, SYSTEM_ACTOR
from app.services.certificate_service import CertificateService
from app.services.notification_service import (
    EmailNotification,
    NotificationDispatcher,
    certificate_issued_email,
    get_notification_dispatcher,
)
from app.utils.errors import BusinessLogicError
from app.utils.logging import get_logger

logger = get_logger()

IMPORT_HISTORY_REASON = "training_import"

EMAIL_ALIASES = ("email", "mail")
STATUS_ALIASES = (
    "status",
    "result",
    "outcome",
    "passed",
    "результат",
    "итог",
    "статус",
    "пройден",
)
SCORE_ALIASES = ("score", "resultscore", "scorepercent", "балл", "процент")

# Ordered, first match wins. Negative phrases come before the positive words
# they contain ("не сдал" before "сдал"). A standalone negative word
# such as "no" fails the row even next to a positive one ("passed: no").
CLASSIFICATION_RULES: Tuple[Tuple[str, Tuple[str, ...], TrainingStatus], ...] = (
    (
        "contains",
        (
            "не сдал",
            "не пройден",
            "не прош",
            "not pass",
            "failed",
            "fail",
            "ошибка",
        ),
        TrainingStatus.FAILED,
    ),
    ("word", ("false", "0", "no", "нет"), TrainingStatus.FAILED),
    (
        "contains",
        ("passed", "pass", "сдал", "успех", "пройден", "прош"),
        TrainingStatus.PASSED,
    ),
    ("equals", ("ok", "true", "1", "yes", "да"), TrainingStatus.PASSED),
)


def normalize_header(header: str) -> str:
    """Lowercase and drop everything that is not a letter or digit"""
    return "".join(ch for ch in str(header or "").lower() if ch.isalnum())


def normalize_row(row: Dict[str, str]) -> Dict[str, str]:
    normalized: Dict[str, str] = {}
    for key, value in row.items():
        normalized_key = normalize_header(key)
        if normalized_key:
            normalized[normalized_key] = value
    return normalized


def pick_value(row: Dict[str, str], aliases: Sequence[str]) -> Optional[str]:
    """First non-blank value among the aliases, in alias order"""
    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def classify_status(raw: Optional[str]) -> TrainingStatus:
    value = " ".join(str(raw or "").lower().split())
    if not value:
        return TrainingStatus.PENDING
    words = set(re.findall(r"\w+", value))

    for mode, keywords, status in CLASSIFICATION_RULES:
        if mode == "equals" and value in keywords:
            return status
        if mode == "word" and words.intersection(keywords):
            return status
        if mode == "contains" and any(keyword in value for keyword in keywords):
            return status
    return TrainingStatus.PENDING


def parse_score(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    text = str(raw).strip().replace(",", ".").rstrip("%").strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    # "nan", "inf" and overflowing literals are not scores
    return value if math.isfinite(value) else None


class TrainingImportService:
    """Applies an exported training results spreadsheet.

    The batch runs in one transaction. Rows with data problems are reported
    and skipped while the rest are applied; a database failure rolls back
    every row.
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
        self.certificates = CertificateService(
            db_session, config, dispatcher=self.dispatcher
        )

    async def import_file(
        self, filename: str, content: bytes, actor: Actor = SYSTEM_ACTOR
    ) -> TrainingImportReport:
        if not content:
            raise BusinessLogicError("File is required", "FILE_REQUIRED")
        if len(content) > self.config.MAX_IMPORT_FILE_SIZE:
            raise BusinessLogicError("File is too large", "FILE_TOO_LARGE")

        rows = SpreadsheetProvider.parse_rows(filename, content)
        return await self.import_rows(rows, filename, actor)

    async def import_rows(
        self,
        rows: Sequence[Dict[str, str]],
        source_file: Optional[str] = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> TrainingImportReport:
        report = TrainingImportReport(processed=len(rows))
        emails: List[EmailNotification] = []

        try:
            for index, raw_row in enumerate(rows, start=1):
                row = normalize_row(raw_row)
                await self._apply_row(index, row, source_file, actor, report, emails)

            self.audit.record(
                actor,
                "training.import",
                "training",
                None,
                {
                    "processed": report.processed,
                    "certificatesCreated": report.certificates_created,
                    "sourceFile": source_file,
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Training import {source_file}: processed={report.processed} "
            f"matched={report.matched} certificates={report.certificates_created} "
            f"unmatched={len(report.unmatched)} errors={len(report.errors)}"
        )
        self.dispatcher.dispatch(emails)
        return report

    async def _apply_row(
        self,
        index: int,
        row: Dict[str, str],
        source_file: Optional[str],
        actor: Actor,
        report: TrainingImportReport,
        emails: List[EmailNotification],
    ) -> None:
        email = (pick_value(row, EMAIL_ALIASES) or "").lower()
        if not email:
            report.errors.append(ImportRowError(row=index, error="Missing email"))
            return

        employee = self.db.execute(
            select(Employee).where(
                func.lower(Employee.email) == email, Employee.deleted_at.is_(None)
            )
        ).scalar_one_or_none()
        if not employee:
            report.unmatched.append(UnmatchedRow(row=index, email=email))
            return

        status = classify_status(pick_value(row, STATUS_ALIASES))
        self.db.add(
            TrainingResult(
                employee_id=employee.id,
                status=status,
                score=parse_score(pick_value(row, SCORE_ALIASES)),
                source_file=source_file,
                raw_payload=dict(row),
            )
        )
        report.matched += 1

        if status == TrainingStatus.PASSED:
            if await self.certificates.get_active_certificate(employee.id):
                report.errors.append(
                    ImportRowError(
                        row=index,
                        email=email,
                        error="Active certificate already exists",
                    )
                )
                return

            certificate = await self.certificates.mint_certificate(
                employee, IMPORT_HISTORY_REASON, actor
            )
            report.certificates_created += 1
            emails.append(
                certificate_issued_email(
                    employee.email, certificate.certificate_number, employee.full_name
                )
            )
        elif status == TrainingStatus.FAILED:
            self._set_status(employee, EmployeeStatus.TRAINING_FAILED)
        else:
            self._set_status(employee, EmployeeStatus.TRAINING_PENDING)

        self.db.flush()

    @staticmethod
    def _set_status(employee: Employee, status: EmployeeStatus) -> None:
        employee.status = status
        employee.registration_token = None


# Dependency injection for service provider
def get_training_import_service(
    db: Session = Depends(get_sync_session),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> TrainingImportService:
    """Dependency to provide TrainingImportService instance"""
    return TrainingImportService(db, dispatcher=dispatcher)

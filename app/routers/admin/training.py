from typing import Annotated

from fastapi import APIRouter, Depends, File, Request, UploadFile, status

from app.middlewares.auth_middleware import get_request_actor, require_admin
from app.services.audit_service import Actor
from app.services.training_import_service import (
    TrainingImportService,
    get_training_import_service,
)
from app.schemas.admin.training_schemas import TrainingImportReport
from app.utils.responses import ResponseBuilder

training_router = APIRouter(dependencies=[Depends(require_admin)])


@training_router.post(
    "/import",
    response_model=TrainingImportReport,
    status_code=status.HTTP_200_OK,
    summary="Import training results",
    description="Upload a .csv or .xlsx export of training results. Passed rows get a certificate, other rows update the employee status. The report lists unmatched emails and row errors.",
)
async def import_training_results(
    request: Request,
    file: Annotated[UploadFile, File(description="Training results spreadsheet")],
    actor: Annotated[Actor, Depends(get_request_actor)],
    training_import_service: TrainingImportService = Depends(
        get_training_import_service
    ),
):
    content = await file.read()
    report = await training_import_service.import_file(
        file.filename or "", content, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=report.model_dump(by_alias=True),
        message=(
            f"Processed {report.processed} rows, "
            f"created {report.certificates_created} certificates"
        ),
    )

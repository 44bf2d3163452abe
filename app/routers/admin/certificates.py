from typing import Annotated
import uuid

from fastapi import APIRouter, Depends, Request, Response, status, Path

from app.middlewares.auth_middleware import get_request_actor, require_admin
from app.services.audit_service import Actor
from app.services.certificate_service import (
    CertificateService,
    get_certificate_service,
)
from app.schemas.admin.certificate_schemas import (
    CertificateListQueryParams,
    CertificateResponse,
    IssueCertificateRequest,
    RevokeCertificateRequest,
)
from app.utils.responses import ResponseBuilder

certificates_router = APIRouter(dependencies=[Depends(require_admin)])

CertificateId = Annotated[uuid.UUID, Path(description="Certificate ID")]


# API Endpoints
@certificates_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get certificates",
    description="Certificates newest first with holder and establishment. Expiry is derived at read time.",
)
async def get_all_certificates(
    request: Request,
    query_params: Annotated[CertificateListQueryParams, Depends()],
    certificate_service: CertificateService = Depends(get_certificate_service),
):
    certificates = await certificate_service.list_certificates(query_params)

    return ResponseBuilder.success(
        request=request,
        data=certificates,
        message=f"Retrieved {len(certificates)} certificates",
    )


@certificates_router.post(
    "/",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a certificate",
    description="Issues a certificate to an employee without an active one and marks the employee certified.",
)
async def issue_certificate(
    request: Request,
    certificate_data: IssueCertificateRequest,
    actor: Annotated[Actor, Depends(get_request_actor)],
    certificate_service: CertificateService = Depends(get_certificate_service),
):
    certificate = await certificate_service.issue_certificate(
        certificate_data.employee_id, certificate_data.valid_until, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=certificate.model_dump(by_alias=True),
        message="Certificate issued successfully",
        status_code=status.HTTP_201_CREATED,
    )


@certificates_router.post(
    "/{certificate_id}/revoke",
    response_model=CertificateResponse,
    status_code=status.HTTP_200_OK,
    summary="Revoke a certificate",
)
async def revoke_certificate(
    request: Request,
    revoke_data: RevokeCertificateRequest,
    certificate_id: CertificateId,
    actor: Annotated[Actor, Depends(get_request_actor)],
    certificate_service: CertificateService = Depends(get_certificate_service),
):
    certificate = await certificate_service.revoke_certificate(
        certificate_id, revoke_data.reason, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=certificate.model_dump(by_alias=True),
        message="Certificate revoked successfully",
    )


@certificates_router.get(
    "/{certificate_id}/history",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get certificate status history",
)
async def get_certificate_history(
    request: Request,
    certificate_id: CertificateId,
    certificate_service: CertificateService = Depends(get_certificate_service),
):
    history = await certificate_service.get_history(certificate_id)

    return ResponseBuilder.success(
        request=request,
        data=history,
        message=f"Retrieved {len(history)} history entries",
    )


@certificates_router.get(
    "/{certificate_id}/pdf",
    response_class=Response,
    status_code=status.HTTP_200_OK,
    summary="Download the certificate PDF",
)
async def get_certificate_pdf(
    certificate_id: CertificateId,
    certificate_service: CertificateService = Depends(get_certificate_service),
):
    filename, content = await certificate_service.render_pdf(certificate_id)

    return ResponseBuilder.file(content, filename, media_type="application/pdf")

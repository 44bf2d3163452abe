from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from app.middlewares.auth_middleware import require_admin
from app.services.audit_service import AuditService, get_audit_service
from app.schemas.admin.audit_schemas import AuditLogQueryParams
from app.utils.responses import ResponseBuilder

audit_logs_router = APIRouter(dependencies=[Depends(require_admin)])


@audit_logs_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get the audit trail",
    description="Newest entries first. The limit is capped by the server.",
)
async def get_audit_logs(
    request: Request,
    query_params: Annotated[AuditLogQueryParams, Depends()],
    audit_service: AuditService = Depends(get_audit_service),
):
    logs = await audit_service.list_logs(query_params.limit)

    return ResponseBuilder.success(
        request=request,
        data=logs,
        message=f"Retrieved {len(logs)} audit log entries",
    )

from typing import Annotated
import uuid

from fastapi import APIRouter, Depends, Request, status, Path

from app.middlewares.auth_middleware import get_request_actor, require_admin
from app.services.audit_service import Actor
from app.services.request_service import RequestService, get_request_service
from app.schemas.admin.request_schemas import (
    RequestListQueryParams,
    RequestResponse,
    UpdateRequestStatusRequest,
)
from app.utils.responses import ResponseBuilder

requests_router = APIRouter(dependencies=[Depends(require_admin)])


@requests_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get requests from the public site",
)
async def get_all_requests(
    request: Request,
    query_params: Annotated[RequestListQueryParams, Depends()],
    request_service: RequestService = Depends(get_request_service),
):
    leads = await request_service.list_requests(query_params.status)

    return ResponseBuilder.success(
        request=request,
        data=leads,
        message=f"Retrieved {len(leads)} requests",
    )


@requests_router.patch(
    "/{request_id}",
    response_model=RequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Change the status of a request",
)
async def update_request_status(
    request: Request,
    status_data: UpdateRequestStatusRequest,
    request_id: Annotated[uuid.UUID, Path(description="Request ID")],
    actor: Annotated[Actor, Depends(get_request_actor)],
    request_service: RequestService = Depends(get_request_service),
):
    lead = await request_service.update_request_status(
        request_id, status_data.status, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=lead.model_dump(by_alias=True),
        message="Request updated successfully",
    )

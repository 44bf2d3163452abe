from typing import Annotated
import uuid

from fastapi import APIRouter, Depends, Request, status, Path

from app.middlewares.auth_middleware import get_request_actor, require_admin
from app.services.audit_service import Actor
from app.services.establishment_service import (
    EstablishmentService,
    get_establishment_service,
)
from app.schemas.admin.establishment_schemas import (
    CreateEstablishmentRequest,
    UpdateEstablishmentRequest,
    EstablishmentListQueryParams,
    EstablishmentResponse,
)
from app.utils.responses import ResponseBuilder

establishments_router = APIRouter(dependencies=[Depends(require_admin)])


# API Endpoints
@establishments_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get all establishments with counts",
    description="Retrieve establishments newest first, each with its active employee and certificate counts. Archived establishments are included on request.",
)
async def get_all_establishments(
    request: Request,
    query_params: Annotated[EstablishmentListQueryParams, Depends()],
    establishment_service: EstablishmentService = Depends(get_establishment_service),
):
    establishments = await establishment_service.list_establishments(
        include_archived=query_params.include_archived
    )

    return ResponseBuilder.success(
        request=request,
        data=establishments,
        message=f"Retrieved {len(establishments)} establishments",
    )


@establishments_router.post(
    "/",
    response_model=EstablishmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new establishment",
)
async def create_establishment(
    request: Request,
    establishment_data: CreateEstablishmentRequest,
    actor: Annotated[Actor, Depends(get_request_actor)],
    establishment_service: EstablishmentService = Depends(get_establishment_service),
):
    establishment = await establishment_service.create_establishment(
        establishment_data, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=establishment.model_dump(by_alias=True),
        message="Establishment created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@establishments_router.put(
    "/{establishment_id}",
    response_model=EstablishmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update an establishment",
    description="Partial update, only the fields present in the body are changed.",
)
async def update_establishment(
    request: Request,
    establishment_data: UpdateEstablishmentRequest,
    establishment_id: Annotated[uuid.UUID, Path(description="Establishment ID")],
    actor: Annotated[Actor, Depends(get_request_actor)],
    establishment_service: EstablishmentService = Depends(get_establishment_service),
):
    establishment = await establishment_service.update_establishment(
        establishment_id, establishment_data, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=establishment.model_dump(by_alias=True),
        message="Establishment updated successfully",
    )


@establishments_router.delete(
    "/{establishment_id}",
    response_model=EstablishmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Archive an establishment",
)
async def archive_establishment(
    request: Request,
    establishment_id: Annotated[uuid.UUID, Path(description="Establishment ID")],
    actor: Annotated[Actor, Depends(get_request_actor)],
    establishment_service: EstablishmentService = Depends(get_establishment_service),
):
    establishment = await establishment_service.archive_establishment(
        establishment_id, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=establishment.model_dump(by_alias=True),
        message="Establishment archived successfully",
    )


@establishments_router.post(
    "/{establishment_id}/restore",
    response_model=EstablishmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Restore an archived establishment",
)
async def restore_establishment(
    request: Request,
    establishment_id: Annotated[uuid.UUID, Path(description="Establishment ID")],
    actor: Annotated[Actor, Depends(get_request_actor)],
    establishment_service: EstablishmentService = Depends(get_establishment_service),
):
    establishment = await establishment_service.restore_establishment(
        establishment_id, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=establishment.model_dump(by_alias=True),
        message="Establishment restored successfully",
    )

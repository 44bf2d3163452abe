from fastapi import APIRouter, Depends, Request, status

from app.services.request_service import RequestService, get_request_service
from app.schemas.admin.request_schemas import RequestResponse
from app.schemas.public.request_schemas import CreateRequestRequest
from app.utils.responses import ResponseBuilder

public_requests_router = APIRouter()


@public_requests_router.post(
    "/",
    response_model=RequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Leave a request from the public site",
)
async def create_request(
    request: Request,
    request_data: CreateRequestRequest,
    request_service: RequestService = Depends(get_request_service),
):
    lead = await request_service.create_request(request_data)

    return ResponseBuilder.success(
        request=request,
        data=lead.model_dump(by_alias=True),
        message="Request received",
        status_code=status.HTTP_201_CREATED,
    )

from fastapi import APIRouter, Depends, Request, status

from app.middlewares.auth_middleware import require_admin
from app.services.metrics_service import MetricsService, get_metrics_service
from app.utils.responses import ResponseBuilder

metrics_router = APIRouter(dependencies=[Depends(require_admin)])


@metrics_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get dashboard counters",
)
async def get_metrics(
    request: Request,
    metrics_service: MetricsService = Depends(get_metrics_service),
):
    metrics = await metrics_service.get_metrics()

    return ResponseBuilder.success(
        request=request,
        data=metrics.model_dump(by_alias=True),
        message="Metrics retrieved",
    )

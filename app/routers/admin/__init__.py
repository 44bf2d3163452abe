from fastapi import APIRouter

from .establishments import establishments_router
from .employees import employees_router
from .certificates import certificates_router
from .training import training_router
from .requests import requests_router
from .audit_logs import audit_logs_router
from .metrics import metrics_router

admin_router = APIRouter()

# Include sub-routers
admin_router.include_router(
    establishments_router,
    prefix="/establishments",
    tags=["Admin - Establishment Management"],
)
admin_router.include_router(
    employees_router, prefix="/employees", tags=["Admin - Employee Management"]
)
admin_router.include_router(
    certificates_router,
    prefix="/certificates",
    tags=["Admin - Certificate Management"],
)
admin_router.include_router(
    training_router, prefix="/training", tags=["Admin - Training Import"]
)
admin_router.include_router(
    requests_router, prefix="/requests", tags=["Admin - Requests"]
)
admin_router.include_router(
    audit_logs_router, prefix="/audit-logs", tags=["Admin - Audit Trail"]
)
admin_router.include_router(
    metrics_router, prefix="/metrics", tags=["Admin - Dashboard"]
)

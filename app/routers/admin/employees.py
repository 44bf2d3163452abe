from typing import Annotated, Optional
import uuid

from fastapi import APIRouter, Body, Depends, Request, status, Path

from app.middlewares.auth_middleware import get_request_actor, require_admin
from app.services.audit_service import Actor
from app.services.employee_service import EmployeeService, get_employee_service
from app.schemas.admin.employee_schemas import (
    BulkCreateEmployeesRequest,
    CreateEmployeeRequest,
    EmployeeListQueryParams,
    EmployeeResponse,
    RestoreEmployeeRequest,
    TransferEmployeeRequest,
    TrainingInviteResponse,
    UpdateEmployeeRequest,
)
from app.utils.responses import ResponseBuilder

employees_router = APIRouter(dependencies=[Depends(require_admin)])

EmployeeId = Annotated[uuid.UUID, Path(description="Employee ID")]


# API Endpoints
@employees_router.get(
    "/",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get employees",
    description="Employees newest first. Filter by establishment or status and search by name or email.",
)
async def get_all_employees(
    request: Request,
    query_params: Annotated[EmployeeListQueryParams, Depends()],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employees = await employee_service.list_employees(query_params)

    return ResponseBuilder.success(
        request=request,
        data=employees,
        message=f"Retrieved {len(employees)} employees",
    )


@employees_router.post(
    "/",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an employee",
    description="Creates the employee in pending registration status and returns the registration link.",
)
async def create_employee(
    request: Request,
    employee_data: CreateEmployeeRequest,
    actor: Annotated[Actor, Depends(get_request_actor)],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employee = await employee_service.create_employee(employee_data, actor)

    return ResponseBuilder.success(
        request=request,
        data=employee.model_dump(by_alias=True),
        message="Employee created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@employees_router.post(
    "/bulk",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Add several employees at once",
    description="All employees are created in one transaction. A duplicate email or an archived establishment rejects the whole batch.",
)
async def bulk_create_employees(
    request: Request,
    bulk_data: BulkCreateEmployeesRequest,
    actor: Annotated[Actor, Depends(get_request_actor)],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employees = await employee_service.bulk_create(bulk_data.employees, actor)

    return ResponseBuilder.success(
        request=request,
        data=employees,
        message=f"Created {len(employees)} employees",
        status_code=status.HTTP_201_CREATED,
    )


@employees_router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
    status_code=status.HTTP_200_OK,
    summary="Update an employee",
    description="Partial update of name, city, phone and status. Switching to reset_password issues a new registration link.",
)
async def update_employee(
    request: Request,
    employee_data: UpdateEmployeeRequest,
    employee_id: EmployeeId,
    actor: Annotated[Actor, Depends(get_request_actor)],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employee = await employee_service.update_employee(
        employee_id, employee_data, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=employee.model_dump(by_alias=True),
        message="Employee updated successfully",
    )


@employees_router.delete(
    "/{employee_id}",
    response_model=EmployeeResponse,
    status_code=status.HTTP_200_OK,
    summary="Archive an employee",
)
async def archive_employee(
    request: Request,
    employee_id: EmployeeId,
    actor: Annotated[Actor, Depends(get_request_actor)],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employee = await employee_service.archive_employee(employee_id, actor)

    return ResponseBuilder.success(
        request=request,
        data=employee.model_dump(by_alias=True),
        message="Employee archived successfully",
    )


@employees_router.post(
    "/{employee_id}/restore",
    response_model=EmployeeResponse,
    status_code=status.HTTP_200_OK,
    summary="Restore an archived employee",
    description="Restores into the previous establishment unless another one is given.",
)
async def restore_employee(
    request: Request,
    employee_id: EmployeeId,
    actor: Annotated[Actor, Depends(get_request_actor)],
    restore_data: Optional[RestoreEmployeeRequest] = Body(None),
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employee = await employee_service.restore_employee(
        employee_id,
        restore_data.establishment_id if restore_data else None,
        actor,
    )

    return ResponseBuilder.success(
        request=request,
        data=employee.model_dump(by_alias=True),
        message="Employee restored successfully",
    )


@employees_router.post(
    "/{employee_id}/transfer",
    response_model=EmployeeResponse,
    status_code=status.HTTP_200_OK,
    summary="Move an employee to another establishment",
)
async def transfer_employee(
    request: Request,
    transfer_data: TransferEmployeeRequest,
    employee_id: EmployeeId,
    actor: Annotated[Actor, Depends(get_request_actor)],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    employee = await employee_service.transfer_employee(
        employee_id, transfer_data.establishment_id, transfer_data.reason, actor
    )

    return ResponseBuilder.success(
        request=request,
        data=employee.model_dump(by_alias=True),
        message="Employee transferred successfully",
    )


@employees_router.get(
    "/{employee_id}/transfers",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get establishment history of an employee",
)
async def get_employee_transfers(
    request: Request,
    employee_id: EmployeeId,
    employee_service: EmployeeService = Depends(get_employee_service),
):
    transfers = await employee_service.list_transfers(employee_id)

    return ResponseBuilder.success(
        request=request,
        data=transfers,
        message=f"Retrieved {len(transfers)} transfers",
    )


@employees_router.post(
    "/{employee_id}/send-training",
    response_model=TrainingInviteResponse,
    status_code=status.HTTP_200_OK,
    summary="Send the training link",
    description="Marks the employee training pending and queues the invitation email.",
)
async def send_training_invite(
    request: Request,
    employee_id: EmployeeId,
    actor: Annotated[Actor, Depends(get_request_actor)],
    employee_service: EmployeeService = Depends(get_employee_service),
):
    invite = await employee_service.send_training_invite(employee_id, actor)

    return ResponseBuilder.success(
        request=request,
        data=invite.model_dump(by_alias=True),
        message=invite.message,
    )

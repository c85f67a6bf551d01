from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user_id, get_permission_engine, get_permission_store
from app.database.permission_store import PermissionStore
from app.modules.permission_requests.schemas import (
    ClientPermissionRequestsResponse,
    PermissionRequestRespond,
    PermissionRequestRespondResponse,
    PermissionRequestsCreate,
    PermissionRequestsCreateResponse,
)
from app.modules.permission_requests.service import PermissionRequestService
from app.modules.permissions.service import PermissionEngine
from typing import Dict

router = APIRouter(tags=["permission-requests"])


def get_permission_request_service(
    store: PermissionStore = Depends(get_permission_store),
    engine: PermissionEngine = Depends(get_permission_engine)
) -> PermissionRequestService:
    return PermissionRequestService(store, engine)


@router.post("/pro/permission-requests", response_model=PermissionRequestsCreateResponse, status_code=201)
async def create_permission_requests(
    request_data: PermissionRequestsCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: PermissionRequestService = Depends(get_permission_request_service)
):
    """Request one or more permissions from a client"""
    return service.create_requests(user_data["id"], request_data)


@router.get("/client/permission-requests", response_model=ClientPermissionRequestsResponse)
async def list_client_permission_requests(
    user_data: Dict = Depends(get_current_user_id),
    service: PermissionRequestService = Depends(get_permission_request_service)
):
    """Pending permission requests for the calling client"""
    return service.list_client_requests(user_data["id"])


@router.patch("/client/permission-requests/{request_id}", response_model=PermissionRequestRespondResponse)
async def respond_to_permission_request(
    request_id: str,
    respond_data: PermissionRequestRespond,
    user_data: Dict = Depends(get_current_user_id),
    service: PermissionRequestService = Depends(get_permission_request_service)
):
    """Approve or deny a permission request"""
    return service.respond(request_id, user_data["id"], respond_data.action)

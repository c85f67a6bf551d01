from fastapi import APIRouter, Depends
from app.core.dependencies import (
    get_current_user_id,
    get_permission_engine,
    get_permission_store,
    require_admin,
)
from app.core.exceptions import Unauthorized
from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import Actor
from app.modules.permissions.read_model import group_by_category
from app.modules.permissions.schemas import (
    ClientPermissionsResponse,
    ExclusiveHolder,
    ExclusivityConflict,
    ExclusivityUpdate,
    ExclusivityUpdateResponse,
    PermissionCategoryGroup,
    PermissionUpdateRequest,
    PermissionUpdateResult,
)
from app.modules.permissions.service import PermissionCatalogService, PermissionEngine
from typing import List, Optional, Dict

router = APIRouter(tags=["permissions"])


def get_catalog_service(store: PermissionStore = Depends(get_permission_store)) -> PermissionCatalogService:
    return PermissionCatalogService(store)


@router.get("/permissions/definitions", response_model=List[PermissionCategoryGroup])
async def list_permission_definitions(
    user_data: Dict = Depends(get_current_user_id),
    service: PermissionCatalogService = Depends(get_catalog_service)
):
    """Enabled permission definitions grouped by category"""
    return group_by_category(service.list_definitions())


@router.get("/client/permissions", response_model=ClientPermissionsResponse)
async def get_client_permissions(
    user_data: Dict = Depends(get_current_user_id),
    engine: PermissionEngine = Depends(get_permission_engine)
):
    """All active relationships of the calling client with their grant sets and version tokens"""
    return engine.get_client_permissions(user_data["id"])


@router.put("/client/permissions/{relationship_id}", response_model=PermissionUpdateResult)
async def update_client_permissions(
    relationship_id: str,
    update_data: PermissionUpdateRequest,
    user_data: Dict = Depends(get_current_user_id),
    engine: PermissionEngine = Depends(get_permission_engine),
    store: PermissionStore = Depends(get_permission_store)
):
    """Grant and/or revoke permissions on one of the caller's relationships"""
    relationship = store.get_relationship(relationship_id)
    if relationship and relationship.client_id != user_data["id"]:
        raise Unauthorized("Only the client can change permissions on this relationship")
    return engine.update_permissions(
        relationship_id,
        grant=update_data.grant,
        revoke=update_data.revoke,
        actor=Actor(actor_type="client", actor_id=user_data["id"]),
        expected_version=update_data.expected_version,
        granted_by="client"
    )


@router.get("/client/permissions/exclusive-holder", response_model=Optional[ExclusiveHolder])
async def get_exclusive_holder(
    slug: str,
    exclude_relationship_id: Optional[str] = None,
    user_data: Dict = Depends(get_current_user_id),
    engine: PermissionEngine = Depends(get_permission_engine)
):
    """Who currently holds an exclusive permission for the calling client (null if nobody)"""
    return engine.find_exclusive_holder(user_data["id"], slug, exclude_relationship_id)


# Admin endpoints
@router.get("/admin/permissions/{slug}/conflicts", response_model=List[ExclusivityConflict])
async def get_exclusivity_conflicts(
    slug: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionCatalogService = Depends(get_catalog_service)
):
    """Clients with more than one active holder of the permission"""
    return service.check_exclusivity_conflicts(slug)


@router.put("/admin/permissions/{slug}/exclusivity", response_model=ExclusivityUpdateResponse)
async def set_permission_exclusivity(
    slug: str,
    update_data: ExclusivityUpdate,
    user_data: Dict = Depends(require_admin),
    service: PermissionCatalogService = Depends(get_catalog_service)
):
    """Switch a permission between shared and exclusive"""
    return service.set_exclusivity(
        slug,
        update_data.is_exclusive,
        Actor(actor_type="admin", actor_id=user_data["id"], reason=update_data.reason)
    )

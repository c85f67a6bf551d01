from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user_id, get_permission_engine, get_permission_store
from app.database.permission_store import PermissionStore
from app.modules.permissions.service import PermissionEngine
from app.modules.relationships.schemas import EndRelationshipResponse, ProClientPermissionsResponse
from app.modules.relationships.service import RelationshipService
from typing import Dict

router = APIRouter(tags=["relationships"])


def get_relationship_service(
    store: PermissionStore = Depends(get_permission_store),
    engine: PermissionEngine = Depends(get_permission_engine)
) -> RelationshipService:
    return RelationshipService(store, engine)


@router.get("/pro/clients/{client_id}/permissions", response_model=ProClientPermissionsResponse)
async def get_client_permissions_for_professional(
    client_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: RelationshipService = Depends(get_relationship_service)
):
    """Permissions the calling professional holds on one client"""
    return service.get_professional_client_view(user_data["id"], client_id)


@router.post("/relationships/{relationship_id}/end", response_model=EndRelationshipResponse)
async def end_relationship(
    relationship_id: str,
    user_data: Dict = Depends(get_current_user_id),
    service: RelationshipService = Depends(get_relationship_service)
):
    """End a relationship; revokes every permission it held"""
    return service.end_relationship(relationship_id, user_data)

from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user_id, get_permission_engine, get_permission_store
from app.database.permission_store import PermissionStore
from app.modules.invitations.schemas import (
    InvitationAccept,
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationDetailsResponse,
    InvitationResponse,
)
from app.modules.invitations.service import InvitationService
from app.modules.permissions.service import PermissionEngine
from typing import Dict

router = APIRouter(prefix="/invitations", tags=["invitations"])


def get_invitation_service(
    store: PermissionStore = Depends(get_permission_store),
    engine: PermissionEngine = Depends(get_permission_engine)
) -> InvitationService:
    return InvitationService(store, engine)


@router.post("", response_model=InvitationResponse, status_code=201)
async def create_invitation(
    invitation_data: InvitationCreate,
    user_data: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service)
):
    """Invite a client, offering a set of permissions"""
    return service.create_invitation(user_data["id"], invitation_data)


@router.get("/{token}", response_model=InvitationDetailsResponse)
async def get_invitation(
    token: str,
    service: InvitationService = Depends(get_invitation_service)
):
    """Invitation details by token (no authentication; the token is the credential)"""
    return service.get_invitation_details(token)


@router.post("/{token}/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    token: str,
    accept_data: InvitationAccept,
    user_data: Dict = Depends(get_current_user_id),
    service: InvitationService = Depends(get_invitation_service)
):
    """Accept an invitation, approving and rejecting offered permissions"""
    return service.accept_invitation(token, user_data["id"], accept_data)

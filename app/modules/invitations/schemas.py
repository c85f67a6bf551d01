from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal
from datetime import datetime

from app.modules.permissions.schemas import PermissionTransfer


InvitationStatus = Literal["pending", "accepted", "cancelled", "expired"]


class Invitation(BaseModel):
    id: str
    token: str
    professional_id: str
    client_email: str
    role_type: str
    status: InvitationStatus
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvitationPermission(BaseModel):
    invitation_id: str
    permission_slug: str
    requested_at: Optional[datetime] = None


class InvitationCreate(BaseModel):
    client_email: EmailStr
    role_type: Literal["nutritionist", "trainer", "coach"]
    permission_slugs: Optional[List[str]] = None  # None → role defaults


class InvitationResponse(BaseModel):
    id: str
    token: str
    client_email: str
    role_type: str
    status: str
    expires_at: Optional[datetime] = None
    permission_slugs: List[str]


class InvitationProfessional(BaseModel):
    id: str
    name: str


class InvitationPermissionOffer(BaseModel):
    slug: str
    display_name: str
    description: Optional[str] = None
    category: str
    permission_type: str
    is_exclusive: bool
    requested_at: Optional[datetime] = None


class InvitationDetailsResponse(BaseModel):
    invitation: InvitationResponse
    professional: InvitationProfessional
    permissions: List[InvitationPermissionOffer]


class InvitationAccept(BaseModel):
    approved: List[str] = Field(default_factory=list)
    rejected: List[str] = Field(default_factory=list)


class InvitationAcceptResponse(BaseModel):
    success: bool = True
    relationship_id: str
    approved_count: int
    rejected_count: int
    transfers: List[PermissionTransfer] = Field(default_factory=list)

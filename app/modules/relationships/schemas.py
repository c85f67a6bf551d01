from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

from app.modules.permissions.schemas import PermissionDefinition


RelationshipStatus = Literal["active", "ended", "pending"]


class Relationship(BaseModel):
    id: str
    professional_id: str
    client_id: str
    role_type: str
    status: RelationshipStatus
    granted_permissions: List[str] = Field(default_factory=list)
    permissions_version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PendingRequestSummary(BaseModel):
    permission_slug: str
    requested_at: Optional[datetime] = None
    message: Optional[str] = None


class QuickActionState(BaseModel):
    slug: str
    label: str
    state: Literal["granted", "pending", "missing"]


class ProClientPermissionsResponse(BaseModel):
    relationship_id: str
    role_type: str
    relationship_status: str
    granted_permissions: List[str]
    pending_permissions: List[str]
    pending_requests: List[PendingRequestSummary]
    permission_definitions: List[PermissionDefinition]
    quick_actions: List[QuickActionState]


class EndRelationshipResponse(BaseModel):
    relationship_id: str
    status: str
    revoked_permissions: List[str]

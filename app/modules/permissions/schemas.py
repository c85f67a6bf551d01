from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Literal
from datetime import datetime

from app.modules.audit.schemas import AuditEventCreate


PermissionCategory = Literal["nutrition", "workouts", "weight", "photos", "checkins", "fasting", "profile"]
GrantedBy = Literal["client", "professional", "admin", "system"]


class PermissionDefinition(BaseModel):
    id: Optional[str] = None
    slug: str
    display_name: str
    description: Optional[str] = None
    category: PermissionCategory
    permission_type: Literal["read", "write"]
    is_exclusive: bool = False
    is_enabled: bool = True
    sort_order: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PermissionUpdateRequest(BaseModel):
    grant: List[str] = Field(default_factory=list)
    revoke: List[str] = Field(default_factory=list)
    expected_version: Optional[int] = None  # Version token from the read model; stale → 409

    @model_validator(mode="after")
    def require_grant_or_revoke(self):
        if not self.grant and not self.revoke:
            raise ValueError("At least one of grant or revoke must be provided")
        return self


class PermissionTransfer(BaseModel):
    permission: str
    previous_holder_id: str  # relationship id of the previous holder
    previous_holder_name: str = "Unknown"


class PermissionUpdateResult(BaseModel):
    relationship_id: str
    granted_permissions: List[str]
    version: int
    transfers: List[PermissionTransfer] = Field(default_factory=list)


class RelationshipWrite(BaseModel):
    """New grant set (and optionally status) for one relationship, conditioned on its version."""
    relationship_id: str
    expected_version: int
    granted_permissions: List[str]
    status: Optional[str] = None


class VersionGuard(BaseModel):
    """Read-only version check on a sibling relationship."""
    relationship_id: str
    expected_version: int


class ExclusiveHolder(BaseModel):
    relationship_id: str
    professional_id: str
    professional_name: str = "Unknown"


class CategoryCount(BaseModel):
    category: PermissionCategory
    label: str
    granted: int
    total: int


class RelationshipPermissions(BaseModel):
    relationship_id: str
    professional_id: str
    professional_name: str = "Unknown"
    role_type: str
    status: str
    granted_permissions: List[str]
    version: int
    categories: List[CategoryCount] = Field(default_factory=list)


class ClientPermissionsResponse(BaseModel):
    relationships: List[RelationshipPermissions]
    permission_definitions: List[PermissionDefinition]


class PermissionCategoryGroup(BaseModel):
    category: PermissionCategory
    label: str
    permissions: List[PermissionDefinition]


class ExclusivityUpdate(BaseModel):
    is_exclusive: bool
    reason: str


class ExclusivityConflict(BaseModel):
    client_id: str
    grant_count: int
    relationship_ids: List[str]


class ExclusivityUpdateResponse(BaseModel):
    permission_slug: str
    is_exclusive: bool
    previous_is_exclusive: bool
    message: str


class InvitationClaim(BaseModel):
    """Invitation consumed in the same commit as its approved grants."""
    invitation_id: str
    relationship_id: str
    client_id: str
    declined: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    audit_event: AuditEventCreate

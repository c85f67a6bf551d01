from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Literal
from datetime import datetime


AuditEventType = Literal[
    "grant", "revoke", "transfer", "policy_change",
    "invitation_accept", "request_approve", "request_deny"
]
ActorType = Literal["client", "professional", "admin", "system"]


class Actor(BaseModel):
    """Who is performing a permission change."""
    actor_type: ActorType
    actor_id: str
    reason: Optional[str] = None


class AuditEventCreate(BaseModel):
    event_type: AuditEventType
    actor_type: ActorType
    actor_id: str
    target_client_id: Optional[str] = None
    target_relationship_id: Optional[str] = None
    target_professional_id: Optional[str] = None
    permission_slug: Optional[str] = None
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AuditLogEntry(AuditEventCreate):
    id: str
    created_at: datetime

    class Config:
        from_attributes = True

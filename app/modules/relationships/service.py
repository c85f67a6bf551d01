from typing import Dict
import logging

from app.core.exceptions import RelationshipNotActive, RelationshipNotFound, Unauthorized
from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import Actor, AuditEventCreate
from app.modules.permissions.read_model import quick_action_states
from app.modules.permissions.service import PermissionEngine
from app.modules.relationships.schemas import (
    EndRelationshipResponse,
    PendingRequestSummary,
    ProClientPermissionsResponse,
)

logger = logging.getLogger(__name__)


class RelationshipService:
    def __init__(self, store: PermissionStore, engine: PermissionEngine):
        self.store = store
        self.engine = engine

    def get_professional_client_view(self, professional_id: str, client_id: str) -> ProClientPermissionsResponse:
        """What a professional may do for one client: grants, pending asks and quick-action states"""
        relationship = self.store.find_relationship(professional_id, client_id, status="active")
        if not relationship:
            raise RelationshipNotFound()

        definitions = self.store.list_permission_definitions(enabled_only=True)
        pending = self.store.list_permission_requests(relationship_id=relationship.id, status="pending")
        pending_slugs = [r.permission_slug for r in pending]

        return ProClientPermissionsResponse(
            relationship_id=relationship.id,
            role_type=relationship.role_type,
            relationship_status=relationship.status,
            granted_permissions=sorted(relationship.granted_permissions),
            pending_permissions=pending_slugs,
            pending_requests=[
                PendingRequestSummary(
                    permission_slug=r.permission_slug,
                    requested_at=r.requested_at,
                    message=r.message
                )
                for r in pending
            ],
            permission_definitions=definitions,
            quick_actions=quick_action_states(
                relationship.granted_permissions,
                pending_slugs,
                enabled_slugs=[d.slug for d in definitions]
            )
        )

    def end_relationship(self, relationship_id: str, user_data: Dict) -> EndRelationshipResponse:
        """Either party ends the relationship; all grants go with it and pending requests are denied"""
        relationship = self.store.get_relationship(relationship_id)
        if not relationship:
            raise RelationshipNotFound()
        user_id = user_data["id"]
        if user_id == relationship.client_id:
            actor = Actor(actor_type="client", actor_id=user_id)
        elif user_id == relationship.professional_id:
            actor = Actor(actor_type="professional", actor_id=user_id)
        else:
            raise Unauthorized("Only a party to the relationship can end it")
        if relationship.status != "active":
            raise RelationshipNotActive()

        self.engine.revoke_all(
            relationship.id,
            actor=actor,
            new_status="ended",
            expected_version=relationship.permissions_version
        )

        denied = []
        for request in self.store.list_permission_requests(relationship_id=relationship.id, status="pending"):
            if self.store.resolve_permission_request(request.id, "denied"):
                denied.append(AuditEventCreate(
                    event_type="request_deny",
                    actor_type=actor.actor_type,
                    actor_id=actor.actor_id,
                    target_client_id=relationship.client_id,
                    target_relationship_id=relationship.id,
                    target_professional_id=relationship.professional_id,
                    permission_slug=request.permission_slug,
                    new_state={"request_id": request.id, "status": "denied"},
                    metadata={"reason": "relationship_ended"}
                ))
        self.store.record_audit_events(denied)

        logger.info(
            f"Relationship {relationship.id} ended by {actor.actor_type} {actor.actor_id}; "
            f"{len(relationship.granted_permissions)} permissions revoked, {len(denied)} requests denied"
        )
        return EndRelationshipResponse(
            relationship_id=relationship.id,
            status="ended",
            revoked_permissions=sorted(relationship.granted_permissions)
        )

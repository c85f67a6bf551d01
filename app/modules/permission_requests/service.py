from typing import List
import logging

from app.core.exceptions import (
    RelationshipNotActive,
    RelationshipNotFound,
    RequestAlreadyResolved,
    RequestNotFound,
    Unauthorized,
)
from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import Actor, AuditEventCreate
from app.modules.permission_requests.schemas import (
    ClientPermissionRequestsResponse,
    PermissionRequestDetails,
    PermissionRequestResult,
    PermissionRequestRespondResponse,
    PermissionRequestsCreate,
    PermissionRequestsCreateResponse,
)
from app.modules.permissions.service import PermissionEngine

logger = logging.getLogger(__name__)


class PermissionRequestService:
    def __init__(self, store: PermissionStore, engine: PermissionEngine):
        self.store = store
        self.engine = engine

    def create_requests(self, professional_id: str, request_data: PermissionRequestsCreate) -> PermissionRequestsCreateResponse:
        """
        Ask the client for additional permissions on an active relationship.
        Each slug is evaluated on its own; one bad slug does not fail the others.
        """
        relationship = self.store.get_relationship(request_data.relationship_id)
        if not relationship:
            raise RelationshipNotFound()
        if relationship.professional_id != professional_id:
            raise Unauthorized("You can only request permissions on your own relationships")
        if relationship.status != "active":
            raise RelationshipNotActive()

        enabled = {d.slug for d in self.store.list_permission_definitions(enabled_only=True)}
        granted = set(relationship.granted_permissions)
        pending = {
            r.permission_slug
            for r in self.store.list_permission_requests(relationship_id=relationship.id, status="pending")
        }
        message = (request_data.message or "").strip() or None

        results: List[PermissionRequestResult] = []
        seen = set()
        for slug in request_data.permission_slugs:
            if slug in seen:
                continue
            seen.add(slug)
            if slug not in enabled:
                results.append(PermissionRequestResult(slug=slug, success=False, error="Invalid permission"))
                continue
            if slug in granted:
                results.append(PermissionRequestResult(slug=slug, success=False, error="Permission already granted"))
                continue
            if slug in pending:
                results.append(PermissionRequestResult(slug=slug, success=False, error="Request already pending"))
                continue
            created = self.store.create_permission_request(
                relationship.id, relationship.client_id, slug, message=message
            )
            if not created:
                # Lost a race with a concurrent request for the same slug
                results.append(PermissionRequestResult(slug=slug, success=False, error="Request already pending"))
                continue
            pending.add(slug)
            results.append(PermissionRequestResult(slug=slug, success=True, request_id=created.id))

        created_count = sum(1 for r in results if r.success)
        logger.info(
            f"Professional {professional_id} requested {created_count} permissions "
            f"on relationship {relationship.id}"
        )
        return PermissionRequestsCreateResponse(
            success=created_count > 0,
            created_count=created_count,
            failed_count=len(results) - created_count,
            results=results
        )

    def respond(self, request_id: str, client_id: str, action: str) -> PermissionRequestRespondResponse:
        """Client approves or denies one pending request"""
        request = self.store.get_permission_request(request_id)
        if not request or request.client_id != client_id:
            raise RequestNotFound()
        if request.status != "pending":
            raise RequestAlreadyResolved()

        actor = Actor(actor_type="client", actor_id=client_id)
        if action == "approve":
            self.engine.grant_with_retry(
                request.relationship_id,
                [request.permission_slug],
                actor=actor,
                granted_by="client",
                resolve_request_id=request.id
            )
            return PermissionRequestRespondResponse(success=True, action="approved")

        if not self.store.resolve_permission_request(request.id, "denied"):
            raise RequestAlreadyResolved()
        relationship = self.store.get_relationship(request.relationship_id)
        self.store.record_audit_events([AuditEventCreate(
            event_type="request_deny",
            actor_type=actor.actor_type,
            actor_id=actor.actor_id,
            target_client_id=client_id,
            target_relationship_id=request.relationship_id,
            target_professional_id=relationship.professional_id if relationship else None,
            permission_slug=request.permission_slug,
            new_state={"request_id": request.id, "status": "denied"}
        )])
        return PermissionRequestRespondResponse(success=True, action="denied")

    def list_client_requests(self, client_id: str) -> ClientPermissionRequestsResponse:
        """Pending requests addressed to the client, with professional names and definition details"""
        requests = self.store.list_permission_requests(client_id=client_id, status="pending")
        if not requests:
            return ClientPermissionRequestsResponse(requests=[])

        definitions = {d.slug: d for d in self.store.list_permission_definitions(enabled_only=False)}
        relationships = {r.id: r for r in self.store.list_client_relationships(client_id)}
        names = self.store.get_display_names([r.professional_id for r in relationships.values()])

        details = []
        for request in requests:
            definition = definitions.get(request.permission_slug)
            if not definition:
                continue
            relationship = relationships.get(request.relationship_id)
            details.append(PermissionRequestDetails(
                id=request.id,
                relationship_id=request.relationship_id,
                permission_slug=request.permission_slug,
                permission_name=definition.display_name,
                permission_description=definition.description,
                category=definition.category,
                is_exclusive=definition.is_exclusive,
                requested_at=request.requested_at,
                status=request.status,
                message=request.message,
                professional_name=names.get(relationship.professional_id, "Unknown") if relationship else "Unknown"
            ))
        return ClientPermissionRequestsResponse(requests=details)

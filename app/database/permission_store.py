"""
Supabase-backed store for the permission engine.

Owns every read and write of permission_definitions, professional_client_relationships,
permission_requests, invitations, invitation_permissions, permission_audit_log and the
profiles display-name lookup. Multi-row writes go through RPCs defined in
supabase/migrations/001_permission_engine.sql: apply_permission_changes is the transaction
boundary for grant, revoke, transfer and invitation acceptance; apply_policy_change and
create_invitation_with_permissions keep their paired inserts together.
"""

from datetime import datetime, timezone
from postgrest.exceptions import APIError
from supabase import Client
from typing import Dict, Iterable, List, Optional, Sequence
import logging

from app.core.exceptions import (
    ExclusivityViolation,
    InvitationInvalid,
    PermissionConflict,
    RequestAlreadyResolved,
    StoreError,
)
from app.modules.audit.schemas import AuditEventCreate, AuditLogEntry
from app.modules.invitations.schemas import Invitation, InvitationPermission
from app.modules.permission_requests.schemas import PermissionRequest
from app.modules.permissions.schemas import InvitationClaim, PermissionDefinition, RelationshipWrite, VersionGuard
from app.modules.relationships.schemas import Relationship

logger = logging.getLogger(__name__)

RELATIONSHIPS_TABLE = "professional_client_relationships"

# SQLSTATEs raised by apply_permission_changes
SQLSTATE_CONFLICT = "40001"
SQLSTATE_REQUEST_NOT_PENDING = "P0409"
SQLSTATE_INVITATION_NOT_PENDING = "P0410"
SQLSTATE_EXCLUSIVITY_VIOLATION = "P0422"
SQLSTATE_UNIQUE_VIOLATION = "23505"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PermissionStore:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    # Permission catalog

    def list_permission_definitions(self, enabled_only: bool = True) -> List[PermissionDefinition]:
        """List catalog rows ordered by sort_order"""
        try:
            query = self.supabase.table("permission_definitions").select("*")
            if enabled_only:
                query = query.eq("is_enabled", True)
            result = query.order("sort_order").execute()
            return [PermissionDefinition(**row) for row in (result.data or [])]
        except APIError as e:
            raise self._store_error("list permission definitions", e)

    def get_permission_definition(self, slug: str) -> Optional[PermissionDefinition]:
        try:
            result = self.supabase.table("permission_definitions")\
                .select("*")\
                .eq("slug", slug)\
                .limit(1)\
                .execute()
            return PermissionDefinition(**result.data[0]) if result.data else None
        except APIError as e:
            raise self._store_error("get permission definition", e)

    def commit_policy_change(
        self,
        slug: str,
        is_exclusive: bool,
        audit_events: List[AuditEventCreate]
    ) -> Optional[PermissionDefinition]:
        """Flip is_exclusive and record its audit rows in one transaction. None if the slug is unknown."""
        try:
            result = self.supabase.rpc("apply_policy_change", {
                "p_slug": slug,
                "p_is_exclusive": is_exclusive,
                "p_audit": [e.model_dump(mode="json") for e in audit_events]
            }).execute()
            return PermissionDefinition(**result.data) if result.data else None
        except APIError as e:
            raise self._store_error("apply policy change", e)

    # Relationships

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        try:
            result = self.supabase.table(RELATIONSHIPS_TABLE)\
                .select("*")\
                .eq("id", relationship_id)\
                .limit(1)\
                .execute()
            return Relationship(**result.data[0]) if result.data else None
        except APIError as e:
            raise self._store_error("get relationship", e)

    def list_client_relationships(
        self,
        client_id: str,
        statuses: Sequence[str] = ("active",)
    ) -> List[Relationship]:
        """All relationships of one client in the given statuses, oldest first"""
        try:
            result = self.supabase.table(RELATIONSHIPS_TABLE)\
                .select("*")\
                .eq("client_id", client_id)\
                .in_("status", list(statuses))\
                .order("created_at")\
                .execute()
            return [Relationship(**row) for row in (result.data or [])]
        except APIError as e:
            raise self._store_error("list client relationships", e)

    def find_relationship(
        self,
        professional_id: str,
        client_id: str,
        status: str = "active"
    ) -> Optional[Relationship]:
        try:
            result = self.supabase.table(RELATIONSHIPS_TABLE)\
                .select("*")\
                .eq("professional_id", professional_id)\
                .eq("client_id", client_id)\
                .eq("status", status)\
                .limit(1)\
                .execute()
            return Relationship(**result.data[0]) if result.data else None
        except APIError as e:
            raise self._store_error("find relationship", e)

    def create_relationship(
        self,
        professional_id: str,
        client_id: str,
        role_type: str,
        status: str = "active"
    ) -> Relationship:
        """Insert a relationship with an empty grant set"""
        try:
            result = self.supabase.table(RELATIONSHIPS_TABLE).insert({
                "professional_id": professional_id,
                "client_id": client_id,
                "role_type": role_type,
                "status": status,
                "granted_permissions": [],
                "permissions_version": 0
            }).execute()
            if not result.data:
                raise StoreError("Failed to create relationship")
            return Relationship(**result.data[0])
        except APIError as e:
            raise self._store_error("create relationship", e)

    def list_relationships_holding(self, permission_slug: str) -> List[Relationship]:
        """Active relationships whose grant set contains the slug"""
        try:
            result = self.supabase.table(RELATIONSHIPS_TABLE)\
                .select("*")\
                .eq("status", "active")\
                .contains("granted_permissions", [permission_slug])\
                .execute()
            return [Relationship(**row) for row in (result.data or [])]
        except APIError as e:
            raise self._store_error("list relationships holding permission", e)

    def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = list({uid for uid in user_ids if uid})
        if not ids:
            return {}
        try:
            result = self.supabase.table("profiles")\
                .select("id, display_name")\
                .in_("id", ids)\
                .execute()
            return {p["id"]: p["display_name"] for p in (result.data or []) if p.get("display_name")}
        except APIError as e:
            logger.warning(f"Error fetching display names: {e}")
            return {}

    def commit_permission_changes(
        self,
        writes: List[RelationshipWrite],
        guards: List[VersionGuard],
        audit_events: List[AuditEventCreate],
        request_id: Optional[str] = None,
        request_status: Optional[str] = None,
        invitation_claim: Optional[InvitationClaim] = None
    ) -> Dict[str, int]:
        """
        Apply grant-set writes as one transaction, conditioned on every expected version.
        A pending request and an invitation claim, when given, are resolved in the same transaction.
        Returns {relationship_id: new_version} for the written relationships.
        """
        invitation = invitation_claim.model_dump(mode="json", exclude={"audit_event"}) if invitation_claim else None
        try:
            result = self.supabase.rpc("apply_permission_changes", {
                "p_writes": [w.model_dump(mode="json") for w in writes],
                "p_guards": [g.model_dump(mode="json") for g in guards],
                "p_audit": [e.model_dump(mode="json") for e in audit_events],
                "p_request_id": request_id,
                "p_request_status": request_status,
                "p_invitation": invitation
            }).execute()
        except APIError as e:
            if e.code in (SQLSTATE_CONFLICT, SQLSTATE_UNIQUE_VIOLATION):
                logger.warning(f"Permission commit rejected by version check: {e.message}")
                raise PermissionConflict()
            if e.code == SQLSTATE_REQUEST_NOT_PENDING:
                raise RequestAlreadyResolved()
            if e.code == SQLSTATE_INVITATION_NOT_PENDING:
                raise InvitationInvalid("Invitation is no longer valid")
            if e.code == SQLSTATE_EXCLUSIVITY_VIOLATION:
                # Message carries "client_id:slug"
                client_id, _, slug = (e.message or ":").partition(":")
                raise ExclusivityViolation(client_id, slug)
            raise self._store_error("commit permission changes", e)
        versions = result.data or {}
        return {rel_id: int(version) for rel_id, version in versions.items()}

    # Permission requests

    def get_permission_request(self, request_id: str) -> Optional[PermissionRequest]:
        try:
            result = self.supabase.table("permission_requests")\
                .select("*")\
                .eq("id", request_id)\
                .limit(1)\
                .execute()
            return PermissionRequest(**result.data[0]) if result.data else None
        except APIError as e:
            raise self._store_error("get permission request", e)

    def list_permission_requests(
        self,
        relationship_id: Optional[str] = None,
        client_id: Optional[str] = None,
        status: Optional[str] = "pending"
    ) -> List[PermissionRequest]:
        try:
            query = self.supabase.table("permission_requests").select("*")
            if relationship_id:
                query = query.eq("relationship_id", relationship_id)
            if client_id:
                query = query.eq("client_id", client_id)
            if status:
                query = query.eq("status", status)
            result = query.order("requested_at").execute()
            return [PermissionRequest(**row) for row in (result.data or [])]
        except APIError as e:
            raise self._store_error("list permission requests", e)

    def create_permission_request(
        self,
        relationship_id: str,
        client_id: str,
        permission_slug: str,
        status: str = "pending",
        message: Optional[str] = None
    ) -> Optional[PermissionRequest]:
        """Insert a request. Returns None when a pending request for the pair already exists."""
        insert_data = {
            "relationship_id": relationship_id,
            "client_id": client_id,
            "permission_slug": permission_slug,
            "status": status
        }
        if message:
            insert_data["message"] = message
        try:
            result = self.supabase.table("permission_requests").insert(insert_data).execute()
            if not result.data:
                raise StoreError("Failed to create permission request")
            return PermissionRequest(**result.data[0])
        except APIError as e:
            if e.code == SQLSTATE_UNIQUE_VIOLATION:
                return None
            raise self._store_error("create permission request", e)

    def resolve_permission_request(self, request_id: str, status: str) -> bool:
        """Move a pending request to a terminal status. False if it was no longer pending."""
        try:
            result = self.supabase.table("permission_requests")\
                .update({"status": status, "responded_at": _now_iso()})\
                .eq("id", request_id)\
                .eq("status", "pending")\
                .execute()
            return bool(result.data)
        except APIError as e:
            raise self._store_error("resolve permission request", e)

    # Invitations

    def create_invitation(self, invitation_data: Dict, permission_slugs: List[str]) -> Invitation:
        """Insert the invitation and its offered slugs in one transaction"""
        try:
            result = self.supabase.rpc("create_invitation_with_permissions", {
                "p_invitation": invitation_data,
                "p_permission_slugs": permission_slugs
            }).execute()
            if not result.data:
                raise StoreError("Failed to create invitation")
            return Invitation(**result.data)
        except APIError as e:
            raise self._store_error("create invitation", e)

    def get_invitation_by_token(self, token: str) -> Optional[Invitation]:
        try:
            result = self.supabase.table("invitations")\
                .select("*")\
                .eq("token", token)\
                .limit(1)\
                .execute()
            return Invitation(**result.data[0]) if result.data else None
        except APIError as e:
            raise self._store_error("get invitation", e)

    def list_invitation_permissions(self, invitation_id: str) -> List[InvitationPermission]:
        try:
            result = self.supabase.table("invitation_permissions")\
                .select("invitation_id, permission_slug, requested_at")\
                .eq("invitation_id", invitation_id)\
                .execute()
            return [InvitationPermission(**row) for row in (result.data or [])]
        except APIError as e:
            raise self._store_error("list invitation permissions", e)

    # Audit log

    def record_audit_events(self, events: List[AuditEventCreate]) -> None:
        if not events:
            return
        try:
            self.supabase.rpc("log_permission_events", {
                "p_events": [e.model_dump(mode="json") for e in events]
            }).execute()
        except APIError as e:
            raise self._store_error("record audit events", e)

    def list_audit_events(
        self,
        client_id: Optional[str] = None,
        relationship_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        try:
            query = self.supabase.table("permission_audit_log").select("*")
            if client_id:
                query = query.eq("target_client_id", client_id)
            if relationship_id:
                query = query.eq("target_relationship_id", relationship_id)
            if event_type:
                query = query.eq("event_type", event_type)
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [AuditLogEntry(**row) for row in (result.data or [])]
        except APIError as e:
            raise self._store_error("list audit events", e)

    def _store_error(self, operation: str, error: APIError) -> StoreError:
        logger.error(f"Supabase error during {operation}: {error.code} {error.message}")
        return StoreError(f"Failed to {operation}")

from fastapi import HTTPException
from typing import Dict, Iterable, List, Optional
import logging

from app.config import settings
from app.core.exceptions import (
    ExclusivityViolation,
    InvalidPermission,
    PermissionConflict,
    RelationshipNotActive,
    RelationshipNotFound,
)
from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import Actor, AuditEventCreate
from app.modules.permissions.read_model import summarize_categories
from app.modules.permissions.schemas import (
    ClientPermissionsResponse,
    ExclusiveHolder,
    ExclusivityConflict,
    ExclusivityUpdateResponse,
    GrantedBy,
    InvitationClaim,
    PermissionDefinition,
    PermissionTransfer,
    PermissionUpdateResult,
    RelationshipPermissions,
    RelationshipWrite,
    VersionGuard,
)
from app.modules.relationships.schemas import Relationship

logger = logging.getLogger(__name__)


def _unique(slugs: Iterable[str]) -> List[str]:
    """Drop duplicates, keep first-seen order"""
    seen = set()
    result = []
    for slug in slugs:
        if slug not in seen:
            seen.add(slug)
            result.append(slug)
    return result


class PermissionEngine:
    """
    Grant / revoke / transfer of client permissions on one relationship.

    Every mutation reads the target relationship (and, for exclusive grants, all active
    sibling relationships of the same client), computes the resulting grant sets, and
    commits them through the store conditioned on the versions it read. A stale read
    surfaces as PermissionConflict with nothing persisted.
    """

    def __init__(self, store: PermissionStore):
        self.store = store

    def _get_relationship(self, relationship_id: str) -> Relationship:
        relationship = self.store.get_relationship(relationship_id)
        if not relationship:
            raise RelationshipNotFound()
        return relationship

    def _load_catalog(self) -> Dict[str, PermissionDefinition]:
        return {d.slug: d for d in self.store.list_permission_definitions(enabled_only=False)}

    def _validate_grants(self, grant: List[str], catalog: Dict[str, PermissionDefinition]) -> None:
        invalid = [slug for slug in grant if slug not in catalog or not catalog[slug].is_enabled]
        if invalid:
            raise InvalidPermission(f"Unknown or disabled permission: {', '.join(invalid)}", slugs=invalid)

    def _exclusivity_violation(self, client_id: str, slug: str, holders: List[Relationship]) -> None:
        error = ExclusivityViolation(client_id, slug, [h.id for h in holders])
        logger.error(f"Data integrity fault: {error}")
        raise error

    def find_exclusive_holder(
        self,
        client_id: str,
        permission_slug: str,
        exclude_relationship_id: Optional[str] = None
    ) -> Optional[ExclusiveHolder]:
        """Current holder of an exclusive slug among the client's active relationships. Read-only."""
        definition = self.store.get_permission_definition(permission_slug)
        if not definition or not definition.is_exclusive:
            return None
        holders = [
            r for r in self.store.list_client_relationships(client_id)
            if r.id != exclude_relationship_id and permission_slug in r.granted_permissions
        ]
        if not holders:
            return None
        if len(holders) > 1:
            self._exclusivity_violation(client_id, permission_slug, holders)
        holder = holders[0]
        names = self.store.get_display_names([holder.professional_id])
        return ExclusiveHolder(
            relationship_id=holder.id,
            professional_id=holder.professional_id,
            professional_name=names.get(holder.professional_id, "Unknown")
        )

    def update_permissions(
        self,
        relationship_id: str,
        grant: Optional[List[str]] = None,
        revoke: Optional[List[str]] = None,
        *,
        actor: Actor,
        expected_version: Optional[int] = None,
        granted_by: GrantedBy = "client",
        resolve_request_id: Optional[str] = None,
        invitation_claim: Optional[InvitationClaim] = None
    ) -> PermissionUpdateResult:
        """
        Apply a grant/revoke set to one relationship.

        Exclusive slugs already held by a sibling relationship are transferred: removed from the
        holder and added to the target in the same commit. When resolve_request_id is given the
        pending request is marked approved in that same commit; an invitation_claim is consumed
        (status, declined rows, audit) in that commit too.
        """
        grant = _unique(grant or [])
        revoke = _unique(revoke or [])
        overlap = set(grant) & set(revoke)
        if overlap:
            raise InvalidPermission(
                f"Cannot grant and revoke the same permission: {', '.join(sorted(overlap))}",
                slugs=sorted(overlap)
            )

        target = self._get_relationship(relationship_id)
        if expected_version is not None and expected_version != target.permissions_version:
            logger.warning(
                f"Stale version for relationship {target.id}: "
                f"expected {expected_version}, found {target.permissions_version}"
            )
            raise PermissionConflict()
        if grant and target.status != "active":
            raise RelationshipNotActive()

        catalog = self._load_catalog() if grant else {}
        self._validate_grants(grant, catalog)

        current = set(target.granted_permissions)
        new_granted = (current - set(revoke)) | set(grant)

        exclusive_grants = [slug for slug in grant if catalog[slug].is_exclusive]
        siblings: List[Relationship] = []
        if exclusive_grants:
            siblings = [
                r for r in self.store.list_client_relationships(target.client_id)
                if r.id != target.id
            ]

        # Sibling grant sets after transfer, keyed by relationship id
        sibling_sets: Dict[str, set] = {}
        transferred: Dict[str, Relationship] = {}
        for slug in exclusive_grants:
            holders = [r for r in siblings if slug in r.granted_permissions]
            if len(holders) > 1 or (holders and slug in current):
                self._exclusivity_violation(
                    target.client_id, slug, holders + ([target] if slug in current else [])
                )
            if holders:
                holder = holders[0]
                sibling_sets.setdefault(holder.id, set(holder.granted_permissions)).discard(slug)
                transferred[slug] = holder

        added = sorted(new_granted - current)
        removed = sorted(current - new_granted)
        target_changed = bool(added or removed)

        if not target_changed and not transferred and resolve_request_id is None and invitation_claim is None:
            return PermissionUpdateResult(
                relationship_id=target.id,
                granted_permissions=sorted(current),
                version=target.permissions_version
            )

        names = self.store.get_display_names([h.professional_id for h in transferred.values()])
        transfers = [
            PermissionTransfer(
                permission=slug,
                previous_holder_id=holder.id,
                previous_holder_name=names.get(holder.professional_id, "Unknown")
            )
            for slug, holder in transferred.items()
        ]

        writes = []
        guards = []
        if target_changed:
            writes.append(RelationshipWrite(
                relationship_id=target.id,
                expected_version=target.permissions_version,
                granted_permissions=sorted(new_granted)
            ))
        else:
            guards.append(VersionGuard(relationship_id=target.id, expected_version=target.permissions_version))
        for sibling in siblings:
            if sibling.id in sibling_sets:
                writes.append(RelationshipWrite(
                    relationship_id=sibling.id,
                    expected_version=sibling.permissions_version,
                    granted_permissions=sorted(sibling_sets[sibling.id])
                ))
            else:
                guards.append(VersionGuard(relationship_id=sibling.id, expected_version=sibling.permissions_version))

        events = self._build_audit_events(target, added, removed, transferred, actor, granted_by)
        if resolve_request_id:
            events.append(AuditEventCreate(
                event_type="request_approve",
                actor_type=actor.actor_type,
                actor_id=actor.actor_id,
                target_client_id=target.client_id,
                target_relationship_id=target.id,
                target_professional_id=target.professional_id,
                permission_slug=grant[0] if len(grant) == 1 else None,
                new_state={"request_id": resolve_request_id, "status": "approved"}
            ))
        if invitation_claim:
            events.append(invitation_claim.audit_event)

        versions = self.store.commit_permission_changes(
            writes,
            guards,
            events,
            request_id=resolve_request_id,
            request_status="approved" if resolve_request_id else None,
            invitation_claim=invitation_claim
        )

        for transfer in transfers:
            logger.info(
                f"Transferred {transfer.permission} for client {target.client_id} "
                f"from relationship {transfer.previous_holder_id} to {target.id}"
            )

        return PermissionUpdateResult(
            relationship_id=target.id,
            granted_permissions=sorted(new_granted),
            version=versions.get(target.id, target.permissions_version),
            transfers=transfers
        )

    def grant_with_retry(
        self,
        relationship_id: str,
        grant: List[str],
        *,
        actor: Actor,
        granted_by: GrantedBy = "client",
        resolve_request_id: Optional[str] = None,
        invitation_claim: Optional[InvitationClaim] = None
    ) -> PermissionUpdateResult:
        """Grant path for flows with no interactive confirmation; re-reads and retries on conflict"""
        attempts = max(1, settings.permission_conflict_retries)
        for attempt in range(1, attempts + 1):
            try:
                return self.update_permissions(
                    relationship_id,
                    grant=grant,
                    actor=actor,
                    granted_by=granted_by,
                    resolve_request_id=resolve_request_id,
                    invitation_claim=invitation_claim
                )
            except PermissionConflict:
                if attempt == attempts:
                    raise
                logger.info(f"Conflict granting on relationship {relationship_id}, retry {attempt}/{attempts - 1}")

    def revoke_all(
        self,
        relationship_id: str,
        *,
        actor: Actor,
        new_status: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> PermissionUpdateResult:
        """Clear a relationship's grant set, optionally changing its status in the same write"""
        target = self._get_relationship(relationship_id)
        if expected_version is not None and expected_version != target.permissions_version:
            raise PermissionConflict()
        removed = sorted(target.granted_permissions)
        write = RelationshipWrite(
            relationship_id=target.id,
            expected_version=target.permissions_version,
            granted_permissions=[],
            status=new_status
        )
        events = self._build_audit_events(target, [], removed, {}, actor, granted_by=actor.actor_type)
        versions = self.store.commit_permission_changes([write], [], events)
        return PermissionUpdateResult(
            relationship_id=target.id,
            granted_permissions=[],
            version=versions.get(target.id, target.permissions_version + 1)
        )

    def has_permission(self, professional_id: str, client_id: str, permission_slug: str) -> bool:
        relationship = self.store.find_relationship(professional_id, client_id, status="active")
        return bool(relationship and permission_slug in relationship.granted_permissions)

    def get_client_permissions(self, client_id: str) -> ClientPermissionsResponse:
        """Read model for the client's permission screen"""
        definitions = self.store.list_permission_definitions(enabled_only=True)
        relationships = self.store.list_client_relationships(client_id)
        names = self.store.get_display_names([r.professional_id for r in relationships])
        return ClientPermissionsResponse(
            relationships=[
                RelationshipPermissions(
                    relationship_id=r.id,
                    professional_id=r.professional_id,
                    professional_name=names.get(r.professional_id, "Unknown"),
                    role_type=r.role_type,
                    status=r.status,
                    granted_permissions=sorted(r.granted_permissions),
                    version=r.permissions_version,
                    categories=summarize_categories(definitions, r.granted_permissions)
                )
                for r in relationships
            ],
            permission_definitions=definitions
        )

    def _build_audit_events(
        self,
        target: Relationship,
        added: List[str],
        removed: List[str],
        transferred: Dict[str, Relationship],
        actor: Actor,
        granted_by: str
    ) -> List[AuditEventCreate]:
        events = []
        base = {
            "actor_type": actor.actor_type,
            "actor_id": actor.actor_id,
            "reason": actor.reason,
            "target_client_id": target.client_id,
        }
        for slug in added:
            holder = transferred.get(slug)
            if holder:
                events.append(AuditEventCreate(
                    event_type="transfer",
                    target_relationship_id=target.id,
                    target_professional_id=target.professional_id,
                    permission_slug=slug,
                    previous_state={"relationship_id": holder.id, "professional_id": holder.professional_id},
                    new_state={"relationship_id": target.id, "professional_id": target.professional_id},
                    metadata={"granted_by": granted_by},
                    **base
                ))
            else:
                events.append(AuditEventCreate(
                    event_type="grant",
                    target_relationship_id=target.id,
                    target_professional_id=target.professional_id,
                    permission_slug=slug,
                    previous_state={"status": "not_granted"},
                    new_state={"status": "granted"},
                    metadata={"granted_by": granted_by},
                    **base
                ))
        for slug in removed:
            events.append(AuditEventCreate(
                event_type="revoke",
                target_relationship_id=target.id,
                target_professional_id=target.professional_id,
                permission_slug=slug,
                previous_state={"status": "granted"},
                new_state={"status": "revoked"},
                **base
            ))
        return events


class PermissionCatalogService:
    def __init__(self, store: PermissionStore):
        self.store = store

    def list_definitions(self, include_disabled: bool = False) -> List[PermissionDefinition]:
        """List catalog rows ordered by sort_order"""
        return self.store.list_permission_definitions(enabled_only=not include_disabled)

    def check_exclusivity_conflicts(self, permission_slug: str) -> List[ExclusivityConflict]:
        """Clients where more than one active relationship holds the slug"""
        by_client: Dict[str, List[str]] = {}
        for relationship in self.store.list_relationships_holding(permission_slug):
            by_client.setdefault(relationship.client_id, []).append(relationship.id)
        conflicts = [
            ExclusivityConflict(client_id=client_id, grant_count=len(ids), relationship_ids=sorted(ids))
            for client_id, ids in by_client.items()
            if len(ids) > 1
        ]
        return sorted(conflicts, key=lambda c: (-c.grant_count, c.client_id))

    def set_exclusivity(self, permission_slug: str, is_exclusive: bool, actor: Actor) -> ExclusivityUpdateResponse:
        """Toggle is_exclusive on a catalog row; refuses to make a slug exclusive while duplicates exist"""
        if not actor.reason or len(actor.reason.strip()) < settings.admin_reason_min_length:
            raise HTTPException(
                status_code=400,
                detail=f"Admin actions require a reason of at least {settings.admin_reason_min_length} characters"
            )

        definition = self.store.get_permission_definition(permission_slug)
        if not definition:
            raise HTTPException(status_code=404, detail=f"Permission not found: {permission_slug}")

        if definition.is_exclusive == is_exclusive:
            return ExclusivityUpdateResponse(
                permission_slug=permission_slug,
                is_exclusive=is_exclusive,
                previous_is_exclusive=definition.is_exclusive,
                message="No change needed"
            )

        if is_exclusive:
            conflicts = self.check_exclusivity_conflicts(permission_slug)
            if conflicts:
                raise HTTPException(
                    status_code=409,
                    detail=f"Cannot enable exclusivity: {len(conflicts)} clients have multiple grants"
                )

        updated = self.store.commit_policy_change(permission_slug, is_exclusive, [AuditEventCreate(
            event_type="policy_change",
            actor_type=actor.actor_type,
            actor_id=actor.actor_id,
            permission_slug=permission_slug,
            previous_state={"is_exclusive": definition.is_exclusive},
            new_state={"is_exclusive": is_exclusive},
            reason=actor.reason,
            metadata={"action": "set_exclusive" if is_exclusive else "set_shared"}
        )])
        if not updated:
            raise HTTPException(status_code=404, detail=f"Permission not found: {permission_slug}")
        logger.info(f"Permission {permission_slug} exclusivity set to {is_exclusive} by {actor.actor_id}")

        return ExclusivityUpdateResponse(
            permission_slug=permission_slug,
            is_exclusive=is_exclusive,
            previous_is_exclusive=definition.is_exclusive,
            message="Exclusivity updated successfully"
        )

from datetime import datetime, timedelta, timezone
from typing import List
import logging
import secrets

from app.config import settings
from app.config.permissions_config import get_role_default_permissions
from app.core.exceptions import InvalidPermission, InvitationInvalid, Unauthorized
from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import Actor, AuditEventCreate
from app.modules.invitations.schemas import (
    Invitation,
    InvitationAccept,
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationDetailsResponse,
    InvitationPermissionOffer,
    InvitationProfessional,
    InvitationResponse,
)
from app.modules.permissions.schemas import InvitationClaim
from app.modules.permissions.service import PermissionEngine

logger = logging.getLogger(__name__)

DECLINED_MESSAGE = "Declined during invitation acceptance"


def _to_response(invitation: Invitation, permission_slugs: List[str]) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        token=invitation.token,
        client_email=invitation.client_email,
        role_type=invitation.role_type,
        status=invitation.status,
        expires_at=invitation.expires_at,
        permission_slugs=permission_slugs
    )


class InvitationService:
    def __init__(self, store: PermissionStore, engine: PermissionEngine):
        self.store = store
        self.engine = engine

    def create_invitation(self, professional_id: str, invitation_data: InvitationCreate) -> InvitationResponse:
        """Create an invitation offering a permission set; defaults to the role's defaults"""
        if invitation_data.permission_slugs is None:
            slugs = get_role_default_permissions(invitation_data.role_type)
        else:
            slugs = list(dict.fromkeys(invitation_data.permission_slugs))

        enabled = {d.slug for d in self.store.list_permission_definitions(enabled_only=True)}
        invalid = [s for s in slugs if s not in enabled]
        if invalid:
            raise InvalidPermission(f"Unknown or disabled permission: {', '.join(invalid)}", slugs=invalid)

        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.invitation_ttl_days)
        invitation = self.store.create_invitation({
            "token": secrets.token_urlsafe(32),
            "professional_id": professional_id,
            "client_email": str(invitation_data.client_email).lower(),
            "role_type": invitation_data.role_type,
            "status": "pending",
            "expires_at": expires_at.isoformat()
        }, slugs)
        logger.info(f"Invitation {invitation.id} created by {professional_id} offering {len(slugs)} permissions")
        return _to_response(invitation, slugs)

    def _get_valid_invitation(self, token: str) -> Invitation:
        invitation = self.store.get_invitation_by_token(token)
        if not invitation:
            raise InvitationInvalid("Invitation not found")
        if invitation.status != "pending":
            raise InvitationInvalid("Invitation is no longer valid")
        expires_at = invitation.expires_at
        if expires_at and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at and expires_at <= datetime.now(timezone.utc):
            raise InvitationInvalid("Invitation has expired", status_code=410)
        return invitation

    def get_invitation_details(self, token: str) -> InvitationDetailsResponse:
        """Public view of a pending invitation: who is inviting and what they ask for"""
        invitation = self._get_valid_invitation(token)
        offers = self.store.list_invitation_permissions(invitation.id)
        definitions = {d.slug: d for d in self.store.list_permission_definitions(enabled_only=True)}
        names = self.store.get_display_names([invitation.professional_id])

        permissions = []
        for offer in offers:
            definition = definitions.get(offer.permission_slug)
            if not definition:
                continue
            permissions.append(InvitationPermissionOffer(
                slug=definition.slug,
                display_name=definition.display_name,
                description=definition.description,
                category=definition.category,
                permission_type=definition.permission_type,
                is_exclusive=definition.is_exclusive,
                requested_at=offer.requested_at
            ))
        permissions.sort(key=lambda p: definitions[p.slug].sort_order)

        return InvitationDetailsResponse(
            invitation=_to_response(invitation, [o.permission_slug for o in offers]),
            professional=InvitationProfessional(
                id=invitation.professional_id,
                name=names.get(invitation.professional_id, "Unknown")
            ),
            permissions=permissions
        )

    def accept_invitation(self, token: str, client_id: str, accept_data: InvitationAccept) -> InvitationAcceptResponse:
        """
        Client accepts an invitation, approving some offered permissions and rejecting others.

        The approved grants, the declined rows, the invitation status and the audit entry are
        committed together; a failed commit leaves the invitation pending with nothing granted.
        """
        invitation = self._get_valid_invitation(token)
        if invitation.professional_id == client_id:
            raise Unauthorized("You cannot accept your own invitation")

        approved = list(dict.fromkeys(accept_data.approved))
        rejected = list(dict.fromkeys(accept_data.rejected))
        overlap = sorted(set(approved) & set(rejected))
        if overlap:
            raise InvalidPermission(
                f"Permissions cannot be both approved and rejected: {', '.join(overlap)}",
                slugs=overlap
            )

        offered = {o.permission_slug for o in self.store.list_invitation_permissions(invitation.id)}
        not_offered = sorted(set(approved + rejected) - offered)
        if not_offered:
            raise InvalidPermission(
                f"Permissions not offered by this invitation: {', '.join(not_offered)}",
                slugs=not_offered
            )

        relationship = self.store.find_relationship(invitation.professional_id, client_id, status="active")
        if not relationship:
            relationship = self.store.create_relationship(
                invitation.professional_id, client_id, invitation.role_type
            )

        actor = Actor(actor_type="client", actor_id=client_id)
        claim = InvitationClaim(
            invitation_id=invitation.id,
            relationship_id=relationship.id,
            client_id=client_id,
            declined=rejected,
            message=DECLINED_MESSAGE,
            audit_event=AuditEventCreate(
                event_type="invitation_accept",
                actor_type=actor.actor_type,
                actor_id=actor.actor_id,
                target_client_id=client_id,
                target_relationship_id=relationship.id,
                target_professional_id=invitation.professional_id,
                new_state={"approved": approved, "rejected": rejected},
                metadata={"invitation_id": invitation.id, "role_type": invitation.role_type}
            )
        )
        result = self.engine.grant_with_retry(
            relationship.id, approved, actor=actor, granted_by="client", invitation_claim=claim
        )

        logger.info(
            f"Invitation {invitation.id} accepted by {client_id}: "
            f"{len(approved)} approved, {len(rejected)} rejected, {len(result.transfers)} transferred"
        )
        return InvitationAcceptResponse(
            relationship_id=relationship.id,
            approved_count=len(approved),
            rejected_count=len(rejected),
            transfers=result.transfers
        )

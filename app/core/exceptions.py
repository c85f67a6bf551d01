"""
Permission engine error taxonomy.

Every error is an HTTPException so services can raise it directly and FastAPI
renders it; error_code lets callers branch without parsing the message.
"""

from fastapi import HTTPException, status
from typing import List, Optional


class PermissionEngineError(HTTPException):
    error_code = "permission_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.__class__.status_code, detail=detail)


class InvalidPermission(PermissionEngineError):
    """Unknown or disabled slug, or a malformed grant/revoke set. Caller bug, never retried."""
    error_code = "invalid_permission"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, slugs: Optional[List[str]] = None):
        super().__init__(detail)
        self.slugs = slugs or []


class Unauthorized(PermissionEngineError):
    error_code = "unauthorized"
    status_code = status.HTTP_403_FORBIDDEN


class RelationshipNotFound(PermissionEngineError):
    error_code = "relationship_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, detail: str = "Relationship not found"):
        super().__init__(detail)


class RelationshipNotActive(PermissionEngineError):
    error_code = "relationship_not_active"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Relationship is not active"):
        super().__init__(detail)


class PermissionConflict(PermissionEngineError):
    """Persisted state changed since it was read. Nothing was written; refetch and retry."""
    error_code = "permission_conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Permissions changed since they were loaded. Please refresh and try again."):
        super().__init__(detail)


class ExclusivityViolation(PermissionEngineError):
    """More than one holder of an exclusive permission. Data-integrity fault, surfaced to operators."""
    error_code = "exclusivity_violation"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, client_id: str, permission_slug: str, holder_ids: Optional[List[str]] = None):
        super().__init__("Internal server error")
        self.client_id = client_id
        self.permission_slug = permission_slug
        self.holder_ids = holder_ids or []

    def __str__(self) -> str:
        return (
            f"Exclusive permission {self.permission_slug} held by {len(self.holder_ids)} "
            f"relationships of client {self.client_id}: {', '.join(self.holder_ids)}"
        )


class RequestNotFound(PermissionEngineError):
    error_code = "request_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, detail: str = "Request not found"):
        super().__init__(detail)


class RequestAlreadyResolved(PermissionEngineError):
    error_code = "request_already_resolved"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Request already processed"):
        super().__init__(detail)


class InvitationInvalid(PermissionEngineError):
    error_code = "invitation_invalid"
    status_code = status.HTTP_404_NOT_FOUND


class StoreError(PermissionEngineError):
    """Supabase call failed for a reason other than a detected conflict."""
    error_code = "store_error"
    status_code = status.HTTP_502_BAD_GATEWAY

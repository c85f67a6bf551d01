from typing import List, Optional

from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import AuditLogEntry


class AuditService:
    def __init__(self, store: PermissionStore):
        self.store = store

    def list_events(
        self,
        client_id: Optional[str] = None,
        relationship_id: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditLogEntry]:
        """Newest first"""
        return self.store.list_audit_events(
            client_id=client_id,
            relationship_id=relationship_id,
            event_type=event_type,
            limit=limit,
            offset=offset
        )

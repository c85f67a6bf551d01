from fastapi import APIRouter, Depends, Query
from app.core.dependencies import get_permission_store, require_admin
from app.database.permission_store import PermissionStore
from app.modules.audit.schemas import AuditEventType, AuditLogEntry
from app.modules.audit.service import AuditService
from typing import List, Optional, Dict

router = APIRouter(prefix="/admin/audit-log", tags=["audit"])


def get_audit_service(store: PermissionStore = Depends(get_permission_store)) -> AuditService:
    return AuditService(store)


@router.get("", response_model=List[AuditLogEntry])
async def list_audit_log(
    client_id: Optional[str] = None,
    relationship_id: Optional[str] = None,
    event_type: Optional[AuditEventType] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(require_admin),
    service: AuditService = Depends(get_audit_service)
):
    """Permission audit trail (platform admins only)"""
    return service.list_events(
        client_id=client_id,
        relationship_id=relationship_id,
        event_type=event_type,
        limit=limit,
        offset=offset
    )

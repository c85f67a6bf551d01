"""
Core dependencies for route protection and permission checking
"""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.core.exceptions import Unauthorized
from app.database.permission_store import PermissionStore
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.service import AuthService
from app.modules.permissions.service import PermissionEngine
from supabase import Client
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def is_platform_admin(user_data: Dict[str, Any]) -> bool:
    """Check if user is a platform admin from app_metadata"""
    # app_metadata is set server-side and cannot be modified by users
    app_metadata = user_data.get("app_metadata") or {}
    return app_metadata.get("type") == "admin"


def require_admin(user_data: dict = Depends(get_current_user_id)) -> dict:
    """Dependency that only lets platform admins through"""
    if not is_platform_admin(user_data):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform admin access required"
        )
    return user_data


def get_permission_store(supabase: Client = Depends(get_service_supabase)) -> PermissionStore:
    return PermissionStore(supabase)


def get_permission_engine(store: PermissionStore = Depends(get_permission_store)) -> PermissionEngine:
    return PermissionEngine(store)


def require_client_permission(permission_slug: str):
    """
    Factory for the check other subsystems put in front of client data.

    The route must take a `client_id` path parameter; the caller passes if it is a
    professional holding `permission_slug` on an active relationship with that client,
    the client itself, or a platform admin.
    """
    def check_client_permission(
        client_id: str,
        user_data: dict = Depends(get_current_user_id),
        engine: PermissionEngine = Depends(get_permission_engine)
    ) -> dict:
        if user_data["id"] == client_id or is_platform_admin(user_data):
            return user_data
        if not engine.has_permission(user_data["id"], client_id, permission_slug):
            logger.info(f"Denied {permission_slug} on client {client_id} to {user_data['id']}")
            raise Unauthorized(f"Client has not granted {permission_slug}")
        return user_data
    return check_client_permission

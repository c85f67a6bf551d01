from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime


RequestStatus = Literal["pending", "approved", "denied"]


class PermissionRequest(BaseModel):
    id: str
    relationship_id: str
    client_id: str
    permission_slug: str
    status: RequestStatus
    requested_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    message: Optional[str] = None

    class Config:
        from_attributes = True


class PermissionRequestsCreate(BaseModel):
    relationship_id: str
    permission_slugs: List[str] = Field(min_length=1)
    message: Optional[str] = None


class PermissionRequestResult(BaseModel):
    slug: str
    success: bool
    error: Optional[str] = None
    request_id: Optional[str] = None


class PermissionRequestsCreateResponse(BaseModel):
    success: bool
    created_count: int
    failed_count: int
    results: List[PermissionRequestResult]


class PermissionRequestRespond(BaseModel):
    action: Literal["approve", "deny"]


class PermissionRequestRespondResponse(BaseModel):
    success: bool
    action: Literal["approved", "denied"]


class PermissionRequestDetails(BaseModel):
    id: str
    relationship_id: str
    permission_slug: str
    permission_name: str
    permission_description: Optional[str] = None
    category: str
    is_exclusive: bool
    requested_at: Optional[datetime] = None
    status: RequestStatus
    message: Optional[str] = None
    professional_name: str = "Unknown"


class ClientPermissionRequestsResponse(BaseModel):
    success: bool = True
    requests: List[PermissionRequestDetails]

"""Pydantic schemas for API."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Optional
from datetime import date, datetime
from uuid import UUID


# User / profile schemas
class UserBase(BaseModel):
    email: str
    full_name: str
    designation: str = ""
    phone: Optional[str] = ""
    role: str = "user"


class UserCreate(UserBase):
    password: str


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None


class UserResponse(UserBase):
    id: UUID
    must_change_password: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    """Public profile row; ``user_id`` mirrors ``id`` for cloud compatibility."""
    id: UUID
    user_id: UUID
    full_name: str
    designation: str = ""
    phone: Optional[str] = ""


# Auth schemas
class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class TokenResponse(BaseModel):
    token: str
    expires_in: int
    user: UserResponse
    must_change_password: bool = False


# Project schemas
class ProjectCreate(BaseModel):
    name: str
    location: str
    status: str = "active"


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None


class ProjectResponse(BaseModel):
    id: UUID
    name: str
    location: str
    status: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ApprovedItemResponse(BaseModel):
    """Item of an approved request, flattened for the project view."""
    id: UUID
    request_id: UUID
    request_number: str
    category: str
    name: str
    specification: Optional[str] = None
    quantity: float
    unit: str
    preferred_brand: Optional[str] = None
    request_created_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None


# Category schemas
class CategoryCreate(BaseModel):
    name: str


class CategoryResponse(BaseModel):
    id: UUID
    name: str
    slug: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# Material request schemas
class RequestItemIn(BaseModel):
    category: str = ""
    name: str = ""
    specification: Optional[str] = None
    # Kept loose so that a bad quantity surfaces as a domain validation error.
    quantity: Any = None
    unit: Optional[str] = "nos"
    preferred_brand: Optional[str] = None


class RequestItemResponse(BaseModel):
    id: UUID
    request_id: UUID
    category: str
    name: str
    specification: Optional[str] = None
    quantity: float
    unit: str
    preferred_brand: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class MaterialRequestCreate(BaseModel):
    project_id: Optional[UUID] = None
    priority: str = "normal"
    required_date: Optional[date] = None
    remarks: Optional[str] = ""
    request_type: Optional[str] = None
    as_draft: bool = False
    items: list[RequestItemIn] = Field(default_factory=list)


class MaterialRequestUpdate(BaseModel):
    """Partial update; ``status`` accepts only ``submitted`` or ``closed``."""
    priority: Optional[str] = None
    required_date: Optional[date] = None
    remarks: Optional[str] = None
    request_type: Optional[str] = None
    status: Optional[str] = None


class MaterialRequestResponse(BaseModel):
    id: UUID
    request_number: str
    project_id: UUID
    request_type: str
    priority: str
    required_date: Optional[date] = None
    remarks: Optional[str] = ""
    requester_id: UUID
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    project_name: str = "Unknown Project"
    requester_name: str = "Unknown"
    requester_designation: str = ""
    items_count: int = 0


class ApprovalResponse(BaseModel):
    id: UUID
    request_id: UUID
    user_id: UUID
    user_name: str = "Unknown"
    action: str
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class MaterialRequestDetail(MaterialRequestResponse):
    requester_phone: Optional[str] = ""
    items: list[RequestItemResponse] = Field(default_factory=list)
    approvals: list[ApprovalResponse] = Field(default_factory=list)


class DecisionRequest(BaseModel):
    request_id: UUID
    action: str
    comment: Optional[str] = None
    request_type: Optional[str] = None


class PendingCountResponse(BaseModel):
    count: int


# Stock schemas
class StockRowIn(BaseModel):
    date: Optional[str] = None
    item: Optional[str] = ""
    description: Optional[str] = ""
    qty: Any = 0
    unit: Optional[str] = ""
    category: Optional[str] = None


class StockBatch(BaseModel):
    items: list[StockRowIn]


class StockDeductBatch(StockBatch):
    """Issues may be tagged with the request they fulfil; receipts never are."""
    request_id: Optional[UUID] = None


class StockRowResponse(BaseModel):
    id: UUID
    date: str
    item: str
    description: str
    qty: float
    unit: str
    category: Optional[str] = None
    request_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class StockBatchResult(BaseModel):
    success: bool = True
    count: int


# Dashboard
class DashboardMetric(BaseModel):
    label: str
    value: int
    trend: str
    change: Optional[int] = None

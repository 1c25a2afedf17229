"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from domain.roles import Permission, Role
from domain.sale import Sale, SaleStatus, StatusHistoryEntry
from domain.user import User
from services.reporting_service import DashboardSummary


# ============================================================================
# User Models
# ============================================================================

class RegisterRequest(BaseModel):
    """Self-registration request. Accounts start unconfirmed."""
    name: str = Field(..., min_length=1)
    email: str
    role: Role = Role.SELLER

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Ana Vendedora",
                "email": "vendedor@nexus.com",
                "role": "SELLER"
            }
        }


class LoginRequest(BaseModel):
    email: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    confirmed: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            confirmed=user.confirmed,
            created_at=user.created_at,
        )


class RoleChangeRequest(BaseModel):
    role: Role


# ============================================================================
# Permission Models
# ============================================================================

class RolePermissionsRequest(BaseModel):
    """Replacement permission set for one role."""
    permissions: List[Permission]

    class Config:
        json_schema_extra = {
            "example": {
                "permissions": ["VIEW_ALL_SALES", "APPROVE_SALES", "VIEW_DASHBOARD"]
            }
        }


class PermissionMapResponse(BaseModel):
    roles: Dict[Role, List[Permission]]


# ============================================================================
# Sale Models
# ============================================================================

class StatusHistoryEntryResponse(BaseModel):
    status: SaleStatus
    updated_by: str
    updated_at: datetime
    reason: Optional[str] = None

    @classmethod
    def from_domain(cls, entry: StatusHistoryEntry) -> "StatusHistoryEntryResponse":
        return cls(
            status=entry.status,
            updated_by=entry.updated_by,
            updated_at=entry.updated_at,
            reason=entry.reason,
        )


class SaleResponse(BaseModel):
    id: str
    seller_id: str
    seller_name: str
    customer_data: Dict[str, Union[int, str]]
    status: SaleStatus
    status_history: List[StatusHistoryEntryResponse]
    created_at: datetime
    return_reason: Optional[str] = None
    in_regression: bool = False

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleResponse":
        return cls(
            id=sale.id or "",
            seller_id=sale.seller_id,
            seller_name=sale.seller_name,
            customer_data=dict(sale.customer_data),
            status=sale.status,
            status_history=[StatusHistoryEntryResponse.from_domain(e) for e in sale.status_history],
            created_at=sale.created_at,
            return_reason=sale.return_reason,
            in_regression=sale.in_regression(),
        )


class SaleListResponse(BaseModel):
    items: List[SaleResponse]
    total_count: int


class CustomerFormRequest(BaseModel):
    """Intake form payload for draft saves, submissions and corrections."""
    customer_data: Dict[str, Union[int, str]]
    sale_id: Optional[str] = Field(None, description="Existing draft to save into or submit")

    class Config:
        json_schema_extra = {
            "example": {
                "customer_data": {
                    "nome": "Ana Silva",
                    "cpf": "529.982.247-25",
                    "email": "ana@example.com",
                    "plano": "500MB",
                    "cep": "01001-000",
                    "rua": "Praça da Sé",
                    "numero": "100",
                    "audio_url": "https://example.com/audio.mp3"
                },
                "sale_id": None
            }
        }


class TransitionRequest(BaseModel):
    status: SaleStatus
    reason: Optional[str] = Field(None, description="Required when returning a sale to IN_PROGRESS")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "IN_PROGRESS",
                "reason": "documento ilegível"
            }
        }


# ============================================================================
# Dashboard Models
# ============================================================================

class DailyCount(BaseModel):
    day: date
    count: int


class DashboardResponse(BaseModel):
    total: int
    finished: int
    analyzed: int
    in_progress: int
    conversion_rate: float
    daily_counts: List[DailyCount]

    @classmethod
    def from_domain(cls, summary: DashboardSummary) -> "DashboardResponse":
        return cls(
            total=summary.total,
            finished=summary.finished,
            analyzed=summary.analyzed,
            in_progress=summary.in_progress,
            conversion_rate=summary.conversion_rate,
            daily_counts=[DailyCount(day=d, count=c) for d, c in summary.daily_counts],
        )


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
    fields: Dict[str, str] = Field(default_factory=dict)
    retryable: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "error": "ValidationError",
                "detail": "A detailed justification is required to return a sale",
                "status_code": 422,
                "fields": {"reason": "At least 5 characters"},
                "retryable": False
            }
        }

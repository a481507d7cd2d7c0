"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.commission import Commission
from domain.order import CustomerInfo, LineItem, Order


# ============================================================================
# Attribution Models
# ============================================================================

class AttributionCaptureRequest(BaseModel):
    """Referral code observed by the storefront, either as a URL or typed in."""
    url: Optional[str] = Field(None, description="Landing URL carrying ?ref=CODE")
    code: Optional[str] = Field(None, description="Referral code entered manually")
    source: Optional[str] = Field(None, description="Origin tag, e.g. 'url' or 'manual'")

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://loja.example/produtos?ref=ana01",
                "source": "url"
            }
        }


class AttributionTokenResponse(BaseModel):
    """Current attribution token, or nulls when none is active."""
    code: Optional[str] = None
    issued_at: Optional[datetime] = None
    source: Optional[str] = None


class ConsultantPublicResponse(BaseModel):
    """Public consultant info shown at checkout."""
    id: UUID
    code: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    commission_percentage: Decimal


# ============================================================================
# Order Models
# ============================================================================

class LineItemModel(BaseModel):
    """Single cart line."""
    product_id: Optional[str] = None
    name: str
    price: Decimal
    quantity: int

    def to_domain(self) -> LineItem:
        return LineItem(
            name=self.name,
            price=self.price,
            quantity=self.quantity,
            product_id=self.product_id,
        )


class CustomerInfoModel(BaseModel):
    """Customer contact and shipping details."""
    first_name: str
    last_name: str = ""
    email: str
    phone: Optional[str] = None
    nif: Optional[str] = None
    address: Optional[str] = None
    address_complement: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None

    def to_domain(self) -> CustomerInfo:
        return CustomerInfo(**self.model_dump())


class OrderRequest(BaseModel):
    """
    Order submission shared by every customer-facing intake route.

    consultant_code: explicit referral code; when omitted the attribution
    cookie is used. consultant_opt_out: the customer removed the consultant
    link at checkout (clears the cookie, no attribution).
    """
    items: List[LineItemModel]
    customer: CustomerInfoModel
    consultant_code: Optional[str] = None
    consultant_opt_out: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "items": [
                    {"product_id": "ring-01", "name": "Anel Prata", "price": "45.00", "quantity": 1}
                ],
                "customer": {
                    "first_name": "Maria",
                    "last_name": "Silva",
                    "email": "maria@example.com",
                    "phone": "912345678",
                    "address": "Rua das Flores 10",
                    "city": "Porto",
                    "postal_code": "4000-001"
                },
                "consultant_code": "ANA01"
            }
        }


class MbwayPaymentRequest(OrderRequest):
    """Mobile-wallet payment request; adds the phone that receives the request."""
    phone_number: str


class OrderResponse(BaseModel):
    """Stored order."""
    id: UUID
    order_number: Optional[str] = None
    customer_email: str
    customer_name: str
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    payment_method: str
    payment_status: str
    status: str
    consultant_id: Optional[UUID] = None
    consultant_code: Optional[str] = None
    external_payment_reference: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_email=order.customer_email,
            customer_name=order.customer_name,
            subtotal=order.subtotal,
            shipping=order.shipping,
            total=order.total,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            status=order.status,
            consultant_id=order.consultant_id,
            consultant_code=order.consultant_code,
            external_payment_reference=order.external_payment_reference,
            created_at=order.created_at,
        )


class OrderCreatedResponse(BaseModel):
    success: bool
    order_id: UUID
    total: Decimal
    consultant_code: Optional[str] = None


class MbwayPaymentResponse(OrderCreatedResponse):
    reference: UUID
    status: str
    message: str


class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: Optional[str] = None
    order_id: UUID


class PaymentConfirmationResponse(BaseModel):
    order: OrderResponse
    commission_id: Optional[UUID] = None
    already_confirmed: bool


# ============================================================================
# Webhook Models
# ============================================================================

class WebhookResponse(BaseModel):
    received: bool
    event_type: str
    outcome: str
    order_id: Optional[UUID] = None


# ============================================================================
# Commission Models
# ============================================================================

class CommissionResponse(BaseModel):
    id: UUID
    consultant_id: UUID
    order_id: UUID
    customer_name: Optional[str] = None
    order_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    status: str
    reference_month: int
    reference_year: int
    order_date: datetime
    created_at: datetime
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, commission: Commission) -> "CommissionResponse":
        return cls(
            id=commission.id,
            consultant_id=commission.consultant_id,
            order_id=commission.order_id,
            customer_name=commission.customer_name,
            order_amount=commission.order_amount,
            commission_rate=commission.commission_rate,
            commission_amount=commission.commission_amount,
            status=commission.status.value,
            reference_month=commission.reference_month,
            reference_year=commission.reference_year,
            order_date=commission.order_date,
            created_at=commission.created_at,
            approved_at=commission.approved_at,
            paid_at=commission.paid_at,
            cancelled_at=commission.cancelled_at,
        )


class CommissionSummaryModel(BaseModel):
    total: int
    pending: int
    approved: int
    paid: int
    cancelled: int
    total_amount: Decimal
    pending_amount: Decimal
    approved_amount: Decimal
    paid_amount: Decimal
    cancelled_amount: Decimal


class CommissionListResponse(BaseModel):
    data: List[CommissionResponse]
    summary: CommissionSummaryModel
    total: int
    page: int
    limit: int
    total_pages: int


class CommissionActionRequest(BaseModel):
    """Batch administrative action over commissions."""
    commission_ids: List[UUID]
    action: str = Field("approve", pattern="^(approve|pay|cancel)$")
    payment_method: str = "bank_transfer"
    payment_reference: Optional[str] = None
    reason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "commission_ids": ["123e4567-e89b-12d3-a456-426614174000"],
                "action": "pay",
                "payment_reference": "TRF-2024-0042"
            }
        }


class CommissionActionResponse(BaseModel):
    success: bool
    updated: int
    commissions: List[CommissionResponse]


# ============================================================================
# Report Models
# ============================================================================

class ReportFailureModel(BaseModel):
    consultant_id: UUID
    error: str


class ReportBatchResponse(BaseModel):
    success: bool
    period_start: date
    period_end: date
    consultants_processed: int
    emails_sent: int
    errors: List[ReportFailureModel]


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

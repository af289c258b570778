from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from app.models.commission import CommissionStatus
from app.models.payable import PayableStatus


class CommissionTotalsOut(BaseModel):
    total_appointments: int
    total_revenue: Decimal
    total_commission: Decimal
    bonuses: Decimal
    final_value: Decimal


class CommissionLineItemOut(BaseModel):
    appointment_id: int
    service_value: Decimal
    commission_percentage: Decimal
    commission_value: Decimal

    class Config:
        from_attributes = True


class CommissionView(BaseModel):
    id: Optional[int] = None  # None until approved
    professional_id: int
    professional_name: Optional[str] = None
    period: str  # Format: "YYYY-MM"
    period_start: date
    period_end: date
    totals: CommissionTotalsOut
    status: CommissionStatus
    payable_obligation_id: Optional[int] = None
    payable_status: Optional[PayableStatus] = None
    line_items: List[CommissionLineItemOut] = []
    is_stale: bool = False


class CommissionRecordOut(BaseModel):
    id: int
    professional_id: int
    period_start: date
    period_end: date
    total_appointments: int
    total_revenue: Decimal
    total_commission: Decimal
    bonuses: Decimal
    final_value: Decimal
    status: CommissionStatus
    payable_obligation_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    line_items: List[CommissionLineItemOut] = []

    class Config:
        from_attributes = True


class ApproveRequest(BaseModel):
    professional_id: int
    period: str = Field(..., description="YYYY-MM")
    bonuses: Optional[Decimal] = Field(None, ge=0)


class ApproveResponse(BaseModel):
    id: int


class PaymentRequestByPeriod(BaseModel):
    professional_id: int
    period: str = Field(..., description="YYYY-MM")


class PaymentRequestResponse(BaseModel):
    payable_obligation_id: int


class PayDayConfig(BaseModel):
    professional_id: int
    pay_day: int = Field(..., ge=1, le=31)


class PayDayUpdate(BaseModel):
    pay_day: int = Field(..., ge=1, le=31)


class ServiceCommissionUpdate(BaseModel):
    commission_percentage: Decimal = Field(..., ge=0, le=100)


class ServiceCommissionOut(BaseModel):
    id: int
    name: str
    price: Optional[Decimal] = None
    commission_percentage: Optional[Decimal] = None

    class Config:
        from_attributes = True

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from app.models.commission import CommissionStatus
from app.models.payable import PayableCategory, PayableStatus, Periodicity


class PayableCreate(BaseModel):
    description: str = Field(..., min_length=1)
    category: PayableCategory
    amount: Optional[Decimal] = Field(None, ge=0)  # derived from purchase order when omitted
    due_date: date
    supplier_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    commission_id: Optional[int] = None  # link to a commission after creation


class RecurringPayableCreate(BaseModel):
    description: str = Field(..., min_length=1)
    category: PayableCategory
    amount: Decimal = Field(..., gt=0)
    start_date: str  # "YYYY-MM-DD", validated by the service
    installment_count: int
    periodicity: Periodicity = Periodicity.MONTHLY
    fixed_day_of_month: Optional[int] = None
    supplier_id: Optional[int] = None
    commission_id: Optional[int] = None  # linked to the first installment only
    notes: Optional[str] = None


class PayableUpdate(BaseModel):
    description: Optional[str] = None
    category: Optional[PayableCategory] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    due_date: Optional[date] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class PayableOut(BaseModel):
    id: int
    description: str
    category: PayableCategory
    amount: Decimal
    due_date: date
    payment_date: Optional[date] = None
    status: PayableStatus
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    installment_number: Optional[int] = None
    installment_count: Optional[int] = None
    linked_commission_id: Optional[int] = None
    linked_supplier_id: Optional[int] = None
    linked_purchase_order_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InstallmentOut(BaseModel):
    id: int
    description: str
    due_date: date

    class Config:
        from_attributes = True


class RecurringPayableResponse(BaseModel):
    created: int
    periodicity: Periodicity
    installments: List[InstallmentOut]


class MarkPaidRequest(BaseModel):
    payment_date: Optional[date] = None  # defaults to today


class MarkPaidResponse(BaseModel):
    obligation: PayableOut
    cascaded_commission_id: Optional[int] = None
    cascaded_commission_status: Optional[CommissionStatus] = None


class LinkRequest(BaseModel):
    commission_id: int


class SummaryBucket(BaseModel):
    amount: Decimal
    count: int


class PayablesSummary(BaseModel):
    pending: SummaryBucket
    paid: SummaryBucket
    overdue: SummaryBucket

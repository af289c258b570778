"""Commissions API: live calculation, approval, payment requests and settings."""
import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.errors import http_error
from app.core.database import get_db
from app.core.exceptions import CommissionEngineError
from app.core.periods import Period
from app.schemas.commission import (
    ApproveRequest, ApproveResponse, CommissionRecordOut, CommissionView,
    PayDayConfig, PayDayUpdate, PaymentRequestByPeriod, PaymentRequestResponse,
    ServiceCommissionOut, ServiceCommissionUpdate,
)
from app.services.commission import CommissionCalculationService
from app.services.commission_ledger import CommissionLedgerService
from app.services.projection import CommissionProjectionService
from app.services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/commissions", tags=["commissions"])


@router.get("", response_model=List[CommissionView])
def list_commissions(
    period: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    professional_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Commission per professional for a month: live totals plus approval/payment state."""
    try:
        month = Period.from_string(period) if period else Period.containing(date.today())
        return CommissionProjectionService(db).list_views(month, professional_id)
    except CommissionEngineError as e:
        raise http_error(e)


@router.get("/{commission_id}", response_model=CommissionRecordOut)
def get_commission(commission_id: int, db: Session = Depends(get_db)):
    """Approved snapshot with its stored line items."""
    try:
        return CommissionLedgerService(db).get(commission_id)
    except CommissionEngineError as e:
        raise http_error(e)


@router.post("/approve", response_model=ApproveResponse)
def approve_commission(body: ApproveRequest, db: Session = Depends(get_db)):
    """Persist the current calculation for (professional, period) as APPROVED."""
    try:
        period = Period.from_string(body.period)
        commission_id = CommissionLedgerService(db).approve_calculated(
            body.professional_id, period, bonuses=body.bonuses
        )
    except CommissionEngineError as e:
        raise http_error(e)
    return {"id": commission_id}


@router.post("/request-payment", response_model=PaymentRequestResponse)
def request_payment_for_period(body: PaymentRequestByPeriod, db: Session = Depends(get_db)):
    """Request payment by professional + period, approving first if nothing is persisted yet."""
    try:
        period = Period.from_string(body.period)
        obligation_id = ReconciliationService(db).request_payment_for(body.professional_id, period)
    except CommissionEngineError as e:
        raise http_error(e)
    return {"payable_obligation_id": obligation_id}


@router.post("/{commission_id}/request-payment", response_model=PaymentRequestResponse)
def request_payment(commission_id: int, db: Session = Depends(get_db)):
    """Create (or return the existing) COMMISSION payable for an approved commission."""
    try:
        obligation_id = ReconciliationService(db).request_payment(commission_id)
    except CommissionEngineError as e:
        raise http_error(e)
    return {"payable_obligation_id": obligation_id}


@router.get("/config/{professional_id}", response_model=PayDayConfig)
def get_pay_day(professional_id: int, db: Session = Depends(get_db)):
    return {
        "professional_id": professional_id,
        "pay_day": ReconciliationService(db).get_pay_day(professional_id),
    }


@router.put("/config/{professional_id}", response_model=PayDayConfig)
def set_pay_day(professional_id: int, body: PayDayUpdate, db: Session = Depends(get_db)):
    try:
        config = ReconciliationService(db).set_pay_day(professional_id, body.pay_day)
    except CommissionEngineError as e:
        raise http_error(e)
    return {"professional_id": professional_id, "pay_day": config.pay_day}


@router.put("/services/{service_id}", response_model=ServiceCommissionOut)
def update_service_commission(
    service_id: int,
    body: ServiceCommissionUpdate,
    db: Session = Depends(get_db),
):
    """Change a service's commission percentage."""
    try:
        return CommissionCalculationService(db).update_service_commission(
            service_id, body.commission_percentage
        )
    except CommissionEngineError as e:
        raise http_error(e)

"""Payables API: accounts payable entries, recurring schedules and payment."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.errors import http_error
from app.core.database import get_db
from app.core.exceptions import CommissionEngineError
from app.schemas.payable import (
    LinkRequest, MarkPaidRequest, MarkPaidResponse, PayableCreate, PayableOut,
    PayablesSummary, PayableUpdate, RecurringPayableCreate, RecurringPayableResponse,
)
from app.services.payables import PayableService, RecurringScheduleSpec
from app.services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payables", tags=["payables"])


@router.get("", response_model=List[PayableOut])
def list_payables(
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = None,
    due_from: Optional[str] = Query(None, alias="from"),
    due_to: Optional[str] = Query(None, alias="to"),
    db: Session = Depends(get_db),
):
    """List payables, newest due date first. status/category accept ALL."""
    try:
        return PayableService(db).list_payables(
            status=None if status_filter in (None, "ALL") else status_filter,
            category=None if category in (None, "ALL") else category,
            due_from=due_from,
            due_to=due_to,
        )
    except CommissionEngineError as e:
        raise http_error(e)


@router.get("/summary", response_model=PayablesSummary)
def payables_summary(db: Session = Depends(get_db)):
    return PayableService(db).summary()


@router.post("", response_model=List[PayableOut], status_code=status.HTTP_201_CREATED)
def create_payable(body: PayableCreate, db: Session = Depends(get_db)):
    """Create a single payable; returns a one-element list."""
    service = PayableService(db)
    try:
        obligation = service.generate_single(
            description=body.description,
            category=body.category,
            amount=body.amount,
            due_date=body.due_date,
            supplier_id=body.supplier_id,
            purchase_order_id=body.purchase_order_id,
            payment_method=body.payment_method,
            notes=body.notes,
        )
        if body.commission_id is not None:
            service.link_to_commission(obligation.id, body.commission_id)
            db.refresh(obligation)
    except CommissionEngineError as e:
        raise http_error(e)
    return [obligation]


@router.post("/recurring", response_model=RecurringPayableResponse, status_code=status.HTTP_201_CREATED)
def create_recurring_payables(body: RecurringPayableCreate, db: Session = Depends(get_db)):
    """Create installment payables (monthly, weekly or biweekly) in one batch."""
    try:
        spec = RecurringScheduleSpec.build(
            start_date=body.start_date,
            installment_count=body.installment_count,
            periodicity=body.periodicity,
            fixed_day_of_month=body.fixed_day_of_month,
        )
        rows = PayableService(db).generate_recurring(
            spec,
            description=body.description,
            category=body.category,
            amount=body.amount,
            supplier_id=body.supplier_id,
            commission_id=body.commission_id,
            notes=body.notes,
        )
    except CommissionEngineError as e:
        raise http_error(e)
    return {"created": len(rows), "periodicity": spec.periodicity, "installments": rows}


@router.post("/refresh-overdue")
def refresh_overdue(db: Session = Depends(get_db)):
    try:
        updated = PayableService(db).refresh_overdue()
    except CommissionEngineError as e:
        raise http_error(e)
    return {"updated": updated}


@router.get("/{obligation_id}", response_model=PayableOut)
def get_payable(obligation_id: int, db: Session = Depends(get_db)):
    try:
        return PayableService(db).get(obligation_id)
    except CommissionEngineError as e:
        raise http_error(e)


@router.put("/{obligation_id}", response_model=PayableOut)
def update_payable(obligation_id: int, body: PayableUpdate, db: Session = Depends(get_db)):
    try:
        return PayableService(db).update_payable(obligation_id, body.model_dump(exclude_unset=True))
    except CommissionEngineError as e:
        raise http_error(e)


@router.post("/{obligation_id}/mark-paid", response_model=MarkPaidResponse)
def mark_paid(obligation_id: int, body: Optional[MarkPaidRequest] = None, db: Session = Depends(get_db)):
    """Mark a payable paid; a linked commission follows to PAID."""
    try:
        result = ReconciliationService(db).mark_paid(
            obligation_id, payment_date=body.payment_date if body else None
        )
    except CommissionEngineError as e:
        raise http_error(e)
    return {
        "obligation": result.obligation,
        "cascaded_commission_id": result.cascaded_commission_id,
        "cascaded_commission_status": result.cascaded_commission_status,
    }


@router.post("/{obligation_id}/link", response_model=PayableOut)
def link_payable(obligation_id: int, body: LinkRequest, db: Session = Depends(get_db)):
    service = PayableService(db)
    try:
        service.link_to_commission(obligation_id, body.commission_id)
        return service.get(obligation_id)
    except CommissionEngineError as e:
        raise http_error(e)


@router.post("/{obligation_id}/cancel", response_model=PayableOut)
def cancel_payable(obligation_id: int, db: Session = Depends(get_db)):
    try:
        return PayableService(db).cancel(obligation_id)
    except CommissionEngineError as e:
        raise http_error(e)


@router.delete("/{obligation_id}")
def delete_payable(obligation_id: int, db: Session = Depends(get_db)):
    """Delete an unpaid payable that is not linked to a commission."""
    try:
        PayableService(db).delete(obligation_id)
    except CommissionEngineError as e:
        raise http_error(e)
    return {"success": True}

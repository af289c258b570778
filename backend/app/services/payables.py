"""Accounts payable: single and recurring obligations.

Recurring schedules are computed fully in memory and inserted as one batch,
so either every installment is created or none is.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Union

from dateutil.parser import isoparse
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    CommissionEngineError, NotFoundError, PersistenceError,
    StateTransitionError, ValidationError,
)
from app.core.periods import shift_months, to_cents
from app.models.commission import Commission
from app.models.inventory import PurchaseOrder, Supplier
from app.models.payable import PayableCategory, PayableObligation, PayableStatus, Periodicity

logger = logging.getLogger(__name__)

UNPAID_STATUSES = (PayableStatus.PENDING, PayableStatus.OVERDUE)
FULL_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def parse_date(value: Union[str, date, datetime, None], field_name: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field_name} is required")
    text = str(value).strip()
    # isoparse alone would accept "2025-01" or "2025" as the 1st of the month
    if not FULL_DATE.match(text):
        raise ValidationError(f"Invalid {field_name} '{value}', expected YYYY-MM-DD")
    try:
        return isoparse(text).date()
    except (ValueError, OverflowError):
        raise ValidationError(f"Invalid {field_name} '{value}', expected YYYY-MM-DD")


@dataclass(frozen=True)
class RecurringScheduleSpec:
    start_date: date
    installment_count: int
    periodicity: Periodicity = Periodicity.MONTHLY
    fixed_day_of_month: Optional[int] = None

    @classmethod
    def build(
        cls,
        start_date,
        installment_count,
        periodicity=Periodicity.MONTHLY,
        fixed_day_of_month: Optional[int] = None,
    ) -> "RecurringScheduleSpec":
        """Validate raw input into a schedule spec, raising ValidationError."""
        start = parse_date(start_date, "start_date")

        try:
            count = int(installment_count)
        except (TypeError, ValueError):
            raise ValidationError("installment_count must be an integer")
        if count < 1:
            raise ValidationError("installment_count must be at least 1")
        if count > settings.MAX_INSTALLMENTS:
            raise ValidationError(f"installment_count cannot exceed {settings.MAX_INSTALLMENTS}")

        try:
            periodicity = Periodicity(periodicity or Periodicity.MONTHLY)
        except ValueError:
            raise ValidationError(f"Unknown periodicity '{periodicity}'")

        fixed_day = None
        if fixed_day_of_month is not None:
            try:
                fixed_day = int(fixed_day_of_month)
            except (TypeError, ValueError):
                raise ValidationError("fixed_day_of_month must be an integer")
            if not 1 <= fixed_day <= 31:
                raise ValidationError("fixed_day_of_month must be between 1 and 31")

        return cls(
            start_date=start,
            installment_count=count,
            periodicity=periodicity,
            fixed_day_of_month=fixed_day,
        )


def installment_due_dates(spec: RecurringScheduleSpec) -> List[date]:
    """Due date of every installment in the schedule.

    WEEKLY / BIWEEKLY step 7 / 14 days from the start date. MONTHLY steps
    calendar months from the start date and pins the day-of-month to
    fixed_day_of_month (or the start date's day), clamped to the month's
    last day: 2025-01-31 monthly gives 01-31, 02-28, 03-31, ...
    """
    if spec.periodicity == Periodicity.WEEKLY:
        return [spec.start_date + timedelta(days=7 * i) for i in range(spec.installment_count)]
    if spec.periodicity == Periodicity.BIWEEKLY:
        return [spec.start_date + timedelta(days=14 * i) for i in range(spec.installment_count)]
    return [
        shift_months(spec.start_date, i, spec.fixed_day_of_month)
        for i in range(spec.installment_count)
    ]


def _category(value) -> PayableCategory:
    try:
        return PayableCategory(value)
    except ValueError:
        raise ValidationError(f"Unknown category '{value}'")


class PayableService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, obligation_id: int) -> PayableObligation:
        obligation = self.db.get(PayableObligation, obligation_id)
        if obligation is None:
            raise NotFoundError(f"Payable {obligation_id} not found")
        return obligation

    def commit_changes(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to {action}") from e

    # ── Create ───────────────────────────────────────────────────────

    def generate_single(
        self,
        description: str,
        category,
        due_date,
        amount=None,
        supplier_id: Optional[int] = None,
        purchase_order_id: Optional[int] = None,
        payment_method: Optional[str] = None,
        notes: Optional[str] = None,
        commit: bool = True,
    ) -> PayableObligation:
        """Create one PENDING obligation.

        Without an amount, a purchase order prices it as quantity * product cost.
        With commit=False the row is only flushed, for callers that link it
        inside their own transaction.
        """
        if not description:
            raise ValidationError("description is required")
        category = _category(category)
        due = parse_date(due_date, "due_date")

        if supplier_id is not None and self.db.get(Supplier, supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        purchase_order = None
        if purchase_order_id is not None:
            purchase_order = self.db.get(PurchaseOrder, purchase_order_id)
            if purchase_order is None:
                raise NotFoundError(f"Purchase order {purchase_order_id} not found")

        if amount is None and purchase_order is not None:
            cost_price = purchase_order.product.cost_price if purchase_order.product else None
            if cost_price is not None and purchase_order.quantity:
                amount = Decimal(purchase_order.quantity) * cost_price
        if amount is None:
            raise ValidationError("amount is required when it cannot be derived from a purchase order")
        amount = to_cents(amount)
        if amount < 0:
            raise ValidationError("amount cannot be negative")

        obligation = PayableObligation(
            description=description,
            category=category,
            amount=amount,
            due_date=due,
            status=PayableStatus.PENDING,
            payment_method=payment_method,
            notes=notes,
            linked_supplier_id=supplier_id or (purchase_order.supplier_id if purchase_order else None),
            linked_purchase_order_id=purchase_order_id,
        )
        self.db.add(obligation)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create payable '{description}': {e}", exc_info=True)
            raise PersistenceError("Failed to create payable") from e

        if commit:
            self.commit_changes("create payable")
            logger.info(f"Created payable {obligation.id} '{description}' {amount} due {due}")
        return obligation

    def generate_recurring(
        self,
        spec: RecurringScheduleSpec,
        description: str,
        category,
        amount,
        supplier_id: Optional[int] = None,
        commission_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> List[PayableObligation]:
        """Create one obligation per installment as a single batch.

        Each description gets an "(i/N)" suffix. When commission_id is given,
        only the first installment is linked to that commission.
        """
        if not description:
            raise ValidationError("description is required")
        category = _category(category)
        if amount is None:
            raise ValidationError("amount is required")
        amount = to_cents(amount)
        if amount <= 0:
            raise ValidationError("amount must be positive")
        if supplier_id is not None and self.db.get(Supplier, supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        count = spec.installment_count
        rows = [
            PayableObligation(
                description=f"{description} ({i + 1}/{count})",
                category=category,
                amount=amount,
                due_date=due,
                status=PayableStatus.PENDING,
                notes=notes,
                installment_number=i + 1,
                installment_count=count,
                linked_supplier_id=supplier_id,
            )
            for i, due in enumerate(installment_due_dates(spec))
        ]

        try:
            self.db.add_all(rows)
            self.db.flush()
            if commission_id is not None:
                self._link(rows[0], commission_id)
            self.db.commit()
        except CommissionEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create recurring payables '{description}': {e}", exc_info=True)
            raise PersistenceError("Failed to create recurring payables") from e

        logger.info(
            f"Created {count} {spec.periodicity.value} installment(s) '{description}' "
            f"from {rows[0].due_date} to {rows[-1].due_date}"
        )
        return rows

    # ── Link ─────────────────────────────────────────────────────────

    def _link(self, obligation: PayableObligation, commission_id: int) -> Commission:
        commission = self.db.get(Commission, commission_id)
        if commission is None:
            raise NotFoundError(f"Commission {commission_id} not found")

        if commission.payable_obligation_id not in (None, obligation.id):
            raise StateTransitionError(
                f"Commission {commission_id} is already linked to payable {commission.payable_obligation_id}"
            )
        if obligation.linked_commission_id not in (None, commission_id):
            raise StateTransitionError(
                f"Payable {obligation.id} is already linked to commission {obligation.linked_commission_id}"
            )
        if obligation.status == PayableStatus.CANCELLED:
            raise StateTransitionError(f"Payable {obligation.id} is cancelled")

        # Forward link and back-reference always change together
        commission.payable_obligation_id = obligation.id
        obligation.linked_commission_id = commission.id
        return commission

    def link_to_commission(self, obligation_id: int, commission_id: int, commit: bool = True) -> Commission:
        obligation = self.get(obligation_id)
        try:
            commission = self._link(obligation, commission_id)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except CommissionEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to link payable {obligation_id} to commission {commission_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to link payable to commission") from e

        logger.info(f"Linked payable {obligation_id} <-> commission {commission_id}")
        return commission

    # ── Query ────────────────────────────────────────────────────────

    def list_payables(
        self,
        status=None,
        category=None,
        due_from=None,
        due_to=None,
    ) -> List[PayableObligation]:
        query = self.db.query(PayableObligation)
        if status:
            try:
                query = query.filter(PayableObligation.status == PayableStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'")
        if category:
            query = query.filter(PayableObligation.category == _category(category))
        if due_from:
            query = query.filter(PayableObligation.due_date >= parse_date(due_from, "due_from"))
        if due_to:
            query = query.filter(PayableObligation.due_date <= parse_date(due_to, "due_to"))
        return query.order_by(PayableObligation.due_date.desc(), PayableObligation.id).all()

    def summary(self, today: Optional[date] = None) -> Dict:
        """Pending / paid / overdue totals across all obligations."""
        today = today or date.today()

        def _total(*criteria):
            amount, count = (
                self.db.query(
                    func.coalesce(func.sum(PayableObligation.amount), 0),
                    func.count(PayableObligation.id),
                )
                .filter(*criteria)
                .one()
            )
            return {"amount": to_cents(amount), "count": count}

        return {
            "pending": _total(PayableObligation.status.in_(UNPAID_STATUSES)),
            "paid": _total(PayableObligation.status == PayableStatus.PAID),
            "overdue": _total(
                PayableObligation.status.in_(UNPAID_STATUSES),
                PayableObligation.due_date < today,
            ),
        }

    # ── Update ───────────────────────────────────────────────────────

    def refresh_overdue(self, today: Optional[date] = None) -> int:
        """Move PENDING obligations past their due date to OVERDUE."""
        today = today or date.today()
        overdue = (
            self.db.query(PayableObligation)
            .filter(
                PayableObligation.status == PayableStatus.PENDING,
                PayableObligation.due_date < today,
            )
            .all()
        )
        for obligation in overdue:
            obligation.status = PayableStatus.OVERDUE
        self.commit_changes("refresh overdue payables")
        if overdue:
            logger.info(f"Marked {len(overdue)} payable(s) overdue as of {today}")
        return len(overdue)

    def update_payable(self, obligation_id: int, changes: Dict) -> PayableObligation:
        """Edit an unpaid obligation's details. Status moves have their own operations."""
        obligation = self.get(obligation_id)
        if obligation.status not in UNPAID_STATUSES:
            raise StateTransitionError(f"Payable {obligation_id} is {obligation.status.value} and cannot be edited")

        if "amount" in changes and changes["amount"] is not None:
            amount = to_cents(changes["amount"])
            if amount < 0:
                raise ValidationError("amount cannot be negative")
            if obligation.linked_commission_id is not None and amount != to_cents(obligation.amount):
                raise StateTransitionError(
                    f"Payable {obligation_id} amount follows commission {obligation.linked_commission_id}"
                )
            obligation.amount = amount
        if changes.get("description"):
            obligation.description = changes["description"]
        if changes.get("category"):
            obligation.category = _category(changes["category"])
        if changes.get("due_date"):
            obligation.due_date = parse_date(changes["due_date"], "due_date")
            if obligation.status == PayableStatus.OVERDUE and obligation.due_date >= date.today():
                obligation.status = PayableStatus.PENDING
        for key in ("notes", "payment_method"):
            if key in changes:
                setattr(obligation, key, changes[key])

        self.commit_changes(f"update payable {obligation_id}")
        logger.info(f"Updated payable {obligation_id}: {sorted(changes)}")
        return obligation

    def cancel(self, obligation_id: int) -> PayableObligation:
        obligation = self.get(obligation_id)
        if obligation.status == PayableStatus.CANCELLED:
            return obligation
        self._ensure_detachable(obligation, "cancelled")
        obligation.status = PayableStatus.CANCELLED
        self.commit_changes(f"cancel payable {obligation_id}")
        logger.info(f"Cancelled payable {obligation_id}")
        return obligation

    def delete(self, obligation_id: int) -> None:
        obligation = self.get(obligation_id)
        self._ensure_detachable(obligation, "deleted")
        self.db.delete(obligation)
        self.commit_changes(f"delete payable {obligation_id}")
        logger.info(f"Deleted payable {obligation_id}")

    def _ensure_detachable(self, obligation: PayableObligation, verb: str) -> None:
        if obligation.status == PayableStatus.PAID:
            logger.warning(f"Refused: payable {obligation.id} is paid and cannot be {verb}")
            raise StateTransitionError(f"Payable {obligation.id} is paid and cannot be {verb}")
        commission_id = obligation.linked_commission_id
        if commission_id is None:
            # Rows linked before the payable stored its commission
            referencing = (
                self.db.query(Commission.id)
                .filter(Commission.payable_obligation_id == obligation.id)
                .first()
            )
            commission_id = referencing[0] if referencing else None
        if commission_id is not None:
            logger.warning(f"Refused: payable {obligation.id} is linked to a commission")
            raise StateTransitionError(
                f"Payable {obligation.id} is linked to commission {commission_id} "
                f"and cannot be {verb}"
            )

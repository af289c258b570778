"""Commission ledger: durable, idempotent snapshots of approved commissions.

Approving (professional, period) always leaves exactly one record whose totals
and line items come from the same calculation. The record upsert and the
line-item replace run in one transaction, and on PostgreSQL the existing row
is locked FOR UPDATE so concurrent approvals of the same period serialize.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    CommissionEngineError, NotFoundError, PersistenceError,
    StateTransitionError, ValidationError,
)
from app.core.periods import CENT, Period, to_cents
from app.models.commission import Commission, CommissionLineItem, CommissionStatus
from app.models.payable import PayableObligation, PayableStatus
from app.models.professional import Professional
from app.services.commission import (
    CommissionCalculationService, CommissionTotals, LineItemDraft,
)

logger = logging.getLogger(__name__)


def validate_snapshot(totals: CommissionTotals, line_items: Sequence[LineItemDraft]) -> None:
    """Reject a totals/line-item pair that could not have come from one calculation."""
    if not line_items and totals.total_appointments != 0:
        raise ValidationError("line_items may only be empty when total_appointments is 0")
    if len(line_items) != totals.total_appointments:
        raise ValidationError(
            f"total_appointments={totals.total_appointments} but {len(line_items)} line item(s) given"
        )

    appointment_ids = [item.appointment_id for item in line_items]
    if len(set(appointment_ids)) != len(appointment_ids):
        raise ValidationError("line_items contain the same appointment more than once")

    items_total = sum((to_cents(item.commission_value) for item in line_items), Decimal("0"))
    if abs(items_total - to_cents(totals.total_commission)) > CENT:
        raise ValidationError(
            f"line items sum to {items_total}, total_commission is {totals.total_commission}"
        )

    if to_cents(totals.bonuses) < 0:
        raise ValidationError("bonuses cannot be negative")


class CommissionLedgerService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, commission_id: int) -> Commission:
        record = self.db.get(Commission, commission_id)
        if record is None:
            raise NotFoundError(f"Commission {commission_id} not found")
        return record

    def find(self, professional_id: int, period: Period, for_update: bool = False) -> Optional[Commission]:
        query = self.db.query(Commission).filter(
            Commission.professional_id == professional_id,
            Commission.period_start == period.start,
            Commission.period_end == period.end,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def approve(
        self,
        professional_id: int,
        period: Period,
        totals: CommissionTotals,
        line_items: List[LineItemDraft],
    ) -> int:
        """Upsert the (professional, period) record as APPROVED and replace its line items.

        Returns the record id. An existing payable link is kept. A record that
        is already PAID (or whose linked payable is paid) cannot be re-approved.
        """
        validate_snapshot(totals, line_items)
        if self.db.get(Professional, professional_id) is None:
            raise NotFoundError(f"Professional {professional_id} not found")

        try:
            record = self.find(professional_id, period, for_update=True)
            linked = None
            if record is not None:
                if record.status == CommissionStatus.PAID:
                    raise StateTransitionError(
                        f"Commission {record.id} for {period} is already PAID"
                    )
                if record.payable_obligation_id is not None:
                    linked = self.db.get(PayableObligation, record.payable_obligation_id)
                    if linked is not None and linked.status == PayableStatus.PAID:
                        raise StateTransitionError(
                            f"Commission {record.id} payable {linked.id} is already paid"
                        )
            else:
                record = Commission(
                    professional_id=professional_id,
                    period_start=period.start,
                    period_end=period.end,
                )
                self.db.add(record)

            record.total_appointments = totals.total_appointments
            record.total_revenue = to_cents(totals.total_revenue)
            record.total_commission = to_cents(totals.total_commission)
            record.bonuses = to_cents(totals.bonuses)
            record.final_value = record.total_commission + record.bonuses
            record.status = CommissionStatus.APPROVED
            record.approved_at = datetime.utcnow()

            # Full replace: old rows must be gone before the unique
            # (commission_id, appointment_id) rows are inserted again
            record.line_items.clear()
            self.db.flush()
            record.line_items.extend(
                CommissionLineItem(
                    appointment_id=item.appointment_id,
                    service_value=to_cents(item.service_value),
                    commission_percentage=to_cents(item.commission_percentage),
                    commission_value=to_cents(item.commission_value),
                )
                for item in line_items
            )

            if (
                linked is not None
                and not linked.is_installment
                and linked.status in (PayableStatus.PENDING, PayableStatus.OVERDUE)
                and to_cents(linked.amount) != record.final_value
            ):
                logger.info(
                    f"Payable {linked.id} amount {linked.amount} -> {record.final_value} "
                    f"after re-approval of commission {record.id}"
                )
                linked.amount = record.final_value

            self.db.commit()
        except CommissionEngineError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Concurrent approval of professional {professional_id} {period}: {e}")
            raise PersistenceError(
                f"Commission for professional {professional_id} {period} changed concurrently, retry"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Approve failed for professional {professional_id} {period}: {e}", exc_info=True)
            raise PersistenceError("Failed to approve commission") from e

        logger.info(
            f"Approved commission {record.id}: professional={professional_id} period={period} "
            f"appointments={record.total_appointments} final={record.final_value}"
        )
        return record.id

    def approve_calculated(
        self,
        professional_id: int,
        period: Period,
        bonuses: Optional[Decimal] = None,
    ) -> int:
        """Calculate the period live and approve the result.

        `bonuses` overrides the bonuses of any existing record; when omitted
        the existing value (or 0) is kept.
        """
        calculated = CommissionCalculationService(self.db).calculate_for_professional(professional_id, period)
        if bonuses is not None:
            calculated.totals.bonuses = to_cents(bonuses)
        return self.approve(professional_id, period, calculated.totals, calculated.line_items)

"""Commission <-> payable reconciliation.

Workflow:
1. An approved commission requests payment -> one COMMISSION payable is created
   (or the existing one reused) and linked both ways
2. The payable is paid -> the linked commission moves to PAID in the same
   transaction, following the payable's stored back-reference
3. Any APPROVED commission whose linked payable is already PAID (e.g. rows
   written before the back-reference existed) is healed on the next listing
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    CommissionEngineError, NotFoundError, PersistenceError,
    StateTransitionError, ValidationError,
)
from app.core.periods import Period, clamped_date
from app.models.commission import Commission, CommissionConfig, CommissionStatus
from app.models.payable import PayableCategory, PayableObligation, PayableStatus
from app.models.professional import Professional
from app.services.commission_ledger import CommissionLedgerService
from app.services.payables import PayableService, parse_date

logger = logging.getLogger(__name__)


@dataclass
class MarkPaidResult:
    obligation: PayableObligation
    cascaded_commission_id: Optional[int] = None
    cascaded_commission_status: Optional[CommissionStatus] = None


def commission_description(professional_id: int, today: date) -> str:
    return f"Commission professional {professional_id} - {today.strftime('%m/%Y')}"


class ReconciliationService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = CommissionLedgerService(db)
        self.payables = PayableService(db)

    # ── Pay-day configuration ────────────────────────────────────────

    def get_pay_day(self, professional_id: int) -> int:
        config = (
            self.db.query(CommissionConfig)
            .filter(CommissionConfig.professional_id == professional_id)
            .first()
        )
        if config and config.pay_day:
            return config.pay_day
        return settings.DEFAULT_COMMISSION_PAY_DAY

    def set_pay_day(self, professional_id: int, pay_day: int) -> CommissionConfig:
        if not 1 <= int(pay_day) <= 31:
            raise ValidationError("pay_day must be between 1 and 31")
        if self.db.get(Professional, professional_id) is None:
            raise NotFoundError(f"Professional {professional_id} not found")

        config = (
            self.db.query(CommissionConfig)
            .filter(CommissionConfig.professional_id == professional_id)
            .first()
        )
        if config is None:
            config = CommissionConfig(professional_id=professional_id)
            self.db.add(config)
        config.pay_day = int(pay_day)
        self.payables.commit_changes(f"set pay day for professional {professional_id}")
        logger.info(f"Professional {professional_id} commission pay day set to {pay_day}")
        return config

    # ── Request payment ──────────────────────────────────────────────

    def request_payment(self, commission_id: int, today: Optional[date] = None) -> int:
        """Return the payable backing an approved commission, creating it once.

        Idempotent: a commission that already has a payable gets that id back.
        Never marks anything PAID.
        """
        today = today or date.today()
        commission = self.ledger.get(commission_id)

        if commission.payable_obligation_id is not None:
            logger.info(
                f"Commission {commission_id} already linked to payable {commission.payable_obligation_id}"
            )
            return commission.payable_obligation_id

        if commission.status != CommissionStatus.APPROVED:
            logger.warning(f"Refused payment request for commission {commission_id} ({commission.status.value})")
            raise StateTransitionError(
                f"Commission {commission_id} must be APPROVED to request payment, "
                f"status is {commission.status.value}"
            )

        due = clamped_date(today.year, today.month, self.get_pay_day(commission.professional_id))
        try:
            obligation = self.payables.generate_single(
                description=commission_description(commission.professional_id, today),
                category=PayableCategory.COMMISSION,
                amount=commission.final_value,
                due_date=due,
                notes=f"Period: {commission.period_start.isoformat()} to {commission.period_end.isoformat()}",
                commit=False,
            )
            self.payables.link_to_commission(obligation.id, commission.id, commit=False)
            self.db.commit()
        except CommissionEngineError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Payment request failed for commission {commission_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to create commission payable") from e

        logger.info(
            f"Commission {commission_id} payment requested: payable {obligation.id} "
            f"amount={obligation.amount} due={due}"
        )
        return obligation.id

    def request_payment_for(self, professional_id: int, period: Period, today: Optional[date] = None) -> int:
        """Request payment by (professional, period), approving the live calculation first if needed."""
        commission = self.ledger.find(professional_id, period)
        commission_id = commission.id if commission is not None else None
        if commission_id is None:
            commission_id = self.ledger.approve_calculated(professional_id, period)
        return self.request_payment(commission_id, today=today)

    # ── Mark paid ────────────────────────────────────────────────────

    def mark_paid(self, obligation_id: int, payment_date=None) -> MarkPaidResult:
        """Mark a payable PAID and cascade PAID onto its linked commission.

        Both writes share one transaction. Re-running on a paid payable
        rewrites the same state.
        """
        obligation = self.payables.get(obligation_id)
        if obligation.status == PayableStatus.CANCELLED:
            raise StateTransitionError(f"Payable {obligation_id} is cancelled")

        if payment_date:
            paid_on = parse_date(payment_date, "payment_date")
        elif obligation.status == PayableStatus.PAID and obligation.payment_date:
            paid_on = obligation.payment_date
        else:
            paid_on = date.today()

        result = MarkPaidResult(obligation=obligation)
        try:
            obligation.status = PayableStatus.PAID
            obligation.payment_date = paid_on

            commission = self._linked_commission(obligation)
            if commission is not None:
                self._advance_to_paid(commission)
                result.cascaded_commission_id = commission.id
                result.cascaded_commission_status = commission.status

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Mark paid failed for payable {obligation_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark payable {obligation_id} paid") from e

        logger.info(
            f"Payable {obligation_id} paid on {paid_on}"
            + (f"; commission {result.cascaded_commission_id} -> PAID" if result.cascaded_commission_id else "")
        )
        return result

    def _linked_commission(self, obligation: PayableObligation) -> Optional[Commission]:
        if obligation.linked_commission_id is not None:
            return self.db.get(Commission, obligation.linked_commission_id)
        # Rows linked before the back-reference was stored
        commission = (
            self.db.query(Commission)
            .filter(Commission.payable_obligation_id == obligation.id)
            .first()
        )
        if commission is not None:
            obligation.linked_commission_id = commission.id
        return commission

    def _advance_to_paid(self, commission: Commission) -> None:
        if commission.status != CommissionStatus.PAID:
            commission.status = CommissionStatus.PAID
            commission.paid_at = datetime.utcnow()

    # ── Self-heal ────────────────────────────────────────────────────

    def heal_period(self, period: Period) -> List[int]:
        """Advance APPROVED commissions of the period whose payable is PAID. Returns healed ids."""
        stale = (
            self.db.query(Commission)
            .join(PayableObligation, PayableObligation.id == Commission.payable_obligation_id)
            .filter(
                Commission.period_start == period.start,
                Commission.period_end == period.end,
                Commission.status == CommissionStatus.APPROVED,
                PayableObligation.status == PayableStatus.PAID,
            )
            .all()
        )
        if not stale:
            return []

        for commission in stale:
            self._advance_to_paid(commission)
        self.payables.commit_changes(f"heal commissions for {period}")
        healed = [c.id for c in stale]
        logger.info(f"Healed {len(healed)} commission(s) for {period}: {healed}")
        return healed

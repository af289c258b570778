"""Tests for commission approval: idempotent upsert and full line-item replace."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, StateTransitionError, ValidationError
from app.core.periods import Period
from app.models.appointment import Appointment, PaymentStatus
from app.models.commission import Commission, CommissionLineItem, CommissionStatus
from app.models.payable import PayableCategory, PayableStatus
from app.services.commission import CommissionTotals, LineItemDraft
from app.services.commission_ledger import CommissionLedgerService, validate_snapshot
from app.services.payables import PayableService, RecurringScheduleSpec
from app.services.reconciliation import ReconciliationService

MARCH = Period.for_month(2025, 3)


def _item(appointment_id: int, value: str, pct: str = "40") -> LineItemDraft:
    service_value = Decimal(value)
    return LineItemDraft(
        appointment_id=appointment_id,
        service_value=service_value,
        commission_percentage=Decimal(pct),
        commission_value=(service_value * Decimal(pct) / 100).quantize(Decimal("0.01")),
    )


class TestValidateSnapshot:
    def test_empty_items_allowed_for_zero_appointments(self):
        validate_snapshot(CommissionTotals(), [])

    def test_empty_items_rejected_when_appointments_counted(self):
        with pytest.raises(ValidationError):
            validate_snapshot(CommissionTotals(total_appointments=2, total_commission=Decimal("140")), [])

    def test_item_sum_must_match_total_commission(self):
        totals = CommissionTotals(total_appointments=1, total_commission=Decimal("60.02"))
        with pytest.raises(ValidationError):
            validate_snapshot(totals, [_item(1, "150.00")])

    def test_one_cent_tolerance(self):
        totals = CommissionTotals(total_appointments=1, total_commission=Decimal("60.01"))
        validate_snapshot(totals, [_item(1, "150.00")])

    def test_duplicate_appointments_rejected(self):
        totals = CommissionTotals(total_appointments=2, total_commission=Decimal("120.00"))
        with pytest.raises(ValidationError):
            validate_snapshot(totals, [_item(1, "150.00"), _item(1, "150.00")])

    def test_negative_bonuses_rejected(self):
        with pytest.raises(ValidationError):
            validate_snapshot(CommissionTotals(bonuses=Decimal("-1")), [])


class TestApprove:
    def test_creates_approved_record_with_line_items(self, db, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH)

        record = ledger.get(commission_id)
        assert record.status == CommissionStatus.APPROVED
        assert record.period_start == date(2025, 3, 1)
        assert record.period_end == date(2025, 4, 1)
        assert record.total_appointments == 2
        assert record.total_revenue == Decimal("350.00")
        assert record.total_commission == Decimal("140.00")
        assert record.bonuses == Decimal("0.00")
        assert record.final_value == Decimal("140.00")
        assert record.approved_at is not None
        assert sum(i.commission_value for i in record.line_items) == record.total_commission

    def test_reapprove_same_data_is_idempotent(self, db, march_scenario):
        ledger = CommissionLedgerService(db)
        first = ledger.approve_calculated(march_scenario.id, MARCH)
        second = ledger.approve_calculated(march_scenario.id, MARCH)

        assert first == second
        assert db.query(Commission).count() == 1
        assert db.query(CommissionLineItem).count() == 2

    def test_reapprove_replaces_line_items_without_residue(self, db, make, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH)
        before = {i.appointment_id for i in ledger.get(commission_id).line_items}

        # Appointment data changes: one refunded, one new appointment added
        refunded = db.get(Appointment, min(before))
        refunded.payment_status = PaymentStatus.REFUNDED
        db.commit()
        new_service = make.service("80.00", "50")
        added = make.appointment(march_scenario, new_service, datetime(2025, 3, 28, 11, 0))

        ledger.approve_calculated(march_scenario.id, MARCH)
        db.expire_all()
        record = ledger.get(commission_id)

        items = {i.appointment_id for i in record.line_items}
        assert items == (before - {min(before)}) | {added.id}
        assert db.query(CommissionLineItem).filter(CommissionLineItem.commission_id == commission_id).count() == 2
        assert record.total_appointments == 2
        assert record.total_commission == Decimal("120.00")  # 200 * 40% + 80 * 50%
        assert sum(i.commission_value for i in record.line_items) == record.total_commission

    def test_zero_appointment_period_can_be_approved(self, db, make):
        professional = make.professional("Idle")
        commission_id = CommissionLedgerService(db).approve_calculated(professional.id, MARCH)
        record = db.get(Commission, commission_id)
        assert record.total_appointments == 0
        assert record.final_value == Decimal("0.00")
        assert record.line_items == []

    def test_bonuses_added_to_final_value_and_preserved(self, db, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH, bonuses=Decimal("15.50"))
        assert ledger.get(commission_id).final_value == Decimal("155.50")

        # Re-approval without bonuses keeps the stored value
        ledger.approve_calculated(march_scenario.id, MARCH)
        db.expire_all()
        record = ledger.get(commission_id)
        assert record.bonuses == Decimal("15.50")
        assert record.final_value == record.total_commission + record.bonuses

    def test_preserves_payable_link_and_syncs_pending_amount(self, db, make, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH)
        obligation_id = ReconciliationService(db).request_payment(commission_id, today=date(2025, 4, 2))

        make.appointment(march_scenario, make.service("50.00", "40"), datetime(2025, 3, 30, 9, 0))
        ledger.approve_calculated(march_scenario.id, MARCH)
        db.expire_all()

        record = ledger.get(commission_id)
        assert record.payable_obligation_id == obligation_id
        assert record.status == CommissionStatus.APPROVED
        assert record.final_value == Decimal("160.00")
        assert PayableService(db).get(obligation_id).amount == Decimal("160.00")

    def test_installment_amount_not_synced(self, db, make, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH)
        spec = RecurringScheduleSpec.build("2025-04-05", 2)
        rows = PayableService(db).generate_recurring(
            spec, "Commission P1 split", PayableCategory.COMMISSION, "70.00", commission_id=commission_id
        )

        make.appointment(march_scenario, make.service("50.00", "40"), datetime(2025, 3, 30, 9, 0))
        ledger.approve_calculated(march_scenario.id, MARCH)
        db.expire_all()

        assert PayableService(db).get(rows[0].id).amount == Decimal("70.00")

    def test_paid_commission_cannot_be_reapproved(self, db, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH)
        reconciliation = ReconciliationService(db)
        obligation_id = reconciliation.request_payment(commission_id, today=date(2025, 4, 2))
        reconciliation.mark_paid(obligation_id, date(2025, 4, 5))

        with pytest.raises(StateTransitionError):
            ledger.approve_calculated(march_scenario.id, MARCH)
        assert ledger.get(commission_id).status == CommissionStatus.PAID

    def test_linked_payable_paid_blocks_reapproval(self, db, march_scenario):
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve_calculated(march_scenario.id, MARCH)
        obligation_id = ReconciliationService(db).request_payment(commission_id, today=date(2025, 4, 2))

        # Payable paid outside the cascade (commission left APPROVED)
        obligation = PayableService(db).get(obligation_id)
        obligation.status = PayableStatus.PAID
        obligation.payment_date = date(2025, 4, 5)
        db.commit()

        with pytest.raises(StateTransitionError):
            ledger.approve_calculated(march_scenario.id, MARCH)

    def test_unknown_professional(self, db):
        with pytest.raises(NotFoundError):
            CommissionLedgerService(db).approve(999, MARCH, CommissionTotals(), [])

    def test_explicit_snapshot(self, db, make):
        professional = make.professional()
        totals = CommissionTotals(
            total_appointments=2,
            total_revenue=Decimal("350.00"),
            total_commission=Decimal("140.00"),
        )
        ledger = CommissionLedgerService(db)
        commission_id = ledger.approve(professional.id, MARCH, totals, [_item(11, "150.00"), _item(12, "200.00")])

        record = ledger.get(commission_id)
        assert [i.appointment_id for i in record.line_items] == [11, 12]
        assert record.final_value == Decimal("140.00")

    def test_final_value_sums_rounded_parts(self, db, make):
        professional = make.professional()
        totals = CommissionTotals(
            total_appointments=1,
            total_revenue=Decimal("25.0125"),
            total_commission=Decimal("10.005"),
            bonuses=Decimal("0.005"),
        )
        item = LineItemDraft(
            appointment_id=21,
            service_value=Decimal("25.01"),
            commission_percentage=Decimal("40"),
            commission_value=Decimal("10.01"),
        )
        ledger = CommissionLedgerService(db)
        record = ledger.get(ledger.approve(professional.id, MARCH, totals, [item]))

        assert record.total_commission == Decimal("10.01")
        assert record.bonuses == Decimal("0.01")
        assert record.final_value == Decimal("10.02")
        assert record.final_value == record.total_commission + record.bonuses

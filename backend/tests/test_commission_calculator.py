"""Tests for the commission calculator: pure aggregation and its DB loader."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.core.periods import Period
from app.models.appointment import AppointmentStatus, PaymentStatus
from app.models.commission import CommissionStatus
from app.services.commission import (
    AppointmentFact,
    CommissionCalculationService,
    CommissionTotals,
    build_line_item,
    calculate_commissions,
)

MARCH = Period.for_month(2025, 3)


@dataclass
class RosterEntry:
    id: int
    name: str


@dataclass
class StoredRecord:
    id: int
    status: CommissionStatus
    bonuses: Decimal
    payable_obligation_id: Optional[int] = None


def _fact(
    fact_id: int,
    professional_id: int = 1,
    price: Optional[str] = "150.00",
    pct: Optional[str] = "40",
    paid: Optional[str] = None,
    when=datetime(2025, 3, 10, 10, 0),
    status: str = "COMPLETED",
    payment_status: str = "PAID",
) -> AppointmentFact:
    return AppointmentFact(
        id=fact_id,
        professional_id=professional_id,
        date=when,
        status=status,
        payment_status=payment_status,
        payment_amount=Decimal(paid) if paid is not None else None,
        service_price=Decimal(price) if price is not None else None,
        commission_percentage=Decimal(pct) if pct is not None else None,
    )


class TestBuildLineItem:
    def test_uses_payment_amount_when_present(self):
        item = build_line_item(_fact(1, price="150.00", paid="120.00"))
        assert item.service_value == Decimal("120.00")
        assert item.commission_value == Decimal("48.00")

    def test_falls_back_to_service_price(self):
        item = build_line_item(_fact(1, price="150.00"))
        assert item.service_value == Decimal("150.00")
        assert item.commission_value == Decimal("60.00")

    def test_zero_payment_amount_is_not_replaced_by_price(self):
        item = build_line_item(_fact(1, price="150.00", paid="0"))
        assert item.service_value == Decimal("0.00")
        assert item.commission_value == Decimal("0.00")

    def test_missing_price_and_percentage_default_to_zero(self):
        item = build_line_item(_fact(1, price=None, pct=None))
        assert item.service_value == Decimal("0.00")
        assert item.commission_percentage == Decimal("0.00")
        assert item.commission_value == Decimal("0.00")

    def test_commission_value_rounded_to_cents(self):
        item = build_line_item(_fact(1, price="33.33", pct="33.33"))
        assert item.commission_value == Decimal("11.11")


class TestCalculateCommissions:
    def test_aggregates_per_professional(self):
        facts = [
            _fact(1, professional_id=1, price="150.00"),
            _fact(2, professional_id=1, price="200.00"),
            _fact(3, professional_id=2, price="60.00", pct="50"),
        ]
        results = {r.professional_id: r for r in calculate_commissions([], facts, MARCH)}

        first = results[1]
        assert first.totals.total_appointments == 2
        assert first.totals.total_revenue == Decimal("350.00")
        assert first.totals.total_commission == Decimal("140.00")
        assert first.totals.bonuses == Decimal("0.00")
        assert first.totals.final_value == Decimal("140.00")
        assert first.status == CommissionStatus.CALCULATED
        assert first.commission_id is None
        assert results[2].totals.total_commission == Decimal("30.00")

    @pytest.mark.parametrize(
        "fact",
        [
            _fact(9, status="SCHEDULED"),
            _fact(9, status="CANCELLED"),
            _fact(9, payment_status="PENDING"),
            _fact(9, when=datetime(2025, 2, 28, 23, 59)),
            _fact(9, when=datetime(2025, 4, 1, 0, 0)),
        ],
    )
    def test_non_qualifying_appointments_ignored(self, fact):
        results = calculate_commissions([], [_fact(1), fact], MARCH)
        assert len(results) == 1
        assert [i.appointment_id for i in results[0].line_items] == [1]

    def test_roster_members_without_appointments_get_zero_totals(self):
        roster = [RosterEntry(1, "Ana"), RosterEntry(2, "Bruno")]
        results = calculate_commissions(roster, [_fact(1, professional_id=1)], MARCH)

        assert [r.professional_id for r in results] == [1, 2]
        assert results[0].professional_name == "Ana"
        assert results[1].totals.total_appointments == 0
        assert results[1].totals.final_value == Decimal("0.00")
        assert results[1].line_items == []

    def test_persisted_record_overrides_status_bonuses_and_link(self):
        persisted = {
            1: StoredRecord(id=77, status=CommissionStatus.APPROVED, bonuses=Decimal("25.00"), payable_obligation_id=5)
        }
        result = calculate_commissions([RosterEntry(1, "Ana")], [_fact(1)], MARCH, persisted)[0]

        assert result.commission_id == 77
        assert result.status == CommissionStatus.APPROVED
        assert result.payable_obligation_id == 5
        # Totals stay live; bonuses come from the record
        assert result.totals.total_commission == Decimal("60.00")
        assert result.totals.final_value == Decimal("85.00")

    def test_line_items_always_sum_to_total(self):
        facts = [_fact(i, price="19.99", pct="33.33") for i in range(1, 8)]
        result = calculate_commissions([], facts, MARCH)[0]
        assert sum(i.commission_value for i in result.line_items) == result.totals.total_commission

    def test_final_value_adds_cent_rounded_parts(self):
        totals = CommissionTotals(total_commission=Decimal("10.005"), bonuses=Decimal("0.005"))
        assert totals.final_value == Decimal("10.02")


class TestCommissionCalculationService:
    def test_loads_completed_paid_appointments_for_period(self, db, make, march_scenario):
        other = make.professional("P2")
        service = make.service("80.00", "25")
        make.appointment(other, service, datetime(2025, 3, 5), payment_status=PaymentStatus.PENDING)
        make.appointment(other, service, datetime(2025, 3, 6), status=AppointmentStatus.NO_SHOW)
        make.appointment(march_scenario, service, datetime(2025, 4, 1, 9, 0))

        results = CommissionCalculationService(db).calculate_period(MARCH)
        by_id = {r.professional_id: r for r in results}

        assert by_id[march_scenario.id].totals.total_appointments == 2
        assert by_id[march_scenario.id].totals.total_revenue == Decimal("350.00")
        assert by_id[march_scenario.id].totals.total_commission == Decimal("140.00")
        assert by_id[other.id].totals.total_appointments == 0

    def test_inactive_professionals_only_listed_with_appointments(self, db, make):
        make.professional("Retired", is_active=False)
        active = make.professional("Active")
        results = CommissionCalculationService(db).calculate_period(MARCH)
        assert [r.professional_id for r in results] == [active.id]

    def test_calculate_for_unknown_professional(self, db):
        with pytest.raises(NotFoundError):
            CommissionCalculationService(db).calculate_for_professional(999, MARCH)

    def test_update_service_commission(self, db, make, march_scenario):
        service = make.service("100.00", "10")
        updated = CommissionCalculationService(db).update_service_commission(service.id, "35")
        assert updated.commission_percentage == Decimal("35.00")

    def test_update_service_commission_rejects_out_of_range(self, db, make):
        service = make.service()
        with pytest.raises(ValidationError):
            CommissionCalculationService(db).update_service_commission(service.id, 120)

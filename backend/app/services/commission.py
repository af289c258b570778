"""Commission calculation.

Commission logic:
1. Only COMPLETED appointments with payment_status PAID inside the month count
2. Revenue is the amount actually paid, falling back to the service price
3. Commission is revenue * service.commission_percentage / 100, rounded per appointment
4. A persisted (approved) record only contributes status, bonuses and payable link;
   totals and line items are always recomputed from the current appointments
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import NotFoundError, ValidationError
from app.core.periods import Period, to_cents
from app.models.appointment import Appointment, AppointmentStatus, PaymentStatus, Service
from app.models.commission import Commission, CommissionStatus
from app.models.professional import Professional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentFact:
    """Read-only projection of an appointment, as the calculator sees it."""
    id: int
    professional_id: int
    date: object  # date or datetime
    status: str
    payment_status: str
    payment_amount: Optional[Decimal] = None
    service_price: Optional[Decimal] = None
    commission_percentage: Optional[Decimal] = None
    client_id: Optional[int] = None
    service_id: Optional[int] = None


@dataclass(frozen=True)
class LineItemDraft:
    appointment_id: int
    service_value: Decimal
    commission_percentage: Decimal
    commission_value: Decimal


@dataclass
class CommissionTotals:
    total_appointments: int = 0
    total_revenue: Decimal = Decimal("0.00")
    total_commission: Decimal = Decimal("0.00")
    bonuses: Decimal = Decimal("0.00")

    @property
    def final_value(self) -> Decimal:
        # Sum of the stored (cent-rounded) parts
        return to_cents(self.total_commission) + to_cents(self.bonuses)


@dataclass
class CalculatedCommission:
    """Per-professional result for one period (ephemeral unless approved)."""
    professional_id: int
    period: Period
    professional_name: Optional[str] = None
    totals: CommissionTotals = field(default_factory=CommissionTotals)
    line_items: List[LineItemDraft] = field(default_factory=list)
    status: CommissionStatus = CommissionStatus.CALCULATED
    commission_id: Optional[int] = None
    payable_obligation_id: Optional[int] = None

    @property
    def is_persisted(self) -> bool:
        return self.commission_id is not None


def _enum_value(value) -> str:
    return getattr(value, "value", value)


def is_commissionable(fact: AppointmentFact, period: Period) -> bool:
    return (
        _enum_value(fact.status) == AppointmentStatus.COMPLETED.value
        and _enum_value(fact.payment_status) == PaymentStatus.PAID.value
        and fact.date is not None
        and period.contains(fact.date)
    )


def build_line_item(fact: AppointmentFact) -> LineItemDraft:
    revenue = fact.payment_amount if fact.payment_amount is not None else fact.service_price
    revenue = to_cents(revenue)
    percentage = to_cents(fact.commission_percentage)
    return LineItemDraft(
        appointment_id=fact.id,
        service_value=revenue,
        commission_percentage=percentage,
        commission_value=to_cents(revenue * percentage / Decimal("100")),
    )


def calculate_commissions(
    roster: Iterable,
    facts: Iterable[AppointmentFact],
    period: Period,
    persisted: Optional[Dict[int, Commission]] = None,
) -> List[CalculatedCommission]:
    """Aggregate appointment facts into one CalculatedCommission per professional.

    Pure: reads its arguments only. Every roster member appears, with zero
    totals when they had no qualifying appointment; professionals outside the
    roster who do have qualifying appointments are appended after it.
    `persisted` maps professional_id to an existing record for the period.
    """
    persisted = persisted or {}
    results: Dict[int, CalculatedCommission] = {}

    for professional in roster:
        results[professional.id] = CalculatedCommission(
            professional_id=professional.id,
            professional_name=getattr(professional, "name", None),
            period=period,
        )

    for fact in sorted(facts, key=lambda f: (f.professional_id, f.id)):
        if not is_commissionable(fact, period):
            continue
        result = results.get(fact.professional_id)
        if result is None:
            result = results[fact.professional_id] = CalculatedCommission(
                professional_id=fact.professional_id,
                period=period,
            )
        item = build_line_item(fact)
        result.line_items.append(item)
        result.totals.total_appointments += 1
        result.totals.total_revenue += item.service_value
        # Sum of rounded items, so line items always reconcile with the total
        result.totals.total_commission += item.commission_value

    for professional_id, result in results.items():
        record = persisted.get(professional_id)
        if record is None:
            continue
        result.commission_id = record.id
        result.status = CommissionStatus(_enum_value(record.status))
        result.totals.bonuses = to_cents(record.bonuses)
        result.payable_obligation_id = record.payable_obligation_id

    return list(results.values())


def fact_from_appointment(appointment: Appointment) -> AppointmentFact:
    service = appointment.service
    return AppointmentFact(
        id=appointment.id,
        professional_id=appointment.professional_id,
        date=appointment.date,
        status=_enum_value(appointment.status),
        payment_status=_enum_value(appointment.payment_status),
        payment_amount=appointment.payment_amount,
        service_price=service.price if service else None,
        commission_percentage=service.commission_percentage if service else None,
        client_id=appointment.client_id,
        service_id=appointment.service_id,
    )


class CommissionCalculationService:
    """Loads appointment facts and persisted records, then runs the calculator."""

    def __init__(self, db: Session):
        self.db = db

    def get_roster(self, professional_id: Optional[int] = None) -> List[Professional]:
        query = self.db.query(Professional)
        if professional_id is not None:
            query = query.filter(Professional.id == professional_id)
        else:
            query = query.filter(Professional.is_active == True)
        return query.order_by(Professional.id).all()

    def get_appointment_facts(
        self,
        period: Period,
        professional_id: Optional[int] = None,
    ) -> List[AppointmentFact]:
        query = (
            self.db.query(Appointment)
            .options(joinedload(Appointment.service))
            .filter(
                Appointment.status == AppointmentStatus.COMPLETED,
                Appointment.payment_status == PaymentStatus.PAID,
                Appointment.date >= period.start_datetime,
                Appointment.date < period.end_datetime,
            )
        )
        if professional_id is not None:
            query = query.filter(Appointment.professional_id == professional_id)
        return [fact_from_appointment(a) for a in query.all()]

    def get_persisted(
        self,
        period: Period,
        professional_id: Optional[int] = None,
    ) -> Dict[int, Commission]:
        query = self.db.query(Commission).filter(
            Commission.period_start == period.start,
            Commission.period_end == period.end,
        )
        if professional_id is not None:
            query = query.filter(Commission.professional_id == professional_id)
        return {c.professional_id: c for c in query.all()}

    def calculate_period(
        self,
        period: Period,
        professional_id: Optional[int] = None,
    ) -> List[CalculatedCommission]:
        """Calculate commissions for every active professional (or just one)."""
        results = calculate_commissions(
            self.get_roster(professional_id),
            self.get_appointment_facts(period, professional_id),
            period,
            self.get_persisted(period, professional_id),
        )
        logger.debug(f"Calculated {len(results)} commission(s) for {period}")
        return results

    def calculate_for_professional(self, professional_id: int, period: Period) -> CalculatedCommission:
        if self.db.get(Professional, professional_id) is None:
            raise NotFoundError(f"Professional {professional_id} not found")
        for result in self.calculate_period(period, professional_id):
            if result.professional_id == professional_id:
                return result
        return CalculatedCommission(professional_id=professional_id, period=period)

    def update_service_commission(self, service_id: int, commission_percentage) -> Service:
        """Change a service's commission rate (affects every non-approved period)."""
        percentage = to_cents(commission_percentage)
        if percentage < 0 or percentage > 100:
            raise ValidationError("commission_percentage must be between 0 and 100")

        service = self.db.get(Service, service_id)
        if service is None:
            raise NotFoundError(f"Service {service_id} not found")

        service.commission_percentage = percentage
        self.db.commit()
        self.db.refresh(service)
        logger.info(f"Service {service_id} commission set to {percentage}%")
        return service

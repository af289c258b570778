"""Commission views: live calculation merged with persisted ledger state."""
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.periods import Period, to_cents
from app.models.commission import Commission
from app.models.payable import PayableObligation
from app.services.commission import CalculatedCommission, CommissionCalculationService
from app.services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)


def _view(result: CalculatedCommission, record: Optional[Commission], obligation: Optional[PayableObligation]) -> Dict:
    totals = result.totals
    view = {
        "id": result.commission_id,
        "professional_id": result.professional_id,
        "professional_name": result.professional_name,
        "period": result.period.key,
        "period_start": result.period.start,
        "period_end": result.period.end,
        "totals": {
            "total_appointments": totals.total_appointments,
            "total_revenue": to_cents(totals.total_revenue),
            "total_commission": to_cents(totals.total_commission),
            "bonuses": to_cents(totals.bonuses),
            "final_value": totals.final_value,
        },
        "status": result.status,
        "payable_obligation_id": result.payable_obligation_id,
        "payable_status": obligation.status if obligation is not None else None,
        "line_items": [
            {
                "appointment_id": item.appointment_id,
                "service_value": item.service_value,
                "commission_percentage": item.commission_percentage,
                "commission_value": item.commission_value,
            }
            for item in result.line_items
        ],
        # Approved snapshot no longer matches the live appointments
        "is_stale": False,
    }
    if record is not None:
        view["is_stale"] = (
            record.total_appointments != totals.total_appointments
            or to_cents(record.total_commission) != to_cents(totals.total_commission)
        )
    return view


class CommissionProjectionService:
    def __init__(self, db: Session):
        self.db = db
        self.calculator = CommissionCalculationService(db)

    def list_views(self, period: Period, professional_id: Optional[int] = None) -> List[Dict]:
        """One view per professional; persisted status wins over CALCULATED."""
        ReconciliationService(self.db).heal_period(period)

        results = self.calculator.calculate_period(period, professional_id)
        records = self.calculator.get_persisted(period, professional_id)

        obligation_ids = [r.payable_obligation_id for r in results if r.payable_obligation_id]
        obligations = {}
        if obligation_ids:
            obligations = {
                o.id: o
                for o in self.db.query(PayableObligation).filter(PayableObligation.id.in_(obligation_ids)).all()
            }

        return [
            _view(
                result,
                records.get(result.professional_id),
                obligations.get(result.payable_obligation_id),
            )
            for result in results
        ]

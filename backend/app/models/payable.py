from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Enum, Text, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class PayableStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PayableCategory(str, enum.Enum):
    COMMISSION = "COMMISSION"
    RENT = "RENT"
    PRODUCT = "PRODUCT"
    SALARY = "SALARY"
    UTILITIES = "UTILITIES"
    OTHER = "OTHER"


class Periodicity(str, enum.Enum):
    MONTHLY = "MONTHLY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"


class PayableObligation(Base):
    """Scheduled outgoing payment (accounts payable entry)."""
    __tablename__ = "payable_obligations"
    __table_args__ = (
        CheckConstraint(
            "status <> 'PAID' OR payment_date IS NOT NULL",
            name="ck_payable_obligations_paid_has_date",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    description = Column(String, nullable=False)
    category = Column(Enum(PayableCategory), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)

    due_date = Column(Date, nullable=False, index=True)
    payment_date = Column(Date, nullable=True)  # set whenever status == PAID
    status = Column(Enum(PayableStatus), default=PayableStatus.PENDING, nullable=False, index=True)
    payment_method = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # Installment position for recurring batches (null for single obligations)
    installment_number = Column(Integer, nullable=True)
    installment_count = Column(Integer, nullable=True)

    # Links
    linked_commission_id = Column(Integer, ForeignKey("commissions.id"), nullable=True, index=True)
    linked_supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True, index=True)
    linked_purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    commission = relationship("Commission", foreign_keys=[linked_commission_id])
    supplier = relationship("Supplier")
    purchase_order = relationship("PurchaseOrder")

    @property
    def is_installment(self) -> bool:
        return self.installment_count is not None

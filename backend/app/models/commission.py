from sqlalchemy import (
    Column, Integer, Numeric, Date, DateTime, ForeignKey, Enum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class CommissionStatus(str, enum.Enum):
    CALCULATED = "CALCULATED"  # virtual; never written by approve
    APPROVED = "APPROVED"
    PAID = "PAID"


# Forward-only lifecycle order
COMMISSION_STATUS_RANK = {
    CommissionStatus.CALCULATED: 0,
    CommissionStatus.APPROVED: 1,
    CommissionStatus.PAID: 2,
}


class Commission(Base):
    """Approved commission snapshot for one professional in one month."""
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint(
            "professional_id", "period_start", "period_end",
            name="uq_commissions_professional_period",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)

    # Half-open month interval [period_start, period_end)
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False)

    # Totals snapshot
    total_appointments = Column(Integer, default=0, nullable=False)
    total_revenue = Column(Numeric(12, 2), default=0, nullable=False)
    total_commission = Column(Numeric(12, 2), default=0, nullable=False)
    bonuses = Column(Numeric(12, 2), default=0, nullable=False)
    final_value = Column(Numeric(12, 2), default=0, nullable=False)  # total_commission + bonuses

    status = Column(Enum(CommissionStatus), default=CommissionStatus.APPROVED, nullable=False)

    # Forward link to the payable; the payable stores the back-reference
    payable_obligation_id = Column(Integer, nullable=True, index=True)

    approved_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    professional = relationship("Professional", back_populates="commissions")
    line_items = relationship(
        "CommissionLineItem",
        back_populates="commission",
        cascade="all, delete-orphan",
        order_by="CommissionLineItem.appointment_id",
    )


class CommissionLineItem(Base):
    """One appointment's contribution to a commission snapshot."""
    __tablename__ = "commission_line_items"
    __table_args__ = (
        UniqueConstraint("commission_id", "appointment_id", name="uq_commission_line_items_appointment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    commission_id = Column(Integer, ForeignKey("commissions.id"), nullable=False, index=True)
    appointment_id = Column(Integer, nullable=False, index=True)

    service_value = Column(Numeric(12, 2), nullable=False)
    commission_percentage = Column(Numeric(5, 2), nullable=False)
    commission_value = Column(Numeric(12, 2), nullable=False)

    commission = relationship("Commission", back_populates="line_items")


class CommissionConfig(Base):
    """Per-professional commission settings."""
    __tablename__ = "commission_configs"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, unique=True, index=True)
    pay_day = Column(Integer, nullable=False, default=5)  # day of month commission is due

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    professional = relationship("Professional", back_populates="commission_config")

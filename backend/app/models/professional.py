from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Professional(Base):
    """Salon professional (stylist, barber, therapist) who earns commissions.

    Owned by the scheduling side of the back office; read here as the
    commission roster.
    """
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True, index=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    appointments = relationship("Appointment", back_populates="professional")
    commissions = relationship("Commission", back_populates="professional")
    commission_config = relationship("CommissionConfig", back_populates="professional", uselist=False)

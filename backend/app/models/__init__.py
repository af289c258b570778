from app.models.professional import Professional
from app.models.appointment import Appointment, AppointmentStatus, PaymentStatus, Service
from app.models.inventory import Supplier, Product, PurchaseOrder
from app.models.commission import (
    Commission, CommissionLineItem, CommissionConfig, CommissionStatus,
)
from app.models.payable import PayableObligation, PayableStatus, PayableCategory, Periodicity

__all__ = [
    "Professional",
    "Appointment",
    "AppointmentStatus",
    "PaymentStatus",
    "Service",
    "Supplier",
    "Product",
    "PurchaseOrder",
    "Commission",
    "CommissionLineItem",
    "CommissionConfig",
    "CommissionStatus",
    "PayableObligation",
    "PayableStatus",
    "PayableCategory",
    "Periodicity",
]

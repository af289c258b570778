import os

# Point settings at SQLite before anything imports app.core.database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.main import app
from app.models import (
    Appointment, AppointmentStatus, PaymentStatus, Product, Professional,
    PurchaseOrder, Service, Supplier,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class Factory:
    """Creates the collaborator rows the commission engine reads."""

    def __init__(self, db):
        self.db = db

    def professional(self, name: str = "Ana", is_active: bool = True) -> Professional:
        professional = Professional(name=name, is_active=is_active)
        self.db.add(professional)
        self.db.commit()
        return professional

    def service(self, price="150.00", commission_percentage="40", name: str = "Haircut") -> Service:
        service = Service(
            name=name,
            price=Decimal(price) if price is not None else None,
            commission_percentage=Decimal(commission_percentage) if commission_percentage is not None else None,
        )
        self.db.add(service)
        self.db.commit()
        return service

    def appointment(
        self,
        professional: Professional,
        service: Optional[Service],
        when: datetime,
        status: AppointmentStatus = AppointmentStatus.COMPLETED,
        payment_status: PaymentStatus = PaymentStatus.PAID,
        payment_amount: Optional[str] = None,
    ) -> Appointment:
        appointment = Appointment(
            professional_id=professional.id,
            service_id=service.id if service else None,
            date=when,
            status=status,
            payment_status=payment_status,
            payment_amount=Decimal(payment_amount) if payment_amount is not None else None,
        )
        self.db.add(appointment)
        self.db.commit()
        return appointment

    def purchase_order(self, cost_price="32.50", quantity: int = 12) -> PurchaseOrder:
        supplier = Supplier(name="Beauty Supply Co.")
        product = Product(name="Shampoo 1L", cost_price=Decimal(cost_price))
        self.db.add_all([supplier, product])
        self.db.flush()
        order = PurchaseOrder(product_id=product.id, supplier_id=supplier.id, quantity=quantity)
        self.db.add(order)
        self.db.commit()
        return order


@pytest.fixture
def make(db) -> Factory:
    return Factory(db)


@pytest.fixture
def march_scenario(make):
    """P1 with two COMPLETED/PAID March 2025 appointments at 150.00 and 200.00, 40% commission."""
    professional = make.professional("P1")
    haircut = make.service("150.00", "40", name="Haircut")
    coloring = make.service("200.00", "40", name="Coloring")
    make.appointment(professional, haircut, datetime(2025, 3, 4, 10, 0))
    make.appointment(professional, coloring, datetime(2025, 3, 18, 15, 30))
    return professional

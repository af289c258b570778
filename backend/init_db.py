"""
Database initialization script
Run this to create tables and seed demo data
"""
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import engine, Base, SessionLocal
from app.models import (
    Appointment, AppointmentStatus, CommissionConfig, PaymentStatus,
    Product, Professional, PurchaseOrder, Service, Supplier,
)


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed a demo roster, services and a month of paid appointments"""
    db = SessionLocal()

    try:
        print("\nSeeding demo data...")

        if db.query(Professional).count():
            print("✓ Professionals already present, skipping seed")
            return

        ana = Professional(name="Ana Souza", email="ana@salon.example")
        bruno = Professional(name="Bruno Lima", email="bruno@salon.example")
        db.add_all([ana, bruno])
        db.flush()
        print("✓ Professionals created")

        services = [
            Service(name="Haircut", price=Decimal("150.00"), commission_percentage=Decimal("40")),
            Service(name="Coloring", price=Decimal("200.00"), commission_percentage=Decimal("40")),
            Service(name="Manicure", price=Decimal("60.00"), commission_percentage=Decimal("50")),
        ]
        db.add_all(services)
        db.flush()
        print(f"✓ {len(services)} services created")

        db.add(CommissionConfig(professional_id=bruno.id, pay_day=10))

        today = datetime.utcnow().replace(hour=10, minute=0, second=0, microsecond=0)
        appointments = [
            (ana, services[0], 1, None),
            (ana, services[1], 2, None),
            (bruno, services[2], 3, Decimal("55.00")),  # discounted at checkout
        ]
        for professional, service, day, paid in appointments:
            db.add(Appointment(
                professional_id=professional.id,
                service_id=service.id,
                date=today.replace(day=day),
                status=AppointmentStatus.COMPLETED,
                payment_status=PaymentStatus.PAID,
                payment_amount=paid,
                payment_date=today.replace(day=day),
            ))
        print(f"✓ {len(appointments)} paid appointments created")

        supplier = Supplier(name="Beauty Supply Co.")
        product = Product(name="Shampoo 1L", cost_price=Decimal("32.50"))
        db.add_all([supplier, product])
        db.flush()
        db.add(PurchaseOrder(product_id=product.id, supplier_id=supplier.id, quantity=12))
        print("✓ Supplier and purchase order created")

        db.commit()
        print("\n✓ Database seeded successfully!")

    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
    finally:
        db.close()


if __name__ == "__main__":
    print("=" * 60)
    print("Salon Back Office - Database Initialization")
    print("=" * 60)

    init_db()
    seed_data()

    print("\n" + "=" * 60)
    print("Initialization complete!")
    print("=" * 60)
    print("\nYou can now access:")
    print("  - API: http://localhost:8000")
    print("  - API Docs: http://localhost:8000/docs")
    print("=" * 60)

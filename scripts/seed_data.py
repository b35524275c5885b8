"""Seed database with sample data."""

import asyncio
from datetime import date, time, timedelta
from decimal import Decimal

from daycare.core.database import AsyncSessionLocal, init_db
from daycare.core.security import get_password_hash
from daycare.models import (
    ChildStatus,
    PayFrequency,
    PaymentType,
    Schedule,
    ScheduleStatus,
    User,
    UserRole,
)
from daycare.services.family_service import FamilyService
from daycare.services.invoice_service import InvoiceService
from daycare.services.payroll_service import PayrollService
from daycare.utils.timezone import today_local


async def seed_data():
    """Seed database with sample data."""
    await init_db()

    async with AsyncSessionLocal() as db:
        admin = User(
            email="director@daycare.local",
            password_hash=get_password_hash("director123"),
            first_name="Dana",
            last_name="Whitfield",
            role=UserRole.ADMIN,
        )
        educators = [
            User(
                email="olivia@daycare.local",
                password_hash=get_password_hash("educator123"),
                first_name="Olivia",
                last_name="Chen",
                role=UserRole.EDUCATOR,
                payment_type=PaymentType.HOURLY,
                hourly_rate=Decimal("22.50"),
                pay_frequency=PayFrequency.BI_WEEKLY,
                sick_days_remaining=Decimal("10"),
                vacation_days_remaining=Decimal("10"),
            ),
            User(
                email="marcus@daycare.local",
                password_hash=get_password_hash("educator123"),
                first_name="Marcus",
                last_name="Lee",
                role=UserRole.EDUCATOR,
                payment_type=PaymentType.SALARY,
                salary_amount=Decimal("2100.00"),
                pay_frequency=PayFrequency.BI_WEEKLY,
                sick_days_remaining=Decimal("10"),
                vacation_days_remaining=Decimal("10"),
            ),
        ]
        db.add(admin)
        db.add_all(educators)
        await db.commit()

        families = FamilyService(db)
        households = [
            (
                {"first_name": "Priya", "last_name": "Sharma", "email": "priya.sharma@example.com", "phone": "403-555-0101"},
                {"first_name": "Arjun", "last_name": "Sharma", "date_of_birth": date(2021, 3, 14),
                 "monthly_rate": Decimal("1150.00"), "status": ChildStatus.ACTIVE},
            ),
            (
                {"first_name": "Tom", "last_name": "Becker", "email": "tom.becker@example.com", "phone": "403-555-0102"},
                {"first_name": "Lena", "last_name": "Becker", "date_of_birth": date(2022, 7, 2),
                 "monthly_rate": Decimal("1250.00"), "status": ChildStatus.ACTIVE},
            ),
            (
                {"first_name": "Sofia", "last_name": "Alvarez", "email": "sofia.alvarez@example.com", "phone": "403-555-0103"},
                {"first_name": "Mateo", "last_name": "Alvarez", "date_of_birth": date(2023, 1, 20),
                 "monthly_rate": Decimal("1300.00"), "status": ChildStatus.WAITLIST},
            ),
        ]
        created = []
        for parent, child in households:
            family, _, credentials = await families.create_family(parent, child, actor=admin)
            created.append(family)
            for credential in credentials:
                print(f"  parent login {credential.email} / {credential.password}")

        today = today_local()
        for educator in educators:
            db.add(Schedule(
                user_id=educator.id,
                shift_date=today,
                start_time=time(7, 30),
                end_time=time(15, 30),
                status=ScheduleStatus.ACCEPTED,
                created_by=admin.id,
            ))
        await db.commit()

        invoices = InvoiceService(db)
        first_parent = created[0].parents[0]
        invoice = await invoices.create_invoice(
            parent_id=first_parent.id,
            child_id=created[0].children[0].id,
            invoice_date=today,
            due_date=today + timedelta(days=15),
            line_items=[{"description": "Monthly tuition", "quantity": 1, "rate": "1150.00"}],
            actor=admin,
        )
        await invoices.send_invoice(invoice.id, admin)

        periods = await PayrollService(db).generate_periods(
            PayFrequency.BI_WEEKLY, today.replace(day=1), admin
        )

        print("✅ Sample data seeded successfully!")
        print("Created:")
        print(f"  - {1 + len(educators)} staff accounts")
        print(f"  - {len(created)} families")
        print(f"  - {len(educators)} shifts for {today}")
        print(f"  - 1 invoice ({invoice.invoice_number})")
        print(f"  - {len(periods)} pay periods")


if __name__ == "__main__":
    asyncio.run(seed_data())

"""Create a demo master with services, a client and a booking.

Usage:
    python -m beautyshop.seed
"""
import sys
from datetime import timedelta

from sqlalchemy.orm import Session

from beautyshop.auth.passwords import hash_password
from beautyshop.database import Base, SessionLocal, engine, ensure_appointment_schema
from beautyshop.models.appointment import Appointment
from beautyshop.models import expense  # noqa: F401
from beautyshop.models.client import Client
from beautyshop.models.service import Service
from beautyshop.models.user import User
from beautyshop.routes.common import utc_now
from beautyshop.scheduling.booking import reserve_slot

DEMO_EMAIL = "master@example.com"
DEMO_PASSWORD = "password123"
DEMO_SLUG = "beauty-master"
DEMO_SERVICES = (
    ("Manicure", 2000, 60),
    ("Pedicure", 2500, 90),
    ("Hair styling", 3000, 120),
)


def seed(db: Session) -> User | None:
    if db.query(User.id).filter(User.email == DEMO_EMAIL).first() is not None:
        return None

    master = User(
        email=DEMO_EMAIL,
        hashed_password=hash_password(DEMO_PASSWORD),
        name="Beauty Master",
        slug=DEMO_SLUG,
    )
    db.add(master)
    db.flush()

    services = [
        Service(owner_id=master.id, name=name, price=price, duration_min=duration, is_public=True)
        for name, price, duration in DEMO_SERVICES
    ]
    db.add_all(services)
    db.add(Client(owner_id=master.id, name="Anna Ivanova", phone="+79991234567", notes="Regular client"))
    db.commit()

    start_time = utc_now().replace(hour=10, minute=0, second=0, microsecond=0) + timedelta(days=1)
    manicure = services[0]
    reserve_slot(
        db,
        master.id,
        start_time,
        start_time + timedelta(minutes=manicure.duration_min),
        lambda start, end: Appointment(
            service_id=manicure.id,
            client_name="Anna Ivanova",
            client_phone="+79991234567",
            start_time=start,
            end_time=end,
            final_price=manicure.price,
        ),
    )
    return master


def main() -> None:
    Base.metadata.create_all(bind=engine)
    ensure_appointment_schema()

    db = SessionLocal()
    try:
        master = seed(db)
    finally:
        db.close()

    if master is None:
        print(f"Demo master {DEMO_EMAIL} already exists.", file=sys.stderr)
        sys.exit(1)
    print(f"Created demo master {DEMO_EMAIL} / {DEMO_PASSWORD} at /api/public/{DEMO_SLUG}")


if __name__ == "__main__":
    main()

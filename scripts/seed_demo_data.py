from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from oss_booking.infrastructure.db.models import ClassSession, Event
from oss_booking.infrastructure.db.session import Base, engine, get_db_session


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    ist = timezone(timedelta(hours=5, minutes=30))
    now_ist = datetime.now(ist)
    target = now_ist + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0).astimezone(timezone.utc)


def seed_classes(db) -> None:
    class_defs = [
        {
            "title": "Yoga for Beginners",
            "description": "A gentle introduction to yoga poses and breathing techniques. Instructor: Priya Sharma",
            "starts_at": _dt(days_from_now=7, hour=7, minute=0),
            "duration": 60,
            "capacity": 15,
            "spots_booked": 3,
            "price_paise": 50000,
        },
        {
            "title": "Pottery Workshop",
            "description": "Hand-build ceramic pieces to take home. Instructor: Rahul Verma",
            "starts_at": _dt(days_from_now=10, hour=11, minute=0),
            "duration": 120,
            "capacity": 10,
            "spots_booked": 5,
            "price_paise": 150000,
        },
        {
            "title": "Digital Art Fundamentals",
            "description": "Digital illustration with tablets provided. Instructor: Ananya Das",
            "starts_at": _dt(days_from_now=14, hour=16, minute=0),
            "duration": 90,
            "capacity": 12,
            "spots_booked": 8,
            "price_paise": 80000,
        },
        {
            "title": "Photography Basics",
            "description": "Composition, lighting and camera settings. Instructor: Vikram Singh",
            "starts_at": _dt(days_from_now=5, hour=10, minute=30),
            "duration": 120,
            "capacity": 20,
            "spots_booked": 12,
            "price_paise": 100000,
        },
    ]

    for item in class_defs:
        existing = db.execute(
            select(ClassSession).where(ClassSession.title == item["title"])
        ).scalar_one_or_none()
        if existing:
            for name, value in item.items():
                setattr(existing, name, value)
            existing.active = True
            continue

        db.add(ClassSession(active=True, **item))


def seed_events(db) -> None:
    event_defs = [
        {
            "title": "OSS Open Mic Night",
            "description": "An evening of music, poetry, and spoken word.",
            "starts_at": _dt(days_from_now=3, hour=19, minute=0),
            "venue": "OSS Main Hall",
            "capacity": 100,
            "price_paise": 20000,
        },
        {
            "title": "Art Exhibition: Urban Stories",
            "description": "Works from emerging local artists exploring urban life.",
            "starts_at": _dt(days_from_now=21, hour=11, minute=0),
            "venue": "OSS Gallery",
            "capacity": 150,
            "price_paise": 30000,
        },
        {
            "title": "Startup Networking Mixer",
            "description": "Founders, investors and tech enthusiasts. Light refreshments included.",
            "starts_at": _dt(days_from_now=12, hour=18, minute=30),
            "venue": "OSS Coworking Space",
            "capacity": 80,
            "price_paise": 50000,
        },
        {
            "title": "Film Screening: Indie Shorts",
            "description": "Independent short films followed by a Q&A with the filmmakers.",
            "starts_at": _dt(days_from_now=8, hour=20, minute=0),
            "venue": "OSS Screening Room",
            "capacity": 50,
            "price_paise": 25000,
        },
    ]

    for item in event_defs:
        existing = db.execute(
            select(Event).where(Event.title == item["title"])
        ).scalar_one_or_none()
        if existing:
            for name, value in item.items():
                setattr(existing, name, value)
            existing.active = True
            continue

        db.add(Event(active=True, passes_issued=0, **item))


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        seed_classes(db)
        seed_events(db)
    print("Seed complete: 4 classes and 4 events upserted.")


if __name__ == "__main__":
    main()

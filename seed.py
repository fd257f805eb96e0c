"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations (``alembic upgrade head``):
    python seed.py

Creates:
  - 12 sample drivers around central London (mix of online / offline,
    wheelchair-capable, rated and unrated)
  - 6 sample bookings (REQUESTED, ASSIGNED, COMPLETED)
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from havenride.config import settings
from havenride.domain.enums import BookingStatus
from havenride.infrastructure.database import async_session_factory, engine
from havenride.infrastructure.models import BookingModel, DriverModel
from havenride.services.bookings import generate_pin


DRIVERS = [
    {"name": "Amelia Clarke", "online": True, "lat": 51.5315, "lng": -0.1240, "wheelchair": True, "rating": 4.9},
    {"name": "Oliver Bennett", "online": True, "lat": 51.5290, "lng": -0.1190, "wheelchair": False, "rating": 4.6},
    {"name": "Isla Morgan", "online": True, "lat": 51.5200, "lng": -0.1050, "wheelchair": True, "rating": 4.2},
    {"name": "Harry Whitfield", "online": True, "lat": 51.5074, "lng": -0.1278, "wheelchair": False, "rating": 3.8},
    {"name": "Freya Lawson", "online": True, "lat": 51.5450, "lng": -0.1500, "wheelchair": False, "rating": None},
    {"name": "Jack Pemberton", "online": True, "lat": 51.4900, "lng": -0.1700, "wheelchair": True, "rating": 4.7},
    {"name": "Poppy Harding", "online": False, "lat": 51.5310, "lng": -0.1230, "wheelchair": True, "rating": 5.0},
    {"name": "George Ashby", "online": True, "lat": None, "lng": None, "wheelchair": False, "rating": 4.4},
    {"name": "Evie Sinclair", "online": True, "lat": 51.5600, "lng": -0.0800, "wheelchair": False, "rating": 4.1},
    {"name": "Noah Fairbairn", "online": True, "lat": 51.4700, "lng": -0.0900, "wheelchair": True, "rating": 3.5},
    {"name": "Ruby Castell", "online": False, "lat": None, "lng": None, "wheelchair": False, "rating": None},
    {"name": "Arthur Langley", "online": True, "lat": 51.5150, "lng": -0.1420, "wheelchair": False, "rating": 4.8},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM drivers"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)

        # ── Drivers ───────────────────────────────────────────────────
        driver_models = []
        for d in DRIVERS:
            m = DriverModel(
                name=d["name"],
                is_online=d["online"],
                last_lat=d["lat"],
                last_lng=d["lng"],
                location_updated_at=now if d["lat"] is not None else None,
                wheelchair_capable=d["wheelchair"],
                rating=d["rating"],
                commission_rate=settings.default_commission_rate,
            )
            session.add(m)
            driver_models.append(m)
        await session.flush()
        print(f"  Created {len(driver_models)} drivers")

        # ── Bookings ──────────────────────────────────────────────────
        bookings_data = [
            # Waiting for dispatch
            {
                "rider": "rider-001",
                "pickup": (51.5308, -0.1238), "pickup_address": "King's Cross Station",
                "dropoff": (51.5014, -0.1419), "dropoff_address": "Buckingham Palace",
                "status": BookingStatus.REQUESTED, "driver": None,
                "wheelchair": True, "estimate": 18.40,
            },
            {
                "rider": "rider-002",
                "pickup": (51.5226, -0.1571), "pickup_address": "Baker Street",
                "dropoff": (51.5033, -0.1195), "dropoff_address": "London Eye",
                "status": BookingStatus.REQUESTED, "driver": None,
                "wheelchair": False, "estimate": 14.10,
            },
            {
                "rider": "rider-003",
                "pickup": (51.5155, -0.0922), "pickup_address": "Bank",
                "dropoff": (51.5045, -0.0865), "dropoff_address": "London Bridge",
                "status": BookingStatus.REQUESTED, "driver": None,
                "wheelchair": True, "estimate": 7.90,
            },
            # Assigned
            {
                "rider": "rider-004",
                "pickup": (51.5290, -0.1255), "pickup_address": "British Library",
                "dropoff": (51.5194, -0.1270), "dropoff_address": "British Museum",
                "status": BookingStatus.ASSIGNED, "driver": 0,
                "wheelchair": True, "estimate": 6.20,
            },
            # Completed
            {
                "rider": "rider-005",
                "pickup": (51.5074, -0.1278), "pickup_address": "Trafalgar Square",
                "dropoff": (51.4995, -0.1248), "dropoff_address": "Westminster Abbey",
                "status": BookingStatus.COMPLETED, "driver": 3,
                "wheelchair": False, "estimate": 6.80, "final": 7.25,
            },
            # Not yet geocoded
            {
                "rider": "rider-006",
                "pickup": (None, None), "pickup_address": "12 Acacia Avenue",
                "dropoff": (None, None), "dropoff_address": "St Thomas' Hospital",
                "status": BookingStatus.REQUESTED, "driver": None,
                "wheelchair": True, "estimate": None,
            },
        ]

        for i, b in enumerate(bookings_data):
            driver = driver_models[b["driver"]] if b["driver"] is not None else None
            booking = BookingModel(
                rider_id=b["rider"],
                driver_id=driver.id if driver else None,
                status=b["status"],
                pickup_address=b["pickup_address"],
                dropoff_address=b["dropoff_address"],
                pickup_lat=b["pickup"][0],
                pickup_lng=b["pickup"][1],
                dropoff_lat=b["dropoff"][0],
                dropoff_lng=b["dropoff"][1],
                requires_wheelchair=b["wheelchair"],
                scheduled_pickup_time=now + timedelta(minutes=15 * (i + 1)),
                payment_intent_id=f"pi_seed_{i:04d}",
                price_estimate_amount=b["estimate"],
                final_fare_amount=b.get("final"),
                pin_code=generate_pin(),
            )
            session.add(booking)
        await session.flush()
        print(f"  Created {len(bookings_data)} bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

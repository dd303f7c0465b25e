#!/usr/bin/env python
"""Initialize database with a sample driver, trip and loads."""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import init_db, Company, Driver, Load, LoadSource, Trip, TripLoad
from models.database import SessionLocal

SAMPLE_OWNER_ID = 1
SAMPLE_AUTH_USER_ID = "sample-driver"


def create_sample_trip():
    """Create a driver with a two-stop trip from one sending company."""
    db = SessionLocal()
    try:
        existing = db.query(Driver).filter(Driver.auth_user_id == SAMPLE_AUTH_USER_ID).first()
        if existing:
            print("Sample driver already exists")
            return

        driver = Driver(
            auth_user_id=SAMPLE_AUTH_USER_ID,
            owner_id=SAMPLE_OWNER_ID,
            first_name="Sample",
            last_name="Driver",
        )
        company = Company(owner_id=SAMPLE_OWNER_ID, name="Sample Van Lines")
        db.add_all([driver, company])
        db.flush()

        trip = Trip(owner_id=SAMPLE_OWNER_ID, driver_id=driver.id, trip_number="TRIP-001")
        db.add(trip)
        db.flush()

        stops = [
            ("LD-1001", "Jane Smith", "Denver", "CO"),
            ("LD-1002", None, "Boulder", "CO"),
        ]
        for order, (load_number, customer_name, city, state) in enumerate(stops, start=1):
            load = Load(
                owner_id=SAMPLE_OWNER_ID,
                company_id=company.id,
                load_number=load_number,
                load_source=LoadSource.PARTNER,
                customer_name=customer_name,
                delivery_city=city,
                delivery_state=state,
                delivery_order=order,
            )
            db.add(load)
            db.flush()
            db.add(TripLoad(trip_id=trip.id, load_id=load.id, sequence_index=order))

        db.commit()

        print(f"Created sample trip {trip.trip_number} for {driver.full_name} ({SAMPLE_AUTH_USER_ID})")

    except Exception as e:
        print(f"Error creating sample trip: {e}")
        db.rollback()
    finally:
        db.close()


def main():
    """Initialize database."""
    print("Initializing database...")

    try:
        init_db()
        print("Database tables created")

        create_sample_trip()

        print("Database initialization complete")

    except Exception as e:
        print(f"Error initializing database: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

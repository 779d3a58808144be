#!/usr/bin/env python3
"""
Script to load services and staff into the catalog tables

Usage:
    python seed_catalog.py [catalog.json]

Services are matched by name and staff by (name, service_type); existing rows
are updated, new ones inserted.
"""

import json
import sys
from pathlib import Path

from appointment_manager.config import DEFAULT_DAILY_CAPACITY
from appointment_manager.database import Base, SessionLocal, engine
from appointment_manager.models import Service, Staff
from appointment_manager.shared.validators import validate_duration, validate_required_text

DEFAULT_CATALOG = Path(__file__).resolve().parent / "catalog.sample.json"
STAFF_STATUSES = ("available", "on_leave")


def upsert_service(db, item: dict) -> bool:
    """Returns True when a new service was inserted"""
    name = validate_required_text(item.get("name"), "Service name")
    duration = validate_duration(int(item["duration"]))
    staff_type = validate_required_text(item.get("required_staff_type"), "Required staff type")

    service = db.query(Service).filter(Service.name == name).first()
    created = service is None
    if created:
        service = Service(name=name)
        db.add(service)
    service.duration = duration
    service.required_staff_type = staff_type
    return created


def upsert_staff(db, item: dict) -> bool:
    """Returns True when a new staff member was inserted"""
    name = validate_required_text(item.get("name"), "Staff name")
    service_type = validate_required_text(item.get("service_type"), "Service type")
    capacity = int(item.get("daily_capacity", DEFAULT_DAILY_CAPACITY))
    status = item.get("status", "available")
    if capacity <= 0:
        raise ValueError(f"Daily capacity for {name} must be positive")
    if status not in STAFF_STATUSES:
        raise ValueError(f"Unknown staff status for {name}: {status}")

    staff = (
        db.query(Staff)
        .filter(Staff.name == name, Staff.service_type == service_type)
        .first()
    )
    created = staff is None
    if created:
        staff = Staff(name=name, service_type=service_type)
        db.add(staff)
    staff.daily_capacity = capacity
    staff.status = status
    return created


def seed_catalog(path: Path):
    print(f"🔍 Loading catalog from {path}...\n")
    catalog = json.loads(path.read_text())

    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()

    try:
        services = catalog.get("services", [])
        new_services = sum(upsert_service(db, item) for item in services)
        print(f"   ✅ Services: {new_services} inserted, {len(services) - new_services} updated")

        staff = catalog.get("staff", [])
        new_staff = sum(upsert_staff(db, item) for item in staff)
        print(f"   ✅ Staff: {new_staff} inserted, {len(staff) - new_staff} updated")

        db.commit()
        print("\n🎉 Catalog loaded")

    except (KeyError, ValueError) as e:
        print(f"\n❌ Invalid catalog entry: {e}")
        db.rollback()
        raise
    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_catalog(Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_CATALOG)

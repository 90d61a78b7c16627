#!/usr/bin/env python3
"""
Script to create the default dashboard users and a sample workshop

Passwords come from SEED_ADMIN_PASSWORD / SEED_STAFF_PASSWORD when set.
"""

import os

from workshop_crm.database import Base, SessionLocal, engine
from workshop_crm.models import User, WorkshopDetail
from workshop_crm.security_utils import hash_password

DEFAULT_USERS = [
    {
        "email": "admin@example.com",
        "password": os.getenv("SEED_ADMIN_PASSWORD", "admin123"),
        "role": "admin",
        "first_name": "Admin",
        "last_name": "User",
    },
    {
        "email": "staff@example.com",
        "password": os.getenv("SEED_STAFF_PASSWORD", "staff123"),
        "role": "staff",
        "first_name": "Staff",
        "last_name": "User",
    },
]

SAMPLE_WORKSHOP = {
    "theme": "Smart City Vehicles",
    "date": {"time_slots": ["10:00 AM - 12:00 PM"], "list_datetime": "2024-06-15T10:00:00"},
    "date_of_workshop": "2024-06-15",
    "duration": 120,
    "rate": 1200,
    "video_url": "",
    "description": [{"type": "paragraph", "content": "Build and program a model city vehicle."}],
    "location": {"address": "123 Tech Hub", "city": "Mumbai", "country": "India"},
    "likes": 0,
    "rating": 0,
    "children_enrolled": 0,
    "kit_name": "Smart City Kit",
    "meta": "",
    "workshop_url": "",
}


def seed():
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()

    try:
        print("🔍 Seeding default users...\n")
        for data in DEFAULT_USERS:
            existing = db.query(User).filter(User.email == data["email"]).first()
            if existing:
                print(f"   ⏭️  {data['email']} already exists")
                continue
            db.add(
                User(
                    email=data["email"],
                    password_hash=hash_password(data["password"]),
                    role=data["role"],
                    first_name=data["first_name"],
                    last_name=data["last_name"],
                )
            )
            db.commit()
            print(f"   ✅ Created {data['role']} user {data['email']}")

        print("\n🔍 Seeding sample workshop...")
        if db.query(WorkshopDetail).filter(WorkshopDetail.theme == SAMPLE_WORKSHOP["theme"]).first():
            print("   ⏭️  Sample workshop already exists")
        else:
            row = WorkshopDetail(theme=SAMPLE_WORKSHOP["theme"], document=SAMPLE_WORKSHOP)
            db.add(row)
            db.commit()
            print(f"   ✅ Created workshop {row.id}")

        print("\n✅ Done")
    except Exception as e:
        print(f"\n❌ Error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()

#!/usr/bin/env python3
"""
Admin User Seed Script
Creates an admin account for the risk dashboard.

Usage:
    python -m scripts.seed_admin <email> <password>

Example:
    python -m scripts.seed_admin admin@findnearpg.com securepassword123
"""
import sys
import os

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.database import SessionLocal, init_db
from app.models.db_models import UserDB, UserRole
from app.auth import hash_password


def create_admin_user(email: str, password: str) -> bool:
    """Create an admin user, or promote an existing account."""
    # Ensure tables exist
    init_db()

    db: Session = SessionLocal()
    try:
        existing = db.query(UserDB).filter(UserDB.email == email).first()

        if existing:
            if existing.role == UserRole.ADMIN.value:
                print(f"Error: '{email}' is already an admin.")
                return False
            existing.role = UserRole.ADMIN.value
            db.commit()
            print(f"Upgraded existing account '{email}' to admin role.")
            return True

        admin_user = UserDB(
            email=email,
            name="Administrator",
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
        )

        db.add(admin_user)
        db.commit()

        print("Admin user created successfully!")
        print(f"  Email: {email}")
        print("  Role: admin")
        return True

    except Exception as e:
        print(f"Error creating admin user: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    password = sys.argv[2]

    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = create_admin_user(email, password)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

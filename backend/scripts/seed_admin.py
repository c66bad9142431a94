#!/usr/bin/env python3
"""
Admin User Seed Script
Creates an admin (safety office) account, or upgrades an existing one.

Usage:
    python -m scripts.seed_admin <email> <username> <password>

Example:
    python -m scripts.seed_admin safety@skyways.aero safety-office securepassword123
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.database import SessionLocal, init_db
from app.models.db_models import UserDB, UserRole
from app.auth import hash_password


def create_admin_user(email: str, username: str, password: str) -> bool:
    """Create an admin user in the database."""
    init_db()

    db: Session = SessionLocal()
    try:
        existing = db.query(UserDB).filter(
            (UserDB.email == email) | (UserDB.username == username)
        ).first()

        if existing:
            if existing.email != email:
                print(f"Error: Username '{username}' already exists.")
                return False
            if existing.role == UserRole.ADMIN.value:
                print(f"User '{email}' is already an admin.")
                return True
            existing.role = UserRole.ADMIN.value
            db.commit()
            print(f"Upgraded existing user '{email}' to admin role.")
            return True

        db.add(UserDB(
            id=str(uuid4()),
            email=email,
            username=username,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
        ))
        db.commit()

        print("Admin user created successfully!")
        print(f"  Email: {email}")
        print(f"  Username: {username}")
        return True

    except SQLAlchemyError as e:
        print(f"Error creating admin user: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)

    email, username, password = sys.argv[1:4]

    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    success = create_admin_user(email, username, password)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

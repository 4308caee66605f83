#!/usr/bin/env python3
"""
Create (or reset) an admin account in the configured database.

Usage:
    python create_admin.py --username admin --password 'S3cret!'
"""
import argparse
import sys

from judging.database import Base, SessionLocal, engine
from judging import models
from judging.auth import get_password_hash


def create_admin(username: str, password: str, reset: bool = False) -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.username == username).first()
        if user and not reset:
            print(f"ERROR: user '{username}' already exists (use --reset to overwrite the password).")
            return 1
        if user:
            user.password = get_password_hash(password)
            user.role = models.UserRole.admin
            action = "reset"
        else:
            db.add(
                models.User(
                    username=username,
                    password=get_password_hash(password),
                    role=models.UserRole.admin,
                )
            )
            action = "created"
        db.commit()
        print(f"OK: admin '{username}' {action}.")
        return 0
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or reset an admin account.")
    parser.add_argument("--username", default="admin")
    parser.add_argument("--password", required=True)
    parser.add_argument("--reset", action="store_true", help="overwrite the password of an existing user")
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username:
        parser.error("--username must not be empty")
    return create_admin(username, args.password, reset=args.reset)


if __name__ == "__main__":
    sys.exit(main())

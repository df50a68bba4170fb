"""
Create an admin account, or promote an existing user to admin.

    python -m storefront.scripts.seed_admin admin@example.com "Store Admin"

The password is read from ADMIN_PASSWORD, or prompted for.
"""
import argparse
import getpass
import os
import sys

from sqlalchemy.orm import Session

from storefront.core.security import hash_password
from storefront.db.session import SessionLocal
from storefront.models.user import ROLE_ADMIN, User


def seed_admin(db: Session, email: str, name: str, password: str | None = None) -> User:
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if user:
        print(f"Promoting existing user {email} to admin...")
        user.role = ROLE_ADMIN
    else:
        if not password:
            raise ValueError("A password is required to create a new admin")
        print(f"Creating admin user {email}...")
        user = User(
            name=name,
            email=email,
            hashed_password=hash_password(password),
            role=ROLE_ADMIN,
        )
        db.add(user)

    db.commit()
    db.refresh(user)
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote a storefront admin")
    parser.add_argument("email")
    parser.add_argument("name", nargs="?", default="Admin")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == args.email.strip().lower()).first()
        password = None
        if existing is None:
            password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Admin password: ")
        user = seed_admin(db, args.email, args.name, password)
    finally:
        db.close()

    print(f"Done. {user.email} is now {user.role}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Create an admin account, or promote an existing one and reset its password."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``massagebook`` imports when run directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from massagebook import create_app
from massagebook.extensions import db
from massagebook.models import AuthAccount, User


def create_admin(email: str, password: str, name: str, telephone: str) -> None:
    app = create_app()

    with app.app_context():
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(name=name, telephone=telephone, email=email, role="admin")
            db.session.add(user)
            db.session.flush()
            print(f"Created new admin user: {email}")
        elif user.role != "admin":
            print(f"Updating user role from '{user.role}' to 'admin'")
            user.role = "admin"

        account = AuthAccount.query.filter_by(user_id=user.user_id).first()
        if account is None:
            account = AuthAccount(user_id=user.user_id)
            db.session.add(account)

        account.password_hash = generate_password_hash(password)
        account.clear_reset_token()
        db.session.commit()

        print(f"Admin '{email}' is ready.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or promote an admin account.")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--name", default="Admin User")
    parser.add_argument("--telephone", default="0000000000")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    create_admin(args.email, args.password, args.name, args.telephone)


if __name__ == "__main__":
    main()

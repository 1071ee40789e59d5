"""
Create a first owner account and store. Idempotent: an owner who already owns
a store is left unchanged. Run from the project root with .env loaded.

Usage:
  python scripts/init_store.py owner@example.com 'secret123' "Main Street"
  python scripts/init_store.py owner@example.com 'secret123' "Main Street" --lat 37.5665 --lng 126.9780
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from storeclock.core.logging import setup_logging
from storeclock.db.init_db import init_db
from storeclock.db.session import SessionLocal, create_sqlite_tables


def main():
    parser = argparse.ArgumentParser(description="Seed an owner and a store")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("store_name")
    parser.add_argument("--name", default="Store Owner", help="Owner display name")
    parser.add_argument("--lat", type=float, default=None, help="Store latitude")
    parser.add_argument("--lng", type=float, default=None, help="Store longitude")
    args = parser.parse_args()

    setup_logging()
    create_sqlite_tables()

    db = SessionLocal()
    try:
        store = init_db(
            db,
            owner_email=args.email,
            owner_password=args.password,
            store_name=args.store_name,
            owner_name=args.name,
            latitude=args.lat,
            longitude=args.lng,
        )
        print(f"Store {store.id}: {store.name} (owner {args.email})")
    finally:
        db.close()


if __name__ == "__main__":
    main()

"""
Maintenance commands for the Export Hub database.

    python -m maintenance fix-data          # coerce legacy string numbers
    python -m maintenance create-demo-user  # upsert the demo account
    python -m maintenance inspect           # print product prices and types
"""
import argparse
import logging
import sys

from config import get_settings
from database import MongoStore, utcnow
from users import pwd_context

logger = logging.getLogger(__name__)

DEMO_USER_EMAIL = "demo123@gmail.com"
DEMO_USER_PASSWORD = "Demo1234@"

NUMERIC_FIELDS = {
    "price": float,
    "rating": float,
    "availableQuantity": int,
}


def coerce_number(value, kind):
    """Return value converted to kind, or None when it does not parse."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return kind(number)


def fix_data(store: MongoStore) -> int:
    """Rewrite string price/rating/availableQuantity values as numbers."""
    updated = 0
    for product in store.products.find({}):
        updates = {}
        for field, kind in NUMERIC_FIELDS.items():
            if field not in product:
                continue
            fixed = coerce_number(product[field], kind)
            if fixed is not None:
                updates[field] = fixed
        if updates:
            store.products.update_one({"_id": product["_id"]}, {"$set": updates})
            updated += 1
    logger.info("Fixed data types for %d products", updated)
    return updated


def create_demo_user(store: MongoStore, email: str = DEMO_USER_EMAIL, password: str = DEMO_USER_PASSWORD) -> bool:
    """Upsert the demo account. Returns True when a new user was created."""
    now = utcnow()
    result = store.users.update_one(
        {"email": email},
        {
            "$set": {
                "name": "Demo User",
                "passwordHash": pwd_context.hash(password),
                "updatedAt": now,
            },
            "$setOnInsert": {
                "photoURL": "https://ui-avatars.com/api/?name=Demo+User",
                "googleAuth": False,
                "role": "user",
                "createdAt": now,
            },
        },
        upsert=True,
    )
    created = result.upserted_id is not None
    logger.info("%s demo user %s", "Created" if created else "Updated", email)
    return created


def inspect_products(store: MongoStore, out=None):
    out = out or sys.stdout
    out.write("--- PRODUCT DATA INSPECTION ---\n")
    for p in store.products.find({}, {"productName": 1, "price": 1}):
        name = str(p.get("productName", ""))[:20]
        price = p.get("price")
        out.write(f"Name: {name} | Price: {price} (Type: {type(price).__name__})\n")
    out.write("-------------------------------\n")


def main(argv=None, store: MongoStore = None) -> int:
    parser = argparse.ArgumentParser(prog="maintenance", description="Export Hub database maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("fix-data", help="coerce string numeric fields on products")
    demo = sub.add_parser("create-demo-user", help="create or reset the demo account")
    demo.add_argument("--email", default=DEMO_USER_EMAIL)
    demo.add_argument("--password", default=DEMO_USER_PASSWORD)
    sub.add_parser("inspect", help="print product prices and their types")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    if store is None:
        store = MongoStore(settings.mongodb_uri, settings.database_name, settings.mongodb_timeout_ms)
    if not store.connect():
        return 1
    try:
        if args.command == "fix-data":
            fix_data(store)
        elif args.command == "create-demo-user":
            create_demo_user(store, args.email, args.password)
        else:
            inspect_products(store)
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Seed the local database from a JSON file (users, projects, categories, stock rows).

Usage: python seed_data.py [path/to/seed.json]   (defaults to SEED_FILE)

Re-running is safe: existing emails, project names and category slugs are
skipped, and stock rows are only loaded into an empty ledger. Seeded users
must change their password on first login.
"""
import json
import sys
from pathlib import Path

from procurement.database import Base, SessionLocal, engine, ensure_sqlite_directory
from procurement.config import settings
from procurement.models import MaterialCategory, Project, StockItem, User
from procurement.auth import get_password_hash
from procurement.services.catalog import category_slug
from procurement.services.stock_ledger import coerce_quantity


def load_seed_file(path) -> dict:
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object with users/projects/categories/stock_items")
    return data


def seed_from_data(db, data: dict) -> dict:
    """Insert whatever is missing; returns counts of created rows per section."""
    created = {"users": 0, "projects": 0, "categories": 0, "stock_items": 0}

    users_by_email = {}
    for entry in data.get("users", []):
        email = entry["email"].strip().lower()
        existing = db.query(User).filter(User.email == email).first()
        if existing is not None:
            users_by_email[email] = existing
            print(f"  - User exists: {email}")
            continue
        user = User(
            email=email,
            password_hash=get_password_hash(entry["password"]),
            full_name=entry.get("full_name") or email.split("@")[0],
            designation=entry.get("designation") or "",
            phone=entry.get("phone") or None,
            role=entry.get("role") or "user",
            must_change_password=True,
        )
        db.add(user)
        users_by_email[email] = user
        created["users"] += 1
        print(f"  + User created: {email} ({user.role})")
    db.flush()

    for entry in data.get("projects", []):
        name = entry["name"].strip()
        if db.query(Project).filter(Project.name == name).first() is not None:
            print(f"  - Project exists: {name}")
            continue
        db.add(Project(name=name, location=entry.get("location") or "", status=entry.get("status") or "active"))
        created["projects"] += 1
        print(f"  + Project created: {name}")

    for name in data.get("categories", []):
        slug = category_slug(name)
        if db.query(MaterialCategory).filter(MaterialCategory.slug == slug).first() is not None:
            print(f"  - Category exists: {name}")
            continue
        db.add(MaterialCategory(name=name.strip(), slug=slug))
        created["categories"] += 1
        print(f"  + Category created: {name}")

    stock_rows = data.get("stock_items", [])
    if stock_rows and db.query(StockItem).first() is not None:
        print("  - Stock ledger already has rows, skipping stock items")
    else:
        admins = [u for u in users_by_email.values() if u.role == "admin"]
        owner = admins[0] if admins else next(iter(users_by_email.values()), None)
        for entry in stock_rows:
            db.add(StockItem(
                date=entry.get("date") or "",
                item=entry.get("item") or "",
                description=entry.get("description") or "",
                qty=coerce_quantity(entry.get("qty")),
                unit=entry.get("unit") or "",
                category=entry.get("category") or None,
                created_by=owner.id if owner is not None else None,
            ))
            created["stock_items"] += 1
            print(f"  + Stock: {entry.get('item')} x{entry.get('qty')}")

    db.commit()
    return created


def seed(path=None):
    """Seed database from ``path`` (or ``SEED_FILE``)."""
    seed_path = Path(path or settings.SEED_FILE)
    ensure_sqlite_directory(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        print(f"Seeding database from {seed_path}...\n")
        created = seed_from_data(db, load_seed_file(seed_path))
        print("\nSeed complete: " + ", ".join(f"{count} {section}" for section, count in created.items()))
        return created
    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed(sys.argv[1] if len(sys.argv) > 1 else None)

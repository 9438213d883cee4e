#!/usr/bin/env python
"""Seed a demo region with stores, roles and users linked to Telegram chat ids.

Usage:
    python seed_demo_data.py <regional_head_chat_id> [store_head_chat_id] [cashier_chat_id]
"""
import sys

from strukbot.db.init_db import init_db
from strukbot.db.session import SessionLocal
from strukbot.models import Region, Role, Store, User
from strukbot.services.access_service import ROLE_REGIONAL_HEAD, ROLE_STORE_HEAD

ROLE_CASHIER = "Kasir"


def _get_or_create_role(db, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if not role:
        role = Role(name=name)
        db.add(role)
        db.flush()
    return role


def seed_demo_data(chat_ids):
    init_db()
    db = SessionLocal()
    try:
        if db.query(Region).first():
            print("✓ Demo data already exists")
            return

        region = Region(name="Regional Jakarta")
        db.add(region)
        db.flush()

        stores = [
            Store(name="Toko Kemang", region_id=region.id),
            Store(name="Toko Senayan", region_id=region.id),
            Store(name="Toko Depok", region_id=region.id),
        ]
        db.add_all(stores)
        db.flush()

        roles = {name: _get_or_create_role(db, name) for name in (ROLE_REGIONAL_HEAD, ROLE_STORE_HEAD, ROLE_CASHIER)}
        people = [
            ("Kepala Regional", ROLE_REGIONAL_HEAD, stores[0], []),
            ("Kepala Toko Kemang", ROLE_STORE_HEAD, stores[0], stores[:2]),
            ("Kasir Kemang", ROLE_CASHIER, stores[0], []),
        ]
        for chat_id, (full_name, role_name, store, granted) in zip(chat_ids, people):
            user = User(
                telegram_chat_id=str(chat_id),
                full_name=full_name,
                role_id=roles[role_name].id,
                region_id=region.id,
                store_id=store.id,
                active_store_id=store.id,
            )
            user.stores = list(granted)
            db.add(user)
            print(f"✅ {full_name} ({role_name}) → chat_id {chat_id}")

        db.commit()
        print(f"✅ Seeded {region.name} with {len(stores)} stores")
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    seed_demo_data(sys.argv[1:4])

"""Shared fixtures: in-memory ledger, seeded directory, fake transport and clocks."""
import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from strukbot.core.exceptions import ConcurrentEditStale
from strukbot.db.base import Base
from strukbot.db.init_db import init_db
from strukbot.models import Region, Role, Store, User
from strukbot.services.access_service import ROLE_REGIONAL_HEAD, ROLE_STORE_HEAD

REGIONAL_HEAD_CHAT = 1001
STORE_HEAD_CHAT = 1002
CASHIER_CHAT = 1003
INACTIVE_CHAT = 1004
NO_STORE_CHAT = 1005
UNKNOWN_CHAT = 9999


def failing_sessions(session_factory, method="commit"):
    """Session factory whose sessions raise a storage error from `method`."""
    def factory():
        db = session_factory()

        def fail(*args, **kwargs):
            raise OperationalError("statement", {}, Exception("database is locked"))

        setattr(db, method, fail)
        return db

    return factory


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeTransport:
    """Records every outbound call; message ids in `stale` fail edit/delete."""

    def __init__(self):
        self.sent = []
        self.edited = []
        self.deleted = []
        self.answers = []
        self.stale = set()
        self._next_id = 500

    async def send_message(self, chat_id, text, keyboard=None):
        self._next_id += 1
        self.sent.append(SimpleNamespace(chat_id=chat_id, text=text, keyboard=keyboard, message_id=self._next_id))
        return self._next_id

    async def edit_message_text(self, chat_id, message_id, text, keyboard=None):
        if message_id in self.stale:
            raise ConcurrentEditStale("message to edit not found")
        self.edited.append(SimpleNamespace(chat_id=chat_id, message_id=message_id, text=text, keyboard=keyboard))

    async def delete_message(self, chat_id, message_id):
        if message_id in self.stale:
            raise ConcurrentEditStale("message to delete not found")
        self.deleted.append(message_id)

    async def answer_callback(self, callback_id, text=None, show_alert=False):
        self.answers.append(SimpleNamespace(callback_id=callback_id, text=text, show_alert=show_alert))

    @property
    def texts(self):
        return [m.text for m in self.sent]

    @property
    def last(self):
        return self.sent[-1]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def directory(session_factory):
    """Two regions, four stores, one user per role plus edge-case users."""
    db = session_factory()
    try:
        jakarta = Region(name="Regional Jakarta")
        bandung = Region(name="Regional Bandung")
        db.add_all([jakarta, bandung])
        db.flush()

        kemang = Store(name="Toko Kemang", region_id=jakarta.id)
        senayan = Store(name="Toko Senayan", region_id=jakarta.id)
        depok = Store(name="Toko Depok", region_id=jakarta.id, status="closed")
        dago = Store(name="Toko Dago", region_id=bandung.id)
        db.add_all([kemang, senayan, depok, dago])
        db.flush()

        regional_role = Role(name=ROLE_REGIONAL_HEAD)
        store_head_role = Role(name=ROLE_STORE_HEAD)
        cashier_role = Role(name="Kasir")
        db.add_all([regional_role, store_head_role, cashier_role])
        db.flush()

        regional_head = User(
            telegram_chat_id=str(REGIONAL_HEAD_CHAT), full_name="Budi", role_id=regional_role.id,
            region_id=jakarta.id, store_id=kemang.id, active_store_id=kemang.id,
        )
        store_head = User(
            telegram_chat_id=str(STORE_HEAD_CHAT), full_name="Sari", role_id=store_head_role.id,
            region_id=jakarta.id, store_id=kemang.id, active_store_id=kemang.id,
        )
        store_head.stores = [kemang, senayan]
        cashier = User(
            telegram_chat_id=str(CASHIER_CHAT), full_name="Ana", role_id=cashier_role.id,
            region_id=jakarta.id, store_id=kemang.id, active_store_id=kemang.id,
        )
        inactive = User(
            telegram_chat_id=str(INACTIVE_CHAT), full_name="Joko", role_id=cashier_role.id,
            store_id=kemang.id, active_store_id=kemang.id, status="inactive",
        )
        no_store = User(
            telegram_chat_id=str(NO_STORE_CHAT), full_name="Rina", role_id=cashier_role.id,
        )
        db.add_all([regional_head, store_head, cashier, inactive, no_store])
        db.commit()

        return SimpleNamespace(
            jakarta_id=jakarta.id, bandung_id=bandung.id,
            kemang_id=kemang.id, senayan_id=senayan.id, depok_id=depok.id, dago_id=dago.id,
            regional_head_id=regional_head.id, store_head_id=store_head.id, cashier_id=cashier.id,
        )
    finally:
        db.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 17, 14, 5, 0))


@pytest.fixture
def transport():
    return FakeTransport()

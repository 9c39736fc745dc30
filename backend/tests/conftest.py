"""
Pytest fixtures for barpos backend tests.

Service tests run against the in-memory repositories; SQL repository and
route tests run against an in-memory SQLite app.
"""

from datetime import datetime, time
from decimal import Decimal

import pytest

from barpos import create_app
from barpos.extensions import db
from barpos.models import HappyHourRule, InventoryItem, User
from barpos.repositories import CatalogItem, HappyHour, UserRecord
from barpos.repositories.memory import memory_repositories
from barpos.services.auth_service import hash_pin
from barpos.services.terminal_service import TerminalRegistry, TerminalSession, TerminalSettings
from barpos.time_utils import WEEKDAY_NAMES

# 2026-10-16 is a Friday
FRIDAY_NOON = datetime(2026, 10, 16, 12, 0)
FRIDAY_HAPPY_HOUR = datetime(2026, 10, 16, 17, 0)

BUD_LIGHT = 1
WHITE_CLAW = 2
WELL_VODKA = 3
CRAFT_IPA = 4


# =============================================================================
# IN-MEMORY REPOSITORIES
# =============================================================================


@pytest.fixture
def catalog_items():
    return [
        CatalogItem(id=BUD_LIGHT, name="Bud Light", price=Decimal("4.00"), category="beer", tier="domestic", stock_count=48),
        CatalogItem(id=WHITE_CLAW, name="White Claw", price=Decimal("5.00"), category="seltzer", stock_count=1),
        CatalogItem(id=WELL_VODKA, name="Well Vodka", price=Decimal("3.50"), category="liquor", tier="well"),
        CatalogItem(id=CRAFT_IPA, name="Craft IPA", price=Decimal("5.00"), category="beer", stock_count=12),
    ]


@pytest.fixture
def beer_happy_hour():
    return HappyHour(
        id=1,
        name="Beer Happy Hour",
        start_time=time(16, 0),
        end_time=time(18, 0),
        category="beer",
        discount_amount=Decimal("1.00"),
        days=frozenset(WEEKDAY_NAMES),
    )


@pytest.fixture
def pin_users():
    return [
        UserRecord(id=1, name="Jan", role="admin", pin_hash=hash_pin("1111")),
        UserRecord(id=2, name="Sarah", role="manager", pin_hash=hash_pin("2222")),
        UserRecord(id=3, name="Mike", role="bartender", pin_hash=hash_pin("3333")),
    ]


@pytest.fixture
def repos(catalog_items, beer_happy_hour, pin_users):
    return memory_repositories(items=catalog_items, rules=[beer_happy_hour], users=pin_users)


@pytest.fixture
def clock():
    """Mutable terminal clock; tests move it with clock.now = ..."""
    class Clock:
        now = FRIDAY_NOON

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def session(repos, clock, sleeps):
    return TerminalSession(
        repos,
        TerminalSettings(card_auth_delay_seconds=2.0),
        clock=clock,
        sleep=sleeps.append,
    )


# =============================================================================
# FLASK APP + SQLITE
# =============================================================================


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CARD_AUTH_DELAY_SECONDS': 0.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database and terminal registry for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        app.extensions["barpos_terminals"] = TerminalRegistry()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def seed(db_session):
    """Demo users, menu and a happy-hour rule that is never active on test days."""
    users = [
        User(name="Jan", role="admin", pin_hash=hash_pin("1111")),
        User(name="Sarah", role="manager", pin_hash=hash_pin("2222")),
        User(name="Mike", role="bartender", pin_hash=hash_pin("3333")),
    ]
    items = {
        "bud": InventoryItem(name="Bud Light", price=Decimal("4.00"), category="beer", tier="domestic", stock_count=48, is_available=True),
        "claw": InventoryItem(name="White Claw", price=Decimal("5.00"), category="seltzer", stock_count=1, is_available=True),
        "vodka": InventoryItem(name="Well Vodka", price=Decimal("3.50"), category="liquor", tier="well", is_available=True),
    }
    rule = HappyHourRule(
        name="Never",
        start_time=time(0, 0),
        end_time=time(0, 0),
        category="all",
        discount_amount=Decimal("1.00"),
        days=[],
    )
    db_session.add_all(users + list(items.values()) + [rule])
    db_session.commit()
    return {name: item.id for name, item in items.items()}

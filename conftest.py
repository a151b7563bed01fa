"""Pytest configuration and fixtures for parking reservation tests."""
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app import create_app
from models import ReservationRequest
from reservation_manager import ReservationManager
from reservation_store import InMemoryReservationStore

BASE_TIME = datetime(2030, 5, 1, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock so status transitions can be driven by tests."""

    def __init__(self, now=BASE_TIME):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryReservationStore()


@pytest.fixture
def manager(store, clock):
    return ReservationManager(store, clock=clock)


@pytest.fixture
def make_request():
    """Build a booking candidate; times are hour offsets from BASE_TIME."""
    def _make(user_id="u1", slot_id="C5", start=0, end=2, plate="HR26DQ0555"):
        return ReservationRequest(
            user_id=user_id,
            user_name=f"name-{user_id}",
            email=f"{user_id}@example.com",
            slot_id=slot_id,
            vehicle_plate=plate,
            start_time=BASE_TIME + timedelta(hours=start),
            end_time=BASE_TIME + timedelta(hours=end),
        )
    return _make


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "DATA_DIR": str(tmp_path),
    })
    return app


@pytest.fixture
def client(app):
    """Create a test client for the Flask app."""
    with app.test_client() as client:
        yield client

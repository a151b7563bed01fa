"""Tests for the flat JSON reservation store."""
import json
import os
from datetime import datetime, timezone

import pytest

from models import Reservation, ReservationStatus
from reservation_manager import ReservationManager
from reservation_store import InMemoryReservationStore, JsonReservationStore, StoreError

T0 = datetime(2030, 5, 1, 10, 0, tzinfo=timezone.utc)


def sample(rid="res_1"):
    return Reservation(
        reservation_id=rid,
        user_id="u1",
        user_name="alice",
        email="alice@example.com",
        slot_id="C1",
        vehicle_plate="HR26DQ0555",
        start_time=T0,
        end_time=T0.replace(hour=12),
        status=ReservationStatus.UPCOMING,
        created_at=T0.replace(hour=9),
    )


class TestJsonReservationStore:

    def test_missing_file_loads_empty(self, tmp_path):
        store = JsonReservationStore(tmp_path / "nope" / "reservations.json")
        assert store.load() == []

    def test_empty_file_loads_empty(self, tmp_path):
        path = tmp_path / "reservations.json"
        path.write_text("")
        assert JsonReservationStore(path).load() == []

    def test_save_creates_directory_and_replaces_content(self, tmp_path):
        path = tmp_path / "data" / "reservations.json"
        store = JsonReservationStore(path)
        store.save([sample("res_1"), sample("res_2")])
        store.save([sample("res_3")])

        loaded = store.load()
        assert [r.reservation_id for r in loaded] == ["res_3"]
        assert loaded[0] == sample("res_3")
        # no temp files left behind
        assert os.listdir(path.parent) == ["reservations.json"]

    def test_persisted_field_names(self, tmp_path):
        path = tmp_path / "reservations.json"
        JsonReservationStore(path).save([sample()])
        record = json.loads(path.read_text())[0]
        assert set(record) == {
            "id", "userId", "userName", "email", "slotId",
            "vehiclePlate", "startTime", "endTime", "status", "createdAt",
        }
        assert record["status"] == "Upcoming"

    def test_reads_javascript_iso_timestamps(self, tmp_path):
        path = tmp_path / "reservations.json"
        record = sample().to_dict()
        record["startTime"] = "2030-05-01T10:00:00.000Z"
        path.write_text(json.dumps([record]))
        assert JsonReservationStore(path).load()[0].start_time == T0

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "reservations.json"
        path.write_text("{not json")
        with pytest.raises(StoreError):
            JsonReservationStore(path).load()

    def test_malformed_record_raises(self, tmp_path):
        path = tmp_path / "reservations.json"
        path.write_text(json.dumps([{"id": "x"}]))
        with pytest.raises(StoreError):
            JsonReservationStore(path).load()

    def test_unreadable_path_raises(self, tmp_path):
        # a directory where the file should be is an I/O fault, not "no data yet"
        path = tmp_path / "reservations.json"
        path.mkdir()
        with pytest.raises(StoreError):
            JsonReservationStore(path).load()


class TestInMemoryReservationStore:

    def test_load_returns_copies(self):
        store = InMemoryReservationStore([sample()])
        loaded = store.load()
        loaded[0].slot_id = "C9"
        loaded.clear()
        assert store.load()[0].slot_id == "C1"


class TestTimestampsWithoutOffset:

    def test_naive_timestamps_load_as_utc(self, tmp_path):
        path = tmp_path / "reservations.json"
        record = sample().to_dict()
        record["startTime"] = "2030-05-01T10:00:00"
        record["endTime"] = "2030-05-01T12:00:00"
        record["createdAt"] = "2030-05-01T09:00:00"
        path.write_text(json.dumps([record]))

        loaded = JsonReservationStore(path).load()[0]
        assert loaded.start_time == T0
        assert loaded.start_time.tzinfo is not None

    def test_naive_records_can_be_listed(self, tmp_path):
        path = tmp_path / "reservations.json"
        record = sample().to_dict()
        record["startTime"] = "2030-05-01T10:00:00"
        record["endTime"] = "2030-05-01T12:00:00"
        path.write_text(json.dumps([record]))

        manager = ReservationManager(JsonReservationStore(path), clock=lambda: T0.replace(hour=11))
        assert manager.list_reservations()[0].status == ReservationStatus.ACTIVE

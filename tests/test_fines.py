"""Tests for fines joined on reservation plates."""
from datetime import datetime, timezone

from fines import DEFAULT_FINE, OVERSTAYING_FINE, JsonViolationStore, fine_amount, fines_for_user


class TestFineAmount:

    def test_fixed_amount_per_type(self):
        assert fine_amount("overstaying") == OVERSTAYING_FINE == 50
        assert fine_amount("wrong_slot") == DEFAULT_FINE == 100


class TestFinesForUser:

    def test_joins_on_user_plates_newest_first(self, tmp_path, manager, make_request):
        manager.create_reservation(make_request(user_id="u1", slot_id="C1", plate="HR26DQ0555"))
        manager.create_reservation(make_request(user_id="u2", slot_id="C2", plate="TN72FB9999"))

        store = JsonViolationStore(tmp_path / "violations.json")
        older = store.add("C1", "overstaying", "hr 26 dq 0555", user_id="owner",
                          now=datetime(2030, 5, 1, tzinfo=timezone.utc))
        newer = store.add("C3", "wrong_slot", "HR26DQ0555", user_id="owner",
                          now=datetime(2030, 5, 2, tzinfo=timezone.utc))
        store.add("C2", "overstaying", "TN72FB9999", user_id="owner")

        fines = fines_for_user(manager.plates_for_user("u1"), store.load())

        assert [f.violation.violation_id for f in fines] == [newer.violation_id, older.violation_id]
        assert [f.amount for f in fines] == [100, 50]

    def test_no_reservations_no_fines(self, tmp_path):
        store = JsonViolationStore(tmp_path / "violations.json")
        store.add("C1", "overstaying", "HR26DQ0555", user_id="owner")
        assert fines_for_user(set(), store.load()) == []


class TestViolationStore:

    def test_delete(self, tmp_path):
        store = JsonViolationStore(tmp_path / "violations.json")
        v = store.add("C1", "overstaying", "HR26DQ0555", user_id="owner")
        assert store.delete(v.violation_id) is True
        assert store.delete(v.violation_id) is False
        assert store.load() == []

from __future__ import annotations

from typing import Optional

from models import Slot, SlotType

CAR_SLOT_COUNT = 10
BIKE_SLOT_COUNT = 12


def _build_catalog() -> tuple[Slot, ...]:
    slots = [Slot(slot_id=f"C{i}", slot_type=SlotType.CAR) for i in range(1, CAR_SLOT_COUNT + 1)]
    slots += [Slot(slot_id=f"B{i}", slot_type=SlotType.BIKE) for i in range(1, BIKE_SLOT_COUNT + 1)]
    return tuple(slots)


# 読み込み時に一度だけ生成し、以後変更しない
SLOTS: tuple[Slot, ...] = _build_catalog()
_BY_ID: dict[str, Slot] = {s.slot_id: s for s in SLOTS}


def all_slots() -> list[Slot]:
    return list(SLOTS)


def get_slot(slot_id: str) -> Optional[Slot]:
    return _BY_ID.get((slot_id or "").strip().upper())


def slots_by_type(slot_type: SlotType) -> list[Slot]:
    return [s for s in SLOTS if s.slot_type == slot_type]

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from models import normalize_plate, parse_timestamp
from reservation_store import JsonListFile, StoreError

logger = logging.getLogger(__name__)

OVERSTAYING = "overstaying"
OVERSTAYING_FINE = 50
DEFAULT_FINE = 100


@dataclass
class Violation:
    violation_id: str
    slot_number: str
    violation_type: str
    license_plate: str
    user_id: str             # 通報したユーザー
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.violation_id,
            "slotNumber": self.slot_number,
            "violationType": self.violation_type,
            "licensePlate": self.license_plate,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Violation":
        return cls(
            violation_id=data["id"],
            slot_number=data.get("slotNumber", ""),
            violation_type=data.get("violationType", ""),
            license_plate=data.get("licensePlate", ""),
            user_id=data.get("userId", ""),
            created_at=parse_timestamp(data["createdAt"]),
        )


@dataclass
class Fine:
    violation: Violation
    amount: int


def fine_amount(violation_type: str) -> int:
    return OVERSTAYING_FINE if violation_type == OVERSTAYING else DEFAULT_FINE


def fines_for_user(plates: Iterable[str], violations: Iterable[Violation]) -> list[Fine]:
    """
    ユーザーのナンバーと違反記録を突き合わせる（新しい順）
    plates は ReservationManager.plates_for_user() の結果を渡す。
    """
    plates = set(plates)
    fines = [
        Fine(violation=v, amount=fine_amount(v.violation_type))
        for v in violations
        if v.license_plate in plates
    ]
    fines.sort(key=lambda f: f.violation.created_at, reverse=True)
    return fines


class JsonViolationStore:
    def __init__(self, path: str | os.PathLike) -> None:
        self._file = JsonListFile(path)

    def load(self) -> list[Violation]:
        try:
            return [Violation.from_dict(d) for d in self._file.read()]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"malformed violation record in {self._file.path}: {e}") from e

    def save(self, violations: list[Violation]) -> None:
        self._file.write([v.to_dict() for v in violations])

    def add(
        self,
        slot_number: str,
        violation_type: str,
        license_plate: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Violation:
        v = Violation(
            violation_id=f"violation_{uuid.uuid4().hex}",
            slot_number=slot_number,
            violation_type=violation_type,
            license_plate=normalize_plate(license_plate),
            user_id=user_id,
            created_at=now or datetime.now(timezone.utc),
        )
        items = self.load()
        items.append(v)
        self.save(items)
        logger.info("Recorded %s violation %s at %s", violation_type, v.violation_id, slot_number)
        return v

    def delete(self, violation_id: str) -> bool:
        items = self.load()
        remaining = [v for v in items if v.violation_id != violation_id]
        if len(remaining) == len(items):
            return False
        self.save(remaining)
        return True

    def delete_for_user(self, user_id: str) -> int:
        items = self.load()
        remaining = [v for v in items if v.user_id != user_id]
        removed = len(items) - len(remaining)
        if removed:
            self.save(remaining)
        return removed

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# 予約フォーム側のナンバープレート書式（例: HR26DQ0555）
PLATE_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{1,2}[A-Z]{1,2}[0-9]{1,4}$")


class SlotType(Enum):
    CAR = "car"
    BIKE = "bike"


@dataclass(frozen=True)
class Slot:
    slot_id: str
    slot_type: SlotType


class SlotStatus(Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    OCCUPIED = "occupied"


class ReservationStatus(Enum):
    UPCOMING = "Upcoming"
    ACTIVE = "Active"
    COMPLETED = "Completed"


@dataclass
class Reservation:
    reservation_id: str
    user_id: str
    user_name: str             # 予約時点のスナップショット
    email: str
    slot_id: str
    vehicle_plate: str
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.reservation_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "email": self.email,
            "slotId": self.slot_id,
            "vehiclePlate": self.vehicle_plate,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reservation":
        return cls(
            reservation_id=data["id"],
            user_id=data["userId"],
            user_name=data.get("userName", ""),
            email=data.get("email", ""),
            slot_id=data["slotId"],
            vehicle_plate=data.get("vehiclePlate", ""),
            start_time=parse_timestamp(data["startTime"]),
            end_time=parse_timestamp(data["endTime"]),
            status=ReservationStatus(data.get("status", ReservationStatus.UPCOMING.value)),
            created_at=parse_timestamp(data["createdAt"]),
        )


@dataclass
class ReservationRequest:
    """
    UI層から渡される予約候補
    ユーザー情報はログイン中のユーザーをそのまま写す（再検証しない）
    """
    user_id: str
    user_name: str
    email: str
    slot_id: str
    vehicle_plate: str
    start_time: datetime
    end_time: datetime


def normalize_plate(text: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", (text or "").upper())


def parse_timestamp(value: str) -> datetime:
    # JS の toISOString() 形式（末尾 Z）も受け付ける
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    # オフセット無しの保存値は UTC とみなす
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from models import Reservation, ReservationStatus, SlotStatus


def derive_status(start_time: datetime, end_time: datetime, now: datetime) -> ReservationStatus:
    """
    予約ステータスを現在時刻から導出する（純関数）

    Upcoming -> Active -> Completed の順にしか進まない。
    保存済みの status は表示用で、正は常に壁時計。
    """
    if now > end_time:
        return ReservationStatus.COMPLETED
    if start_time <= now <= end_time:
        return ReservationStatus.ACTIVE
    return ReservationStatus.UPCOMING


def overlaps(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    # 半開区間 [s, e)：端点が接するだけなら重ならない
    return s1 < e2 and s2 < e1


def find_conflict(
    reservations: Iterable[Reservation],
    slot_id: str,
    start_time: datetime,
    end_time: datetime,
    exclude_reservation_id: Optional[str] = None,
) -> Optional[Reservation]:
    """
    同じ区画で時間帯が重なる予約を1件返す（無ければ None）
    どれが返るかは順序に依存する。
    """
    for r in reservations:
        if r.slot_id != slot_id:
            continue
        if exclude_reservation_id is not None and r.reservation_id == exclude_reservation_id:
            continue
        if overlaps(start_time, end_time, r.start_time, r.end_time):
            return r
    return None


def slot_display_status(conflicting: Optional[Reservation], now: datetime) -> SlotStatus:
    if conflicting is None:
        return SlotStatus.AVAILABLE
    if derive_status(conflicting.start_time, conflicting.end_time, now) == ReservationStatus.ACTIVE:
        return SlotStatus.OCCUPIED
    return SlotStatus.RESERVED

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from models import (
    Reservation,
    ReservationRequest,
    ReservationStatus,
    Slot,
    SlotStatus,
)
from reservation_store import ReservationStore
from scheduling import derive_status, find_conflict, slot_display_status
from slot_catalog import all_slots

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SlotView:
    slot: Slot
    status: SlotStatus
    is_mine: bool
    reservation: Optional[Reservation] = None


class ReservationManager:
    """
    予約管理の中枢

    - 読み出しのたびにステータスを再計算し、変化があれば一括で書き戻す
    - 同一ユーザー・同一区画の予約は1件のみ（再予約で古い方を置き換え）
    - 作成時は同じロック内で重複チェックを行う
    """

    def __init__(self, store: ReservationStore, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self.clock = clock or utc_now
        # load -> 変更 -> save の1サイクルを直列化する（単一プロセス前提）
        self._lock = threading.Lock()

    # -------------------------
    # 一覧（ステータス再計算）
    # -------------------------
    def list_reservations(self, now: Optional[datetime] = None) -> list[Reservation]:
        now = now or self.clock()
        with self._lock:
            items = self.store.load()
            changed = 0
            refreshed: list[Reservation] = []
            for r in items:
                status = derive_status(r.start_time, r.end_time, now)
                if status != r.status:
                    changed += 1
                    r = replace(r, status=status)
                refreshed.append(r)

            if changed:
                self.store.save(refreshed)
                logger.info("Refreshed status of %d reservation(s)", changed)
            return refreshed

    def get_reservation(self, reservation_id: str, now: Optional[datetime] = None) -> Optional[Reservation]:
        for r in self.list_reservations(now):
            if r.reservation_id == reservation_id:
                return r
        return None

    def reservations_for_user(self, user_id: str, now: Optional[datetime] = None) -> list[Reservation]:
        return [r for r in self.list_reservations(now) if r.user_id == user_id]

    def plates_for_user(self, user_id: str, now: Optional[datetime] = None) -> set[str]:
        return {r.vehicle_plate for r in self.reservations_for_user(user_id, now)}

    # -------------------------
    # 空き確認
    # -------------------------
    def find_conflict(
        self,
        slot_id: str,
        start_time: datetime,
        end_time: datetime,
        exclude_reservation_id: Optional[str] = None,
    ) -> Optional[Reservation]:
        return find_conflict(
            self.store.load(), slot_id, start_time, end_time, exclude_reservation_id
        )

    def slot_overview(
        self,
        start_time: datetime,
        end_time: datetime,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[SlotView]:
        now = now or self.clock()
        items = self.list_reservations(now)
        views = []
        for slot in all_slots():
            r = find_conflict(items, slot.slot_id, start_time, end_time)
            views.append(
                SlotView(
                    slot=slot,
                    status=slot_display_status(r, now),
                    is_mine=r is not None and user_id is not None and r.user_id == user_id,
                    reservation=r,
                )
            )
        return views

    # -------------------------
    # 予約
    # -------------------------
    def create_reservation(self, request: ReservationRequest, now: Optional[datetime] = None) -> Optional[Reservation]:
        """
        予約を作成して保存する

        同じユーザーが同じ区画に既に予約を持っていれば置き換える。
        他の予約と時間帯が重なる場合は何も書かずに None を返す。
        入力値の検証（start < end など）は呼び出し側の責任。
        """
        now = now or self.clock()
        with self._lock:
            items = self.store.load()

            superseded = [
                r for r in items
                if r.user_id == request.user_id and r.slot_id == request.slot_id
            ]
            superseded_ids = {r.reservation_id for r in superseded}
            remaining = [r for r in items if r.reservation_id not in superseded_ids]

            conflict = find_conflict(remaining, request.slot_id, request.start_time, request.end_time)
            if conflict is not None:
                logger.info(
                    "Rejected booking of %s for user %s: overlaps %s",
                    request.slot_id, request.user_id, conflict.reservation_id,
                )
                return None

            r = Reservation(
                reservation_id=self._new_reservation_id(),
                user_id=request.user_id,
                user_name=request.user_name,
                email=request.email,
                slot_id=request.slot_id,
                vehicle_plate=request.vehicle_plate,
                start_time=request.start_time,
                end_time=request.end_time,
                status=ReservationStatus.UPCOMING,  # 作成直後
                created_at=now,
            )
            remaining.append(r)
            self.store.save(remaining)

        for old in superseded:
            logger.info("Reservation %s superseded by %s", old.reservation_id, r.reservation_id)
        logger.info("Created reservation %s for slot %s", r.reservation_id, r.slot_id)
        return r

    # -------------------------
    # 取消・削除
    # -------------------------
    def cancel_reservation(self, reservation_id: str) -> bool:
        with self._lock:
            items = self.store.load()
            remaining = [r for r in items if r.reservation_id != reservation_id]
            if len(remaining) == len(items):
                return False
            self.store.save(remaining)

        logger.info("Cancelled reservation %s", reservation_id)
        return True

    def delete_reservations_for_user(self, user_id: str) -> int:
        with self._lock:
            items = self.store.load()
            remaining = [r for r in items if r.user_id != user_id]
            removed = len(items) - len(remaining)
            if removed:
                self.store.save(remaining)

        if removed:
            logger.info("Deleted %d reservation(s) of user %s", removed, user_id)
        return removed

    # -------------------------
    # 内部
    # -------------------------
    def _new_reservation_id(self) -> str:
        return f"res_{uuid.uuid4().hex}"

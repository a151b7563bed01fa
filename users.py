from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from fines import JsonViolationStore
from reservation_manager import ReservationManager

logger = logging.getLogger(__name__)


@dataclass
class User:
    user_id: str
    username: str
    email: str
    password_hash: str


class UserDirectory:
    """
    ユーザー管理（簡易：メモリ）
    ※ サーバー再起動で消える

    アカウント削除時は、そのユーザーの予約と違反記録もまとめて消す。
    """

    def __init__(
        self,
        manager: ReservationManager,
        violations: Optional[JsonViolationStore] = None,
        reserved_names: tuple[str, ...] = ("admin",),
    ) -> None:
        self.manager = manager
        self.violations = violations
        self.reserved_names = reserved_names
        self._users: dict[str, User] = {}

    def register(self, username: str, email: str, password: str) -> Optional[User]:
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email or not password:
            return None
        if username in self.reserved_names:
            return None
        if any(u.username == username or u.email == email for u in self._users.values()):
            return None

        user = User(
            user_id=f"user_{uuid.uuid4().hex[:12]}",
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
        )
        self._users[user.user_id] = user
        logger.info("Registered user %s (%s)", user.username, user.user_id)
        return user

    def authenticate(self, username: str, password: str) -> Optional[User]:
        username = (username or "").strip()
        for u in self._users.values():
            if u.username == username and check_password_hash(u.password_hash, password or ""):
                return u
        return None

    def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def list_users(self) -> list[User]:
        return sorted(self._users.values(), key=lambda u: u.username)

    def delete_user(self, user_id: str) -> bool:
        user = self._users.pop(user_id, None)
        if user is None:
            return False

        removed = self.manager.delete_reservations_for_user(user_id)
        removed_violations = 0
        if self.violations is not None:
            removed_violations = self.violations.delete_for_user(user_id)
        logger.info(
            "Deleted user %s with %d reservation(s) and %d violation(s)",
            user.username, removed, removed_violations,
        )
        return True

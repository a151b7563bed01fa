from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from models import Reservation

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """永続化層の読み書き失敗（呼び出し側へそのまま伝播する）"""


class ReservationStore(Protocol):
    def load(self) -> list[Reservation]: ...

    def save(self, reservations: list[Reservation]) -> None: ...


class JsonListFile:
    """
    JSON 配列を1ファイルに丸ごと読み書きする

    - ファイルが無い / 空 -> 空リスト
    - それ以外の失敗は StoreError
    - 書き込みは一時ファイル + os.replace で全置換
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def read(self) -> list[dict[str, Any]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.exception("Failed to read %s", self.path)
            raise StoreError(f"cannot read {self.path}: {e}") from e

        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.exception("Corrupt JSON in %s", self.path)
            raise StoreError(f"cannot decode {self.path}: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"{self.path} does not contain a JSON array")
        return data

    def write(self, records: list[dict[str, Any]]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            logger.exception("Failed to write %s", self.path)
            raise StoreError(f"cannot write {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
        logger.debug("Wrote %d records to %s", len(records), self.path)


class JsonReservationStore:
    def __init__(self, path: str | os.PathLike) -> None:
        self._file = JsonListFile(path)

    @property
    def path(self) -> Path:
        return self._file.path

    def load(self) -> list[Reservation]:
        try:
            return [Reservation.from_dict(d) for d in self._file.read()]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"malformed reservation record in {self.path}: {e}") from e

    def save(self, reservations: list[Reservation]) -> None:
        self._file.write([r.to_dict() for r in reservations])


class InMemoryReservationStore:
    """プロセス内だけで保持するストア（テスト・一時利用向け）"""

    def __init__(self, reservations: list[Reservation] | None = None) -> None:
        self._data: list[Reservation] = copy.deepcopy(reservations or [])
        self.save_count = 0

    def load(self) -> list[Reservation]:
        return copy.deepcopy(self._data)

    def save(self, reservations: list[Reservation]) -> None:
        self._data = copy.deepcopy(reservations)
        self.save_count += 1

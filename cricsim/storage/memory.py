"""
Player-record stores the match engine can load from and save to.

The engine only needs two calls, load(player_id) and save(record). The HTTP
service fills an InMemoryPlayerStore from SQLite before a match starts and
flushes whatever the engine marked dirty afterwards.
"""

import logging
from typing import Protocol

from cricsim.models import PlayerRecord

logger = logging.getLogger(__name__)


class PlayerStore(Protocol):
    def load(self, player_id: int) -> PlayerRecord | None: ...

    def save(self, record: PlayerRecord) -> None: ...


class InMemoryPlayerStore:
    """Dict-backed PlayerStore that remembers which records changed."""

    def __init__(self, records: dict[int, PlayerRecord] | None = None) -> None:
        self._records: dict[int, PlayerRecord] = dict(records or {})
        self._dirty: set[int] = set()

    def load(self, player_id: int) -> PlayerRecord | None:
        record = self._records.get(player_id)
        return record.model_copy(deep=True) if record else None

    def save(self, record: PlayerRecord) -> None:
        self._records[record.player_id] = record.model_copy(deep=True)
        self._dirty.add(record.player_id)

    def dirty_records(self) -> list[PlayerRecord]:
        return [self._records[pid] for pid in sorted(self._dirty)]

    def mark_clean(self) -> None:
        self._dirty.clear()

    def __len__(self) -> int:
        return len(self._records)

"""
Per-player tuning multipliers for the simulation.

Loaded from a JSON file (settings.player_modifiers_path) shaped like:

    [{"player_id": 18, "batting_boost": 1.3, "bowling_boost": 1.0,
      "narrative": "Known for finishing chases"}]

A player without an entry simulates with neutral (1.0) boosts.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from cricsim.config import settings

logger = logging.getLogger(__name__)


class PlayerModifier(BaseModel):
    player_id: int
    batting_boost: float = Field(1.0, gt=0)
    bowling_boost: float = Field(1.0, gt=0)
    narrative: Optional[str] = Field(None, description="Hint passed to the LLM prompt")


class PlayerModifiers(BaseModel):
    by_player: dict[int, PlayerModifier] = Field(default_factory=dict)

    def batting(self, player_id: int | None) -> float:
        mod = self.by_player.get(player_id)
        return mod.batting_boost if mod else 1.0

    def bowling(self, player_id: int | None) -> float:
        mod = self.by_player.get(player_id)
        return mod.bowling_boost if mod else 1.0

    def narrative(self, player_id: int | None) -> str | None:
        mod = self.by_player.get(player_id)
        return mod.narrative if mod else None

    @classmethod
    def from_list(cls, entries: list[dict]) -> "PlayerModifiers":
        mods = [PlayerModifier(**e) for e in entries]
        return cls(by_player={m.player_id: m for m in mods})


NEUTRAL = PlayerModifiers()


def load_player_modifiers(path: str | Path | None = None) -> PlayerModifiers:
    json_path = Path(path or settings.player_modifiers_path)
    if not json_path.exists():
        logger.info(f"No player modifiers at {json_path}, using neutral boosts")
        return PlayerModifiers()
    with open(json_path, encoding="utf-8") as f:
        entries = json.load(f)
    modifiers = PlayerModifiers.from_list(entries)
    logger.info(f"Loaded {len(modifiers.by_player)} player modifiers from {json_path}")
    return modifiers

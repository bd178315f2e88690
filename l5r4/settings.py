"""World-level settings read by the data preparation pass."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from l5r4.types import WoundMode


@dataclass
class Settings:
    """Settings a GM chooses once per world.

    Individual actors can override these; see ActorSystem.wound_mode.
    """

    default_npc_wound_mode: WoundMode = WoundMode.MANUAL
    """Wound mode for NPCs that haven't picked one. Manual suits NPCs
    copied from published stat blocks, which list their wound levels
    explicitly."""

    debug_wounds: bool = False
    """Log each NPC's thresholds at DEBUG level after every preparation
    pass. Useful when chasing stale or unexpected wound tables."""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        """Read the host's stored settings (camelCase keys)."""
        return cls(
            default_npc_wound_mode=WoundMode.coerce(
                raw.get("defaultNpcWoundMode"), default=WoundMode.MANUAL,
            ),
            debug_wounds=raw.get("debugWounds") is True,
        )


DEFAULT_SETTINGS = Settings()

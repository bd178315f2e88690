"""
Domain-specific types for the L5R4 wound engine.

The aliases aren't enforced at runtime; they make signatures say which
strings are expected. WoundMode is a real enum because it is the one value
that switches the engine between two different code paths, and a typo there
should fail loudly at the boundary instead of silently falling through to
formula mode.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, TypeAlias

# One of the eight wound levels, in severity order.
WoundLevelName: TypeAlias = Literal[
    "healthy",
    "nicked",
    "grazed",
    "hurt",
    "injured",
    "crippled",
    "down",
    "out",
]

# The two kinds of actor the host knows about. Player characters always use
# the formula; NPCs choose between manual and formula thresholds.
ActorType: TypeAlias = Literal["pc", "npc"]

# Result of heuristic schema detection on an exported world.
SchemaStateName: TypeAlias = Literal["original", "new-v13", "mixed", "unknown"]


class WoundMode(str, Enum):
    """How an NPC's wound thresholds are obtained.

    MANUAL thresholds and penalties are typed in by the GM straight from a
    stat block. FORMULA thresholds are derived from the Earth ring, like a
    player character's.
    """

    MANUAL = "manual"
    FORMULA = "formula"

    @classmethod
    def coerce(cls, value: object, default: WoundMode | None = None) -> WoundMode:
        """Turn a stored mode string into a WoundMode.

        Empty values return *default* (formula if none is given). Anything
        else that isn't a known mode raises ValueError.
        """
        if isinstance(value, cls):
            return value
        if not value:
            return default if default is not None else cls.FORMULA
        return cls(str(value).strip().lower())

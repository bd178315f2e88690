"""Typed records for an actor's system data.

The host stores each actor's rules data ("system data") as a camelCase JSON
object. These dataclasses mirror the parts of it the wound engine reads and
writes, so the engine can work with attributes instead of nested dict
lookups. ``from_dict`` parses a host object (coercing numbers on the way in)
and ``to_dict`` writes one back with the host's key names.

Derived fields (effective penalties, current flags, the visible views) are
recomputed on every preparation pass; only the thresholds, penalties, mode,
modifiers and damage suffered are authoritative.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from l5r4.coercion import to_int
from l5r4.data import WOUND_LEVEL_ORDER
from l5r4.types import WoundMode


@dataclass
class WoundLevel:
    """One row of the wound table used for calculation and display."""

    threshold: int = 0
    """Total damage at which the character is at this level. Stored by the
    host as ``value``."""

    penalty: int = 0
    """Base roll penalty for this level, stored positive."""

    effective_penalty: int = 0
    """abs(penalty + global penalty modifier). Derived; display only."""

    current: bool = False
    """Whether the character is at this level right now. Derived."""

    active: bool = False
    """Whether this level takes part in current-level calculation."""

    visible: bool = False
    """Whether this level is shown in the wound table."""

    calculated_value: int | None = None
    """Manual mode only: the threshold used for progression math. Inactive
    levels carry their predecessor's threshold here so they don't break
    the sequence for the levels above them."""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> WoundLevel:
        calculated = raw.get("calculatedValue")
        return cls(
            threshold=to_int(raw.get("value")),
            penalty=to_int(raw.get("penalty")),
            effective_penalty=to_int(raw.get("penaltyEff")),
            current=raw.get("current") is True,
            active=raw.get("isActive") is True,
            visible=raw.get("isVisible") is True,
            calculated_value=None if calculated is None else to_int(calculated),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "value": self.threshold,
            "penalty": self.penalty,
            "penaltyEff": self.effective_penalty,
            "current": self.current,
            "isActive": self.active,
            "isVisible": self.visible,
        }
        if self.calculated_value is not None:
            out["calculatedValue"] = self.calculated_value
        return out


@dataclass
class ManualWoundLevel:
    """A GM-authored wound level from an NPC's stat block."""

    threshold: int = 0
    penalty: int = 0
    active: bool = False

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ManualWoundLevel:
        return cls(
            threshold=to_int(raw.get("value")),
            penalty=to_int(raw.get("penalty")),
            active=raw.get("active") is True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.threshold, "penalty": self.penalty, "active": self.active}


@dataclass
class Wounds:
    """Aggregate wound state shown in the sheet header."""

    max: int = 0
    """Wound capacity: max_override for a manual-mode NPC that has one,
    otherwise the Out threshold. Derived; never read back as input."""

    max_override: int = 0
    """Capacity typed in by the GM, 0 for none. Manual NPCs use it as
    their ceiling; formula NPCs rescale their table to end on it."""

    value: int = 0
    """Remaining capacity: max - suffered, never below 0."""

    penalty: int = 0
    """Effective penalty of the current level, applied to rolls."""

    heal_rate: int = 0
    """Wounds healed per day (player characters only)."""

    mod: int = 0
    """Flat bonus to the heal rate."""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Wounds:
        """Records written before maxOverride existed only have ``max``,
        which then holds whatever the GM typed in."""
        override = raw["maxOverride"] if "maxOverride" in raw else raw.get("max")
        return cls(
            max=to_int(raw.get("max")),
            max_override=to_int(override),
            value=to_int(raw.get("value")),
            penalty=to_int(raw.get("penalty")),
            heal_rate=to_int(raw.get("healRate")),
            mod=to_int(raw.get("mod")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max": self.max,
            "maxOverride": self.max_override,
            "value": self.value,
            "penalty": self.penalty,
            "healRate": self.heal_rate,
            "mod": self.mod,
        }


def _levels_from_dict(raw: Any, cls: type) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    return {
        key: cls.from_dict(lvl)
        for key, lvl in raw.items()
        if isinstance(lvl, dict)
    }


@dataclass
class ActorSystem:
    """The wound-related part of one actor's system data.

    Every wound engine function takes one of these and mutates it in place,
    the same way the host's data preparation pass mutates its own record.
    """

    wound_levels: dict[str, WoundLevel] = field(default_factory=dict)
    manual_wound_levels: dict[str, ManualWoundLevel] = field(default_factory=dict)
    wounds: Wounds = field(default_factory=Wounds)

    wound_mode: WoundMode | None = None
    """None means "use the world default" (see l5r4.settings)."""

    nr_wound_lvls: int = 3
    """How many wound levels a formula-mode NPC uses (1-8)."""

    wounds_penalty_mod: int = 0
    """Added to every level's penalty. May be negative."""

    wounds_multiplier: int = 2
    """Earth multiplier for every level after Healthy."""

    wounds_mod: int = 0
    """Flat amount added to every formula threshold."""

    suffered: int = 0
    """Total damage taken."""

    traits: dict[str, int] = field(default_factory=dict)
    rings: dict[str, Any] = field(default_factory=dict)
    insight_rank: int = 0

    # --- Derived on every preparation pass ---

    wound_penalty: int = 0
    current_wound_level: str = "healthy"
    visible_wound_levels: dict[str, WoundLevel] = field(default_factory=dict)
    visible_manual_wound_levels: dict[str, ManualWoundLevel] = field(default_factory=dict)

    @property
    def earth(self) -> int:
        return to_int(self.rings.get("earth"))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ActorSystem:
        """Parse the host's camelCase system data.

        Missing fields get their defaults and numbers are coerced with
        to_int. An unrecognised wound mode raises ValueError.
        """
        mode = raw.get("woundMode")
        traits = raw.get("traits") or {}
        insight = raw.get("insight") or {}
        return cls(
            wound_levels=_levels_from_dict(raw.get("woundLevels"), WoundLevel),
            manual_wound_levels=_levels_from_dict(raw.get("manualWoundLevels"), ManualWoundLevel),
            wounds=Wounds.from_dict(raw.get("wounds") or {}),
            wound_mode=WoundMode.coerce(mode) if mode else None,
            nr_wound_lvls=to_int(raw.get("nrWoundLvls"), 3),
            wounds_penalty_mod=to_int(raw.get("woundsPenaltyMod")),
            wounds_multiplier=to_int(raw.get("woundsMultiplier"), 2),
            wounds_mod=to_int(raw.get("woundsMod")),
            suffered=to_int(raw.get("suffered")),
            # Traits may be stored bare or as {"rank": n}.
            traits={
                k: to_int(v.get("rank") if isinstance(v, dict) else v)
                for k, v in traits.items()
            },
            rings=dict(raw.get("rings") or {}),
            insight_rank=to_int(insight.get("rank")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Write back host-format system data, derived fields included."""
        order = [k for k in WOUND_LEVEL_ORDER if k in self.wound_levels]
        order += [k for k in self.wound_levels if k not in order]
        return {
            "woundLevels": {k: self.wound_levels[k].to_dict() for k in order},
            "manualWoundLevels": {
                k: lvl.to_dict() for k, lvl in self.manual_wound_levels.items()
            },
            "wounds": self.wounds.to_dict(),
            "woundMode": self.wound_mode.value if self.wound_mode else None,
            "nrWoundLvls": self.nr_wound_lvls,
            "woundsPenaltyMod": self.wounds_penalty_mod,
            "woundsMultiplier": self.wounds_multiplier,
            "woundsMod": self.wounds_mod,
            "suffered": self.suffered,
            "traits": dict(self.traits),
            "rings": dict(self.rings),
            "insight": {"rank": self.insight_rank},
            "woundPenalty": self.wound_penalty,
            "currentWoundLevel": self.current_wound_level,
            "visibleWoundLevels": {
                k: lvl.to_dict() for k, lvl in self.visible_wound_levels.items()
            },
            "visibleManualWoundLevels": {
                k: lvl.to_dict() for k, lvl in self.visible_manual_wound_levels.items()
            },
        }

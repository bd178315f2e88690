"""
Wound level calculations for the L5R4 rules.

A character's wound table has eight levels, Healthy through Out. Each level
has a threshold: the total damage at which the character has reached it.
Damage in the band (previous threshold, this threshold] puts the character
at that level, and the level's penalty is subtracted from their rolls.

Thresholds come from one of two places:

- Formula mode (player characters, and NPCs that opt in): Healthy is
  5 x Earth, and every later level adds Earth x multiplier on top of the
  previous one. NPCs may use fewer than eight levels; the unused ones are
  flattened onto the previous threshold so they can never be "current".
- Manual mode (NPCs built from a stat block): the GM types in each level's
  threshold, penalty and an active flag. Inactive levels are ignored when
  working out the current level.

Every function here mutates an ActorSystem in place and is run as part of
the data preparation pass, which recomputes the whole table from scratch
whenever the actor changes. None of them raise on malformed numbers; those
are coerced to 0. The two entry points that sit right under the sheet
(determine_current and prepare_visible) also absorb structural problems and
fall back to something displayable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from fractions import Fraction
from math import ceil
from typing import Any

from l5r4.coercion import clamp, to_int
from l5r4.data import (
    DEFAULT_MANUAL_ACTIVE,
    DEFAULT_WOUND_LEVEL_COUNT,
    DEFAULT_WOUND_MULTIPLIER,
    DEFAULT_WOUND_PENALTIES,
    DEFAULT_WOUND_THRESHOLDS,
    HEALTHY_EARTH_FACTOR,
    MAX_WOUND_LEVEL_COUNT,
    MIN_WOUND_LEVEL_COUNT,
    WOUND_LEVEL_ORDER,
)
from l5r4.records import ActorSystem, ManualWoundLevel, WoundLevel, Wounds
from l5r4.types import WoundMode

logger = logging.getLogger(__name__)


def select_levels(count: Any = None) -> list[str]:
    """Return the wound levels in use for an NPC with *count* levels.

    Empty counts (0, None, NaN, "") mean the standard three levels; anything
    else is clamped to 1-8. The result always ends with "out":

    >>> select_levels(1)
    ['healthy', 'out']
    >>> select_levels(5)
    ['healthy', 'nicked', 'grazed', 'hurt', 'out']

    For 3-7 levels the last level of the slice is *replaced* by "out"
    rather than "out" being appended, so select_levels(5) has five entries
    and never includes "injured".
    """
    count = clamp(
        to_int(count) or DEFAULT_WOUND_LEVEL_COUNT,
        MIN_WOUND_LEVEL_COUNT,
        MAX_WOUND_LEVEL_COUNT,
    )
    if count == 1:
        return ["healthy", "out"]
    if count == 2:
        return ["healthy", "nicked", "out"]

    levels = list(WOUND_LEVEL_ORDER[:count])
    if "out" not in levels:
        levels[-1] = "out"
    return levels


def effective_penalty(penalty: Any, modifier: Any) -> int:
    """Penalty shown on the sheet: abs(penalty + modifier), never negative.

    Penalties are stored and displayed as positive numbers and only turned
    into a negative modifier when a roll is made.
    """
    return abs(to_int(penalty) + to_int(modifier))


def apply_penalties(system: ActorSystem) -> None:
    """Set effective_penalty on every wound level from the global modifier."""
    modifier = to_int(system.wounds_penalty_mod)
    for lvl in (system.wound_levels or {}).values():
        lvl.effective_penalty = effective_penalty(lvl.penalty, modifier)


def initialize_wound_state(system: ActorSystem, suffered: Any, mode: WoundMode | str | None = None) -> None:
    """Set wounds.max and wounds.value (remaining capacity).

    wounds.max is normally the Out threshold. A manual-mode NPC whose GM has
    typed in a positive wounds.max_override keeps that as its ceiling. The
    override is never written by the engine, so repeated passes start from the
    same inputs. *mode* defaults to the actor's own wound_mode; callers that
    have resolved the world default pass it explicitly.
    """
    if system.wounds is None:
        system.wounds = Wounds()
    if mode is None:
        mode = system.wound_mode

    out = (system.wound_levels or {}).get("out")
    out_max = to_int(out.threshold) if out is not None else 0
    override = to_int(system.wounds.max_override)

    if mode == WoundMode.MANUAL and override > 0:
        system.wounds.max = override
    else:
        system.wounds.max = out_max

    system.wounds.value = clamp(system.wounds.max - to_int(suffered), 0, max(0, system.wounds.max))


def cap_damage(suffered: Any, out_threshold: Any) -> int:
    """Limit damage to the Out threshold for level lookups.

    Damage beyond Out would otherwise match no level at all. An Out
    threshold of 0 means the table hasn't been set up, so the damage is
    passed through unchanged.
    """
    suffered = to_int(suffered)
    out_threshold = to_int(out_threshold)
    return min(suffered, out_threshold) if out_threshold else suffered


def _scan(levels: dict[str, WoundLevel], names: Iterable[str], damage: int) -> WoundLevel | None:
    """Flag the level whose band contains *damage*; return the last match.

    Levels missing from the table are skipped and don't move the lower
    bound of the next band.
    """
    found = None
    last = -1
    for key in names:
        lvl = levels.get(key)
        if lvl is None:
            continue
        upper = to_int(lvl.threshold)
        lvl.current = last < damage <= upper
        if lvl.current:
            found = lvl
        last = upper
    return found


def locate_current(system: ActorSystem, names: Iterable[str], damage: Any) -> WoundLevel | None:
    """Find the current wound level among *names* (checked in order).

    A level is current when the previous checked threshold < damage <= its
    own threshold. Every visited level gets its ``current`` flag set
    accordingly. If nothing matches, the Healthy level is returned (None if
    the table has no Healthy level).

    Thresholds are strictly increasing after preparation, so at most one
    level can match; with malformed input the last match wins.
    """
    levels = system.wound_levels
    found = _scan(levels, names, to_int(damage))
    return found if found is not None else levels.get("healthy")


def prepare_manual(system: ActorSystem, order: Sequence[str] = WOUND_LEVEL_ORDER) -> None:
    """Build the wound table from the GM's manual wound levels.

    Missing manual entries are seeded from the default tables, with only
    Healthy, Nicked and Out active. All eight levels are visible here
    because the wound configuration always lists every level; the main
    wound table filters on ``active`` later in prepare_visible.

    Thresholds that don't increase are repaired rather than rejected: any
    level after Healthy whose threshold is not above the previous one is
    raised to previous + 1. Existing GM data depends on this.
    """
    if system.manual_wound_levels is None:
        system.manual_wound_levels = {}
    if system.wound_levels is None:
        system.wound_levels = {}
    manual = system.manual_wound_levels
    levels = system.wound_levels

    for key in order:
        if key not in manual:
            manual[key] = ManualWoundLevel(
                threshold=DEFAULT_WOUND_THRESHOLDS.get(key, 0),
                penalty=DEFAULT_WOUND_PENALTIES.get(key, 0),
                active=key in DEFAULT_MANUAL_ACTIVE,
            )

    for i, key in enumerate(order):
        entry = manual[key]
        lvl = levels.setdefault(key, WoundLevel())
        lvl.threshold = max(0, to_int(entry.threshold))
        lvl.penalty = max(0, to_int(entry.penalty))
        lvl.active = entry.active is True
        lvl.visible = True

        if not lvl.active and i > 0:
            prev = levels.get(order[i - 1])
            lvl.calculated_value = prev.threshold if prev is not None else 0
        else:
            lvl.calculated_value = lvl.threshold

    prev_threshold = 0
    for key in order:
        lvl = levels[key]
        if lvl.threshold <= prev_threshold and key != "healthy":
            lvl.threshold = prev_threshold + 1
        prev_threshold = lvl.threshold


def formula_thresholds(earth: int, multiplier: int, modifier: int, names: Iterable[str]) -> dict[str, int]:
    """Earth-based thresholds for *names*, each building on the last.

    Healthy is 5 x Earth + modifier; every other level is
    Earth x multiplier + previous + modifier.
    """
    thresholds = {}
    prev = 0
    for key in names:
        if key == "healthy":
            prev = HEALTHY_EARTH_FACTOR * earth + modifier
        else:
            prev = earth * multiplier + prev + modifier
        thresholds[key] = prev
    return thresholds


def _formula_inputs(system: ActorSystem) -> tuple[int, int, int]:
    earth = system.earth
    multiplier = to_int(system.wounds_multiplier) or DEFAULT_WOUND_MULTIPLIER
    modifier = to_int(system.wounds_mod)
    return earth, multiplier, modifier


def prepare_formula(system: ActorSystem, order: Sequence[str] = WOUND_LEVEL_ORDER) -> None:
    """Build the wound table from Earth, the multiplier and nr_wound_lvls.

    Levels in use get Earth-based thresholds and the default penalty for
    their level (reset every pass, so edits to a formula NPC's penalties
    don't stick). Levels not in use sit flat on the previous threshold with
    no penalty and are hidden.

    If the GM has typed a positive wounds.max_override that differs from
    the computed Out threshold, the whole table is scaled by override / Out,
    rounding up, and then nudged so every threshold stays strictly above the
    one before it (Healthy at least 1). Out therefore lands exactly on the
    GM's value.
    """
    if system.wound_levels is None:
        system.wound_levels = {}
    levels = system.wound_levels
    earth, multiplier, modifier = _formula_inputs(system)
    in_use = select_levels(to_int(system.nr_wound_lvls) or DEFAULT_WOUND_LEVEL_COUNT)
    computed = formula_thresholds(earth, multiplier, modifier, in_use)

    prev = 0
    for key in order:
        lvl = levels.setdefault(key, WoundLevel())
        lvl.current = False
        lvl.calculated_value = None
        if key in computed:
            lvl.threshold = prev = computed[key]
            lvl.penalty = DEFAULT_WOUND_PENALTIES.get(key, 0)
            lvl.active = lvl.visible = True
        else:
            lvl.threshold = prev
            lvl.penalty = 0
            lvl.active = lvl.visible = False

    npc_max = to_int(system.wounds.max_override) if system.wounds is not None else 0
    out = levels.get("out")
    out_derived = to_int(out.threshold) if out is not None else 0
    if npc_max > 0 and out_derived > 0 and npc_max != out_derived:
        factor = Fraction(npc_max, out_derived)
        prev_scaled = 0
        for key in order:
            lvl = levels[key]
            scaled = ceil(to_int(lvl.threshold) * factor)
            if key == "healthy":
                scaled = max(1, scaled)
            else:
                scaled = max(prev_scaled + 1, scaled)
            lvl.threshold = prev_scaled = scaled


def _fallback_level(system: Any) -> WoundLevel:
    levels = getattr(system, "wound_levels", None)
    if isinstance(levels, dict) and isinstance(levels.get("healthy"), WoundLevel):
        return levels["healthy"]
    return WoundLevel()


def determine_current(system: ActorSystem, order: Sequence[str], damage: Any, mode: WoundMode | str | None) -> WoundLevel:
    """Work out the current wound level for either wound mode.

    In manual mode only levels whose manual entry is active are checked, so
    an inactive level can never be current even if the damage falls inside
    its band. In formula mode every level in *order* is checked.

    Never raises: if the actor has no wound table or *order* isn't a
    sequence, the Healthy level (or a blank zero-penalty level) comes back
    instead.
    """
    try:
        levels = system.wound_levels
        if not isinstance(levels, dict):
            raise TypeError(f"wound table must be a dict, not {type(levels).__name__}")
        if isinstance(order, str) or not isinstance(order, Sequence):
            raise TypeError(f"order must be a sequence of level names, not {type(order).__name__}")

        for lvl in levels.values():
            lvl.current = False

        if mode == WoundMode.MANUAL:
            manual = system.manual_wound_levels or {}
            to_check = [
                key for key in order
                if key in manual and manual[key].active is True
            ]
        else:
            to_check = list(order)

        current = locate_current(system, to_check, damage)
    except (AttributeError, KeyError, TypeError) as err:
        logger.warning("Could not determine current wound level, using Healthy: %s", err)
        return _fallback_level(system)

    return current if current is not None else _fallback_level(system)


def prepare_visible(system: ActorSystem, order: Sequence[str] = WOUND_LEVEL_ORDER, mode: WoundMode | str | None = None) -> None:
    """Fill visible_wound_levels and visible_manual_wound_levels for the sheet.

    The configuration view always lists every manual level so the GM can
    toggle any of them. The main view depends on the mode:

    - Manual: only active levels, pointing at the prepared wound table.
    - Formula: fresh entries computed straight from Earth, the multiplier
      and the modifier for the levels in use, rather than trusting the
      stored table, which can be stale right after a trait change. The
      current level is rescanned over these entries with damage capped at
      their Out threshold.

    On any failure both views fall back to the raw tables.
    """
    if mode is None:
        mode = system.wound_mode
    try:
        visible: dict[str, WoundLevel] = {}
        visible_manual: dict[str, ManualWoundLevel] = {}
        manual = system.manual_wound_levels or {}

        for key in order:
            if key in manual:
                visible_manual[key] = manual[key]

        if mode == WoundMode.MANUAL:
            levels = system.wound_levels or {}
            for key in order:
                if key in manual and manual[key].active is True and key in levels:
                    visible[key] = levels[key]
        else:
            in_use = select_levels(system.nr_wound_lvls)
            modifier = to_int(system.wounds_penalty_mod)
            thresholds = formula_thresholds(*_formula_inputs(system), in_use)
            for key, threshold in thresholds.items():
                penalty = DEFAULT_WOUND_PENALTIES.get(key, 0)
                visible[key] = WoundLevel(
                    threshold=threshold,
                    penalty=penalty,
                    effective_penalty=effective_penalty(penalty, modifier),
                    active=True,
                    visible=True,
                )
            damage = cap_damage(system.suffered, thresholds["out"])
            _scan(visible, in_use, damage)
    except (AttributeError, KeyError, TypeError) as err:
        logger.warning("Could not prepare visible wound levels, showing raw tables: %s", err)
        system.visible_wound_levels = system.wound_levels or {}
        system.visible_manual_wound_levels = system.manual_wound_levels or {}
        return

    system.visible_wound_levels = visible
    system.visible_manual_wound_levels = visible_manual

"""
The per-actor data preparation pass.

The host calls this every time an actor changes (a trait raised, damage
taken, the wound mode toggled, a setting changed). Each pass derives the
rings from the traits, rebuilds the wound table from scratch, and writes
back everything the sheet and the dice roller read: remaining wounds, the
current level and the penalty applied to rolls.

Player characters always use the Earth formula over all eight levels. NPCs
use either manual or formula thresholds (see l5r4/wounds.py), chosen per
NPC or by the world default.
"""

from __future__ import annotations

import logging
from typing import Any

from l5r4.coercion import to_int
from l5r4.data import DEFAULT_WOUND_PENALTIES, WOUND_LEVEL_ORDER
from l5r4.records import ActorSystem, WoundLevel
from l5r4.settings import DEFAULT_SETTINGS, Settings
from l5r4.types import ActorType, WoundMode
from l5r4.wounds import (
    apply_penalties,
    cap_damage,
    determine_current,
    formula_thresholds,
    initialize_wound_state,
    locate_current,
    prepare_formula,
    prepare_manual,
    prepare_visible,
)

logger = logging.getLogger(__name__)

# ring: the two traits it is the lower of. Void has no traits and is
# always entered directly.
RING_TRAITS = {
    "air": ("ref", "awa"),
    "earth": ("sta", "wil"),
    "fire": ("agi", "int"),
    "water": ("str", "per"),
}


def derive_rings(system: ActorSystem) -> None:
    """Set each ring to the lower of its two traits."""
    for ring, (a, b) in RING_TRAITS.items():
        system.rings[ring] = min(to_int(system.traits.get(a)), to_int(system.traits.get(b)))


def _level_name(system: ActorSystem, level: WoundLevel) -> str:
    for key, lvl in system.wound_levels.items():
        if lvl is level:
            return key
    return "healthy"


def _apply_current(system: ActorSystem, current: WoundLevel) -> None:
    """Record the current level and the penalty rolls will use.

    Unlike the displayed effective penalty this one is floored at 0 rather
    than made absolute: a bonus bigger than the penalty cancels it out
    instead of turning into a new penalty.
    """
    penalty = max(0, to_int(current.penalty) + to_int(system.wounds_penalty_mod))
    system.wound_penalty = penalty
    system.wounds.penalty = penalty
    system.current_wound_level = _level_name(system, current)


def prepare_pc(system: ActorSystem) -> None:
    """Run the preparation pass for a player character.

    PCs use all eight levels, Healthy at 5 x Earth and every later level
    Earth x multiplier above the previous one. The multiplier is taken as
    stored, so a PC set to 0 really has a flat table. Penalties are the
    PC's own (seeded from the defaults when a level is missing).
    """
    derive_rings(system)
    thresholds = formula_thresholds(
        system.earth,
        to_int(system.wounds_multiplier),
        to_int(system.wounds_mod),
        WOUND_LEVEL_ORDER,
    )
    for key, threshold in thresholds.items():
        lvl = system.wound_levels.get(key)
        if lvl is None:
            lvl = system.wound_levels[key] = WoundLevel(penalty=DEFAULT_WOUND_PENALTIES[key])
        lvl.threshold = threshold
        lvl.active = lvl.visible = True

    initialize_wound_state(system, system.suffered, WoundMode.FORMULA)

    damage = cap_damage(system.suffered, system.wound_levels["out"].threshold)
    current = locate_current(system, WOUND_LEVEL_ORDER, damage)

    system.wounds_penalty_mod = to_int(system.wounds_penalty_mod)
    apply_penalties(system)
    _apply_current(system, current)

    system.wounds.heal_rate = (
        2 * to_int(system.traits.get("sta"))
        + to_int(system.insight_rank)
        + to_int(system.wounds.mod)
    )
    system.visible_wound_levels = dict(system.wound_levels)


def resolve_wound_mode(system: ActorSystem, settings: Settings = DEFAULT_SETTINGS) -> WoundMode:
    """The NPC's own wound mode if set, otherwise the world default."""
    return WoundMode.coerce(system.wound_mode, default=settings.default_npc_wound_mode)


def prepare_npc(system: ActorSystem, settings: Settings = DEFAULT_SETTINGS) -> None:
    """Run the preparation pass for an NPC."""
    derive_rings(system)
    order = WOUND_LEVEL_ORDER
    mode = resolve_wound_mode(system, settings)

    if mode is WoundMode.MANUAL:
        prepare_manual(system, order)
    else:
        prepare_formula(system, order)

    initialize_wound_state(system, system.suffered, mode)

    out = system.wound_levels.get("out")
    damage = cap_damage(system.suffered, out.threshold if out is not None else 0)
    current = determine_current(system, order, damage, mode)

    system.wounds_penalty_mod = to_int(system.wounds_penalty_mod)
    apply_penalties(system)
    _apply_current(system, current)

    if settings.debug_wounds:
        logger.debug(
            "NPC wounds (%s): %s, max %d, current %s",
            mode.value,
            {k: lvl.threshold for k, lvl in system.wound_levels.items()},
            system.wounds.max,
            system.current_wound_level,
        )

    prepare_visible(system, order, mode)


def prepare_actor(system: ActorSystem, actor_type: ActorType, settings: Settings = DEFAULT_SETTINGS) -> ActorSystem:
    """Run the preparation pass for an actor of the given type.

    Returns *system* (mutated in place) for convenience.
    """
    if actor_type == "pc":
        prepare_pc(system)
    elif actor_type == "npc":
        prepare_npc(system, settings)
    else:
        raise ValueError(f"unknown actor type: {actor_type!r}")
    return system


def prepare_document(raw: dict[str, Any], actor_type: ActorType, settings: Settings = DEFAULT_SETTINGS) -> dict[str, Any]:
    """Prepare host-format system data and return it in host format."""
    return prepare_actor(ActorSystem.from_dict(raw), actor_type, settings).to_dict()

"""
Migration of worlds exported from older versions of the plugin.

Older versions stored actor and item data with snake_case field names
(``wound_lvl``, ``heal_rate``, ``armor_tn``...), kept wound penalties as
strings or negative numbers, had no manual wound table, and had a separate
"bow" item type. This module brings an exported world (a dict with "actors"
and "items" lists, as written by the host's export) up to the current
schema in place.

Every step only touches data that needs it, so running the migration twice
is harmless. A document that fails to migrate is logged and skipped; the
rest of the world still migrates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from l5r4.coercion import to_int
from l5r4.data import DEFAULT_WOUND_MULTIPLIER, WOUND_LEVEL_ORDER
from l5r4.types import SchemaStateName, WoundMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaRule:
    """Move a field from one dotted path to another.

    ``doc_type`` is "Actor" or "Item"; ``type`` is the document subtype
    ("pc", "npc", "skill"...) or "*" for every subtype.
    """

    doc_type: str
    type: str
    source: str
    target: str


SCHEMA_MAP: tuple[SchemaRule, ...] = (
    # Every actor
    SchemaRule("Actor", "*", "system.wounds.heal_rate", "system.wounds.healRate"),
    SchemaRule("Actor", "*", "system.wound_lvl", "system.woundLevels"),
    SchemaRule("Actor", "*", "system.armor.armor_tn", "system.armor.armorTn"),
    # Player characters
    SchemaRule("Actor", "pc", "system.armor_tn", "system.armorTn"),
    SchemaRule("Actor", "pc", "system.initiative.roll_mod", "system.initiative.rollMod"),
    SchemaRule("Actor", "pc", "system.initiative.keep_mod", "system.initiative.keepMod"),
    SchemaRule("Actor", "pc", "system.initiative.total_mod", "system.initiative.totalMod"),
    SchemaRule("Actor", "pc", "system.shadow_taint", "system.shadowTaint"),
    # Skills
    SchemaRule("Item", "skill", "system.mastery_3", "system.mastery3"),
    SchemaRule("Item", "skill", "system.mastery_5", "system.mastery5"),
    SchemaRule("Item", "skill", "system.mastery_7", "system.mastery7"),
    SchemaRule("Item", "skill", "system.insight_bonus", "system.insightBonus"),
    SchemaRule("Item", "skill", "system.roll_bonus", "system.rollBonus"),
    SchemaRule("Item", "skill", "system.keep_bonus", "system.keepBonus"),
    SchemaRule("Item", "skill", "system.total_bonus", "system.totalBonus"),
    # Armor (typos in the old template)
    SchemaRule("Item", "armor", "system.equiped", "system.equipped"),
    SchemaRule("Item", "armor", "system.specialRues", "system.specialRules"),
)

_MISSING = object()


def _get_path(doc: dict[str, Any], path: str) -> Any:
    node: Any = doc
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    node = doc
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def _del_path(doc: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    node = doc
    for part in parents:
        node = node[part]
    del node[leaf]


def apply_schema_map(doc: dict[str, Any], doc_type: str) -> list[SchemaRule]:
    """Rename legacy fields on one document; return the rules applied.

    A rule applies when its source field exists and its target doesn't, so
    data already in the new location is never overwritten.
    """
    applied = []
    for rule in SCHEMA_MAP:
        if rule.doc_type != doc_type or rule.type not in ("*", doc.get("type")):
            continue
        value = _get_path(doc, rule.source)
        if value is _MISSING or _get_path(doc, rule.target) is not _MISSING:
            continue
        _set_path(doc, rule.target, value)
        _del_path(doc, rule.source)
        applied.append(rule)
    return applied


def _positive_penalty(value: Any) -> int:
    return abs(to_int(value))


def _normalize_levels(levels: dict[str, Any]) -> bool:
    """Turn string/negative penalties and string thresholds into ints."""
    changed = False
    for lvl in levels.values():
        if not isinstance(lvl, dict):
            continue
        penalty = lvl.get("penalty")
        if isinstance(penalty, str) or (isinstance(penalty, (int, float)) and penalty < 0):
            lvl["penalty"] = _positive_penalty(penalty)
            changed = True
        if isinstance(lvl.get("value"), str):
            lvl["value"] = to_int(lvl["value"])
            changed = True
    return changed


def migrate_legacy_npc_wounds(actor: dict[str, Any]) -> bool:
    """Bring one NPC's wound data up to the current schema.

    - Missing woundMode, woundsMultiplier and woundsPenaltyMod get their
      defaults (manual, 2 and 0), and a missing fear rating becomes rank 0.
    - A string nrWoundLvls becomes an int (1 if unparseable).
    - Legacy ``wound_lvl`` moves to woundLevels unless that already exists.
    - Penalties become positive ints and thresholds ints.
    - If the NPC still has legacy ``wound_lvl`` data, or has no manual wound
      table yet, a manual table with all eight levels is built from its
      existing wound levels. A level is active when its threshold is
      above 0, so the stat block's values are kept exactly.
    - A legacy armor.armor_tn is kept as armor.armorTn.

    Returns whether anything changed. Non-NPC actors are left alone.
    """
    if actor.get("type") != "npc":
        return False
    system = actor.setdefault("system", {})
    changed = False

    if not system.get("woundMode"):
        system["woundMode"] = WoundMode.MANUAL.value
        changed = True
    if system.get("woundsMultiplier") is None:
        system["woundsMultiplier"] = DEFAULT_WOUND_MULTIPLIER
        changed = True
    if system.get("woundsPenaltyMod") is None:
        system["woundsPenaltyMod"] = 0
        changed = True
    if not system.get("fear"):
        system["fear"] = {"rank": 0}
        changed = True

    armor = system.get("armor")
    if isinstance(armor, dict):
        legacy_tn = armor.pop("armor_tn", None)
        if legacy_tn is not None:
            armor["armorTn"] = legacy_tn
            changed = True

    if isinstance(system.get("nrWoundLvls"), str):
        system["nrWoundLvls"] = to_int(system["nrWoundLvls"]) or 1
        changed = True

    legacy = system.pop("wound_lvl", None)
    if legacy is not None:
        system.setdefault("woundLevels", legacy)
        changed = True

    if isinstance(system.get("woundLevels"), dict):
        changed = _normalize_levels(system["woundLevels"]) or changed

    if legacy or not system.get("manualWoundLevels"):
        source = legacy or system.get("woundLevels")
        if isinstance(source, dict):
            manual = {}
            for key in WOUND_LEVEL_ORDER:
                lvl = source.get(key) or {}
                value = to_int(lvl.get("value"))
                manual[key] = {
                    "value": value,
                    "penalty": _positive_penalty(lvl.get("penalty")),
                    "active": value > 0,
                }
            system["manualWoundLevels"] = manual
            changed = True
    elif isinstance(system.get("manualWoundLevels"), dict):
        changed = _normalize_levels(system["manualWoundLevels"]) or changed

    return changed


def migrate_bow_to_weapon(item: dict[str, Any]) -> bool:
    """Convert a legacy "bow" item into a weapon with isBow set.

    Bows never used kept damage dice, so damageKeep is 0. Fields bows
    always had (strength, range, arrow) and fields every weapon needs get
    defaults when missing.
    """
    if item.get("type") != "bow":
        return False
    system = dict(item.get("system") or {})
    system.update(
        isBow=True,
        damageKeep=0,
        str=system.get("str") or 1,
        range=system.get("range") or 100,
        arrow=system.get("arrow") or "willow",
        explodesOn=system.get("explodesOn") or 10,
        associatedSkill=system.get("associatedSkill") or "",
        fallbackTrait=system.get("fallbackTrait") or "ref",
    )
    item["type"] = "weapon"
    item["system"] = system
    return True


def _parse_int_field(container: Any, key: str) -> bool:
    """Replace a numeric string in container[key] with its int value.

    Strings that don't parse are left as they are.
    """
    if not isinstance(container, dict) or not isinstance(container.get(key), str):
        return False
    number = to_int(container[key], fallback=None)
    if number is None:
        return False
    container[key] = number
    return True


def coerce_actor_numbers(actor: dict[str, Any]) -> bool:
    """Turn numeric strings in wounds.mod and wealth into ints."""
    system = actor.get("system")
    if not isinstance(system, dict):
        return False
    changed = _parse_int_field(system.get("wounds"), "mod")
    for coin in ("koku", "bu", "zeni"):
        changed = _parse_int_field(system.get("wealth"), coin) or changed
    return changed


def migrate_pc_defaults(actor: dict[str, Any]) -> bool:
    """Add the bonus tables and wound penalty modifier older PCs lack."""
    if actor.get("type") != "pc":
        return False
    system = actor.setdefault("system", {})
    changed = False
    if not system.get("bonuses"):
        system["bonuses"] = {"skill": {}, "trait": {}, "ring": {}}
        changed = True
    if "woundsPenaltyMod" not in system:
        system["woundsPenaltyMod"] = 0
        changed = True
    return changed


def migrate_item_defaults(item: dict[str, Any]) -> bool:
    """Fill in fields newer skill and weapon items expect.

    Skills get an int rank and zero free ranks/emphases. Weapons get a
    lowercase size, an isBow flag, an associated skill and a fallback trait
    (Agility, the trait non-bow weapons roll with).
    """
    system = item.get("system")
    if not isinstance(system, dict):
        return False
    changed = False

    if item.get("type") == "skill":
        changed = _parse_int_field(system, "rank")
        for key in ("freeRanks", "freeEmphasis"):
            if system.get(key) is None:
                system[key] = 0
                changed = True

    elif item.get("type") == "weapon":
        size = system.get("size")
        if isinstance(size, str) and size != size.lower():
            system["size"] = size.lower()
            changed = True
        if system.get("associatedSkill") is None:
            system["associatedSkill"] = ""
            changed = True
        if not system.get("fallbackTrait"):
            system["fallbackTrait"] = "agi"
            changed = True
        if "isBow" not in system:
            system["isBow"] = False
            changed = True

    return changed


@dataclass
class MigrationReport:
    """What a world migration did."""

    fields_renamed: int = 0
    npcs_migrated: int = 0
    bows_converted: int = 0
    actors_normalized: int = 0
    """Actors given missing defaults or int values for numeric strings."""
    items_normalized: int = 0
    """Skills and weapons given missing defaults or normalized values."""
    failed: list[str] = field(default_factory=list)
    """Ids (or names) of documents that raised and were skipped."""


def _doc_label(doc: Any) -> str:
    if isinstance(doc, dict):
        return str(doc.get("_id") or doc.get("name") or "?")
    return repr(doc)


def _migrate_actor(actor: dict[str, Any], report: MigrationReport) -> None:
    report.fields_renamed += len(apply_schema_map(actor, "Actor"))
    normalized = coerce_actor_numbers(actor)
    normalized = migrate_pc_defaults(actor) or normalized
    if normalized:
        report.actors_normalized += 1
    if migrate_legacy_npc_wounds(actor):
        report.npcs_migrated += 1


def _migrate_item(item: dict[str, Any], report: MigrationReport) -> None:
    if migrate_bow_to_weapon(item):
        report.bows_converted += 1
    report.fields_renamed += len(apply_schema_map(item, "Item"))
    if migrate_item_defaults(item):
        report.items_normalized += 1


def migrate_world(data: dict[str, Any]) -> MigrationReport:
    """Migrate every actor, embedded item and world item in an export."""
    report = MigrationReport()

    for actor in data.get("actors") or []:
        try:
            _migrate_actor(actor, report)
        except (AttributeError, KeyError, TypeError, ValueError) as err:
            logger.warning("Failed to migrate actor %s: %s", _doc_label(actor), err)
            report.failed.append(_doc_label(actor))
            continue

        for item in actor.get("items") or []:
            try:
                _migrate_item(item, report)
            except (AttributeError, KeyError, TypeError, ValueError) as err:
                logger.warning("Failed to migrate item %s on actor %s: %s", _doc_label(item), _doc_label(actor), err)
                report.failed.append(_doc_label(item))

    for item in data.get("items") or []:
        try:
            _migrate_item(item, report)
        except (AttributeError, KeyError, TypeError, ValueError) as err:
            logger.warning("Failed to migrate item %s: %s", _doc_label(item), err)
            report.failed.append(_doc_label(item))

    logger.info(
        "Migration finished: %d fields renamed, %d NPCs, %d bows, %d actors and %d items normalized, %d failures",
        report.fields_renamed,
        report.npcs_migrated,
        report.bows_converted,
        report.actors_normalized,
        report.items_normalized,
        len(report.failed),
    )
    return report


# --- Schema state detection ---

SAMPLE_SIZE = 10

# indicator: dotted path under the document, checked on actors or items.
_ACTOR_INDICATORS = {
    "snake_case": {
        "heal_rate": "system.wounds.heal_rate",
        "wound_lvl": "system.wound_lvl",
        "armor_tn": "system.armor.armor_tn",
        "shadow_taint": "system.shadow_taint",
        "roll_mod": "system.initiative.roll_mod",
    },
    "camel_case": {
        "healRate": "system.wounds.healRate",
        "woundLevels": "system.woundLevels",
        "armorTn": "system.armor.armorTn",
        "shadowTaint": "system.shadowTaint",
        "rollMod": "system.initiative.rollMod",
    },
    "new_fields": {
        "bonuses": "system.bonuses",
        "woundMode": "system.woundMode",
        "fear": "system.fear",
    },
}

_ITEM_INDICATORS = {
    "snake_case": {
        "mastery_3": "system.mastery_3",
        "equiped": "system.equiped",
    },
    "camel_case": {
        "mastery3": "system.mastery3",
        "equipped": "system.equipped",
    },
    "new_fields": {
        "freeRanks": "system.freeRanks",
        "isBow": "system.isBow",
    },
}

# Containers only count when non-empty; scalar fields count when present.
_TRUTHY_ONLY = {"wound_lvl", "woundLevels", "bonuses", "woundMode", "fear"}


@dataclass
class SchemaState:
    """Best guess at which plugin version wrote an export."""

    state: SchemaStateName
    confidence: float
    needs_transform: bool
    indicators: dict[str, dict[str, int]]

    @property
    def totals(self) -> dict[str, int]:
        return {group: sum(counts.values()) for group, counts in self.indicators.items()}


def _count(docs: list[Any], table: dict[str, dict[str, str]], indicators: dict[str, dict[str, int]]) -> None:
    for doc in docs:
        if not isinstance(doc, dict):
            continue
        for group, fields in table.items():
            for name, path in fields.items():
                value = _get_path(doc, path)
                if value is _MISSING or (name in _TRUTHY_ONLY and not value):
                    continue
                indicators[group][name] += 1


def _state_from(snake: int, camel: int) -> SchemaStateName:
    if snake and not camel:
        return "original"
    if snake and camel:
        return "mixed"
    if camel:
        return "new-v13"
    return "unknown"


def _confidence_from(snake: int, camel: int, new: int) -> float:
    if snake > 3 and not camel:
        return 0.95
    if camel > 3 and new > 2 and not snake:
        return 0.95
    if bool(snake) != bool(camel):
        return 0.75
    return 0.3


def detect_schema_state(data: dict[str, Any]) -> SchemaState:
    """Guess from a sample of documents whether an export needs migrating.

    Looks at up to the first 10 actors and 10 items and counts legacy
    snake_case fields, current camelCase fields and fields that only exist
    in the current schema. Pure snake_case means "original" (needs
    transforming), camelCase without snake_case means "new-v13", both
    means "mixed" and nothing recognisable means "unknown".
    """
    indicators: dict[str, dict[str, int]] = {
        group: dict.fromkeys({**_ACTOR_INDICATORS[group], **_ITEM_INDICATORS[group]}, 0)
        for group in _ACTOR_INDICATORS
    }
    _count(list(data.get("actors") or [])[:SAMPLE_SIZE], _ACTOR_INDICATORS, indicators)
    _count(list(data.get("items") or [])[:SAMPLE_SIZE], _ITEM_INDICATORS, indicators)

    snake = sum(indicators["snake_case"].values())
    camel = sum(indicators["camel_case"].values())
    new = sum(indicators["new_fields"].values())
    state = _state_from(snake, camel)

    logger.debug("Schema indicators: snake_case=%d camelCase=%d new=%d", snake, camel, new)
    return SchemaState(
        state=state,
        confidence=_confidence_from(snake, camel, new),
        needs_transform=state == "original",
        indicators=indicators,
    )

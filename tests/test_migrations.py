"""Tests for migrating and inspecting worlds exported by older versions."""

import logging

import pytest

from l5r4.actor import prepare_document
from l5r4.migrations import (
    SCHEMA_MAP,
    apply_schema_map,
    coerce_actor_numbers,
    detect_schema_state,
    migrate_bow_to_weapon,
    migrate_item_defaults,
    migrate_legacy_npc_wounds,
    migrate_pc_defaults,
    migrate_world,
)


def legacy_npc(**system: object) -> dict:
    base = {
        "wound_lvl": {
            "healthy": {"value": "15", "penalty": "0"},
            "nicked": {"value": 20, "penalty": -3},
            "out": {"value": 45, "penalty": "-40"},
        },
    }
    base.update(system)
    return {"_id": "npc1", "type": "npc", "system": base}


class TestApplySchemaMap:
    """Tests for apply_schema_map, the legacy field renames."""

    def test_moves_fields(self) -> None:
        doc = {"type": "pc", "system": {"wounds": {"heal_rate": 5}, "shadow_taint": 2}}
        applied = apply_schema_map(doc, "Actor")
        assert len(applied) == 2
        assert doc["system"] == {"wounds": {"healRate": 5}, "shadowTaint": 2}

    def test_existing_target_not_overwritten(self) -> None:
        doc = {"type": "pc", "system": {"shadow_taint": 2, "shadowTaint": 7}}
        assert apply_schema_map(doc, "Actor") == []
        assert doc["system"] == {"shadow_taint": 2, "shadowTaint": 7}

    def test_subtype_rules_only_apply_to_their_subtype(self) -> None:
        doc = {"type": "npc", "system": {"shadow_taint": 2}}
        apply_schema_map(doc, "Actor")
        assert doc["system"] == {"shadow_taint": 2}

    def test_document_kind_must_match(self) -> None:
        doc = {"type": "skill", "system": {"mastery_3": "x"}}
        assert apply_schema_map(doc, "Actor") == []
        apply_schema_map(doc, "Item")
        assert doc["system"] == {"mastery3": "x"}

    def test_template_typos_fixed(self) -> None:
        doc = {"type": "armor", "system": {"equiped": True, "specialRues": "none"}}
        apply_schema_map(doc, "Item")
        assert doc["system"] == {"equipped": True, "specialRules": "none"}

    def test_rules_have_distinct_sources(self) -> None:
        keys = [(r.doc_type, r.type, r.source) for r in SCHEMA_MAP]
        assert len(keys) == len(set(keys))


class TestMigrateLegacyNpcWounds:
    """Tests for migrate_legacy_npc_wounds on old NPC stat blocks."""

    def test_defaults_added(self) -> None:
        actor = legacy_npc()
        assert migrate_legacy_npc_wounds(actor) is True
        system = actor["system"]
        assert system["woundMode"] == "manual"
        assert system["woundsMultiplier"] == 2
        assert system["woundsPenaltyMod"] == 0
        assert system["fear"] == {"rank": 0}

    def test_legacy_levels_moved_and_normalized(self) -> None:
        actor = legacy_npc()
        migrate_legacy_npc_wounds(actor)
        system = actor["system"]
        assert "wound_lvl" not in system
        assert system["woundLevels"]["healthy"] == {"value": 15, "penalty": 0}
        assert system["woundLevels"]["nicked"]["penalty"] == 3
        assert system["woundLevels"]["out"]["penalty"] == 40

    def test_manual_table_built_from_stat_block(self) -> None:
        actor = legacy_npc()
        migrate_legacy_npc_wounds(actor)
        manual = actor["system"]["manualWoundLevels"]
        assert len(manual) == 8
        assert manual["healthy"] == {"value": 15, "penalty": 0, "active": True}
        assert manual["nicked"] == {"value": 20, "penalty": 3, "active": True}
        assert manual["grazed"] == {"value": 0, "penalty": 0, "active": False}
        assert manual["out"] == {"value": 45, "penalty": 40, "active": True}

    def test_second_run_changes_nothing(self) -> None:
        actor = legacy_npc()
        migrate_legacy_npc_wounds(actor)
        assert migrate_legacy_npc_wounds(actor) is False

    def test_existing_mode_kept(self) -> None:
        actor = legacy_npc(woundMode="formula")
        migrate_legacy_npc_wounds(actor)
        assert actor["system"]["woundMode"] == "formula"

    @pytest.mark.parametrize("raw, expected", [("5", 5), ("abc", 1), ("", 1)])
    def test_level_count_string(self, raw: str, expected: int) -> None:
        actor = legacy_npc(nrWoundLvls=raw)
        migrate_legacy_npc_wounds(actor)
        assert actor["system"]["nrWoundLvls"] == expected

    def test_armor_tn_renamed(self) -> None:
        actor = legacy_npc(armor={"armor_tn": 20})
        migrate_legacy_npc_wounds(actor)
        assert actor["system"]["armor"] == {"armorTn": 20}

    def test_existing_manual_table_only_normalized(self) -> None:
        actor = {"type": "npc", "system": {
            "woundMode": "manual",
            "woundsMultiplier": 2,
            "woundsPenaltyMod": 0,
            "manualWoundLevels": {"healthy": {"value": "12", "penalty": "-5", "active": True}},
        }}
        assert migrate_legacy_npc_wounds(actor) is True
        assert actor["system"]["manualWoundLevels"] == {
            "healthy": {"value": 12, "penalty": 5, "active": True},
        }

    def test_player_characters_untouched(self) -> None:
        actor = {"type": "pc", "system": {"wound_lvl": {"healthy": {"value": 15}}}}
        assert migrate_legacy_npc_wounds(actor) is False
        assert actor["system"] == {"wound_lvl": {"healthy": {"value": 15}}}

    def test_migrated_npc_prepares(self) -> None:
        """A migrated stat block goes straight through the preparation pass."""
        actor = legacy_npc(suffered=30)
        migrate_legacy_npc_wounds(actor)
        result = prepare_document(actor["system"], "npc")
        assert result["wounds"]["max"] == 45
        assert result["currentWoundLevel"] == "out"
        assert result["woundPenalty"] == 40
        assert list(result["visibleWoundLevels"]) == ["healthy", "nicked", "out"]


class TestMigrateBow:
    """Tests for migrate_bow_to_weapon."""

    def test_converted(self) -> None:
        item = {"type": "bow", "system": {"str": 3, "damageRoll": 2}}
        assert migrate_bow_to_weapon(item) is True
        assert item["type"] == "weapon"
        system = item["system"]
        assert system["isBow"] is True
        assert system["damageKeep"] == 0
        assert system["str"] == 3
        assert system["damageRoll"] == 2
        assert system["range"] == 100
        assert system["arrow"] == "willow"
        assert system["explodesOn"] == 10
        assert system["fallbackTrait"] == "ref"

    def test_other_items_untouched(self) -> None:
        item = {"type": "weapon", "system": {}}
        assert migrate_bow_to_weapon(item) is False
        assert item == {"type": "weapon", "system": {}}


class TestCoerceActorNumbers:
    """Tests for numeric strings left in actor data by older sheets."""

    def test_wound_mod_and_wealth(self) -> None:
        actor = {"type": "pc", "system": {
            "wounds": {"mod": "2"},
            "wealth": {"koku": "10", "bu": "3", "zeni": 7},
        }}
        assert coerce_actor_numbers(actor) is True
        assert actor["system"]["wounds"]["mod"] == 2
        assert actor["system"]["wealth"] == {"koku": 10, "bu": 3, "zeni": 7}

    def test_unparseable_strings_left_alone(self) -> None:
        actor = {"type": "pc", "system": {"wounds": {"mod": "lots"}, "wealth": {"koku": ""}}}
        assert coerce_actor_numbers(actor) is False
        assert actor["system"] == {"wounds": {"mod": "lots"}, "wealth": {"koku": ""}}

    def test_missing_sections(self) -> None:
        assert coerce_actor_numbers({"type": "npc", "system": {}}) is False
        assert coerce_actor_numbers({"type": "npc"}) is False


class TestMigratePcDefaults:
    """Tests for the fields newer player characters always carry."""

    def test_defaults_added(self) -> None:
        actor = {"type": "pc", "system": {}}
        assert migrate_pc_defaults(actor) is True
        assert actor["system"] == {
            "bonuses": {"skill": {}, "trait": {}, "ring": {}},
            "woundsPenaltyMod": 0,
        }

    def test_existing_values_kept(self) -> None:
        actor = {"type": "pc", "system": {"bonuses": {"skill": {"kenjutsu": 1}}, "woundsPenaltyMod": -2}}
        assert migrate_pc_defaults(actor) is False
        assert actor["system"]["woundsPenaltyMod"] == -2

    def test_npcs_untouched(self) -> None:
        actor = {"type": "npc", "system": {}}
        assert migrate_pc_defaults(actor) is False
        assert actor["system"] == {}


class TestMigrateItemDefaults:
    """Tests for the fields newer skill and weapon items expect."""

    def test_skill_defaults(self) -> None:
        item = {"type": "skill", "system": {"rank": "3"}}
        assert migrate_item_defaults(item) is True
        assert item["system"] == {"rank": 3, "freeRanks": 0, "freeEmphasis": 0}

    def test_skill_free_ranks_kept(self) -> None:
        item = {"type": "skill", "system": {"rank": 2, "freeRanks": 1, "freeEmphasis": 1}}
        assert migrate_item_defaults(item) is False

    def test_weapon_defaults(self) -> None:
        item = {"type": "weapon", "system": {"size": "Large"}}
        assert migrate_item_defaults(item) is True
        assert item["system"] == {
            "size": "large",
            "associatedSkill": "",
            "fallbackTrait": "agi",
            "isBow": False,
        }

    def test_converted_bow_keeps_bow_fields(self) -> None:
        item = {"type": "bow", "system": {"size": "MEDIUM"}}
        migrate_bow_to_weapon(item)
        migrate_item_defaults(item)
        assert item["system"]["size"] == "medium"
        assert item["system"]["isBow"] is True
        assert item["system"]["fallbackTrait"] == "ref"

    def test_other_items_untouched(self) -> None:
        item = {"type": "armor", "system": {"size": "Large"}}
        assert migrate_item_defaults(item) is False
        assert item["system"] == {"size": "Large"}


class TestMigrateWorld:
    """Tests for migrate_world over a whole exported world."""

    def make_world(self) -> dict:
        return {
            "actors": [
                {"_id": "pc1", "type": "pc", "system": {"wounds": {"heal_rate": 4}},
                 "items": [{"_id": "bow1", "type": "bow", "system": {}}, "junk"]},
                legacy_npc(),
                {"_id": "bad-npc", "type": "npc", "system": "broken"},
            ],
            "items": [{"_id": "skill1", "type": "skill", "system": {"mastery_3": "x"}}],
        }

    def test_report(self) -> None:
        report = migrate_world(self.make_world())
        # heal_rate on the PC, wound_lvl on the NPC, mastery_3 on the skill
        assert report.fields_renamed == 3
        assert report.npcs_migrated == 1
        assert report.bows_converted == 1
        assert report.actors_normalized == 1
        assert report.items_normalized == 1
        assert report.failed == ["'junk'", "bad-npc"]

    def test_failures_logged_and_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        world = self.make_world()
        with caplog.at_level(logging.WARNING, logger="l5r4.migrations"):
            migrate_world(world)
        assert "Failed to migrate actor bad-npc" in caplog.text
        assert world["items"][0]["system"]["mastery3"] == "x"

    def test_second_run_is_noop(self) -> None:
        world = self.make_world()
        migrate_world(world)
        report = migrate_world(world)
        assert report.fields_renamed == 0
        assert report.npcs_migrated == 0
        assert report.bows_converted == 0
        assert report.actors_normalized == 0
        assert report.items_normalized == 0

    def test_values_normalized(self) -> None:
        world = {
            "actors": [{"_id": "pc1", "type": "pc", "system": {
                "wounds": {"mod": "1"}, "wealth": {"koku": "5"},
                "bonuses": {"skill": {}}, "woundsPenaltyMod": 0,
            }}],
            "items": [
                {"_id": "bow1", "type": "bow", "system": {"size": "Large"}},
                {"_id": "skill1", "type": "skill", "system": {"rank": "2"}},
            ],
        }
        report = migrate_world(world)
        assert report.actors_normalized == 1
        assert report.items_normalized == 2
        assert world["actors"][0]["system"]["wealth"]["koku"] == 5
        assert world["items"][0]["system"]["size"] == "large"
        assert world["items"][1]["system"]["rank"] == 2

    def test_empty_world(self) -> None:
        report = migrate_world({})
        assert report.failed == []
        assert report.fields_renamed == 0


class TestDetectSchemaState:
    """Tests for detect_schema_state, guessing which version wrote an export."""

    def original_actor(self) -> dict:
        return {"system": {
            "wounds": {"heal_rate": 1},
            "wound_lvl": {"healthy": {"value": 15}},
            "armor": {"armor_tn": 5},
            "shadow_taint": 0,
        }}

    def current_actor(self) -> dict:
        return {"system": {
            "wounds": {"healRate": 1},
            "woundLevels": {"healthy": {"value": 15}},
            "armor": {"armorTn": 5},
            "shadowTaint": 0,
            "woundMode": "manual",
            "bonuses": {"skill": {}},
            "fear": {"rank": 1},
        }}

    def test_original(self) -> None:
        state = detect_schema_state({"actors": [self.original_actor()]})
        assert state.state == "original"
        assert state.confidence == 0.95
        assert state.needs_transform is True
        assert state.totals["snake_case"] == 4

    def test_current(self) -> None:
        state = detect_schema_state({"actors": [self.current_actor()]})
        assert state.state == "new-v13"
        assert state.confidence == 0.95
        assert state.needs_transform is False

    def test_few_indicators_lower_confidence(self) -> None:
        state = detect_schema_state({"items": [{"system": {"mastery_3": "x"}}]})
        assert state.state == "original"
        assert state.confidence == 0.75

    def test_mixed(self) -> None:
        state = detect_schema_state({"actors": [self.original_actor(), self.current_actor()]})
        assert state.state == "mixed"
        assert state.confidence == 0.3
        assert state.needs_transform is False

    def test_unknown(self) -> None:
        state = detect_schema_state({})
        assert state.state == "unknown"
        assert state.confidence == 0.3

    def test_empty_containers_ignored(self) -> None:
        state = detect_schema_state({"actors": [{"system": {"wound_lvl": {}, "woundMode": ""}}]})
        assert state.state == "unknown"

    def test_only_first_documents_sampled(self) -> None:
        actors = [self.original_actor() for _ in range(10)] + [self.current_actor()]
        assert detect_schema_state({"actors": actors}).state == "original"

    def test_migrated_world_no_longer_original(self) -> None:
        world = {"actors": [
            {"_id": "pc1", "type": "pc", "system": {
                "wounds": {"heal_rate": 1}, "shadow_taint": 0,
            }},
        ]}
        assert detect_schema_state(world).state == "original"
        migrate_world(world)
        assert detect_schema_state(world).state == "new-v13"

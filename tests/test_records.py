"""Tests for parsing and writing the host's camelCase system data."""

import pytest

from l5r4.records import ActorSystem, ManualWoundLevel, WoundLevel, Wounds
from l5r4.settings import Settings
from l5r4.types import WoundMode


class TestWoundLevel:
    """Tests for parsing and writing one wound table row."""

    def test_from_dict(self) -> None:
        lvl = WoundLevel.from_dict({
            "value": "21", "penalty": 3, "penaltyEff": 5,
            "current": True, "isActive": True, "isVisible": False,
        })
        assert lvl == WoundLevel(
            threshold=21, penalty=3, effective_penalty=5,
            current=True, active=True, visible=False,
        )

    def test_flags_must_be_true(self) -> None:
        lvl = WoundLevel.from_dict({"isActive": "true", "current": 1})
        assert lvl.active is False
        assert lvl.current is False

    def test_calculated_value_only_written_when_set(self) -> None:
        assert "calculatedValue" not in WoundLevel().to_dict()
        assert WoundLevel(calculated_value=20).to_dict()["calculatedValue"] == 20

    def test_calculated_value_read(self) -> None:
        assert WoundLevel.from_dict({"calculatedValue": "20"}).calculated_value == 20
        assert WoundLevel.from_dict({}).calculated_value is None


class TestManualWoundLevel:
    """Tests for parsing and writing one manual wound level."""

    def test_from_dict(self) -> None:
        lvl = ManualWoundLevel.from_dict({"value": 30, "penalty": "10", "active": True})
        assert lvl == ManualWoundLevel(threshold=30, penalty=10, active=True)

    def test_to_dict(self) -> None:
        assert ManualWoundLevel(15, 0, True).to_dict() == {"value": 15, "penalty": 0, "active": True}


class TestWounds:
    """Tests for the wound totals and the GM's capacity override."""

    def test_from_dict(self) -> None:
        wounds = Wounds.from_dict({
            "max": 45, "maxOverride": 0, "value": 30, "healRate": 8, "mod": 1,
        })
        assert wounds == Wounds(max=45, max_override=0, value=30, penalty=0, heal_rate=8, mod=1)
        assert wounds.to_dict()["healRate"] == 8

    def test_override_stored_apart_from_derived_max(self) -> None:
        out = Wounds(max=27, max_override=60).to_dict()
        assert out["max"] == 27
        assert out["maxOverride"] == 60
        assert Wounds.from_dict(out).max_override == 60

    def test_legacy_max_is_the_override(self) -> None:
        assert Wounds.from_dict({"max": 60}).max_override == 60

    def test_override_key_wins_over_max(self) -> None:
        assert Wounds.from_dict({"max": 27, "maxOverride": 0}).max_override == 0


class TestActorSystem:
    """Tests for parsing and writing a whole actor's system data."""

    def test_defaults_for_empty_data(self) -> None:
        system = ActorSystem.from_dict({})
        assert system.wound_mode is None
        assert system.nr_wound_lvls == 3
        assert system.wounds_multiplier == 2
        assert system.wound_levels == {}
        assert system.wounds == Wounds()

    def test_traits_bare_or_ranked(self) -> None:
        system = ActorSystem.from_dict({"traits": {"sta": {"rank": 4}, "wil": "3"}})
        assert system.traits == {"sta": 4, "wil": 3}

    def test_wound_mode_parsed(self) -> None:
        assert ActorSystem.from_dict({"woundMode": "manual"}).wound_mode is WoundMode.MANUAL
        assert ActorSystem.from_dict({"woundMode": "Formula "}).wound_mode is WoundMode.FORMULA
        assert ActorSystem.from_dict({"woundMode": ""}).wound_mode is None

    def test_unknown_wound_mode_raises(self) -> None:
        with pytest.raises(ValueError):
            ActorSystem.from_dict({"woundMode": "dice"})

    def test_malformed_levels_dropped(self) -> None:
        system = ActorSystem.from_dict({
            "woundLevels": {"healthy": {"value": 15}, "nicked": "garbage"},
            "manualWoundLevels": [],
        })
        assert list(system.wound_levels) == ["healthy"]
        assert system.manual_wound_levels == {}

    def test_cleared_numbers_use_defaults(self) -> None:
        system = ActorSystem.from_dict({"woundsMultiplier": "", "nrWoundLvls": " "})
        assert system.wounds_multiplier == 2
        assert system.nr_wound_lvls == 3

    def test_earth_from_rings(self) -> None:
        assert ActorSystem(rings={"earth": "4"}).earth == 4
        assert ActorSystem().earth == 0

    def test_to_dict_orders_levels(self) -> None:
        system = ActorSystem(wound_levels={
            "out": WoundLevel(threshold=27),
            "healthy": WoundLevel(threshold=15),
        })
        assert list(system.to_dict()["woundLevels"]) == ["healthy", "out"]

    def test_round_trip_keeps_stored_fields(self) -> None:
        raw = {
            "woundMode": "manual",
            "nrWoundLvls": 5,
            "woundsPenaltyMod": -2,
            "woundsMultiplier": 3,
            "woundsMod": 1,
            "suffered": 12,
            "manualWoundLevels": {"healthy": {"value": 10, "penalty": 0, "active": True}},
        }
        out = ActorSystem.from_dict(raw).to_dict()
        for key, value in raw.items():
            assert out[key] == value


class TestSettings:
    """Tests for the world settings record."""

    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.default_npc_wound_mode is WoundMode.MANUAL
        assert settings.debug_wounds is False

    def test_from_dict(self) -> None:
        settings = Settings.from_dict({"defaultNpcWoundMode": "formula", "debugWounds": True})
        assert settings.default_npc_wound_mode is WoundMode.FORMULA
        assert settings.debug_wounds is True

    def test_missing_keys(self) -> None:
        assert Settings.from_dict({}) == Settings()

    def test_unknown_mode_raises(self) -> None:
        with pytest.raises(ValueError):
            Settings.from_dict({"defaultNpcWoundMode": "dice"})

"""
Static wound tables for the L5R 4th Edition rules.

A character moves through eight wound levels as damage accumulates, from
Healthy down to Out (unconscious or dying). Each level has a threshold (the
total damage at which the character is considered to be at that level) and a
penalty (subtracted from the character's rolls while at that level).

Penalties here are stored as positive numbers, so a penalty of 3 means -3 to
all rolls:

    DEFAULT_WOUND_PENALTIES["nicked"]   # 3, i.e. -3 to rolls while Nicked

The default thresholds assume Earth 3 (5 x Earth = 15 for Healthy) and are
only used to seed a brand new manual wound configuration. Formula-mode
characters never look at them; their thresholds come from Earth and the
wound multiplier, see l5r4/wounds.py.

None of these tables are ever mutated at runtime.
"""

from types import MappingProxyType

WOUND_LEVEL_ORDER = (
    "healthy",
    "nicked",
    "grazed",
    "hurt",
    "injured",
    "crippled",
    "down",
    "out",
)

DEFAULT_WOUND_PENALTIES = MappingProxyType({
    "healthy": 0,
    "nicked": 3,
    "grazed": 5,
    "hurt": 10,
    "injured": 15,
    "crippled": 20,
    "down": 40,
    "out": 40,
})

DEFAULT_WOUND_THRESHOLDS = MappingProxyType({
    "healthy": 15,
    "nicked": 20,
    "grazed": 25,
    "hurt": 30,
    "injured": 35,
    "crippled": 40,
    "down": 43,
    "out": 45,
})

# Levels that start out active in a freshly seeded manual configuration,
# i.e. the standard three-level NPC.
DEFAULT_MANUAL_ACTIVE = frozenset({"healthy", "nicked", "out"})

DEFAULT_WOUND_MULTIPLIER = 2
DEFAULT_WOUND_LEVEL_COUNT = 3
MIN_WOUND_LEVEL_COUNT = 1
MAX_WOUND_LEVEL_COUNT = len(WOUND_LEVEL_ORDER)

# Healthy is always 5 x Earth (plus the additive modifier); the multiplier
# only applies to the levels after it.
HEALTHY_EARTH_FACTOR = 5

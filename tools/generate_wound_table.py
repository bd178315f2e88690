#!/usr/bin/env python3
"""Print the formula-mode wound thresholds for every Earth rating.

Handy for checking a stat block against the formula, or for building a
quick reference card. Writes a dict mapping Earth -> {level: threshold}.

Usage:
    python tools/generate_wound_table.py [levels] [multiplier] [output_file]

levels defaults to 8 (the full player character table) and multiplier to 2.
If no output file is given, prints to stdout.
"""

import sys
from pprint import pprint

from l5r4.records import ActorSystem
from l5r4.wounds import prepare_formula

EARTH_RANGE = range(1, 11)


def wound_table(levels: int, multiplier: int) -> dict[int, dict[str, int]]:
    table = {}
    for earth in EARTH_RANGE:
        system = ActorSystem(
            rings={"earth": earth},
            nr_wound_lvls=levels,
            wounds_multiplier=multiplier,
        )
        prepare_formula(system)
        table[earth] = {
            key: lvl.threshold
            for key, lvl in system.wound_levels.items()
            if lvl.active
        }
    return table


def main() -> None:
    args = sys.argv[1:]
    levels = int(args[0]) if len(args) > 0 else 8
    multiplier = int(args[1]) if len(args) > 1 else 2
    table = wound_table(levels, multiplier)

    if len(args) > 2:
        with open(args[2], "w") as f:
            pprint(table, stream=f, width=120, sort_dicts=False)
    else:
        pprint(table, width=120, sort_dicts=False)


if __name__ == "__main__":
    main()

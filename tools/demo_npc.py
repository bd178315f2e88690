#!/usr/bin/env python3
"""Run a quick demo: a manual-mode bandit and a formula-mode oni taking damage."""

from l5r4.actor import prepare_npc
from l5r4.records import ActorSystem, ManualWoundLevel
from l5r4.types import WoundMode

bandit = ActorSystem(
    wound_mode=WoundMode.MANUAL,
    traits=dict(sta=2, wil=2),
    manual_wound_levels={
        "healthy": ManualWoundLevel(threshold=10, penalty=0, active=True),
        "nicked": ManualWoundLevel(threshold=20, penalty=5, active=True),
        "out": ManualWoundLevel(threshold=30, penalty=40, active=True),
    },
)
oni = ActorSystem(
    wound_mode=WoundMode.FORMULA,
    traits=dict(sta=5, wil=4),
    nr_wound_lvls=5,
    wounds_multiplier=3,
)

for damage in (0, 12, 25, 40):
    for name, npc in (("bandit", bandit), ("oni", oni)):
        npc.suffered = damage
        prepare_npc(npc)
        print(
            f"{name} at {damage} damage: {npc.current_wound_level}"
            f" (-{npc.wound_penalty}), {npc.wounds.value}/{npc.wounds.max} left"
        )

"""Apply an Effect to a hero, producing a new hero and log entries.

Rules run in a fixed order so results are deterministic:

  1. add items        (appended if not already carried)
  2. remove items     (removing an absent item is a no-op)
  3. resource deltas  (clamped at 0, no maximum at this layer)
  4. flags            (overwrite; false is a valid value)
  5. allies           (overwrite the relationship tag)
  6. status deltas    (each counter clamped at 0)
  7. notes            (one ``effect`` log entry each)

The input hero is never modified; every container on the result is fresh.
"""

from __future__ import annotations

import logging

from pydantic.alias_generators import to_camel

from emberfall.models import RESOURCE_NAMES, Effect, Hero, LogEntry

logger = logging.getLogger(__name__)

# Effects in content use the wire names (hitPoints); accept both spellings.
_RESOURCE_KEYS = {
    **{name: name for name in RESOURCE_NAMES},
    **{to_camel(name): name for name in RESOURCE_NAMES},
}


def apply_effect(hero: Hero, effect: Effect | None) -> tuple[Hero, list[LogEntry]]:
    if effect is None:
        return hero, []

    equipment = list(hero.equipment)
    for item in effect.add_items or ():
        if item not in equipment:
            equipment.append(item)
    for item in effect.remove_items or ():
        if item in equipment:
            equipment.remove(item)

    resources = hero.resources.model_dump()
    for key, delta in (effect.resources or {}).items():
        field = _RESOURCE_KEYS.get(key)
        if field is None:
            logger.debug("Ignoring unknown resource %r in effect", key)
            continue
        resources[field] = max(0, resources[field] + delta)

    flags = dict(hero.flags)
    flags.update(effect.flags or {})

    allies = dict(hero.allies)
    allies.update(effect.allies or {})

    status = dict(hero.status)
    for name, delta in (effect.status_adjust or {}).items():
        status[name] = max(0, status.get(name, 0) + delta)

    entries = [LogEntry.create("effect", note) for note in effect.notes or ()]

    updated = hero.model_copy(
        update={
            "equipment": equipment,
            "resources": hero.resources.model_copy(update=resources),
            "flags": flags,
            "allies": allies,
            "status": status,
        }
    )
    return updated, entries

"""Epilogue resolution once a session reaches the terminal state."""

from __future__ import annotations

from pydantic import Field

from emberfall.models import Campaign, Ending, Hero, WireModel
from emberfall.prompts import render_template
from emberfall.world_map import WorldMapIndex


class Epilogue(WireModel):
    ending_id: str | None
    title: str
    text: str
    allies: dict[str, str] = Field(default_factory=dict)
    status: dict[str, int] = Field(default_factory=dict)
    locations_visited: int = 0
    locations_total: int = 0


def ending_applies(ending: Ending, hero: Hero) -> bool:
    if ending.requires_flag and not hero.flags.get(ending.requires_flag, False):
        return False
    if ending.hide_if_flag and hero.flags.get(ending.hide_if_flag, False):
        return False
    return True


def pick_ending(campaign: Campaign, hero: Hero) -> Ending | None:
    """First ending, in campaign order, whose flag gate the hero passes."""
    return next((e for e in campaign.endings if ending_applies(e, hero)), None)


def resolve_epilogue(
    campaign: Campaign,
    hero: Hero,
    final_narrative: str,
    world: WorldMapIndex,
) -> Epilogue:
    ending = pick_ending(campaign, hero)
    allies = [npc.title() for npc, tag in hero.allies.items() if tag == "ally"]
    if ending is None:
        title, text, ending_id = campaign.title, final_narrative, None
    else:
        context = {
            "hero": hero.model_dump(),
            "status": dict(hero.status),
            "flags": dict(hero.flags),
            "allies": ", ".join(allies),
        }
        title, text, ending_id = ending.title, render_template(ending.narrative, context), ending.id
    return Epilogue(
        ending_id=ending_id,
        title=title,
        text=text,
        allies=dict(hero.allies),
        status=dict(hero.status),
        locations_visited=world.progress.visited,
        locations_total=world.progress.total,
    )

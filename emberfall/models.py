"""Core domain models.

Campaign content, the hero, and the session snapshot are all pydantic models.
Content and snapshots travel as camelCase JSON (the bundled campaign file,
saved progress, the HTTP API); Python code uses the snake_case attribute
names. Content models are frozen and shared by reference across sessions.
"""

from __future__ import annotations

import time
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

Ability = Literal[
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
]

Skill = Literal[
    "acrobatics",
    "animalHandling",
    "arcana",
    "athletics",
    "deception",
    "history",
    "insight",
    "intimidation",
    "investigation",
    "medicine",
    "nature",
    "perception",
    "performance",
    "persuasion",
    "religion",
    "sleightOfHand",
    "stealth",
    "survival",
]

Relationship = Literal["ally", "rival", "neutral"]

LogType = Literal["narration", "choice", "roll", "effect"]

RESOURCE_NAMES = ("hit_points", "temp_hit_points", "inspiration")


class WireModel(BaseModel):
    """Base for models serialised as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContentModel(WireModel):
    """Immutable campaign content."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# ---------------------------------------------------------------------------
# Hero
# ---------------------------------------------------------------------------

class AbilityScores(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    strength: int = Field(10, ge=1, le=30)
    dexterity: int = Field(10, ge=1, le=30)
    constitution: int = Field(10, ge=1, le=30)
    intelligence: int = Field(10, ge=1, le=30)
    wisdom: int = Field(10, ge=1, le=30)
    charisma: int = Field(10, ge=1, le=30)


class Resources(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    hit_points: int = Field(0, ge=0)
    temp_hit_points: int = Field(0, ge=0)
    inspiration: int = Field(0, ge=0)


class Hero(WireModel):
    """The player character. Replaced, never edited, by the effect applier."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    id: str
    name: str
    level: int = Field(1, ge=1)
    race_id: str
    class_id: str
    background_id: str
    ability_scores: AbilityScores = Field(default_factory=AbilityScores)
    proficiency_bonus: int = 2
    saving_throws: dict[Ability, bool] = Field(default_factory=dict)
    skills: dict[Skill, bool] = Field(default_factory=dict)
    armor_class: int = 10
    speed: int = 30
    resources: Resources = Field(default_factory=Resources)
    equipment: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    traits: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    tool_proficiencies: list[str] = Field(default_factory=list)
    spellcasting_ability: Ability | None = None
    notes: list[str] = Field(default_factory=list)
    status: dict[str, int] = Field(default_factory=dict)
    flags: dict[str, bool] = Field(default_factory=dict)
    allies: dict[str, Relationship] = Field(default_factory=dict)


class HeroSnapshot(WireModel):
    """Read-only slice of the hero handed to the dialogue oracle."""

    name: str
    status: dict[str, int] = Field(default_factory=dict)
    resources: Resources = Field(default_factory=Resources)
    flags: dict[str, bool] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Campaign content
# ---------------------------------------------------------------------------

class Effect(ContentModel):
    """Declarative hero mutations attached to outcomes and scene entry."""

    add_items: list[str] | None = None
    remove_items: list[str] | None = None
    resources: dict[str, int] | None = None  # deltas keyed by camelCase resource name
    flags: dict[str, bool] | None = None
    allies: dict[str, Relationship] | None = None
    status_adjust: dict[str, int] | None = None
    notes: list[str] | None = None


class Outcome(ContentModel):
    id: str
    next_scene_id: str | None  # None ends the campaign
    narrative: str
    effects: Effect | None = None


class SkillCheck(ContentModel):
    ability: Ability
    skill: Skill | None = None
    dc: int
    advantage_if_flag: str | None = None
    disadvantage_if_flag: str | None = None
    success: Outcome
    failure: Outcome


class Choice(ContentModel):
    id: str
    label: str
    description: str | None = None
    requires_flag: str | None = None
    hide_if_flag: str | None = None
    auto_success: Outcome | None = None
    skill_check: SkillCheck | None = None

    @model_validator(mode="after")
    def _exactly_one_resolution(self) -> Choice:
        if (self.auto_success is None) == (self.skill_check is None):
            raise ValueError(
                f"Choice {self.id!r} must define exactly one of autoSuccess or skillCheck"
            )
        return self

    def outcomes(self) -> tuple[Outcome, ...]:
        if self.skill_check is not None:
            return (self.skill_check.success, self.skill_check.failure)
        assert self.auto_success is not None
        return (self.auto_success,)


class Scene(ContentModel):
    id: str
    title: str
    narrative: str
    choices: tuple[Choice, ...] = Field(default=(), alias="options")
    once: bool = False
    tags: tuple[str, ...] = ()
    location_id: str | None = None
    on_enter: Effect | None = None
    fallback_scene_id: str | None = None


class MapPosition(ContentModel):
    x: float
    y: float


class MapLocation(ContentModel):
    id: str
    name: str
    summary: str
    position: MapPosition
    scene_ids: tuple[str, ...] = ()
    connections: tuple[str, ...] = ()
    tier: Literal["city", "approach", "spire", "heart"] | None = None


class WorldMapDefinition(ContentModel):
    width: float
    height: float
    background: str | None = None
    description: str | None = None
    locations: tuple[MapLocation, ...] = ()


class Ending(ContentModel):
    """An epilogue variant. ``narrative`` is a Handlebars template."""

    id: str
    title: str
    requires_flag: str | None = None
    hide_if_flag: str | None = None
    narrative: str


class Campaign(ContentModel):
    id: str
    title: str
    synopsis: str
    intro_scene_id: str
    scenes: tuple[Scene, ...]
    guidance: tuple[str, ...] = ()
    map: WorldMapDefinition | None = None
    endings: tuple[Ending, ...] = ()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class LogEntry(WireModel):
    """A single entry in the session's append-only log."""

    id: str
    type: LogType
    label: str
    detail: str | None = None
    created_at: int  # epoch milliseconds

    @classmethod
    def create(cls, type: LogType, label: str, detail: str | None = None) -> LogEntry:
        return cls(
            id=uuid.uuid4().hex,
            type=type,
            label=label,
            detail=detail,
            created_at=int(time.time() * 1000),
        )


class ConversationTurn(WireModel):
    speaker: Literal["player", "npc"]
    text: str


class SessionSnapshot(WireModel):
    """Everything needed to restore one playthrough."""

    hero: Hero | None = None
    current_scene_id: str | None = None
    log: list[LogEntry] = Field(default_factory=list)
    visited_scenes: dict[str, int] = Field(default_factory=dict)
    conversation: dict[str, list[ConversationTurn]] = Field(default_factory=dict)

"""Character-creation reference data: races, classes, backgrounds, skills.

Loaded from ``data/reference.json``. The engine itself treats the ids on a
hero as opaque; only character creation and the renderer resolve them here.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field

from emberfall.models import Ability, ContentModel, Skill

DATA_DIR = Path(__file__).parent / "data"


class SkillDefinition(ContentModel):
    id: Skill
    label: str
    ability: Ability


class ClassDefinition(ContentModel):
    id: str
    name: str
    hit_die: int
    primary_abilities: tuple[Ability, ...] = ()
    saving_throws: tuple[Ability, ...] = ()
    armor_proficiencies: tuple[str, ...] = ()
    weapon_proficiencies: tuple[str, ...] = ()
    tool_proficiencies: tuple[str, ...] = ()
    skill_options: tuple[Skill, ...] = ()
    skill_choices: int = 0
    starting_equipment: tuple[str, ...] = ()
    features: tuple[str, ...] = ()
    spellcasting_ability: Ability | None = None


class RaceDefinition(ContentModel):
    id: str
    name: str
    ability_bonuses: dict[Ability, int] = Field(default_factory=dict)
    speed: int = 30
    size: Literal["Small", "Medium"] = "Medium"
    traits: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    proficiencies: tuple[str, ...] = ()


class BackgroundDefinition(ContentModel):
    id: str
    name: str
    skill_proficiencies: tuple[Skill, ...] = ()
    tool_proficiencies: tuple[str, ...] = ()
    languages: tuple[str, ...] = ()
    equipment: tuple[str, ...] = ()
    feature: str = ""
    suggested_characteristics: tuple[str, ...] = ()


class ReferenceData(ContentModel):
    abilities: tuple[Ability, ...]
    skills: tuple[SkillDefinition, ...]
    classes: tuple[ClassDefinition, ...]
    races: tuple[RaceDefinition, ...]
    backgrounds: tuple[BackgroundDefinition, ...]
    standard_array: tuple[int, ...] = ()

    def race(self, race_id: str) -> RaceDefinition | None:
        return next((r for r in self.races if r.id == race_id), None)

    def klass(self, class_id: str) -> ClassDefinition | None:
        return next((c for c in self.classes if c.id == class_id), None)

    def background(self, background_id: str) -> BackgroundDefinition | None:
        return next((b for b in self.backgrounds if b.id == background_id), None)

    def skill_for_label(self, label: str) -> SkillDefinition | None:
        """Match free-text proficiencies such as "Perception" to a skill."""
        wanted = label.strip().lower()
        for skill in self.skills:
            if skill.label.lower() == wanted or skill.id.lower() == wanted:
                return skill
        return None


def load_reference(path: Path | None = None) -> ReferenceData:
    path = path or DATA_DIR / "reference.json"
    return ReferenceData.model_validate(json.loads(path.read_text(encoding="utf-8")))


@lru_cache(maxsize=1)
def default_reference() -> ReferenceData:
    """The bundled reference data, parsed once per process."""
    return load_reference()

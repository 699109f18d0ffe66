"""Hero derived values and character creation.

Derived accessors are plain functions over an immutable ``Hero``. Nothing in
this module decides game logic; it only answers "what is this hero's bonus"
and turns a player's build into a starting hero.
"""

from __future__ import annotations

import uuid

from pydantic import Field

from emberfall.errors import HeroValidationError
from emberfall.models import (
    Ability,
    AbilityScores,
    Hero,
    HeroSnapshot,
    Resources,
    Skill,
    SkillCheck,
    WireModel,
)
from emberfall.reference import ReferenceData

BUILD_SCORE_MIN = 3
BUILD_SCORE_MAX = 18
SCORE_CAP = 30
MAX_LEVEL = 20

STARTING_STATUS = ("stress", "wounds", "influence", "corruption")


def ability_modifier(score: int) -> int:
    """floor((score - 10) / 2); floor division already rounds toward -inf."""
    return (score - 10) // 2


def proficiency_bonus_for(level: int) -> int:
    return 2 + (level - 1) // 4


def modifier_for(hero: Hero, ability: Ability) -> int:
    return ability_modifier(getattr(hero.ability_scores, ability))


def is_proficient(hero: Hero, name: str) -> bool:
    """Skill proficiency first, then saving-throw proficiency for abilities."""
    if name in hero.skills:
        return bool(hero.skills[name])
    return bool(hero.saving_throws.get(name, False))


def effective_bonus(hero: Hero, check: SkillCheck) -> int:
    return modifier_for(hero, check.ability) + proficiency_for(hero, check)


def proficiency_for(hero: Hero, check: SkillCheck) -> int:
    """The proficiency bonus when it applies to ``check``, else 0."""
    return hero.proficiency_bonus if is_proficient(hero, check.skill or check.ability) else 0


def hero_snapshot(hero: Hero) -> HeroSnapshot:
    return HeroSnapshot(
        name=hero.name,
        status=dict(hero.status),
        resources=hero.resources,
        flags=dict(hero.flags),
    )


# ── Character creation ───────────────────────────────────


class HeroBuild(WireModel):
    """What the player picks on the character-creation screen."""

    name: str
    race_id: str
    class_id: str
    background_id: str
    ability_scores: dict[Ability, int]
    skill_choices: list[Skill] = Field(default_factory=list)
    level: int = 1


def _merge_unique(*groups) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for item in group:
            if item not in merged:
                merged.append(item)
    return merged


def _validate_build(build: HeroBuild, reference: ReferenceData) -> list[str]:
    problems: list[str] = []
    if not build.name.strip():
        problems.append("Hero name must not be empty")
    if not 1 <= build.level <= MAX_LEVEL:
        problems.append(f"Level must be between 1 and {MAX_LEVEL}")

    race = reference.race(build.race_id)
    klass = reference.klass(build.class_id)
    background = reference.background(build.background_id)
    if race is None:
        problems.append(f"Unknown race {build.race_id!r}")
    if klass is None:
        problems.append(f"Unknown class {build.class_id!r}")
    if background is None:
        problems.append(f"Unknown background {build.background_id!r}")

    for ability in reference.abilities:
        score = build.ability_scores.get(ability)
        if score is None:
            problems.append(f"Missing ability score for {ability}")
        elif not BUILD_SCORE_MIN <= score <= BUILD_SCORE_MAX:
            problems.append(
                f"{ability} score {score} is outside {BUILD_SCORE_MIN}-{BUILD_SCORE_MAX}"
            )

    if klass is not None:
        if len(set(build.skill_choices)) != len(build.skill_choices):
            problems.append("Skill choices must be distinct")
        if len(build.skill_choices) > klass.skill_choices:
            problems.append(
                f"{klass.name} picks at most {klass.skill_choices} skills"
            )
        for skill in build.skill_choices:
            if skill not in klass.skill_options:
                problems.append(f"{skill} is not a {klass.name} skill option")
    return problems


def build_hero(build: HeroBuild, reference: ReferenceData) -> Hero:
    """Derive a starting hero from a build.

    Raises:
        HeroValidationError: listing every problem found in the build.
    """
    problems = _validate_build(build, reference)
    if problems:
        raise HeroValidationError("; ".join(problems))

    race = reference.race(build.race_id)
    klass = reference.klass(build.class_id)
    background = reference.background(build.background_id)
    assert race is not None and klass is not None and background is not None

    scores = {
        ability: min(SCORE_CAP, build.ability_scores[ability] + race.ability_bonuses.get(ability, 0))
        for ability in reference.abilities
    }
    con_mod = ability_modifier(scores["constitution"])
    dex_mod = ability_modifier(scores["dexterity"])

    hit_points = max(1, klass.hit_die + con_mod)
    for _ in range(build.level - 1):
        hit_points += max(1, klass.hit_die // 2 + 1 + con_mod)

    skills: dict[str, bool] = {skill.id: False for skill in reference.skills}
    for skill in (*build.skill_choices, *background.skill_proficiencies):
        skills[skill] = True
    for label in race.proficiencies:
        matched = reference.skill_for_label(label)
        if matched is not None:
            skills[matched.id] = True

    return Hero(
        id=uuid.uuid4().hex,
        name=build.name.strip(),
        level=build.level,
        race_id=race.id,
        class_id=klass.id,
        background_id=background.id,
        ability_scores=AbilityScores(**scores),
        proficiency_bonus=proficiency_bonus_for(build.level),
        saving_throws={a: a in klass.saving_throws for a in reference.abilities},
        skills=skills,
        armor_class=10 + dex_mod,
        speed=race.speed,
        resources=Resources(hit_points=hit_points),
        equipment=_merge_unique(klass.starting_equipment, background.equipment),
        features=_merge_unique(klass.features, [background.feature] if background.feature else []),
        traits=list(race.traits),
        languages=_merge_unique(race.languages, background.languages),
        tool_proficiencies=_merge_unique(klass.tool_proficiencies, background.tool_proficiencies),
        spellcasting_ability=klass.spellcasting_ability,
        status={name: 0 for name in STARTING_STATUS},
    )

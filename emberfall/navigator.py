"""Scene graph navigation: lookup, flag gating, selection and fallbacks.

States are scene ids; an outcome whose ``nextSceneId`` is null leads to the
implicit terminal state. The navigator answers questions about the graph and
never mutates a session; the engine owns transitions.

``onEnter`` effects fire on every entry to a scene, not only the first.
"""

from __future__ import annotations

import logging

from emberfall.errors import ChoiceGated, ChoiceNotFound, ContentError, SceneNotFound
from emberfall.models import Campaign, Choice, Effect, Hero, Scene

logger = logging.getLogger(__name__)


def gating_flag(choice: Choice, hero: Hero) -> str | None:
    """Return the flag that blocks ``choice`` for ``hero``, or None if open."""
    if choice.requires_flag and not hero.flags.get(choice.requires_flag, False):
        return choice.requires_flag
    if choice.hide_if_flag and hero.flags.get(choice.hide_if_flag, False):
        return choice.hide_if_flag
    return None


class SceneGraph:
    """Read-only index over a campaign's scenes.

    Raises:
        ContentError: on duplicate scene ids or references to missing scenes.
    """

    def __init__(self, campaign: Campaign) -> None:
        self.campaign = campaign
        self._scenes: dict[str, Scene] = {}
        for scene in campaign.scenes:
            if scene.id in self._scenes:
                raise ContentError(f"Duplicate scene id {scene.id!r}")
            self._scenes[scene.id] = scene
        self._check_references()

    def _check_references(self) -> None:
        if self.campaign.intro_scene_id not in self._scenes:
            raise ContentError(
                f"Intro scene {self.campaign.intro_scene_id!r} does not exist"
            )
        for scene in self._scenes.values():
            if scene.fallback_scene_id and scene.fallback_scene_id not in self._scenes:
                raise ContentError(
                    f"Scene {scene.id!r} falls back to missing scene {scene.fallback_scene_id!r}"
                )
            seen: set[str] = set()
            for choice in scene.choices:
                if choice.id in seen:
                    raise ContentError(f"Scene {scene.id!r} repeats choice id {choice.id!r}")
                seen.add(choice.id)
                for outcome in choice.outcomes():
                    target = outcome.next_scene_id
                    if target is not None and target not in self._scenes:
                        raise ContentError(
                            f"Outcome {outcome.id!r} in scene {scene.id!r} "
                            f"leads to missing scene {target!r}"
                        )

    def __len__(self) -> int:
        return len(self._scenes)

    def __contains__(self, scene_id: object) -> bool:
        return scene_id in self._scenes

    @property
    def intro_scene_id(self) -> str:
        return self.campaign.intro_scene_id

    def scene(self, scene_id: str) -> Scene:
        try:
            return self._scenes[scene_id]
        except KeyError:
            raise SceneNotFound(scene_id) from None

    def is_available(self, choice: Choice, hero: Hero) -> bool:
        return gating_flag(choice, hero) is None

    def eligible_choices(self, scene_id: str, hero: Hero) -> list[Choice]:
        return [c for c in self.scene(scene_id).choices if self.is_available(c, hero)]

    def select(self, scene_id: str, choice_id: str, hero: Hero) -> Choice:
        """Return the chosen choice if it exists and the hero may take it."""
        scene = self.scene(scene_id)
        choice = next((c for c in scene.choices if c.id == choice_id), None)
        if choice is None:
            raise ChoiceNotFound(scene_id, choice_id)
        flag = gating_flag(choice, hero)
        if flag is not None:
            raise ChoiceGated(scene_id, choice_id, flag)
        return choice

    def enter(self, scene_id: str) -> tuple[Scene, Effect | None]:
        scene = self.scene(scene_id)
        return scene, scene.on_enter

    def fallback_for(self, scene_id: str, hero: Hero) -> str | None:
        """The scene to auto-advance to when nothing here is selectable."""
        scene = self.scene(scene_id)
        if self.eligible_choices(scene_id, hero):
            return None
        if scene.fallback_scene_id is None:
            logger.warning("Scene %r has no selectable choice and no fallback", scene_id)
        return scene.fallback_scene_id

"""Game engine — owns one session and runs its transitions.

chooseOption flow (one atomic step):
  1. Resolve the choice in the current scene (missing/gated -> error, no change).
  2. autoSuccess -> its outcome.
  3. skillCheck  -> advantage/disadvantage from hero flags, roll, pick the
                    success or failure outcome, log a ``roll`` entry.
  4. Log a ``choice`` entry.
  5. Apply the outcome effect, log its notes and a ``narration`` entry.
  6. Move to ``nextSceneId``; null means the session is complete.
  7. Enter the new scene: count the visit, fire ``onEnter``, and follow
     ``fallbackSceneId`` while nothing is selectable (bounded by the number of
     scenes, else NavigationCycleDetected).
  8. Commit the new snapshot and notify subscribers.

All work happens on a draft; the committed snapshot is replaced only after
every step succeeded.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from emberfall.dice import CheckResult, DiceRoller
from emberfall.effects import apply_effect
from emberfall.epilogue import Epilogue, resolve_epilogue
from emberfall.errors import (
    GameAlreadyComplete,
    HeroNotCreated,
    HeroValidationError,
    NavigationCycleDetected,
    SceneNotFound,
)
from emberfall.hero import HeroBuild, build_hero, modifier_for, proficiency_for
from emberfall.models import (
    Campaign,
    Choice,
    ConversationTurn,
    Hero,
    LogEntry,
    Outcome,
    Scene,
    SessionSnapshot,
    SkillCheck,
)
from emberfall.navigator import SceneGraph
from emberfall.reference import ReferenceData, default_reference
from emberfall.world_map import MapIndexer, WorldMapIndex

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]


def _words(name: str) -> str:
    """"sleightOfHand" -> "Sleight Of Hand"."""
    return re.sub(r"(?<!^)(?=[A-Z])", " ", name).title()


def describe_check(check: SkillCheck, result: CheckResult) -> tuple[str, str]:
    """Label and detail for a ``roll`` log entry."""
    ability = _words(check.ability)
    label = f"{_words(check.skill)} ({ability}) check" if check.skill else f"{ability} check"
    if len(result.rolls) == 2:
        dice = f"rolled {result.rolls[0]} and {result.rolls[1]} with {result.mode}, kept {result.roll}"
    else:
        dice = f"rolled {result.roll}"
    sign = "+" if result.modifier >= 0 else "-"
    verdict = "success" if result.success else "failure"
    detail = (
        f"DC {result.dc} · {dice} · "
        f"{result.roll} {sign} {abs(result.modifier)} = {result.total} · {verdict}"
    )
    return label, detail


@dataclass
class _Draft:
    """Mutable working copy of a snapshot for the duration of one step."""

    hero: Hero
    scene_id: str | None
    log: list[LogEntry]
    visited: dict[str, int]
    conversation: dict[str, list[ConversationTurn]] = field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot, hero: Hero) -> _Draft:
        return cls(
            hero=hero,
            scene_id=snapshot.current_scene_id,
            log=list(snapshot.log),
            visited=dict(snapshot.visited_scenes),
            conversation={k: list(v) for k, v in snapshot.conversation.items()},
        )

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            hero=self.hero,
            current_scene_id=self.scene_id,
            log=self.log,
            visited_scenes=self.visited,
            conversation=self.conversation,
        )


class GameEngine:
    """Runs one hero's playthrough of a campaign.

    Args:
        campaign:  Immutable campaign content, shared by reference.
        dice:      Dice roller; inject one with a scripted source in tests.
        reference: Character-creation data; defaults to the bundled set.
        snapshot:  Saved session to resume.
    """

    def __init__(
        self,
        campaign: Campaign,
        *,
        dice: DiceRoller | None = None,
        reference: ReferenceData | None = None,
        snapshot: SessionSnapshot | Mapping[str, Any] | None = None,
    ) -> None:
        self.campaign = campaign
        self.graph = SceneGraph(campaign)
        self.map = MapIndexer(campaign)
        self._dice = dice or DiceRoller()
        self._reference = reference
        self._snapshot = SessionSnapshot()
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        if snapshot is not None:
            self.load_snapshot(snapshot)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_snapshot(self) -> SessionSnapshot:
        return self._snapshot.model_copy(deep=True)

    @property
    def hero(self) -> Hero | None:
        return self._snapshot.hero

    def is_complete(self) -> bool:
        return self._snapshot.hero is not None and self._snapshot.current_scene_id is None

    def current_scene(self) -> Scene | None:
        scene_id = self._snapshot.current_scene_id
        return self.graph.scene(scene_id) if scene_id else None

    def available_choices(self) -> list[Choice]:
        scene_id = self._snapshot.current_scene_id
        if scene_id is None or self._snapshot.hero is None:
            return []
        return self.graph.eligible_choices(scene_id, self._snapshot.hero)

    def get_world_map_index(self) -> WorldMapIndex:
        return self.map.index(self._snapshot.visited_scenes, self._snapshot.current_scene_id)

    def epilogue(self) -> Epilogue | None:
        """The resolved ending, or None while the game is still running."""
        if not self.is_complete():
            return None
        assert self._snapshot.hero is not None
        final = next(
            (e.label for e in reversed(self._snapshot.log) if e.type == "narration"), ""
        )
        return resolve_epilogue(
            self.campaign, self._snapshot.hero, final, self.get_world_map_index()
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with each committed snapshot. Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, snapshot: SessionSnapshot) -> SessionSnapshot:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(self.get_snapshot())
        return self.get_snapshot()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def load_snapshot(self, snapshot: SessionSnapshot | Mapping[str, Any]) -> SessionSnapshot:
        """Replace the session with a saved one.

        Raises:
            SceneNotFound: if the saved scene is not part of this campaign.
        """
        if not isinstance(snapshot, SessionSnapshot):
            snapshot = SessionSnapshot.model_validate(snapshot)
        if snapshot.current_scene_id is not None and snapshot.current_scene_id not in self.graph:
            raise SceneNotFound(snapshot.current_scene_id)
        with self._lock:
            return self._commit(snapshot.model_copy(deep=True))

    def create_hero(self, build: HeroBuild | Hero | Mapping[str, Any]) -> SessionSnapshot:
        """Start a new session with a freshly built hero at the intro scene.

        Raises:
            HeroValidationError: the build was rejected; the session is unchanged.
        """
        if isinstance(build, Hero):
            hero = build
        else:
            if not isinstance(build, HeroBuild):
                try:
                    build = HeroBuild.model_validate(build)
                except ValidationError as e:
                    raise HeroValidationError(f"Malformed hero build: {e}") from e
            hero = build_hero(build, self._reference or default_reference())

        with self._lock:
            draft = _Draft.from_snapshot(SessionSnapshot(), hero)
            draft.scene_id = self._enter(draft, self.graph.intro_scene_id)
            logger.debug("Hero %r created, starting at %r", hero.name, draft.scene_id)
            return self._commit(draft.to_snapshot())

    def record_conversation(self, npc_id: str, prompt: str, reply: str) -> SessionSnapshot:
        with self._lock:
            conversation = {k: list(v) for k, v in self._snapshot.conversation.items()}
            conversation.setdefault(npc_id, []).extend([
                ConversationTurn(speaker="player", text=prompt),
                ConversationTurn(speaker="npc", text=reply),
            ])
            return self._commit(self._snapshot.model_copy(update={"conversation": conversation}))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def choose_option(self, choice_id: str) -> SessionSnapshot:
        """Resolve ``choice_id`` in the current scene and advance the session."""
        with self._lock:
            current = self._snapshot
            if self.is_complete():
                raise GameAlreadyComplete("The campaign has already reached its epilogue")
            if current.hero is None or current.current_scene_id is None:
                raise HeroNotCreated("Create a hero before choosing options")

            choice = self.graph.select(current.current_scene_id, choice_id, current.hero)
            draft = _Draft.from_snapshot(current, current.hero)

            outcome = self._resolve(draft, choice)
            draft.log.append(LogEntry.create("choice", choice.label, choice.description))

            draft.hero, entries = apply_effect(draft.hero, outcome.effects)
            draft.log.extend(entries)
            draft.log.append(LogEntry.create("narration", outcome.narrative))

            if outcome.next_scene_id is None:
                draft.scene_id = None
                logger.debug("Outcome %r completed the campaign", outcome.id)
            else:
                draft.scene_id = self._enter(draft, outcome.next_scene_id)
            return self._commit(draft.to_snapshot())

    def _resolve(self, draft: _Draft, choice: Choice) -> Outcome:
        if choice.auto_success is not None:
            return choice.auto_success

        check = choice.skill_check
        assert check is not None
        hero = draft.hero
        advantage = bool(check.advantage_if_flag and hero.flags.get(check.advantage_if_flag))
        disadvantage = bool(check.disadvantage_if_flag and hero.flags.get(check.disadvantage_if_flag))
        result = self._dice.resolve_check(
            modifier_for(hero, check.ability),
            proficiency_for(hero, check),
            check.dc,
            advantage=advantage,
            disadvantage=disadvantage,
        )
        label, detail = describe_check(check, result)
        draft.log.append(LogEntry.create("roll", label, detail))
        logger.debug("Check for %r: %s", choice.id, detail)
        return check.success if result.success else check.failure

    def _enter(self, draft: _Draft, scene_id: str) -> str:
        """Enter ``scene_id`` and follow fallbacks; returns the scene that sticks."""
        path = [scene_id]
        while True:
            _, on_enter = self.graph.enter(scene_id)
            draft.visited[scene_id] = draft.visited.get(scene_id, 0) + 1
            draft.hero, entries = apply_effect(draft.hero, on_enter)
            draft.log.extend(entries)

            fallback = self.graph.fallback_for(scene_id, draft.hero)
            if fallback is None:
                return scene_id
            if len(path) > len(self.graph):
                raise NavigationCycleDetected(path + [fallback])
            logger.debug("Scene %r has no selectable choice, falling back to %r", scene_id, fallback)
            path.append(fallback)
            scene_id = fallback

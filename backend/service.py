"""Per-user game sessions for the HTTP service.

One GameEngine per user id, created on first use from saved progress (or
fresh when nothing was saved). Every operation for a user runs under that
user's asyncio.Lock, held across load -> engine call -> save, so requests for
the same user never interleave. Different users share only the immutable
campaign.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from pydantic import Field

from backend import config
from emberfall.content import ContentStore
from emberfall.dice import DiceRoller
from emberfall.engine import GameEngine
from emberfall.epilogue import Epilogue
from emberfall.errors import HeroNotCreated, NotFound
from emberfall.hero import HeroBuild, hero_snapshot
from emberfall.llm import HttpLLM, LLMError
from emberfall.models import Campaign, Choice, ConversationTurn, Scene, SessionSnapshot, WireModel
from emberfall.oracle import DialogueOracle, LLMOracle, ScriptedOracle, ask_npc
from emberfall.storage import ProgressStore
from emberfall.world_map import WorldMapIndex

logger = logging.getLogger(__name__)


class SessionView(WireModel):
    """What a renderer needs after every step."""

    snapshot: SessionSnapshot
    scene: Scene | None = None
    choices: list[Choice] = Field(default_factory=list)
    complete: bool = False


class TalkResult(WireModel):
    reply: str
    conversation: list[ConversationTurn] = Field(default_factory=list)


def view_of(engine: GameEngine) -> SessionView:
    return SessionView(
        snapshot=engine.get_snapshot(),
        scene=engine.current_scene(),
        choices=engine.available_choices(),
        complete=engine.is_complete(),
    )


class GameService:
    """Per-user sessions behind one content store and one progress store.

    Engines and locks are kept for every user id seen, for the life of the
    process. reset and delete_progress drop the engine but keep the lock, so a
    request already waiting on it still excludes the next one.

    Args:
        content: Where the campaign comes from (fetched once, then shared).
        store:   Progress persistence keyed by user id.
        dice:    Roller shared by all sessions; tests inject a scripted one.
    """

    def __init__(
        self,
        content: ContentStore,
        store: ProgressStore,
        dice: DiceRoller | None = None,
    ) -> None:
        self.content = content
        self.store = store
        self._dice = dice
        self._engines: dict[str, GameEngine] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, user_id: str) -> asyncio.Lock:
        return self._locks[user_id]

    async def campaign(self) -> Campaign:
        return await self.content.get_campaign()

    def oracle(self) -> DialogueOracle:
        """The dialogue oracle selected in settings."""
        settings = config.get_config()
        if settings["oracle"] != "llm":
            return ScriptedOracle()
        try:
            return LLMOracle(HttpLLM.from_settings(settings["llm_connection"]))
        except LLMError as e:
            logger.warning("LLM oracle selected but not usable, using scripted replies: %s", e)
            return ScriptedOracle()

    # ------------------------------------------------------------------
    # Engines
    # ------------------------------------------------------------------

    async def _engine(self, user_id: str) -> GameEngine:
        engine = self._engines.get(user_id)
        if engine is not None:
            return engine

        campaign = await self.campaign()
        try:
            saved = self.store.load(user_id)
        except NotFound:
            saved = None
        engine = GameEngine(campaign, dice=self._dice, snapshot=saved)
        engine.subscribe(lambda snapshot: self._autosave(user_id, snapshot))
        self._engines[user_id] = engine
        logger.debug("Session for %r opened (%s)", user_id, "resumed" if saved else "new")
        return engine

    def _autosave(self, user_id: str, snapshot: SessionSnapshot) -> None:
        if config.get_config()["autosave"]:
            self.store.save(user_id, snapshot)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def view(self, user_id: str) -> SessionView:
        async with self.lock(user_id):
            return view_of(await self._engine(user_id))

    async def create_hero(self, user_id: str, build: HeroBuild) -> SessionView:
        async with self.lock(user_id):
            engine = await self._engine(user_id)
            engine.create_hero(build)
            return view_of(engine)

    async def choose(self, user_id: str, choice_id: str) -> SessionView:
        async with self.lock(user_id):
            engine = await self._engine(user_id)
            engine.choose_option(choice_id)
            return view_of(engine)

    async def world_map(self, user_id: str) -> WorldMapIndex:
        async with self.lock(user_id):
            return (await self._engine(user_id)).get_world_map_index()

    async def epilogue(self, user_id: str) -> Epilogue | None:
        async with self.lock(user_id):
            return (await self._engine(user_id)).epilogue()

    async def reset(self, user_id: str) -> SessionView:
        """Start over: drop the session and its saved progress."""
        async with self.lock(user_id):
            self.store.delete(user_id)
            self._engines.pop(user_id, None)
            return view_of(await self._engine(user_id))

    async def talk(self, user_id: str, npc_id: str, prompt: str) -> TalkResult:
        """Ask an NPC as the session's hero; both turns are recorded."""
        async with self.lock(user_id):
            engine = await self._engine(user_id)
            if engine.hero is None:
                raise HeroNotCreated("Create a hero before talking to anyone")
            turns = engine.get_snapshot().conversation.get(npc_id, [])
            reply = await ask_npc(self.oracle(), npc_id, prompt, hero_snapshot(engine.hero), turns)
            snapshot = engine.record_conversation(npc_id, prompt, reply)
            return TalkResult(reply=reply, conversation=snapshot.conversation[npc_id])

    # ------------------------------------------------------------------
    # Raw progress
    # ------------------------------------------------------------------

    async def load_progress(self, user_id: str) -> SessionSnapshot:
        async with self.lock(user_id):
            return self.store.load(user_id)

    async def save_progress(self, user_id: str, snapshot: SessionSnapshot) -> None:
        """Store a snapshot and make it the live session."""
        async with self.lock(user_id):
            engine = await self._engine(user_id)
            engine.load_snapshot(snapshot)
            self.store.save(user_id, snapshot)

    async def delete_progress(self, user_id: str) -> None:
        async with self.lock(user_id):
            self.store.delete(user_id)
            self._engines.pop(user_id, None)

"""NPC dialogue oracle.

An oracle maps ``(npc_id, prompt, hero snapshot)`` to a reply string. The
scripted oracle answers from a fixed registry of NPC responders; the LLM oracle
renders a Handlebars prompt for the same NPCs and falls back to the scripted
reply when the backend fails. Either way the caller always gets text back:
``ask_npc`` turns any oracle failure into the "unavailable" line.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from emberfall.llm import LLM, LLMError
from emberfall.models import ConversationTurn, HeroSnapshot
from emberfall.prompts import DIALOGUE_PROMPT, PromptError, build_dialogue_context, render_template

logger = logging.getLogger(__name__)

UNAVAILABLE_REPLY = 'The link crackles without response. (NPC "{npc_id}" is unavailable.)'

Responder = Callable[[str, HeroSnapshot], str]


def unavailable(npc_id: str) -> str:
    return UNAVAILABLE_REPLY.format(npc_id=npc_id)


# ── Hero state ───────────────────────────────────────────


def describe_tensions(hero: HeroSnapshot) -> list[str]:
    status = hero.status
    tensions = []
    if status.get("stress", 0) >= 4:
        tensions.append("your nerves are fraying")
    if status.get("wounds", 0) >= 3:
        tensions.append("your wounds need mending")
    if status.get("corruption", 0) >= 3:
        tensions.append("the Heart’s corruption clings to you")
    if status.get("influence", 0) >= 3:
        tensions.append("Emberfall watches and trusts you")
    return tensions


def describe_state(hero: HeroSnapshot) -> str:
    return ", ".join(describe_tensions(hero)) or "you remain balanced for now"


# ── Responders ───────────────────────────────────────────


def _seraphine(prompt: str, hero: HeroSnapshot) -> str:
    if hero.flags.get("empathized_lirael") or hero.flags.get("mapped_spire"):
        insight = "The threads you have already seen are aligning."
    else:
        insight = "The threads tremble, awaiting your choice."
    if hero.status.get("corruption", 0) > 2:
        warning = "Guard your spirit; the Heart hungers for you."
    else:
        warning = "Hold fast to compassion; it will steady the Heart."
    return f"I cast your words into the lantern. {insight} {warning}"


def _tamsin(prompt: str, hero: HeroSnapshot) -> str:
    if "gadget" in prompt.lower():
        return "Gadget? Easy. Slam the actuator twice, then let it cool. If it sparks purple, you did it right."
    if hero.flags.get("vertical_advantage"):
        rig = "That climb kit should keep you nimble."
    else:
        rig = "Wish you had snagged my rig, but you will manage."
    return f"Whatever mess you are in, remember: reroute power, hit the weak points, move fast. {rig}"


def _marek(prompt: str, hero: HeroSnapshot) -> str:
    if hero.flags.get("marek_support") or hero.flags.get("marek_respects"):
        tone = "You have my trust."
    else:
        tone = "I still have reservations, but Emberfall needs results."
    if hero.status.get("influence", 0) > 2:
        advice = "Citizens speak of your deeds. Use that goodwill."
    else:
        advice = "Keep a low profile until you secure the Heart."
    return f"{tone} {advice}"


def _nerrix(prompt: str, hero: HeroSnapshot) -> str:
    if hero.flags.get("nerrix_rescued"):
        return (
            "I have recalibrated the failsafes like we discussed. "
            "Give the Heart a harmonic pulse. Think of a steady heartbeat."
        )
    if hero.flags.get("nerrix_failed"):
        return "Still waiting here. Hurry, or the containment will snap and we both burn."
    return "If you find me, break the rune lattice from the bottom. The top nodes feed off the lower anchors."


def _lirael(prompt: str, hero: HeroSnapshot) -> str:
    if hero.flags.get("heart_cleansed"):
        return "Your resolve steadied the Heart. Together we will guard Emberfall."
    if hero.flags.get("heart_shattered"):
        return "The ember-sky still echoes with our choice. I witness your sacrifice."
    return "The Heart aches. Approach with grace or fury, but know I will answer in kind."


@dataclass(frozen=True)
class NpcProfile:
    id: str
    name: str
    role: str
    voice: str
    responder: Responder

    def as_prompt_vars(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "role": self.role, "voice": self.voice}


NPCS: dict[str, NpcProfile] = {
    p.id: p
    for p in (
        NpcProfile(
            "seraphine", "Seraphine", "a seer who reads premonitions in incense and lantern light",
            "You speak softly in images of threads and light.", _seraphine,
        ),
        NpcProfile(
            "tamsin", "Tamsin", "a grease-stained gadgeteer with goggles",
            "You talk fast, practical and cheerful, full of workshop slang.", _tamsin,
        ),
        NpcProfile(
            "marek", "Captain Marek Thorne", "captain of the Emberfall watch",
            "You are gruff and measured, and respect earns your trust.", _marek,
        ),
        NpcProfile(
            "nerrix", "Nerrix", "a soot-streaked tinkerer held in a containment cell",
            "You are brilliant and anxious, and you think in schematics.", _nerrix,
        ),
        NpcProfile(
            "lirael", "Lirael", "the Heart’s astral warden",
            "You are ancient and grieving, and you answer in kind.", _lirael,
        ),
    )
}


# ── Oracles ──────────────────────────────────────────────


class DialogueOracle(Protocol):
    async def reply(
        self,
        npc_id: str,
        prompt: str,
        hero: HeroSnapshot,
        turns: Sequence[ConversationTurn] | None = None,
    ) -> str: ...


class ScriptedOracle:
    """Answers from the closed NPC registry with no outside calls."""

    def __init__(self, npcs: dict[str, NpcProfile] | None = None) -> None:
        self.npcs = npcs if npcs is not None else NPCS

    def respond(self, npc_id: str, prompt: str, hero: HeroSnapshot) -> str:
        profile = self.npcs.get(npc_id)
        if profile is None:
            return unavailable(npc_id)
        return f"{profile.responder(prompt, hero)} Also, {describe_state(hero)}."

    async def reply(
        self,
        npc_id: str,
        prompt: str,
        hero: HeroSnapshot,
        turns: Sequence[ConversationTurn] | None = None,
    ) -> str:
        return self.respond(npc_id, prompt, hero)


class LLMOracle:
    """Voices the registry NPCs through a text-completion backend.

    Args:
        llm:      Any callable matching the ``LLM`` protocol.
        fallback: Scripted oracle used for NPC lookup and when the backend
                  fails.
    """

    def __init__(self, llm: LLM, fallback: ScriptedOracle | None = None) -> None:
        self._llm = llm
        self._fallback = fallback or ScriptedOracle()

    def build_prompt(
        self,
        profile: NpcProfile,
        prompt: str,
        hero: HeroSnapshot,
        turns: Sequence[ConversationTurn] | None = None,
    ) -> str:
        context = build_dialogue_context(
            profile.as_prompt_vars(), prompt, hero, describe_tensions(hero), list(turns or [])
        )
        return render_template(DIALOGUE_PROMPT, context)

    async def reply(
        self,
        npc_id: str,
        prompt: str,
        hero: HeroSnapshot,
        turns: Sequence[ConversationTurn] | None = None,
    ) -> str:
        profile = self._fallback.npcs.get(npc_id)
        if profile is None:
            return unavailable(npc_id)
        try:
            return await self._llm("npc_dialogue", self.build_prompt(profile, prompt, hero, turns))
        except (LLMError, PromptError) as e:
            logger.warning("LLM dialogue for %r failed, using scripted reply: %s", npc_id, e)
            return self._fallback.respond(npc_id, prompt, hero)


async def ask_npc(
    oracle: DialogueOracle,
    npc_id: str,
    prompt: str,
    hero: HeroSnapshot,
    turns: Sequence[ConversationTurn] | None = None,
) -> str:
    """Ask ``oracle`` for a reply; any failure becomes the unavailable line."""
    try:
        return await oracle.reply(npc_id, prompt, hero, turns)
    except Exception:
        logger.exception("Dialogue oracle failed for NPC %r", npc_id)
        return unavailable(npc_id)

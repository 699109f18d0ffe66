"""Handlebars rendering for ending texts and NPC dialogue prompts."""

from collections.abc import Callable
from typing import Any

import pybars

from emberfall.models import ConversationTurn, HeroSnapshot

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}} — iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


def _helper_join(this, items, separator=", "):
    """{{join array ", "}} — inline a list of strings."""
    return separator.join(str(item) for item in items or [])


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
    "join": _helper_join,
}


def render_template(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── NPC dialogue ─────────────────────────────────────────


DIALOGUE_PROMPT = """You are {{{npc.name}}}, {{{npc.role}}} in the city of Emberfall.
{{{npc.voice}}}

The hero speaking to you is {{{hero.name}}}.
{{#if tensions}}What you can see: {{{tensions}}}.{{/if}}
{{#if flags}}What has happened so far: {{{join flags ", "}}}.{{/if}}

{{#if turns}}Earlier in this conversation:
{{#last turns 6}}{{#if is_player}}> {{else}}{{/if}}{{{text}}}
{{/last}}{{/if}}
> {{{prompt}}}

Answer in character in two or three sentences. Return only your spoken words."""


def build_dialogue_context(
    npc: dict[str, str],
    prompt: str,
    hero: HeroSnapshot,
    tensions: list[str],
    turns: list[ConversationTurn] | None = None,
) -> dict[str, Any]:
    """Assemble template variables for DIALOGUE_PROMPT."""
    return {
        "npc": npc,
        "prompt": prompt,
        "hero": hero.model_dump(),
        "tensions": ", ".join(tensions),
        "flags": sorted(name.replace("_", " ") for name, on in hero.flags.items() if on),
        "turns": [
            {"text": t.text, "is_player": t.speaker == "player"}
            for t in turns or []
        ],
    }

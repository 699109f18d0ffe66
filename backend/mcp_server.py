"""FastMCP server exposing a game session as MCP tools.

Tools:
  - describe_scene()              — current scene, selectable choices, hero status
  - choose_option(choice_id)      — resolve a choice and describe what happened
  - ask_npc(npc_id, prompt)       — talk to an NPC as the current hero

The engine is module state replaced via set_engine() for tests, or built with
the bundled campaign and the demo hero when run as __main__.

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from emberfall.engine import GameEngine
from emberfall.errors import HeroNotCreated
from emberfall.hero import hero_snapshot
from emberfall.oracle import DialogueOracle, ScriptedOracle
from emberfall.oracle import ask_npc as oracle_ask

mcp = FastMCP("emberfall")

_engine: GameEngine | None = None
_oracle: DialogueOracle = ScriptedOracle()


def set_engine(engine: GameEngine | None, oracle: DialogueOracle | None = None) -> None:
    """Replace the active engine (used in tests)."""
    global _engine, _oracle
    _engine = engine
    _oracle = oracle or ScriptedOracle()


def get_engine() -> GameEngine:
    """Return the active engine (used in tests to inspect state)."""
    if _engine is None:
        raise HeroNotCreated("No game is running")
    return _engine


def _describe(engine: GameEngine) -> dict:
    scene = engine.current_scene()
    hero = engine.hero
    return {
        "complete": engine.is_complete(),
        "scene": None if scene is None else {
            "id": scene.id,
            "title": scene.title,
            "narrative": scene.narrative,
        },
        "choices": [
            {"id": c.id, "label": c.label, "check": c.skill_check is not None}
            for c in engine.available_choices()
        ],
        "hero": None if hero is None else hero_snapshot(hero).model_dump(mode="json", by_alias=True),
    }


@mcp.tool()
def describe_scene() -> dict:
    """Describe the current scene, its selectable choices and the hero's state."""
    return _describe(get_engine())


@mcp.tool()
def choose_option(choice_id: str) -> dict:
    """Resolve a choice in the current scene. Returns the new log entries and scene."""
    engine = get_engine()
    before = len(engine.get_snapshot().log)
    snapshot = engine.choose_option(choice_id)
    result = _describe(engine)
    result["log"] = [
        {"type": e.type, "label": e.label, "detail": e.detail}
        for e in snapshot.log[before:]
    ]
    return result


@mcp.tool()
async def ask_npc(npc_id: str, prompt: str) -> str:
    """Ask an NPC something as the current hero. The exchange is recorded."""
    engine = get_engine()
    if engine.hero is None:
        raise HeroNotCreated("Create a hero before talking to anyone")
    turns = engine.get_snapshot().conversation.get(npc_id, [])
    reply = await oracle_ask(_oracle, npc_id, prompt, hero_snapshot(engine.hero), turns)
    engine.record_conversation(npc_id, prompt, reply)
    return reply


if __name__ == "__main__":
    from backend.demo import DEMO_BUILD
    from emberfall.content import default_campaign

    engine = GameEngine(default_campaign())
    engine.create_hero(DEMO_BUILD)
    set_engine(engine)
    mcp.run()

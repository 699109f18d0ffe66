"""Play-through tests for the MCP tool server.

Drives a session through the FastMCP in-process test client with a scripted
d20, the way an agent would: describe, choose, talk.

Variants:
  test_describe_opening       — intro scene, three visible choices, hero state
  test_choose_with_check      — a rolled choice logs the roll before the narration
  test_gated_choice_is_error  — a locked choice comes back as a tool error
  test_talk_is_recorded       — NPC reply lands in the session's conversation
"""

import json

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

import backend.mcp_server as mcp_server
from emberfall.engine import GameEngine


@pytest.fixture(autouse=True)
def fresh_engine(campaign, dice, build):
    """Each test gets its own session so tool calls don't bleed across tests."""
    engine = GameEngine(campaign, dice=dice)
    engine.create_hero(build)
    mcp_server.set_engine(engine)
    yield engine
    mcp_server.set_engine(None)


async def _call(name: str, **arguments):
    async with create_connected_server_and_client_session(mcp_server.mcp) as client:
        return await client.call_tool(name, arguments)


def _json(result) -> dict:
    assert not result.isError, result.content[0].text
    return json.loads(result.content[0].text)


async def test_describe_opening():
    body = _json(await _call("describe_scene"))

    assert body["complete"] is False
    assert body["scene"]["id"] == "intro_arrival"
    assert [c["id"] for c in body["choices"]] == [
        "intro_seek_seraphine", "intro_seek_tamsin", "intro_report_thorne",
    ]
    assert body["choices"][2]["check"] is True
    assert body["hero"]["name"] == "Aria"
    # arriving in the smoke is stressful
    assert body["hero"]["status"]["stress"] == 1


async def test_choose_with_check(rng):
    rng.push(20)

    body = _json(await _call("choose_option", choice_id="intro_report_thorne"))

    assert body["scene"]["id"] == "throne_command"
    types = [entry["type"] for entry in body["log"]]
    assert types[0] == "roll"
    assert "choice" in types
    assert types[-1] == "narration"
    assert "DC 14" in body["log"][0]["detail"]
    assert mcp_server.get_engine().get_snapshot().current_scene_id == "throne_command"


async def test_gated_choice_is_error(rng):
    rng.push(1)
    _json(await _call("choose_option", choice_id="intro_report_thorne"))

    result = await _call("choose_option", choice_id="marek_ruse")

    assert result.isError
    assert "met_tamsin" in result.content[0].text
    assert mcp_server.get_engine().get_snapshot().current_scene_id == "marek_clash"


async def test_talk_is_recorded():
    result = await _call("ask_npc", npc_id="tamsin", prompt="Any gadget for me?")

    assert not result.isError
    reply = result.content[0].text
    assert reply.startswith("Gadget? Easy.")
    turns = mcp_server.get_engine().get_snapshot().conversation["tamsin"]
    assert [(t.speaker, t.text) for t in turns] == [
        ("player", "Any gadget for me?"),
        ("npc", reply),
    ]

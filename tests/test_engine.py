"""Tests for emberfall.engine — the choose_option transaction end to end.

Rolls are forced through the scripted random source from conftest.
"""

import pytest

from emberfall.engine import GameEngine
from emberfall.errors import (
    ChoiceGated,
    ChoiceNotFound,
    GameAlreadyComplete,
    HeroNotCreated,
    HeroValidationError,
    NavigationCycleDetected,
    SceneNotFound,
)
from emberfall.models import Campaign


def _auto(choice_id: str, next_scene: str | None, effects: dict | None = None, **extra) -> dict:
    outcome = {"id": f"{choice_id}_outcome", "nextSceneId": next_scene, "narrative": f"{choice_id} done."}
    if effects:
        outcome["effects"] = effects
    return {"id": choice_id, "label": choice_id, "autoSuccess": outcome, **extra}


def _campaign(scenes: list[dict]) -> Campaign:
    return Campaign.model_validate(
        {"id": "t", "title": "Trial", "synopsis": "", "introSceneId": "start", "scenes": scenes}
    )


@pytest.fixture
def engine(campaign, dice) -> GameEngine:
    return GameEngine(campaign, dice=dice)


@pytest.fixture
def started(engine, build) -> GameEngine:
    engine.create_hero(build)
    return engine


def _at(engine: GameEngine, scene_id: str, **flags: bool) -> GameEngine:
    """Jump the session to ``scene_id`` with extra hero flags."""
    snap = engine.get_snapshot()
    hero = snap.hero.model_copy(update={"flags": {**snap.hero.flags, **flags}})
    engine.load_snapshot(snap.model_copy(update={"current_scene_id": scene_id, "hero": hero}))
    return engine


def _new_entries(engine: GameEngine, before: int):
    return engine.get_snapshot().log[before:]


# ---------------------------------------------------------------------------
# Hero creation
# ---------------------------------------------------------------------------

class TestCreateHero:
    def test_enters_intro_and_fires_on_enter(self, engine, build) -> None:
        snap = engine.create_hero(build)
        assert snap.current_scene_id == "intro_arrival"
        assert snap.visited_scenes == {"intro_arrival": 1}
        assert snap.hero.status["stress"] == 1
        assert [e.type for e in snap.log] == ["effect"]
        assert snap.log[0].label == "The city is already on edge. Time is short."

    def test_accepts_camel_case_dict(self, engine, build) -> None:
        snap = engine.create_hero(build.model_dump(by_alias=True))
        assert snap.hero.name == "Aria"

    def test_invalid_build_leaves_session_unchanged(self, started, build) -> None:
        before = started.get_snapshot()
        with pytest.raises(HeroValidationError):
            started.create_hero(build.model_copy(update={"class_id": "bard"}))
        assert started.get_snapshot() == before

    @pytest.mark.parametrize("raw", [{"name": "x"}, {"name": "x", "raceId": "human"}])
    def test_malformed_mapping_is_a_validation_error(self, started, raw) -> None:
        before = started.get_snapshot()
        with pytest.raises(HeroValidationError, match="Malformed hero build"):
            started.create_hero(raw)
        assert started.get_snapshot() == before

    def test_new_hero_replaces_session(self, started, build, rng) -> None:
        started.choose_option("intro_seek_tamsin")
        snap = started.create_hero(build.model_copy(update={"name": "Bryn"}))
        assert snap.hero.name == "Bryn"
        assert snap.visited_scenes == {"intro_arrival": 1}
        assert snap.hero.flags == {}

    def test_not_complete_before_hero(self, engine) -> None:
        assert engine.is_complete() is False
        assert engine.current_scene() is None
        assert engine.available_choices() == []


# ---------------------------------------------------------------------------
# choose_option
# ---------------------------------------------------------------------------

class TestChooseOption:
    def test_requires_hero(self, engine) -> None:
        with pytest.raises(HeroNotCreated):
            engine.choose_option("intro_seek_seraphine")

    def test_auto_success_to_seraphine(self, started, rng) -> None:
        before = len(started.get_snapshot().log)
        snap = started.choose_option("intro_seek_seraphine")

        assert snap.current_scene_id == "seraphine_sanctum"
        assert snap.hero.flags["met_seraphine"] is True
        assert snap.hero.allies["seraphine"] == "ally"
        assert "Seer’s Charm" in snap.hero.equipment
        assert rng.calls == 0

        entries = _new_entries(started, before)
        types = [e.type for e in entries]
        assert types.count("choice") == 1
        assert types.count("narration") == 1
        assert "roll" not in types
        # choice, narration, then the sanctum's onEnter note
        assert types == ["choice", "narration", "effect"]

    def test_skill_check_success_with_forced_twenty(self, started, rng) -> None:
        _at(started, "heart_chamber")
        stress = started.get_snapshot().hero.status["stress"]
        rng.push(20)

        snap = started.choose_option("heart_shatter")

        assert snap.current_scene_id == "escape_gauntlet"
        assert snap.hero.flags["heart_shattered"] is True
        assert snap.hero.status["stress"] == stress + 1

    def test_roll_entry_comes_first(self, started, rng) -> None:
        _at(started, "heart_chamber")
        before = len(started.get_snapshot().log)
        rng.push(20)
        started.choose_option("heart_shatter")

        entries = _new_entries(started, before)
        assert [e.type for e in entries] == ["roll", "choice", "narration"]
        roll = entries[0]
        assert roll.label == "Athletics (Strength) check"
        # STR 16 -> +3, athletics proficiency +2
        assert roll.detail == "DC 16 · rolled 20 · 20 + 5 = 25 · success"

    def test_skill_check_failure(self, started, rng) -> None:
        _at(started, "heart_chamber")
        rng.push(2)
        snap = started.choose_option("heart_shatter")
        assert snap.current_scene_id == "escape_gauntlet"
        assert snap.hero.flags.get("heart_instable") is True
        assert snap.hero.status["wounds"] == 2
        assert "failure" in snap.log[-3].detail

    def test_advantage_from_flag(self, started, rng) -> None:
        # intro_report_thorne: persuasion DC 14, advantage if met_seraphine
        _at(started, "intro_arrival", met_seraphine=True)
        before = len(started.get_snapshot().log)
        rng.push(3, 18)
        snap = started.choose_option("intro_report_thorne")

        assert rng.calls == 2
        assert snap.current_scene_id == "throne_command"
        roll = _new_entries(started, before)[0]
        assert "rolled 3 and 18 with advantage, kept 18" in roll.detail
        # CHA 8 -> -1, persuasion untrained
        assert "18 - 1 = 17" in roll.detail

    def test_no_advantage_without_flag(self, started, rng) -> None:
        rng.push(14)
        snap = started.choose_option("intro_report_thorne")
        assert rng.calls == 1
        assert snap.current_scene_id == "marek_clash"  # 14 - 1 = 13 < 14

    def test_gated_choice_leaves_session_unchanged(self, started) -> None:
        _at(started, "marek_clash")
        before = started.get_snapshot()
        with pytest.raises(ChoiceGated):
            started.choose_option("marek_ruse")
        assert started.get_snapshot() == before

    def test_gated_choice_opens_once_flag_is_set(self, started, rng) -> None:
        # marek_ruse: investigation DC 11, INT 10 untrained
        _at(started, "marek_clash", met_tamsin=True)
        assert "marek_ruse" in [c.id for c in started.available_choices()]
        rng.push(15)
        snap = started.choose_option("marek_ruse")
        assert snap.current_scene_id == "market_crossroads"
        assert snap.hero.flags["tamsin_impressed"] is True

    def test_unknown_choice_leaves_session_unchanged(self, started) -> None:
        before = started.get_snapshot()
        with pytest.raises(ChoiceNotFound):
            started.choose_option("intro_fly_away")
        assert started.get_snapshot() == before

    def test_visit_counts_accumulate(self, started, rng) -> None:
        started.choose_option("intro_seek_tamsin")
        started.choose_option("tamsin_briefing")
        snap = started.get_snapshot()
        assert snap.visited_scenes == {"intro_arrival": 1, "tamsin_workshop": 1, "market_crossroads": 1}

    def test_terminal_outcome_completes(self, started) -> None:
        _at(started, "epilogue_resolution")
        snap = started.choose_option("epilogue_reflect")
        assert snap.current_scene_id is None
        assert started.is_complete()
        with pytest.raises(GameAlreadyComplete):
            started.choose_option("epilogue_reflect")

    def test_log_is_append_only(self, started, rng) -> None:
        first = started.get_snapshot().log
        started.choose_option("intro_seek_seraphine")
        assert started.get_snapshot().log[: len(first)] == first


# ---------------------------------------------------------------------------
# Scene entry and fallbacks
# ---------------------------------------------------------------------------

class TestEntry:
    def test_on_enter_fires_on_every_entry(self, build) -> None:
        engine = GameEngine(_campaign([
            {"id": "start", "title": "S", "narrative": ".",
             "onEnter": {"statusAdjust": {"stress": 1}},
             "options": [_auto("again", "start")]},
        ]))
        engine.create_hero(build)
        engine.choose_option("again")
        snap = engine.choose_option("again")
        assert snap.visited_scenes == {"start": 3}
        assert snap.hero.status["stress"] == 3

    def test_fallback_is_followed(self, build) -> None:
        engine = GameEngine(_campaign([
            {"id": "start", "title": "S", "narrative": ".", "options": [_auto("go", "lift")]},
            {"id": "lift", "title": "L", "narrative": ".", "fallbackSceneId": "plaza",
             "onEnter": {"notes": ["The lift shudders."]},
             "options": [_auto("locked", "plaza", requiresFlag="key")]},
            {"id": "plaza", "title": "P", "narrative": ".", "options": [_auto("end", None)]},
        ]))
        engine.create_hero(build)
        snap = engine.choose_option("go")
        assert snap.current_scene_id == "plaza"
        assert snap.visited_scenes == {"start": 1, "lift": 1, "plaza": 1}
        assert snap.log[-1].label == "The lift shudders."

    def test_self_referencing_fallback_is_a_cycle(self, build) -> None:
        engine = GameEngine(_campaign([
            {"id": "start", "title": "S", "narrative": ".", "options": [_auto("go", "loop")]},
            {"id": "loop", "title": "L", "narrative": ".", "fallbackSceneId": "loop",
             "options": [_auto("locked", None, requiresFlag="never")]},
        ]))
        engine.create_hero(build)
        before = engine.get_snapshot()
        with pytest.raises(NavigationCycleDetected) as exc:
            engine.choose_option("go")
        assert exc.value.path[0] == "loop"
        assert engine.get_snapshot() == before

    def test_two_scene_cycle(self, build) -> None:
        engine = GameEngine(_campaign([
            {"id": "start", "title": "S", "narrative": ".", "options": [_auto("go", "a")]},
            {"id": "a", "title": "A", "narrative": ".", "fallbackSceneId": "b"},
            {"id": "b", "title": "B", "narrative": ".", "fallbackSceneId": "a"},
        ]))
        engine.create_hero(build)
        with pytest.raises(NavigationCycleDetected):
            engine.choose_option("go")
        assert engine.get_snapshot().current_scene_id == "start"

    def test_dead_end_stays_current(self, build) -> None:
        engine = GameEngine(_campaign([
            {"id": "start", "title": "S", "narrative": ".", "options": [_auto("go", "pit")]},
            {"id": "pit", "title": "Pit", "narrative": "."},
        ]))
        engine.create_hero(build)
        snap = engine.choose_option("go")
        assert snap.current_scene_id == "pit"
        assert engine.available_choices() == []
        assert not engine.is_complete()


# ---------------------------------------------------------------------------
# Snapshots, subscriptions, conversation, epilogue
# ---------------------------------------------------------------------------

class TestSnapshots:
    def test_get_snapshot_is_a_deep_copy(self, started) -> None:
        snap = started.get_snapshot()
        snap.hero.flags["tampered"] = True
        snap.log.clear()
        fresh = started.get_snapshot()
        assert "tampered" not in fresh.hero.flags
        assert fresh.log

    def test_round_trip_through_wire_format(self, started, campaign, dice) -> None:
        started.choose_option("intro_seek_seraphine")
        wire = started.get_snapshot().model_dump(mode="json", by_alias=True)
        assert "currentSceneId" in wire and "visitedScenes" in wire

        restored = GameEngine(campaign, dice=dice, snapshot=wire)
        assert restored.get_snapshot() == started.get_snapshot()
        assert restored.current_scene().id == "seraphine_sanctum"

    def test_load_rejects_unknown_scene(self, started) -> None:
        snap = started.get_snapshot().model_copy(update={"current_scene_id": "atlantis"})
        with pytest.raises(SceneNotFound):
            started.load_snapshot(snap)


class TestSubscribe:
    def test_listeners_get_each_commit(self, engine, build) -> None:
        seen = []
        engine.subscribe(seen.append)
        engine.create_hero(build)
        engine.choose_option("intro_seek_tamsin")
        assert [s.current_scene_id for s in seen] == ["intro_arrival", "tamsin_workshop"]

    def test_failed_step_does_not_notify(self, started) -> None:
        seen = []
        started.subscribe(seen.append)
        with pytest.raises(ChoiceNotFound):
            started.choose_option("nope")
        assert seen == []

    def test_unsubscribe(self, engine, build) -> None:
        seen = []
        unsubscribe = engine.subscribe(seen.append)
        unsubscribe()
        engine.create_hero(build)
        assert seen == []


def test_record_conversation_appends_both_turns(started) -> None:
    started.record_conversation("tamsin", "Any gadgets?", "Plenty.")
    snap = started.record_conversation("tamsin", "Thanks", "Anytime.")
    turns = snap.conversation["tamsin"]
    assert [(t.speaker, t.text) for t in turns] == [
        ("player", "Any gadgets?"), ("npc", "Plenty."), ("player", "Thanks"), ("npc", "Anytime."),
    ]


class TestEpilogue:
    def test_none_until_complete(self, started) -> None:
        assert started.epilogue() is None

    def test_shattered_ending(self, started, rng) -> None:
        _at(started, "heart_chamber")
        rng.push(20, 20)
        started.choose_option("heart_shatter")
        started.choose_option("escape_dash")
        started.choose_option("epilogue_reflect")

        epilogue = started.epilogue()
        assert epilogue.ending_id == "ending_shattered"
        assert "Aria" in epilogue.text
        assert epilogue.locations_total == 14

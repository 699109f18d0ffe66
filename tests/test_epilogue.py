"""Tests for emberfall.epilogue — ending selection and rendering."""

import pytest

from emberfall.epilogue import pick_ending, resolve_epilogue
from emberfall.hero import build_hero
from emberfall.models import Campaign
from emberfall.reference import default_reference
from emberfall.world_map import MapIndexer


@pytest.fixture
def hero(build):
    return build_hero(build, default_reference())


def _with(hero, **changes):
    return hero.model_copy(update=changes)


class TestPickEnding:
    def test_first_matching_ending_wins(self, campaign, hero) -> None:
        both = _with(hero, flags={"heart_cleansed": True, "heart_shattered": True})
        assert pick_ending(campaign, both).id == "ending_cleansed"

    def test_ungated_ending_is_the_default(self, campaign, hero) -> None:
        assert pick_ending(campaign, hero).id == "ending_unresolved"

    def test_no_endings(self, hero) -> None:
        campaign = Campaign.model_validate({
            "id": "t", "title": "Trial", "synopsis": "", "introSceneId": "s",
            "scenes": [{"id": "s", "title": "S", "narrative": "."}],
        })
        assert pick_ending(campaign, hero) is None


class TestResolveEpilogue:
    def test_renders_hero_and_allies(self, campaign, hero) -> None:
        finished = _with(
            hero,
            flags={"heart_cleansed": True},
            allies={"lirael": "ally", "seraphine": "ally", "nerrix": "rival"},
        )
        world = MapIndexer(campaign).index({"intro_arrival": 1, "heart_chamber": 1}, None)
        epilogue = resolve_epilogue(campaign, finished, "You rest.", world)

        assert epilogue.ending_id == "ending_cleansed"
        assert epilogue.title == "The Heart Rekindled"
        assert "Aria walks the terraces" in epilogue.text
        assert "Standing with you: Lirael, Seraphine." in epilogue.text
        assert "Nerrix" not in epilogue.text
        assert epilogue.locations_visited == 2
        assert epilogue.allies["nerrix"] == "rival"

    def test_names_are_not_html_escaped(self, campaign, hero) -> None:
        named = _with(hero, name="Kael O'Brien & Co", flags={"heart_shattered": True})
        world = MapIndexer(campaign).index({}, None)
        epilogue = resolve_epilogue(campaign, named, "", world)
        assert "Kael O'Brien & Co" in epilogue.text

    def test_falls_back_to_final_narrative(self, hero) -> None:
        campaign = Campaign.model_validate({
            "id": "t", "title": "Trial", "synopsis": "", "introSceneId": "s",
            "scenes": [{"id": "s", "title": "S", "narrative": "."}],
        })
        epilogue = resolve_epilogue(campaign, hero, "The road ends here.", MapIndexer(campaign).index({}, None))
        assert epilogue.ending_id is None
        assert epilogue.title == "Trial"
        assert epilogue.text == "The road ends here."
